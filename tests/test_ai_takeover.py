"""Tests for the AI/human takeover state machine."""

import logging

import pytest

from app.core.ai_takeover import TakeoverState


@pytest.mark.asyncio
async def test_ai_active_without_record(takeover):
    assert await takeover.is_ai_authoritative("u1") is True


@pytest.mark.asyncio
async def test_owner_message_hands_over_until_reset(takeover):
    await takeover.record_owner_message("u1")
    assert await takeover.state("u1") is TakeoverState.HUMAN_ACTIVE

    # Idempotent, and no timeout brings the AI back
    await takeover.record_owner_message("u1")
    assert await takeover.is_ai_authoritative("u1") is False

    await takeover.reset("u1")
    assert await takeover.is_ai_authoritative("u1") is True


@pytest.mark.asyncio
async def test_state_is_per_user(takeover):
    await takeover.record_owner_message("u1")

    assert await takeover.is_ai_authoritative("u2") is True


@pytest.mark.asyncio
async def test_read_failure_fails_open(takeover, store):
    await takeover.record_owner_message("u1")
    store.failures["get_ai_state"] = RuntimeError("db down")

    assert await takeover.is_ai_authoritative("u1") is True


@pytest.mark.asyncio
async def test_describe(takeover):
    info = await takeover.describe("u1")
    assert info.model_dump(by_alias=True) == {
        "userId": "u1",
        "aiActive": True,
        "status": "AI is responding",
    }

    await takeover.record_owner_message("u1")
    info = await takeover.describe("u1")
    assert info.ai_active is False
    assert info.status == "Admin has taken over"


@pytest.mark.asyncio
async def test_takeover_is_logged_with_user_context(takeover, caplog):
    with caplog.at_level(logging.INFO, logger="app.core.ai_takeover"):
        await takeover.record_owner_message("u1")

    record = caplog.records[-1]
    assert record.user_id == "u1"
    assert record.extra_data == {"state": "human_active"}
