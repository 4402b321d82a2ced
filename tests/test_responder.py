"""Tests for the retrieval-augmented responder."""

import asyncio
import time

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from app.core.responder import (
    FALLBACK_REASON,
    Responder,
    ResponderError,
    build_system_prompt,
    history_to_messages,
)
from app.core.schemas_chat import ChatMessage, MessageOrigin
from app.core.schemas_knowledge import RetrievedChunk
from tests.fakes.fake_clients import embed_words, fake_embed


def _store_chunk(store, owner_id, record_id, text, file_name="faq.txt"):
    store.ensure_namespace(owner_id)
    store.upsert_records(
        owner_id,
        [{"id": record_id, "embedding": embed_words(text), "text": text, "file_name": file_name}],
    )


def _message(origin, text, seq):
    return ChatMessage(origin=origin, text=text, ts=seq, seq=seq)


@pytest.mark.asyncio
async def test_owner_without_resources_answers_from_general_knowledge(responder, llm):
    result = await responder.respond("acme", "Do you ship abroad?")

    assert result.text == "Happy to help!"
    assert result.context_used is False
    assert result.sources == []
    assert result.fallback_reason is None
    assert "no specific knowledge base" in llm.last_system_prompt


@pytest.mark.asyncio
async def test_grounded_reply_lists_sources(responder, store, llm):
    _store_chunk(store, "acme", "r1", "Our hours are 9-5 Monday to Friday", "hours.txt")

    result = await responder.respond("acme", "what are your hours")

    assert result.context_used is True
    assert result.sources[0].file_name == "hours.txt"
    assert result.sources[0].relevance_score > 0
    assert "[Source 1 - hours.txt]" in llm.last_system_prompt
    assert "9-5" in llm.last_system_prompt


@pytest.mark.asyncio
async def test_no_owner_skips_retrieval(responder, store, llm):
    store.failures["search_records"] = AssertionError("must not search")

    result = await responder.respond(None, "hello")

    assert result.context_used is False
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_website_is_cited(responder, store, llm):
    store.set_company_website("acme", "https://acme.example")

    await responder.respond("acme", "who are you")

    assert "Company Website: https://acme.example" in llm.last_system_prompt


@pytest.mark.asyncio
async def test_website_lookup_failure_is_ignored(responder, store, llm):
    store.failures["get_company_website"] = RuntimeError("db down")

    result = await responder.respond("acme", "who are you")

    assert result.website_url is None
    assert "Company Website" not in llm.last_system_prompt


@pytest.mark.asyncio
async def test_search_failure_falls_back_without_context(responder, store, llm):
    _store_chunk(store, "acme", "r1", "Our hours are 9-5")
    store.failures["search_records"] = RuntimeError("vector store down")

    result = await responder.respond("acme", "what are your hours")

    assert result.context_used is False
    assert result.fallback_reason == FALLBACK_REASON
    assert result.text == "Happy to help!"


@pytest.mark.asyncio
async def test_completion_failure_retries_once(responder, store, llm):
    _store_chunk(store, "acme", "r1", "Our hours are 9-5")
    llm.fail_on = {1}

    result = await responder.respond("acme", "what are your hours")

    assert len(llm.calls) == 2
    assert result.context_used is False
    assert "Relevant information" not in llm.last_system_prompt


@pytest.mark.asyncio
async def test_both_attempts_failing_raises(responder, llm):
    llm.fail_on = {1, 2}

    with pytest.raises(ResponderError):
        await responder.respond("acme", "hello")


@pytest.mark.asyncio
async def test_timeout_counts_as_failure(store, llm):
    async def slow_embed(text):
        await asyncio.sleep(1)
        return embed_words(text)

    responder = Responder(store=store, settings_db=store, embed=slow_embed, llm_factory=lambda: llm)
    result = await responder.respond("acme", "hello", timeout=0.01)

    assert result.fallback_reason == FALLBACK_REASON


@pytest.mark.asyncio
async def test_same_query_same_ranking(responder, store):
    _store_chunk(store, "acme", "r1", "shipping takes five days")
    _store_chunk(store, "acme", "r2", "returns accepted within thirty days")
    _store_chunk(store, "acme", "r3", "shipping is free over fifty dollars")
    _store_chunk(store, "acme", "r4", "we are closed on holidays")

    first = await responder.retrieve("acme", "how long does shipping take")
    second = await responder.retrieve("acme", "how long does shipping take")

    assert [c.id for c in first] == [c.id for c in second]
    assert len(first) == 3
    assert first[0].score >= first[1].score >= first[2].score


@pytest.mark.asyncio
async def test_retrieval_is_scoped_to_owner(responder, store):
    _store_chunk(store, "globex", "g1", "globex hours are 24/7")

    assert await responder.retrieve("acme", "hours") == []


@pytest.mark.asyncio
async def test_history_is_sent_before_query(responder, llm):
    history = [
        _message(MessageOrigin.USER, "hi", 1),
        _message(MessageOrigin.AI, "hello!", 2),
        _message(MessageOrigin.OWNER, "this is Sam", 3),
    ]

    await responder.respond(None, "thanks", history)

    sent = llm.calls[-1]
    assert isinstance(sent[0], SystemMessage)
    assert [type(m) for m in sent[1:]] == [HumanMessage, AIMessage, AIMessage, HumanMessage]
    assert sent[-1].content == "thanks"


def test_history_keeps_last_turns():
    history = [_message(MessageOrigin.USER, f"m{i}", i) for i in range(15)]

    messages = history_to_messages(history, 10)

    assert len(messages) == 10
    assert messages[0].content == "m5"


def test_build_system_prompt_numbers_sources():
    chunks = [
        RetrievedChunk(text="A", score=0.9, file_name="a.txt"),
        RetrievedChunk(text="B", score=0.8, file_name="b.pdf"),
    ]

    prompt = build_system_prompt(chunks)

    assert "[Source 1 - a.txt]:\nA" in prompt
    assert "[Source 2 - b.pdf]:\nB" in prompt


@pytest.mark.asyncio
async def test_slow_website_lookup_is_bounded_by_timeout(store, llm):
    class SlowSettings:
        def get_company_website(self, owner_id):
            time.sleep(0.3)
            return "https://acme.example"

    responder = Responder(
        store=store, settings_db=SlowSettings(), embed=fake_embed, llm_factory=lambda: llm
    )
    result = await responder.respond("acme", "who are you", timeout=0.05)

    assert result.website_url is None
    assert result.text == "Happy to help!"
    assert "Company Website" not in llm.last_system_prompt
