"""
AI takeover state machine.

Decides, per user, whether the AI responder or the human owner answers.

    AI_ACTIVE  --(owner-authored message)-->  HUMAN_ACTIVE
    HUMAN_ACTIVE  --(explicit reset)-->  AI_ACTIVE

AI_ACTIVE is the state of every user without a record. There is no
timeout back to the AI: only a reset hands the conversation back. The
state is read from the durable record on every inbound user message, so
an owner message recorded between two user messages is seen by the
second one.
"""

import asyncio
import logging
from enum import Enum
from types import ModuleType
from typing import Any

from app.core.logging import get_logger, log_with_context
from app.core.schemas_chat import AiStateInfo
from app.db import ai_state as ai_state_db

logger = get_logger(__name__)


class TakeoverState(str, Enum):
    AI_ACTIVE = "ai_active"
    HUMAN_ACTIVE = "human_active"


STATUS_TEXT = {
    TakeoverState.AI_ACTIVE: "AI is responding",
    TakeoverState.HUMAN_ACTIVE: "Admin has taken over",
}


class AiTakeover:
    """Per-user AI/human authority backed by the ``ai_chat_state`` table."""

    def __init__(self, db: ModuleType | Any = ai_state_db):
        self._db = db

    async def state(self, user_id: str) -> TakeoverState:
        """
        Current state for a user.

        A missing record, or a failed read, means AI_ACTIVE: the user gets an
        answer rather than silence.
        """
        try:
            record = await asyncio.to_thread(self._db.get_ai_state, user_id)
        except Exception as e:
            logger.warning(
                f"Could not read AI state for {user_id}, defaulting to AI: {e}",
                extra={"user_id": user_id},
            )
            return TakeoverState.AI_ACTIVE

        if not record or record.get("ai_active") is not False:
            return TakeoverState.AI_ACTIVE
        return TakeoverState.HUMAN_ACTIVE

    async def is_ai_authoritative(self, user_id: str) -> bool:
        return await self.state(user_id) is TakeoverState.AI_ACTIVE

    async def record_owner_message(self, user_id: str) -> None:
        """Owner spoke: hand the conversation to the human. Idempotent."""
        await asyncio.to_thread(self._db.set_ai_state, user_id, False)
        log_with_context(
            logger,
            logging.INFO,
            f"Admin took over chat for user {user_id}",
            user_id=user_id,
            state=TakeoverState.HUMAN_ACTIVE.value,
        )

    async def reset(self, user_id: str) -> None:
        """Give the conversation back to the AI."""
        await asyncio.to_thread(self._db.set_ai_state, user_id, True)
        log_with_context(
            logger,
            logging.INFO,
            f"AI reactivated for user {user_id}",
            user_id=user_id,
            state=TakeoverState.AI_ACTIVE.value,
        )

    async def describe(self, user_id: str) -> AiStateInfo:
        current = await self.state(user_id)
        return AiStateInfo(
            user_id=user_id,
            ai_active=current is TakeoverState.AI_ACTIVE,
            status=STATUS_TEXT[current],
        )
