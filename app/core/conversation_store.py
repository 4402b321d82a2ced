"""Append-only, per-user ordered conversation log.

PostgREST offers no atomic "update document and push to array", so appends
for one user are serialised through an in-process lock. The lock also hands
out the per-user ``seq`` that defines message order; ``ts`` never goes
backwards for a user either. Appends for different users never wait on each
other.
"""

import asyncio
import time
from types import ModuleType
from typing import Any

from app.core.logging import get_logger
from app.core.schemas_chat import (
    ChatMessage,
    ContactMetadata,
    Conversation,
    MessageOrigin,
    SourceRef,
)
from app.db import conversations as conversations_db

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _row_to_message(row: dict[str, Any]) -> ChatMessage:
    return ChatMessage(
        origin=row["origin"],
        text=row.get("text") or "",
        ts=row.get("ts") or 0,
        seq=row.get("seq"),
        user_id=row.get("user_id"),
        owner_id=row.get("owner_id"),
        context_used=row.get("context_used"),
        sources=row.get("sources"),
        error=row.get("error"),
    )


def _row_to_conversation(row: dict[str, Any]) -> Conversation:
    return Conversation(
        user_id=row["user_id"],
        owner_id=row.get("owner_id"),
        username=row.get("username"),
        useremail=row.get("useremail"),
        userphone=row.get("userphone"),
        created_at=row.get("created_at"),
        last_seen=row.get("last_seen"),
        conversation=[_row_to_message(m) for m in row.get("conversation", [])],
    )


class ConversationStore:
    """Durable conversation log keyed by user id."""

    def __init__(self, db: ModuleType | Any = conversations_db):
        self._db = db
        self._locks: dict[str, asyncio.Lock] = {}
        # user_id -> appends holding or waiting for the lock
        self._pending: dict[str, int] = {}
        # user_id -> (last seq, last ts) handed out by this process
        self._cursor: dict[str, tuple[int, int]] = {}

    async def _next_position(self, user_id: str) -> tuple[int, int]:
        """Next (seq, ts) for a user. Caller must hold the user's lock."""
        if user_id not in self._cursor:
            last = await asyncio.to_thread(self._db.get_last_message, user_id)
            self._cursor[user_id] = (
                (last.get("seq") or 0, last.get("ts") or 0) if last else (0, 0)
            )

        last_seq, last_ts = self._cursor[user_id]
        position = (last_seq + 1, max(_now_ms(), last_ts))
        return position

    def _release(self, user_id: str) -> None:
        remaining = self._pending[user_id] - 1
        if remaining:
            self._pending[user_id] = remaining
            return
        del self._pending[user_id]
        self._locks.pop(user_id, None)
        self._cursor.pop(user_id, None)

    async def append(
        self,
        user_id: str,
        origin: MessageOrigin,
        text: str,
        *,
        owner_id: str | None = None,
        context_used: bool | None = None,
        sources: list[SourceRef] | None = None,
        error: bool | None = None,
    ) -> ChatMessage:
        """
        Durably append one message to a user's conversation.

        The chat row is created on first contact. ``owner_id`` is stored on
        the message only (attribution); use :meth:`assign_owner` to change
        the conversation's owner.

        Returns:
            The appended message with its seq and ts

        Raises:
            Exception: If the durable write fails; nothing is appended then
        """
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._pending[user_id] = self._pending.get(user_id, 0) + 1
        try:
            async with lock:
                seq, ts = await self._next_position(user_id)
                message = ChatMessage(
                    origin=origin,
                    text=text,
                    ts=ts,
                    seq=seq,
                    user_id=user_id,
                    owner_id=owner_id,
                    context_used=context_used,
                    sources=sources,
                    error=error,
                )
                row = {
                    "origin": message.origin.value,
                    "text": message.text,
                    "ts": message.ts,
                    "seq": message.seq,
                    "owner_id": message.owner_id,
                    "context_used": message.context_used,
                    "sources": (
                        [s.model_dump(by_alias=True) for s in message.sources]
                        if message.sources is not None
                        else None
                    ),
                    "error": message.error,
                }

                await asyncio.to_thread(self._db.ensure_chat, user_id)
                await asyncio.to_thread(self._db.insert_message, user_id, row)
                self._cursor[user_id] = (seq, ts)
        finally:
            self._release(user_id)

        logger.debug(
            f"Appended {origin.value} message #{seq} for {user_id}",
            extra={"user_id": user_id},
        )
        return message

    async def stored_owner(self, user_id: str) -> str | None:
        chat = await asyncio.to_thread(self._db.get_chat, user_id)
        return chat.get("owner_id") if chat else None

    async def assign_owner(self, user_id: str, owner_id: str) -> None:
        """Persist the user's owner (explicit or first-resolution assignment)."""
        await asyncio.to_thread(self._db.update_chat, user_id, {"owner_id": owner_id})
        logger.info(f"Assigned user {user_id} to owner {owner_id}", extra={"user_id": user_id})

    async def contact_metadata(self, user_id: str) -> ContactMetadata | None:
        chat = await asyncio.to_thread(self._db.get_chat, user_id)
        if not chat:
            return None
        return ContactMetadata(
            username=chat.get("username"),
            useremail=chat.get("useremail"),
            userphone=chat.get("userphone"),
            owner_id=chat.get("owner_id"),
        )

    async def update_metadata(self, user_id: str, metadata: ContactMetadata) -> None:
        """Store contact fields; owner_id is written only when provided."""
        fields: dict[str, Any] = {
            "username": metadata.username,
            "useremail": metadata.useremail,
            "userphone": metadata.userphone,
        }
        if metadata.owner_id:
            fields["owner_id"] = metadata.owner_id
        await asyncio.to_thread(self._db.update_chat, user_id, fields)

    async def mark_last_seen(self, user_id: str, metadata: ContactMetadata | None = None) -> None:
        fields: dict[str, Any] = {}
        if metadata is not None and metadata.has_contact():
            fields.update(
                username=metadata.username,
                useremail=metadata.useremail,
                userphone=metadata.userphone,
            )
        await asyncio.to_thread(self._db.mark_last_seen, user_id, fields)

    async def recent(self, user_id: str, limit: int) -> list[ChatMessage]:
        """Last ``limit`` messages in append order."""
        rows = await asyncio.to_thread(self._db.list_messages, user_id, limit)
        return [_row_to_message(row) for row in rows]

    async def get(self, user_id: str) -> Conversation | None:
        chat = await asyncio.to_thread(self._db.get_chat, user_id)
        if not chat:
            return None
        rows = await asyncio.to_thread(self._db.list_messages, user_id)
        return _row_to_conversation({**chat, "conversation": rows})

    async def list_conversations(self, limit: int) -> list[Conversation]:
        rows = await asyncio.to_thread(self._db.list_chats, limit)
        return [_row_to_conversation(row) for row in rows]
