"""Database operations for user conversations (chats + chat_messages)."""

from datetime import datetime, timezone
from typing import Any

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

CHATS_TABLE = "chats"
MESSAGES_TABLE = "chat_messages"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_chat(user_id: str) -> dict[str, Any] | None:
    """
    Fetch the chat row for a user (without messages).

    Args:
        user_id: Opaque user identifier

    Returns:
        Chat row as dict, or None if the user has never been seen
    """
    supabase = get_supabase()

    try:
        response = supabase.table(CHATS_TABLE).select("*").eq("user_id", user_id).execute()
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(f"Failed to fetch chat for {user_id}: {e}")
        raise


def ensure_chat(user_id: str) -> None:
    """Create the chat row on first contact; existing rows are left untouched."""
    supabase = get_supabase()

    try:
        (
            supabase.table(CHATS_TABLE)
            .upsert({"user_id": user_id}, on_conflict="user_id", ignore_duplicates=True)
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to ensure chat for {user_id}: {e}")
        raise


def update_chat(user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    """
    Upsert denormalised chat fields (owner_id, contact details, last_seen).

    Only the given columns are written; absent columns keep their value.

    Returns:
        Updated chat row
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table(CHATS_TABLE)
            .upsert({"user_id": user_id, **fields}, on_conflict="user_id")
            .execute()
        )

        if not response.data:
            raise ValueError(f"No data returned from update_chat for {user_id}")

        return response.data[0]

    except Exception as e:
        logger.error(f"Failed to update chat for {user_id}: {e}")
        raise


def insert_message(user_id: str, message: dict[str, Any]) -> dict[str, Any]:
    """
    Append one message row to a user's conversation.

    Args:
        user_id: Opaque user identifier
        message: Row fields (origin, text, ts, seq, owner_id, context_used,
            sources, error)

    Returns:
        Inserted row
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table(MESSAGES_TABLE).insert({"user_id": user_id, **message}).execute()
        )

        if not response.data:
            raise ValueError("No data returned from insert_message")

        return response.data[0]

    except Exception as e:
        logger.error(f"Failed to append message for {user_id}: {e}")
        raise


def get_last_message(user_id: str) -> dict[str, Any] | None:
    """Latest message row (highest seq) for a user, if any."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table(MESSAGES_TABLE)
            .select("seq, ts")
            .eq("user_id", user_id)
            .order("seq", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(f"Failed to fetch last message for {user_id}: {e}")
        raise


def list_messages(user_id: str, limit: int | None = None) -> list[dict[str, Any]]:
    """
    List a user's messages in append order.

    Args:
        user_id: Opaque user identifier
        limit: When set, only the most recent ``limit`` messages

    Returns:
        Message rows ordered by seq ascending
    """
    supabase = get_supabase()

    try:
        query = supabase.table(MESSAGES_TABLE).select("*").eq("user_id", user_id)
        if limit is not None:
            response = query.order("seq", desc=True).limit(limit).execute()
            return list(reversed(response.data or []))

        response = query.order("seq").execute()
        return response.data or []

    except Exception as e:
        logger.error(f"Failed to list messages for {user_id}: {e}")
        raise


def list_chats(limit: int = 200) -> list[dict[str, Any]]:
    """
    List the newest chats with their messages attached under ``conversation``.

    Args:
        limit: Maximum number of chats

    Returns:
        Chat rows ordered by created_at descending
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table(CHATS_TABLE)
            .select("*")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        chats = response.data or []
        if not chats:
            return []

        user_ids = [chat["user_id"] for chat in chats]
        messages_response = (
            supabase.table(MESSAGES_TABLE)
            .select("*")
            .in_("user_id", user_ids)
            .order("seq")
            .execute()
        )

        by_user: dict[str, list[dict[str, Any]]] = {uid: [] for uid in user_ids}
        for row in messages_response.data or []:
            by_user.setdefault(row["user_id"], []).append(row)

        return [{**chat, "conversation": by_user.get(chat["user_id"], [])} for chat in chats]

    except Exception as e:
        logger.error(f"Failed to list chats: {e}")
        raise


def mark_last_seen(user_id: str, fields: dict[str, Any] | None = None) -> dict[str, Any]:
    """Stamp last_seen (plus any cached contact fields) when a user disconnects."""
    return update_chat(user_id, {**(fields or {}), "last_seen": _now_iso()})
