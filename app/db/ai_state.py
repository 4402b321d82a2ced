"""Database operations for per-user AI takeover state."""

from datetime import datetime, timezone
from typing import Any

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

AI_STATE_TABLE = "ai_chat_state"


def get_ai_state(user_id: str) -> dict[str, Any] | None:
    """
    Fetch the AI state row for a user.

    Returns:
        Row with user_id, ai_active, last_updated; None when no record exists
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table(AI_STATE_TABLE).select("*").eq("user_id", user_id).execute()
        )
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(f"Failed to fetch AI state for {user_id}: {e}")
        raise


def set_ai_state(user_id: str, ai_active: bool) -> dict[str, Any]:
    """
    Upsert the AI state row (one row per user, last write wins).

    Returns:
        Upserted row
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table(AI_STATE_TABLE)
            .upsert(
                {
                    "user_id": user_id,
                    "ai_active": ai_active,
                    "last_updated": datetime.now(timezone.utc).isoformat(),
                },
                on_conflict="user_id",
            )
            .execute()
        )

        if not response.data:
            raise ValueError(f"No data returned from set_ai_state for {user_id}")

        return response.data[0]

    except Exception as e:
        logger.error(f"Failed to set AI state for {user_id}: {e}")
        raise
