"""Database operations for per-owner settings (company website, chat UI)."""

from datetime import datetime, timezone
from typing import Any

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

KNOWLEDGEBASE_TABLE = "knowledgebase"
CHATUI_TABLE = "chatui"


def get_company_website(owner_id: str) -> str | None:
    """Owner's public website URL, or None when not configured."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table(KNOWLEDGEBASE_TABLE)
            .select("company_website")
            .eq("owner_id", owner_id)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0].get("company_website") or None

    except Exception as e:
        logger.error(f"Failed to fetch company website for {owner_id}: {e}")
        raise


def set_company_website(owner_id: str, website_url: str | None) -> None:
    supabase = get_supabase()

    try:
        (
            supabase.table(KNOWLEDGEBASE_TABLE)
            .upsert(
                {
                    "owner_id": owner_id,
                    "company_website": website_url,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                },
                on_conflict="owner_id",
            )
            .execute()
        )
        logger.info(f"Saved company website for owner {owner_id}")

    except Exception as e:
        logger.error(f"Failed to save company website for {owner_id}: {e}")
        raise


def get_chatui_settings(owner_id: str) -> dict[str, Any] | None:
    """Chat widget settings row for an owner, if any."""
    supabase = get_supabase()

    try:
        response = supabase.table(CHATUI_TABLE).select("*").eq("owner_id", owner_id).execute()
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(f"Failed to fetch chat UI settings for {owner_id}: {e}")
        raise
