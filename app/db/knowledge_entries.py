"""Database operations for discrete knowledge entries (Q&A and products/services)."""

from datetime import datetime, timezone
from typing import Any

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

# entry kind -> table
ENTRY_TABLES = {
    "qna": "knowledge_qna",
    "product": "knowledge_products",
}


def _table(kind: str) -> str:
    try:
        return ENTRY_TABLES[kind]
    except KeyError:
        raise ValueError(f"Unknown knowledge entry kind: {kind}") from None


def save_entry(
    kind: str,
    owner_id: str,
    fields: dict[str, Any],
    entry_id: str | None = None,
) -> dict[str, Any]:
    """
    Create a new entry, or update an existing one owned by ``owner_id``.

    Args:
        kind: "qna" or "product"
        owner_id: Owner identifier
        fields: Entry columns (question/answer or name/description)
        entry_id: Existing entry id to update; None creates a new entry

    Returns:
        Saved row

    Raises:
        ValueError: If the entry to update does not exist for this owner
    """
    supabase = get_supabase()
    table = _table(kind)
    now = datetime.now(timezone.utc).isoformat()

    try:
        if entry_id:
            response = (
                supabase.table(table)
                .update({**fields, "updated_at": now})
                .eq("id", entry_id)
                .eq("owner_id", owner_id)
                .execute()
            )
            if not response.data:
                raise ValueError(f"{kind} entry {entry_id} not found for owner {owner_id}")
        else:
            response = (
                supabase.table(table)
                .insert({**fields, "owner_id": owner_id, "created_at": now, "updated_at": now})
                .execute()
            )
            if not response.data:
                raise ValueError(f"No data returned from save_entry ({kind})")

        row = response.data[0]
        logger.info(f"Saved {kind} {row['id']} for owner {owner_id}")
        return row

    except ValueError:
        raise
    except Exception as e:
        logger.error(f"Failed to save {kind} for owner {owner_id}: {e}")
        raise


def list_entries(kind: str, owner_id: str) -> list[dict[str, Any]]:
    """List an owner's entries, newest first."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table(_table(kind))
            .select("*")
            .eq("owner_id", owner_id)
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(f"Failed to list {kind} entries for owner {owner_id}: {e}")
        raise


def delete_entry(kind: str, owner_id: str, entry_id: str) -> None:
    """Delete an entry; deleting a missing entry is not an error."""
    supabase = get_supabase()

    try:
        (
            supabase.table(_table(kind))
            .delete()
            .eq("id", entry_id)
            .eq("owner_id", owner_id)
            .execute()
        )
        logger.info(f"Deleted {kind} {entry_id} for owner {owner_id}")

    except Exception as e:
        logger.error(f"Failed to delete {kind} {entry_id}: {e}")
        raise
