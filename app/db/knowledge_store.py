"""Owner-scoped knowledge store on Supabase pgvector.

Each owner gets one namespace (``owner_<ownerId>_knowledge``). A namespace
is a row in ``knowledge_namespaces``; its records live in
``knowledge_records`` tagged with the namespace name, and every similarity
search is filtered to a single namespace by the ``match_knowledge_records``
RPC (cosine similarity, descending, ties by insertion order).

A namespace that does not exist is an empty namespace: search returns no
rows, stats report zero and delete is a no-op.
"""

from datetime import datetime, timezone
from typing import Any

from app.core.embeddings import embedding_dimension
from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

NAMESPACES_TABLE = "knowledge_namespaces"
RECORDS_TABLE = "knowledge_records"
MATCH_RPC = "match_knowledge_records"

SIMILARITY_METRIC = "cosine"


def namespace_name(owner_id: str) -> str:
    """Deterministic, collision-free namespace name for an owner."""
    if not owner_id:
        raise ValueError("owner_id is required for a knowledge namespace")
    return f"owner_{owner_id}_knowledge"


def namespace_exists(owner_id: str) -> bool:
    supabase = get_supabase()
    name = namespace_name(owner_id)

    try:
        response = (
            supabase.table(NAMESPACES_TABLE).select("name").eq("name", name).execute()
        )
        return bool(response.data)

    except Exception as e:
        logger.error(f"Failed to check namespace {name}: {e}")
        raise


def ensure_namespace(owner_id: str) -> str:
    """
    Create the owner's namespace if absent.

    Returns:
        Namespace name
    """
    supabase = get_supabase()
    name = namespace_name(owner_id)

    try:
        (
            supabase.table(NAMESPACES_TABLE)
            .upsert(
                {
                    "name": name,
                    "owner_id": owner_id,
                    "dimension": embedding_dimension(),
                    "metric": SIMILARITY_METRIC,
                },
                on_conflict="name",
                ignore_duplicates=True,
            )
            .execute()
        )
        logger.debug(f"Namespace {name} ready")
        return name

    except Exception as e:
        logger.error(f"Failed to ensure namespace {name}: {e}")
        raise


def upsert_records(owner_id: str, records: list[dict[str, Any]]) -> int:
    """
    Insert or replace knowledge records in the owner's namespace.

    Args:
        owner_id: Owner identifier
        records: Dicts with id, embedding, text and optional source_type,
            file_name, chunk_index, total_chunks, metadata

    Returns:
        Number of records written

    Raises:
        ValueError: If a record is missing an id or has a wrong-sized vector
    """
    if not records:
        return 0

    dimension = embedding_dimension()
    name = namespace_name(owner_id)
    now = datetime.now(timezone.utc).isoformat()

    rows = []
    for record in records:
        if not record.get("id"):
            raise ValueError("Knowledge record id is required")
        embedding = record.get("embedding") or []
        if len(embedding) != dimension:
            raise ValueError(
                f"Knowledge record {record['id']} has dimension {len(embedding)}, "
                f"expected {dimension}"
            )
        rows.append(
            {
                "id": str(record["id"]),
                "namespace": name,
                "owner_id": owner_id,
                "embedding": embedding,
                "text": record.get("text", ""),
                "source_type": record.get("source_type"),
                "file_name": record.get("file_name"),
                "chunk_index": record.get("chunk_index"),
                "total_chunks": record.get("total_chunks"),
                "metadata": record.get("metadata") or {},
                "created_at": record.get("created_at") or now,
            }
        )

    supabase = get_supabase()

    try:
        supabase.table(RECORDS_TABLE).upsert(rows, on_conflict="id").execute()
        logger.info(f"Upserted {len(rows)} records into {name}")
        return len(rows)

    except Exception as e:
        logger.error(f"Failed to upsert records into {name}: {e}")
        raise


def search_records(owner_id: str, query_embedding: list[float], k: int = 3) -> list[dict[str, Any]]:
    """
    k-nearest-neighbour search inside one owner's namespace.

    Returns:
        Rows with id, text, similarity, source_type, file_name, chunk_index,
        metadata; best match first. Empty when the namespace does not exist.
    """
    if not namespace_exists(owner_id):
        logger.info(f"No knowledge base found for owner {owner_id}")
        return []

    supabase = get_supabase()
    name = namespace_name(owner_id)

    try:
        response = supabase.rpc(
            MATCH_RPC,
            {
                "query_embedding": query_embedding,
                "match_count": k,
                "filter_namespace": name,
            },
        ).execute()

        return response.data or []

    except Exception as e:
        logger.error(f"Failed to search {name}: {e}")
        raise


def delete_records(owner_id: str, record_ids: list[str]) -> None:
    """Delete specific records; missing ids or namespaces are not errors."""
    if not record_ids:
        return

    supabase = get_supabase()
    name = namespace_name(owner_id)

    try:
        (
            supabase.table(RECORDS_TABLE)
            .delete()
            .eq("namespace", name)
            .in_("id", [str(rid) for rid in record_ids])
            .execute()
        )
        logger.info(f"Deleted {len(record_ids)} records from {name}")

    except Exception as e:
        logger.error(f"Failed to delete records from {name}: {e}")
        raise


def delete_namespace(owner_id: str) -> str:
    """
    Drop every record and the namespace itself. No-op if it never existed.

    Returns:
        Namespace name
    """
    supabase = get_supabase()
    name = namespace_name(owner_id)

    try:
        supabase.table(RECORDS_TABLE).delete().eq("namespace", name).execute()
        supabase.table(NAMESPACES_TABLE).delete().eq("name", name).execute()
        logger.info(f"Deleted namespace {name}")
        return name

    except Exception as e:
        logger.error(f"Failed to delete namespace {name}: {e}")
        raise


def count_records(owner_id: str) -> int | None:
    """
    Count records in the owner's namespace.

    Returns:
        Record count, or None when the namespace does not exist
    """
    if not namespace_exists(owner_id):
        return None

    supabase = get_supabase()
    name = namespace_name(owner_id)

    try:
        response = (
            supabase.table(RECORDS_TABLE)
            .select("id", count="exact")
            .eq("namespace", name)
            .execute()
        )
        return response.count or 0

    except Exception as e:
        logger.error(f"Failed to count records in {name}: {e}")
        raise
