"""Q&A and product/service knowledge entries.

Each entry has a primary row (``knowledge_qna`` / ``knowledge_products``)
and a secondary vector record (``qna_<id>`` / ``product_<id>``) in the
owner's knowledge namespace so the responder can retrieve it.

The primary write must succeed or the operation fails. The secondary
write is attempted afterwards; its failure is logged and reported through
``indexed=False`` but the primary write stands.
"""

import asyncio
from collections.abc import Awaitable, Callable
from types import ModuleType
from typing import Any

from app.core.embeddings import embed_text_async
from app.core.logging import get_logger
from app.core.schemas_knowledge import KnowledgeEntryResult
from app.db import knowledge_entries as entries_db
from app.db import knowledge_store

logger = get_logger(__name__)


def qna_text(question: str, answer: str) -> str:
    return f"Question: {question}\nAnswer: {answer}"


def product_text(name: str, description: str) -> str:
    return f"Product/Service: {name}\nDescription: {description}"


def vector_id(kind: str, entry_id: str) -> str:
    return f"{kind}_{entry_id}"


class KnowledgeManager:
    """Owner-managed Q&A and product entries with best-effort vector indexing."""

    def __init__(
        self,
        entries: ModuleType | Any = entries_db,
        store: ModuleType | Any = knowledge_store,
        embed: Callable[[str], Awaitable[list[float]]] = embed_text_async,
    ):
        self._entries = entries
        self._store = store
        self._embed = embed

    async def _index(
        self, kind: str, owner_id: str, entry_id: str, text: str, payload: dict[str, Any]
    ) -> str | None:
        """Upsert the entry's vector record. Returns an error string instead of raising."""
        try:
            await asyncio.to_thread(self._store.ensure_namespace, owner_id)
            vector = await self._embed(text)
            record = {
                "id": vector_id(kind, entry_id),
                "embedding": vector,
                "text": text,
                "source_type": kind,
                "file_name": f"{kind}:{entry_id}",
                "metadata": {"type": kind, "id": entry_id, **payload},
            }
            await asyncio.to_thread(self._store.upsert_records, owner_id, [record])
            return None
        except Exception as e:
            logger.warning(
                f"Saved {kind} {entry_id} but could not index it: {e}",
                extra={"owner_id": owner_id},
            )
            return str(e)

    async def _save(
        self,
        kind: str,
        owner_id: str,
        fields: dict[str, Any],
        text: str,
        entry_id: str | None,
    ) -> KnowledgeEntryResult:
        row = await asyncio.to_thread(self._entries.save_entry, kind, owner_id, fields, entry_id)
        saved_id = str(row["id"])

        index_error = await self._index(kind, owner_id, saved_id, text, fields)
        return KnowledgeEntryResult(
            id=saved_id,
            indexed=index_error is None,
            index_error=index_error,
        )

    async def _delete(self, kind: str, owner_id: str, entry_id: str) -> KnowledgeEntryResult:
        await asyncio.to_thread(self._entries.delete_entry, kind, owner_id, entry_id)

        index_error = None
        try:
            await asyncio.to_thread(
                self._store.delete_records, owner_id, [vector_id(kind, entry_id)]
            )
        except Exception as e:
            logger.warning(
                f"Deleted {kind} {entry_id} but could not remove its vector: {e}",
                extra={"owner_id": owner_id},
            )
            index_error = str(e)

        return KnowledgeEntryResult(id=entry_id, indexed=index_error is None, index_error=index_error)

    async def save_qna(
        self, owner_id: str, question: str, answer: str, entry_id: str | None = None
    ) -> KnowledgeEntryResult:
        return await self._save(
            "qna",
            owner_id,
            {"question": question, "answer": answer},
            qna_text(question, answer),
            entry_id,
        )

    async def list_qna(self, owner_id: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._entries.list_entries, "qna", owner_id)

    async def delete_qna(self, owner_id: str, entry_id: str) -> KnowledgeEntryResult:
        return await self._delete("qna", owner_id, entry_id)

    async def save_product(
        self, owner_id: str, name: str, description: str, entry_id: str | None = None
    ) -> KnowledgeEntryResult:
        return await self._save(
            "product",
            owner_id,
            {"name": name, "description": description},
            product_text(name, description),
            entry_id,
        )

    async def list_products(self, owner_id: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._entries.list_entries, "product", owner_id)

    async def delete_product(self, owner_id: str, entry_id: str) -> KnowledgeEntryResult:
        return await self._delete("product", owner_id, entry_id)
