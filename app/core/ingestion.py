"""Resource ingestion: text/JSON/PDF -> overlapping chunks -> owner's knowledge namespace.

Re-ingesting a source without deleting it first stores its chunks again;
there is no deduplication. Replace a source by clearing the namespace and
ingesting again.
"""

import asyncio
import base64
import binascii
import json
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from pathlib import Path
from types import ModuleType
from typing import Any

from app.core.chunking import chunk_text
from app.core.config import get_settings
from app.core.embeddings import embed_texts_async
from app.core.file_text import decode_text_bytes, extract_pdf_text
from app.core.logging import get_logger
from app.core.schemas_knowledge import IngestResult, NamespaceStats
from app.db import knowledge_store

logger = get_logger(__name__)

SUPPORTED_FILE_TYPES = ("pdf", "txt", "json")


class IngestionPipeline:
    """Chunks, embeds and stores owner resources."""

    def __init__(
        self,
        store: ModuleType | Any = knowledge_store,
        embed: Callable[[list[str]], Awaitable[list[list[float]]]] = embed_texts_async,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ):
        settings = get_settings()
        self._store = store
        self._embed = embed
        self.chunk_size = chunk_size or settings.CHUNK_SIZE
        self.chunk_overlap = settings.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

    async def ingest(
        self, owner_id: str, raw_text: str, metadata: dict[str, Any] | None = None
    ) -> IngestResult:
        """
        Store ``raw_text`` as chunk records in the owner's namespace.

        Args:
            owner_id: Owner identifier
            raw_text: Text to chunk and embed
            metadata: Caller metadata copied onto every record (sourceType and
                fileName are lifted into their own columns)

        Returns:
            IngestResult with the number of chunks stored and the namespace

        Raises:
            ValueError: If owner_id or text is empty (nothing is written)
        """
        if not owner_id:
            raise ValueError("ownerId is required")
        if not raw_text or not raw_text.strip():
            raise ValueError("No text content to ingest")

        metadata = dict(metadata or {})
        chunks = chunk_text(raw_text, max_chars=self.chunk_size, overlap=self.chunk_overlap)

        logger.info(
            f"Split text into {len(chunks)} chunks for owner {owner_id}",
            extra={"owner_id": owner_id},
        )

        vectors = await self._embed([chunk["content"] for chunk in chunks])
        if len(vectors) != len(chunks):
            raise ValueError(
                f"Embedding count ({len(vectors)}) does not match chunk count ({len(chunks)})"
            )

        # Namespace only exists once there is something to put in it
        collection_name = await asyncio.to_thread(self._store.ensure_namespace, owner_id)

        timestamp = datetime.now(timezone.utc).isoformat()
        records = [
            {
                "id": str(uuid.uuid4()),
                "embedding": vector,
                "text": chunk["content"],
                "source_type": metadata.get("sourceType"),
                "file_name": metadata.get("fileName"),
                "chunk_index": chunk["chunk_index"],
                "total_chunks": chunk["total_chunks"],
                "metadata": metadata,
                "created_at": timestamp,
            }
            for chunk, vector in zip(chunks, vectors, strict=True)
        ]

        stored = await asyncio.to_thread(self._store.upsert_records, owner_id, records)
        logger.info(
            f"Stored {stored} chunks for owner {owner_id} in {collection_name}",
            extra={"owner_id": owner_id},
        )

        return IngestResult(
            owner_id=owner_id,
            collection_name=collection_name,
            chunks_stored=stored,
            metadata=metadata,
        )

    # ------------------------------------------------------------------
    # Source adapters
    # ------------------------------------------------------------------

    async def ingest_txt(
        self,
        owner_id: str,
        text: str,
        file_name: str = "inline_text",
        metadata: dict[str, Any] | None = None,
    ) -> IngestResult:
        if not text or not text.strip():
            raise ValueError("Text file is empty")
        return await self.ingest(
            owner_id,
            text,
            {**(metadata or {}), "sourceType": "txt", "fileName": file_name},
        )

    async def ingest_json(
        self,
        owner_id: str,
        data: Any,
        file_name: str = "inline_json",
        metadata: dict[str, Any] | None = None,
    ) -> IngestResult:
        """Pretty-print a JSON document and ingest it; a string is parsed first."""
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON input: {e}") from e
        if not isinstance(data, (dict, list)):
            raise ValueError("Invalid JSON input")

        extra: dict[str, Any] = {"sourceType": "json", "fileName": file_name}
        if isinstance(data, dict):
            extra["jsonStructure"] = list(data.keys())

        text = json.dumps(data, indent=2, ensure_ascii=False)
        return await self.ingest(owner_id, text, {**(metadata or {}), **extra})

    async def ingest_pdf(
        self,
        owner_id: str,
        pdf_bytes: bytes,
        file_name: str = "document.pdf",
        metadata: dict[str, Any] | None = None,
    ) -> IngestResult:
        text = await asyncio.to_thread(extract_pdf_text, pdf_bytes, file_name)
        return await self.ingest(
            owner_id,
            text,
            {**(metadata or {}), "sourceType": "pdf", "fileName": file_name},
        )

    async def ingest_path(
        self,
        owner_id: str,
        file_type: str,
        path: str,
        metadata: dict[str, Any] | None = None,
    ) -> IngestResult:
        """Ingest a file already present on the server's filesystem."""
        source = Path(path)
        if not source.is_file():
            raise ValueError(f"File not found: {path}")

        raw = await asyncio.to_thread(source.read_bytes)
        metadata = {**(metadata or {}), "sourcePath": str(source)}

        if file_type == "pdf":
            return await self.ingest_pdf(owner_id, raw, source.name, metadata)
        if file_type == "txt":
            return await self.ingest_txt(owner_id, decode_text_bytes(raw).text, source.name, metadata)
        if file_type == "json":
            return await self.ingest_json(owner_id, decode_text_bytes(raw).text, source.name, metadata)
        raise ValueError(f"Unsupported file type: {file_type}")

    async def ingest_file_content(
        self,
        owner_id: str,
        file_type: str,
        content: Any,
        metadata: dict[str, Any] | None = None,
    ) -> IngestResult:
        """
        Ingest uploaded content.

        ``content`` is plain text for txt, base64 for pdf, and an object or
        JSON string for json. ``metadata.fileName`` names the source.
        """
        if file_type not in SUPPORTED_FILE_TYPES:
            raise ValueError(f"Unsupported file type: {file_type}")

        metadata = dict(metadata or {})
        file_name = metadata.pop("fileName", None)

        if file_type == "txt":
            if not isinstance(content, str):
                raise ValueError("txt content must be a string")
            return await self.ingest_txt(owner_id, content, file_name or "inline_text", metadata)

        if file_type == "json":
            return await self.ingest_json(owner_id, content, file_name or "inline_json", metadata)

        # pdf
        if not isinstance(content, str):
            raise ValueError("pdf content must be base64-encoded")
        try:
            pdf_bytes = base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"pdf content is not valid base64: {e}") from e
        if len(pdf_bytes) > get_settings().MAX_UPLOAD_BYTES:
            raise ValueError("pdf content exceeds the upload size limit")
        return await self.ingest_pdf(owner_id, pdf_bytes, file_name or "document.pdf", metadata)

    async def clear(self, owner_id: str) -> dict[str, Any]:
        """Delete the owner's whole namespace (no-op if it never existed)."""
        name = await asyncio.to_thread(self._store.delete_namespace, owner_id)
        return {"success": True, "collectionName": name}

    async def stats(self, owner_id: str) -> NamespaceStats:
        """Record counts for the owner's namespace; zero when it does not exist."""
        count = await asyncio.to_thread(self._store.count_records, owner_id)
        return NamespaceStats(
            owner_id=owner_id,
            collection_name=knowledge_store.namespace_name(owner_id),
            points_count=count or 0,
            vectors_count=count or 0,
            message="No resources stored yet" if count is None else None,
        )
