"""Pydantic schemas for knowledge ingestion, retrieval and management."""

from typing import Any, Literal

from pydantic import Field

from app.core.schemas_chat import CamelModel, SourceRef


class RetrievedChunk(CamelModel):
    """A knowledge record returned by similarity search."""

    id: str | None = None
    text: str
    score: float
    file_name: str | None = None
    source_type: str | None = None
    chunk_index: int | None = None

    def as_source(self) -> SourceRef:
        return SourceRef(
            file_name=self.file_name,
            source_type=self.source_type,
            relevance_score=self.score,
        )


class ResponderResult(CamelModel):
    """Outcome of one retrieval-augmented reply."""

    text: str
    context_used: bool
    sources: list[SourceRef] = Field(default_factory=list)
    website_url: str | None = None
    fallback_reason: str | None = None


class IngestResult(CamelModel):
    """Outcome of storing one resource in an owner's knowledge namespace."""

    success: bool = True
    owner_id: str
    collection_name: str
    chunks_stored: int
    metadata: dict[str, Any] = Field(default_factory=dict)


class NamespaceStats(CamelModel):
    """Record counts for an owner's knowledge namespace."""

    owner_id: str
    collection_name: str
    points_count: int
    vectors_count: int
    message: str | None = None


# ============================================================================
# Administrative request bodies
# ============================================================================


class UploadPdfRequest(CamelModel):
    owner_id: str = Field(..., min_length=1)
    pdf_path: str = Field(..., min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


class UploadTxtRequest(CamelModel):
    owner_id: str = Field(..., min_length=1)
    txt_path: str = Field(..., min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


class UploadJsonRequest(CamelModel):
    owner_id: str = Field(..., min_length=1)
    json_data: dict[str, Any] | list[Any] = Field(..., description="Inline JSON document")
    metadata: dict[str, Any] = Field(default_factory=dict)


class KnowledgeUploadRequest(CamelModel):
    """Inline resource upload: text for txt, base64 for pdf, object or string for json."""

    owner_id: str = Field(..., min_length=1)
    file_type: Literal["pdf", "txt", "json"]
    content: Any = Field(...)
    metadata: dict[str, Any] = Field(default_factory=dict)


class QnARequest(CamelModel):
    owner_id: str = Field(..., min_length=1)
    entry_id: str | None = Field(default=None, alias="_id")
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class ProductRequest(CamelModel):
    owner_id: str = Field(..., min_length=1)
    entry_id: str | None = Field(default=None, alias="_id")
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class WebsiteRequest(CamelModel):
    owner_id: str = Field(..., min_length=1)
    website_url: str | None = None


class KnowledgeEntryResult(CamelModel):
    """Outcome of a Q&A/product write: primary row plus best-effort vector index."""

    success: bool = True
    id: str
    indexed: bool
    index_error: str | None = None
