"""API endpoints for owner-managed knowledge: Q&A, products, uploads, website."""

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_ingestion, get_knowledge_manager
from app.core.ingestion import IngestionPipeline
from app.core.knowledge_manager import KnowledgeManager
from app.core.logging import get_logger
from app.core.schemas_knowledge import (
    KnowledgeUploadRequest,
    ProductRequest,
    QnARequest,
    WebsiteRequest,
)
from app.db import owner_settings

logger = get_logger(__name__)

router = APIRouter()


def _ok(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


# ============================================================================
# Q&A
# ============================================================================


@router.get("/qna")
async def list_qna(
    owner_id: str = Query(..., alias="ownerId", min_length=1),
    manager: KnowledgeManager = Depends(get_knowledge_manager),
) -> dict:
    try:
        return _ok(await manager.list_qna(owner_id))

    except Exception:
        logger.exception(f"Failed to list Q&A for owner {owner_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch Q&A entries")


@router.post("/qna")
async def save_qna(
    request: QnARequest, manager: KnowledgeManager = Depends(get_knowledge_manager)
) -> dict:
    """
    Create (no _id) or update a Q&A entry and index it for retrieval.

    The entry is saved even when indexing fails; ``indexed`` reports it.
    """
    try:
        result = await manager.save_qna(
            request.owner_id, request.question, request.answer, request.entry_id
        )
        return _ok(result.model_dump(by_alias=True, mode="json"))

    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        logger.exception(f"Failed to save Q&A for owner {request.owner_id}")
        raise HTTPException(status_code=500, detail="Failed to save Q&A entry")


@router.delete("/qna/{owner_id}/{qna_id}")
async def delete_qna(
    owner_id: str, qna_id: str, manager: KnowledgeManager = Depends(get_knowledge_manager)
) -> dict:
    try:
        result = await manager.delete_qna(owner_id, qna_id)
        return _ok(result.model_dump(by_alias=True, mode="json"))

    except Exception:
        logger.exception(f"Failed to delete Q&A {qna_id} for owner {owner_id}")
        raise HTTPException(status_code=500, detail="Failed to delete Q&A entry")


# ============================================================================
# Products / services
# ============================================================================


@router.get("/products")
async def list_products(
    owner_id: str = Query(..., alias="ownerId", min_length=1),
    manager: KnowledgeManager = Depends(get_knowledge_manager),
) -> dict:
    try:
        return _ok(await manager.list_products(owner_id))

    except Exception:
        logger.exception(f"Failed to list products for owner {owner_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch products")


@router.post("/products")
async def save_product(
    request: ProductRequest, manager: KnowledgeManager = Depends(get_knowledge_manager)
) -> dict:
    try:
        result = await manager.save_product(
            request.owner_id, request.name, request.description, request.entry_id
        )
        return _ok(result.model_dump(by_alias=True, mode="json"))

    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        logger.exception(f"Failed to save product for owner {request.owner_id}")
        raise HTTPException(status_code=500, detail="Failed to save product")


@router.delete("/products/{owner_id}/{product_id}")
async def delete_product(
    owner_id: str, product_id: str, manager: KnowledgeManager = Depends(get_knowledge_manager)
) -> dict:
    try:
        result = await manager.delete_product(owner_id, product_id)
        return _ok(result.model_dump(by_alias=True, mode="json"))

    except Exception:
        logger.exception(f"Failed to delete product {product_id} for owner {owner_id}")
        raise HTTPException(status_code=500, detail="Failed to delete product")


# ============================================================================
# Resource upload
# ============================================================================


@router.post("/upload")
async def upload_resource(
    request: KnowledgeUploadRequest, pipeline: IngestionPipeline = Depends(get_ingestion)
) -> dict:
    """
    Ingest inline content: text for txt, base64 for pdf, object or string for json.

    Raises:
        HTTPException 400: If the content is empty or malformed
    """
    try:
        result = await pipeline.ingest_file_content(
            request.owner_id, request.file_type, request.content, request.metadata
        )
        return _ok(result.model_dump(by_alias=True, mode="json"))

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception(f"Upload failed for owner {request.owner_id}")
        raise HTTPException(status_code=500, detail="Failed to process upload")


# ============================================================================
# Company website
# ============================================================================


@router.post("/website")
async def save_website(request: WebsiteRequest) -> dict:
    try:
        await asyncio.to_thread(
            owner_settings.set_company_website, request.owner_id, request.website_url
        )
        return _ok({"ownerId": request.owner_id, "companyWebsite": request.website_url})

    except Exception:
        logger.exception(f"Failed to save website for owner {request.owner_id}")
        raise HTTPException(status_code=500, detail="Failed to save company website")


@router.get("/website/{owner_id}")
async def get_website(owner_id: str) -> dict:
    try:
        url = await asyncio.to_thread(owner_settings.get_company_website, owner_id)
        return _ok({"ownerId": owner_id, "companyWebsite": url})

    except Exception:
        logger.exception(f"Failed to fetch website for owner {owner_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch company website")
