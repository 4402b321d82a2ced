"""API endpoints for AI resources and per-user AI state."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_ingestion, get_takeover
from app.core.ai_takeover import AiTakeover
from app.core.ingestion import IngestionPipeline
from app.core.logging import get_logger
from app.core.schemas_knowledge import (
    IngestResult,
    UploadJsonRequest,
    UploadPdfRequest,
    UploadTxtRequest,
)

logger = get_logger(__name__)

router = APIRouter()


def _ingest_response(result: IngestResult) -> dict[str, Any]:
    return result.model_dump(by_alias=True, mode="json")


@router.post("/upload-pdf")
async def upload_pdf(
    request: UploadPdfRequest, pipeline: IngestionPipeline = Depends(get_ingestion)
) -> dict:
    """
    Ingest a PDF from the server's filesystem into the owner's knowledge base.

    Raises:
        HTTPException 400: If the file is missing or has no extractable text
        HTTPException 500: If embedding or storage fails
    """
    try:
        result = await pipeline.ingest_path(request.owner_id, "pdf", request.pdf_path, request.metadata)
        return _ingest_response(result)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception(f"PDF upload failed for owner {request.owner_id}")
        raise HTTPException(status_code=500, detail="Failed to process PDF")


@router.post("/upload-txt")
async def upload_txt(
    request: UploadTxtRequest, pipeline: IngestionPipeline = Depends(get_ingestion)
) -> dict:
    try:
        result = await pipeline.ingest_path(request.owner_id, "txt", request.txt_path, request.metadata)
        return _ingest_response(result)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception(f"TXT upload failed for owner {request.owner_id}")
        raise HTTPException(status_code=500, detail="Failed to process text file")


@router.post("/upload-json")
async def upload_json(
    request: UploadJsonRequest, pipeline: IngestionPipeline = Depends(get_ingestion)
) -> dict:
    try:
        metadata = dict(request.metadata)
        file_name = metadata.pop("fileName", "inline_json")
        result = await pipeline.ingest_json(request.owner_id, request.json_data, file_name, metadata)
        return _ingest_response(result)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception(f"JSON upload failed for owner {request.owner_id}")
        raise HTTPException(status_code=500, detail="Failed to process JSON data")


@router.get("/stats/{owner_id}")
async def resource_stats(owner_id: str, pipeline: IngestionPipeline = Depends(get_ingestion)) -> dict:
    """Record counts for the owner's knowledge base (zero when none exists)."""
    try:
        stats = await pipeline.stats(owner_id)
        return stats.model_dump(by_alias=True, exclude_none=True, mode="json")

    except Exception:
        logger.exception(f"Failed to get stats for owner {owner_id}")
        raise HTTPException(status_code=500, detail="Failed to get resource stats")


@router.delete("/resources/{owner_id}")
async def delete_resources(
    owner_id: str, pipeline: IngestionPipeline = Depends(get_ingestion)
) -> dict:
    """Delete the owner's whole knowledge base."""
    try:
        return await pipeline.clear(owner_id)

    except Exception:
        logger.exception(f"Failed to delete resources for owner {owner_id}")
        raise HTTPException(status_code=500, detail="Failed to delete resources")


@router.post("/reset/{user_id}")
async def reset_ai(user_id: str, takeover: AiTakeover = Depends(get_takeover)) -> dict:
    """Hand a user's conversation back to the AI."""
    try:
        await takeover.reset(user_id)
        return {"success": True, "userId": user_id, "aiActive": True}

    except Exception:
        logger.exception(f"Failed to reset AI state for {user_id}")
        raise HTTPException(status_code=500, detail="Failed to reset AI state")


@router.get("/state/{user_id}")
async def ai_state(user_id: str, takeover: AiTakeover = Depends(get_takeover)) -> dict:
    info = await takeover.describe(user_id)
    return info.model_dump(by_alias=True, mode="json")
