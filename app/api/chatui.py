"""API endpoint for the chat widget's per-owner settings."""

import asyncio

from fastapi import APIRouter, HTTPException, Query

from app.core.logging import get_logger
from app.db.owner_settings import get_chatui_settings

logger = get_logger(__name__)

router = APIRouter()


@router.get("/settings")
async def chatui_settings(owner_id: str = Query(..., alias="ownerId", min_length=1)) -> dict:
    """
    Widget settings for an owner.

    Raises:
        HTTPException 404: If the owner has no settings
    """
    try:
        settings = await asyncio.to_thread(get_chatui_settings, owner_id)
    except Exception:
        logger.exception(f"Failed to fetch chat UI settings for {owner_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch chat UI settings")

    if settings is None:
        raise HTTPException(status_code=404, detail="Chat UI settings not found")
    return settings
