"""API endpoints for stored conversations."""

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_conversation_store, get_session_router
from app.core.config import get_settings
from app.core.conversation_store import ConversationStore
from app.core.logging import get_logger
from app.core.schemas_chat import ContactMetadata, MetadataRequest
from app.core.session_router import SessionRouter

logger = get_logger(__name__)

router = APIRouter()


@router.get("/chats")
async def list_chats(store: ConversationStore = Depends(get_conversation_store)) -> list[dict]:
    """
    Most recent conversations, newest first.

    Returns:
        Conversations with their messages in append order
    """
    try:
        conversations = await store.list_conversations(get_settings().CHAT_LIST_LIMIT)
        return [c.model_dump(by_alias=True, mode="json") for c in conversations]

    except Exception:
        logger.exception("Failed to list chats")
        raise HTTPException(status_code=500, detail="Failed to fetch chats")


@router.get("/chats/{user_id}")
async def get_chat(user_id: str, store: ConversationStore = Depends(get_conversation_store)) -> dict:
    """
    One user's conversation.

    Raises:
        HTTPException 404: If the user has never chatted
    """
    try:
        conversation = await store.get(user_id)
    except Exception:
        logger.exception(f"Failed to fetch chat for {user_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch chat")

    if conversation is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return conversation.model_dump(by_alias=True, mode="json")


@router.post("/chats/{user_id}/metadata")
async def update_chat_metadata(
    user_id: str,
    request: MetadataRequest,
    session_router: SessionRouter = Depends(get_session_router),
) -> dict:
    """Update a user's contact details; an ownerId reassigns the user."""
    metadata = ContactMetadata(**request.model_dump())
    try:
        owner_id = await session_router.update_metadata(user_id, metadata)
    except Exception:
        logger.exception(f"Failed to update metadata for {user_id}")
        raise HTTPException(status_code=500, detail="Failed to update metadata")

    return {"success": True, "userId": user_id, "ownerId": owner_id}
