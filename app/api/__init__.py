"""API routers for the chat relay."""

from fastapi import APIRouter

from app.api import ai, chats, chatui, knowledge, live

router = APIRouter()

# Live WebSocket channel
router.include_router(live.router, tags=["live"])

# Stored conversations
router.include_router(chats.router, tags=["chats"])

# Resource ingestion and AI state
router.include_router(ai.router, prefix="/api/ai", tags=["ai"])

# Q&A, products, uploads, company website
router.include_router(knowledge.router, prefix="/api/knowledge", tags=["knowledge"])

# Chat widget settings
router.include_router(chatui.router, prefix="/api/chatui", tags=["chatui"])
