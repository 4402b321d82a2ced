"""Process-wide service instances for the API layer.

Each provider is cached so HTTP routes and the live channel share the same
registry, router and locks. Tests replace them with
``app.dependency_overrides``.
"""

from functools import lru_cache

from app.core.ai_takeover import AiTakeover
from app.core.conversation_store import ConversationStore
from app.core.ingestion import IngestionPipeline
from app.core.knowledge_manager import KnowledgeManager
from app.core.responder import Responder
from app.core.session_registry import SessionRegistry
from app.core.session_router import SessionRouter


@lru_cache(maxsize=1)
def get_conversation_store() -> ConversationStore:
    return ConversationStore()


@lru_cache(maxsize=1)
def get_takeover() -> AiTakeover:
    return AiTakeover()


@lru_cache(maxsize=1)
def get_ingestion() -> IngestionPipeline:
    return IngestionPipeline()


@lru_cache(maxsize=1)
def get_knowledge_manager() -> KnowledgeManager:
    return KnowledgeManager()


@lru_cache(maxsize=1)
def get_session_router() -> SessionRouter:
    return SessionRouter(
        registry=SessionRegistry(),
        conversations=get_conversation_store(),
        takeover=get_takeover(),
        responder=Responder(),
    )
