"""Pytest configuration and fixtures."""

import os

import pytest

# Set before any app module builds its settings
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ["RELAY_ENV"] = "test"

from app.core.ai_takeover import AiTakeover  # noqa: E402
from app.core.conversation_store import ConversationStore  # noqa: E402
from app.core.ingestion import IngestionPipeline  # noqa: E402
from app.core.knowledge_manager import KnowledgeManager  # noqa: E402
from app.core.responder import Responder  # noqa: E402
from app.core.session_registry import SessionRegistry  # noqa: E402
from app.core.session_router import SessionRouter  # noqa: E402
from tests.fakes.fake_clients import FakeLLM, fake_embed, fake_embed_many  # noqa: E402
from tests.fakes.fake_store import FakeStore  # noqa: E402


@pytest.fixture
def store():
    """Fresh in-memory stand-in for every db module."""
    return FakeStore()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def conversations(store):
    return ConversationStore(db=store)


@pytest.fixture
def takeover(store):
    return AiTakeover(db=store)


@pytest.fixture
def responder(store, llm):
    return Responder(store=store, settings_db=store, embed=fake_embed, llm_factory=lambda: llm)


@pytest.fixture
def pipeline(store):
    return IngestionPipeline(store=store, embed=fake_embed_many)


@pytest.fixture
def knowledge_manager(store):
    return KnowledgeManager(entries=store, store=store, embed=fake_embed)


@pytest.fixture
def session_router(conversations, takeover, responder):
    return SessionRouter(
        registry=SessionRegistry(),
        conversations=conversations,
        takeover=takeover,
        responder=responder,
    )
