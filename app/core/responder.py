"""Retrieval-augmented responder.

Answers a user's message from the owner's knowledge base:

1. embed the query and fetch the top-k chunks from the owner's namespace
   (a missing namespace is simply "no context")
2. build a system prompt that lists each chunk under its source file and
   optionally names the owner's website for citation
3. send system prompt + the last turns of the conversation + the query to
   the chat model and return its text verbatim

Any failure on that path is retried once as a context-free generation. Only
a failure of the retry reaches the caller, as ``ResponderError``.
"""

import asyncio
from collections.abc import Awaitable, Callable
from types import ModuleType
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from app.core.config import get_settings
from app.core.embeddings import embed_text_async
from app.core.llm import get_llm
from app.core.logging import get_logger
from app.core.schemas_chat import ChatMessage, MessageOrigin
from app.core.schemas_knowledge import ResponderResult, RetrievedChunk
from app.db import knowledge_store
from app.db import owner_settings as owner_settings_db

logger = get_logger(__name__)


GROUNDED_PROMPT = """You are a helpful and friendly AI customer service assistant. Use the information from the knowledge base below to answer questions accurately and professionally.

{context}{website}

If the provided context contains relevant information, use it to answer the question. If the context doesn't fully address the question, you can supplement with general knowledge but mention that some information may not be from the official knowledge base.

Always be friendly, professional, and concise in your responses."""

GENERAL_PROMPT = """You are a helpful and friendly AI customer service assistant.{website}

Since there is no specific knowledge base available, provide helpful, accurate, and professional responses based on your general knowledge.

Be conversational, empathetic, and try to assist users to the best of your ability. If you're unsure about something specific to the company or product, kindly mention that a team member can provide more detailed information.

Always be friendly, professional, and concise in your responses."""

WEBSITE_NOTE = (
    "\n\nCompany Website: {url}\n"
    "You can reference this website when answering questions about the company."
)

FALLBACK_REASON = "Could not access knowledge base, using general AI knowledge"


class ResponderError(Exception):
    """Both the grounded and the context-free generation failed."""


def build_context_block(chunks: list[RetrievedChunk]) -> str:
    if not chunks:
        return ""
    lines = ["Relevant information from knowledge base:\n"]
    for idx, chunk in enumerate(chunks, start=1):
        lines.append(f"[Source {idx} - {chunk.file_name}]:\n{chunk.text}\n")
    return "\n".join(lines)


def build_system_prompt(chunks: list[RetrievedChunk], website_url: str | None = None) -> str:
    """Grounded prompt when chunks were retrieved, general prompt otherwise."""
    website = WEBSITE_NOTE.format(url=website_url) if website_url else ""
    if chunks:
        return GROUNDED_PROMPT.format(context=build_context_block(chunks), website=website)
    return GENERAL_PROMPT.format(website=website)


def history_to_messages(history: list[ChatMessage], turns: int) -> list[BaseMessage]:
    """Map the last ``turns`` messages onto the user/assistant alternation."""
    recent = history[-turns:] if turns > 0 else []
    messages: list[BaseMessage] = []
    for msg in recent:
        if msg.origin is MessageOrigin.USER:
            messages.append(HumanMessage(content=msg.text))
        else:
            # Owner and AI both speak for the business
            messages.append(AIMessage(content=msg.text))
    return messages


def _row_to_chunk(row: dict[str, Any]) -> RetrievedChunk:
    return RetrievedChunk(
        id=row.get("id"),
        text=row.get("text") or "",
        score=float(row.get("similarity") or 0.0),
        file_name=row.get("file_name"),
        source_type=row.get("source_type"),
        chunk_index=row.get("chunk_index"),
    )


class Responder:
    """Generates AI replies for one owner's users."""

    def __init__(
        self,
        store: ModuleType | Any = knowledge_store,
        settings_db: ModuleType | Any = owner_settings_db,
        embed: Callable[[str], Awaitable[list[float]]] = embed_text_async,
        llm_factory: Callable[[], Any] = get_llm,
        top_k: int | None = None,
        history_turns: int | None = None,
    ):
        settings = get_settings()
        self._store = store
        self._settings_db = settings_db
        self._embed = embed
        self._llm_factory = llm_factory
        self.top_k = top_k or settings.RETRIEVAL_TOP_K
        self.history_turns = history_turns or settings.HISTORY_TURNS

    async def _bounded(self, awaitable: Awaitable[Any], timeout: float | None) -> Any:
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout)

    async def retrieve(
        self, owner_id: str, query: str, timeout: float | None = None
    ) -> list[RetrievedChunk]:
        """Top-k chunks for ``query`` from the owner's namespace (best first)."""
        vector = await self._bounded(self._embed(query), timeout)
        rows = await self._bounded(
            asyncio.to_thread(self._store.search_records, owner_id, vector, self.top_k),
            timeout,
        )
        return [_row_to_chunk(row) for row in rows]

    async def website_for(self, owner_id: str, timeout: float | None = None) -> str | None:
        """Owner's citation URL; an unreadable or slow setting counts as none."""
        try:
            return await self._bounded(
                asyncio.to_thread(self._settings_db.get_company_website, owner_id), timeout
            )
        except Exception as e:
            logger.warning(f"Error fetching website for owner {owner_id}: {e}")
            return None

    async def generate(
        self,
        query: str,
        chunks: list[RetrievedChunk],
        history: list[ChatMessage],
        website_url: str | None = None,
        timeout: float | None = None,
    ) -> str:
        """One completion call; returns the model text verbatim."""
        messages: list[BaseMessage] = [SystemMessage(content=build_system_prompt(chunks, website_url))]
        messages.extend(history_to_messages(history, self.history_turns))
        messages.append(HumanMessage(content=query))

        llm = self._llm_factory()
        response = await self._bounded(llm.ainvoke(messages), timeout)
        return response.content

    async def respond(
        self,
        owner_id: str | None,
        query: str,
        history: list[ChatMessage] | None = None,
        timeout: float | None = None,
    ) -> ResponderResult:
        """
        Produce a reply for ``query``.

        Args:
            owner_id: Owner whose knowledge base grounds the reply; None skips
                retrieval entirely
            query: The user's message
            history: Prior conversation, oldest first (current query excluded)
            timeout: Seconds allowed for each external call; None = unbounded

        Returns:
            ResponderResult with the text, whether context was used, and sources

        Raises:
            ResponderError: If the context-free retry also fails
        """
        history = history or []

        if owner_id is None:
            try:
                text = await self.generate(query, [], history, timeout=timeout)
            except Exception as e:
                logger.error(f"General AI response failed: {e}")
                raise ResponderError("Failed to generate AI response") from e
            return ResponderResult(text=text, context_used=False, sources=[])

        website_url = await self.website_for(owner_id, timeout=timeout)

        try:
            chunks = await self.retrieve(owner_id, query, timeout=timeout)
            text = await self.generate(query, chunks, history, website_url, timeout=timeout)
            logger.info(
                f"Generated reply for owner {owner_id} with {len(chunks)} context chunks",
                extra={"owner_id": owner_id},
            )
            return ResponderResult(
                text=text,
                context_used=bool(chunks),
                sources=[chunk.as_source() for chunk in chunks],
                website_url=website_url,
            )
        except Exception as e:
            logger.warning(
                f"Grounded response failed for owner {owner_id}, retrying without context: {e!r}",
                extra={"owner_id": owner_id},
            )

        try:
            text = await self.generate(query, [], history, website_url, timeout=timeout)
        except Exception as e:
            logger.error(f"Fallback response failed for owner {owner_id}: {e}")
            raise ResponderError("Failed to generate AI response") from e

        return ResponderResult(
            text=text,
            context_used=False,
            sources=[],
            website_url=website_url,
            fallback_reason=FALLBACK_REASON,
        )
