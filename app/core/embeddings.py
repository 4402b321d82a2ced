"""Knowledge and query embeddings via the OpenAI embeddings API."""

import asyncio

from openai import OpenAI

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# Inputs per embeddings request; well under the API's per-request input and token caps
EMBEDDING_BATCH_SIZE = 100


def _get_client() -> OpenAI:
    settings = get_settings()
    return OpenAI(api_key=settings.OPENAI_API_KEY)


def embedding_dimension() -> int:
    """Dimensionality every stored and query vector must have."""
    return get_settings().EMBEDDING_DIM


def _check_dimension(vector: list[float], position: int, expected: int) -> list[float]:
    if len(vector) != expected:
        raise ValueError(
            f"Embedding dimension mismatch for chunk {position}: "
            f"expected {expected}, got {len(vector)}"
        )
    return vector


def embed_texts(texts: list[str], batch_size: int = EMBEDDING_BATCH_SIZE) -> list[list[float]]:
    """
    Embed knowledge chunks (or a single query) with the configured model.

    Large documents are sent in slices of ``batch_size`` inputs; vectors come
    back in input order regardless of how many requests were made.

    Raises:
        ValueError: If a vector does not have EMBEDDING_DIM components
        Exception: If an OpenAI request fails (nothing partial is returned)
    """
    if not texts:
        return []

    settings = get_settings()
    client = _get_client()
    vectors: list[list[float]] = []

    for start in range(0, len(texts), batch_size):
        batch = texts[start:start + batch_size]
        try:
            response = client.embeddings.create(model=settings.EMBEDDING_MODEL, input=batch)
        except Exception as e:
            logger.error(
                f"Embedding request failed for chunks {start}-{start + len(batch) - 1}: {e}"
            )
            raise

        for offset, item in enumerate(response.data):
            vectors.append(_check_dimension(item.embedding, start + offset, settings.EMBEDDING_DIM))

    logger.info(
        f"Embedded {len(vectors)} texts with {settings.EMBEDDING_MODEL}",
        extra={
            "extra_data": {
                "model": settings.EMBEDDING_MODEL,
                "count": len(vectors),
                "requests": -(-len(texts) // batch_size),
            }
        },
    )
    return vectors


async def embed_texts_async(texts: list[str]) -> list[list[float]]:
    return await asyncio.to_thread(embed_texts, texts)


async def embed_text_async(text: str) -> list[float]:
    """Embed a single text (e.g. a user query)."""
    vectors = await embed_texts_async([text])
    return vectors[0]
