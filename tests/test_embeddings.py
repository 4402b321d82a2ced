"""Tests for embeddings generation with mocked OpenAI API."""

from unittest.mock import MagicMock, patch

import pytest

from app.core.embeddings import EMBEDDING_BATCH_SIZE, embed_text_async, embed_texts


@pytest.fixture
def mock_openai_response():
    """Create a mock OpenAI embeddings response."""

    def _create_response(num_embeddings: int, dimension: int = 1536):
        mock_response = MagicMock()
        mock_response.data = []

        for i in range(num_embeddings):
            mock_embedding = MagicMock()
            mock_embedding.embedding = [float(i)] * dimension
            mock_response.data.append(mock_embedding)

        return mock_response

    return _create_response


def test_embed_texts_batch_keeps_order(mock_openai_response):
    with patch("app.core.embeddings._get_client") as mock_get_client:
        mock_client = MagicMock()
        mock_client.embeddings.create.return_value = mock_openai_response(3)
        mock_get_client.return_value = mock_client

        embeddings = embed_texts(["one", "two", "three"])

        assert len(embeddings) == 3
        assert [e[0] for e in embeddings] == [0.0, 1.0, 2.0]
        mock_client.embeddings.create.assert_called_once()


def test_embed_texts_empty():
    assert embed_texts([]) == []


def test_embed_texts_dimension_validation(mock_openai_response):
    with patch("app.core.embeddings._get_client") as mock_get_client:
        mock_client = MagicMock()
        mock_client.embeddings.create.return_value = mock_openai_response(1, dimension=512)
        mock_get_client.return_value = mock_client

        with pytest.raises(ValueError, match="Embedding dimension mismatch"):
            embed_texts(["What are your hours?"])


def test_embed_texts_api_failure():
    with patch("app.core.embeddings._get_client") as mock_get_client:
        mock_client = MagicMock()
        mock_client.embeddings.create.side_effect = Exception("API Error")
        mock_get_client.return_value = mock_client

        with pytest.raises(Exception, match="API Error"):
            embed_texts(["Test text"])


def test_embed_texts_uses_configured_model(mock_openai_response):
    with patch("app.core.embeddings._get_client") as mock_get_client:
        mock_client = MagicMock()
        mock_client.embeddings.create.return_value = mock_openai_response(1)
        mock_get_client.return_value = mock_client

        embed_texts(["Test"])

        call_args = mock_client.embeddings.create.call_args
        assert call_args[1]["model"] == "text-embedding-3-small"
        assert call_args[1]["input"] == ["Test"]


@pytest.mark.asyncio
async def test_embed_text_async_single(mock_openai_response):
    with patch("app.core.embeddings._get_client") as mock_get_client:
        mock_client = MagicMock()
        mock_client.embeddings.create.return_value = mock_openai_response(1)
        mock_get_client.return_value = mock_client

        vector = await embed_text_async("hello")

        assert len(vector) == 1536


def _sized_client(dimension: int = 1536):
    """Client whose create() answers with as many vectors as it was given inputs."""
    vector = [0.5] * dimension
    mock_client = MagicMock()

    def _create(model, input):
        if len(input) > 2048:
            raise ValueError(f"too many inputs: {len(input)}")
        response = MagicMock()
        response.data = [MagicMock(embedding=vector) for _ in input]
        return response

    mock_client.embeddings.create.side_effect = _create
    return mock_client


def test_embed_texts_splits_large_documents():
    mock_client = _sized_client()
    texts = [f"chunk {i}" for i in range(2500)]

    with patch("app.core.embeddings._get_client", return_value=mock_client):
        vectors = embed_texts(texts)

    assert len(vectors) == 2500
    sizes = [len(c.kwargs["input"]) for c in mock_client.embeddings.create.call_args_list]
    assert sizes == [EMBEDDING_BATCH_SIZE] * 25
    sent = [t for c in mock_client.embeddings.create.call_args_list for t in c.kwargs["input"]]
    assert sent == texts


def test_embed_texts_reports_global_chunk_position(mock_openai_response):
    good = mock_openai_response(2)
    bad = mock_openai_response(1, dimension=512)

    with patch("app.core.embeddings._get_client") as mock_get_client:
        mock_client = MagicMock()
        mock_client.embeddings.create.side_effect = [good, bad]
        mock_get_client.return_value = mock_client

        with pytest.raises(ValueError, match="chunk 2"):
            embed_texts(["a", "b", "c"], batch_size=2)
