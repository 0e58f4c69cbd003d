"""Tests for EmbeddingClient (litellm mocked)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from dualrag.errors import EmbeddingProviderError
from dualrag.rag.embedding_client import EmbeddingClient, validate_api_key

_AEMBED = "dualrag.rag.embedding_client.litellm.aembedding"


def _response(vector):
    resp = MagicMock()
    resp.data = [{"embedding": vector}]
    return resp


@pytest.mark.asyncio
async def test_embed_returns_vector():
    client = EmbeddingClient(api_base="http://localhost:11434")
    with patch(_AEMBED, new=AsyncMock(return_value=_response([0.1, 0.2, 0.3]))) as mock_e:
        vector = await client.embed("hello", "ollama/nomic-embed-text")

    assert vector == [0.1, 0.2, 0.3]
    kwargs = mock_e.call_args.kwargs
    assert kwargs["model"] == "ollama/nomic-embed-text"
    assert kwargs["input"] == ["hello"]
    assert kwargs["api_base"] == "http://localhost:11434"


@pytest.mark.asyncio
async def test_embed_prepares_qwen3_prompt():
    with patch(_AEMBED, new=AsyncMock(return_value=_response([1.0]))) as mock_e:
        await EmbeddingClient().embed("def f(): pass", "ollama/qwen3-embedding:0.6b")
    assert mock_e.call_args.kwargs["input"] == ["def f(): pass<|endoftext|>"]
    assert "api_base" not in mock_e.call_args.kwargs


@pytest.mark.asyncio
async def test_embed_wraps_provider_errors():
    with patch(_AEMBED, new=AsyncMock(side_effect=ConnectionError("refused"))):
        with pytest.raises(EmbeddingProviderError, match="refused") as exc_info:
            await EmbeddingClient().embed("x", "ollama/m")
    assert exc_info.value.model == "ollama/m"


@pytest.mark.asyncio
@pytest.mark.parametrize("vector", [[], None])
async def test_embed_rejects_empty_embedding(vector):
    with patch(_AEMBED, new=AsyncMock(return_value=_response(vector))):
        with pytest.raises(EmbeddingProviderError, match="embedding"):
            await EmbeddingClient().embed("x", "ollama/m")


@pytest.mark.asyncio
async def test_embed_rejects_malformed_response():
    resp = MagicMock()
    resp.data = []
    with patch(_AEMBED, new=AsyncMock(return_value=resp)):
        with pytest.raises(EmbeddingProviderError, match="no embedding"):
            await EmbeddingClient().embed("x", "ollama/m")


@pytest.mark.asyncio
async def test_is_available_and_dimension():
    client = EmbeddingClient()
    with patch(_AEMBED, new=AsyncMock(return_value=_response([0.0] * 768))):
        assert await client.is_available("ollama/m") is True
        assert await client.dimension_of("ollama/m") == 768
    with patch(_AEMBED, new=AsyncMock(side_effect=RuntimeError("model not found"))):
        assert await client.is_available("ollama/m") is False


def test_validate_api_key_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EmbeddingProviderError, match="OPENAI_API_KEY"):
        validate_api_key("openai/text-embedding-3-small")


def test_validate_api_key_present_or_local(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    validate_api_key("openai/text-embedding-3-small")
    validate_api_key("ollama/nomic-embed-text")


@pytest.mark.asyncio
async def test_embed_checks_api_key_before_request(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with patch(_AEMBED, new=AsyncMock()) as mock_e:
        with pytest.raises(EmbeddingProviderError):
            await EmbeddingClient().embed("x", "openai/text-embedding-3-small")
    mock_e.assert_not_called()
