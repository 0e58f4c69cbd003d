"""Embedding client: every embedding request goes through this module.

Requests are sent with ``litellm.aembedding`` so any LiteLLM provider works;
the default models are served by a local Ollama instance. The client never
checks vector length. Callers compare dimensions against the store.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import litellm

from dualrag.errors import EmbeddingProviderError
from dualrag.ingest.detect import prepare_prompt

litellm.suppress_debug_info = True

log = logging.getLogger(__name__)

# Text embedded when probing a model for availability or dimension.
PROBE_TEXT = "test"

# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "ollama": None,  # Local, no key required
}


def validate_api_key(model: str) -> None:
    """Check that the API key env var required by *model*'s provider is set.

    Raises:
        EmbeddingProviderError: If the key is missing.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)
    if env_var is None:
        return
    if not os.getenv(env_var):
        raise EmbeddingProviderError(
            model, f"API key not found for provider '{provider}'. Set {env_var}."
        )


class EmbeddingClient:
    """Async wrapper around ``litellm.aembedding``.

    Args:
        api_base: Provider endpoint, e.g. ``http://localhost:11434`` for Ollama.
        num_retries: LiteLLM retries on transient errors.
        timeout: Per-request timeout in seconds (None = provider default).
    """

    def __init__(
        self,
        api_base: str | None = None,
        num_retries: int = 0,
        timeout: float | None = None,
    ) -> None:
        self.api_base = api_base
        self.num_retries = num_retries
        self.timeout = timeout

    async def embed(self, text: str, model: str) -> list[float]:
        """Embed *text* with *model* after model-specific prompt preparation.

        Raises:
            EmbeddingProviderError: On network failure, provider error, or a
                response without an embedding.
        """
        validate_api_key(model)
        kwargs: dict[str, Any] = {
            "model": model,
            "input": [prepare_prompt(text, model)],
            "num_retries": self.num_retries,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout

        try:
            response = await litellm.aembedding(**kwargs)
        except Exception as exc:  # litellm maps provider failures onto many types
            raise EmbeddingProviderError(model, str(exc)) from exc

        try:
            vector = response.data[0]["embedding"]
        except (AttributeError, IndexError, KeyError, TypeError) as exc:
            raise EmbeddingProviderError(model, "response contained no embedding") from exc
        if not vector:
            raise EmbeddingProviderError(model, "response contained an empty embedding")
        return [float(v) for v in vector]

    async def is_available(self, model: str) -> bool:
        """Return True if *model* answers a probe embedding request."""
        try:
            await self.embed(PROBE_TEXT, model)
        except EmbeddingProviderError as exc:
            log.debug("Model %s unavailable: %s", model, exc)
            return False
        return True

    async def dimension_of(self, model: str) -> int:
        """Return the vector length *model* currently produces.

        Raises:
            EmbeddingProviderError: If the probe request fails.
        """
        return len(await self.embed(PROBE_TEXT, model))
