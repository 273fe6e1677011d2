"""
Query embeddings with a simple provider fallback.

Providers are tried in order (Jina, then OpenAI); the first one that answers
wins. Both speak the OpenAI embeddings protocol, so one client type covers
them. There is no random-vector fallback: when every provider fails, the
query cannot be retrieved.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from openai import AsyncOpenAI

from kb_assistant.core.config import Settings
from kb_assistant.core.errors import RetrievalError
from kb_assistant.core.telemetry import get_tracer

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingProvider:
    name: str
    client: AsyncOpenAI
    model: str
    extra_body: dict[str, Any] = field(default_factory=dict)


def providers_from_settings(settings: Settings) -> list[EmbeddingProvider]:
    """Configured providers in preference order."""
    providers = []
    if settings.jina_api_key:
        providers.append(
            EmbeddingProvider(
                name="jina",
                client=AsyncOpenAI(
                    api_key=settings.jina_api_key, base_url=settings.jina_base_url
                ),
                model=settings.jina_embedding_model,
                extra_body={"task": "retrieval.query"},
            )
        )
    if settings.openai_api_key:
        providers.append(
            EmbeddingProvider(
                name="openai",
                client=AsyncOpenAI(api_key=settings.openai_api_key),
                model=settings.openai_embedding_model,
            )
        )
    return providers


class EmbeddingService:
    """Embeds search queries using the first provider that succeeds."""

    def __init__(self, providers: list[EmbeddingProvider], dimensions: int) -> None:
        self._providers = providers
        self._dimensions = dimensions
        self._tracer = get_tracer()

    async def embed_query(self, text: str) -> list[float]:
        """
        Generate an embedding vector for a search query.

        Raises:
            RetrievalError: if no provider is configured or all of them fail.
        """
        if not self._providers:
            raise RetrievalError(
                "No embedding provider configured. Set JINA_API_KEY or OPENAI_API_KEY"
            )

        with self._tracer.start_as_current_span("embeddings.query") as span:
            last_error: Exception | None = None
            for provider in self._providers:
                try:
                    response = await provider.client.embeddings.create(
                        model=provider.model,
                        input=[text],
                        dimensions=self._dimensions,
                        extra_body=provider.extra_body or None,
                    )
                except Exception as exc:
                    logger.warning("Embedding provider %s failed: %s", provider.name, exc)
                    last_error = exc
                    continue

                span.set_attribute("embeddings.provider", provider.name)
                return response.data[0].embedding

            raise RetrievalError(f"Embedding generation failed: {last_error}")

    async def close(self) -> None:
        for provider in self._providers:
            await provider.client.close()
