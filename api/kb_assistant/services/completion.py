"""
Streaming chat completions from an OpenAI-compatible provider.

Exposes the provider's stream as plain text deltas and reports every
provider or transport failure as a single ProviderError. Nothing is retried
here: by the time a stream fails, part of the answer may already be on its
way to the client.
"""

import logging
from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from kb_assistant.core.config import Settings
from kb_assistant.core.errors import ProviderError
from kb_assistant.models.chat import ChatMessage

logger = logging.getLogger(__name__)


def create_completion_client(settings: Settings) -> AsyncOpenAI:
    """Build the provider client from settings."""
    return AsyncOpenAI(api_key=settings.llm_api_key, base_url=settings.llm_base_url)


class CompletionStreamAdapter:
    """Wraps an AsyncOpenAI client for streaming chat completions."""

    def __init__(self, client: AsyncOpenAI, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    @property
    def default_model(self) -> str:
        return self._settings.llm_default_model

    async def stream(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream raw text deltas for a conversation.

        Args:
            messages: System + history + user turn; at least one message.
            model: Provider model id. Falls back to the configured default.

        Yields:
            Non-empty text fragments in arrival order. Single pass only.

        Raises:
            ValueError: if messages is empty.
            ProviderError: on any provider or transport failure.
        """
        if not messages:
            raise ValueError("At least one message is required")

        model = model or self.default_model
        logger.info("Streaming completion: model=%s, messages=%d", model, len(messages))

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[message.model_dump() for message in messages],
                stream=True,
                temperature=self._settings.llm_temperature,
                max_tokens=self._settings.llm_max_tokens,
            )
        except Exception as exc:
            logger.error("Completion request failed: %s", exc)
            raise ProviderError(f"Failed to generate streaming response: {exc}") from exc

        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                text = delta.content if delta is not None else None
                if text:
                    yield text
        except Exception as exc:
            logger.error("Completion stream aborted: %s", exc)
            raise ProviderError(f"Completion stream failed: {exc}") from exc
        finally:
            await response.close()
