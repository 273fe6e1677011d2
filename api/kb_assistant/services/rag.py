"""
RAG Orchestrator: the chat request pipeline.

Coordinates the full Retrieve → Assemble → Stream flow:
1. Validate the user message.
2. Load guardrail settings (defaults if the store is unavailable).
3. Retrieve the most similar document chunks.
4. Build the [Source N] context, the citation list and the prompt.
5. Stream the guarded completion through the response orchestrator.

Steps 1-4 run before the response is opened, so their failures become
ordinary error responses. Step 5 runs in its own task and reports failures
inside the event stream.
"""

import asyncio
import logging
from dataclasses import dataclass

from kb_assistant.core.config import Settings
from kb_assistant.core.errors import InputError, RetrievalError
from kb_assistant.core.telemetry import get_tracer
from kb_assistant.models.chat import ChatRequest
from kb_assistant.services.context import (
    build_messages,
    build_retrieval_context,
    render_system_prompt,
)
from kb_assistant.services.search import Retriever
from kb_assistant.services.settings_store import SettingsStore
from kb_assistant.services.streaming import (
    EventTransport,
    ResponseStreamOrchestrator,
    StreamJob,
    StreamOutcome,
)
from kb_assistant.services.tokens import count_prompt_tokens

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedChat:
    job: StreamJob
    retrieval_count: int


class RAGOrchestrator:
    """Orchestrates retrieval, prompt assembly and response streaming."""

    def __init__(
        self,
        settings: Settings,
        retriever: Retriever,
        settings_store: SettingsStore,
        streamer: ResponseStreamOrchestrator,
    ) -> None:
        self._settings = settings
        self._retriever = retriever
        self._settings_store = settings_store
        self._streamer = streamer
        self._tracer = get_tracer()
        self._tasks: set[asyncio.Task] = set()

    async def prepare(self, request: ChatRequest) -> PreparedChat:
        """
        Run everything that must succeed before the stream opens.

        Raises:
            InputError: if the message is missing or blank.
            RetrievalError: if retrieval fails; no partial context is used.
        """
        with self._tracer.start_as_current_span("rag.prepare") as span:
            question = request.message
            if not question or not question.strip():
                raise InputError("Message is required")

            span.set_attribute("rag.query_length", len(question))
            span.set_attribute("rag.history_length", len(request.conversation_history))
            logger.info("Query: %s", question)

            guardrails = await self._settings_store.get_guardrail_settings()

            try:
                passages = await self._retriever.search(question, self._settings.retrieval_top_k)
            except RetrievalError:
                raise
            except Exception as exc:
                raise RetrievalError(f"Document search failed: {exc}") from exc
            span.set_attribute("rag.retrieval_count", len(passages))

            if not passages:
                logger.warning("No passages retrieved; sending the bare question")

            context = build_retrieval_context(passages)
            messages = build_messages(
                render_system_prompt(guardrails),
                request.conversation_history,
                question,
                context,
            )
            model = self._settings.resolve_model(guardrails.model_id)

            job = StreamJob(
                messages=messages,
                model=model,
                citations=context.citations,
                tokens_in=count_prompt_tokens(messages),
            )
            return PreparedChat(job=job, retrieval_count=len(passages))

    async def stream(self, prepared: PreparedChat, transport: EventTransport) -> StreamOutcome:
        outcome = await self._streamer.run(prepared.job, transport)
        logger.info(
            "Chat stream finished: state=%s, tokens_in=%d, tokens_out=%d, disconnected=%s",
            outcome.state.value,
            outcome.tokens_in,
            outcome.tokens_out,
            outcome.disconnected,
        )
        return outcome

    def start_stream(self, prepared: PreparedChat, transport: EventTransport) -> asyncio.Task:
        """
        Run the stream in a task of its own.

        The task is not tied to the HTTP response, so a client disconnect
        does not cancel it and usage is still recorded.
        """
        task = asyncio.create_task(self.stream(prepared, transport))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight streams, used on shutdown."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
