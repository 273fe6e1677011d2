"""
Response streaming orchestrator.

Turns one prepared chat request into one server-sent event stream:

    STARTED -> STREAMING -> (SOURCES_SENT) -> DONE
    STARTED | STREAMING -> ERRORED

Model output passes through the think filter and each clean delta is written
to the transport as soon as it is known. Sources follow the last delta, then
the [DONE] frame. Failures after the stream has opened are reported with a
single error frame. Usage is recorded on every path and the transport is
closed exactly once.
"""

import asyncio
import enum
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Protocol

from kb_assistant.core.errors import (
    AssistantError,
    SerializationError,
    TransportClosedError,
)
from kb_assistant.core.telemetry import get_tracer
from kb_assistant.models.chat import ChatMessage, SourceCitation
from kb_assistant.models.events import (
    ContentDelta,
    Done,
    ErrorEvent,
    SourcesPayload,
    StreamEvent,
    encode_event,
)
from kb_assistant.models.usage import UsageRecord
from kb_assistant.services.think_filter import ThinkTagFilter
from kb_assistant.services.tokens import TokenAccountant
from kb_assistant.services.usage_store import UsageSink

logger = logging.getLogger(__name__)

SERIALIZATION_ERROR_MESSAGE = "Failed to encode response event"

# Pre-encoded so it can be sent even when encoding itself is broken.
SERIALIZATION_ERROR_FRAME = encode_event(ErrorEvent(SERIALIZATION_ERROR_MESSAGE))


class EventTransport(Protocol):
    async def send(self, frame: str) -> None: ...

    async def close(self) -> None: ...


class CompletionSource(Protocol):
    def stream(self, messages: list[ChatMessage], model: str | None = None) -> AsyncIterator[str]: ...


_END_OF_STREAM = object()

DEFAULT_QUEUE_SIZE = 16


class QueueTransport:
    """
    Hands frames from the pipeline task to the HTTP response.

    The response body iterates ``frames()``. If the client goes away the
    iterator is torn down, and every later ``send`` raises
    TransportClosedError.

    The queue is bounded, so ``send`` waits while the reader is behind.
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._disconnected = False

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    async def send(self, frame: str) -> None:
        if self._disconnected:
            raise TransportClosedError("Client disconnected")
        if self._closed:
            raise TransportClosedError("Transport already closed")
        await self._queue.put(frame)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._disconnected:
            return
        await self._queue.put(_END_OF_STREAM)

    async def frames(self) -> AsyncIterator[str]:
        finished = False
        try:
            while True:
                frame = await self._queue.get()
                if frame is _END_OF_STREAM:
                    finished = True
                    return
                yield frame
        finally:
            if not finished:
                self._disconnected = True
                # Wake a sender blocked on a full queue.
                while not self._queue.empty():
                    self._queue.get_nowait()


class StreamState(str, enum.Enum):
    STARTED = "started"
    STREAMING = "streaming"
    SOURCES_SENT = "sources_sent"
    DONE = "done"
    ERRORED = "errored"


@dataclass(frozen=True)
class StreamJob:
    """Everything the orchestrator needs for one request."""

    messages: list[ChatMessage]
    model: str
    citations: tuple[SourceCitation, ...] = field(default_factory=tuple)
    tokens_in: int = 0


@dataclass
class StreamOutcome:
    state: StreamState = StreamState.STARTED
    tokens_in: int = 0
    tokens_out: int = 0
    disconnected: bool = False
    error: str | None = None
    usage_recorded: bool = False


class ResponseStreamOrchestrator:
    """Drives the completion stream, the think filter and the transport."""

    def __init__(self, completion: CompletionSource, usage_sink: UsageSink) -> None:
        self._completion = completion
        self._usage_sink = usage_sink
        self._tracer = get_tracer()

    async def run(self, job: StreamJob, transport: EventTransport) -> StreamOutcome:
        """
        Stream one response to the transport.

        Never raises for pipeline failures: they are reported in-band and
        reflected in the returned outcome.
        """
        outcome = StreamOutcome(tokens_in=job.tokens_in)
        accountant = TokenAccountant(tokens_in=job.tokens_in)
        think_filter = ThinkTagFilter()

        with self._tracer.start_as_current_span("chat.stream") as span:
            span.set_attribute("chat.model", job.model)
            span.set_attribute("chat.citations", len(job.citations))
            try:
                fragments = self._completion.stream(job.messages, job.model)
                async with aclosing(fragments):
                    outcome.state = StreamState.STREAMING
                    async for fragment in fragments:
                        accountant.observe_output(fragment)
                        for delta in think_filter.feed(fragment):
                            await self._emit(transport, ContentDelta(delta))

                residue = think_filter.flush()
                if residue:
                    await self._emit(transport, ContentDelta(residue))

                if job.citations:
                    await self._emit(transport, SourcesPayload(job.citations))
                    outcome.state = StreamState.SOURCES_SENT

                await self._emit(transport, Done())
                outcome.state = StreamState.DONE

            except TransportClosedError:
                logger.warning("Client disconnected mid-stream; abandoning response")
                outcome.disconnected = True
                outcome.state = StreamState.ERRORED

            except SerializationError as exc:
                logger.error("Stream serialization failed: %s", exc)
                outcome.error = SERIALIZATION_ERROR_MESSAGE
                outcome.state = StreamState.ERRORED
                await self._send_error_frame(transport, SERIALIZATION_ERROR_FRAME, outcome)

            except Exception as exc:
                message = exc.message if isinstance(exc, AssistantError) else str(exc)
                logger.error("Streaming error: %s", message, exc_info=True)
                outcome.error = message
                outcome.state = StreamState.ERRORED
                await self._send_error_frame(transport, self._error_frame(message), outcome)

            finally:
                outcome.tokens_out = accountant.tokens_out
                span.set_attribute("chat.tokens_in", outcome.tokens_in)
                span.set_attribute("chat.tokens_out", outcome.tokens_out)
                span.set_attribute("chat.state", outcome.state.value)
                outcome.usage_recorded = await self._record_usage(job.model, accountant)
                await self._close(transport)

        return outcome

    @staticmethod
    async def _emit(transport: EventTransport, event: StreamEvent) -> None:
        try:
            frame = encode_event(event)
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Could not encode {type(event).__name__}: {exc}") from exc
        await transport.send(frame)

    @staticmethod
    def _error_frame(message: str) -> str:
        try:
            return encode_event(ErrorEvent(message))
        except (TypeError, ValueError):
            return SERIALIZATION_ERROR_FRAME

    @staticmethod
    async def _send_error_frame(
        transport: EventTransport, frame: str, outcome: StreamOutcome
    ) -> None:
        try:
            await transport.send(frame)
        except TransportClosedError:
            logger.warning("Client disconnected before the error event could be sent")
            outcome.disconnected = True

    async def _record_usage(self, model: str, accountant: TokenAccountant) -> bool:
        record = UsageRecord(
            model=model,
            tokens_in=accountant.tokens_in,
            tokens_out=accountant.tokens_out,
        )
        try:
            await self._usage_sink.record(record)
        except Exception as exc:
            logger.warning("Failed to log usage: %s", exc)
            return False
        return True

    @staticmethod
    async def _close(transport: EventTransport) -> None:
        try:
            await transport.close()
        except Exception as exc:
            logger.warning("Error while closing transport: %s", exc)
