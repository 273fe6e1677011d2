"""
Stream events and their server-sent event wire encoding.

Every event becomes one ``data:`` frame terminated by a blank line.
"""

import json
from dataclasses import dataclass
from typing import Union

from kb_assistant.models.chat import SourceCitation

DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class ContentDelta:
    text: str


@dataclass(frozen=True)
class SourcesPayload:
    sources: tuple[SourceCitation, ...]


@dataclass(frozen=True)
class ErrorEvent:
    message: str


@dataclass(frozen=True)
class Done:
    pass


StreamEvent = Union[ContentDelta, SourcesPayload, ErrorEvent, Done]


def _frame(payload: str) -> str:
    return f"data: {payload}\n\n"


def encode_event(event: StreamEvent) -> str:
    """
    Encode an event as a single SSE frame.

    Raises:
        TypeError, ValueError: if the payload cannot be JSON encoded, or the
            frame is not valid UTF-8 (a lone surrogate, for instance).
    """
    if isinstance(event, ContentDelta):
        body = {"content": event.text}
    elif isinstance(event, SourcesPayload):
        body = {
            "sources": [
                source.model_dump(mode="json", by_alias=True) for source in event.sources
            ]
        }
    elif isinstance(event, ErrorEvent):
        body = {"error": event.message}
    elif isinstance(event, Done):
        return _frame(DONE_SENTINEL)
    else:
        raise TypeError(f"Unsupported stream event: {type(event).__name__}")
    frame = _frame(json.dumps(body, ensure_ascii=False))
    # Raises UnicodeEncodeError here rather than later in the response body.
    frame.encode("utf-8")
    return frame
