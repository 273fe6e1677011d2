"""
Error taxonomy for the chat pipeline.

Errors raised before the event stream opens are turned into JSON responses
by the handlers registered in main.py. Errors raised once streaming has
started are reported in-band as an error event.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AssistantError(Exception):
    """Base class for all pipeline errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(AssistantError):
    """The request is missing a usable user message."""

    status_code = status.HTTP_400_BAD_REQUEST


class RetrievalError(AssistantError):
    """Embedding or vector search failed."""

    status_code = status.HTTP_502_BAD_GATEWAY


class ProviderError(AssistantError):
    """The completion provider failed before or during streaming."""

    status_code = status.HTTP_502_BAD_GATEWAY


class PersistenceError(AssistantError):
    """A settings or usage store operation failed."""


class SerializationError(AssistantError):
    """A stream event could not be encoded for the wire."""


class TransportClosedError(AssistantError):
    """The client transport is gone; no more frames can be written."""


async def assistant_error_handler(request: Request, exc: AssistantError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})
