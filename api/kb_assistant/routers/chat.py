"""
Chat router: POST /chat endpoint.

Receives user questions, runs retrieval, and streams the grounded answer as
server-sent events, ending with the cited sources.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from kb_assistant.models.chat import ChatRequest, ErrorResponse
from kb_assistant.services.rag import RAGOrchestrator
from kb_assistant.services.streaming import QueueTransport

router = APIRouter(tags=["chat"])

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_rag_orchestrator(request: Request) -> RAGOrchestrator:
    """
    Dependency injection for the RAG orchestrator.
    Initialized once in main.py and stored in app.state.
    """
    return request.app.state.rag_orchestrator


@router.post(
    "/chat",
    response_class=StreamingResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def chat(
    request: ChatRequest,
    rag: RAGOrchestrator = Depends(get_rag_orchestrator),
) -> StreamingResponse:
    """
    Ask the assistant a question.

    The endpoint:
    1. Validates the message and retrieves matching document chunks.
    2. Streams the answer as `data: {"content": ...}` frames.
    3. Sends the cited sources, then `data: [DONE]`.
    """
    prepared = await rag.prepare(request)

    transport = QueueTransport()
    rag.start_stream(prepared, transport)

    return StreamingResponse(
        transport.frames(),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )
