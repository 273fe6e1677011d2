"""
Pydantic models for the Chat API request contract and retrieval results.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """A single message in the conversation sent to the model."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"] = Field(
        ..., description="Message role: 'system', 'user' or 'assistant'"
    )
    content: str = Field(..., description="Message content")


class ChatRequest(BaseModel):
    """Request body for the POST /chat endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field("", description="The user's question")
    conversation_history: list[ChatMessage] = Field(
        default_factory=list,
        alias="conversationHistory",
        description="Prior turns supplied by the caller, oldest first",
    )


class PassageMetadata(BaseModel):
    """Where a retrieved chunk came from."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    filename: str | None = None
    chunk_index: int | None = Field(None, alias="chunkIndex")
    document_id: str | None = Field(None, alias="documentId")


class RetrievedPassage(BaseModel):
    """A chunk returned by vector search, ranked by similarity."""

    model_config = ConfigDict(frozen=True)

    content: str
    similarity: float = 0.0
    metadata: PassageMetadata = Field(default_factory=PassageMetadata)


class SourceCitation(BaseModel):
    """A numbered source, matching the [Source N] label given to the model."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    index: int = Field(..., description="1-based citation index")
    filename: str = Field("Unknown", description="Source document filename")
    chunk_index: int | None = Field(None, alias="chunkIndex")


class ErrorResponse(BaseModel):
    """Body returned when a request fails before streaming starts."""

    error: str
