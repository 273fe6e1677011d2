"""
Azure AI Search client wrapper.

Implements pure vector search over the document chunk index: the query is
embedded and matched against chunk vectors, best match first.
"""

import logging
from typing import Protocol

from azure.core.credentials import AzureKeyCredential
from azure.identity.aio import DefaultAzureCredential
from azure.search.documents.aio import SearchClient
from azure.search.documents.models import VectorizedQuery

from kb_assistant.core.config import Settings
from kb_assistant.core.errors import RetrievalError
from kb_assistant.core.telemetry import get_tracer
from kb_assistant.models.chat import PassageMetadata, RetrievedPassage
from kb_assistant.services.embeddings import EmbeddingService

logger = logging.getLogger(__name__)

SELECT_FIELDS = ["id", "content", "filename", "chunk_index", "document_id"]


class Retriever(Protocol):
    async def search(self, query: str, top_k: int) -> list[RetrievedPassage]: ...


class DocumentSearchService:
    """Wrapper around Azure AI Search for document chunk retrieval."""

    def __init__(
        self,
        settings: Settings,
        embeddings: EmbeddingService,
        client: SearchClient | None = None,
    ) -> None:
        if client is None:
            if settings.azure_search_api_key:
                credential = AzureKeyCredential(settings.azure_search_api_key)
            else:
                credential = DefaultAzureCredential()
            client = SearchClient(
                endpoint=settings.azure_search_endpoint,
                index_name=settings.azure_search_index_name,
                credential=credential,
            )
        self._client = client
        self._embeddings = embeddings
        self._tracer = get_tracer()

    async def search(self, query: str, top_k: int = 10) -> list[RetrievedPassage]:
        """
        Find the chunks most similar to the query.

        Args:
            query: The user's natural language question.
            top_k: Number of passages to return.

        Returns:
            Passages ordered by descending similarity.

        Raises:
            RetrievalError: if embedding or the search call fails.
        """
        with self._tracer.start_as_current_span("search.vector") as span:
            span.set_attribute("search.top_k", top_k)

            query_vector = await self._embeddings.embed_query(query)
            vector_query = VectorizedQuery(
                vector=query_vector,
                k_nearest_neighbors=top_k,
                fields="content_vector",
            )

            try:
                results = await self._client.search(
                    search_text=None,
                    vector_queries=[vector_query],
                    select=SELECT_FIELDS,
                    top=top_k,
                )
                passages = [self._to_passage(doc) async for doc in results]
            except Exception as exc:
                logger.error("Vector search failed: %s", exc)
                raise RetrievalError(f"Document search failed: {exc}") from exc

            passages.sort(key=lambda p: p.similarity, reverse=True)

            span.set_attribute("search.results_count", len(passages))
            if passages:
                logger.info(
                    "Vector search returned %d results (top: %s, similarity %.3f)",
                    len(passages),
                    passages[0].metadata.filename,
                    passages[0].similarity,
                )
            else:
                logger.info("Vector search returned no results")
            return passages

    @staticmethod
    def _to_passage(doc: dict) -> RetrievedPassage:
        return RetrievedPassage(
            content=doc["content"],
            similarity=doc.get("@search.score", 0.0),
            metadata=PassageMetadata(
                filename=doc.get("filename"),
                chunk_index=doc.get("chunk_index"),
                document_id=doc.get("document_id"),
            ),
        )

    async def close(self) -> None:
        await self._client.close()
