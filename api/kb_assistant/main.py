"""
FastAPI application entrypoint.

Registers routers and error handlers, configures CORS, initializes
telemetry, and creates service instances on startup.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kb_assistant.core.config import get_settings
from kb_assistant.core.errors import AssistantError, assistant_error_handler
from kb_assistant.core.telemetry import setup_telemetry, shutdown_telemetry
from kb_assistant.db import Database
from kb_assistant.routers import chat, health, settings as settings_router, usage
from kb_assistant.services.completion import CompletionStreamAdapter, create_completion_client
from kb_assistant.services.embeddings import EmbeddingService, providers_from_settings
from kb_assistant.services.rag import RAGOrchestrator
from kb_assistant.services.search import DocumentSearchService
from kb_assistant.services.settings_store import SettingsStore
from kb_assistant.services.streaming import ResponseStreamOrchestrator
from kb_assistant.services.usage_store import UsageStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """
    Application lifespan handler.
    Initializes service clients on startup, cleans up on shutdown.
    """
    settings = get_settings()

    # Configure logging
    logging.basicConfig(level=settings.log_level)

    # Initialize telemetry
    setup_telemetry(settings.applicationinsights_connection_string)

    # Settings and usage storage
    database = Database(settings.database_url)
    database.init_db()
    settings_store = SettingsStore(database)
    usage_store = UsageStore(database)

    # Provider clients
    embeddings = EmbeddingService(providers_from_settings(settings), settings.embedding_dimensions)
    search_service = DocumentSearchService(settings, embeddings)
    completion_client = create_completion_client(settings)
    completion = CompletionStreamAdapter(completion_client, settings)

    streamer = ResponseStreamOrchestrator(completion, usage_store)
    rag_orchestrator = RAGOrchestrator(settings, search_service, settings_store, streamer)

    # Store in app state for dependency injection
    application.state.rag_orchestrator = rag_orchestrator
    application.state.settings_store = settings_store
    application.state.usage_store = usage_store

    logger.info("Knowledge Base Assistant API started (model: %s).", settings.llm_default_model)
    yield
    logger.info("Knowledge Base Assistant API shutting down.")

    await rag_orchestrator.drain()
    await search_service.close()
    await embeddings.close()
    await completion_client.close()
    database.dispose()
    shutdown_telemetry()


app = FastAPI(
    title="Knowledge Base Assistant API",
    description="RAG-powered assistant that answers from uploaded documents with cited sources.",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AssistantError, assistant_error_handler)

# Register routers
app.include_router(health.router)
app.include_router(chat.router)
app.include_router(settings_router.router)
app.include_router(usage.router)
