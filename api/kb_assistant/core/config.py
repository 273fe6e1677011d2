"""
Configuration module using Pydantic Settings.

Loads provider endpoints, model names and storage locations from environment
variables. Supports .env files for local development.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Completion provider (any OpenAI-compatible endpoint, Cerebras by default)
    llm_base_url: str = "https://api.cerebras.ai/v1"
    llm_api_key: str = ""
    llm_default_model: str = "llama-3.3-70b"
    llm_known_models: str = "llama-3.3-70b,llama3.1-8b,qwen-3-32b,gpt-oss-120b"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 1024

    # Query embeddings (Jina first, OpenAI as fallback)
    jina_api_key: str = ""
    jina_base_url: str = "https://api.jina.ai/v1"
    jina_embedding_model: str = "jina-embeddings-v3"
    openai_api_key: str = ""
    openai_embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 384

    # Azure AI Search
    azure_search_endpoint: str = ""
    azure_search_index_name: str = "document-chunks-idx"
    azure_search_api_key: str = ""
    retrieval_top_k: int = 10

    # Settings and usage storage
    database_url: str = "sqlite:///./data/kb_assistant.db"

    # Application Insights
    applicationinsights_connection_string: str = ""

    # App
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost:3000"

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def known_models(self) -> list[str]:
        return [m.strip() for m in self.llm_known_models.split(",") if m.strip()]

    def resolve_model(self, model_id: str | None) -> str:
        """Return model_id when it is a known model, else the default model."""
        if model_id and model_id in self.known_models:
            return model_id
        return self.llm_default_model


def get_settings() -> Settings:
    """Factory for settings instance."""
    return Settings()
