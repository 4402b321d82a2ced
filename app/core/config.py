"""Configuration management for the AI chat relay."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # OpenAI configuration (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")

    # Environment
    RELAY_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")

    # Chat completion configuration
    CHAT_MODEL: str = Field(default="gpt-4o-mini", description="Model for AI replies")
    CHAT_TEMPERATURE: float = Field(default=0.7, description="Sampling temperature for replies")
    CHAT_MAX_TOKENS: int = Field(default=500, description="Max tokens per AI reply")

    # Retrieval configuration
    RETRIEVAL_TOP_K: int = Field(default=3, description="Knowledge chunks retrieved per query")
    HISTORY_TURNS: int = Field(
        default=10, description="Recent conversation turns sent to the model"
    )
    AI_RESPONSE_TIMEOUT_SECONDS: float | None = Field(
        default=None, description="Per-call timeout for embed/search/complete (unset = none)"
    )

    # Ingestion configuration
    CHUNK_SIZE: int = Field(default=1000, description="Characters per knowledge chunk")
    CHUNK_OVERLAP: int = Field(default=200, description="Characters shared by adjacent chunks")
    MAX_UPLOAD_BYTES: int = Field(default=10_000_000, description="Max resource upload size")

    # Owner identification from the dashboard cookie
    JWT_SECRET: str | None = Field(default=None, description="HS256 secret for auth_token")

    # Administrative listing
    CHAT_LIST_LIMIT: int = Field(default=200, description="Max chats returned by GET /chats")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
