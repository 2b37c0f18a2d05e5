"""
Application configuration loaded from environment variables.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised application settings."""

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    openai_api_key: SecretStr | None = Field(default=None, alias="OPENAI_API_KEY")
    llm_model_name: str = Field(default="gpt-4o", alias="LLM_MODEL_NAME")
    llm_temperature: float = Field(default=0.7, alias="LLM_TEMPERATURE")
    llm_max_tokens: int = Field(default=500, alias="LLM_MAX_TOKENS")

    embedding_model_name: str = Field(default="text-embedding-3-small", alias="EMBEDDING_MODEL_NAME")
    embedding_dimension: int | None = Field(default=None, alias="EMBEDDING_DIMENSION")
    # text-embedding-3-small accepts 8191 tokens; ~3 chars/token keeps us under it
    embedding_max_chars: int = Field(default=24000, alias="EMBEDDING_MAX_CHARS")
    embedding_batch_size: int = Field(default=64, alias="EMBEDDING_BATCH_SIZE")
    request_timeout_sec: float = Field(default=30.0, alias="REQUEST_TIMEOUT_SEC")

    vector_store_backend: str = Field(default="chroma", alias="VECTOR_STORE_BACKEND")
    vector_store_path: str = Field(default="./data/vector_store", alias="VECTOR_STORE_PATH")
    vector_store_collection: str = Field(default="portfolio_content", alias="VECTOR_STORE_COLLECTION")

    corpus_path: str = Field(default="./data/portfolio_content.json", alias="CORPUS_PATH")
    chunk_size_chars: int = Field(default=1000, alias="CHUNK_SIZE_CHARS")

    rag_threshold: float = Field(default=0.5, alias="RAG_THRESHOLD")
    rag_limit: int = Field(default=5, gt=0, alias="RAG_LIMIT")
    search_threshold: float = Field(default=0.7, alias="SEARCH_THRESHOLD")
    search_limit: int = Field(default=5, gt=0, alias="SEARCH_LIMIT")

    ingest_max_attempts: int = Field(default=4, ge=1, alias="INGEST_MAX_ATTEMPTS")
    ingest_backoff_initial_sec: float = Field(default=1.0, ge=0, alias="INGEST_BACKOFF_INITIAL_SEC")
    ingest_backoff_max_sec: float = Field(default=20.0, ge=0, alias="INGEST_BACKOFF_MAX_SEC")

    portfolio_owner: str = Field(default="the portfolio owner", alias="PORTFOLIO_OWNER")

    admin_token: SecretStr | None = Field(default=None, alias="ADMIN_TOKEN")

    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """
    FastAPI dependency returning the process-wide settings.
    """
    return settings


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure base logging for the app.
    """
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] %(name)s - %(message)s",
    )
    return logging.getLogger("portfolio_rag")


def public_settings() -> Dict[str, Any]:
    """
    Return settings without secrets for safe logging/inspection.
    """
    return settings.model_dump(
        exclude={"openai_api_key", "admin_token"},
        exclude_none=True,
    )


__all__ = ["Settings", "settings", "get_settings", "setup_logging", "public_settings"]
