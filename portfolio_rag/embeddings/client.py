"""
OpenAI embeddings client.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

import openai
from openai import OpenAI

from portfolio_rag.config import settings
from portfolio_rag.errors import EmbeddingFailure, EmbeddingRateLimited, ValidationError

DEFAULT_EMBEDDING_MODEL = settings.embedding_model_name
DEFAULT_EMBED_BATCH_SIZE = settings.embedding_batch_size
DEFAULT_MAX_CHARS = settings.embedding_max_chars
PROVIDER_NAME = "openai"

logger = logging.getLogger(__name__)


class EmbeddingsClient:
    def __init__(
        self,
        model: str = DEFAULT_EMBEDDING_MODEL,
        batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
        max_chars: int = DEFAULT_MAX_CHARS,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.batch_size = batch_size
        self.max_chars = max_chars
        api_key = settings.openai_api_key.get_secret_value() if settings.openai_api_key else None
        self.client = client or OpenAI(api_key=api_key, timeout=settings.request_timeout_sec)

    def prepare_text(self, text: str) -> str:
        """Trim, reject empty input, and truncate text beyond the provider's input budget."""
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValidationError("Text to embed must not be empty")
        if self.max_chars > 0 and len(cleaned) > self.max_chars:
            logger.warning(
                "Truncating text before embedding",
                extra={"length": len(cleaned), "max_chars": self.max_chars, "model": self.model},
            )
            cleaned = cleaned[: self.max_chars]
        return cleaned

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []

        prepared = [self.prepare_text(t) for t in texts]
        embeddings: List[List[float]] = []
        for i in range(0, len(prepared), self.batch_size):
            batch = prepared[i : i + self.batch_size]
            try:
                response = self.client.embeddings.create(model=self.model, input=batch)
            except openai.RateLimitError as exc:
                raise EmbeddingRateLimited(f"Embedding rate limit exceeded: {exc}", provider_name=PROVIDER_NAME) from exc
            except openai.APIError as exc:
                raise EmbeddingFailure(f"Embedding request failed: {exc}", provider_name=PROVIDER_NAME) from exc

            vectors = [list(item.embedding) for item in response.data]
            if len(vectors) != len(batch) or any(not v for v in vectors):
                raise EmbeddingFailure(
                    f"Embedding response malformed: expected {len(batch)} vectors, got {len(vectors)}",
                    provider_name=PROVIDER_NAME,
                )
            embeddings.extend(vectors)
            logger.debug("Embedded batch", extra={"count": len(batch), "offset": i, "model": self.model})
        return embeddings

    def embed_text(self, text: str) -> List[float]:
        return self.embed_texts([text])[0]


__all__ = ["EmbeddingsClient", "DEFAULT_EMBEDDING_MODEL"]
