"""
Exception hierarchy for the retrieval engine.

    PortfolioRAGError
    +-- ValidationError          missing/empty input, reported as 4xx
    +-- EmbeddingFailure         embedding provider error (retryable by caller)
    +-- GenerationFailure        generation model error
    +-- RateLimited              provider throttled the request
    |   +-- EmbeddingRateLimited     also an EmbeddingFailure
    |   +-- GenerationRateLimited    also a GenerationFailure
    +-- StoreUnavailable         vector store unreachable or failing
    +-- DocumentNotFound         lookup of an id that is not stored
    +-- ConfigurationError
    |   +-- DimensionMismatch    vector length differs from the store's
    +-- PartialIngestionFailure  some items of an ingestion batch failed

Zero search hits is never an error; only I/O failures raise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from portfolio_rag.indexing.pipeline import IngestionReport


class PortfolioRAGError(Exception):
    """Base error; ``provider_name`` names the external service involved, if any."""

    kind = "internal_error"

    def __init__(self, message: str = "An unexpected error occurred", provider_name: str | None = None) -> None:
        self.message = message
        self.provider_name = provider_name
        super().__init__(message)

    def __str__(self) -> str:
        if self.provider_name:
            return f"[{self.provider_name}] {self.message}"
        return self.message


class ValidationError(PortfolioRAGError):
    kind = "validation_error"


class EmbeddingFailure(PortfolioRAGError):
    kind = "embedding_failure"


class GenerationFailure(PortfolioRAGError):
    kind = "generation_failure"


class RateLimited(PortfolioRAGError):
    """Provider throttled the request. Catch this to handle throttling from either provider."""

    kind = "rate_limited"


class EmbeddingRateLimited(RateLimited, EmbeddingFailure):
    pass


class GenerationRateLimited(RateLimited, GenerationFailure):
    pass


class StoreUnavailable(PortfolioRAGError):
    kind = "store_unavailable"


class DocumentNotFound(PortfolioRAGError):
    kind = "not_found"

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class ConfigurationError(PortfolioRAGError):
    kind = "configuration_error"


class DimensionMismatch(ConfigurationError):
    kind = "dimension_mismatch"

    def __init__(self, expected: int, actual: int, provider_name: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension mismatch: store holds {expected}-dim vectors, got {actual}-dim vector. "
            "Re-index the corpus after switching embedding models.",
            provider_name=provider_name,
        )


class PartialIngestionFailure(PortfolioRAGError):
    kind = "partial_ingestion_failure"

    def __init__(self, report: "IngestionReport") -> None:
        self.report = report
        super().__init__(f"{report.failed} of {report.failed + report.succeeded} items failed to ingest")


__all__ = [
    "PortfolioRAGError",
    "ValidationError",
    "EmbeddingFailure",
    "GenerationFailure",
    "RateLimited",
    "EmbeddingRateLimited",
    "GenerationRateLimited",
    "StoreUnavailable",
    "DocumentNotFound",
    "ConfigurationError",
    "DimensionMismatch",
    "PartialIngestionFailure",
]
