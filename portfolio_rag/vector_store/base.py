"""
Vector store interface and shared types.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from portfolio_rag.errors import DimensionMismatch, ValidationError

MetadataFilter = Mapping[str, Any]


@dataclass
class Document:
    id: str
    content: str
    embedding: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchResult:
    document: Document
    similarity: float

    @property
    def id(self) -> str:
        return self.document.id


@dataclass
class StoreStats:
    total_documents: int
    by_type: Dict[str, int]
    last_seeded_at: Optional[datetime] = None


class VectorStore(Protocol):
    def upsert(self, document: Document) -> None:
        ...

    def upsert_documents(self, documents: Sequence[Document]) -> None:
        ...

    def get(self, document_id: str) -> Document:
        ...

    def delete(self, document_id: str) -> None:
        ...

    def clear(self) -> None:
        ...

    def search(
        self,
        query_embedding: Sequence[float],
        threshold: float,
        limit: int,
        metadata_filter: MetadataFilter | None = None,
    ) -> List[SearchResult]:
        ...

    def count(self) -> int:
        ...

    def stats(self) -> StoreStats:
        ...

    def mark_seeded(self, when: datetime) -> None:
        ...


def validate_embedding(embedding: Sequence[float], expected_dim: int | None, provider_name: str | None = None) -> None:
    """
    Reject empty or zero-norm vectors and vectors whose length differs from the store's.
    """
    if not embedding:
        raise ValidationError("Embedding must not be empty", provider_name=provider_name)
    if expected_dim is not None and len(embedding) != expected_dim:
        raise DimensionMismatch(expected_dim, len(embedding), provider_name=provider_name)
    if not any(math.isfinite(v) and v != 0.0 for v in embedding):
        raise ValidationError("Embedding must have a non-zero norm", provider_name=provider_name)


def matches_filter(metadata: Mapping[str, Any], metadata_filter: MetadataFilter | None) -> bool:
    if not metadata_filter:
        return True
    return all(metadata.get(key) == value for key, value in metadata_filter.items())


def rank_results(candidates: Sequence[tuple[SearchResult, int]], threshold: float, limit: int) -> List[SearchResult]:
    """
    Keep results at or above ``threshold``, order by similarity descending with
    ties broken by write sequence (earlier first), and cut to ``limit``.
    """
    if limit <= 0:
        return []
    kept = [(result, seq) for result, seq in candidates if result.similarity >= threshold]
    kept.sort(key=lambda pair: (-pair[0].similarity, pair[1]))
    return [result for result, _ in kept[:limit]]


__all__ = [
    "Document",
    "SearchResult",
    "StoreStats",
    "VectorStore",
    "MetadataFilter",
    "validate_embedding",
    "matches_filter",
    "rank_results",
]
