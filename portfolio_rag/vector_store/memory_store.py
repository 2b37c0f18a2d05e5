"""
In-memory VectorStore implementation, used for tests and local runs.
"""

from __future__ import annotations

import copy
import itertools
import logging
import threading
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from portfolio_rag.errors import DocumentNotFound
from portfolio_rag.vector_store.base import (
    Document,
    MetadataFilter,
    SearchResult,
    StoreStats,
    VectorStore,
    matches_filter,
    rank_results,
    validate_embedding,
)

logger = logging.getLogger(__name__)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    denominator = np.linalg.norm(a) * np.linalg.norm(b)
    if denominator == 0:
        return 0.0
    return float(np.dot(a, b) / denominator)


class InMemoryVectorStore(VectorStore):
    """Documents live in a dict keyed by id; every read and write holds the lock."""

    def __init__(self, dimension: int | None = None) -> None:
        self.configured_dimension = dimension
        self._dimension = dimension
        self._documents: Dict[str, Tuple[Document, np.ndarray, int]] = {}
        self._sequence = itertools.count()
        self._last_seeded_at: Optional[datetime] = None
        self._lock = threading.RLock()

    def upsert(self, document: Document) -> None:
        self.upsert_documents([document])

    def upsert_documents(self, documents: Sequence[Document]) -> None:
        if not documents:
            return
        with self._lock:
            for doc in documents:
                validate_embedding(doc.embedding, self._dimension)
                if self._dimension is None:
                    self._dimension = len(doc.embedding)
                stored = Document(
                    id=doc.id,
                    content=doc.content,
                    embedding=list(doc.embedding),
                    metadata=copy.deepcopy(doc.metadata),
                )
                vector = np.asarray(stored.embedding, dtype=float)
                self._documents.pop(doc.id, None)
                self._documents[doc.id] = (stored, vector, next(self._sequence))
        logger.debug("Upserted documents in memory", extra={"count": len(documents)})

    def get(self, document_id: str) -> Document:
        with self._lock:
            entry = self._documents.get(document_id)
            if entry is None:
                raise DocumentNotFound(document_id)
            return copy.deepcopy(entry[0])

    def delete(self, document_id: str) -> None:
        with self._lock:
            self._documents.pop(document_id, None)

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()
            self._dimension = self.configured_dimension
            self._last_seeded_at = None
        logger.info("In-memory store cleared")

    def search(
        self,
        query_embedding: Sequence[float],
        threshold: float,
        limit: int,
        metadata_filter: MetadataFilter | None = None,
    ) -> List[SearchResult]:
        if limit <= 0:
            return []
        with self._lock:
            if not self._documents:
                return []
            validate_embedding(query_embedding, self._dimension)
            query = np.asarray(query_embedding, dtype=float)
            candidates = []
            for doc, vector, seq in self._documents.values():
                if not matches_filter(doc.metadata, metadata_filter):
                    continue
                similarity = cosine_similarity(query, vector)
                candidates.append((SearchResult(document=copy.deepcopy(doc), similarity=similarity), seq))
        return rank_results(candidates, threshold=threshold, limit=limit)

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def stats(self) -> StoreStats:
        with self._lock:
            by_type = Counter(str(doc.metadata.get("type") or "unknown") for doc, _, _ in self._documents.values())
            return StoreStats(
                total_documents=len(self._documents),
                by_type=dict(by_type),
                last_seeded_at=self._last_seeded_at,
            )

    def mark_seeded(self, when: datetime) -> None:
        with self._lock:
            self._last_seeded_at = when


__all__ = ["InMemoryVectorStore", "cosine_similarity"]
