"""
Chroma-based VectorStore implementation.

The collection uses cosine distance, so similarity is ``1 - distance``. The
open metadata bag is stored as JSON under ``_metadata_json``; scalar values are
also flattened into the Chroma metadata so ``where`` filters can use them.
"""

from __future__ import annotations

import json
import logging
import math
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import chromadb

from portfolio_rag.config import settings
from portfolio_rag.errors import DocumentNotFound, PortfolioRAGError, StoreUnavailable
from portfolio_rag.vector_store.base import (
    Document,
    MetadataFilter,
    SearchResult,
    StoreStats,
    VectorStore,
    rank_results,
    validate_embedding,
)

CHROMA_COLLECTION = settings.vector_store_collection
CHROMA_PERSIST_DIR = settings.vector_store_path
PROVIDER_NAME = "chromadb"

SEQ_KEY = "_seq"
METADATA_JSON_KEY = "_metadata_json"
CANDIDATE_MULTIPLIER = 2
STATS_PAGE_SIZE = 500
TIE_TOLERANCE = 1e-6

logger = logging.getLogger(__name__)


def _flatten_metadata(metadata: Dict[str, Any], seq: int) -> Dict[str, Any]:
    flat: Dict[str, Any] = {
        key: value
        for key, value in metadata.items()
        if isinstance(value, (str, int, float, bool)) and not key.startswith("_")
    }
    flat[SEQ_KEY] = seq
    flat[METADATA_JSON_KEY] = json.dumps(metadata, ensure_ascii=False, default=str)
    return flat


def _restore_metadata(raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not raw:
        return {}
    encoded = raw.get(METADATA_JSON_KEY)
    if encoded:
        return json.loads(encoded)
    return {k: v for k, v in raw.items() if k not in (SEQ_KEY, METADATA_JSON_KEY)}


def _build_where(metadata_filter: MetadataFilter | None) -> Optional[Dict[str, Any]]:
    if not metadata_filter:
        return None
    clauses = [{key: value} for key, value in metadata_filter.items()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _tie_reaches_cutoff(candidates: Sequence[Tuple[SearchResult, int]], threshold: float, limit: int) -> bool:
    """True when the weakest fetched candidate ties the last result that would be kept."""
    scores = sorted((result.similarity for result, _ in candidates), reverse=True)
    if len(scores) < limit:
        return False
    weakest = scores[-1]
    return weakest >= threshold and math.isclose(weakest, scores[limit - 1], abs_tol=TIE_TOLERANCE)


class ChromaVectorStore(VectorStore):
    def __init__(
        self,
        persist_directory: str | None = None,
        collection_name: str = CHROMA_COLLECTION,
        client: Any | None = None,
        dimension: int | None = None,
    ) -> None:
        self.collection_name = collection_name
        self.configured_dimension = dimension
        self._dimension = dimension
        self._memory_seeded_at: Optional[datetime] = None

        with self._store_errors("connect"):
            if client is not None:
                self.persist_directory = persist_directory
                self.client = client
            else:
                self.persist_directory = persist_directory or CHROMA_PERSIST_DIR
                self.client = chromadb.PersistentClient(
                    path=self.persist_directory,
                    settings=chromadb.config.Settings(anonymized_telemetry=False),
                )
            self.collection = self._open_collection()

        logger.info(
            "ChromaVectorStore initialised",
            extra={"persist_directory": self.persist_directory, "collection": self.collection_name},
        )

    # --- Writes ---
    def upsert(self, document: Document) -> None:
        self.upsert_documents([document])

    def upsert_documents(self, documents: Sequence[Document]) -> None:
        if not documents:
            return

        dimension = self._current_dimension()
        for doc in documents:
            validate_embedding(doc.embedding, dimension, provider_name=PROVIDER_NAME)
            dimension = dimension or len(doc.embedding)

        base_seq = time.time_ns()
        with self._store_errors("upsert"):
            self.collection.upsert(
                ids=[doc.id for doc in documents],
                embeddings=[list(map(float, doc.embedding)) for doc in documents],
                metadatas=[_flatten_metadata(doc.metadata, base_seq + i) for i, doc in enumerate(documents)],
                documents=[doc.content for doc in documents],
            )
        self._dimension = dimension
        logger.info("Upserted documents into Chroma", extra={"count": len(documents), "collection": self.collection_name})

    def delete(self, document_id: str) -> None:
        with self._store_errors("delete"):
            self.collection.delete(ids=[document_id])
        logger.info("Deleted document from Chroma", extra={"id": document_id, "collection": self.collection_name})

    def clear(self) -> None:
        with self._store_errors("clear"):
            self.client.delete_collection(self.collection_name)
            self.collection = self._open_collection()
        self._dimension = self.configured_dimension
        self._write_seed_state(None)
        logger.info("Chroma collection cleared and recreated", extra={"collection": self.collection_name})

    # --- Reads ---
    def get(self, document_id: str) -> Document:
        with self._store_errors("get"):
            result = self.collection.get(ids=[document_id], include=["documents", "metadatas", "embeddings"])

        ids = result.get("ids") or []
        if not ids:
            raise DocumentNotFound(document_id)
        embeddings = result.get("embeddings")
        embedding = [float(v) for v in embeddings[0]] if embeddings is not None and len(embeddings) else []
        return Document(
            id=ids[0],
            content=(result.get("documents") or [""])[0] or "",
            embedding=embedding,
            metadata=_restore_metadata((result.get("metadatas") or [None])[0]),
        )

    def search(
        self,
        query_embedding: Sequence[float],
        threshold: float,
        limit: int,
        metadata_filter: MetadataFilter | None = None,
    ) -> List[SearchResult]:
        if limit <= 0:
            return []

        total = self.count()
        if total == 0:
            return []
        validate_embedding(query_embedding, self._current_dimension(), provider_name=PROVIDER_NAME)

        # Chroma cuts a tie group at n_results arbitrarily; widen until the
        # group straddling the limit is fully fetched so write order decides.
        n_results = min(total, limit * CANDIDATE_MULTIPLIER)
        while True:
            candidates = self._query_candidates(query_embedding, n_results, metadata_filter)
            if n_results >= total or len(candidates) < n_results:
                break
            if not _tie_reaches_cutoff(candidates, threshold=threshold, limit=limit):
                break
            n_results = min(total, n_results * 2)
            logger.debug("Widening Chroma query for tied scores", extra={"n_results": n_results})

        return rank_results(candidates, threshold=threshold, limit=limit)

    def _query_candidates(
        self,
        query_embedding: Sequence[float],
        n_results: int,
        metadata_filter: MetadataFilter | None,
    ) -> List[Tuple[SearchResult, int]]:
        with self._store_errors("search"):
            result = self.collection.query(
                query_embeddings=[list(map(float, query_embedding))],
                n_results=n_results,
                where=_build_where(metadata_filter),
                include=["documents", "metadatas", "distances"],
            )

        ids = (result.get("ids") or [[]])[0] or []
        texts = (result.get("documents") or [[]])[0] or []
        metadatas = (result.get("metadatas") or [[]])[0] or []
        distances = (result.get("distances") or [[]])[0] or []

        candidates = []
        for doc_id, text, raw_meta, distance in zip(ids, texts, metadatas, distances):
            doc = Document(id=doc_id, content=text or "", embedding=[], metadata=_restore_metadata(raw_meta))
            seq = int((raw_meta or {}).get(SEQ_KEY, 0))
            candidates.append((SearchResult(document=doc, similarity=1.0 - float(distance)), seq))
        return candidates

    def count(self) -> int:
        with self._store_errors("count"):
            return self.collection.count()

    def stats(self) -> StoreStats:
        total = self.count()
        by_type: Dict[str, int] = {}
        offset = 0
        while offset < total:
            with self._store_errors("stats"):
                result = self.collection.get(include=["metadatas"], limit=STATS_PAGE_SIZE, offset=offset)
            metas = result.get("metadatas") or []
            if not metas:
                break
            for meta in metas:
                doc_type = str((meta or {}).get("type") or "unknown")
                by_type[doc_type] = by_type.get(doc_type, 0) + 1
            offset += len(metas)

        return StoreStats(total_documents=total, by_type=by_type, last_seeded_at=self._read_seed_state())

    def mark_seeded(self, when: datetime) -> None:
        self._write_seed_state(when)

    # --- Internals ---
    @contextmanager
    def _store_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except PortfolioRAGError:
            raise
        except Exception as exc:
            logger.error(
                "Chroma operation failed",
                extra={"operation": operation, "collection": self.collection_name, "error": str(exc)},
            )
            raise StoreUnavailable(f"Vector store {operation} failed: {exc}", provider_name=PROVIDER_NAME) from exc

    def _open_collection(self):
        return self.client.get_or_create_collection(self.collection_name, metadata={"hnsw:space": "cosine"})

    def _current_dimension(self) -> int | None:
        """Dimension of stored vectors, read from one stored record when not yet known."""
        if self._dimension is not None:
            return self._dimension
        with self._store_errors("peek"):
            if self.collection.count() == 0:
                return None
            sample = self.collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is not None and len(embeddings):
            self._dimension = len(embeddings[0])
        return self._dimension

    def _seed_state_path(self) -> Path | None:
        if not self.persist_directory:
            return None
        return Path(self.persist_directory) / f"{self.collection_name}.seed.json"

    def _read_seed_state(self) -> Optional[datetime]:
        path = self._seed_state_path()
        if path is None:
            return self._memory_seeded_at
        if not path.exists():
            return None
        raw = json.loads(path.read_text(encoding="utf-8")).get("last_seeded_at")
        return datetime.fromisoformat(raw) if raw else None

    def _write_seed_state(self, when: Optional[datetime]) -> None:
        path = self._seed_state_path()
        if path is None:
            self._memory_seeded_at = when
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"last_seeded_at": when.isoformat() if when else None}
        path.write_text(json.dumps(payload), encoding="utf-8")


__all__ = ["ChromaVectorStore", "CHROMA_COLLECTION", "CHROMA_PERSIST_DIR"]
