"""
Indexing pipeline: load corpus, embed each item, and upsert into the vector store.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tqdm import tqdm

from portfolio_rag.config import settings
from portfolio_rag.embeddings.client import EmbeddingsClient
from portfolio_rag.errors import PartialIngestionFailure, PortfolioRAGError, RateLimited, ValidationError
from portfolio_rag.indexing.corpus import (
    CorpusItem,
    CorpusSource,
    JsonCorpusSource,
    RejectedRecord,
    document_id_for,
    split_long_items,
)
from portfolio_rag.vector_store.base import Document, VectorStore

logger = logging.getLogger(__name__)

CUSTOM_ID_PREFIX = "custom"


def _item_label(item: CorpusItem) -> str:
    return item.id or f"{item.type}:{item.slug}"


@dataclass
class IngestionError:
    id: str
    error: str
    kind: str


@dataclass
class IngestionReport:
    succeeded: int = 0
    failed: int = 0
    errors: List[IngestionError] = field(default_factory=list)
    document_ids: List[str] = field(default_factory=list)
    elapsed_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def raise_for_failures(self) -> None:
        if self.failed:
            raise PartialIngestionFailure(self)


class IndexingService:
    """Owns the seed / clear / reindex lifecycle and ad-hoc ingestion."""

    def __init__(
        self,
        vector_store: VectorStore,
        embeddings_client: EmbeddingsClient,
        corpus_source: CorpusSource | None = None,
        chunk_size_chars: int = settings.chunk_size_chars,
        max_attempts: int = settings.ingest_max_attempts,
        backoff_initial_sec: float = settings.ingest_backoff_initial_sec,
        backoff_max_sec: float = settings.ingest_backoff_max_sec,
        show_progress: bool = False,
        logger_: logging.Logger | None = None,
    ) -> None:
        self.vector_store = vector_store
        self.embeddings_client = embeddings_client
        self.corpus_source = corpus_source or JsonCorpusSource()
        self.chunk_size_chars = chunk_size_chars
        self.max_attempts = max_attempts
        self.backoff_initial_sec = backoff_initial_sec
        self.backoff_max_sec = backoff_max_sec
        self.show_progress = show_progress
        self.logger = logger_ or logging.getLogger(__name__)

    # --- Lifecycle ---
    def seed(self, items: Sequence[CorpusItem] | None = None) -> IngestionReport:
        """Ingest the whole corpus. Safe to re-run: ids are stable, so writes are upserts."""
        rejected: Sequence[RejectedRecord] = []
        if items is None:
            items, rejected = self._load_corpus()
        return self._seed(items, rejected)

    def clear(self) -> None:
        self.vector_store.clear()
        self.logger.info("Vector store cleared")

    def reindex(self, items: Sequence[CorpusItem] | None = None) -> IngestionReport:
        """Clear the store, then seed; drops documents whose source left the corpus."""
        rejected: Sequence[RejectedRecord] = []
        if items is None:
            items, rejected = self._load_corpus()
        self.clear()
        return self._seed(items, rejected)

    def _load_corpus(self) -> Tuple[List[CorpusItem], List[RejectedRecord]]:
        items = self.corpus_source.load()
        return items, list(self.corpus_source.rejected)

    def _seed(self, items: Sequence[CorpusItem], rejected: Sequence[RejectedRecord]) -> IngestionReport:
        report = self.ingest_batch(items)
        for record in rejected:
            report.failed += 1
            report.errors.append(IngestionError(id=record.label, error=record.error, kind=record.kind))
        if report.succeeded:
            self.vector_store.mark_seeded(datetime.now(timezone.utc))
        self.logger.info(
            "Seed completed",
            extra={
                "succeeded": report.succeeded,
                "failed": report.failed,
                "elapsed_sec": round(report.elapsed_sec, 2),
            },
        )
        return report

    # --- Batch ---
    def ingest_batch(self, items: Sequence[CorpusItem]) -> IngestionReport:
        """Embed and store each item; long items are chunked, failures are recorded per document."""
        started = time.time()
        report = IngestionReport()

        for item in tqdm(items, desc="Indexing", unit="items", disable=not self.show_progress):
            try:
                chunks = split_long_items([item], max_chars=self.chunk_size_chars)
            except PortfolioRAGError as exc:
                self._record_failure(report, _item_label(item), exc)
                continue

            for chunk in chunks:
                label = _item_label(chunk)
                try:
                    label = document_id_for(chunk)
                    self._ingest_item(label, chunk)
                except PortfolioRAGError as exc:
                    self._record_failure(report, label, exc)
                    continue
                report.succeeded += 1
                report.document_ids.append(label)

        report.elapsed_sec = time.time() - started
        return report

    def _record_failure(self, report: IngestionReport, label: str, exc: PortfolioRAGError) -> None:
        report.failed += 1
        report.errors.append(IngestionError(id=label, error=str(exc), kind=exc.kind))
        self.logger.warning("Item ingestion failed", extra={"id": label, "kind": exc.kind, "error": str(exc)})

    def _ingest_item(self, doc_id: str, item: CorpusItem) -> None:
        embedding = self._embed_with_backoff(item.content)
        metadata: Dict[str, Any] = {**item.metadata, "type": item.type}
        if item.title:
            metadata["title"] = item.title
        self.vector_store.upsert(Document(id=doc_id, content=item.content, embedding=embedding, metadata=metadata))

    def _embed_with_backoff(self, text: str) -> List[float]:
        retrying = Retrying(
            retry=retry_if_exception_type(RateLimited),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_initial_sec, max=self.backoff_max_sec),
            before_sleep=lambda state: self.logger.warning(
                "Embedding rate limited, backing off",
                extra={"attempt": state.attempt_number, "max_attempts": self.max_attempts},
            ),
            reraise=True,
        )
        return retrying(self.embeddings_client.embed_text, text)

    # --- Ad-hoc ---
    def ingest_one(self, content: str, metadata: Mapping[str, Any] | None = None) -> Document:
        """Insert a single document outside the managed corpus under a generated id."""
        text = (content or "").strip()
        if not text:
            raise ValidationError("Content is required")
        embedding = self.embeddings_client.embed_text(text)
        document = Document(
            id=f"{CUSTOM_ID_PREFIX}-{uuid.uuid4().hex}",
            content=text,
            embedding=embedding,
            metadata=dict(metadata or {}),
        )
        self.vector_store.upsert(document)
        self.logger.info("Ingested custom document", extra={"id": document.id})
        return document

    def delete_one(self, document_id: str) -> None:
        self.vector_store.delete(document_id)
        self.logger.info("Deleted document", extra={"id": document_id})


__all__ = ["IndexingService", "IngestionReport", "IngestionError", "CUSTOM_ID_PREFIX"]
