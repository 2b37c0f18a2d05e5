from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field

from portfolio_rag.indexing.pipeline import IngestionReport
from portfolio_rag.rag.pipeline import RAGAnswer
from portfolio_rag.vector_store.base import Document, SearchResult, StoreStats


# RAG
class QueryRequest(BaseModel):
    """Question from the chat widget. Emptiness is checked by the route so it can answer 400."""

    query: str | None = Field(default=None, description="User question")


class SearchRequest(BaseModel):
    """Diagnostic retrieval without generation."""

    query: str | None = Field(default=None, description="Text to search for")
    threshold: float | None = Field(default=None, ge=-1.0, le=1.0, description="Minimum cosine similarity")
    limit: int | None = Field(default=None, gt=0, le=50, description="Maximum number of results")


class SourceItem(BaseModel):
    id: str
    content: str
    metadata: Dict[str, Any]
    similarity: float

    @classmethod
    def from_result(cls, result: SearchResult) -> "SourceItem":
        return cls(
            id=result.document.id,
            content=result.document.content,
            metadata=result.document.metadata,
            similarity=result.similarity,
        )


class AnswerResponse(BaseModel):
    answer: str
    sources: List[SourceItem]

    @classmethod
    def from_answer(cls, answer: RAGAnswer) -> "AnswerResponse":
        return cls(answer=answer.answer, sources=[SourceItem.from_result(r) for r in answer.sources])


class SearchResponse(BaseModel):
    query: str
    contexts: List[SourceItem]


class ErrorResponse(BaseModel):
    error: str


# Admin
class IngestRequest(BaseModel):
    """Ad-hoc document outside the managed corpus."""

    content: str = Field(..., description="Plain text to index")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class IngestResponse(BaseModel):
    id: str


class IngestionErrorItem(BaseModel):
    id: str
    error: str
    kind: str


class IngestionReportResponse(BaseModel):
    """Batch summary; failed items never abort the batch."""

    status: Literal["completed", "partial"]
    succeeded: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    errors: List[IngestionErrorItem]
    document_ids: List[str]
    elapsed_sec: float = Field(..., ge=0)

    @classmethod
    def from_report(cls, report: IngestionReport) -> "IngestionReportResponse":
        return cls(
            status="completed" if report.ok else "partial",
            succeeded=report.succeeded,
            failed=report.failed,
            errors=[IngestionErrorItem(id=e.id, error=e.error, kind=e.kind) for e in report.errors],
            document_ids=report.document_ids,
            elapsed_sec=round(report.elapsed_sec, 2),
        )


class StatusResponse(BaseModel):
    status: Literal["cleared", "deleted"]
    id: str | None = None


class DocumentResponse(BaseModel):
    id: str
    content: str
    metadata: Dict[str, Any]
    dimension: int

    @classmethod
    def from_document(cls, document: Document) -> "DocumentResponse":
        return cls(
            id=document.id,
            content=document.content,
            metadata=document.metadata,
            dimension=len(document.embedding),
        )


class StatsResponse(BaseModel):
    total_documents: int
    by_type: Dict[str, int]
    last_seeded_at: datetime | None = None

    @classmethod
    def from_stats(cls, stats: StoreStats) -> "StatsResponse":
        return cls(
            total_documents=stats.total_documents,
            by_type=stats.by_type,
            last_seeded_at=stats.last_seeded_at,
        )


__all__ = [
    "QueryRequest",
    "SearchRequest",
    "SourceItem",
    "AnswerResponse",
    "SearchResponse",
    "ErrorResponse",
    "IngestRequest",
    "IngestResponse",
    "IngestionReportResponse",
    "StatusResponse",
    "DocumentResponse",
    "StatsResponse",
]
