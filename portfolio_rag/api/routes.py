from __future__ import annotations

import logging
import secrets
from functools import lru_cache

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse

from portfolio_rag.config import Settings, get_settings
from portfolio_rag.embeddings.client import EmbeddingsClient
from portfolio_rag.errors import PortfolioRAGError, ValidationError
from portfolio_rag.indexing.corpus import CorpusSource, JsonCorpusSource
from portfolio_rag.indexing.pipeline import IndexingService
from portfolio_rag.llm.client import LLMClient
from portfolio_rag.models.schemas import (
    AnswerResponse,
    DocumentResponse,
    ErrorResponse,
    IngestionReportResponse,
    IngestRequest,
    IngestResponse,
    QueryRequest,
    SearchRequest,
    SearchResponse,
    SourceItem,
    StatsResponse,
    StatusResponse,
)
from portfolio_rag.rag.pipeline import RAGService
from portfolio_rag.vector_store import VectorStore, get_vector_store

router = APIRouter()
logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to process your request"


# --- Dependencies ---
@lru_cache
def _shared_vector_store() -> VectorStore:
    return get_vector_store()


def get_store() -> VectorStore:
    return _shared_vector_store()


def get_embeddings_client() -> EmbeddingsClient:
    return EmbeddingsClient()


def get_llm_client() -> LLMClient:
    return LLMClient()


def get_corpus_source(app_settings: Settings = Depends(get_settings)) -> CorpusSource:
    return JsonCorpusSource(app_settings.corpus_path)


def get_rag_service(
    store: VectorStore = Depends(get_store),
    embeddings_client: EmbeddingsClient = Depends(get_embeddings_client),
    llm_client: LLMClient = Depends(get_llm_client),
    app_settings: Settings = Depends(get_settings),
) -> RAGService:
    return RAGService(
        vector_store=store,
        embeddings_client=embeddings_client,
        llm_client=llm_client,
        threshold=app_settings.rag_threshold,
        limit=app_settings.rag_limit,
        owner=app_settings.portfolio_owner,
    )


def get_indexing_service(
    store: VectorStore = Depends(get_store),
    embeddings_client: EmbeddingsClient = Depends(get_embeddings_client),
    corpus_source: CorpusSource = Depends(get_corpus_source),
    app_settings: Settings = Depends(get_settings),
) -> IndexingService:
    return IndexingService(
        store,
        embeddings_client,
        corpus_source=corpus_source,
        chunk_size_chars=app_settings.chunk_size_chars,
        max_attempts=app_settings.ingest_max_attempts,
        backoff_initial_sec=app_settings.ingest_backoff_initial_sec,
        backoff_max_sec=app_settings.ingest_backoff_max_sec,
    )


def require_admin(
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
    app_settings: Settings = Depends(get_settings),
) -> None:
    if not app_settings.admin_token:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin token is not configured",
        )
    if not x_admin_token or not secrets.compare_digest(x_admin_token, app_settings.admin_token.get_secret_value()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


# --- Query surface ---
@router.post(
    "/api/rag",
    response_model=AnswerResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Ask a question about the portfolio",
)
def ask(request: QueryRequest, service: RAGService = Depends(get_rag_service)):
    query = (request.query or "").strip()
    if not query:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Query is required"})

    logger.info("Ask request", extra={"len": len(query)})
    try:
        answer = service.answer_question(query)
    except ValidationError as exc:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": exc.message})
    except PortfolioRAGError as exc:
        logger.error("RAG request failed", extra={"kind": exc.kind, "error": str(exc)})
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": GENERIC_FAILURE})
    return AnswerResponse.from_answer(answer)


@router.post(
    "/api/rag/search",
    response_model=SearchResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Raw similarity search without generation",
)
def search(
    request: SearchRequest,
    service: RAGService = Depends(get_rag_service),
    app_settings: Settings = Depends(get_settings),
):
    query = (request.query or "").strip()
    if not query:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Query is required"})

    threshold = app_settings.search_threshold if request.threshold is None else request.threshold
    limit = request.limit or app_settings.search_limit
    results = service.retrieve_contexts(query, threshold=threshold, limit=limit)
    return SearchResponse(query=query, contexts=[SourceItem.from_result(r) for r in results])


# --- Admin surface ---
@router.post(
    "/admin/vector-db/seed",
    response_model=IngestionReportResponse,
    dependencies=[Depends(require_admin)],
    summary="Seed the store from the portfolio corpus",
)
def admin_seed(service: IndexingService = Depends(get_indexing_service)) -> IngestionReportResponse:
    logger.info("Admin seed requested")
    return IngestionReportResponse.from_report(service.seed())


@router.post(
    "/admin/vector-db/reindex",
    response_model=IngestionReportResponse,
    dependencies=[Depends(require_admin)],
    summary="Clear the store and seed it again",
)
def admin_reindex(service: IndexingService = Depends(get_indexing_service)) -> IngestionReportResponse:
    logger.info("Admin reindex requested")
    return IngestionReportResponse.from_report(service.reindex())


@router.delete(
    "/admin/vector-db",
    response_model=StatusResponse,
    dependencies=[Depends(require_admin)],
    summary="Remove every document",
)
def admin_clear(service: IndexingService = Depends(get_indexing_service)) -> StatusResponse:
    service.clear()
    return StatusResponse(status="cleared")


@router.post(
    "/admin/vector-db/ingest",
    response_model=IngestResponse,
    dependencies=[Depends(require_admin)],
    summary="Index a single ad-hoc document",
)
def admin_ingest(request: IngestRequest, service: IndexingService = Depends(get_indexing_service)) -> IngestResponse:
    document = service.ingest_one(request.content, request.metadata)
    return IngestResponse(id=document.id)


@router.get(
    "/admin/vector-db/records/{document_id}",
    response_model=DocumentResponse,
    dependencies=[Depends(require_admin)],
    summary="Look up a stored document",
)
def admin_get_record(document_id: str, store: VectorStore = Depends(get_store)) -> DocumentResponse:
    return DocumentResponse.from_document(store.get(document_id))


@router.delete(
    "/admin/vector-db/records/{document_id}",
    response_model=StatusResponse,
    dependencies=[Depends(require_admin)],
    summary="Delete one document",
)
def admin_delete_record(document_id: str, service: IndexingService = Depends(get_indexing_service)) -> StatusResponse:
    service.delete_one(document_id)
    return StatusResponse(status="deleted", id=document_id)


@router.get(
    "/admin/vector-db/stats",
    response_model=StatsResponse,
    dependencies=[Depends(require_admin)],
    summary="Document count and last seed time",
)
def admin_stats(store: VectorStore = Depends(get_store)) -> StatsResponse:
    return StatsResponse.from_stats(store.stats())


__all__ = [
    "router",
    "get_store",
    "get_embeddings_client",
    "get_llm_client",
    "get_corpus_source",
    "require_admin",
]
