"""
Vector store abstractions and factories.
"""

from portfolio_rag.config import settings
from portfolio_rag.vector_store.base import Document, SearchResult, StoreStats, VectorStore
from portfolio_rag.vector_store.chroma_store import ChromaVectorStore
from portfolio_rag.vector_store.memory_store import InMemoryVectorStore

DEFAULT_VECTOR_STORE_BACKEND = settings.vector_store_backend


def get_vector_store(backend: str | None = None) -> VectorStore:
    """
    Factory to obtain the configured VectorStore instance.
    Supports the persistent Chroma backend and the in-memory backend.
    """
    backend = (backend or DEFAULT_VECTOR_STORE_BACKEND).lower()
    if backend == "chroma":
        return ChromaVectorStore(dimension=settings.embedding_dimension)
    if backend == "memory":
        return InMemoryVectorStore(dimension=settings.embedding_dimension)
    raise ValueError(f"Unsupported vector store backend: {backend}")


__all__ = [
    "DEFAULT_VECTOR_STORE_BACKEND",
    "get_vector_store",
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "Document",
    "SearchResult",
    "StoreStats",
    "VectorStore",
]
