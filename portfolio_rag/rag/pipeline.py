"""
RAG pipeline: normalize question, embed, retrieve context, answer with the LLM.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from portfolio_rag.config import settings
from portfolio_rag.embeddings.client import EmbeddingsClient
from portfolio_rag.errors import GenerationFailure, ValidationError
from portfolio_rag.llm.client import LLMClient
from portfolio_rag.vector_store.base import SearchResult, VectorStore

logger = logging.getLogger(__name__)

FALLBACK_ANSWER = (
    "I don't have specific information about that in my knowledge base. "
    "Could you ask something else about the portfolio, projects, or skills?"
)


@dataclass
class RAGAnswer:
    answer: str
    sources: List[SearchResult] = field(default_factory=list)
    used_fallback: bool = False


class RAGService:
    """Answers questions about the portfolio from retrieved context only."""

    def __init__(
        self,
        vector_store: VectorStore,
        embeddings_client: EmbeddingsClient,
        llm_client: LLMClient,
        threshold: float = settings.rag_threshold,
        limit: int = settings.rag_limit,
        owner: str = settings.portfolio_owner,
        logger_: logging.Logger | None = None,
        request_id: str | None = None,
    ) -> None:
        self.vector_store = vector_store
        self.embeddings_client = embeddings_client
        self.llm_client = llm_client
        self.threshold = threshold
        self.limit = limit
        self.owner = owner
        self.logger = logger_ or logging.getLogger(__name__)
        self.request_id = request_id

    # --- Public API ---
    def answer_question(self, query: str, threshold: float | None = None, limit: int | None = None) -> RAGAnswer:
        question = self.normalize_question(query)
        results = self.retrieve_contexts(question, threshold=threshold, limit=limit)

        if not results:
            self.logger.info("No relevant context, returning fallback", extra={"request_id": self.request_id})
            return RAGAnswer(answer=FALLBACK_ANSWER, sources=[], used_fallback=True)

        messages = self._build_messages(question=question, context=self.build_context(results))
        answer = self.llm_client.chat(messages).strip()
        if not answer:
            raise GenerationFailure("Generation model returned an empty answer")

        self.logger.info(
            "Answered question",
            extra={"request_id": self.request_id, "sources": [r.id for r in results]},
        )
        return RAGAnswer(answer=answer, sources=list(results))

    def retrieve_contexts(
        self, query: str, threshold: float | None = None, limit: int | None = None
    ) -> List[SearchResult]:
        question = self.normalize_question(query)
        threshold = self.threshold if threshold is None else threshold
        limit = self.limit if limit is None else limit

        embedding = self.embeddings_client.embed_text(question)
        results = self.vector_store.search(embedding, threshold=threshold, limit=limit)
        self.logger.info(
            "Retrieved contexts",
            extra={
                "threshold": threshold,
                "limit": limit,
                "returned": len(results),
                "top_score": round(results[0].similarity, 3) if results else None,
                "request_id": self.request_id,
            },
        )
        return results

    # --- Steps ---
    @staticmethod
    def normalize_question(text: str) -> str:
        """Trim and collapse whitespace; an empty question is rejected."""
        normalized = " ".join((text or "").split())
        if not normalized:
            raise ValidationError("Query is required")
        return normalized

    @staticmethod
    def format_header(metadata: Dict[str, object]) -> str:
        type_info = f"[{metadata['type']}]" if metadata.get("type") else ""
        title_info = f'"{metadata["title"]}"' if metadata.get("title") else ""
        return " ".join(part for part in (type_info, title_info) if part)

    def build_context(self, results: Sequence[SearchResult]) -> str:
        fragments = []
        for result in results:
            header = self.format_header(result.document.metadata)
            fragments.append(f"{header}:\n{result.document.content}" if header else result.document.content)
        return "\n\n".join(fragments)

    def _build_messages(self, question: str, context: str) -> List[dict]:
        system_message = {
            "role": "system",
            "content": (
                f"You are an AI assistant for {self.owner}'s portfolio website. "
                "Answer questions about projects, skills, experience, and writing using only the provided context. "
                "If the context does not contain the answer, say you don't have that specific information "
                "instead of making something up. Keep a professional, friendly tone and be concise."
            ),
        }
        user_message = {
            "role": "user",
            "content": "\n".join(
                [
                    "Context information is below.",
                    "---------------------",
                    context,
                    "---------------------",
                    f"Given the context information and not prior knowledge, answer the question: {question}",
                ]
            ),
        }
        return [system_message, user_message]


__all__ = ["RAGService", "RAGAnswer", "FALLBACK_ANSWER"]
