"""
Smoke test of the RAG pipeline against the configured store.

Example:
    python -m scripts.rag_smoke --question "What flight control projects have you built?"
"""

from __future__ import annotations

import argparse
import logging
import sys

from portfolio_rag.config import setup_logging
from portfolio_rag.embeddings.client import EmbeddingsClient
from portfolio_rag.errors import PortfolioRAGError
from portfolio_rag.llm.client import LLMClient
from portfolio_rag.rag.pipeline import RAGService
from portfolio_rag.vector_store import get_vector_store


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="RAG pipeline smoke test.")
    parser.add_argument("--question", "-q", required=True, help="Question about the portfolio")
    parser.add_argument("--threshold", type=float, default=None, help="Override the similarity threshold")
    parser.add_argument("--limit", type=int, default=None, help="Override the number of context documents")
    return parser.parse_args()


def main() -> None:
    setup_logging()
    logger = logging.getLogger(__name__)
    args = parse_args()

    service = RAGService(
        vector_store=get_vector_store(),
        embeddings_client=EmbeddingsClient(),
        llm_client=LLMClient(),
        logger_=logger,
    )

    try:
        response = service.answer_question(args.question, threshold=args.threshold, limit=args.limit)
    except PortfolioRAGError as exc:
        logger.error("RAG smoke failed (%s): %s", exc.kind, exc)
        sys.exit(1)

    print("\n=== RAG Smoke Result ===")
    print(f"fallback: {response.used_fallback}")
    print(f"answer:\n{response.answer}")
    print("\nSources:")
    if not response.sources:
        print("  <none>")
    for idx, source in enumerate(response.sources, start=1):
        meta = source.document.metadata
        print(f"#{idx} {source.similarity:.3f} id={source.id} type={meta.get('type')} title={meta.get('title')}")


if __name__ == "__main__":
    main()
