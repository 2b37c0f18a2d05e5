"""
CLI for seeding, clearing, or fully re-indexing the portfolio corpus.

Example:
    python -m scripts.seed_corpus seed
    python -m scripts.seed_corpus reindex --corpus data/portfolio_content.json
"""

from __future__ import annotations

import argparse
import logging
import sys

from portfolio_rag.config import settings, setup_logging
from portfolio_rag.embeddings.client import EmbeddingsClient
from portfolio_rag.errors import PartialIngestionFailure, PortfolioRAGError
from portfolio_rag.indexing.corpus import JsonCorpusSource
from portfolio_rag.indexing.pipeline import IndexingService
from portfolio_rag.vector_store import get_vector_store


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage the portfolio vector store.")
    parser.add_argument("action", choices=["seed", "clear", "reindex"], help="Lifecycle action to run.")
    parser.add_argument("--corpus", default=settings.corpus_path, help="Path to the corpus JSON file.")
    parser.add_argument("--backend", default=None, help="Vector store backend (chroma or memory).")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit non-zero if any item fails to ingest.",
    )
    return parser.parse_args()


def main() -> None:
    setup_logging()
    logger = logging.getLogger(__name__)
    args = parse_args()

    service = IndexingService(
        get_vector_store(args.backend),
        EmbeddingsClient(),
        corpus_source=JsonCorpusSource(args.corpus),
        show_progress=True,
        logger_=logger,
    )

    try:
        if args.action == "clear":
            service.clear()
            print("Vector store cleared")
            return
        report = service.reindex() if args.action == "reindex" else service.seed()
        print(f"Indexed: {report.succeeded}, failed: {report.failed} (elapsed {report.elapsed_sec:.2f}s)")
        for error in report.errors:
            print(f"  {error.id}: [{error.kind}] {error.error}")
        if args.strict:
            report.raise_for_failures()
    except PartialIngestionFailure as exc:
        logger.error("Seed finished with failures: %s", exc)
        sys.exit(2)
    except PortfolioRAGError:
        logger.exception("%s failed", args.action.capitalize())
        sys.exit(1)


if __name__ == "__main__":
    main()
