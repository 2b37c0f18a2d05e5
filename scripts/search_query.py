"""
CLI for searching the vector index by a text query.

Example:
    python -m scripts.search_query --query "flight control" --threshold 0.5 --limit 5
"""

from __future__ import annotations

import argparse

from portfolio_rag.config import settings
from portfolio_rag.embeddings.client import EmbeddingsClient
from portfolio_rag.vector_store import get_vector_store


def main() -> None:
    parser = argparse.ArgumentParser(description="Search indexed documents by text query.")
    parser.add_argument("--query", "-q", required=True, help="Query text")
    parser.add_argument("--threshold", type=float, default=settings.search_threshold, help="Minimum similarity")
    parser.add_argument("--limit", type=int, default=settings.search_limit, help="How many results to return")
    parser.add_argument("--type", dest="doc_type", default=None, help="Only return documents of this type")
    parser.add_argument("--snippet", type=int, default=300, help="Snippet length")
    args = parser.parse_args()

    vs = get_vector_store()
    emb = EmbeddingsClient()

    q_vec = emb.embed_text(args.query)
    metadata_filter = {"type": args.doc_type} if args.doc_type else None
    results = vs.search(q_vec, threshold=args.threshold, limit=args.limit, metadata_filter=metadata_filter)

    if not results:
        print("No results")
        return

    for idx, result in enumerate(results, start=1):
        doc = result.document
        snippet = doc.content[: args.snippet].replace("\n", " ")
        print(f"\n#{idx} similarity={result.similarity:.4f} id={doc.id}")
        print("metadata:", doc.metadata)
        print("text:", snippet + ("..." if len(doc.content) > args.snippet else ""))


if __name__ == "__main__":
    main()
