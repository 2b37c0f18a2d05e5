"""
Utility script to show store stats and look up stored documents.

Usage:
    python -m scripts.inspect_index
    python -m scripts.inspect_index --id project-neural-uav-navigation
"""

from __future__ import annotations

import argparse
import json

from portfolio_rag.errors import DocumentNotFound
from portfolio_rag.vector_store import get_vector_store


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect the portfolio vector store.")
    parser.add_argument("--id", dest="doc_ids", action="append", default=[], help="Document id to show")
    parser.add_argument("--snippet", type=int, default=400, help="Snippet length")
    args = parser.parse_args()

    store = get_vector_store()
    stats = store.stats()

    print(f"Total documents: {stats.total_documents}")
    print(f"Last seeded at: {stats.last_seeded_at.isoformat() if stats.last_seeded_at else '<never>'}")
    for doc_type in sorted(stats.by_type):
        print(f"  {doc_type}: {stats.by_type[doc_type]}")

    for doc_id in args.doc_ids:
        try:
            doc = store.get(doc_id)
        except DocumentNotFound:
            print(f"\n{doc_id}: not found")
            continue
        print(f"\n{doc.id} ({len(doc.embedding)}-dim)")
        print("Metadata:", json.dumps(doc.metadata, ensure_ascii=False))
        snippet = doc.content[: args.snippet].replace("\n", " ")
        print("Text:", snippet + ("..." if len(doc.content) > args.snippet else ""))


if __name__ == "__main__":
    main()
