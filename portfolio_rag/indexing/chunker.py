"""
Text chunking utilities.
"""

from __future__ import annotations

import re
from typing import List

from portfolio_rag.config import settings

CHUNK_SIZE_CHARS = settings.chunk_size_chars

PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def _split_paragraphs(text: str) -> List[str]:
    """
    Split text on blank lines, dropping empty paragraphs.
    """
    return [p.strip() for p in PARAGRAPH_SPLIT.split(text) if p.strip()]


def _hard_split(piece: str, max_chars: int) -> List[str]:
    # a single sentence longer than the budget is cut on whitespace where possible
    parts: List[str] = []
    remaining = piece
    while len(remaining) > max_chars:
        cut = remaining.rfind(" ", 0, max_chars + 1)
        if cut <= 0:
            cut = max_chars
        parts.append(remaining[:cut].strip())
        remaining = remaining[cut:].strip()
    if remaining:
        parts.append(remaining)
    return parts


def chunk_text(text: str, max_chars: int = CHUNK_SIZE_CHARS) -> List[str]:
    """
    Pack paragraphs into chunks of at most ``max_chars``.

    Paragraphs are kept whole when they fit; longer paragraphs are broken into
    sentences. Paragraphs inside one chunk are joined by a blank line,
    sentences by a single space.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")

    chunks: List[str] = []
    current = ""

    def flush() -> None:
        nonlocal current
        if current.strip():
            chunks.append(current.strip())
        current = ""

    for paragraph in _split_paragraphs(text):
        if len(paragraph) <= max_chars:
            separator = "\n\n" if current else ""
            if len(current) + len(separator) + len(paragraph) > max_chars:
                flush()
                separator = ""
            current += separator + paragraph
            continue

        for sentence in SENTENCE_SPLIT.split(paragraph):
            for piece in _hard_split(sentence.strip(), max_chars):
                separator = " " if current else ""
                if len(current) + len(separator) + len(piece) > max_chars:
                    flush()
                    separator = ""
                current += separator + piece

    flush()
    return chunks


__all__ = ["chunk_text", "CHUNK_SIZE_CHARS"]
