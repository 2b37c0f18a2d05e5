"""
Portfolio corpus: source records, content formatting, and document id derivation.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Protocol, Sequence

from portfolio_rag.config import settings
from portfolio_rag.errors import ValidationError
from portfolio_rag.indexing.chunker import chunk_text

CORPUS_PATH = settings.corpus_path

URL_PREFIXES: Dict[str, str] = {
    "project": "/projects/",
    "blog": "/blog/",
    "case_study": "/case-studies/",
    "skill": "/skills#",
}

logger = logging.getLogger(__name__)


@dataclass
class CorpusItem:
    type: str
    slug: str
    content: str
    title: str | None = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    # caller-fixed document id; when unset the id is "<type>-<slug>"
    id: str | None = None


@dataclass
class RejectedRecord:
    """A source record that could not be turned into a corpus item."""

    label: str
    error: str
    kind: str


class CorpusSource(Protocol):
    # records skipped by the most recent load()
    rejected: List[RejectedRecord]

    def load(self) -> List[CorpusItem]:
        ...


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", str(value).lower()).strip("-")
    if not slug:
        raise ValidationError(f"Cannot derive a slug from {value!r}")
    return slug


def document_id_for(item: CorpusItem) -> str:
    """
    Stable document id for a corpus item.

    This is the single place ids are derived, so re-ingesting the same item
    always upserts the same record.
    """
    if item.id:
        return item.id
    return f"{slugify(item.type)}-{slugify(item.slug)}"


def normalize_content(text: str) -> str:
    """Strip per-line indentation while keeping blank-line paragraph breaks."""
    lines = [line.strip() for line in (text or "").splitlines()]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


def _join_sections(*sections: str) -> str:
    return "\n\n".join(s for s in sections if s and s.strip())


def _labelled(label: str, value: Any) -> str:
    return f"{label}: {value}" if value else ""


def _format_project(record: Mapping[str, Any]) -> str:
    technologies = record.get("technologies") or ""
    if isinstance(technologies, (list, tuple)):
        technologies = ", ".join(str(t) for t in technologies)
    return _join_sections(
        record.get("title", ""),
        record.get("description", ""),
        record.get("long_description", ""),
        _labelled("Technologies", technologies),
    )


def _format_blog(record: Mapping[str, Any]) -> str:
    return _join_sections(record.get("title", ""), record.get("excerpt", ""), record.get("content", ""))


def _format_case_study(record: Mapping[str, Any]) -> str:
    return _join_sections(
        record.get("title", ""),
        record.get("summary", ""),
        _labelled("Challenge", record.get("challenge")),
        _labelled("Approach", record.get("approach")),
        _labelled("Results", record.get("results")),
    )


def _format_skill(record: Mapping[str, Any]) -> str:
    return _join_sections(
        record.get("name") or record.get("title", ""),
        _labelled("Category", record.get("category")),
        _labelled("Proficiency", record.get("proficiency")),
        record.get("description", ""),
    )


FORMATTERS: Dict[str, Callable[[Mapping[str, Any]], str]] = {
    "project": _format_project,
    "blog": _format_blog,
    "case_study": _format_case_study,
    "skill": _format_skill,
}

# keys consumed by the formatters; anything else is carried into metadata
_CONTENT_KEYS = {
    "id", "type", "slug", "title", "name", "content", "metadata", "description",
    "long_description", "technologies", "excerpt", "summary", "challenge", "approach", "results",
}


def _item_from_triple(record: Mapping[str, Any]) -> CorpusItem:
    metadata = dict(record.get("metadata") or {})
    doc_id = record.get("id")
    if not doc_id:
        raise ValidationError(f"Corpus record has no id: {dict(record)!r}")
    doc_type = metadata.get("type")
    if not doc_type:
        raise ValidationError(f"Corpus record {doc_id!r} is missing metadata.type")
    content = normalize_content(record.get("content", ""))
    if not content:
        raise ValidationError(f"Corpus record {doc_id!r} has no content")
    return CorpusItem(
        type=doc_type,
        slug=str(metadata.get("slug") or doc_id),
        content=content,
        title=metadata.get("title"),
        metadata=metadata,
        id=str(doc_id),
    )


def item_from_record(record: Mapping[str, Any]) -> CorpusItem:
    """
    Build a CorpusItem from either an ``{id, content, metadata}`` triple or a
    typed portfolio record (project, blog, case_study, skill, profile, ...).

    Triples keep their id verbatim. Typed records get their content assembled
    from the type's fields, a ``url`` and ``slug`` in metadata, and the id
    ``<type>-<slug>``.
    """
    if "type" not in record:
        return _item_from_triple(record)

    doc_type = record["type"]
    metadata = dict(record.get("metadata") or {})
    title = record.get("title") or record.get("name") or metadata.get("title")
    slug = record.get("slug") or metadata.get("slug") or record.get("id") or title
    if not slug:
        raise ValidationError(f"Corpus record has no slug, id, or title: {dict(record)!r}")

    formatter = FORMATTERS.get(doc_type)
    content = normalize_content(formatter(record) if formatter else record.get("content", ""))
    if not content:
        raise ValidationError(f"Corpus record {slug!r} has no content")

    for key, value in record.items():
        if key not in _CONTENT_KEYS and value is not None:
            metadata.setdefault(key, value)

    prefix = URL_PREFIXES.get(doc_type)
    if prefix and "url" not in metadata:
        metadata["url"] = f"{prefix}{slugify(slug)}"
    metadata.setdefault("slug", slugify(slug))

    return CorpusItem(type=doc_type, slug=str(slug), content=content, title=title, metadata=metadata)


def split_long_items(items: Iterable[CorpusItem], max_chars: int = settings.chunk_size_chars) -> List[CorpusItem]:
    """
    Split items whose content exceeds ``max_chars``.

    The first chunk keeps the item's own id; chunk ``k`` gets slug
    ``<slug>-chunk-<k>`` so each chunk is still one stable document id.
    """
    expanded: List[CorpusItem] = []
    for item in items:
        chunks = chunk_text(item.content, max_chars=max_chars)
        if len(chunks) <= 1:
            expanded.append(item)
            continue
        base_id = document_id_for(item)
        for index, chunk in enumerate(chunks):
            metadata = {**item.metadata, "chunk_index": index, "source_id": base_id}
            if index == 0:
                expanded.append(replace(item, content=chunk, metadata=metadata))
            else:
                expanded.append(
                    replace(
                        item,
                        slug=f"{item.slug}-chunk-{index}",
                        id=f"{item.id}-chunk-{index}" if item.id else None,
                        content=chunk,
                        metadata=metadata,
                    )
                )
    return expanded


def record_label(record: Mapping[str, Any], index: int) -> str:
    for key in ("id", "slug", "title", "name"):
        if record.get(key):
            return str(record[key])
    return f"record-{index}"


def items_from_records(
    records: Sequence[Mapping[str, Any] | CorpusItem],
) -> tuple[List[CorpusItem], List[RejectedRecord]]:
    """Convert records one by one; a malformed record is rejected without dropping the rest."""
    items: List[CorpusItem] = []
    rejected: List[RejectedRecord] = []
    for index, record in enumerate(records):
        if isinstance(record, CorpusItem):
            items.append(record)
            continue
        if not isinstance(record, Mapping):
            rejected.append(
                RejectedRecord(label=f"record-{index}", error="Corpus record must be an object", kind=ValidationError.kind)
            )
            logger.warning("Skipping corpus record", extra={"record": f"record-{index}", "error": "not an object"})
            continue
        try:
            items.append(item_from_record(record))
        except ValidationError as exc:
            label = record_label(record, index)
            rejected.append(RejectedRecord(label=label, error=str(exc), kind=exc.kind))
            logger.warning("Skipping corpus record", extra={"record": label, "error": str(exc)})
    return items, rejected


class StaticCorpusSource:
    """Corpus held in memory, built from records or ready items."""

    def __init__(self, records: Sequence[Mapping[str, Any] | CorpusItem]) -> None:
        self.records = list(records)
        self.rejected: List[RejectedRecord] = []

    def load(self) -> List[CorpusItem]:
        items, self.rejected = items_from_records(self.records)
        return items


class JsonCorpusSource:
    """Corpus read from a JSON file holding a list of records (or ``{"items": [...]}``)."""

    def __init__(self, path: str | Path = CORPUS_PATH) -> None:
        self.path = Path(path)
        self.rejected: List[RejectedRecord] = []

    def load(self) -> List[CorpusItem]:
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        records = payload.get("items", []) if isinstance(payload, dict) else payload
        items, self.rejected = items_from_records(records)
        logger.info(
            "Loaded corpus",
            extra={"path": str(self.path), "items": len(items), "rejected": len(self.rejected)},
        )
        return items


__all__ = [
    "CorpusItem",
    "CorpusSource",
    "RejectedRecord",
    "StaticCorpusSource",
    "JsonCorpusSource",
    "document_id_for",
    "item_from_record",
    "items_from_records",
    "normalize_content",
    "slugify",
    "split_long_items",
]
