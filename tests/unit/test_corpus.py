"""Unit tests for chunking, corpus records, and document id derivation."""

from __future__ import annotations

import json

import pytest

from portfolio_rag.errors import ValidationError
from portfolio_rag.indexing.chunker import chunk_text
from portfolio_rag.indexing.corpus import (
    CorpusItem,
    JsonCorpusSource,
    StaticCorpusSource,
    document_id_for,
    item_from_record,
    normalize_content,
    split_long_items,
)


class TestChunkText:
    def test_short_text_is_single_chunk(self):
        assert chunk_text("One paragraph.\n\nAnother one.", max_chars=100) == ["One paragraph.\n\nAnother one."]

    def test_paragraphs_packed_up_to_limit(self):
        text = "\n\n".join(["a" * 40, "b" * 40, "c" * 40])

        chunks = chunk_text(text, max_chars=90)

        assert chunks == ["a" * 40 + "\n\n" + "b" * 40, "c" * 40]

    def test_long_paragraph_split_on_sentences(self):
        sentences = [f"Sentence number {i} is here." for i in range(10)]
        chunks = chunk_text(" ".join(sentences), max_chars=60)

        assert all(len(c) <= 60 for c in chunks)
        assert " ".join(chunks) == " ".join(sentences)

    def test_oversized_sentence_is_hard_split(self):
        chunks = chunk_text("word " * 100, max_chars=50)

        assert all(len(c) <= 50 for c in chunks)
        assert sum(c.count("word") for c in chunks) == 100

    def test_blank_text_yields_nothing(self):
        assert chunk_text("  \n\n  ") == []

    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError):
            chunk_text("text", max_chars=0)


class TestDocumentIds:
    def test_typed_items_use_type_and_slug(self):
        item = CorpusItem(type="case_study", slug="Flight Test Telemetry", content="x")

        assert document_id_for(item) == "case-study-flight-test-telemetry"

    def test_explicit_id_wins(self):
        assert document_id_for(CorpusItem(type="project", slug="ignored", content="x", id="p1")) == "p1"

    def test_derivation_is_stable(self):
        item = CorpusItem(type="project", slug="drone-autopilot", content="x")

        assert document_id_for(item) == document_id_for(item) == "project-drone-autopilot"


class TestRecords:
    def test_triple_record_keeps_id_and_metadata(self, autopilot_record):
        item = item_from_record(autopilot_record)

        assert item.id == "p1"
        assert item.type == "project"
        assert item.title == "Autopilot"
        assert item.metadata == {"type": "project", "title": "Autopilot"}
        assert item.content == "Built a drone autopilot using Python and PID control"

    def test_project_record_formatting(self):
        item = item_from_record(
            {
                "type": "project",
                "slug": "drone-autopilot",
                "title": "Autopilot",
                "description": "A drone autopilot.",
                "technologies": ["Python", "MAVLink"],
            }
        )

        assert item.content == "Autopilot\n\nA drone autopilot.\n\nTechnologies: Python, MAVLink"
        assert item.metadata["url"] == "/projects/drone-autopilot"
        assert document_id_for(item) == "project-drone-autopilot"

    def test_case_study_sections(self):
        item = item_from_record(
            {"type": "case_study", "slug": "t", "title": "T", "challenge": "Slow", "results": "Fast"}
        )

        assert item.content == "T\n\nChallenge: Slow\n\nResults: Fast"
        assert item.metadata["url"] == "/case-studies/t"

    def test_skill_record_carries_extra_fields(self):
        item = item_from_record(
            {"type": "skill", "name": "Flight Control", "category": "Aerospace", "proficiency": "Expert"}
        )

        assert item.title == "Flight Control"
        assert item.metadata["category"] == "Aerospace"
        assert item.metadata["url"] == "/skills#flight-control"
        assert document_id_for(item) == "skill-flight-control"

    def test_profile_record_uses_content_and_id_as_slug(self):
        item = item_from_record({"id": "about-me", "type": "profile", "title": "About Me", "content": "  Hi.\n  I build."})

        assert item.content == "Hi.\nI build."
        assert document_id_for(item) == "profile-about-me"

    def test_record_without_content_rejected(self):
        with pytest.raises(ValidationError):
            item_from_record({"type": "profile", "slug": "empty", "content": "   "})

    def test_triple_without_type_rejected(self):
        with pytest.raises(ValidationError):
            item_from_record({"id": "x", "content": "text", "metadata": {}})

    def test_normalize_content_keeps_paragraphs(self):
        assert normalize_content("  a\n\n\n\n  b  ") == "a\n\nb"


class TestSplitLongItems:
    def test_short_items_untouched(self):
        item = CorpusItem(type="project", slug="s", content="short")

        assert split_long_items([item], max_chars=100) == [item]

    def test_long_item_becomes_stable_chunk_ids(self):
        item = CorpusItem(type="blog", slug="post", content="\n\n".join(["x" * 30, "y" * 30, "z" * 30]), title="Post")

        chunks = split_long_items([item], max_chars=40)

        assert [document_id_for(c) for c in chunks] == ["blog-post", "blog-post-chunk-1", "blog-post-chunk-2"]
        assert [c.metadata["chunk_index"] for c in chunks] == [0, 1, 2]
        assert all(c.metadata["source_id"] == "blog-post" for c in chunks)
        assert all(c.title == "Post" for c in chunks)

    def test_explicit_ids_get_chunk_suffix(self):
        item = CorpusItem(type="project", slug="p1", content="a" * 30 + "\n\n" + "b" * 30, id="p1")

        assert [document_id_for(c) for c in split_long_items([item], max_chars=40)] == ["p1", "p1-chunk-1"]


class TestSources:
    def test_json_source_reads_list_or_items(self, tmp_path, portfolio_records):
        as_list = tmp_path / "list.json"
        as_list.write_text(json.dumps(portfolio_records), encoding="utf-8")
        wrapped = tmp_path / "wrapped.json"
        wrapped.write_text(json.dumps({"items": portfolio_records}), encoding="utf-8")

        from_list = JsonCorpusSource(as_list).load()
        from_wrapped = JsonCorpusSource(wrapped).load()

        assert [document_id_for(i) for i in from_list] == [
            "p1",
            "project-quantum-optimizer",
            "blog-neural-notes",
            "skill-flight-control",
        ]
        assert from_list == from_wrapped

    def test_json_source_skips_malformed_records(self, tmp_path, autopilot_record):
        path = tmp_path / "corpus.json"
        records = [
            {"type": "project", "title": "???", "description": "Symbols only title."},
            autopilot_record,
            {"type": "skill", "slug": "blank"},
        ]
        path.write_text(json.dumps(records), encoding="utf-8")
        source = JsonCorpusSource(path)

        items = source.load()

        assert [i.id for i in items] == ["p1"]
        assert [r.label for r in source.rejected] == ["???", "blank"]
        assert all(r.kind == "validation_error" for r in source.rejected)

    def test_static_source_accepts_items_and_records(self, autopilot_record):
        item = CorpusItem(type="skill", slug="python", content="Python")

        loaded = StaticCorpusSource([item, autopilot_record]).load()

        assert loaded[0] is item
        assert loaded[1].id == "p1"

    def test_bundled_corpus_loads(self):
        from pathlib import Path

        path = Path(__file__).resolve().parents[2] / "data" / "portfolio_content.json"
        items = JsonCorpusSource(path).load()

        ids = [document_id_for(i) for i in items]
        assert len(ids) == len(set(ids))
        assert "project-drone-autopilot" in ids
