# tests/unit/core/test_core_models.py
"""Tests for core/models.py and core/errors.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from passagelink.core.errors import (
    EmptyCorpusError,
    NotIndexedError,
    OracleError,
    OracleTimeoutError,
    PassageLinkError,
)
from passagelink.core.models import (
    NO_EMBEDDING_SIMILARITY,
    RELATION_TYPES,
    ComparisonConfig,
    ComparisonJob,
    Corpus,
    Passage,
    PassageRelation,
    ProgressEvent,
)


class TestPassageAndCorpus:
    def test_passage_immutable(self):
        p = Passage(id="a_p0", corpus_id="a", text="hello", start=0, end=5)
        with pytest.raises(ValidationError):
            p.text = "changed"  # type: ignore[misc]

    def test_corpus_helpers(self):
        p0 = Passage(id="a_p0", corpus_id="a", text="abcd")
        p1 = Passage(id="a_p1", corpus_id="a", text="ef")
        corpus = Corpus(id="a", title="A", passages=(p0, p1))
        assert corpus.passage_ids == ["a_p0", "a_p1"]
        assert corpus.char_count == 6
        assert corpus.get_passage("a_p1") is p1
        assert corpus.get_passage("missing") is None

    def test_corpus_json_round_trip_keeps_order(self):
        passages = tuple(Passage(id=f"a_p{i}", corpus_id="a", text=str(i)) for i in range(5))
        corpus = Corpus(id="a", title="A", passages=passages)
        restored = Corpus.model_validate_json(corpus.model_dump_json())
        assert restored.passage_ids == corpus.passage_ids


class TestPassageRelation:
    def test_relation_types_closed(self):
        assert set(RELATION_TYPES) == {"supports", "contradicts", "extends", "analogous"}
        with pytest.raises(ValidationError):
            PassageRelation(
                focus_passage_id="a", related_passage_id="b", relation_type="refutes",  # type: ignore[arg-type]
            )

    def test_full_context_sentinel(self):
        r = PassageRelation(
            focus_passage_id="a", related_passage_id="b", relation_type="extends",
            basis="full_context",
        )
        assert r.similarity == NO_EMBEDDING_SIMILARITY
        assert r.has_embedding_basis is False

    def test_embedding_basis(self):
        r = PassageRelation(
            focus_passage_id="a", related_passage_id="b", relation_type="supports",
            similarity=0.8,
        )
        assert r.has_embedding_basis is True


class TestJobAndProgress:
    def test_job_terminal(self):
        job = ComparisonJob(job_id="j", source_corpus_id="a", target_corpus_id="b")
        assert job.status == "pending"
        assert not job.is_terminal
        assert job.model_copy(update={"status": "error"}).is_terminal
        assert job.model_copy(update={"status": "complete"}).is_terminal

    def test_progress_bounds(self):
        with pytest.raises(ValidationError):
            ProgressEvent(stage="retrieval", progress=120, message="x")


class TestComparisonConfig:
    def test_interactive_defaults(self, settings):
        cfg = ComparisonConfig.interactive(settings)
        assert cfg.threshold == 0.75
        assert cfg.top_k == 3
        assert cfg.mode == "interactive"

    def test_interactive_overrides_skip_none(self, settings):
        cfg = ComparisonConfig.interactive(settings, top_k=None, threshold=0.4)
        assert cfg.threshold == 0.4
        assert cfg.top_k == 3

    def test_automatic(self, settings):
        cfg = ComparisonConfig.automatic(settings)
        assert cfg.threshold == 0.5
        assert cfg.top_k == 2
        assert cfg.mode == "automatic"

    def test_automatic_leaves_interactive_untouched(self, settings):
        ComparisonConfig.automatic(settings)
        assert ComparisonConfig.interactive(settings).threshold == 0.75

    def test_top_k_must_be_positive(self):
        with pytest.raises(ValidationError):
            ComparisonConfig(threshold=0.5, top_k=0)


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(OracleTimeoutError, OracleError)
        assert issubclass(NotIndexedError, PassageLinkError)
        assert issubclass(EmptyCorpusError, PassageLinkError)

    def test_messages(self):
        assert "not been indexed" in str(NotIndexedError("a"))
        assert NotIndexedError("a").corpus_id == "a"
        assert str(OracleTimeoutError("LLM request", 180)) == "LLM request timeout after 180s"
