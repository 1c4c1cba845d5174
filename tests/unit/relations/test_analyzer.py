# tests/unit/relations/test_analyzer.py
"""Tests for relations/analyzer.py: batched passage summaries and concepts."""

from __future__ import annotations

import json
import re

import pytest

from conftest import ScriptedLLM, make_corpus
from passagelink.core.errors import OracleError
from passagelink.core.models import PassageSummary, ProgressEvent
from passagelink.llm.oracle import TextOracle
from passagelink.relations.analyzer import PassageAnalyzer, concept_index

_HEADER_RE = re.compile(r"^--- (\S+) ---$", re.MULTILINE)


def _summaries_for(prompt: str) -> str:
    return json.dumps(
        [
            {
                "passage_id": pid,
                "summary": f"Summary of {pid}.",
                "concepts": ["Light", f"topic {pid}"],
                "key_points": [f"Point of {pid}"],
            }
            for pid in _HEADER_RE.findall(prompt)
        ]
    )


def _analyzer(responder, **kwargs) -> tuple[PassageAnalyzer, ScriptedLLM]:
    llm = ScriptedLLM(responder=responder)
    oracle = TextOracle(llm, timeout_s=5.0, max_retries=0)
    return PassageAnalyzer(oracle, **kwargs), llm


class RecordingSink:
    def __init__(self) -> None:
        self.items: list = []

    async def emit(self, item) -> None:
        self.items.append(item)


class TestBatches:
    def test_small_corpus_single_batch(self):
        analyzer, _ = _analyzer(_summaries_for)
        corpus = make_corpus("a", [f"text {i}" for i in range(10)])
        assert [len(b) for b in analyzer.batches(corpus.passages)] == [10]

    def test_large_corpus_fixed_batches(self):
        analyzer, _ = _analyzer(_summaries_for)
        corpus = make_corpus("a", [f"text {i}" for i in range(23)])
        assert [len(b) for b in analyzer.batches(corpus.passages)] == [5, 5, 5, 5, 3]

    def test_empty(self):
        analyzer, _ = _analyzer(_summaries_for)
        assert analyzer.batches(()) == []

    def test_from_settings(self, settings):
        oracle = TextOracle(ScriptedLLM(), timeout_s=5.0, max_retries=0)
        analyzer = PassageAnalyzer.from_settings(
            oracle, settings.model_copy(update={"analysis_batch_size": 2, "analysis_single_call_limit": 3})
        )
        corpus = make_corpus("a", ["w", "x", "y", "z"])
        assert [len(b) for b in analyzer.batches(corpus.passages)] == [2, 2]


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_single_call_for_small_corpus(self):
        analyzer, llm = _analyzer(_summaries_for)
        corpus = make_corpus("optics", ["Blue sky.", "Red sunsets.", "Prisms."], title="Optics")

        summaries = await analyzer.analyze(corpus)

        assert len(llm.prompts) == 1
        assert [s.passage_id for s in summaries] == ["optics_p0", "optics_p1", "optics_p2"]
        assert all(isinstance(s, PassageSummary) for s in summaries)
        assert summaries[0].corpus_id == "optics"
        assert summaries[0].summary == "Summary of optics_p0."
        assert summaries[0].key_points == ["Point of optics_p0"]

    @pytest.mark.asyncio
    async def test_batches_in_order_with_progress(self):
        analyzer, llm = _analyzer(_summaries_for)
        corpus = make_corpus("big", [f"passage {i}" for i in range(12)])
        sink = RecordingSink()

        summaries = await analyzer.analyze(corpus, progress=sink)

        assert len(llm.prompts) == 3
        assert [s.passage_id for s in summaries] == corpus.passage_ids
        events = [e for e in sink.items if isinstance(e, ProgressEvent)]
        assert [e.stage for e in events] == ["analysis", "analysis", "analysis", "complete"]
        assert [round(e.progress) for e in events] == [33, 67, 100, 100]

    @pytest.mark.asyncio
    async def test_prompt_lists_batch_passages(self):
        analyzer, llm = _analyzer(_summaries_for)
        await analyzer.analyze(make_corpus("a", ["First text.", "Second text."], title="Sky Book"))
        prompt = llm.prompts[0]
        assert "Sky Book" in prompt
        assert "Valid passage ids: a_p0, a_p1" in prompt
        assert "--- a_p1 ---\nSecond text." in prompt

    @pytest.mark.asyncio
    async def test_bad_items_dropped(self):
        def responder(prompt: str) -> str:
            return json.dumps(
                [
                    {"passage_id": "a_p0", "summary": "Kept.", "keyPoints": ["camel case"]},
                    {"passage_id": "a_p0", "summary": "Duplicate."},
                    {"passage_id": "zz_p9", "summary": "Unknown passage."},
                    {"passage_id": "a_p1", "summary": "   "},
                    {"passage_id": "a_p1", "concepts": ["no summary"]},
                ]
            )

        analyzer, _ = _analyzer(responder)
        summaries = await analyzer.analyze(make_corpus("a", ["x", "y"]))

        assert [(s.passage_id, s.summary) for s in summaries] == [("a_p0", "Kept.")]
        assert summaries[0].key_points == ["camel case"]
        assert summaries[0].concepts == []

    @pytest.mark.asyncio
    async def test_fenced_response(self):
        analyzer, _ = _analyzer(lambda p: "Sure!\n```json\n" + _summaries_for(p) + "\n```")
        summaries = await analyzer.analyze(make_corpus("a", ["x"]))
        assert [s.passage_id for s in summaries] == ["a_p0"]

    @pytest.mark.asyncio
    async def test_unparseable_response_yields_nothing(self):
        analyzer, _ = _analyzer(lambda p: "not json at all")
        assert await analyzer.analyze(make_corpus("a", ["x"])) == []

    @pytest.mark.asyncio
    async def test_oracle_failure_propagates(self):
        def responder(prompt: str) -> str:
            raise RuntimeError("provider unavailable")

        analyzer, _ = _analyzer(responder)
        with pytest.raises(OracleError):
            await analyzer.analyze(make_corpus("a", ["x"]))

    @pytest.mark.asyncio
    async def test_empty_corpus_makes_no_call(self):
        analyzer, llm = _analyzer(_summaries_for)
        assert await analyzer.analyze(make_corpus("a", [])) == []
        assert llm.prompts == []


def test_concept_index_merges_case_insensitively():
    summaries = [
        PassageSummary(passage_id="a_p0", corpus_id="a", summary="s", concepts=["Light", "Prism"]),
        PassageSummary(passage_id="a_p1", corpus_id="a", summary="s", concepts=["light", "Light"]),
    ]
    assert concept_index(summaries) == {"Light": ["a_p0", "a_p1"], "Prism": ["a_p0"]}
