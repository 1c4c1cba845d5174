# tests/unit/storage/test_stores.py
"""Tests for storage/: memory and JSON corpus, relation and summary stores."""

from __future__ import annotations

import pytest

from conftest import make_corpus
from passagelink.core.errors import CorpusNotFoundError
from passagelink.core.models import PassageRelation, PassageSummary
from passagelink.storage.json_store import JsonCorpusStore, JsonRelationStore, JsonSummaryStore
from passagelink.storage.memory_store import (
    MemoryCorpusStore,
    MemoryRelationStore,
    MemorySummaryStore,
)
from passagelink.storage.store_factory import (
    create_corpus_store,
    create_relation_store,
    create_summary_store,
)


def _relations():
    return {
        "a_p0": [
            PassageRelation(
                focus_passage_id="a_p0",
                related_passage_id="b_p1",
                relation_type="extends",
                evidence="Adds detail.",
                similarity=0.82,
            )
        ]
    }


@pytest.fixture(params=["memory", "json"])
def corpus_store(request, tmp_path):
    if request.param == "memory":
        return MemoryCorpusStore()
    return JsonCorpusStore(tmp_path)


@pytest.fixture(params=["memory", "json"])
def relation_store(request, tmp_path):
    if request.param == "memory":
        return MemoryRelationStore()
    return JsonRelationStore(tmp_path)


@pytest.fixture(params=["memory", "json"])
def summary_store(request, tmp_path):
    if request.param == "memory":
        return MemorySummaryStore()
    return JsonSummaryStore(tmp_path)


def _summary(passage_id: str, text: str = "About light.") -> PassageSummary:
    return PassageSummary(
        passage_id=passage_id,
        corpus_id=passage_id.split("_")[0],
        summary=text,
        concepts=["light"],
        key_points=["Light scatters."],
    )


class TestCorpusStore:
    @pytest.mark.asyncio
    async def test_put_get(self, corpus_store):
        corpus = make_corpus("a", ["one", "two"], title="Book A")
        await corpus_store.put_corpus(corpus)
        loaded = await corpus_store.get_corpus("a")
        assert loaded == corpus
        assert [p.id for p in await corpus_store.list_passages("a")] == ["a_p0", "a_p1"]

    @pytest.mark.asyncio
    async def test_unknown(self, corpus_store):
        with pytest.raises(CorpusNotFoundError):
            await corpus_store.get_corpus("missing")

    @pytest.mark.asyncio
    async def test_list_and_delete(self, corpus_store):
        await corpus_store.put_corpus(make_corpus("a", ["one"]))
        await corpus_store.put_corpus(make_corpus("b", ["two"]))
        assert sorted(c.id for c in await corpus_store.list_corpora()) == ["a", "b"]
        await corpus_store.delete_corpus("a")
        await corpus_store.delete_corpus("never-stored")
        assert [c.id for c in await corpus_store.list_corpora()] == ["b"]

    @pytest.mark.asyncio
    async def test_replace_whole_corpus(self, corpus_store):
        await corpus_store.put_corpus(make_corpus("a", ["one", "two"]))
        await corpus_store.put_corpus(make_corpus("a", ["only"]))
        assert len((await corpus_store.get_corpus("a")).passages) == 1


class TestRelationStore:
    @pytest.mark.asyncio
    async def test_put_get(self, relation_store):
        record = await relation_store.put_relations("a", "b", _relations())
        assert record.relation_count == 1
        assert await relation_store.get_relations("a", "b") == _relations()
        assert await relation_store.comparison_status("a", "b") == record.completed_at

    @pytest.mark.asyncio
    async def test_direction_matters(self, relation_store):
        await relation_store.put_relations("a", "b", _relations())
        assert await relation_store.get_relations("b", "a") == {}
        assert await relation_store.comparison_status("b", "a") is None

    @pytest.mark.asyncio
    async def test_replace(self, relation_store):
        await relation_store.put_relations("a", "b", _relations())
        await relation_store.put_relations("a", "b", {})
        assert await relation_store.get_relations("a", "b") == {}
        assert len(await relation_store.list_records()) == 1

    @pytest.mark.asyncio
    async def test_delete_corpus(self, relation_store):
        await relation_store.put_relations("a", "b", _relations())
        await relation_store.put_relations("b", "a", {})
        await relation_store.put_relations("b", "c", {})
        assert await relation_store.delete_corpus("a") == 2
        assert [(r.source_corpus_id, r.target_corpus_id) for r in await relation_store.list_records()] == [
            ("b", "c"),
        ]


class TestSummaryStore:
    @pytest.mark.asyncio
    async def test_put_get(self, summary_store):
        stored = await summary_store.put_summaries("a", [_summary("a_p0"), _summary("a_p1")])
        assert [s.passage_id for s in stored] == ["a_p0", "a_p1"]
        assert await summary_store.get_summaries("a") == stored
        assert (await summary_store.get_summary("a", "a_p1")).summary == "About light."
        assert await summary_store.get_summary("a", "a_p9") is None

    @pytest.mark.asyncio
    async def test_upsert_by_passage(self, summary_store):
        await summary_store.put_summaries("a", [_summary("a_p0"), _summary("a_p1")])
        await summary_store.put_summaries("a", [_summary("a_p1", "Revised."), _summary("a_p2")])
        summaries = await summary_store.get_summaries("a")
        assert [(s.passage_id, s.summary) for s in summaries] == [
            ("a_p0", "About light."),
            ("a_p1", "Revised."),
            ("a_p2", "About light."),
        ]

    @pytest.mark.asyncio
    async def test_corpora_kept_apart(self, summary_store):
        await summary_store.put_summaries("a", [_summary("a_p0")])
        await summary_store.put_summaries("b", [_summary("b_p0")])
        await summary_store.delete_corpus("a")
        assert await summary_store.get_summaries("a") == []
        assert [s.passage_id for s in await summary_store.get_summaries("b")] == ["b_p0"]


class TestJsonStoreFiles:
    @pytest.mark.asyncio
    async def test_layout(self, tmp_path):
        await JsonCorpusStore(tmp_path).put_corpus(make_corpus("a", ["one"]))
        await JsonRelationStore(tmp_path).put_relations("a", "b", _relations())
        assert (tmp_path / "corpora" / "a.json").is_file()
        assert (tmp_path / "relations" / "a__b.json").is_file()

    @pytest.mark.asyncio
    async def test_corrupt_corpus_file(self, tmp_path):
        store = JsonCorpusStore(tmp_path)
        (tmp_path / "corpora" / "bad.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(CorpusNotFoundError):
            await store.get_corpus("bad")
        assert await store.list_corpora() == []

    @pytest.mark.asyncio
    async def test_corrupt_relation_file_skipped(self, tmp_path):
        store = JsonRelationStore(tmp_path)
        (tmp_path / "relations" / "x__y.json").write_text("[", encoding="utf-8")
        assert await store.get_record("x", "y") is None
        assert await store.list_records() == []

    @pytest.mark.asyncio
    async def test_summary_file_layout_and_corruption(self, tmp_path):
        store = JsonSummaryStore(tmp_path)
        await store.put_summaries("a", [_summary("a_p0")])
        assert (tmp_path / "summaries" / "a.json").is_file()
        (tmp_path / "summaries" / "bad.json").write_text("{", encoding="utf-8")
        assert await store.get_summaries("bad") == []

    def test_factory(self, settings, tmp_path):
        cfg = settings.model_copy(update={"store_root": tmp_path})
        assert isinstance(create_corpus_store(cfg), JsonCorpusStore)
        assert isinstance(create_relation_store(cfg), JsonRelationStore)
        assert isinstance(create_summary_store(cfg), JsonSummaryStore)
