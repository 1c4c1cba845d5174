# src/storage/memory_store.py
"""In-memory corpus, relation and summary stores (tests and one-shot runs)."""

from __future__ import annotations

from typing import Sequence

from passagelink.core.errors import CorpusNotFoundError
from passagelink.core.models import Corpus, PassageSummary, RelationMap
from passagelink.storage.base_corpus_store import BaseCorpusStore
from passagelink.storage.base_relation_store import BaseRelationStore
from passagelink.storage.base_summary_store import BaseSummaryStore
from passagelink.storage.models import ComparisonRecord


class MemoryCorpusStore(BaseCorpusStore):
    """Corpora kept in a dict."""

    def __init__(self, corpora: list[Corpus] | None = None) -> None:
        self._corpora: dict[str, Corpus] = {c.id: c for c in corpora or []}

    async def get_corpus(self, corpus_id: str) -> Corpus:
        try:
            return self._corpora[corpus_id]
        except KeyError:
            raise CorpusNotFoundError(corpus_id) from None

    async def put_corpus(self, corpus: Corpus) -> None:
        self._corpora[corpus.id] = corpus

    async def delete_corpus(self, corpus_id: str) -> None:
        self._corpora.pop(corpus_id, None)

    async def list_corpora(self) -> list[Corpus]:
        return sorted(self._corpora.values(), key=lambda c: c.created_at)


class MemoryRelationStore(BaseRelationStore):
    """Comparison records kept in a dict keyed by (source, target)."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], ComparisonRecord] = {}

    async def put_relations(
        self, source_corpus_id: str, target_corpus_id: str, relations: RelationMap
    ) -> ComparisonRecord:
        record = ComparisonRecord(
            source_corpus_id=source_corpus_id,
            target_corpus_id=target_corpus_id,
            relations={k: list(v) for k, v in relations.items()},
        )
        self._records[(source_corpus_id, target_corpus_id)] = record
        return record

    async def get_record(
        self, source_corpus_id: str, target_corpus_id: str
    ) -> ComparisonRecord | None:
        return self._records.get((source_corpus_id, target_corpus_id))

    async def list_records(self) -> list[ComparisonRecord]:
        return list(self._records.values())

    async def delete_corpus(self, corpus_id: str) -> int:
        keys = [k for k in self._records if corpus_id in k]
        for key in keys:
            del self._records[key]
        return len(keys)


class MemorySummaryStore(BaseSummaryStore):
    """Passage summaries kept in a dict keyed by corpus id."""

    def __init__(self) -> None:
        self._summaries: dict[str, list[PassageSummary]] = {}

    async def get_summaries(self, corpus_id: str) -> list[PassageSummary]:
        return list(self._summaries.get(corpus_id, []))

    async def replace_summaries(
        self, corpus_id: str, summaries: Sequence[PassageSummary]
    ) -> None:
        self._summaries[corpus_id] = list(summaries)

    async def delete_corpus(self, corpus_id: str) -> None:
        self._summaries.pop(corpus_id, None)
