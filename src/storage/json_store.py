# src/storage/json_store.py
"""JSON file-based corpus, relation and summary stores (default persistence).

Layout under STORE_ROOT:
    corpora/<corpus_id>.json
    relations/<source_id>__<target_id>.json
    summaries/<corpus_id>.json
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

from pydantic import TypeAdapter, ValidationError

from passagelink.core.errors import CorpusNotFoundError
from passagelink.core.models import Corpus, PassageSummary, RelationMap
from passagelink.storage.base_corpus_store import BaseCorpusStore
from passagelink.storage.base_relation_store import BaseRelationStore
from passagelink.storage.base_summary_store import BaseSummaryStore
from passagelink.storage.models import ComparisonRecord

logger = logging.getLogger(__name__)


def _safe_key(key: str) -> str:
    return key.replace("/", "_").replace("\\", "_")


class JsonCorpusStore(BaseCorpusStore):
    """One JSON file per corpus."""

    def __init__(self, store_root: Path) -> None:
        self._root = Path(store_root).expanduser() / "corpora"
        self._root.mkdir(parents=True, exist_ok=True)

    async def get_corpus(self, corpus_id: str) -> Corpus:
        path = self._corpus_path(corpus_id)
        if not path.exists():
            raise CorpusNotFoundError(corpus_id)
        try:
            return Corpus.model_validate_json(path.read_text(encoding="utf-8"))
        except (ValidationError, ValueError) as e:
            logger.warning("Failed to read corpus %s: %s", corpus_id, e)
            raise CorpusNotFoundError(corpus_id) from e

    async def put_corpus(self, corpus: Corpus) -> None:
        path = self._corpus_path(corpus.id)
        path.write_text(corpus.model_dump_json(indent=2), encoding="utf-8")
        logger.debug("Stored corpus %s (%d passages)", corpus.id, len(corpus.passages))

    async def delete_corpus(self, corpus_id: str) -> None:
        path = self._corpus_path(corpus_id)
        if path.exists():
            path.unlink()

    async def list_corpora(self) -> list[Corpus]:
        corpora: list[Corpus] = []
        for path in self._root.glob("*.json"):
            try:
                corpora.append(Corpus.model_validate_json(path.read_text(encoding="utf-8")))
            except (ValidationError, ValueError) as e:
                logger.warning("Skipping unreadable corpus file %s: %s", path.name, e)
        return sorted(corpora, key=lambda c: c.created_at)

    def _corpus_path(self, corpus_id: str) -> Path:
        return self._root / f"{_safe_key(corpus_id)}.json"


class JsonRelationStore(BaseRelationStore):
    """One JSON file per directed corpus pair."""

    def __init__(self, store_root: Path) -> None:
        self._root = Path(store_root).expanduser() / "relations"
        self._root.mkdir(parents=True, exist_ok=True)

    async def put_relations(
        self, source_corpus_id: str, target_corpus_id: str, relations: RelationMap
    ) -> ComparisonRecord:
        record = ComparisonRecord(
            source_corpus_id=source_corpus_id,
            target_corpus_id=target_corpus_id,
            relations={k: list(v) for k, v in relations.items()},
        )
        path = self._pair_path(source_corpus_id, target_corpus_id)
        path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        logger.debug(
            "Stored %d relations for %s -> %s",
            record.relation_count, source_corpus_id, target_corpus_id,
        )
        return record

    async def get_record(
        self, source_corpus_id: str, target_corpus_id: str
    ) -> ComparisonRecord | None:
        path = self._pair_path(source_corpus_id, target_corpus_id)
        if not path.exists():
            return None
        return self._read(path)

    async def list_records(self) -> list[ComparisonRecord]:
        records = [self._read(p) for p in sorted(self._root.glob("*.json"))]
        return [r for r in records if r is not None]

    async def delete_corpus(self, corpus_id: str) -> int:
        removed = 0
        for record in await self.list_records():
            if corpus_id in (record.source_corpus_id, record.target_corpus_id):
                self._pair_path(record.source_corpus_id, record.target_corpus_id).unlink()
                removed += 1
        return removed

    def _read(self, path: Path) -> ComparisonRecord | None:
        try:
            return ComparisonRecord.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to read relation file %s: %s", path.name, e)
            return None

    def _pair_path(self, source_corpus_id: str, target_corpus_id: str) -> Path:
        return self._root / f"{_safe_key(source_corpus_id)}__{_safe_key(target_corpus_id)}.json"


_SUMMARY_LIST = TypeAdapter(list[PassageSummary])


class JsonSummaryStore(BaseSummaryStore):
    """One JSON array of passage summaries per corpus."""

    def __init__(self, store_root: Path) -> None:
        self._root = Path(store_root).expanduser() / "summaries"
        self._root.mkdir(parents=True, exist_ok=True)

    async def get_summaries(self, corpus_id: str) -> list[PassageSummary]:
        path = self._summary_path(corpus_id)
        if not path.exists():
            return []
        try:
            return _SUMMARY_LIST.validate_json(path.read_text(encoding="utf-8"))
        except (ValidationError, ValueError) as e:
            logger.warning("Failed to read summaries of %s: %s", corpus_id, e)
            return []

    async def replace_summaries(
        self, corpus_id: str, summaries: Sequence[PassageSummary]
    ) -> None:
        path = self._summary_path(corpus_id)
        path.write_bytes(_SUMMARY_LIST.dump_json(list(summaries), indent=2))
        logger.debug("Stored %d summaries for %s", len(summaries), corpus_id)

    async def delete_corpus(self, corpus_id: str) -> None:
        path = self._summary_path(corpus_id)
        if path.exists():
            path.unlink()

    def _summary_path(self, corpus_id: str) -> Path:
        return self._root / f"{_safe_key(corpus_id)}.json"
