# src/storage/base_relation_store.py
"""Abstract relation store interface.

Relations are stored per directed (source, target) corpus pair together with
the time the comparison completed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from passagelink.core.models import RelationMap
from passagelink.storage.models import ComparisonRecord


class BaseRelationStore(ABC):
    """Unified interface for relation storage backends."""

    @abstractmethod
    async def put_relations(
        self, source_corpus_id: str, target_corpus_id: str, relations: RelationMap
    ) -> ComparisonRecord:
        """Replace the relation map of a pair and stamp its completion time."""

    @abstractmethod
    async def get_record(
        self, source_corpus_id: str, target_corpus_id: str
    ) -> ComparisonRecord | None:
        """Stored record of a pair, or None if never compared."""

    @abstractmethod
    async def list_records(self) -> list[ComparisonRecord]:
        """Every stored pair."""

    @abstractmethod
    async def delete_corpus(self, corpus_id: str) -> int:
        """Drop every pair involving a corpus; returns the number removed."""

    async def get_relations(self, source_corpus_id: str, target_corpus_id: str) -> RelationMap:
        record = await self.get_record(source_corpus_id, target_corpus_id)
        return record.relations if record is not None else {}

    async def comparison_status(
        self, source_corpus_id: str, target_corpus_id: str
    ) -> datetime | None:
        """Completion time of the last comparison of a pair."""
        record = await self.get_record(source_corpus_id, target_corpus_id)
        return record.completed_at if record is not None else None
