# src/storage/models.py
"""Storage domain models: ComparisonRecord."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from passagelink.core.models import PassageRelation


class ComparisonRecord(BaseModel):
    """Persisted relation map of one directed corpus pair."""

    source_corpus_id: str
    target_corpus_id: str
    relations: dict[str, list[PassageRelation]] = Field(default_factory=dict)
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def relation_count(self) -> int:
        return sum(len(v) for v in self.relations.values())
