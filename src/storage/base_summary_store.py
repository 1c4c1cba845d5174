# src/storage/base_summary_store.py
"""Abstract passage summary store interface.

Summaries are kept per corpus. Writing summaries for passages that already
have one replaces them; other passages keep theirs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from passagelink.core.models import PassageSummary


class BaseSummaryStore(ABC):
    """Unified interface for passage summary backends."""

    @abstractmethod
    async def get_summaries(self, corpus_id: str) -> list[PassageSummary]:
        """Every stored summary of a corpus, [] if none."""

    @abstractmethod
    async def replace_summaries(
        self, corpus_id: str, summaries: Sequence[PassageSummary]
    ) -> None:
        """Overwrite the full summary list of a corpus."""

    @abstractmethod
    async def delete_corpus(self, corpus_id: str) -> None:
        """Drop every summary of a corpus."""

    async def put_summaries(
        self, corpus_id: str, summaries: Sequence[PassageSummary]
    ) -> list[PassageSummary]:
        """Upsert by passage id; returns the stored list."""
        merged = {s.passage_id: s for s in await self.get_summaries(corpus_id)}
        for summary in summaries:
            merged[summary.passage_id] = summary
        result = list(merged.values())
        await self.replace_summaries(corpus_id, result)
        return result

    async def get_summary(self, corpus_id: str, passage_id: str) -> PassageSummary | None:
        for summary in await self.get_summaries(corpus_id):
            if summary.passage_id == passage_id:
                return summary
        return None
