# src/storage/base_corpus_store.py
"""Abstract corpus/passage store interface.

Read-only from the comparison engine's point of view; ingestion and the CLI
are the only writers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from passagelink.core.models import Corpus, Passage


class BaseCorpusStore(ABC):
    """Unified interface for corpus storage backends."""

    @abstractmethod
    async def get_corpus(self, corpus_id: str) -> Corpus:
        """Retrieve a corpus.

        Raises:
            CorpusNotFoundError: If the id is unknown.
        """

    @abstractmethod
    async def put_corpus(self, corpus: Corpus) -> None:
        """Store (or replace) a corpus as a whole unit."""

    @abstractmethod
    async def delete_corpus(self, corpus_id: str) -> None:
        """Remove a corpus; unknown ids are ignored."""

    @abstractmethod
    async def list_corpora(self) -> list[Corpus]:
        """All stored corpora, oldest first."""

    async def list_passages(self, corpus_id: str) -> list[Passage]:
        """Ordered passages of a corpus.

        Raises:
            CorpusNotFoundError: If the id is unknown.
        """
        corpus = await self.get_corpus(corpus_id)
        return list(corpus.passages)
