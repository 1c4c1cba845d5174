# src/rag/vector_store/base_vector_store.py
"""Abstract vector index interface.

Vectors are grouped by corpus and keyed by passage id. Each corpus also
carries an IndexState flag that is only set after a complete, successful
embedding pass (see mark_indexed).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from passagelink.core.models import Passage, SimilarityCandidate


class BaseVectorStore(ABC):
    """Unified interface for vector index backends."""

    @abstractmethod
    async def upsert(self, passage: Passage, vector: np.ndarray) -> None:
        """Insert or replace the vector of one passage (last write wins)."""

    @abstractmethod
    async def query(
        self,
        corpus_id: str,
        vector: np.ndarray,
        top_k: int = 10,
    ) -> list[SimilarityCandidate]:
        """Nearest passages of a corpus by descending cosine similarity.

        Ties keep passage insertion order. Passages whose similarity is
        undefined (zero-norm vectors) are excluded.

        Raises:
            NotIndexedError: If no vectors exist for the corpus.
        """

    @abstractmethod
    async def has_vectors(self, corpus_id: str) -> bool:
        """True once the corpus has been fully embedded and marked indexed."""

    @abstractmethod
    async def mark_indexed(self, corpus_id: str, indexed: bool = True) -> None:
        """Set or reset the IndexState flag of a corpus."""

    @abstractmethod
    async def get_vector(self, corpus_id: str, passage_id: str) -> np.ndarray | None:
        """Stored vector of a passage, or None."""

    @abstractmethod
    async def count(self, corpus_id: str) -> int:
        """Number of vectors stored for a corpus."""

    @abstractmethod
    async def clear(self, corpus_id: str | None = None) -> None:
        """Drop vectors and IndexState for one corpus, or for all corpora."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (memory, chromadb)."""


def rank_candidates(
    passages: list[Passage],
    scores: np.ndarray,
    top_k: int,
) -> list[SimilarityCandidate]:
    """Order scored passages by similarity, ties by position, NaN dropped.

    Args:
        passages: Passages in insertion order.
        scores: Similarity per passage, aligned with passages.
        top_k: Maximum number of candidates returned.
    """
    if top_k < 1:
        return []
    ranked = sorted(
        (i for i in range(len(passages)) if not np.isnan(scores[i])),
        key=lambda i: (-float(scores[i]), i),
    )
    return [
        SimilarityCandidate(passage=passages[i], similarity=float(scores[i]))
        for i in ranked[:top_k]
    ]
