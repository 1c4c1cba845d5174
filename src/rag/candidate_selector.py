# src/rag/candidate_selector.py
"""Candidate selection: threshold cutoff then top-k cap over the vector index.

The threshold is always an explicit argument. Filtering happens before the
cap, so returning fewer than top_k candidates (or none) is a normal result.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

import numpy as np

from passagelink.core.errors import NotIndexedError
from passagelink.core.models import Passage, SimilarityCandidate
from passagelink.rag.embeddings.oracle import EmbeddingOracle
from passagelink.rag.vector_store.base_vector_store import BaseVectorStore

logger = logging.getLogger(__name__)

# Called with a corpus id to embed and mark it indexed
IndexCallback = Callable[[str], Awaitable[None]]


class CandidateSelector:
    """select(focus, target_corpus_id, top_k, threshold) -> candidates."""

    def __init__(
        self,
        vector_store: BaseVectorStore,
        embedding_oracle: EmbeddingOracle,
        ensure_indexed: IndexCallback | None = None,
    ) -> None:
        self._store = vector_store
        self._oracle = embedding_oracle
        self._ensure_indexed = ensure_indexed

    async def select(
        self,
        focus: Passage,
        target_corpus_id: str,
        top_k: int,
        threshold: float,
    ) -> list[SimilarityCandidate]:
        """Return at most top_k target passages with similarity >= threshold.

        Raises:
            NotIndexedError: Target has no vectors and no indexer is configured.
            OracleError: The focus passage could not be embedded.
        """
        if top_k < 1:
            return []

        if self._ensure_indexed is not None and not await self._store.has_vectors(
            target_corpus_id
        ):
            await self._ensure_indexed(target_corpus_id)

        vector = await self.focus_vector(focus)
        try:
            hits = await self._store.query(target_corpus_id, vector, top_k)
        except NotIndexedError:
            if self._ensure_indexed is None:
                raise
            await self._ensure_indexed(target_corpus_id)
            hits = await self._store.query(target_corpus_id, vector, top_k)

        selected = [c for c in hits if c.similarity >= threshold][:top_k]
        logger.debug(
            "Passage %s vs %s: %d/%d candidates >= %.2f",
            focus.id, target_corpus_id, len(selected), len(hits), threshold,
        )
        return selected

    async def focus_vector(self, focus: Passage) -> np.ndarray:
        """Stored vector of the focus passage, embedding it when absent."""
        stored = await self._store.get_vector(focus.corpus_id, focus.id)
        if stored is not None:
            return stored
        return await self._oracle.embed(focus.text)
