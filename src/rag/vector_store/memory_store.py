# src/rag/vector_store/memory_store.py
"""In-process vector index backed by numpy.

Default backend: vectors live for the lifetime of the process, exact cosine
similarity is computed against a stacked matrix per corpus.
"""

from __future__ import annotations

import logging

import numpy as np

from passagelink.core.errors import NotIndexedError
from passagelink.core.models import Passage, SimilarityCandidate
from passagelink.core.similarity import cosine_similarities
from passagelink.rag.vector_store.base_vector_store import BaseVectorStore, rank_candidates

logger = logging.getLogger(__name__)


class _CorpusVectors:
    """Passages and vectors of one corpus, in insertion order."""

    def __init__(self) -> None:
        self.passages: dict[str, Passage] = {}
        self.vectors: dict[str, np.ndarray] = {}
        self.indexed = False
        self._matrix: np.ndarray | None = None

    def put(self, passage: Passage, vector: np.ndarray) -> None:
        if self.vectors:
            dim = next(iter(self.vectors.values())).shape[0]
            if vector.shape[0] != dim:
                raise ValueError(
                    f"Vector dimension {vector.shape[0]} does not match corpus "
                    f"{passage.corpus_id!r} dimension {dim}"
                )
        # dict assignment keeps the original position of an existing key
        self.passages[passage.id] = passage
        self.vectors[passage.id] = vector
        self._matrix = None

    def matrix(self) -> np.ndarray:
        if self._matrix is None:
            self._matrix = np.vstack(list(self.vectors.values()))
        return self._matrix


class MemoryVectorStore(BaseVectorStore):
    """Vector index held in memory."""

    def __init__(self) -> None:
        self._corpora: dict[str, _CorpusVectors] = {}

    def _corpus(self, corpus_id: str) -> _CorpusVectors:
        if corpus_id not in self._corpora:
            self._corpora[corpus_id] = _CorpusVectors()
        return self._corpora[corpus_id]

    async def upsert(self, passage: Passage, vector: np.ndarray) -> None:
        vec = np.asarray(vector, dtype=np.float64)
        if vec.ndim != 1:
            raise ValueError(f"Expected 1D vector, got shape {vec.shape}")
        self._corpus(passage.corpus_id).put(passage, vec)

    async def query(
        self,
        corpus_id: str,
        vector: np.ndarray,
        top_k: int = 10,
    ) -> list[SimilarityCandidate]:
        entry = self._corpora.get(corpus_id)
        if entry is None or not entry.vectors:
            raise NotIndexedError(corpus_id)

        scores = cosine_similarities(vector, entry.matrix())
        return rank_candidates(list(entry.passages.values()), scores, top_k)

    async def has_vectors(self, corpus_id: str) -> bool:
        entry = self._corpora.get(corpus_id)
        return entry is not None and entry.indexed and bool(entry.vectors)

    async def mark_indexed(self, corpus_id: str, indexed: bool = True) -> None:
        self._corpus(corpus_id).indexed = indexed

    async def get_vector(self, corpus_id: str, passage_id: str) -> np.ndarray | None:
        entry = self._corpora.get(corpus_id)
        if entry is None:
            return None
        return entry.vectors.get(passage_id)

    async def count(self, corpus_id: str) -> int:
        entry = self._corpora.get(corpus_id)
        return len(entry.vectors) if entry is not None else 0

    async def clear(self, corpus_id: str | None = None) -> None:
        if corpus_id is None:
            self._corpora.clear()
            logger.debug("Cleared all vectors")
        else:
            self._corpora.pop(corpus_id, None)
            logger.debug("Cleared vectors for corpus %s", corpus_id)

    @property
    def provider_name(self) -> str:
        return "memory"
