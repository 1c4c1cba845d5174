# src/rag/vector_store/chromadb_store.py
"""ChromaDB vector index adapter.

Uses the chromadb SDK for local or remote persistence, one collection per
corpus. Ranking is recomputed exactly with numpy over the stored vectors so
results and tie order match the in-memory index.
Requires: pip install chromadb.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import numpy as np

from passagelink.core.errors import NotIndexedError
from passagelink.core.models import Passage, SimilarityCandidate
from passagelink.core.similarity import cosine_similarities
from passagelink.rag.vector_store.base_vector_store import BaseVectorStore, rank_candidates

logger = logging.getLogger(__name__)

_COLLECTION_PREFIX = "corpus_"


def collection_name(corpus_id: str) -> str:
    """Chroma-safe collection name (3-63 chars of [a-zA-Z0-9_-])."""
    safe = re.sub(r"[^a-zA-Z0-9_-]", "_", corpus_id)
    name = f"{_COLLECTION_PREFIX}{safe}"[:63]
    if not name[-1].isalnum():
        name = name[:-1] + "0"
    return name


class ChromaDBStore(BaseVectorStore):
    """Vector index backed by ChromaDB."""

    def __init__(
        self,
        persist_path: str | Path | None = None,
        host: str | None = None,
        port: int = 8000,
    ) -> None:
        try:
            import chromadb
        except ImportError as e:
            raise ImportError(
                "chromadb package required: pip install chromadb"
            ) from e

        if host:
            self._client = chromadb.HttpClient(host=host, port=port)
        elif persist_path:
            self._client = chromadb.PersistentClient(path=str(Path(persist_path).expanduser()))
        else:
            self._client = chromadb.Client()

    def _collection(self, corpus_id: str):
        return self._client.get_or_create_collection(
            collection_name(corpus_id), metadata={"corpus_id": corpus_id}
        )

    async def upsert(self, passage: Passage, vector: np.ndarray) -> None:
        """Insert or update one passage vector, keeping its original position."""
        col = self._collection(passage.corpus_id)
        existing = col.get(ids=[passage.id], include=["metadatas"])
        if existing["ids"]:
            seq = int(existing["metadatas"][0].get("seq", 0))
        else:
            seq = col.count()
        col.upsert(
            ids=[passage.id],
            embeddings=[np.asarray(vector, dtype=np.float64).tolist()],
            documents=[passage.text],
            metadatas=[{
                "corpus_id": passage.corpus_id,
                "start": passage.start,
                "end": passage.end,
                "seq": seq,
            }],
        )

    async def query(
        self,
        corpus_id: str,
        vector: np.ndarray,
        top_k: int = 10,
    ) -> list[SimilarityCandidate]:
        """Exact cosine ranking over every stored vector of the corpus."""
        col = self._collection(corpus_id)
        data = col.get(include=["embeddings", "documents", "metadatas"])
        if not data["ids"]:
            raise NotIndexedError(corpus_id)

        rows = sorted(
            zip(data["ids"], data["documents"], data["metadatas"], data["embeddings"]),
            key=lambda row: int(row[2].get("seq", 0)),
        )
        passages = [
            Passage(
                id=pid,
                corpus_id=corpus_id,
                text=doc or "",
                start=int(meta.get("start", 0)),
                end=int(meta.get("end", 0)),
            )
            for pid, doc, meta, _ in rows
        ]
        matrix = np.asarray([row[3] for row in rows], dtype=np.float64)
        scores = cosine_similarities(vector, matrix)
        return rank_candidates(passages, scores, top_k)

    async def has_vectors(self, corpus_id: str) -> bool:
        col = self._collection(corpus_id)
        meta = col.metadata or {}
        return bool(meta.get("indexed")) and col.count() > 0

    async def mark_indexed(self, corpus_id: str, indexed: bool = True) -> None:
        col = self._collection(corpus_id)
        col.modify(metadata={"corpus_id": corpus_id, "indexed": indexed})

    async def get_vector(self, corpus_id: str, passage_id: str) -> np.ndarray | None:
        col = self._collection(corpus_id)
        data = col.get(ids=[passage_id], include=["embeddings"])
        if not data["ids"]:
            return None
        return np.asarray(data["embeddings"][0], dtype=np.float64)

    async def count(self, corpus_id: str) -> int:
        return self._collection(corpus_id).count()

    async def clear(self, corpus_id: str | None = None) -> None:
        # list_collections returns names on chromadb >= 0.6, objects before
        existing = {getattr(c, "name", c) for c in self._client.list_collections()}
        if corpus_id is not None:
            targets = existing & {collection_name(corpus_id)}
        else:
            targets = {n for n in existing if n.startswith(_COLLECTION_PREFIX)}
        for name in sorted(targets):
            self._client.delete_collection(name)
            logger.debug("Deleted collection %s", name)

    @property
    def provider_name(self) -> str:
        return "chromadb"
