# src/rag/embeddings/sentence_tf_embedder.py
"""Local passage embeddings through sentence-transformers.

Encoding is CPU/GPU bound, so it runs in a worker thread to keep the event
loop free for the other fan-out calls. Vectors come back unit-normalised.
E5-family models expect "passage: " / "query: " prefixes; they are added
when the model name says e5 unless prefixes are given explicitly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from passagelink.rag.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder(BaseEmbedder):
    """Local embeddings via sentence-transformers.

    Args:
        model: Model name or path.
        dimensions: Expected size; replaced by the model's own once loaded.
        batch_size: Passages per encode batch.
        passage_prefix: Prepended to passages (None picks one from the model name).
        query_prefix: Prepended to queries (None picks one from the model name).
        model_instance: Already loaded model, mainly for tests.
    """

    def __init__(
        self,
        model: str = "all-MiniLM-L6-v2",
        dimensions: int = 384,
        batch_size: int = 32,
        passage_prefix: str | None = None,
        query_prefix: str | None = None,
        model_instance: Any = None,
    ) -> None:
        self._model_name = model
        self._dimensions = dimensions
        self._batch_size = max(1, batch_size)
        is_e5 = "e5" in model.lower()
        self._passage_prefix = passage_prefix if passage_prefix is not None else ("passage: " if is_e5 else "")
        self._query_prefix = query_prefix if query_prefix is not None else ("query: " if is_e5 else "")
        self._loaded = model_instance
        if model_instance is not None:
            self._dimensions = model_instance.get_sentence_embedding_dimension()

    @property
    def _model(self) -> Any:
        if self._loaded is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise ImportError(
                    "sentence-transformers package required: "
                    "pip install 'passagelink[local]'"
                ) from e
            logger.info("Loading sentence-transformers model %s", self._model_name)
            self._loaded = SentenceTransformer(self._model_name)
            self._dimensions = self._loaded.get_sentence_embedding_dimension()
        return self._loaded

    def _encode(self, texts: list[str]) -> list[list[float]]:
        vectors = self._model.encode(
            texts,
            batch_size=self._batch_size,
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return [v.tolist() for v in vectors]

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        prefixed = [self._passage_prefix + t for t in texts]
        return await asyncio.to_thread(self._encode, prefixed)

    async def embed_query(self, query: str) -> list[float]:
        vectors = await asyncio.to_thread(self._encode, [self._query_prefix + query])
        return vectors[0]

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "sentence_transformers"

    @property
    def model_name(self) -> str:
        return self._model_name
