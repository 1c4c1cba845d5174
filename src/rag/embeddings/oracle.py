# src/rag/embeddings/oracle.py
"""Embedding oracle: embed(text) -> vector, bounded by a deadline.

Wraps any BaseEmbedder so that SDK exceptions, timeouts and malformed
outputs all surface as OracleError. Vectors come back as float64 numpy
arrays ready for the vector index.
"""

from __future__ import annotations

import asyncio
import logging

import numpy as np

from passagelink.core.errors import OracleError, OracleTimeoutError
from passagelink.rag.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class EmbeddingOracle:
    """Single-text embedding calls with timeout and output validation."""

    def __init__(self, embedder: BaseEmbedder, timeout_s: float = 60.0) -> None:
        self._embedder = embedder
        self._timeout_s = timeout_s

    @property
    def embedder(self) -> BaseEmbedder:
        return self._embedder

    async def embed(self, text: str) -> np.ndarray:
        """Embed one passage text.

        Raises:
            OracleTimeoutError: The provider did not answer in time.
            OracleError: The provider failed or returned an unusable vector.
        """
        try:
            raw = await asyncio.wait_for(
                self._embedder.embed_texts([text]), timeout=self._timeout_s
            )
        except asyncio.TimeoutError as exc:
            raise OracleTimeoutError("Embedding request", self._timeout_s) from exc
        except OracleError:
            raise
        except Exception as exc:
            raise OracleError(
                f"{self._embedder.provider_name} embedding failed: {exc}"
            ) from exc

        if not raw or len(raw) != 1:
            raise OracleError(
                f"Expected 1 embedding, got {len(raw) if raw else 0} "
                f"({self._embedder.provider_name}/{self._embedder.model_name})"
            )
        return _to_vector(raw[0])


def _to_vector(values: object) -> np.ndarray:
    try:
        vector = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise OracleError(f"Embedding is not numeric: {exc}") from exc

    if vector.ndim != 1 or vector.size == 0:
        raise OracleError(f"Embedding has invalid shape {vector.shape}")
    if not np.all(np.isfinite(vector)):
        raise OracleError("Embedding contains non-finite values")
    return vector
