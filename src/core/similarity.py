# src/core/similarity.py
"""Cosine similarity utilities (numpy).

Similarity is dot(a, b) / (|a| * |b|), computed on unit-normalised vectors.
Vectors that normalise to the same unit vector score exactly 1.0. When
either norm is zero the value is undefined and returned as NaN; callers
must exclude NaN scores rather than rank them.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity of two vectors, NaN if either has zero norm.

    Raises:
        ValueError: If the vectors differ in length.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector shapes differ: {va.shape} vs {vb.shape}")

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return float("nan")
    unit_a = va / norm_a
    unit_b = vb / norm_b
    if np.array_equal(unit_a, unit_b):
        return 1.0
    value = float(np.dot(unit_a, unit_b))
    # Rounding can push near-parallel vectors marginally past 1.0
    return max(-1.0, min(1.0, value))


def cosine_similarities(query: Sequence[float] | np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Similarity of one query vector against every row of a 2D matrix.

    Args:
        query: 1D vector of shape (n_features,).
        matrix: 2D array of shape (n_rows, n_features).

    Returns:
        1D array of shape (n_rows,) with values in [-1, 1], NaN where the
        query or the row has zero norm.

    Raises:
        ValueError: If shapes are incompatible.
    """
    q = np.asarray(query, dtype=np.float64)
    if matrix.ndim != 2:
        raise ValueError(f"Expected 2D array, got {matrix.ndim}D")
    if matrix.shape[0] == 0:
        return np.empty((0,), dtype=np.float64)
    if q.ndim != 1 or q.shape[0] != matrix.shape[1]:
        raise ValueError(
            f"Query of shape {q.shape} incompatible with matrix {matrix.shape}"
        )

    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(matrix, axis=1)
    if q_norm == 0.0:
        return np.full(matrix.shape[0], np.nan)

    unit_q = q / q_norm
    with np.errstate(divide="ignore", invalid="ignore"):
        unit_rows = matrix / row_norms[:, None]
        scores = np.clip(unit_rows @ unit_q, -1.0, 1.0)
    scores[np.all(unit_rows == unit_q, axis=1)] = 1.0
    scores[row_norms == 0.0] = np.nan
    return scores
