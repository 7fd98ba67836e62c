"""Cosine similarity helpers used by the vector store's linear scan."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Return ``dot(a, b) / (|a| * |b|)`` clamped to [-1, 1].

    Vectors of different length and vectors with a zero norm yield ``0.0``
    instead of raising.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = float(np.dot(va, vb)) / (norm_a * norm_b)
    return max(-1.0, min(1.0, score))


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Vectorised cosine similarity of *query* against every row of *matrix*.

    All rows must share the query's dimensionality; callers group by
    dimension before calling.  Rows (or a query) with zero norm score 0.
    """
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)

    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(matrix, dtype=np.float64)

    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(m, axis=1)
    if q_norm == 0.0:
        return np.zeros(m.shape[0], dtype=np.float64)

    dots = m @ q
    denom = row_norms * q_norm
    scores = np.zeros(m.shape[0], dtype=np.float64)
    nonzero = denom > 0.0
    scores[nonzero] = dots[nonzero] / denom[nonzero]
    return np.clip(scores, -1.0, 1.0)
