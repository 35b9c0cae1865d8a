"""
Cosine similarity helpers shared by the brute-force index and tests.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute ``dot(a, b) / (||a|| * ||b||)``.

    A zero vector has no direction, so the similarity is undefined; it is
    reported as 0.0 instead of raising.
    """
    a_arr = np.asarray(a, dtype=np.float64)
    b_arr = np.asarray(b, dtype=np.float64)
    if a_arr.shape != b_arr.shape:
        raise ValueError(f"Dimension mismatch: {a_arr.shape} vs {b_arr.shape}")

    norm_a, norm_b = np.linalg.norm(a_arr), np.linalg.norm(b_arr)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a_arr, b_arr) / (norm_a * norm_b))


def cosine_similarities(matrix: np.ndarray, vector: Sequence[float]) -> np.ndarray:
    """Score every row of *matrix* against *vector*; zero rows score 0.0."""
    query = np.asarray(vector, dtype=np.float64)
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != query.shape[0]:
        raise ValueError(
            f"Dimension mismatch: index has {matrix.shape}, query has {query.shape}"
        )

    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    if query_norm == 0:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    denominators = row_norms * query_norm
    dots = matrix @ query
    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    np.divide(dots, denominators, out=scores, where=denominators != 0)
    return scores
