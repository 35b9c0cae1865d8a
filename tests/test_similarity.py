"""Tests for cosine similarity helpers."""

from __future__ import annotations

import numpy as np
import pytest

from vault_search.similarity import cosine_similarities, cosine_similarity


def test_identical_vectors_score_one() -> None:
    vector = [0.3, -1.2, 4.0, 0.0]

    assert cosine_similarity(vector, vector) == pytest.approx(1.0)


def test_similarity_is_symmetric() -> None:
    a = [1.0, 2.0, 3.0]
    b = [-2.0, 0.5, 1.0]

    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_orthogonal_and_opposite_vectors() -> None:
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)


def test_zero_vector_scores_zero() -> None:
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0


def test_dimension_mismatch_raises() -> None:
    with pytest.raises(ValueError, match="Dimension mismatch"):
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


def test_matrix_scores_match_pairwise_scores() -> None:
    matrix = np.array([[1.0, 0.0, 1.0], [0.0, 0.0, 0.0], [2.0, 1.0, 0.5]])
    query = [0.5, 0.2, 1.0]

    scores = cosine_similarities(matrix, query)

    assert scores.shape == (3,)
    assert scores[1] == 0.0
    assert scores[0] == pytest.approx(cosine_similarity(matrix[0], query))
    assert scores[2] == pytest.approx(cosine_similarity(matrix[2], query))


def test_matrix_against_zero_query_scores_zero() -> None:
    scores = cosine_similarities(np.ones((2, 3)), [0.0, 0.0, 0.0])

    assert scores.tolist() == [0.0, 0.0]
