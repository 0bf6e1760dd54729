# tests/unit/core/test_unit_similarity.py — v1
"""Tests for core/similarity.py — cosine similarity backends."""

from __future__ import annotations

import numpy as np
import pytest

from patternsearch.core.similarity import cosine_similarities, reset_backend


@pytest.fixture(autouse=True)
def _reset():
    """Reset cached backend between tests."""
    reset_backend()
    yield
    reset_backend()


@pytest.fixture(params=["numpy", "sklearn"])
def backend(request, monkeypatch):
    monkeypatch.setenv("SIMILARITY_BACKEND", request.param)
    return request.param


class TestCosineSimilarities:
    def test_identical_orthogonal_opposite(self, backend):
        query = np.array([1.0, 0.0])
        matrix = np.array([[2.0, 0.0], [0.0, 3.0], [-1.0, 0.0]])
        result = cosine_similarities(query, matrix)
        assert result.shape == (3,)
        assert result == pytest.approx([1.0, 0.0, -1.0], abs=1e-6)

    def test_float32_input(self, backend):
        query = np.array([1.0, 1.0], dtype=np.float32)
        matrix = np.array([[1.0, 1.0]], dtype=np.float32)
        assert cosine_similarities(query, matrix)[0] == pytest.approx(1.0, abs=1e-6)

    def test_empty_matrix(self, backend):
        result = cosine_similarities(np.array([1.0, 0.0]), np.empty((0, 2)))
        assert result.shape == (0,)

    def test_zero_vector_does_not_divide_by_zero(self, monkeypatch):
        monkeypatch.setenv("SIMILARITY_BACKEND", "numpy")
        result = cosine_similarities(np.zeros(2), np.array([[1.0, 0.0]]))
        assert result[0] == pytest.approx(0.0)

    def test_invalid_query_dimensions(self):
        with pytest.raises(ValueError, match="Expected 1D"):
            cosine_similarities(np.ones((2, 2)), np.ones((2, 2)))

    def test_invalid_matrix_dimensions(self):
        with pytest.raises(ValueError, match="Expected 2D"):
            cosine_similarities(np.ones(2), np.ones(2))

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError, match="Dimension mismatch"):
            cosine_similarities(np.ones(3), np.ones((2, 2)))

    def test_default_backend_is_numpy(self, monkeypatch):
        monkeypatch.delenv("SIMILARITY_BACKEND", raising=False)
        result = cosine_similarities(np.array([1.0, 0.0]), np.array([[1.0, 0.0]]))
        assert result[0] == pytest.approx(1.0)

    def test_unsupported_backend(self, monkeypatch):
        monkeypatch.setenv("SIMILARITY_BACKEND", "cupy")
        with pytest.raises(ValueError, match="Unsupported similarity backend"):
            cosine_similarities(np.array([1.0]), np.array([[1.0]]))
