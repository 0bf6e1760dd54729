# src/core/similarity.py — v1
"""Cosine similarity utility.

Selects backend based on SIMILARITY_BACKEND env var:
- numpy (default, pure numpy)
- sklearn (scikit-learn pairwise kernels)
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)

_SUPPORTED_BACKENDS = ("numpy", "sklearn")

# Lazy-resolved backend setting to avoid circular imports with config/settings.py.
_backend: str | None = None


def _get_backend() -> str:
    """Resolve SIMILARITY_BACKEND from env (lazy, cached)."""
    global _backend
    if _backend is None:
        import os

        backend = os.environ.get("SIMILARITY_BACKEND", "numpy")
        if backend not in _SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unsupported similarity backend: {backend!r}. "
                f"Available: {', '.join(_SUPPORTED_BACKENDS)}"
            )
        logger.debug("Similarity backend: %s", backend)
        _backend = backend
    return _backend


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of one query vector against every row of a matrix.

    Args:
        query: 1D array of shape (n_features,).
        matrix: 2D array of shape (n_samples, n_features).

    Returns:
        1D array of shape (n_samples,) with values in [-1, 1].

    Raises:
        ValueError: If shapes are incompatible.
    """
    if query.ndim != 1:
        raise ValueError(f"Expected 1D query vector, got {query.ndim}D")
    if matrix.ndim != 2:
        raise ValueError(f"Expected 2D array, got {matrix.ndim}D")
    if matrix.shape[0] == 0:
        return np.empty((0,), dtype=np.float64)
    if matrix.shape[1] != query.shape[0]:
        raise ValueError(
            f"Dimension mismatch: query has {query.shape[0]}, "
            f"matrix rows have {matrix.shape[1]}"
        )

    if _get_backend() == "sklearn":
        return _cosine_sklearn(query, matrix)
    return _cosine_numpy(query, matrix)


def _cosine_numpy(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    q = query.astype(np.float64)
    m = matrix.astype(np.float64)
    q_norm = max(float(np.linalg.norm(q)), 1e-10)
    row_norms = np.maximum(np.linalg.norm(m, axis=1), 1e-10)
    return (m @ q) / (row_norms * q_norm)


def _cosine_sklearn(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    from sklearn.metrics.pairwise import cosine_similarity

    return cosine_similarity(query.reshape(1, -1), matrix)[0]


def reset_backend() -> None:
    """Reset cached backend (for testing)."""
    global _backend
    _backend = None
