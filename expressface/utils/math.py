from __future__ import annotations

import numpy as np


def safe_ratio(num: float, denom: float, default: float = 0.0) -> float:
    """Return num / denom, or `default` when the denominator is zero or the result is not finite."""
    if denom == 0:
        return float(default)
    out = float(num) / float(denom)
    if not np.isfinite(out):
        return float(default)
    return out


def cosine_similarity(a, b, eps: float = 1e-12) -> float:
    """Cosine similarity for 1D vectors.

    Returns 0.0 when either vector has zero norm or the lengths differ.
    """
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    if va.shape[0] != vb.shape[0]:
        return 0.0
    na = float(np.linalg.norm(va))
    nb = float(np.linalg.norm(vb))
    if na < eps or nb < eps:
        return 0.0
    return float(np.dot(va, vb) / (na * nb))


def row_cosine_similarity(matrix: np.ndarray, query: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    """Cosine similarity of `query` against every row of `matrix` (N, D).

    Rows (or a query) with zero norm score 0.0.
    """
    mat = np.asarray(matrix, dtype=np.float64)
    if mat.ndim == 1:
        mat = mat.reshape(1, -1)
    q = np.asarray(query, dtype=np.float64).reshape(-1)
    if mat.size == 0:
        return np.zeros((mat.shape[0],), dtype=np.float64)
    qn = float(np.linalg.norm(q))
    if qn < eps:
        return np.zeros((mat.shape[0],), dtype=np.float64)
    norms = np.linalg.norm(mat, axis=1)
    dots = mat @ q
    out = np.zeros((mat.shape[0],), dtype=np.float64)
    ok = norms >= eps
    out[ok] = dots[ok] / (norms[ok] * qn)
    return out
