"""
Test utilities for py-blas-harness test suite.

Helpers to build column-major operands and dense NumPy references.
"""

import numpy as np


def to_column_major(matrix: np.ndarray, ld: int) -> np.ndarray:
    """Flatten a (rows, cols) matrix into column-major storage with leading dimension ld."""
    rows, cols = matrix.shape
    assert ld >= rows, f"Leading dimension {ld} smaller than {rows} rows"
    flat = np.zeros(ld * cols, dtype=matrix.dtype)
    for j in range(cols):
        flat[j * ld:j * ld + rows] = matrix[:, j]
    return flat


def from_column_major(flat: np.ndarray, rows: int, cols: int, ld: int) -> np.ndarray:
    """Dense (rows, cols) copy of a column-major matrix."""
    return np.array([[flat[i + j * ld] for j in range(cols)] for i in range(rows)], dtype=flat.dtype)


def strided_vector(values: np.ndarray, inc: int) -> np.ndarray:
    """Store a logical vector at BLAS increment inc (negative increments store it backwards)."""
    n = len(values)
    step = abs(inc)
    flat = np.zeros(n * step, dtype=values.dtype)
    if inc > 0:
        flat[::step] = values
    else:
        flat[::step] = values[::-1]
    return flat


def random_matrix(rng, rows: int, cols: int, dtype) -> np.ndarray:
    """Small random integers so that float results are exact."""
    values = rng.integers(-5, 6, (rows, cols)).astype(np.float64)
    if np.issubdtype(dtype, np.complexfloating):
        values = values + 1j * rng.integers(-5, 6, (rows, cols))
    return values.astype(dtype)


def dense_her(uplo: str, alpha, x: np.ndarray, A: np.ndarray) -> np.ndarray:
    """Dense NumPy her: only the uplo triangle is updated and the diagonal becomes real."""
    full = A + alpha * np.outer(x, np.conj(x))
    mask = np.triu(np.ones(A.shape, dtype=bool)) if uplo == "U" else np.tril(np.ones(A.shape, dtype=bool))
    result = np.where(mask, full, A)
    np.fill_diagonal(result, np.diag(result).real)
    return result


def dense_syr2k(uplo: str, trans: str, alpha, A: np.ndarray, B: np.ndarray, beta, C: np.ndarray) -> np.ndarray:
    """Dense NumPy syr2k on (n, k) operands, or (k, n) operands when transposed."""
    if trans != "N":
        A, B = A.T, B.T
    full = alpha * (A @ B.T + B @ A.T) + beta * C
    mask = np.triu(np.ones(C.shape, dtype=bool)) if uplo == "U" else np.tril(np.ones(C.shape, dtype=bool))
    return np.where(mask, full, C)


def assert_no_leaks(device) -> None:
    assert device.live_allocations == 0, f"{device.live_allocations} device allocations leaked"
