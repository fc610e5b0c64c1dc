# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/reference.py

"""
NumPy reference implementations of the routines under test.

These follow the column-oriented loops of the reference BLAS, operate on one
batch entry at a time and update their output arguments in place. Matrices are
flat column-major arrays with a leading dimension; vectors use BLAS increments,
where a negative increment walks the storage backwards.
"""

import numpy as np

from .enums import FillMode, Operation


def _as_matrix(flat: np.ndarray, rows: int, cols: int, ld: int) -> np.ndarray:
    """Writable (rows, cols) view of a flat column-major array."""
    return flat[:ld * cols].reshape(cols, ld).T[:rows, :]


def _logical_vector(flat: np.ndarray, n: int, inc: int) -> np.ndarray:
    if inc > 0:
        return flat[:n * inc:inc]
    return flat[:n * -inc:-inc][::-1]


def ref_rotmg(d1: np.ndarray, d2: np.ndarray, x1: np.ndarray, y1: np.ndarray, param: np.ndarray) -> None:
    """Construct the modified Givens transformation H that zeroes the second component of
    (sqrt(d1)*x1, sqrt(d2)*y1).

    Args:
        d1, d2, x1: One-element arrays, updated in place
        y1: One-element array, read only
        param: Five-element array receiving [flag, h11, h21, h12, h22]
    """
    T = d1.dtype.type
    gam = T(4096.0)
    gamsq = T(16777216.0)
    rgamsq = T(1) / gamsq

    with np.errstate(all="ignore"):
        dd1, dd2, dx1, dy1 = d1[0], d2[0], x1[0], y1[0]
        h11 = h12 = h21 = h22 = T(0)

        if dd1 < 0:
            flag = T(-1)
            dd1 = dd2 = dx1 = T(0)
        else:
            p2 = dd2 * dy1
            if p2 == 0:
                param[0] = T(-2)
                return

            p1 = dd1 * dx1
            q2 = p2 * dy1
            q1 = p1 * dx1

            if np.abs(q1) > np.abs(q2):
                h21 = -dy1 / dx1
                h12 = p2 / p1
                u = T(1) - h12 * h21
                if u > 0:
                    flag = T(0)
                    dd1 /= u
                    dd2 /= u
                    dx1 *= u
                else:
                    flag = T(-1)
                    h11 = h12 = h21 = h22 = T(0)
                    dd1 = dd2 = dx1 = T(0)
            elif q2 < 0:
                flag = T(-1)
                h11 = h12 = h21 = h22 = T(0)
                dd1 = dd2 = dx1 = T(0)
            else:
                flag = T(1)
                h11 = p1 / p2
                h22 = dx1 / dy1
                u = T(1) + h11 * h22
                temp = dd2 / u
                dd2 = dd1 / u
                dd1 = temp
                dx1 = dy1 * u

            if dd1 != 0:
                while np.isfinite(dd1) and (dd1 <= rgamsq or dd1 >= gamsq):
                    if flag == 0:
                        h11 = h22 = T(1)
                    else:
                        h21 = T(-1)
                        h12 = T(1)
                    flag = T(-1)
                    if dd1 <= rgamsq:
                        dd1 *= gamsq
                        dx1 /= gam
                        h11 /= gam
                        h12 /= gam
                    else:
                        dd1 /= gamsq
                        dx1 *= gam
                        h11 *= gam
                        h12 *= gam

            if dd2 != 0:
                while np.isfinite(dd2) and (np.abs(dd2) <= rgamsq or np.abs(dd2) >= gamsq):
                    if flag == 0:
                        h11 = h22 = T(1)
                    else:
                        h21 = T(-1)
                        h12 = T(1)
                    flag = T(-1)
                    if np.abs(dd2) <= rgamsq:
                        dd2 *= gamsq
                        h21 /= gam
                        h22 /= gam
                    else:
                        dd2 /= gamsq
                        h21 *= gam
                        h22 *= gam

        d1[0], d2[0], x1[0] = dd1, dd2, dx1
        if flag < 0:
            param[1], param[2], param[3], param[4] = h11, h21, h12, h22
        elif flag == 0:
            param[2], param[3] = h21, h12
        else:
            param[1], param[4] = h11, h22
        param[0] = flag


def ref_her(uplo: FillMode, n: int, alpha, x: np.ndarray, incx: int, A: np.ndarray, lda: int) -> None:
    """Hermitian rank-1 update A := alpha*x*x**H + A (alpha real)."""
    if n == 0 or alpha == 0:
        return

    X = _logical_vector(x, n, incx)
    M = _as_matrix(A, n, n, lda)

    for j in range(n):
        if X[j] != 0:
            temp = alpha * np.conj(X[j])
            rows = slice(0, j) if uplo == FillMode.UPPER else slice(j + 1, n)
            M[rows, j] += X[rows] * temp
            M[j, j] = M[j, j].real + (X[j] * temp).real
        else:
            M[j, j] = M[j, j].real


def ref_syr2k(uplo: FillMode, trans: Operation, n: int, k: int, alpha, A: np.ndarray, lda: int,
              B: np.ndarray, ldb: int, beta, C: np.ndarray, ldc: int) -> None:
    """Symmetric rank-2k update of the uplo triangle of C."""
    if n == 0 or ((alpha == 0 or k == 0) and beta == 1):
        return

    Cm = _as_matrix(C, n, n, ldc)

    def triangle(j: int) -> slice:
        return slice(0, j + 1) if uplo == FillMode.UPPER else slice(j, n)

    if alpha == 0 or k == 0:
        for j in range(n):
            rows = triangle(j)
            Cm[rows, j] = 0 if beta == 0 else beta * Cm[rows, j]
        return

    # Bring both operands to (n, k)
    if trans == Operation.NONE:
        Am = _as_matrix(A, n, k, lda)
        Bm = _as_matrix(B, n, k, ldb)
    else:
        Am = _as_matrix(A, k, n, lda).T
        Bm = _as_matrix(B, k, n, ldb).T

    for j in range(n):
        rows = triangle(j)
        update = alpha * (Am[rows, :] @ Bm[j, :] + Bm[rows, :] @ Am[j, :])
        if beta == 0:
            Cm[rows, j] = update
        else:
            Cm[rows, j] = beta * Cm[rows, j] + update
