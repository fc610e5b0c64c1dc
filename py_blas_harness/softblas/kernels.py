# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/softblas/kernels.py

"""
Device kernels of the emulated library.

Each kernel receives a list of per-entry numpy views (one per batch entry)
straight out of device memory and updates them in place. her and syr2k gather
the whole batch into a stacked array, update it with one vectorised
expression and scatter it back; rotmg runs one scalar "thread" per entry.
"""

from typing import List

import numpy as np

from ..enums import FillMode, Operation


def _matrix_index(rows: int, cols: int, ld: int) -> np.ndarray:
    """Flat column-major indices of a rows x cols matrix with leading dimension ld."""
    return np.add.outer(np.arange(rows), np.arange(cols) * ld)


def _vector_index(n: int, inc: int) -> np.ndarray:
    """Flat indices of the n logical elements of a vector with increment inc."""
    if inc > 0:
        return np.arange(n) * inc
    return (n - 1 - np.arange(n)) * (-inc)


def _triangle_mask(n: int, uplo: FillMode) -> np.ndarray:
    full = np.ones((n, n), dtype=bool)
    return np.triu(full) if uplo == FillMode.UPPER else np.tril(full)


def her_kernel(uplo: FillMode, n: int, alpha, xs: List[np.ndarray], incx: int,
               As: List[np.ndarray], lda: int) -> None:
    """A := alpha * x * x**H + A on the uplo triangle of every entry."""
    a_index = _matrix_index(n, n, lda)
    x_index = _vector_index(n, incx)

    A = np.stack([entry[a_index] for entry in As])
    X = np.stack([entry[x_index] for entry in xs])

    update = alpha * X[:, :, None] * np.conj(X[:, None, :])
    mask = _triangle_mask(n, uplo)
    A = np.where(mask, A + update.astype(A.dtype), A)

    # Diagonal of a Hermitian matrix is real
    diag = np.arange(n)
    A[:, diag, diag] = A[:, diag, diag].real

    for entry, updated in zip(As, A):
        entry[a_index] = updated


def syr2k_kernel(uplo: FillMode, trans: Operation, n: int, k: int, alpha,
                 As: List[np.ndarray], lda: int, Bs: List[np.ndarray], ldb: int,
                 beta, Cs: List[np.ndarray], ldc: int) -> None:
    """C := alpha*(op(A) op(B)**T + op(B) op(A)**T) + beta*C on the uplo triangle.

    As and Bs are None when alpha or k is zero; A and B are not referenced then.
    """
    c_index = _matrix_index(n, n, ldc)
    C = np.stack([entry[c_index] for entry in Cs])

    if beta == 0:
        # C is not read when beta is zero, so NaNs in it do not propagate
        result = np.zeros_like(C)
    else:
        result = beta * C

    if As is not None and alpha != 0 and k > 0:
        if trans == Operation.NONE:
            a_index = _matrix_index(n, k, lda)
            b_index = _matrix_index(n, k, ldb)
        else:
            a_index = _matrix_index(k, n, lda)
            b_index = _matrix_index(k, n, ldb)

        A = np.stack([entry[a_index] for entry in As])
        B = np.stack([entry[b_index] for entry in Bs])
        if trans != Operation.NONE:
            A = A.transpose(0, 2, 1)
            B = B.transpose(0, 2, 1)

        result = alpha * (A @ B.transpose(0, 2, 1) + B @ A.transpose(0, 2, 1)) + result

    mask = _triangle_mask(n, uplo)
    C = np.where(mask, result.astype(C.dtype), C)

    for entry, updated in zip(Cs, C):
        entry[c_index] = updated


def _rotmg_thread(d1: np.ndarray, d2: np.ndarray, x1: np.ndarray, y1: np.ndarray, param: np.ndarray) -> None:
    """Modified Givens rotation setup for one batch entry (all arguments are 1-element views)."""
    T = d1.dtype.type
    zero, one = T(0), T(1)
    gam = T(4096)
    gamsq = gam * gam
    rgamsq = one / gamsq

    D1, D2, X1, Y1 = d1[0], d2[0], x1[0], y1[0]
    flag = T(-1)
    h11 = h12 = h21 = h22 = zero

    if D1 < zero:
        D1 = D2 = X1 = zero
    else:
        p2 = D2 * Y1
        if p2 == zero:
            param[0] = T(-2)
            return

        p1 = D1 * X1
        q2 = p2 * Y1
        q1 = p1 * X1

        if abs(q1) > abs(q2):
            h21 = -Y1 / X1
            h12 = p2 / p1
            u = one - h12 * h21
            if u > zero:
                flag = zero
                D1 = D1 / u
                D2 = D2 / u
                X1 = X1 * u
            else:
                h12 = h21 = zero
                D1 = D2 = X1 = zero
        elif q2 < zero:
            D1 = D2 = X1 = zero
        else:
            flag = one
            h11 = p1 / p2
            h22 = X1 / Y1
            u = one + h11 * h22
            D1, D2 = D2 / u, D1 / u
            X1 = Y1 * u

        def _rescale_flag(flag, h11, h12, h21, h22):
            if flag == zero:
                return T(-1), one, h12, h21, one
            return T(-1), h11, one, -one, h22

        if D1 != zero:
            while np.isfinite(D1) and (D1 <= rgamsq or D1 >= gamsq):
                flag, h11, h12, h21, h22 = _rescale_flag(flag, h11, h12, h21, h22)
                if D1 <= rgamsq:
                    D1 = D1 * gamsq
                    X1 = X1 / gam
                    h11 = h11 / gam
                    h12 = h12 / gam
                else:
                    D1 = D1 / gamsq
                    X1 = X1 * gam
                    h11 = h11 * gam
                    h12 = h12 * gam

        if D2 != zero:
            while np.isfinite(D2) and (abs(D2) <= rgamsq or abs(D2) >= gamsq):
                flag, h11, h12, h21, h22 = _rescale_flag(flag, h11, h12, h21, h22)
                if abs(D2) <= rgamsq:
                    D2 = D2 * gamsq
                    h21 = h21 / gam
                    h22 = h22 / gam
                else:
                    D2 = D2 / gamsq
                    h21 = h21 * gam
                    h22 = h22 * gam

    d1[0], d2[0], x1[0] = D1, D2, X1
    if flag < zero:
        param[1:5] = (h11, h21, h12, h22)
    elif flag == zero:
        param[2:4] = (h21, h12)
    else:
        param[1] = h11
        param[4] = h22
    param[0] = flag


def rotmg_kernel(d1s, d2s, x1s, y1s, params) -> None:
    """Launch one rotmg thread per batch entry."""
    with np.errstate(all="ignore"):
        for d1, d2, x1, y1, param in zip(d1s, d2s, x1s, y1s, params):
            _rotmg_thread(d1, d2, x1, y1, param)
