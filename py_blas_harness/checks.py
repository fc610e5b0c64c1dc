# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/checks.py

"""
Result comparators.

All checks look at the M x N leading submatrix of each batch entry (column-major
with leading dimension lda) and never modify their inputs. Operands may be host
containers, lists of per-entry flat arrays, or one flat array sliced by stride.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .errors import UnitCheckError
from .numeric import NumericType
from .reporting import NA_VALUE

logger = logging.getLogger(__name__)

# Unit-check tolerance, in multiples of machine epsilon
UNIT_CHECK_EPS_FACTOR = 1000

NORM_TYPES = ("F", "O", "I", "M")


def _entries(operand, batch_count: int, stride: Optional[int]) -> List[np.ndarray]:
    if hasattr(operand, "entries"):
        return operand.entries()
    if isinstance(operand, np.ndarray):
        if stride is None:
            return [operand]
        return [operand[b * stride:] for b in range(batch_count)]
    return list(operand)


def _matrix(flat: np.ndarray, M: int, N: int, lda: int) -> np.ndarray:
    flat = np.asarray(flat).reshape(-1)
    if M == 0 or N == 0:
        return np.zeros((M, N), dtype=flat.dtype)
    return flat[:lda * N].reshape(N, lda).T[:M, :]


def _parts(matrix: np.ndarray) -> List[np.ndarray]:
    if np.iscomplexobj(matrix):
        return [matrix.real.astype(np.float64), matrix.imag.astype(np.float64)]
    return [matrix.astype(np.float64)]


def _mismatch(expected: np.ndarray, actual: np.ndarray, tolerance: np.ndarray) -> np.ndarray:
    with np.errstate(invalid="ignore", over="ignore"):
        close = np.abs(expected - actual) <= tolerance
    same = (expected == actual) | (np.isnan(expected) & np.isnan(actual))
    return ~(close | same)


def _compare(label: str, M: int, N: int, lda: int, expected, actual, batch_count: int,
             stride: Optional[int], tolerance_of) -> None:
    expected_entries = _entries(expected, batch_count, stride)
    actual_entries = _entries(actual, batch_count, stride)
    if len(expected_entries) != len(actual_entries):
        raise ValueError(
            f"{label}: batch sizes differ: {len(expected_entries)} != {len(actual_entries)}"
        )

    for b, (e_flat, a_flat) in enumerate(zip(expected_entries, actual_entries)):
        E = _matrix(e_flat, M, N, lda)
        A = _matrix(a_flat, M, N, lda)
        for e_part, a_part in zip(_parts(E), _parts(A)):
            tolerance = tolerance_of(e_part)
            bad = _mismatch(e_part, a_part, tolerance)
            if bad.any():
                # First offending element in column-major order
                col, row = np.argwhere(bad.T)[0]
                tol = tolerance if np.isscalar(tolerance) else tolerance[row, col]
                raise UnitCheckError(label, b, int(row), int(col), E[row, col], A[row, col], float(tol))


def unit_check_general(ntype: NumericType, M: int, N: int, lda: int, expected, actual,
                       batch_count: int = 1, stride: Optional[int] = None, label: str = "unit_check") -> None:
    """Element-wise check with a tolerance of UNIT_CHECK_EPS_FACTOR * eps, relative to max(1, |expected|).

    Raises:
        UnitCheckError: at the first element outside the tolerance
    """
    factor = UNIT_CHECK_EPS_FACTOR * ntype.eps

    def tolerance_of(expected_part):
        with np.errstate(invalid="ignore"):
            return factor * np.maximum(1.0, np.abs(expected_part))

    _compare(label, M, N, lda, expected, actual, batch_count, stride, tolerance_of)


def near_check_general(ntype: NumericType, M: int, N: int, lda: int, expected, actual, abs_error: float,
                       batch_count: int = 1, stride: Optional[int] = None, label: str = "near_check") -> None:
    """Element-wise check with an absolute tolerance.

    Raises:
        UnitCheckError: at the first element further than abs_error from the expected value
    """
    _compare(label, M, N, lda, expected, actual, batch_count, stride, lambda _: abs_error)


def _norm(matrix: np.ndarray, norm_type: str) -> float:
    if matrix.size == 0:
        return 0.0
    if norm_type == "F":
        return float(np.linalg.norm(matrix, "fro"))
    if norm_type == "O":
        return float(np.abs(matrix).sum(axis=0).max())
    if norm_type == "I":
        return float(np.abs(matrix).sum(axis=1).max())
    return float(np.abs(matrix).max())


def norm_check_general(norm_type: str, M: int, N: int, lda: int, expected, actual,
                       batch_count: int = 1, stride: Optional[int] = None) -> float:
    """Relative norm error ||actual - expected|| / ||expected||, summed over the batch.

    Computed in double precision. Elements that are NaN in both operands count
    as equal. When the reference norm is zero the absolute error norm is used.
    """
    norm_type = norm_type.upper()
    if norm_type not in NORM_TYPES:
        raise ValueError(f"Invalid norm type: '{norm_type}'. Must be one of {NORM_TYPES}")

    expected_entries = _entries(expected, batch_count, stride)
    actual_entries = _entries(actual, batch_count, stride)
    if len(expected_entries) != len(actual_entries):
        raise ValueError(f"Batch sizes differ: {len(expected_entries)} != {len(actual_entries)}")

    total = 0.0
    for e_flat, a_flat in zip(expected_entries, actual_entries):
        E = _matrix(e_flat, M, N, lda).astype(np.complex128)
        A = _matrix(a_flat, M, N, lda).astype(np.complex128)
        both_nan = np.isnan(E) & np.isnan(A)
        diff = np.where(both_nan, 0, A - E)
        ref_norm = _norm(np.where(both_nan, 0, E), norm_type)
        error = _norm(diff, norm_type)
        total += error / ref_norm if ref_norm > 0 else error
    return total


@dataclass
class NormErrors:
    """Accumulated norm errors of the two pointer-mode passes."""
    host: float = NA_VALUE
    device: float = NA_VALUE


@dataclass
class OutputComparison:
    """One output operand: its check region and the three result mirrors."""
    spec: object
    gold: object
    host: object
    device: object


class Comparator:
    """Runs every enabled unit check before any norm check."""

    def __init__(self, unit_check: bool, norm_check: bool, norm_type: str = "F"):
        self.unit_check = unit_check
        self.norm_check = norm_check
        self.norm_type = norm_type

    def compare(self, ntype: NumericType, outputs: Sequence[OutputComparison], batch_count: int) -> NormErrors:
        if self.unit_check:
            for out in outputs:
                self._unit(ntype, out, batch_count)

        errors = NormErrors()
        if self.norm_check:
            errors.host = self._norm_sum(outputs, batch_count, lambda out: out.host)
            errors.device = self._norm_sum(outputs, batch_count, lambda out: out.device)
            logger.debug(f"norm errors: host={errors.host:.3e}, device={errors.device:.3e}")
        return errors

    def _unit(self, ntype: NumericType, out: OutputComparison, batch_count: int) -> None:
        region = out.spec.check
        for mode, actual in (("host", out.host), ("device", out.device)):
            label = f"{out.spec.name} ({mode} pointer mode)"
            if out.spec.near_tolerance is not None:
                near_check_general(ntype, region.M, region.N, region.ld, out.gold, actual,
                                   out.spec.near_tolerance, batch_count, label=label)
            else:
                unit_check_general(ntype, region.M, region.N, region.ld, out.gold, actual,
                                   batch_count, label=label)

    def _norm_sum(self, outputs: Iterable[OutputComparison], batch_count: int, select) -> float:
        return sum(
            norm_check_general(self.norm_type, out.spec.check.M, out.spec.check.N, out.spec.check.ld,
                               out.gold, select(out), batch_count)
            for out in outputs
        )
