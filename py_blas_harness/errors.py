# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/errors.py

"""
Exception taxonomy for the harness.

- DeviceError: a memory transfer or allocation failed (infrastructure failure)
- BlasStatusError: a library routine returned a non-success status
- UnexpectedStatusError: an argument probe returned the wrong status
- UnitCheckError: an element is outside the unit-check tolerance

None of these are retried. A test case that raises one is finished.
"""

from typing import Optional

from .enums import PointerMode, Status


class HarnessError(RuntimeError):
    """Base class for all harness failures."""


class DeviceError(HarnessError):
    """Allocation or memory transfer failure reported by the device runtime."""

    def __init__(self, status: Status, message: str):
        super().__init__(f"{message} (status: {status.value})")
        self.status = status


class BlasStatusError(HarnessError):
    """A routine under test returned a non-success status."""

    def __init__(self, routine: str, status: Status, pointer_mode: Optional[PointerMode] = None):
        mode = f" in {pointer_mode.value} pointer mode" if pointer_mode is not None else ""
        super().__init__(f"{routine} failed{mode} with status {status.value}")
        self.routine = routine
        self.status = status
        self.pointer_mode = pointer_mode


class UnexpectedStatusError(HarnessError):
    """An argument probe did not report the predicted status."""

    def __init__(self, routine: str, expected: Status, actual: Status):
        super().__init__(
            f"{routine}: expected status {expected.value}, got {actual.value}"
        )
        self.routine = routine
        self.expected = expected
        self.actual = actual


class UnitCheckError(HarnessError, AssertionError):
    """Element-wise comparison failed."""

    def __init__(self, label: str, batch: int, row: int, col: int, expected, actual, tolerance: float):
        super().__init__(
            f"{label}: mismatch at batch {batch}, row {row}, col {col}: "
            f"expected {expected}, got {actual} (tolerance {tolerance:.3e})"
        )
        self.label = label
        self.batch = batch
        self.row = row
        self.col = col
        self.expected = expected
        self.actual = actual
        self.tolerance = tolerance
