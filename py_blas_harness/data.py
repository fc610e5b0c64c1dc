# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/data.py

"""
Reproducible input generation.

A DataGenerator is created per test case from the test configuration. Buffers
are filled in the order the routine declares them, so the same seed and the
same configuration always produce bit-identical inputs.
"""

import logging
from typing import Callable, Dict

import numpy as np

from .arguments import Arguments
from .enums import Initialization, NanPolicy

logger = logging.getLogger(__name__)


def _no_structure(matrix: np.ndarray) -> None:
    pass


def _diagonally_dominant(matrix: np.ndarray) -> None:
    """Make every diagonal element larger in magnitude than the rest of its row."""
    diag = min(matrix.shape)
    for i in range(diag):
        matrix[i, i] = np.abs(matrix[i, :]).sum() + 1


# Structure hooks applied to each entry after random fill. The hook receives an
# (M, N) fancy-indexed copy and returns nothing; it is written back afterwards.
STRUCTURES: Dict[str, Callable[[np.ndarray], None]] = {
    "none": _no_structure,
    "diagonally_dominant": _diagonally_dominant,
}


class DataGenerator:
    """Fills host containers with deterministic values for one test case."""

    def __init__(self, arg: Arguments):
        self.arg = arg
        self.reset()

    def reset(self) -> None:
        """Restart the random sequence from the configured seed."""
        self.rng = np.random.default_rng(self.arg.seed)

    def _sets_nan(self, policy: NanPolicy) -> bool:
        if policy == NanPolicy.ALPHA_SETS_NAN:
            return self.arg.alpha_is_nan
        if policy == NanPolicy.BETA_SETS_NAN:
            return self.arg.beta_is_nan
        return False

    def _random(self, count: int, dtype: np.dtype, offset: int) -> np.ndarray:
        init = self.arg.initialization
        is_complex = np.issubdtype(dtype, np.complexfloating)

        if init == Initialization.RAND_INT:
            values = self.rng.integers(1, 11, count).astype(np.float64)
            if is_complex:
                values = values + 1j * self.rng.integers(1, 11, count)
        elif init == Initialization.TRIG_FLOAT:
            k = np.arange(offset, offset + count, dtype=np.float64)
            values = np.sin(k)
            if is_complex:
                values = values + 1j * np.cos(k)
        elif init == Initialization.HPL:
            values = self.rng.uniform(-0.5, 0.5, count)
            if is_complex:
                values = values + 1j * self.rng.uniform(-0.5, 0.5, count)
        else:
            raise ValueError(f"Unknown initialization: {init}")

        return values.astype(dtype)

    def init(self, container, spec) -> None:
        """Fill every entry of a host container according to a buffer spec.

        Args:
            container: Host container to fill in place
            spec: BufferSpec carrying the generation policy for this operand
        """
        if spec.seed_reset:
            self.reset()

        fill_nan = self._sets_nan(spec.nan_policy)
        logical = np.arange(container.n) * max(abs(container.inc), 1)
        structure = STRUCTURES[spec.structure]

        for b in range(container.batch_count):
            entry = container[b]
            if fill_nan:
                entry[logical] = np.nan
                continue

            values = self._random(container.n, container.dtype, b * container.n)
            if spec.alternating_sign:
                values[0::2] = -values[0::2]
            entry[logical] = values

            if spec.structure != "none":
                region = spec.check
                index = np.add.outer(np.arange(region.M), np.arange(region.N) * region.ld)
                matrix = entry[index]
                structure(matrix)
                entry[index] = matrix

        logger.debug(
            f"initialized {spec.name}: {container.batch_count} x {container.n} "
            f"({self.arg.initialization.value}{', NaN' if fill_nan else ''})"
        )
