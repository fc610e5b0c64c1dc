# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/routines/base.py

"""
Routine descriptors.

A Routine tells the generic harness everything that differs between the
routines under test: which operands exist and how large they are, how each is
generated and compared, which argument combinations are invalid or empty,
how to call the library and how to compute the reference result.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..api import BlasApi
from ..arguments import Arguments
from ..data import STRUCTURES
from ..enums import BatchKind, NanPolicy, Status
from ..numeric import NumericType
from ..reporting import NA_VALUE, ArgumentModel


@dataclass(frozen=True)
class CheckRegion:
    """M x N submatrix with leading dimension ld that the comparators look at."""
    M: int
    N: int
    ld: int


@dataclass(frozen=True)
class BufferSpec:
    """Shape, generation policy and comparison policy of one operand."""
    name: str
    n: int
    inc: int = 1
    stride: int = 0
    nan_policy: NanPolicy = NanPolicy.NEVER_SET_NAN
    seed_reset: bool = False
    alternating_sign: bool = False
    structure: str = "none"
    # Compared against the reference after each pointer-mode pass
    output: bool = False
    # Device copy is refreshed from the original between the two passes
    restore: bool = False
    # Passed from host memory in host pointer mode, like a scalar
    pointer_mode_operand: bool = False
    check: Optional[CheckRegion] = None
    # Absolute tolerance; None selects the relative unit check
    near_tolerance: Optional[float] = None

    def __post_init__(self):
        if self.structure not in STRUCTURES:
            raise ValueError(
                f"Unknown structure for {self.name}: '{self.structure}'. Must be one of {list(STRUCTURES)}"
            )
        # Structure is applied to the check region of each entry
        if self.structure != "none" and self.check is None:
            raise ValueError(f"Structure '{self.structure}' on {self.name} needs a check region")


@dataclass(frozen=True)
class ScalarSpec:
    """A scale factor staged in host and device memory."""
    name: str
    source: str = "alpha"
    real: bool = False

    def numeric_type(self, ntype: NumericType) -> NumericType:
        return ntype.real if self.real else ntype

    def value(self, arg: Arguments, ntype: NumericType):
        target = self.numeric_type(ntype)
        return arg.get_alpha(target) if self.source == "alpha" else arg.get_beta(target)


class Routine(ABC):
    """One routine in one batch variant."""

    name: str = ""
    supported_types: Tuple[str, ...] = ()
    model: ArgumentModel = ArgumentModel("a_type")
    # Routines without sizes return without any call when batch_count <= 0
    positive_batch_only: bool = False

    def __init__(self, batch_kind: BatchKind = BatchKind.SINGLE):
        self.batch_kind = batch_kind

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.batch_kind.name})"

    @property
    def full_name(self) -> str:
        return f"{self.name}{self.batch_kind.suffix}"

    def symbol(self, ntype: NumericType) -> str:
        return f"{ntype.name}{self.full_name}"

    def supports(self, ntype: NumericType) -> bool:
        return ntype.name in self.supported_types

    def batch_count(self, arg: Arguments) -> int:
        return 1 if self.batch_kind == BatchKind.SINGLE else arg.batch_count

    def stride(self, per_entry: int, arg: Arguments) -> int:
        """Batch stride of an operand: per-entry size scaled by stride_scale.

        Raises:
            ValueError: The stride would make batch entries overlap
        """
        if self.batch_kind != BatchKind.STRIDED_BATCHED:
            return 0
        stride = int(per_entry * arg.stride_scale)
        if stride < per_entry and self.batch_count(arg) > 1:
            raise ValueError(
                f"{self.full_name}: stride {stride} is smaller than the entry size {per_entry} "
                f"(stride_scale={arg.stride_scale}); batch entries would overlap"
            )
        return stride

    def invalid_size(self, arg: Arguments, ntype: NumericType) -> bool:
        return False

    def empty(self, arg: Arguments) -> bool:
        return arg.N == 0 or self.batch_count(arg) == 0

    @abstractmethod
    def buffers(self, arg: Arguments, ntype: NumericType) -> List[BufferSpec]:
        """Operands in generation order."""

    def scalars(self, arg: Arguments, ntype: NumericType) -> List[ScalarSpec]:
        return []

    def buffer_map(self, arg: Arguments, ntype: NumericType) -> Dict[str, BufferSpec]:
        return {spec.name: spec for spec in self.buffers(arg, ntype)}

    @abstractmethod
    def call(self, api: BlasApi, handle, arg: Arguments, ntype: NumericType,
             scalars: Dict[str, object], operands: Dict[str, object]) -> Status:
        """Invoke the library routine with the given scalar and operand pointers."""

    def probe(self, api: BlasApi, handle, arg: Arguments, ntype: NumericType) -> Status:
        """Call the routine with null scalars and operands."""
        nulls = defaultdict(lambda: None)
        return self.call(api, handle, arg, ntype, nulls, nulls)

    @abstractmethod
    def reference(self, arg: Arguments, ntype: NumericType, scalars: Dict[str, object],
                  entries: Dict[str, np.ndarray]) -> None:
        """Compute the expected result for one batch entry, in place."""

    def gflop_count(self, arg: Arguments, ntype: NumericType) -> float:
        return NA_VALUE

    def gbyte_count(self, arg: Arguments, ntype: NumericType) -> float:
        return NA_VALUE

    def test_name(self, arg: Arguments, ntype: NumericType) -> str:
        return self.model.test_name(self.full_name, arg, ntype.name)
