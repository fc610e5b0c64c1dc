# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/arguments.py

"""
Test configuration record.

Arguments is built once per test case (by the CLI, the sweep runner or a test)
and never mutated afterwards. Use with_changes() to derive a variant.
"""

import dataclasses
import math
from dataclasses import dataclass
from typing import Any, Dict

from .enums import ClientApi, FillMode, Initialization, Operation
from .numeric import NumericType, get_numeric_type


@dataclass(frozen=True)
class Arguments:
    """Flat, immutable description of one test case."""
    function: str = ""
    a_type: str = "s"

    # Shape parameters
    N: int = 128
    K: int = 128
    lda: int = 128
    ldb: int = 128
    ldc: int = 128
    incx: int = 1
    stride_scale: float = 1.0
    batch_count: int = 1

    # Scale factors
    alpha: float = 1.0
    alphai: float = 0.0
    beta: float = 0.0
    betai: float = 0.0

    # Mode parameters
    uplo: str = "U"
    transA: str = "N"

    # Execution flags
    unit_check: bool = True
    norm_check: bool = False
    timing: bool = False
    iters: int = 10
    cold_iters: int = 2
    api: ClientApi = ClientApi.C

    # Data generation
    seed: int = 69069
    initialization: Initialization = Initialization.RAND_INT

    def __post_init__(self):
        # Accept plain strings for the enum-valued fields
        if isinstance(self.api, str):
            object.__setattr__(self, "api", ClientApi(self.api.lower()))
        if isinstance(self.initialization, str):
            object.__setattr__(self, "initialization", Initialization(self.initialization))
        if self.iters < 0 or self.cold_iters < 0:
            raise ValueError(f"Iteration counts must be non-negative: iters={self.iters}, cold_iters={self.cold_iters}")

    @property
    def fill_mode(self) -> FillMode:
        return FillMode.from_char(self.uplo)

    @property
    def operation(self) -> Operation:
        return Operation.from_char(self.transA)

    @property
    def numeric_type(self) -> NumericType:
        return get_numeric_type(self.a_type)

    @property
    def fortran(self) -> bool:
        return self.api == ClientApi.FORTRAN

    @property
    def alpha_is_nan(self) -> bool:
        return math.isnan(self.alpha) or math.isnan(self.alphai)

    @property
    def beta_is_nan(self) -> bool:
        return math.isnan(self.beta) or math.isnan(self.betai)

    def get_alpha(self, ntype: NumericType):
        """alpha as a scalar of ntype (imaginary part dropped for real types)."""
        return ntype.scalar(complex(self.alpha, self.alphai) if ntype.is_complex else self.alpha)

    def get_beta(self, ntype: NumericType):
        """beta as a scalar of ntype (imaginary part dropped for real types)."""
        return ntype.scalar(complex(self.beta, self.betai) if ntype.is_complex else self.beta)

    def with_changes(self, **changes) -> "Arguments":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        result = dataclasses.asdict(self)
        result["api"] = self.api.value
        result["initialization"] = self.initialization.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Arguments":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown argument fields: {sorted(unknown)}")
        return cls(**data)
