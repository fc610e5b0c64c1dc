# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/enums.py

"""
Enumerations shared by the harness, the emulated device library and the CLI.
"""

from enum import Enum


class Status(Enum):
    """Closed set of status codes returned by library routines."""
    SUCCESS = "success"
    INVALID_HANDLE = "invalid_handle"
    INVALID_VALUE = "invalid_value"
    ALLOC_FAILED = "alloc_failed"
    INTERNAL_ERROR = "internal_error"
    NOT_SUPPORTED = "not_supported"
    NOT_INITIALIZED = "not_initialized"


class PointerMode(Enum):
    """Where scalar arguments are read from at call time."""
    HOST = "host"
    DEVICE = "device"


class FillMode(Enum):
    UPPER = "U"
    LOWER = "L"

    @classmethod
    def from_char(cls, c: str) -> "FillMode":
        try:
            return cls(c.upper())
        except ValueError:
            raise ValueError(f"Invalid fill mode: '{c}'. Must be one of 'U', 'L'")


class Operation(Enum):
    NONE = "N"
    TRANSPOSE = "T"
    CONJUGATE_TRANSPOSE = "C"

    @classmethod
    def from_char(cls, c: str) -> "Operation":
        try:
            return cls(c.upper())
        except ValueError:
            raise ValueError(f"Invalid operation: '{c}'. Must be one of 'N', 'T', 'C'")


class BatchKind(Enum):
    """Memory layout of a batch of operands."""
    SINGLE = ""
    BATCHED = "_batched"
    STRIDED_BATCHED = "_strided_batched"

    @property
    def suffix(self) -> str:
        return self.value


class NanPolicy(Enum):
    """Whether a buffer is filled with NaN when a scale factor is NaN."""
    NEVER_SET_NAN = "never_set_nan"
    ALPHA_SETS_NAN = "alpha_sets_nan"
    BETA_SETS_NAN = "beta_sets_nan"


class Initialization(Enum):
    RAND_INT = "rand_int"
    TRIG_FLOAT = "trig_float"
    HPL = "hpl"


class ClientApi(Enum):
    """Calling-convention variant used to reach the library."""
    C = "c"
    FORTRAN = "fortran"


class MemcpyKind(Enum):
    HOST_TO_DEVICE = "h2d"
    DEVICE_TO_HOST = "d2h"
    DEVICE_TO_DEVICE = "d2d"
