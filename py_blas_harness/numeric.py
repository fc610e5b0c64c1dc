# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/numeric.py

"""
Numeric type descriptors.

A NumericType bundles everything the harness needs to know about an element
type: its numpy dtype, the matching real dtype, machine epsilon and whether it
is complex. The harness is written once against this descriptor instead of
once per element type.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class NumericType:
    """Capability set of one element type."""
    name: str
    dtype: np.dtype
    real_dtype: np.dtype

    @property
    def is_complex(self) -> bool:
        return np.issubdtype(self.dtype, np.complexfloating)

    @property
    def eps(self) -> float:
        return float(np.finfo(self.real_dtype).eps)

    @property
    def itemsize(self) -> int:
        return self.dtype.itemsize

    @property
    def real(self) -> "NumericType":
        """Descriptor of the matching real type (e.g. 'c' -> 's')."""
        return _REAL_TYPES[self.real_dtype]

    def scalar(self, value) -> np.generic:
        """Convert a Python number to a scalar of this type."""
        if not self.is_complex:
            value = value.real if isinstance(value, complex) else value
        return self.dtype.type(value)

    def __str__(self) -> str:
        return self.name


FLOAT32 = NumericType("s", np.dtype(np.float32), np.dtype(np.float32))
FLOAT64 = NumericType("d", np.dtype(np.float64), np.dtype(np.float64))
COMPLEX64 = NumericType("c", np.dtype(np.complex64), np.dtype(np.float32))
COMPLEX128 = NumericType("z", np.dtype(np.complex128), np.dtype(np.float64))

_REAL_TYPES = {
    np.dtype(np.float32): FLOAT32,
    np.dtype(np.float64): FLOAT64,
}

# Precision code -> descriptor
TYPE_DISPATCH_MAP = {
    "s": FLOAT32,
    "d": FLOAT64,
    "c": COMPLEX64,
    "z": COMPLEX128,
}

_DTYPE_DISPATCH_MAP = {t.dtype: t for t in TYPE_DISPATCH_MAP.values()}


def get_numeric_type(spec) -> NumericType:
    """Look up a descriptor by precision code ('s', 'd', 'c', 'z') or numpy dtype."""
    if isinstance(spec, NumericType):
        return spec
    if isinstance(spec, str) and spec in TYPE_DISPATCH_MAP:
        return TYPE_DISPATCH_MAP[spec]
    try:
        dtype = np.dtype(spec)
    except TypeError:
        raise ValueError(f"Unsupported numeric type: {spec!r}")
    if dtype not in _DTYPE_DISPATCH_MAP:
        raise ValueError(
            f"Unsupported numeric type: {spec!r}. Supported: {list(TYPE_DISPATCH_MAP.keys())}"
        )
    return _DTYPE_DISPATCH_MAP[dtype]
