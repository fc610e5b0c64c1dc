# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/softblas/__init__.py

"""
Emulated device BLAS library used as the system under test.
"""

from .fortran import FortranBindings
from .handle import Handle
from .library import ROUTINE_TYPES, SYMBOLS, SoftBlas, parse_symbol

__all__ = [
    "FortranBindings",
    "Handle",
    "ROUTINE_TYPES",
    "SYMBOLS",
    "SoftBlas",
    "parse_symbol",
]
