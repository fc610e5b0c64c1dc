# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/softblas/fortran.py

"""
Fortran-style bindings for SoftBlas.

The Fortran interface passes enum arguments as single characters and integer
arguments by reference (ctypes.c_int64 cells). Each binding unmarshals its
arguments and forwards to the C entry point of the same name, so both calling
conventions reach exactly the same routine.
"""

import ctypes
import logging
from typing import Callable, Dict, Tuple, Type

from ..enums import FillMode, Operation, Status
from .library import SoftBlas, parse_symbol

logger = logging.getLogger(__name__)

# Enum types of the character arguments of each routine, in argument order
CHAR_ARGUMENTS: Dict[str, Tuple[Type, ...]] = {
    "rotmg": (),
    "her": (FillMode,),
    "syr2k": (FillMode, Operation),
}


def _from_char(enum_type, value):
    """Decode a Fortran character argument; undecodable values are passed through."""
    try:
        return enum_type.from_char(value)
    except (ValueError, AttributeError):
        return value


class FortranBindings:
    """Fortran calling convention on top of a SoftBlas instance."""

    def __init__(self, library: SoftBlas):
        self.library = library

    def entry_point(self, symbol: str) -> Callable[..., Status]:
        _, routine, _ = parse_symbol(symbol)
        target = self.library.entry_point(symbol)
        char_types = CHAR_ARGUMENTS[routine]

        def call(handle, *args) -> Status:
            chars = iter(char_types)
            unmarshalled = []
            for arg in args:
                if isinstance(arg, ctypes.c_int64):
                    unmarshalled.append(arg.value)
                elif isinstance(arg, str):
                    unmarshalled.append(_from_char(next(chars, None), arg))
                else:
                    unmarshalled.append(arg)
            return target(handle, *unmarshalled)

        call.__name__ = f"{symbol}_fortran"
        return call
