# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/api.py

"""
Calling-convention adapters.

The harness talks to the library through a BlasApi so that the same test case
can be run through the C interface or the Fortran interface, selected by
Arguments.api.
"""

import ctypes
from abc import ABC, abstractmethod
from enum import Enum

from .device import DevicePointer
from .enums import ClientApi, Status
from .softblas import FortranBindings, SoftBlas


class BlasApi(ABC):
    """Invokes library entry points by symbol name."""

    def __init__(self, library: SoftBlas):
        self.library = library

    @abstractmethod
    def call(self, symbol: str, handle, *args) -> Status:
        pass


class CBlasApi(BlasApi):
    """Direct calls with enum values and plain integers."""

    def call(self, symbol: str, handle, *args) -> Status:
        return self.library.entry_point(symbol)(handle, *args)


class FortranBlasApi(BlasApi):
    """Enum characters and by-reference integers through the Fortran bindings."""

    def __init__(self, library: SoftBlas):
        super().__init__(library)
        self.bindings = FortranBindings(library)

    @staticmethod
    def marshal(arg):
        if isinstance(arg, Enum):
            return arg.value
        # DevicePointer and bool are ints too, but are not passed by reference
        if isinstance(arg, int) and not isinstance(arg, (DevicePointer, bool)):
            return ctypes.c_int64(arg)
        return arg

    def call(self, symbol: str, handle, *args) -> Status:
        return self.bindings.entry_point(symbol)(handle, *(self.marshal(a) for a in args))


def make_api(library: SoftBlas, client_api: ClientApi) -> BlasApi:
    if client_api == ClientApi.FORTRAN:
        return FortranBlasApi(library)
    return CBlasApi(library)
