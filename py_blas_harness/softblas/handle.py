# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/softblas/handle.py

"""
Library handle: the per-test-case execution context.

A handle binds a device and a stream and carries the pointer mode that tells
routines whether scalar arguments are host arrays or device addresses.
"""

from typing import Optional

from ..device import Device, Stream
from ..enums import PointerMode, Status


class Handle:
    """Execution context owned by exactly one test case."""

    def __init__(self, device: Device, stream: Optional[Stream] = None):
        self.device = device
        self.stream = stream or device.default_stream
        self.pointer_mode = PointerMode.HOST
        self.valid = True

    def set_pointer_mode(self, mode: PointerMode) -> Status:
        if not self.valid:
            return Status.INVALID_HANDLE
        if not isinstance(mode, PointerMode):
            return Status.INVALID_VALUE
        self.pointer_mode = mode
        return Status.SUCCESS

    def get_pointer_mode(self) -> PointerMode:
        return self.pointer_mode

    def set_stream(self, stream: Stream) -> Status:
        if not self.valid:
            return Status.INVALID_HANDLE
        if stream.device is not self.device:
            return Status.INVALID_VALUE
        self.stream = stream
        return Status.SUCCESS

    def get_stream(self) -> Stream:
        return self.stream

    def destroy(self) -> None:
        self.valid = False
