# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/device.py

"""
Emulated accelerator runtime.

The device owns a flat address space of independent allocations. Memory is
only reachable through DevicePointer addresses: host code moves data in and
out with memcpy(), and library kernels get at it through view(). Kernels are
dispatched with launch(), which executes them synchronously on the host and
accounts for them so tests can count device invocations and drive a
deterministic clock.
"""

import bisect
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .enums import MemcpyKind, Status
from .errors import DeviceError

logger = logging.getLogger(__name__)


class DevicePointer(int):
    """Address in the device address space. Address 0 is the null pointer."""

    def __new__(cls, address: int = 0):
        return super().__new__(cls, address)

    def __add__(self, nbytes):
        return DevicePointer(int(self) + int(nbytes))

    def __repr__(self) -> str:
        return f"DevicePointer(0x{int(self):x})"


NULL = DevicePointer(0)


class _Allocation:
    def __init__(self, base: int, nbytes: int):
        self.base = base
        self.nbytes = nbytes
        self.data = np.zeros(max(nbytes, 1), dtype=np.uint8)


class Stream:
    """Execution queue on a device. Work runs synchronously in the emulator."""

    def __init__(self, device: "Device"):
        self.device = device
        self.synchronize_count = 0

    def synchronize(self) -> None:
        self.synchronize_count += 1
        self.device.synchronize()


class Device:
    """Emulated device with allocation accounting and fault injection."""

    ALIGNMENT = 256
    BASE_ADDRESS = 0x7F0000000000

    def __init__(self, ordinal: int = 0, memory_limit: Optional[int] = None,
                 clock: Optional[Callable[[], float]] = None, kernel_time_us: float = 0.0):
        """Create a device.

        Args:
            ordinal: Device index, informational only
            memory_limit: Maximum number of bytes in use at once (None for unlimited)
            clock: Host clock in seconds (default: time.perf_counter)
            kernel_time_us: Simulated duration added to the device clock per kernel launch
        """
        self.ordinal = ordinal
        self.memory_limit = memory_limit
        self.kernel_time_us = kernel_time_us
        self._clock = clock or time.perf_counter
        self._simulated_us = 0.0

        self._allocations: Dict[int, _Allocation] = {}
        self._bases: List[int] = []
        self._next_address = self.BASE_ADDRESS
        self._fail_transfers_after: Optional[int] = None

        self.total_allocations = 0
        self.kernel_launches = 0
        self.transfers = 0
        self.synchronizations = 0
        self.default_stream = Stream(self)

    # ------------------------------------------------------------------
    # Memory management

    @property
    def live_allocations(self) -> int:
        return len(self._allocations)

    @property
    def bytes_in_use(self) -> int:
        return sum(a.nbytes for a in self._allocations.values())

    def malloc(self, nbytes: int) -> DevicePointer:
        """Allocate nbytes of device memory."""
        if nbytes < 0:
            raise DeviceError(Status.INVALID_VALUE, f"Cannot allocate {nbytes} bytes")

        if self.memory_limit is not None and self.bytes_in_use + nbytes > self.memory_limit:
            raise DeviceError(
                Status.ALLOC_FAILED,
                f"Out of device memory: requested {nbytes} bytes, "
                f"{self.bytes_in_use} of {self.memory_limit} in use",
            )

        base = self._next_address
        # Leave a guard gap so that out-of-bounds addresses never land in a neighbour
        span = (max(nbytes, 1) + self.ALIGNMENT - 1) // self.ALIGNMENT * self.ALIGNMENT
        self._next_address += span + self.ALIGNMENT

        self._allocations[base] = _Allocation(base, nbytes)
        bisect.insort(self._bases, base)
        self.total_allocations += 1
        logger.debug(f"malloc {nbytes} bytes at 0x{base:x}")
        return DevicePointer(base)

    def free(self, ptr: DevicePointer) -> None:
        """Release an allocation. Freeing the null pointer is a no-op."""
        if not ptr:
            return
        allocation = self._allocations.pop(int(ptr), None)
        if allocation is None:
            raise DeviceError(Status.INVALID_VALUE, f"free of unknown device pointer 0x{int(ptr):x}")
        self._bases.remove(allocation.base)
        logger.debug(f"free 0x{allocation.base:x}")

    def _resolve(self, ptr: DevicePointer, nbytes: int) -> Tuple[_Allocation, int]:
        if not ptr:
            raise DeviceError(Status.INVALID_VALUE, "null device pointer dereferenced")
        index = bisect.bisect_right(self._bases, int(ptr)) - 1
        if index < 0:
            raise DeviceError(Status.INVALID_VALUE, f"invalid device pointer 0x{int(ptr):x}")
        allocation = self._allocations[self._bases[index]]
        offset = int(ptr) - allocation.base
        if offset + nbytes > allocation.nbytes:
            raise DeviceError(
                Status.INVALID_VALUE,
                f"access of {nbytes} bytes at 0x{int(ptr):x} overruns allocation "
                f"0x{allocation.base:x} of {allocation.nbytes} bytes",
            )
        return allocation, offset

    def view(self, ptr: DevicePointer, dtype, count: int) -> np.ndarray:
        """Kernel-side typed view of count elements starting at ptr."""
        dtype = np.dtype(dtype)
        nbytes = dtype.itemsize * count
        allocation, offset = self._resolve(ptr, nbytes)
        return allocation.data[offset:offset + nbytes].view(dtype)

    def fail_transfers_after(self, count: Optional[int]) -> None:
        """Make every memcpy after the next `count` report failure (None to disable)."""
        self._fail_transfers_after = count

    def memcpy(self, dst, src, nbytes: int, kind: MemcpyKind) -> Status:
        """Copy nbytes between host arrays and device pointers.

        Returns:
            Status.SUCCESS, or the failure status; nothing is raised
        """
        if self._fail_transfers_after is not None:
            if self._fail_transfers_after <= 0:
                logger.debug(f"injected memcpy failure ({kind.value}, {nbytes} bytes)")
                return Status.INTERNAL_ERROR
            self._fail_transfers_after -= 1

        if nbytes == 0:
            return Status.SUCCESS

        try:
            if kind == MemcpyKind.HOST_TO_DEVICE:
                if not isinstance(dst, DevicePointer) or isinstance(src, DevicePointer):
                    return Status.INVALID_VALUE
                allocation, offset = self._resolve(dst, nbytes)
                src_bytes = np.ascontiguousarray(src).reshape(-1).view(np.uint8)
                if src_bytes.size < nbytes:
                    return Status.INVALID_VALUE
                allocation.data[offset:offset + nbytes] = src_bytes[:nbytes]
            elif kind == MemcpyKind.DEVICE_TO_HOST:
                if not isinstance(src, DevicePointer) or isinstance(dst, DevicePointer):
                    return Status.INVALID_VALUE
                allocation, offset = self._resolve(src, nbytes)
                dst_bytes = dst.reshape(-1).view(np.uint8)
                if dst_bytes.size < nbytes:
                    return Status.INVALID_VALUE
                dst_bytes[:nbytes] = allocation.data[offset:offset + nbytes]
            elif kind == MemcpyKind.DEVICE_TO_DEVICE:
                src_alloc, src_offset = self._resolve(src, nbytes)
                dst_alloc, dst_offset = self._resolve(dst, nbytes)
                dst_alloc.data[dst_offset:dst_offset + nbytes] = src_alloc.data[src_offset:src_offset + nbytes]
            else:
                return Status.INVALID_VALUE
        except DeviceError as e:
            logger.debug(f"memcpy failed: {e}")
            return e.status

        self.transfers += 1
        return Status.SUCCESS

    # ------------------------------------------------------------------
    # Execution and time

    def launch(self, kernel: Callable, *args, **kwargs):
        """Run a kernel. The emulator executes it immediately."""
        self.kernel_launches += 1
        self._simulated_us += self.kernel_time_us
        return kernel(*args, **kwargs)

    def synchronize(self) -> None:
        self.synchronizations += 1

    def time_us(self) -> float:
        """Device clock in microseconds."""
        return self._clock() * 1e6 + self._simulated_us

    def create_stream(self) -> Stream:
        return Stream(self)
