# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/memory.py

"""
Host and device containers for operands.

Every operand exists as a host container and, when the device path runs, as a
device container of identical logical shape. Three layouts are supported:

- HostVector / DeviceVector: one region (non-batched routines)
- HostBatchVector / DeviceBatchVector: one independent block per batch entry;
  the device side also keeps a device-resident array of entry addresses
- HostStridedBatchVector / DeviceStridedBatchVector: one region sliced into
  entries by a fixed stride

transfer_from() is the only way data moves between host and device; a failed
copy raises DeviceError.
"""

import logging
from typing import List, Optional, Union

import numpy as np

from .device import NULL, Device, DevicePointer
from .enums import BatchKind, MemcpyKind, Status
from .errors import DeviceError, HarnessError

logger = logging.getLogger(__name__)


def storage_size(n: int, inc: int) -> int:
    """Number of elements needed to hold n elements at increment inc."""
    return n * max(abs(inc), 1)


class _Container:
    """Shape bookkeeping shared by host and device containers."""

    kind = BatchKind.SINGLE

    def __init__(self, n: int, inc: int, stride: int, batch_count: int, dtype):
        if n < 0 or batch_count < 0:
            raise ValueError(f"Invalid container shape: n={n}, batch_count={batch_count}")
        self.n = n
        self.inc = inc
        self.stride = stride
        self.batch_count = batch_count
        self.dtype = np.dtype(dtype)
        self.entry_size = storage_size(n, inc)

    def __len__(self) -> int:
        return self.batch_count

    def _check_compatible(self, other: "_Container") -> None:
        if (self.kind != other.kind or self.entry_size != other.entry_size
                or self.batch_count != other.batch_count or self.stride != other.stride
                or self.dtype != other.dtype):
            raise ValueError(
                f"Incompatible containers: {self.kind.name}[{self.batch_count}x{self.entry_size}, "
                f"stride {self.stride}, {self.dtype}] vs {other.kind.name}[{other.batch_count}x"
                f"{other.entry_size}, stride {other.stride}, {other.dtype}]"
            )


# ----------------------------------------------------------------------
# Host containers

class _HostContainer(_Container):

    def __getitem__(self, b: int) -> np.ndarray:
        raise NotImplementedError

    def entries(self) -> List[np.ndarray]:
        return [self[b] for b in range(self.batch_count)]

    def copy_from(self, other: "_HostContainer") -> None:
        """Host to host copy of every entry."""
        self._check_compatible(other)
        for b in range(self.batch_count):
            np.copyto(self[b], other[b])

    def clone(self) -> "_HostContainer":
        raise NotImplementedError

    def transfer_from(self, source: "_DeviceContainer") -> None:
        """Device to host copy of every entry."""
        self._check_compatible(source)
        source._copy_to_host(self)


class HostVector(_HostContainer):
    """Single host region of n elements at increment inc."""

    kind = BatchKind.SINGLE

    def __init__(self, n: int, inc: int = 1, dtype=np.float32):
        super().__init__(n, inc, 0, 1, dtype)
        self.data = np.zeros(self.entry_size, dtype=self.dtype)

    def __getitem__(self, b: int) -> np.ndarray:
        if b != 0:
            raise IndexError(f"HostVector has a single entry, got index {b}")
        return self.data

    def ptr_on_host(self) -> np.ndarray:
        return self.data

    def clone(self) -> "HostVector":
        result = HostVector(self.n, self.inc, self.dtype)
        result.copy_from(self)
        return result


class HostBatchVector(_HostContainer):
    """One independently allocated host block per batch entry."""

    kind = BatchKind.BATCHED

    def __init__(self, n: int, inc: int, batch_count: int, dtype=np.float32):
        super().__init__(n, inc, 0, batch_count, dtype)
        self.data = [np.zeros(self.entry_size, dtype=self.dtype) for _ in range(batch_count)]

    def __getitem__(self, b: int) -> np.ndarray:
        return self.data[b]

    def ptr_on_host(self) -> List[np.ndarray]:
        return list(self.data)

    def clone(self) -> "HostBatchVector":
        result = HostBatchVector(self.n, self.inc, self.batch_count, self.dtype)
        result.copy_from(self)
        return result


class HostStridedBatchVector(_HostContainer):
    """One host region holding batch_count entries separated by stride elements."""

    kind = BatchKind.STRIDED_BATCHED

    def __init__(self, n: int, inc: int, stride: int, batch_count: int, dtype=np.float32):
        super().__init__(n, inc, stride, batch_count, dtype)
        if stride < 0:
            raise ValueError(f"Negative batch stride: {stride}")
        self.size = strided_size(self.entry_size, stride, batch_count)
        self.data = np.zeros(self.size, dtype=self.dtype)

    def __getitem__(self, b: int) -> np.ndarray:
        if not 0 <= b < self.batch_count:
            raise IndexError(f"Batch index {b} out of range [0, {self.batch_count})")
        offset = b * self.stride
        return self.data[offset:offset + self.entry_size]

    def ptr_on_host(self) -> np.ndarray:
        return self.data

    def copy_from(self, other: "_HostContainer") -> None:
        self._check_compatible(other)
        # Copy the whole region so that padding between entries matches too
        np.copyto(self.data, other.data)

    def clone(self) -> "HostStridedBatchVector":
        result = HostStridedBatchVector(self.n, self.inc, self.stride, self.batch_count, self.dtype)
        result.copy_from(self)
        return result


def strided_size(entry_size: int, stride: int, batch_count: int) -> int:
    """Elements needed for batch_count entries of entry_size separated by stride."""
    if batch_count == 0:
        return 0
    return max(stride * batch_count, stride * (batch_count - 1) + entry_size)


# ----------------------------------------------------------------------
# Device containers

class _DeviceContainer(_Container):

    def __init__(self, device: Device, n: int, inc: int, stride: int, batch_count: int, dtype):
        super().__init__(n, inc, stride, batch_count, dtype)
        self.device = device

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.release()
        return False

    def memcheck(self) -> Status:
        """SUCCESS if every allocation backing this container is live."""
        return Status.SUCCESS if self._allocated() else Status.ALLOC_FAILED

    def transfer_from(self, source: _HostContainer) -> None:
        """Host to device copy of every entry."""
        self._check_compatible(source)
        for b in range(self.batch_count):
            self._memcpy(self.entry_ptr(b), source[b], MemcpyKind.HOST_TO_DEVICE)

    def _copy_to_host(self, target: _HostContainer) -> None:
        for b in range(self.batch_count):
            self._memcpy(target[b], self.entry_ptr(b), MemcpyKind.DEVICE_TO_HOST)

    def _memcpy(self, dst, src, kind: MemcpyKind) -> None:
        nbytes = self.entry_size * self.dtype.itemsize
        status = self.device.memcpy(dst, src, nbytes, kind)
        if status != Status.SUCCESS:
            raise DeviceError(status, f"{kind.value} transfer of {nbytes} bytes failed")

    def entry_ptr(self, b: int) -> DevicePointer:
        raise NotImplementedError

    def ptr_on_device(self) -> DevicePointer:
        raise NotImplementedError

    def _allocated(self) -> bool:
        raise NotImplementedError

    def release(self) -> None:
        raise NotImplementedError


class DeviceVector(_DeviceContainer):
    """Single device region of n elements at increment inc."""

    kind = BatchKind.SINGLE

    def __init__(self, device: Device, n: int, inc: int = 1, dtype=np.float32):
        super().__init__(device, n, inc, 0, 1, dtype)
        self.ptr = device.malloc(self.entry_size * self.dtype.itemsize)

    def entry_ptr(self, b: int) -> DevicePointer:
        if b != 0:
            raise IndexError(f"DeviceVector has a single entry, got index {b}")
        return self.ptr

    def ptr_on_device(self) -> DevicePointer:
        return self.ptr

    def _allocated(self) -> bool:
        return bool(self.ptr)

    def release(self) -> None:
        if self.ptr:
            self.device.free(self.ptr)
            self.ptr = NULL


class DeviceBatchVector(_DeviceContainer):
    """One device block per batch entry plus a device array of their addresses."""

    kind = BatchKind.BATCHED

    def __init__(self, device: Device, n: int, inc: int, batch_count: int, dtype=np.float32):
        super().__init__(device, n, inc, 0, batch_count, dtype)
        self.ptrs: List[DevicePointer] = []
        self.ptr_array = NULL
        try:
            for _ in range(batch_count):
                self.ptrs.append(device.malloc(self.entry_size * self.dtype.itemsize))
            addresses = np.array([int(p) for p in self.ptrs], dtype=np.uint64)
            self.ptr_array = device.malloc(addresses.nbytes)
            status = device.memcpy(self.ptr_array, addresses, addresses.nbytes, MemcpyKind.HOST_TO_DEVICE)
            if status != Status.SUCCESS:
                raise DeviceError(status, "failed to upload batch pointer array")
        except DeviceError:
            self.release()
            raise

    def entry_ptr(self, b: int) -> DevicePointer:
        return self.ptrs[b]

    def ptr_on_device(self) -> DevicePointer:
        """Device address of the array of per-entry addresses."""
        return self.ptr_array

    def _allocated(self) -> bool:
        return len(self.ptrs) == self.batch_count and all(self.ptrs) and bool(self.ptr_array)

    def release(self) -> None:
        for ptr in self.ptrs:
            self.device.free(ptr)
        self.ptrs = []
        if self.ptr_array:
            self.device.free(self.ptr_array)
            self.ptr_array = NULL


class DeviceStridedBatchVector(_DeviceContainer):
    """One device region holding batch_count entries separated by stride elements."""

    kind = BatchKind.STRIDED_BATCHED

    def __init__(self, device: Device, n: int, inc: int, stride: int, batch_count: int, dtype=np.float32):
        super().__init__(device, n, inc, stride, batch_count, dtype)
        self.size = strided_size(self.entry_size, stride, batch_count)
        self.ptr = device.malloc(self.size * self.dtype.itemsize)

    def entry_ptr(self, b: int) -> DevicePointer:
        if not 0 <= b < self.batch_count:
            raise IndexError(f"Batch index {b} out of range [0, {self.batch_count})")
        return self.ptr + b * self.stride * self.dtype.itemsize

    def ptr_on_device(self) -> DevicePointer:
        return self.ptr

    def transfer_from(self, source: _HostContainer) -> None:
        self._check_compatible(source)
        self._memcpy_region(self.ptr, source.data, MemcpyKind.HOST_TO_DEVICE)

    def _copy_to_host(self, target: _HostContainer) -> None:
        self._memcpy_region(target.data, self.ptr, MemcpyKind.DEVICE_TO_HOST)

    def _memcpy_region(self, dst, src, kind: MemcpyKind) -> None:
        nbytes = self.size * self.dtype.itemsize
        status = self.device.memcpy(dst, src, nbytes, kind)
        if status != Status.SUCCESS:
            raise DeviceError(status, f"{kind.value} transfer of {nbytes} bytes failed")

    def _allocated(self) -> bool:
        return bool(self.ptr)

    def release(self) -> None:
        if self.ptr:
            self.device.free(self.ptr)
            self.ptr = NULL


HostContainer = Union[HostVector, HostBatchVector, HostStridedBatchVector]
DeviceContainer = Union[DeviceVector, DeviceBatchVector, DeviceStridedBatchVector]


def make_host_container(kind: BatchKind, n: int, inc: int, stride: int, batch_count: int, dtype) -> HostContainer:
    """Host container of the layout that matches a routine variant."""
    if kind == BatchKind.SINGLE:
        return HostVector(n, inc, dtype)
    if kind == BatchKind.BATCHED:
        return HostBatchVector(n, inc, batch_count, dtype)
    return HostStridedBatchVector(n, inc, stride, batch_count, dtype)


def make_device_container(device: Device, kind: BatchKind, n: int, inc: int, stride: int,
                          batch_count: int, dtype) -> DeviceContainer:
    """Device container of the layout that matches a routine variant."""
    if kind == BatchKind.SINGLE:
        return DeviceVector(device, n, inc, dtype)
    if kind == BatchKind.BATCHED:
        return DeviceBatchVector(device, n, inc, batch_count, dtype)
    return DeviceStridedBatchVector(device, n, inc, stride, batch_count, dtype)


class ScalarPair:
    """The same scalar staged in host memory and in device memory."""

    def __init__(self, device: Device, name: str, value, dtype):
        self.name = name
        self.host = np.array([value], dtype=dtype)
        self._device = DeviceVector(device, 1, 1, dtype)
        try:
            self._device.transfer_from(_ScalarView(self.host))
        except DeviceError:
            self._device.release()
            raise

    @property
    def value(self):
        return self.host[0]

    def host_ptr(self) -> np.ndarray:
        return self.host

    def device_ptr(self) -> DevicePointer:
        return self._device.ptr_on_device()

    def verify(self) -> None:
        """Check that the host and device copies are bit-identical."""
        readback = _ScalarView(np.zeros_like(self.host))
        readback.transfer_from(self._device)
        if readback.data.tobytes() != self.host.tobytes():
            raise HarnessError(
                f"Scalar '{self.name}' differs between host ({self.host[0]}) "
                f"and device ({readback.data[0]}) copies"
            )

    def release(self) -> None:
        self._device.release()


class _ScalarView(HostVector):
    """HostVector wrapper around an existing one-element array."""

    def __init__(self, array: np.ndarray):
        _Container.__init__(self, 1, 1, 0, 1, array.dtype)
        self.data = array
