# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/softblas/library.py

"""
SoftBlas: the emulated device BLAS library under test.

Routines are reached through typed entry points named like the usual BLAS
symbols: a precision prefix, the routine name and the batch suffix, e.g.
"dsyr2k_strided_batched" or "cher_batched". Every entry point validates its
arguments, quick-returns on empty work, reads scalars according to the
handle's pointer mode and launches one kernel on the device. Failures are
reported as Status values, never raised.
"""

import functools
import logging
from collections import Counter
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np

from ..device import Device, DevicePointer, Stream
from ..enums import BatchKind, FillMode, Operation, PointerMode, Status
from ..errors import DeviceError
from ..memory import storage_size
from ..numeric import TYPE_DISPATCH_MAP, NumericType
from . import kernels
from .handle import Handle

logger = logging.getLogger(__name__)

# Routine -> precision prefixes it is provided for
ROUTINE_TYPES: Dict[str, str] = {
    "rotmg": "sd",
    "her": "cz",
    "syr2k": "sdcz",
}

SYMBOLS: List[str] = sorted(
    f"{prefix}{routine}{kind.suffix}"
    for routine, prefixes in ROUTINE_TYPES.items()
    for prefix in prefixes
    for kind in BatchKind
)


def parse_symbol(symbol: str) -> Tuple[NumericType, str, BatchKind]:
    """Split an entry-point name into (numeric type, routine, batch kind)."""
    if symbol not in SYMBOLS:
        raise ValueError(f"Unknown SoftBlas entry point: {symbol!r}")
    ntype = TYPE_DISPATCH_MAP[symbol[0]]
    rest = symbol[1:]
    # Longest suffix first so that "_strided_batched" wins over "_batched"
    for kind in sorted(BatchKind, key=lambda k: len(k.suffix), reverse=True):
        if kind.suffix and rest.endswith(kind.suffix):
            return ntype, rest[:-len(kind.suffix)], kind
    return ntype, rest, BatchKind.SINGLE


class _StatusReturn(Exception):
    """Early exit from a routine body with a status."""

    def __init__(self, status: Status):
        super().__init__(status.value)
        self.status = status


def _require(condition: bool, status: Status = Status.INVALID_VALUE) -> None:
    if not condition:
        raise _StatusReturn(status)


def _quick_return() -> None:
    raise _StatusReturn(Status.SUCCESS)


def _is_null(ptr) -> bool:
    return ptr is None or (isinstance(ptr, DevicePointer) and not ptr)


def _routine(func: Callable) -> Callable:
    """Turn a routine body into an entry point that returns a Status."""

    @functools.wraps(func)
    def wrapper(self, handle, *args) -> Status:
        if not isinstance(handle, Handle) or not handle.valid:
            return Status.INVALID_HANDLE
        try:
            func(self, handle, *args)
        except _StatusReturn as e:
            return e.status
        except DeviceError as e:
            logger.debug(f"{func.__name__}: device fault: {e}")
            return e.status
        return Status.SUCCESS

    return wrapper


class SoftBlas:
    """Emulated BLAS library bound to one device."""

    def __init__(self, device: Device):
        self.device = device
        self.call_counts: Counter = Counter()

    # ------------------------------------------------------------------
    # Handles

    def create_handle(self, stream: Optional[Stream] = None) -> Handle:
        return Handle(self.device, stream)

    def destroy_handle(self, handle: Handle) -> Status:
        if not handle.valid:
            return Status.INVALID_HANDLE
        handle.destroy()
        return Status.SUCCESS

    @contextmanager
    def handle(self, stream: Optional[Stream] = None) -> Iterator[Handle]:
        """Scoped handle, destroyed on exit."""
        handle = self.create_handle(stream)
        try:
            yield handle
        finally:
            self.destroy_handle(handle)

    # ------------------------------------------------------------------
    # Entry points

    def entry_point(self, symbol: str) -> Callable[..., Status]:
        """Typed entry point, e.g. entry_point("zher_batched")."""
        ntype, routine, kind = parse_symbol(symbol)
        impl = getattr(self, f"_{routine}{kind.suffix}")

        def call(handle, *args) -> Status:
            self.call_counts[symbol] += 1
            return impl(handle, ntype, *args)

        call.__name__ = symbol
        return call

    def __getattr__(self, name: str):
        if name in SYMBOLS:
            return self.entry_point(name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    @property
    def total_calls(self) -> int:
        return sum(self.call_counts.values())

    # ------------------------------------------------------------------
    # Operand access

    def _read_scalar(self, handle: Handle, ptr, dtype):
        """Read one scalar from host or device memory depending on the pointer mode."""
        _require(not _is_null(ptr))
        dtype = np.dtype(dtype)
        if handle.pointer_mode == PointerMode.HOST:
            _require(not isinstance(ptr, DevicePointer))
            return dtype.type(np.asarray(ptr).reshape(-1)[0])
        _require(isinstance(ptr, DevicePointer))
        return self.device.view(ptr, dtype, 1)[0].copy()

    def _host_entries(self, ptr, kind: BatchKind, batch_count: int, stride: int,
                      dtype: np.dtype, count: int) -> List[np.ndarray]:
        def check(array) -> np.ndarray:
            _require(isinstance(array, np.ndarray) and array.dtype == dtype and array.size >= count)
            return array.reshape(-1)[:count]

        if kind == BatchKind.BATCHED:
            arrays = list(ptr)
            _require(len(arrays) >= batch_count)
            return [check(a) for a in arrays[:batch_count]]

        array = check(ptr)
        if kind == BatchKind.SINGLE:
            return [array]
        flat = ptr.reshape(-1)
        _require(flat.size >= stride * (batch_count - 1) + count)
        return [flat[b * stride:b * stride + count] for b in range(batch_count)]

    def _entries(self, handle: Handle, ptr, kind: BatchKind, batch_count: int, stride: int,
                 dtype, count: int, host_operand: bool = False) -> List[np.ndarray]:
        """Per-entry views of an operand.

        host_operand marks operands that, like scalars, live in host memory
        when the handle is in host pointer mode.
        """
        _require(not _is_null(ptr))
        dtype = np.dtype(dtype)
        if host_operand and handle.pointer_mode == PointerMode.HOST:
            _require(not isinstance(ptr, DevicePointer))
            return self._host_entries(ptr, kind, batch_count, stride, dtype, count)

        _require(isinstance(ptr, DevicePointer))
        if kind == BatchKind.SINGLE:
            return [self.device.view(ptr, dtype, count)]
        if kind == BatchKind.BATCHED:
            addresses = self.device.view(ptr, np.uint64, batch_count)
            return [self.device.view(DevicePointer(int(a)), dtype, count) for a in addresses]
        return [self.device.view(ptr + b * stride * dtype.itemsize, dtype, count)
                for b in range(batch_count)]

    # ------------------------------------------------------------------
    # rotmg

    @_routine
    def _rotmg_common(self, handle, ntype, kind, d1, stride_d1, d2, stride_d2, x1, stride_x1,
                      y1, stride_y1, param, stride_param, batch_count):
        if batch_count <= 0:
            _quick_return()

        def entries(ptr, stride, count):
            return self._entries(handle, ptr, kind, batch_count, stride, ntype.dtype, count, host_operand=True)

        d1s = entries(d1, stride_d1, 1)
        d2s = entries(d2, stride_d2, 1)
        x1s = entries(x1, stride_x1, 1)
        y1s = entries(y1, stride_y1, 1)
        params = entries(param, stride_param, 5)

        self.device.launch(kernels.rotmg_kernel, d1s, d2s, x1s, y1s, params)

    def _rotmg(self, handle, ntype, d1, d2, x1, y1, param):
        return self._rotmg_common(handle, ntype, BatchKind.SINGLE, d1, 0, d2, 0, x1, 0, y1, 0, param, 0, 1)

    def _rotmg_batched(self, handle, ntype, d1, d2, x1, y1, param, batch_count):
        return self._rotmg_common(handle, ntype, BatchKind.BATCHED, d1, 0, d2, 0, x1, 0, y1, 0,
                                  param, 0, batch_count)

    def _rotmg_strided_batched(self, handle, ntype, d1, stride_d1, d2, stride_d2, x1, stride_x1,
                               y1, stride_y1, param, stride_param, batch_count):
        return self._rotmg_common(handle, ntype, BatchKind.STRIDED_BATCHED, d1, stride_d1, d2, stride_d2,
                                  x1, stride_x1, y1, stride_y1, param, stride_param, batch_count)

    # ------------------------------------------------------------------
    # her

    @_routine
    def _her_common(self, handle, ntype, kind, uplo, n, alpha, x, incx, stridex, A, lda, strideA, batch_count):
        _require(isinstance(uplo, FillMode))
        _require(n >= 0 and lda >= n and lda >= 1 and incx != 0 and batch_count >= 0)
        if n == 0 or batch_count == 0:
            _quick_return()

        alpha = self._read_scalar(handle, alpha, ntype.real_dtype)
        if alpha == 0:
            _quick_return()

        xs = self._entries(handle, x, kind, batch_count, stridex, ntype.dtype, storage_size(n, incx))
        As = self._entries(handle, A, kind, batch_count, strideA, ntype.dtype, lda * n)

        self.device.launch(kernels.her_kernel, uplo, n, alpha, xs, incx, As, lda)

    def _her(self, handle, ntype, uplo, n, alpha, x, incx, A, lda):
        return self._her_common(handle, ntype, BatchKind.SINGLE, uplo, n, alpha, x, incx, 0, A, lda, 0, 1)

    def _her_batched(self, handle, ntype, uplo, n, alpha, x, incx, A, lda, batch_count):
        return self._her_common(handle, ntype, BatchKind.BATCHED, uplo, n, alpha, x, incx, 0, A, lda, 0,
                                batch_count)

    def _her_strided_batched(self, handle, ntype, uplo, n, alpha, x, incx, stridex, A, lda, strideA, batch_count):
        return self._her_common(handle, ntype, BatchKind.STRIDED_BATCHED, uplo, n, alpha, x, incx, stridex,
                                A, lda, strideA, batch_count)

    # ------------------------------------------------------------------
    # syr2k

    @_routine
    def _syr2k_common(self, handle, ntype, kind, uplo, trans, n, k, alpha, A, lda, strideA,
                      B, ldb, strideB, beta, C, ldc, strideC, batch_count):
        _require(isinstance(uplo, FillMode) and isinstance(trans, Operation))
        # syr2k is symmetric, not Hermitian: conjugate transpose is not defined for complex types
        _require(not (ntype.is_complex and trans == Operation.CONJUGATE_TRANSPOSE))
        _require(n >= 0 and k >= 0 and ldc >= n and batch_count >= 0)
        if trans == Operation.NONE:
            _require(lda >= n and ldb >= n)
        else:
            _require(lda >= k and ldb >= k)
        if n == 0 or batch_count == 0:
            _quick_return()

        alpha = self._read_scalar(handle, alpha, ntype.dtype)
        beta = self._read_scalar(handle, beta, ntype.dtype)
        if (alpha == 0 or k == 0) and beta == 1:
            _quick_return()

        Cs = self._entries(handle, C, kind, batch_count, strideC, ntype.dtype, ldc * n)
        if alpha == 0 or k == 0:
            As = Bs = None
        else:
            cols = k if trans == Operation.NONE else n
            As = self._entries(handle, A, kind, batch_count, strideA, ntype.dtype, lda * cols)
            Bs = self._entries(handle, B, kind, batch_count, strideB, ntype.dtype, ldb * cols)

        self.device.launch(kernels.syr2k_kernel, uplo, trans, n, k, alpha, As, lda, Bs, ldb, beta, Cs, ldc)

    def _syr2k(self, handle, ntype, uplo, trans, n, k, alpha, A, lda, B, ldb, beta, C, ldc):
        return self._syr2k_common(handle, ntype, BatchKind.SINGLE, uplo, trans, n, k, alpha, A, lda, 0,
                                  B, ldb, 0, beta, C, ldc, 0, 1)

    def _syr2k_batched(self, handle, ntype, uplo, trans, n, k, alpha, A, lda, B, ldb, beta, C, ldc, batch_count):
        return self._syr2k_common(handle, ntype, BatchKind.BATCHED, uplo, trans, n, k, alpha, A, lda, 0,
                                  B, ldb, 0, beta, C, ldc, 0, batch_count)

    def _syr2k_strided_batched(self, handle, ntype, uplo, trans, n, k, alpha, A, lda, strideA,
                               B, ldb, strideB, beta, C, ldc, strideC, batch_count):
        return self._syr2k_common(handle, ntype, BatchKind.STRIDED_BATCHED, uplo, trans, n, k, alpha,
                                  A, lda, strideA, B, ldb, strideB, beta, C, ldc, strideC, batch_count)
