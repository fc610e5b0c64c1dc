# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/routines/her.py

"""
her: Hermitian rank-1 update A := alpha*x*x**H + A with real alpha.
"""

from typing import List

from ..enums import BatchKind, NanPolicy
from ..flops import her_gbyte_count, her_gflop_count
from ..reference import ref_her
from ..reporting import ArgumentModel
from .base import BufferSpec, CheckRegion, Routine, ScalarSpec


class Her(Routine):
    name = "her"
    supported_types = ("c", "z")
    model = ArgumentModel("a_type", "uplo", "N", "alpha", "incx", "lda", "batch_count")

    def invalid_size(self, arg, ntype) -> bool:
        return (arg.N < 0 or arg.lda < arg.N or arg.lda < 1 or arg.incx == 0
                or self.batch_count(arg) < 0)

    def buffers(self, arg, ntype) -> List[BufferSpec]:
        N, lda, incx = arg.N, arg.lda, arg.incx
        a_size = lda * N
        x_size = N * abs(incx)
        return [
            BufferSpec(
                name="A",
                n=a_size,
                stride=self.stride(a_size, arg),
                seed_reset=True,
                output=True,
                restore=True,
                check=CheckRegion(N, N, lda),
            ),
            BufferSpec(
                name="x",
                n=N,
                inc=incx,
                stride=self.stride(x_size, arg),
                nan_policy=NanPolicy.ALPHA_SETS_NAN,
                alternating_sign=True,
            ),
        ]

    def scalars(self, arg, ntype) -> List[ScalarSpec]:
        return [ScalarSpec("alpha", "alpha", real=True)]

    def call(self, api, handle, arg, ntype, scalars, operands):
        symbol = self.symbol(ntype)
        uplo = arg.fill_mode
        N, lda, incx = arg.N, arg.lda, arg.incx
        alpha, x, A = scalars["alpha"], operands["x"], operands["A"]

        if self.batch_kind == BatchKind.SINGLE:
            return api.call(symbol, handle, uplo, N, alpha, x, incx, A, lda)

        batch_count = self.batch_count(arg)
        if self.batch_kind == BatchKind.BATCHED:
            return api.call(symbol, handle, uplo, N, alpha, x, incx, A, lda, batch_count)

        specs = self.buffer_map(arg, ntype)
        return api.call(symbol, handle, uplo, N, alpha, x, incx, specs["x"].stride,
                        A, lda, specs["A"].stride, batch_count)

    def reference(self, arg, ntype, scalars, entries):
        ref_her(arg.fill_mode, arg.N, scalars["alpha"], entries["x"], arg.incx, entries["A"], arg.lda)

    def gflop_count(self, arg, ntype) -> float:
        return her_gflop_count(ntype, arg.N)

    def gbyte_count(self, arg, ntype) -> float:
        return her_gbyte_count(ntype, arg.N)
