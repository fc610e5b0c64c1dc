# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/routines/syr2k.py

"""
syr2k: symmetric rank-2k update
C := alpha*(op(A)*op(B)**T + op(B)*op(A)**T) + beta*C.
"""

from typing import List

from ..enums import BatchKind, NanPolicy, Operation
from ..flops import syr2k_gbyte_count, syr2k_gflop_count
from ..reference import ref_syr2k
from ..reporting import ArgumentModel
from .base import BufferSpec, CheckRegion, Routine, ScalarSpec


class Syr2k(Routine):
    name = "syr2k"
    supported_types = ("s", "d", "c", "z")
    model = ArgumentModel("a_type", "uplo", "transA", "N", "K", "alpha", "lda", "ldb", "beta", "ldc",
                          "batch_count")

    def invalid_size(self, arg, ntype) -> bool:
        N, K = arg.N, arg.K
        trans = arg.operation
        if trans == Operation.NONE:
            bad_ld = arg.lda < N or arg.ldb < N
        else:
            bad_ld = arg.lda < K or arg.ldb < K
        bad_trans = ntype.is_complex and trans == Operation.CONJUGATE_TRANSPOSE
        return N < 0 or K < 0 or arg.ldc < N or bad_ld or bad_trans or self.batch_count(arg) < 0

    def buffers(self, arg, ntype) -> List[BufferSpec]:
        N = arg.N
        cols = arg.K if arg.operation == Operation.NONE else N
        a_size = arg.lda * cols
        b_size = arg.ldb * cols
        c_size = arg.ldc * N
        return [
            BufferSpec(
                name="A",
                n=a_size,
                stride=self.stride(a_size, arg),
                nan_policy=NanPolicy.ALPHA_SETS_NAN,
                seed_reset=True,
            ),
            BufferSpec(
                name="B",
                n=b_size,
                stride=self.stride(b_size, arg),
                nan_policy=NanPolicy.ALPHA_SETS_NAN,
                alternating_sign=True,
            ),
            BufferSpec(
                name="C",
                n=c_size,
                stride=self.stride(c_size, arg),
                nan_policy=NanPolicy.BETA_SETS_NAN,
                output=True,
                restore=True,
                check=CheckRegion(N, N, arg.ldc),
            ),
        ]

    def scalars(self, arg, ntype) -> List[ScalarSpec]:
        return [ScalarSpec("alpha", "alpha"), ScalarSpec("beta", "beta")]

    def call(self, api, handle, arg, ntype, scalars, operands):
        symbol = self.symbol(ntype)
        uplo, trans = arg.fill_mode, arg.operation
        N, K, lda, ldb, ldc = arg.N, arg.K, arg.lda, arg.ldb, arg.ldc
        alpha, beta = scalars["alpha"], scalars["beta"]
        A, B, C = operands["A"], operands["B"], operands["C"]

        if self.batch_kind == BatchKind.SINGLE:
            return api.call(symbol, handle, uplo, trans, N, K, alpha, A, lda, B, ldb, beta, C, ldc)

        batch_count = self.batch_count(arg)
        if self.batch_kind == BatchKind.BATCHED:
            return api.call(symbol, handle, uplo, trans, N, K, alpha, A, lda, B, ldb, beta, C, ldc,
                            batch_count)

        specs = self.buffer_map(arg, ntype)
        return api.call(symbol, handle, uplo, trans, N, K, alpha, A, lda, specs["A"].stride,
                        B, ldb, specs["B"].stride, beta, C, ldc, specs["C"].stride, batch_count)

    def reference(self, arg, ntype, scalars, entries):
        ref_syr2k(arg.fill_mode, arg.operation, arg.N, arg.K, scalars["alpha"], entries["A"], arg.lda,
                  entries["B"], arg.ldb, scalars["beta"], entries["C"], arg.ldc)

    def gflop_count(self, arg, ntype) -> float:
        return syr2k_gflop_count(ntype, arg.N, arg.K)

    def gbyte_count(self, arg, ntype) -> float:
        return syr2k_gbyte_count(ntype, arg.N, arg.K)
