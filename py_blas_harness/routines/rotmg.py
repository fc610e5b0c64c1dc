# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/routines/rotmg.py

"""
rotmg: construct a modified Givens rotation.

All five operands are one-element (param: five-element) arrays that the
routine reads and writes like scalars: in host pointer mode they are passed
from host memory.
"""

from typing import List

from ..enums import BatchKind, NanPolicy
from ..reference import ref_rotmg
from ..reporting import ArgumentModel
from .base import BufferSpec, CheckRegion, Routine

NEAR_EPS_FACTOR = 1000

PARAM_SIZE = 5


class Rotmg(Routine):
    name = "rotmg"
    supported_types = ("s", "d")
    model = ArgumentModel("a_type", "stride_scale", "batch_count")
    positive_batch_only = True

    def empty(self, arg) -> bool:
        # No problem size; non-positive batch counts return before this is consulted
        return False

    def buffers(self, arg, ntype) -> List[BufferSpec]:
        tolerance = NEAR_EPS_FACTOR * ntype.eps

        def operand(name: str, size: int, seed_reset: bool = False) -> BufferSpec:
            return BufferSpec(
                name=name,
                n=size,
                stride=self.stride(size, arg),
                nan_policy=NanPolicy.ALPHA_SETS_NAN,
                seed_reset=seed_reset,
                output=True,
                pointer_mode_operand=True,
                check=CheckRegion(1, size, 1),
                near_tolerance=tolerance,
            )

        return [
            operand("param", PARAM_SIZE, seed_reset=True),
            operand("d1", 1),
            operand("d2", 1),
            operand("x1", 1),
            operand("y1", 1),
        ]

    def call(self, api, handle, arg, ntype, scalars, operands):
        symbol = self.symbol(ntype)
        d1, d2, x1, y1, param = (operands[name] for name in ("d1", "d2", "x1", "y1", "param"))

        if self.batch_kind == BatchKind.SINGLE:
            return api.call(symbol, handle, d1, d2, x1, y1, param)

        batch_count = self.batch_count(arg)
        if self.batch_kind == BatchKind.BATCHED:
            return api.call(symbol, handle, d1, d2, x1, y1, param, batch_count)

        stride = self.stride(1, arg)
        stride_param = self.stride(PARAM_SIZE, arg)
        return api.call(symbol, handle, d1, stride, d2, stride, x1, stride, y1, stride,
                        param, stride_param, batch_count)

    def reference(self, arg, ntype, scalars, entries):
        ref_rotmg(entries["d1"], entries["d2"], entries["x1"], entries["y1"], entries["param"])
