# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/flops.py

"""
Operation and memory-traffic counts, in GFLOP and GB per call (one batch entry).
"""

from .numeric import NumericType


def her_gflop_count(ntype: NumericType, n: int) -> float:
    return 4.0 * n * (n + 1) / 1e9


def her_gbyte_count(ntype: NumericType, n: int) -> float:
    # Read and write of the triangle, read of x
    return ntype.itemsize * (n * (n + 1) + n) / 1e9


def syr2k_gflop_count(ntype: NumericType, n: int, k: int) -> float:
    flops_per_element = 8.0 if ntype.is_complex else 2.0
    return flops_per_element * k * n * (n + 1) / 1e9


def syr2k_gbyte_count(ntype: NumericType, n: int, k: int) -> float:
    # Read of A and B, read and write of the triangle of C
    return ntype.itemsize * (2 * n * k + n * (n + 1)) / 1e9
