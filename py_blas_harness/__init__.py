# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/__init__.py

"""
py-blas-harness: verification harness for batched device BLAS routines

This package runs a device BLAS library through host and device pointer
modes, compares the results against a NumPy reference and times the device
path. It ships an emulated device and an emulated library (SoftBlas) to run
against.
"""

from .arguments import Arguments
from .device import Device, DevicePointer
from .enums import (
    BatchKind,
    ClientApi,
    FillMode,
    Initialization,
    NanPolicy,
    Operation,
    PointerMode,
    Status,
)
from .errors import (
    BlasStatusError,
    DeviceError,
    HarnessError,
    UnexpectedStatusError,
    UnitCheckError,
)
from .harness import Outcome, TestResult, run_test
from .numeric import TYPE_DISPATCH_MAP, NumericType, get_numeric_type
from .reporting import NA_VALUE
from .routines import ROUTINES, get_routine
from .softblas import SoftBlas

__version__ = "0.1.0"
__author__ = "Alessandro Baretta"

__all__ = [
    "Arguments",
    "BatchKind",
    "BlasStatusError",
    "ClientApi",
    "Device",
    "DeviceError",
    "DevicePointer",
    "FillMode",
    "HarnessError",
    "Initialization",
    "NA_VALUE",
    "NanPolicy",
    "NumericType",
    "Operation",
    "Outcome",
    "PointerMode",
    "ROUTINES",
    "SoftBlas",
    "Status",
    "TYPE_DISPATCH_MAP",
    "TestResult",
    "UnexpectedStatusError",
    "UnitCheckError",
    "get_numeric_type",
    "get_routine",
    "run_test",
]
