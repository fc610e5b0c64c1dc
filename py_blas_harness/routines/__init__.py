# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/routines/__init__.py

"""
Routine registry: every routine in every batch variant, keyed by full name.
"""

from typing import Dict, Type

from ..enums import BatchKind
from .base import BufferSpec, CheckRegion, Routine, ScalarSpec
from .her import Her
from .rotmg import Rotmg
from .syr2k import Syr2k

ROUTINE_CLASSES: Dict[str, Type[Routine]] = {
    "rotmg": Rotmg,
    "her": Her,
    "syr2k": Syr2k,
}

ROUTINES: Dict[str, Routine] = {
    routine.full_name: routine
    for routine in (cls(kind) for cls in ROUTINE_CLASSES.values() for kind in BatchKind)
}


def get_routine(name: str) -> Routine:
    """Look up a routine by full name, e.g. "syr2k_strided_batched"."""
    if name not in ROUTINES:
        raise ValueError(f"Unknown routine: '{name}'. Available routines: {sorted(ROUTINES)}")
    return ROUTINES[name]


__all__ = [
    "BufferSpec",
    "CheckRegion",
    "Her",
    "ROUTINES",
    "ROUTINE_CLASSES",
    "Routine",
    "Rotmg",
    "ScalarSpec",
    "get_routine",
]
