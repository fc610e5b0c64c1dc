"""
Pytest configuration and fixtures for py-blas-harness test suite.

This module provides common fixtures, test data, and configuration
for testing the harness, the emulated device and the emulated library.
"""

import os
import sys

import numpy as np
import pytest

# Add the package to the path for testing
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from py_blas_harness import Arguments, BatchKind, Device, SoftBlas  # noqa: E402
from py_blas_harness.numeric import COMPLEX64, COMPLEX128, FLOAT32, FLOAT64  # noqa: E402

# Numeric type descriptors
REAL_TYPES = [FLOAT32, FLOAT64]
COMPLEX_TYPES = [COMPLEX64, COMPLEX128]
ALL_TYPES = REAL_TYPES + COMPLEX_TYPES

BATCH_KINDS = list(BatchKind)


class FakeClock:
    """Host clock that only moves when told to."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(params=REAL_TYPES, ids=lambda x: x.name)
def real_type(request):
    """Fixture providing real numeric types."""
    return request.param


@pytest.fixture(params=COMPLEX_TYPES, ids=lambda x: x.name)
def complex_type(request):
    """Fixture providing complex numeric types."""
    return request.param


@pytest.fixture(params=ALL_TYPES, ids=lambda x: x.name)
def any_type(request):
    """Fixture providing all numeric types."""
    return request.param


@pytest.fixture(params=BATCH_KINDS, ids=lambda x: x.name.lower())
def batch_kind(request):
    """Fixture providing every batch layout."""
    return request.param


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def device(fake_clock):
    """Emulated device with a deterministic clock and 2 us per kernel launch."""
    return Device(clock=fake_clock, kernel_time_us=2.0)


@pytest.fixture
def library(device):
    return SoftBlas(device)


@pytest.fixture
def handle(library):
    with library.handle() as h:
        yield h


@pytest.fixture
def small_args():
    """Factory for small, fast test configurations."""
    def _generate(function, a_type, N=8, K=5, batch_count=3, **changes):
        ld = max(N, K, 1)
        arg = Arguments(
            function=function, a_type=a_type, N=N, K=K, lda=ld, ldb=ld, ldc=max(N, 1),
            batch_count=batch_count,
        )
        return arg.with_changes(**changes)
    return _generate


@pytest.fixture
def rng():
    return np.random.default_rng(42)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "performance: marks tests as performance benchmarks"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Mark integration tests
        if "integration" in item.nodeid or "scenario" in item.nodeid:
            item.add_marker(pytest.mark.integration)

        # Mark performance tests
        if "timing" in item.nodeid or "performance" in item.nodeid:
            item.add_marker(pytest.mark.performance)
