# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/timing.py

"""
Device-path timing.
"""

import logging
from typing import Callable

from .device import Stream

logger = logging.getLogger(__name__)


def get_time_us_sync(stream: Stream) -> float:
    """Wait for the stream to drain, then read the device clock in microseconds."""
    stream.synchronize()
    return stream.device.time_us()


class PerformanceHarness:
    """Runs cold (warm-up) launches followed by timed launches."""

    def __init__(self, cold_iters: int, iters: int):
        if cold_iters < 0 or iters < 0:
            raise ValueError(f"Iteration counts must be non-negative: cold_iters={cold_iters}, iters={iters}")
        self.cold_iters = cold_iters
        self.iters = iters

    def measure(self, launch: Callable[[], None], stream: Stream) -> float:
        """Run cold_iters + iters launches.

        Returns:
            Elapsed device time in microseconds of the last iters launches
        """
        runs = self.cold_iters + self.iters
        start = None
        for iteration in range(runs):
            if iteration == self.cold_iters:
                start = get_time_us_sync(stream)
            launch()
        if start is None:
            # No timed launches
            return 0.0
        elapsed = get_time_us_sync(stream) - start
        logger.debug(f"timed {self.iters} launches after {self.cold_iters} cold: {elapsed:.3f} us")
        return elapsed
