# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/reporting.py

"""
Performance records and report sinks.

Each timed test case produces one PerformanceRecord holding the arguments
selected by the routine's ArgumentModel, the measured device time, the FLOP
and byte counts and the norm errors. Figures that were not computed are
NA_VALUE and are printed as "N/A".
"""

import csv
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TextIO

logger = logging.getLogger(__name__)

# Sentinel for figures that were not computed
NA_VALUE = -1.0

NA_TEXT = "N/A"


def is_na(value) -> bool:
    return value is None or value == NA_VALUE


def format_value(value) -> str:
    if isinstance(value, float):
        if is_na(value):
            return NA_TEXT
        return f"{value:.6g}"
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


@dataclass
class PerformanceRecord:
    """Timing and accuracy figures of one test case."""
    routine: str
    a_type: str
    arguments: Dict[str, Any]
    batch_count: int
    iters: int
    gpu_time_us: float
    gflop_count: float = NA_VALUE
    gbyte_count: float = NA_VALUE
    error_host: float = NA_VALUE
    error_device: float = NA_VALUE

    @property
    def us_per_call(self) -> float:
        if self.iters <= 0 or is_na(self.gpu_time_us):
            return NA_VALUE
        return self.gpu_time_us / self.iters

    def _rate(self, count: float) -> float:
        us = self.us_per_call
        if is_na(count) or is_na(us) or us <= 0:
            return NA_VALUE
        return count * self.batch_count / (us * 1e-6)

    @property
    def gflops(self) -> float:
        return self._rate(self.gflop_count)

    @property
    def gbyte_per_sec(self) -> float:
        return self._rate(self.gbyte_count)

    def columns(self) -> Dict[str, Any]:
        """Ordered report columns: model arguments followed by the measurements."""
        return {
            **self.arguments,
            "gflops": self.gflops,
            "GB/s": self.gbyte_per_sec,
            "us": self.us_per_call,
            "norm_error_host": self.error_host,
            "norm_error_device": self.error_device,
        }

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "routine": self.routine,
            "a_type": self.a_type,
            "arguments": {k: format_value(v) for k, v in self.arguments.items()},
            "batch_count": self.batch_count,
            "iters": self.iters,
            "gpu_time_us": self.gpu_time_us,
        }
        for name in ("gflops", "gbyte_per_sec", "us_per_call", "error_host", "error_device"):
            value = getattr(self, name)
            result[name] = None if is_na(value) or math.isnan(value) else value
        return result


class ReportSink(ABC):
    """Destination for performance records."""

    @abstractmethod
    def emit(self, record: PerformanceRecord) -> None:
        pass


class LoggingReportSink(ReportSink):
    """Writes each record as a header line and a value line through logging."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.log = log or logger
        self.level = level

    def emit(self, record: PerformanceRecord) -> None:
        columns = record.columns()
        self.log.log(self.level, f"{record.routine}: " + ",".join(columns))
        self.log.log(self.level, f"{record.routine}: " + ",".join(format_value(v) for v in columns.values()))


class CsvReportSink(ReportSink):
    """Writes records as CSV rows; a header is written whenever the column set changes."""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self._writer = csv.writer(stream)
        self._header: Optional[List[str]] = None

    def emit(self, record: PerformanceRecord) -> None:
        columns = record.columns()
        header = ["routine", "a_type"] + list(columns)
        if header != self._header:
            self._writer.writerow(header)
            self._header = header
        self._writer.writerow([record.routine, record.a_type] + [format_value(v) for v in columns.values()])


@dataclass
class CollectingReportSink(ReportSink):
    """Keeps records in memory."""
    records: List[PerformanceRecord] = field(default_factory=list)

    def emit(self, record: PerformanceRecord) -> None:
        self.records.append(record)


def _name_token(value) -> str:
    text = format_value(value)
    return text.replace("-", "m").replace(".", "p")


class ArgumentModel:
    """Selects the Arguments fields a routine reports and names test cases after."""

    def __init__(self, *fields: str):
        self.fields = fields

    def values(self, arg, a_type: str) -> Dict[str, Any]:
        result = {}
        for name in self.fields:
            result[name] = a_type if name == "a_type" else getattr(arg, name)
        return result

    def test_name(self, routine: str, arg, a_type: Optional[str] = None) -> str:
        values = self.values(arg, a_type or arg.a_type)
        return "_".join([routine] + [_name_token(v) for v in values.values()])

    def log_args(self, sink: ReportSink, routine: str, arg, a_type: str, gpu_time_us: float,
                 gflop_count: float, gbyte_count: float, error_host: float, error_device: float,
                 batch_count: int = 1) -> PerformanceRecord:
        record = PerformanceRecord(
            routine=routine,
            a_type=a_type,
            arguments=self.values(arg, a_type),
            batch_count=batch_count,
            iters=arg.iters,
            gpu_time_us=gpu_time_us,
            gflop_count=gflop_count,
            gbyte_count=gbyte_count,
            error_host=error_host,
            error_device=error_device,
        )
        sink.emit(record)
        return record
