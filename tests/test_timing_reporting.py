"""
Tests for timing, operation counts and performance reporting.
"""

import io
import logging

import pytest

from py_blas_harness import Arguments, FillMode, NA_VALUE, get_routine
from py_blas_harness.flops import her_gbyte_count, her_gflop_count, syr2k_gbyte_count, syr2k_gflop_count
from py_blas_harness.numeric import COMPLEX64, COMPLEX128, FLOAT32, FLOAT64
from py_blas_harness.reporting import (
    ArgumentModel,
    CollectingReportSink,
    CsvReportSink,
    LoggingReportSink,
    PerformanceRecord,
    format_value,
    is_na,
)
from py_blas_harness.timing import PerformanceHarness, get_time_us_sync


class TestPerformanceHarness:
    """Test cold and timed launches."""

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError):
            PerformanceHarness(-1, 5)
        with pytest.raises(ValueError):
            PerformanceHarness(0, -5)

    def test_only_timed_launches_are_measured(self, device):
        launches = []

        def launch():
            launches.append(device.launch(lambda: None))

        elapsed = PerformanceHarness(3, 7).measure(launch, device.default_stream)
        assert len(launches) == 10
        assert elapsed == pytest.approx(7 * 2.0)

    def test_host_clock_counts(self, device, fake_clock):
        def launch():
            fake_clock.advance(1e-6)

        assert PerformanceHarness(2, 4).measure(launch, device.default_stream) == pytest.approx(4.0)

    def test_zero_timed_iterations(self, device):
        calls = []
        elapsed = PerformanceHarness(2, 0).measure(lambda: calls.append(1), device.default_stream)
        assert elapsed == 0.0
        assert len(calls) == 2

    def test_synchronizes_before_reading_clock(self, device):
        stream = device.create_stream()
        get_time_us_sync(stream)
        PerformanceHarness(1, 1).measure(lambda: None, stream)
        assert stream.synchronize_count == 3
        assert device.synchronizations == 3


class TestFlopCounts:
    """Test operation and traffic counts."""

    def test_her(self):
        assert her_gflop_count(COMPLEX64, 10) == pytest.approx(4 * 10 * 11 / 1e9)
        assert her_gbyte_count(COMPLEX128, 10) == pytest.approx(16 * (110 + 10) / 1e9)

    def test_syr2k(self):
        assert syr2k_gflop_count(FLOAT32, 4, 3) == pytest.approx(2 * 3 * 4 * 5 / 1e9)
        assert syr2k_gflop_count(COMPLEX64, 4, 3) == pytest.approx(8 * 3 * 4 * 5 / 1e9)
        assert syr2k_gbyte_count(FLOAT64, 4, 3) == pytest.approx(8 * (24 + 20) / 1e9)

    def test_routine_counts(self):
        arg = Arguments(N=16, K=8)
        assert get_routine("syr2k_batched").gflop_count(arg, FLOAT64) == syr2k_gflop_count(FLOAT64, 16, 8)
        assert get_routine("rotmg").gflop_count(arg, FLOAT64) == NA_VALUE
        assert get_routine("rotmg").gbyte_count(arg, FLOAT64) == NA_VALUE


def _record(**changes):
    values = dict(
        routine="syr2k_batched", a_type="d", arguments={"N": 4, "alpha": 1.5}, batch_count=10,
        iters=20, gpu_time_us=40.0, gflop_count=2e-6, gbyte_count=4e-6,
    )
    values.update(changes)
    return PerformanceRecord(**values)


class TestPerformanceRecord:
    """Test derived figures and N/A handling."""

    def test_rates(self):
        record = _record()
        assert record.us_per_call == pytest.approx(2.0)
        # 10 entries x 2e-6 GFLOP in 2 us
        assert record.gflops == pytest.approx(10.0)
        assert record.gbyte_per_sec == pytest.approx(20.0)

    def test_na_propagates(self):
        assert _record(iters=0).us_per_call == NA_VALUE
        assert _record(iters=0).gflops == NA_VALUE
        assert _record(gflop_count=NA_VALUE).gflops == NA_VALUE
        assert _record(gpu_time_us=0.0).gflops == NA_VALUE

    def test_columns_order(self):
        columns = list(_record().columns())
        assert columns == ["N", "alpha", "gflops", "GB/s", "us", "norm_error_host", "norm_error_device"]

    def test_to_dict_uses_none_for_na(self):
        data = _record(error_host=0.25).to_dict()
        assert data["error_host"] == 0.25
        assert data["error_device"] is None
        assert data["arguments"] == {"N": "4", "alpha": "1.5"}


class TestFormatting:
    def test_format_value(self):
        assert format_value(NA_VALUE) == "N/A"
        assert format_value(0.5) == "0.5"
        assert format_value(FillMode.LOWER) == "L"
        assert format_value(12) == "12"

    def test_is_na(self):
        assert is_na(None) and is_na(-1.0)
        assert not is_na(0.0)


class TestSinks:
    """Test report destinations."""

    def test_csv_header_written_once(self):
        stream = io.StringIO()
        sink = CsvReportSink(stream)
        sink.emit(_record())
        sink.emit(_record(gpu_time_us=80.0))
        lines = stream.getvalue().splitlines()
        assert lines[0] == "routine,a_type,N,alpha,gflops,GB/s,us,norm_error_host,norm_error_device"
        assert len(lines) == 3
        assert lines[1].endswith("N/A,N/A")

    def test_csv_header_repeated_on_new_columns(self):
        stream = io.StringIO()
        sink = CsvReportSink(stream)
        sink.emit(_record())
        sink.emit(_record(arguments={"N": 4}))
        assert len(stream.getvalue().splitlines()) == 4

    def test_logging_sink(self, caplog):
        with caplog.at_level(logging.INFO, logger="py_blas_harness.reporting"):
            LoggingReportSink().emit(_record())
        messages = [r.getMessage() for r in caplog.records]
        assert messages[0] == "syr2k_batched: N,alpha,gflops,GB/s,us,norm_error_host,norm_error_device"
        assert messages[1].startswith("syr2k_batched: 4,1.5,10,20,2,")

    def test_collecting_sink(self):
        sink = CollectingReportSink()
        sink.emit(_record())
        assert len(sink.records) == 1


class TestArgumentModel:
    """Test reported fields and test names."""

    def test_values_follow_field_order(self):
        model = ArgumentModel("a_type", "N", "uplo")
        values = model.values(Arguments(N=3, uplo="L"), "z")
        assert list(values.items()) == [("a_type", "z"), ("N", 3), ("uplo", "L")]

    def test_her_test_name(self):
        arg = Arguments(N=8, alpha=-1.5, incx=1, lda=8, batch_count=3)
        name = get_routine("her_batched").model.test_name("her_batched", arg, "c")
        assert name == "her_batched_c_U_8_m1p5_1_8_3"

    def test_log_args(self):
        sink = CollectingReportSink()
        model = ArgumentModel("a_type", "N")
        record = model.log_args(sink, "her", Arguments(N=5, iters=4), "c", 8.0, 1e-6, NA_VALUE,
                                NA_VALUE, NA_VALUE, batch_count=2)
        assert sink.records == [record]
        assert record.arguments == {"a_type": "c", "N": 5}
        assert record.us_per_call == pytest.approx(2.0)
        assert record.gbyte_per_sec == NA_VALUE
