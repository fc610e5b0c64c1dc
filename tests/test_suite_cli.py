"""
Tests for the sweep runner and the command line interface.
"""

import csv
import json

import pytest

from py_blas_harness import Arguments
from py_blas_harness.cli import build_parser, main
from py_blas_harness.reporting import CollectingReportSink
from py_blas_harness.routines import ROUTINES, get_routine
from py_blas_harness.softblas import kernels
from py_blas_harness.suite import (
    PROBLEM_SIZES,
    BlasHarnessSuite,
    exit_code,
    expand_routines,
    expand_special_sizes,
    expand_special_types,
    summarize,
)


class TestSelection:
    """Test expansion of routine, size and type selections."""

    def test_sizes(self):
        assert expand_special_sizes(["tiny", "5", " 8 "]) == {0, 1, 3, 5, 8}

    @pytest.mark.parametrize("spec", ["huge", "-1", "1.5"])
    def test_invalid_sizes(self, spec):
        with pytest.raises(ValueError, match="Invalid size specification"):
            expand_special_sizes([spec])

    def test_types(self):
        assert expand_special_types(["real", "z"]) == {"s", "d", "z"}
        with pytest.raises(ValueError, match="Invalid data type"):
            expand_special_types(["h"])

    def test_routines(self):
        assert expand_routines(["her*"]) == {"her", "her_batched", "her_strided_batched"}
        assert expand_routines(["*_strided_batched"]) == {
            "rotmg_strided_batched", "her_strided_batched", "syr2k_strided_batched",
        }
        assert expand_routines(["syr2k"]) == {"syr2k"}
        with pytest.raises(ValueError, match="Invalid routine"):
            expand_routines(["gemm*"])

    def test_registry(self):
        assert len(ROUTINES) == 9
        with pytest.raises(ValueError, match="Unknown routine"):
            get_routine("trsm")


class TestSuite:
    """Test the sweep over routines x sizes x types."""

    def test_tiny_sweep(self, library):
        suite = BlasHarnessSuite(
            selected_routines={"her_batched", "syr2k_strided_batched"},
            selected_sizes={0, 3},
            base_args=Arguments(batch_count=2),
            library=library,
        )
        results = suite.run_all_tests()
        assert set(results) == {"her_batched", "syr2k_strided_batched"}
        # her is only provided for c and z
        assert len(results["her_batched"]) == 2 * 2
        assert len(results["syr2k_strided_batched"]) == 2 * 4
        assert all(r["run_success"] and r["correct"] for rs in results.values() for r in rs)

        outcomes = {(r["size"], r["outcome"]) for r in results["her_batched"]}
        assert outcomes == {(0, "quick_return"), (3, "passed")}

        summary = summarize(results)
        assert summary == {"total": 12, "execution_failures": 0, "correctness_failures": 0}
        assert exit_code(summary) == 0
        assert "Overall: 12/12 tests passed (100.0%)" in suite.generate_report(results)

    def test_custom_sizes_category(self, library):
        suite = BlasHarnessSuite(selected_routines={"rotmg"}, selected_sizes={1, 5}, library=library)
        sizes = suite._get_filtered_problem_sizes()
        assert sizes == {"tiny": [1], "custom": [5]}

    def test_all_sizes_by_default(self, library):
        suite = BlasHarnessSuite(selected_routines={"rotmg"}, library=library)
        assert suite._get_filtered_problem_sizes() == PROBLEM_SIZES

    def test_type_filter(self, library):
        suite = BlasHarnessSuite(selected_routines={"her"}, selected_sizes={1}, selected_types={"s"},
                                 library=library)
        assert suite.run_all_tests() == {"her": []}

    def test_correctness_failure_recorded(self, library, monkeypatch):
        original = kernels.syr2k_kernel

        def broken(*args):
            original(*args)
            args[-2][0][0] += 1

        monkeypatch.setattr(kernels, "syr2k_kernel", broken)
        suite = BlasHarnessSuite(selected_routines={"syr2k"}, selected_sizes={3}, selected_types={"d"},
                                 library=library)
        results = suite.run_all_tests()
        (result,) = results["syr2k"]
        assert result["run_success"] and not result["correct"]
        assert exit_code(summarize(results)) == 2

    def test_execution_failure_recorded(self, library, device):
        device.fail_transfers_after(0)
        suite = BlasHarnessSuite(selected_routines={"syr2k"}, selected_sizes={3}, selected_types={"d"},
                                 library=library)
        results = suite.run_all_tests()
        assert not results["syr2k"][0]["run_success"]
        assert exit_code(summarize(results)) == 1

    def test_timing_records(self, library):
        sink = CollectingReportSink()
        suite = BlasHarnessSuite(selected_routines={"syr2k_batched"}, selected_sizes={8}, selected_types={"s"},
                                 base_args=Arguments(timing=True, iters=2, cold_iters=1), library=library,
                                 sink=sink)
        (result,) = suite.run_all_tests()["syr2k_batched"]
        assert len(sink.records) == 1
        assert result["performance"]["us_per_call"] == pytest.approx(2.0)


class TestCli:
    """Test the command line entry point."""

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_run_defaults(self):
        args = build_parser().parse_args(["run", "-f", "syr2k"])
        assert args.N == 128 and args.precision == "s" and args.uplo == "U"
        assert args.unit_check == 1 and args.timing == 0

    def test_run_rejects_y_increment(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run", "-f", "her", "--incy", "2"])

    def test_run_passes(self, tmp_path):
        output = tmp_path / "result.json"
        code = main(["run", "-f", "syr2k_strided_batched", "-r", "d", "-n", "6", "-k", "4", "--lda", "6",
                     "--ldb", "6", "--ldc", "6", "--batch_count", "3", "--norm_check", "1", "-o", str(output)])
        assert code == 0
        details = json.loads(output.read_text())
        assert details["outcome"] == "passed"
        assert details["device_calls"] == 2
        assert details["error_host"] == pytest.approx(0.0)
        assert details["gpu_time_us"] is None
        assert details["arguments"]["batch_count"] == 3

    def test_run_invalid_probe(self, tmp_path):
        output = tmp_path / "result.json"
        code = main(["run", "-f", "her", "-r", "c", "-n", "8", "--lda", "4", "-o", str(output)])
        assert code == 0
        details = json.loads(output.read_text())
        assert details["outcome"] == "invalid_probe"
        assert details["probe_status"] == "invalid_value"

    def test_run_unsupported_type(self):
        assert main(["run", "-f", "her", "-r", "s", "-n", "4", "--lda", "4"]) == 1

    def test_run_overlapping_stride(self):
        code = main(["run", "-f", "syr2k_strided_batched", "-r", "d", "-n", "6", "-k", "4", "--lda", "6",
                     "--ldb", "6", "--ldc", "6", "--batch_count", "3", "--stride_scale", "0.5"])
        assert code == 1

    def test_run_fortran_with_csv(self, tmp_path):
        report = tmp_path / "perf.csv"
        code = main(["run", "-f", "her_batched", "-r", "z", "-n", "5", "--lda", "5", "--incx", "-2",
                     "--fortran", "--timing", "1", "-i", "3", "-j", "1", "--csv", str(report)])
        assert code == 0
        with open(report, newline="") as f:
            rows = list(csv.reader(f))
        assert rows[0][:2] == ["routine", "a_type"]
        assert rows[1][:2] == ["her_batched", "z"]

    def test_sweep(self, tmp_path, capsys):
        output = tmp_path / "sweep.json"
        code = main(["sweep", "--routines", "rotmg*", "--sizes", "1", "--types", "real", "-o", str(output)])
        assert code == 0
        results = json.loads(output.read_text())
        assert set(results) == {"rotmg", "rotmg_batched", "rotmg_strided_batched"}
        assert "SWEEP SUMMARY" in capsys.readouterr().out

    def test_sweep_bad_selection(self, capsys):
        assert main(["sweep", "--sizes", "enormous"]) == 1
        assert "Error parsing selection" in capsys.readouterr().err
