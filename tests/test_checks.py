"""
Tests for the result comparators.
"""

import math

import numpy as np
import pytest

from py_blas_harness import UnitCheckError
from py_blas_harness.checks import (
    UNIT_CHECK_EPS_FACTOR,
    Comparator,
    OutputComparison,
    near_check_general,
    norm_check_general,
    unit_check_general,
)
from py_blas_harness.memory import HostStridedBatchVector
from py_blas_harness.numeric import COMPLEX64, FLOAT32, FLOAT64
from py_blas_harness.reporting import NA_VALUE
from py_blas_harness.routines import BufferSpec, CheckRegion


class TestUnitCheck:
    """Test element-wise comparison with a relative tolerance."""

    def test_identical_passes(self, any_type, rng):
        data = rng.standard_normal(12).astype(any_type.dtype)
        unit_check_general(any_type, 3, 4, 3, data, data.copy())

    def test_reports_first_mismatch_column_major(self):
        expected = np.zeros(12, dtype=np.float64)
        actual = expected.copy()
        actual[1 + 2 * 3] = 1.0   # row 1, col 2
        actual[2 + 3 * 3] = 1.0   # row 2, col 3
        with pytest.raises(UnitCheckError) as exc_info:
            unit_check_general(FLOAT64, 3, 4, 3, expected, actual)
        error = exc_info.value
        assert (error.batch, error.row, error.col) == (0, 1, 2)
        assert isinstance(error, AssertionError)

    def test_tolerance_scales_with_magnitude(self):
        expected = np.array([1e6], dtype=np.float32)
        within = expected + np.float32(1e6 * UNIT_CHECK_EPS_FACTOR * FLOAT32.eps / 2)
        unit_check_general(FLOAT32, 1, 1, 1, expected, within)
        with pytest.raises(UnitCheckError):
            unit_check_general(FLOAT32, 1, 1, 1, expected, expected * 1.01)

    def test_nan_matches_nan(self):
        data = np.array([1.0, math.nan, 3.0])
        unit_check_general(FLOAT64, 3, 1, 3, data, data.copy())
        with pytest.raises(UnitCheckError):
            unit_check_general(FLOAT64, 3, 1, 3, data, np.array([1.0, 2.0, 3.0]))

    def test_padding_is_ignored(self):
        expected = np.arange(8, dtype=np.float32)
        actual = expected.copy()
        # lda 4, M 2: rows 2 and 3 of each column are padding
        actual[[2, 3, 6, 7]] = -1
        unit_check_general(FLOAT32, 2, 2, 4, expected, actual)

    def test_imaginary_part_is_compared(self):
        expected = np.array([1 + 1j], dtype=np.complex64)
        with pytest.raises(UnitCheckError):
            unit_check_general(COMPLEX64, 1, 1, 1, expected, np.array([1 + 2j], dtype=np.complex64))

    def test_batch_index_reported(self):
        container = HostStridedBatchVector(4, 1, 5, 3, np.float64)
        other = container.clone()
        other[2][3] = 5.0
        with pytest.raises(UnitCheckError) as exc_info:
            unit_check_general(FLOAT64, 2, 2, 2, container, other, batch_count=3)
        assert (exc_info.value.batch, exc_info.value.row, exc_info.value.col) == (2, 1, 1)

    def test_flat_array_with_stride(self):
        expected = np.zeros(10)
        actual = expected.copy()
        actual[5 + 1] = 1.0
        with pytest.raises(UnitCheckError) as exc_info:
            unit_check_general(FLOAT64, 2, 1, 2, expected, actual, batch_count=2, stride=5)
        assert exc_info.value.batch == 1

    def test_inputs_not_modified(self):
        expected = np.array([1.0, 2.0])
        actual = np.array([1.0, 2.0])
        unit_check_general(FLOAT64, 2, 1, 2, expected, actual)
        np.testing.assert_array_equal(expected, [1.0, 2.0])
        np.testing.assert_array_equal(actual, [1.0, 2.0])


class TestNearCheck:
    """Test element-wise comparison with an absolute tolerance."""

    def test_within_and_outside(self):
        expected = np.array([1.0, 2.0])
        near_check_general(FLOAT64, 2, 1, 2, expected, expected + 0.05, 0.1)
        with pytest.raises(UnitCheckError, match="near"):
            near_check_general(FLOAT64, 2, 1, 2, expected, expected + 0.2, 0.1)


class TestNormCheck:
    """Test relative norm errors."""

    def test_identical_is_zero(self, any_type, rng):
        data = rng.standard_normal(9).astype(any_type.dtype)
        assert norm_check_general("F", 3, 3, 3, data, data.copy()) == 0.0

    def test_relative_frobenius(self):
        expected = np.ones(4)
        actual = expected.copy()
        actual[0] = 2.0
        # ||diff|| = 1, ||expected|| = 2
        assert norm_check_general("F", 2, 2, 2, expected, actual) == pytest.approx(0.5)

    def test_summed_over_batch(self):
        expected = [np.ones(4), np.ones(4)]
        actual = [np.array([2.0, 1, 1, 1]), np.array([1.0, 1, 1, 3])]
        assert norm_check_general("F", 2, 2, 2, expected, actual, batch_count=2) == pytest.approx(1.5)

    @pytest.mark.parametrize("norm_type,value", [("O", 0.5), ("I", 0.5), ("M", 1.0), ("f", 0.5)])
    def test_norm_types(self, norm_type, value):
        expected = np.ones(4)
        actual = np.array([2.0, 1, 1, 1])
        # One norm and infinity norm of ones(2, 2) are 2, max norm is 1
        assert norm_check_general(norm_type, 2, 2, 2, expected, actual) == pytest.approx(value)

    def test_zero_reference_uses_absolute_error(self):
        assert norm_check_general("F", 2, 1, 2, np.zeros(2), np.array([3.0, 4.0])) == pytest.approx(5.0)

    def test_nan_in_both_counts_as_equal(self):
        data = np.array([1.0, math.nan])
        assert norm_check_general("F", 2, 1, 2, data, data.copy()) == 0.0

    def test_invalid_norm_type(self):
        with pytest.raises(ValueError, match="Invalid norm type"):
            norm_check_general("X", 1, 1, 1, np.ones(1), np.ones(1))


def _output(name="C", near_tolerance=None):
    return BufferSpec(name=name, n=4, output=True, check=CheckRegion(2, 2, 2), near_tolerance=near_tolerance)


class TestComparator:
    """Test the comparison sequence over several outputs."""

    def test_unit_only_leaves_norms_na(self):
        data = np.ones(4)
        errors = Comparator(True, False).compare(FLOAT64, [OutputComparison(_output(), data, data, data)], 1)
        assert errors.host == NA_VALUE and errors.device == NA_VALUE

    def test_norms_summed_over_outputs(self):
        gold = np.ones(4)
        off = np.array([2.0, 1, 1, 1])
        outputs = [
            OutputComparison(_output("A"), gold, off, gold),
            OutputComparison(_output("B"), gold, off, off),
        ]
        errors = Comparator(False, True).compare(FLOAT64, outputs, 1)
        assert errors.host == pytest.approx(1.0)
        assert errors.device == pytest.approx(0.5)

    def test_unit_failure_names_pointer_mode(self):
        gold = np.ones(4)
        outputs = [OutputComparison(_output(), gold, gold, np.zeros(4))]
        with pytest.raises(UnitCheckError, match="device pointer mode"):
            Comparator(True, True).compare(FLOAT64, outputs, 1)

    def test_near_tolerance_selects_absolute_check(self):
        gold = np.ones(4)
        close = gold + 0.01
        outputs = [OutputComparison(_output(near_tolerance=0.1), gold, close, close)]
        Comparator(True, False).compare(FLOAT64, outputs, 1)
