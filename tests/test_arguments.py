"""
Tests for the test configuration record and numeric type descriptors.
"""

import dataclasses
import math

import numpy as np
import pytest

from py_blas_harness import Arguments, ClientApi, FillMode, Initialization, Operation
from py_blas_harness.numeric import COMPLEX64, FLOAT32, FLOAT64, TYPE_DISPATCH_MAP, get_numeric_type


class TestArguments:
    """Test Arguments construction and helpers."""

    def test_defaults(self):
        arg = Arguments()
        assert arg.a_type == "s"
        assert arg.unit_check and not arg.norm_check and not arg.timing
        assert arg.api == ClientApi.C
        assert arg.initialization == Initialization.RAND_INT

    def test_is_immutable(self):
        arg = Arguments()
        with pytest.raises(dataclasses.FrozenInstanceError):
            arg.N = 3

    def test_with_changes_returns_copy(self):
        arg = Arguments(N=10)
        changed = arg.with_changes(N=20, uplo="L")
        assert arg.N == 10 and arg.uplo == "U"
        assert changed.N == 20 and changed.fill_mode == FillMode.LOWER

    def test_string_enums_are_converted(self):
        arg = Arguments(api="fortran", initialization="hpl")
        assert arg.api == ClientApi.FORTRAN
        assert arg.fortran
        assert arg.initialization == Initialization.HPL

    @pytest.mark.parametrize("iters,cold_iters", [(-1, 0), (0, -2)])
    def test_negative_iterations_rejected(self, iters, cold_iters):
        with pytest.raises(ValueError):
            Arguments(iters=iters, cold_iters=cold_iters)

    def test_modes(self):
        arg = Arguments(uplo="l", transA="t")
        assert arg.fill_mode == FillMode.LOWER
        assert arg.operation == Operation.TRANSPOSE
        with pytest.raises(ValueError):
            Arguments(uplo="X").fill_mode

    def test_scalars_follow_target_type(self):
        arg = Arguments(alpha=2.0, alphai=3.0, beta=-1.0, betai=0.5)
        alpha_c = arg.get_alpha(COMPLEX64)
        assert alpha_c == np.complex64(2 + 3j)
        assert alpha_c.dtype == np.complex64
        # Real targets drop the imaginary part
        alpha_s = arg.get_alpha(FLOAT32)
        assert alpha_s == np.float32(2.0)
        assert arg.get_beta(FLOAT64) == -1.0

    def test_nan_detection(self):
        assert Arguments(alpha=math.nan).alpha_is_nan
        assert Arguments(betai=math.nan).beta_is_nan
        assert not Arguments().alpha_is_nan

    def test_dict_round_trip(self):
        arg = Arguments(function="her_batched", a_type="c", api=ClientApi.FORTRAN)
        data = arg.to_dict()
        assert data["api"] == "fortran"
        assert Arguments.from_dict(data) == arg

    def test_from_dict_rejects_unknown_fields(self):
        with pytest.raises(ValueError, match="Unknown argument fields"):
            Arguments.from_dict({"N": 3, "bogus": 1})

    def test_only_x_increment_is_configurable(self):
        # none of the routines takes a y vector
        assert "incy" not in Arguments().to_dict()
        with pytest.raises(ValueError, match="incy"):
            Arguments.from_dict({"incy": 2})


class TestNumericType:
    """Test numeric type descriptors and lookup."""

    @pytest.mark.parametrize("code", ["s", "d", "c", "z"])
    def test_lookup_by_code(self, code):
        assert get_numeric_type(code) is TYPE_DISPATCH_MAP[code]

    def test_lookup_by_dtype(self):
        assert get_numeric_type(np.complex128).name == "z"
        assert get_numeric_type(np.dtype(np.float32)) is FLOAT32

    @pytest.mark.parametrize("spec", ["q", np.int32, "float16"])
    def test_unsupported(self, spec):
        with pytest.raises(ValueError, match="Unsupported numeric type"):
            get_numeric_type(spec)

    def test_properties(self, any_type):
        assert any_type.eps == np.finfo(any_type.real_dtype).eps
        assert any_type.real.dtype == any_type.real_dtype
        assert not any_type.real.is_complex
        assert any_type.is_complex == (any_type.name in "cz")

    def test_scalar_conversion(self):
        assert FLOAT32.scalar(1 + 2j) == np.float32(1.0)
        assert COMPLEX64.scalar(1 + 2j).dtype == np.complex64
