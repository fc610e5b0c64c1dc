# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/suite.py

"""
Sweep runner.

Runs every selected routine (in every batch variant) over a grid of problem
sizes and element types:
- tiny: empty and degenerate problems (0, 1, 3), exercising quick returns
- small: sizes below and around a typical tile (8, 16, 33)
- medium: 64, 100
- large: 256

Each combination is one test case. Failures are recorded per test case and the
sweep moves on.
"""

import fnmatch
import logging
import traceback
from datetime import datetime
from typing import Dict, List, Optional, Set

from .arguments import Arguments
from .device import Device
from .errors import HarnessError, UnitCheckError
from .harness import run_test
from .reporting import ReportSink, is_na
from .routines import ROUTINES, Routine
from .softblas import SoftBlas

# Element types to test
DATA_TYPES = ["s", "d", "c", "z"]

# Special data type groups
SPECIAL_DATA_TYPES = {
    "real": ["s", "d"],
    "complex": ["c", "z"],
}

# Problem sizes to test
PROBLEM_SIZES = {
    "tiny": [0, 1, 3],
    "small": [8, 16, 33],
    "medium": [64, 100],
    "large": [256],
}

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


def expand_special_sizes(size_specs: List[str]) -> Set[int]:
    """Expand special size specifications to actual size values.

    Args:
        size_specs: List of size specifications (can be numbers or special names)

    Returns:
        Set of integer sizes

    Special size names are the keys from PROBLEM_SIZES dict:
    - tiny, small, medium, large
    """
    expanded_sizes = set()

    for spec in size_specs:
        spec = spec.strip()

        if spec in PROBLEM_SIZES:
            expanded_sizes.update(PROBLEM_SIZES[spec])
        else:
            try:
                size = int(spec)
            except ValueError:
                raise ValueError(
                    f"Invalid size specification: '{spec}'.\n"
                    f"Must be a number or one of: {list(PROBLEM_SIZES.keys())}"
                )
            if size < 0:
                raise ValueError(f"Invalid size specification: '{spec}'. Sizes must be non-negative")
            expanded_sizes.add(size)

    return expanded_sizes


def expand_special_types(type_specs: List[str]) -> Set[str]:
    """Expand special type specifications to precision codes.

    Args:
        type_specs: List of type specifications (can be precision codes or special groups)

    Returns:
        Set of precision codes

    Special type groups:
    - real: s, d
    - complex: c, z
    """
    expanded_types = set()

    for spec in type_specs:
        spec = spec.strip()

        if spec in SPECIAL_DATA_TYPES:
            expanded_types.update(SPECIAL_DATA_TYPES[spec])
        elif spec in DATA_TYPES:
            expanded_types.add(spec)
        else:
            raise ValueError(
                f"Invalid data type specification: '{spec}'.\n"
                f"Must be one of {DATA_TYPES} or one of {list(SPECIAL_DATA_TYPES.keys())}"
            )

    return expanded_types


def expand_routines(patterns: List[str]) -> Set[str]:
    """Expand routine names or shell-style patterns (e.g. 'syr2k*') to full routine names."""
    selected = set()
    for pattern in patterns:
        pattern = pattern.strip()
        matches = [name for name in ROUTINES if name == pattern or fnmatch.fnmatch(name, pattern)]
        if not matches:
            raise ValueError(
                f"Invalid routine specification: '{pattern}'.\n"
                f"Must match one of: {sorted(ROUTINES)}"
            )
        selected.update(matches)
    return selected


class BlasHarnessSuite:
    """Runs the harness over routines x sizes x types."""

    def __init__(self, verbose: bool = False, selected_routines: Optional[Set[str]] = None,
                 selected_sizes: Optional[Set[int]] = None, selected_types: Optional[Set[str]] = None,
                 base_args: Optional[Arguments] = None, library: Optional[SoftBlas] = None,
                 sink: Optional[ReportSink] = None):
        """Initialize the sweep.

        Args:
            verbose: Enable verbose logging
            selected_routines: Full routine names to test (None for all)
            selected_sizes: Problem sizes to test (None for all)
            selected_types: Precision codes to test (None for all)
            base_args: Arguments every test case starts from (sizes and type are overridden)
            library: Library under test (default: a SoftBlas on a new Device)
            sink: Destination for performance records when timing
        """
        self.verbose = verbose
        self.selected_routines = selected_routines
        self.selected_sizes = selected_sizes
        self.selected_types = selected_types or set(DATA_TYPES)
        self.base_args = base_args or Arguments()
        self.library = library or SoftBlas(Device())
        self.sink = sink

        configure_logging(verbose)
        self.logger = logging.getLogger(__name__)

        self.routines = self._discover_routines()
        if not self.routines:
            raise ValueError("No routines selected")
        self.logger.info(f"Selected {len(self.routines)} routines")

    def _discover_routines(self) -> List[Routine]:
        if self.selected_routines is None:
            return [ROUTINES[name] for name in sorted(ROUTINES)]
        return [ROUTINES[name] for name in sorted(self.selected_routines)]

    def _get_filtered_problem_sizes(self) -> Dict[str, List[int]]:
        """Get problem sizes filtered by selection criteria."""
        if self.selected_sizes is None:
            return PROBLEM_SIZES

        filtered_sizes = {}
        for category, sizes in PROBLEM_SIZES.items():
            filtered = [size for size in sizes if size in self.selected_sizes]
            if filtered:
                filtered_sizes[category] = filtered

        # Sizes that are not in any category
        known = {size for sizes in PROBLEM_SIZES.values() for size in sizes}
        custom = sorted(self.selected_sizes - known)
        if custom:
            filtered_sizes["custom"] = custom
        return filtered_sizes

    def _get_filtered_data_types(self, routine: Routine) -> List[str]:
        return [t for t in DATA_TYPES if t in self.selected_types and t in routine.supported_types]

    def make_arguments(self, routine: Routine, data_type: str, size: int) -> Arguments:
        ld = max(size, 1)
        return self.base_args.with_changes(
            function=routine.full_name, a_type=data_type, N=size, K=size, lda=ld, ldb=ld, ldc=ld,
        )

    def test_routine(self, routine: Routine, data_type: str, size: int) -> Dict:
        """Run one test case.

        Returns:
            Dictionary containing the outcome, errors and timing of the test case
        """
        test_info = {
            "routine": routine.full_name,
            "data_type": data_type,
            "size": size,
            "timestamp": datetime.now().isoformat(),
        }

        try:
            arg = self.make_arguments(routine, data_type, size)
            result = run_test(routine, arg, library=self.library, sink=self.sink)
        except UnitCheckError as e:
            return {**test_info, "run_success": True, "correct": False, "error": str(e)}
        except (HarnessError, ValueError) as e:
            return {**test_info, "run_success": False, "correct": False, "error": str(e)}

        return {
            **test_info,
            "test_name": result.test_name,
            "run_success": True,
            "correct": True,
            "outcome": result.outcome.value,
            "device_calls": result.device_calls,
            "error_host": None if is_na(result.error_host) else result.error_host,
            "error_device": None if is_na(result.error_device) else result.error_device,
            "gpu_time_us": None if is_na(result.gpu_time_us) else result.gpu_time_us,
            "performance": result.record.to_dict() if result.record else None,
        }

    def test_all_sizes_and_types(self, routine: Routine) -> List[Dict]:
        """Test a routine with all problem sizes and data types."""
        results = []

        self.logger.info(f"Testing {routine.full_name}")

        data_types = self._get_filtered_data_types(routine)
        if not data_types:
            self.logger.warning(f"  No supported data types for {routine.full_name}, skipping")
            return results

        for category, sizes in self._get_filtered_problem_sizes().items():
            self.logger.debug(f"  Testing {category}")

            for size in sizes:
                for data_type in data_types:
                    self.logger.debug(f"    Testing size={size}, type={data_type}")

                    result = self.test_routine(routine, data_type, size)
                    result["category"] = category
                    results.append(result)

                    if not (result["run_success"] and result["correct"]):
                        self.logger.warning(f"    Failed: {result['error']}")

        return results

    def run_all_tests(self) -> Dict[str, List[Dict]]:
        """Run tests on all selected routines.

        Returns:
            Dictionary mapping routine names to their test results
        """
        all_results = {}

        for routine in self.routines:
            try:
                all_results[routine.full_name] = self.test_all_sizes_and_types(routine)
            except Exception as e:
                error_details = f"Exception: {type(e).__name__}: {str(e)}\nTraceback:\n{traceback.format_exc()}"
                self.logger.error(f"Error testing {routine.full_name}: {error_details}")
                all_results[routine.full_name] = [{"error": str(e), "error_details": error_details}]

        return all_results

    def generate_report(self, results: Dict[str, List[Dict]]) -> str:
        """Generate a summary report of test results."""
        report = []
        report.append("=" * 80)
        report.append("BLAS Harness Test Report")
        report.append("=" * 80)

        total_tests = 0
        total_passed = 0

        for routine_name, routine_results in results.items():
            report.append(f"\n{routine_name}:")
            report.append("-" * (len(routine_name) + 1))

            passed = sum(1 for r in routine_results if r.get("run_success", False) and r.get("correct", False))
            failed = len(routine_results) - passed

            report.append(
                f"  Tests: {len(routine_results)} total, {passed} passed, {failed} failed"
            )

            total_tests += len(routine_results)
            total_passed += passed

            # Group failures by error
            errors = {}
            for result in routine_results:
                if not (result.get("run_success", False) and result.get("correct", False)):
                    error = result.get("error", "Unknown error")
                    errors[error] = errors.get(error, 0) + 1

            if errors:
                report.append("  Common errors:")
                for error, count in sorted(errors.items()):
                    report.append(f"    {error}: {count} occurrences")

        report.append(f"\n{'=' * 80}")
        percent = total_passed / total_tests * 100 if total_tests else 100.0
        report.append(f"Overall: {total_passed}/{total_tests} tests passed ({percent:.1f}%)")
        report.append("=" * 80)

        return "\n".join(report)


def summarize(results: Dict[str, List[Dict]]) -> Dict[str, int]:
    """Counts of test cases, execution failures and correctness failures."""
    total = sum(len(r) for r in results.values())
    executed = sum(sum(1 for x in r if x.get("run_success", False)) for r in results.values())
    correct = sum(sum(1 for x in r if x.get("correct", False)) for r in results.values())
    return {
        "total": total,
        "execution_failures": total - executed,
        "correctness_failures": executed - correct,
    }


def exit_code(summary: Dict[str, int]) -> int:
    """0 when everything passed, 1 on execution failures, 2 on correctness failures only."""
    if summary["execution_failures"] > 0:
        return 1
    if summary["correctness_failures"] > 0:
        return 2
    return 0
