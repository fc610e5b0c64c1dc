# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/cli.py

"""
Command line interface.

    py-blas-harness run -f syr2k_strided_batched -r d -n 64 -k 32 --batch_count 10
    py-blas-harness sweep --routines 'her*' --sizes tiny,small --types complex

Exit codes: 0 when everything passed, 1 on execution failures, 2 on
correctness failures.
"""

import argparse
import dataclasses
import json
import logging
import sys
from typing import List, Optional

from . import __version__
from .arguments import Arguments
from .enums import ClientApi, Initialization
from .errors import HarnessError, UnitCheckError
from .harness import run_test
from .reporting import CsvReportSink, LoggingReportSink, is_na
from .routines import ROUTINES, get_routine
from .suite import (
    DATA_TYPES,
    PROBLEM_SIZES,
    SPECIAL_DATA_TYPES,
    BlasHarnessSuite,
    configure_logging,
    exit_code,
    expand_routines,
    expand_special_sizes,
    expand_special_types,
    summarize,
)

COPYRIGHT = (
    "Copyright (c) 2025 Alessandro Baretta\n"
    "All rights reserved."
)

_DEFAULTS = Arguments()


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("-o", "--output", help="Output file for detailed results (JSON format)")
    parser.add_argument("--batch_count", type=int, default=_DEFAULTS.batch_count, help="Number of batch entries")
    parser.add_argument("--norm_check", type=int, choices=[0, 1], default=int(_DEFAULTS.norm_check),
                        help="Compute relative norm errors")
    parser.add_argument("--unit_check", type=int, choices=[0, 1], default=int(_DEFAULTS.unit_check),
                        help="Element-wise comparison against the reference")
    parser.add_argument("--timing", type=int, choices=[0, 1], default=int(_DEFAULTS.timing),
                        help="Time the device path")
    parser.add_argument("-i", "--iters", type=int, default=_DEFAULTS.iters, help="Timed iterations")
    parser.add_argument("-j", "--cold_iters", type=int, default=_DEFAULTS.cold_iters, help="Warm-up iterations")
    parser.add_argument("--fortran", action="store_true", help="Call the library through the Fortran interface")
    parser.add_argument("--seed", type=int, default=_DEFAULTS.seed, help="Data generator seed")
    parser.add_argument("--initialization", choices=[i.value for i in Initialization],
                        default=_DEFAULTS.initialization.value, help="Input data distribution")
    parser.add_argument("--csv", help="Write performance records to this CSV file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="py-blas-harness",
        description="Verify batched BLAS routines on the emulated device against a NumPy reference."
        f"\n{COPYRIGHT}",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser(
        "run", help="Run a single test case", formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    run.add_argument("-f", "--function", required=True, choices=sorted(ROUTINES), help="Routine to test")
    run.add_argument("-r", "--precision", default=_DEFAULTS.a_type, choices=DATA_TYPES, help="Precision code")
    run.add_argument("-n", "--N", type=int, default=_DEFAULTS.N, help="Problem size N")
    run.add_argument("-k", "--K", type=int, default=_DEFAULTS.K, help="Problem size K")
    run.add_argument("--lda", type=int, default=_DEFAULTS.lda, help="Leading dimension of A")
    run.add_argument("--ldb", type=int, default=_DEFAULTS.ldb, help="Leading dimension of B")
    run.add_argument("--ldc", type=int, default=_DEFAULTS.ldc, help="Leading dimension of C")
    run.add_argument("--incx", type=int, default=_DEFAULTS.incx, help="Increment of x")
    run.add_argument("--stride_scale", type=float, default=_DEFAULTS.stride_scale,
                     help="Multiplier applied to per-entry sizes to get batch strides")
    run.add_argument("--alpha", type=float, default=_DEFAULTS.alpha, help="Real part of alpha")
    run.add_argument("--alphai", type=float, default=_DEFAULTS.alphai, help="Imaginary part of alpha")
    run.add_argument("--beta", type=float, default=_DEFAULTS.beta, help="Real part of beta")
    run.add_argument("--betai", type=float, default=_DEFAULTS.betai, help="Imaginary part of beta")
    run.add_argument("--uplo", default=_DEFAULTS.uplo, choices=["U", "L"], help="Triangle to update")
    run.add_argument("--transposeA", default=_DEFAULTS.transA, choices=["N", "T", "C"], help="op(A)")
    _add_common_arguments(run)

    sweep = subparsers.add_parser(
        "sweep", help="Run routines x sizes x types", formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    sweep.add_argument(
        "--routines",
        help="Comma-separated list of routine names or glob patterns to test (default: all).\n"
        "Examples: 'her*' matches her, her_batched and her_strided_batched",
    )
    sweep.add_argument(
        "--sizes",
        help="Comma-separated list of problem sizes to test (default: all).\n"
        "Can include numbers or special size categories: " + ", ".join(PROBLEM_SIZES.keys()),
    )
    sweep.add_argument(
        "--types",
        help="Comma-separated list of precision codes to test (default: all).\n"
        f"Can include specific types or special groups: {', '.join(SPECIAL_DATA_TYPES)}.\n"
        f"Available types: {', '.join(DATA_TYPES)}",
    )
    _add_common_arguments(sweep)

    return parser


def _base_arguments(args: argparse.Namespace, **changes) -> Arguments:
    return Arguments(
        batch_count=args.batch_count,
        unit_check=bool(args.unit_check),
        norm_check=bool(args.norm_check),
        timing=bool(args.timing),
        iters=args.iters,
        cold_iters=args.cold_iters,
        api=ClientApi.FORTRAN if args.fortran else ClientApi.C,
        seed=args.seed,
        initialization=Initialization(args.initialization),
        **changes,
    )


def _open_sink(args: argparse.Namespace, streams: list):
    if not args.csv:
        return LoggingReportSink()
    stream = open(args.csv, "w", newline="")
    streams.append(stream)
    return CsvReportSink(stream)


def _run(args: argparse.Namespace) -> int:
    configure_logging(args.verbose)
    logger = logging.getLogger(__name__)

    arg = _base_arguments(
        args,
        function=args.function, a_type=args.precision, N=args.N, K=args.K,
        lda=args.lda, ldb=args.ldb, ldc=args.ldc, incx=args.incx,
        stride_scale=args.stride_scale, alpha=args.alpha, alphai=args.alphai,
        beta=args.beta, betai=args.betai, uplo=args.uplo, transA=args.transposeA,
    )
    routine = get_routine(args.function)

    streams = []
    try:
        sink = _open_sink(args, streams)
        result = run_test(routine, arg, sink=sink)
    except UnitCheckError as e:
        logger.error(f"{routine.full_name}: {e}")
        return 2
    except (HarnessError, ValueError) as e:
        logger.error(f"{routine.full_name}: {e}")
        return 1
    finally:
        for stream in streams:
            stream.close()

    logger.info(f"{result.test_name}: {result.outcome.value} ({result.device_calls} device calls)")
    if args.output:
        details = {
            **{k: v for k, v in dataclasses.asdict(result).items() if k not in ("outcome", "probe_status", "record")},
            "outcome": result.outcome.value,
            "probe_status": result.probe_status.value if result.probe_status else None,
            "performance": result.record.to_dict() if result.record else None,
            "arguments": arg.to_dict(),
        }
        for key in ("error_host", "error_device", "gpu_time_us"):
            if is_na(details[key]):
                details[key] = None
        with open(args.output, "w") as f:
            json.dump(details, f, indent=2, default=float)
        print(f"\nDetailed results saved to: {args.output}")
    return 0


def _sweep(args: argparse.Namespace) -> int:
    try:
        selected_routines = expand_routines(args.routines.split(",")) if args.routines else None
        selected_sizes = expand_special_sizes(args.sizes.split(",")) if args.sizes else None
        selected_types = expand_special_types(args.types.split(",")) if args.types else None
    except ValueError as e:
        print(f"Error parsing selection: {e}", file=sys.stderr)
        return 1

    streams = []
    try:
        suite = BlasHarnessSuite(
            verbose=args.verbose,
            selected_routines=selected_routines,
            selected_sizes=selected_sizes,
            selected_types=selected_types,
            base_args=_base_arguments(args),
            sink=_open_sink(args, streams),
        )

        print("Starting BLAS harness sweep...")
        results = suite.run_all_tests()
    finally:
        for stream in streams:
            stream.close()

    print(suite.generate_report(results))

    if args.output:
        with open(args.output, "w") as f:
            json.dump(results, f, indent=2, default=float)
        print(f"\nDetailed results saved to: {args.output}")

    summary = summarize(results)
    print(f"\n{'=' * 80}")
    print("SWEEP SUMMARY")
    print(f"{'=' * 80}")
    print(f"Total test cases: {summary['total']}")
    print(f"Execution failures: {summary['execution_failures']}")
    print(f"Correctness failures: {summary['correctness_failures']}")
    return exit_code(summary)


def main(argv: Optional[List[str]] = None) -> int:
    """Main function for command line usage."""
    args = build_parser().parse_args(argv)
    if args.command == "run":
        return _run(args)
    return _sweep(args)


if __name__ == "__main__":
    sys.exit(main())
