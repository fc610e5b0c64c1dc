# Copyright (c) 2025 Alessandro Baretta
# All rights reserved.

# source path: py_blas_harness/harness.py

"""
Generic test-case driver.

run_test() takes one routine descriptor and one Arguments record through

    CONFIGURE -> VALIDATE -> GENERATE -> STAGE
      -> [INVOKE (host pointer mode) -> CAPTURE -> RESTORE
          -> INVOKE (device pointer mode) -> CAPTURE -> ORACLE -> COMPARE]
      -> [WARM-UP -> MEASURE -> REPORT]
      -> TEARDOWN

Correctness and timing phases are optional. Every handle, device buffer and
staged scalar is owned by an ExitStack, so teardown runs on every exit path,
including failures. Failures propagate; nothing is retried.
"""

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .api import BlasApi, make_api
from .arguments import Arguments
from .checks import Comparator, NormErrors, OutputComparison
from .data import DataGenerator
from .device import Device
from .enums import PointerMode, Status
from .errors import BlasStatusError, DeviceError, UnexpectedStatusError
from .memory import ScalarPair, make_device_container, make_host_container
from .numeric import NumericType, get_numeric_type
from .reporting import NA_VALUE, LoggingReportSink, PerformanceRecord, ReportSink
from .routines.base import BufferSpec, Routine
from .softblas import Handle, SoftBlas
from .timing import PerformanceHarness

logger = logging.getLogger(__name__)


class Outcome(Enum):
    PASSED = "passed"
    QUICK_RETURN = "quick_return"
    INVALID_PROBE = "invalid_probe"


@dataclass
class TestResult:
    """What a completed test case did. Failed test cases raise instead."""
    __test__ = False

    routine: str
    a_type: str
    test_name: str
    outcome: Outcome = Outcome.PASSED
    probe_status: Optional[Status] = None
    device_calls: int = 0
    error_host: float = NA_VALUE
    error_device: float = NA_VALUE
    gpu_time_us: float = NA_VALUE
    record: Optional[PerformanceRecord] = None


class DeviceInvoker:
    """Calls the routine under test with live operands and counts the calls."""

    def __init__(self, routine: Routine, api: BlasApi, handle: Handle, arg: Arguments, ntype: NumericType,
                 specs: List[BufferSpec], device_buffers: Dict, scalars: Dict[str, ScalarPair]):
        self.routine = routine
        self.api = api
        self.handle = handle
        self.arg = arg
        self.ntype = ntype
        self.specs = specs
        self.device_buffers = device_buffers
        self.scalars = scalars
        self.symbol = routine.symbol(ntype)
        self.calls = 0

    def invoke(self, mode: PointerMode, host_operands: Optional[Dict] = None, verify: bool = True) -> None:
        """One call in the given pointer mode.

        Args:
            mode: Pointer mode for scalars and pointer-mode operands
            host_operands: Host containers passed for pointer-mode operands in host mode
            verify: Check that host and device copies of every scalar agree before the call
        """
        status = self.handle.set_pointer_mode(mode)
        if status != Status.SUCCESS:
            raise BlasStatusError(self.symbol, status, mode)

        if verify:
            for pair in self.scalars.values():
                pair.verify()

        if mode == PointerMode.HOST:
            scalar_ptrs = {name: pair.host_ptr() for name, pair in self.scalars.items()}
        else:
            scalar_ptrs = {name: pair.device_ptr() for name, pair in self.scalars.items()}

        operands = {}
        for spec in self.specs:
            if mode == PointerMode.HOST and spec.pointer_mode_operand:
                operands[spec.name] = host_operands[spec.name].ptr_on_host()
            else:
                operands[spec.name] = self.device_buffers[spec.name].ptr_on_device()

        self.calls += 1
        status = self.routine.call(self.api, self.handle, self.arg, self.ntype, scalar_ptrs, operands)
        if status != Status.SUCCESS:
            raise BlasStatusError(self.symbol, status, mode)


def _validate(routine: Routine, arg: Arguments, ntype: NumericType, api: BlasApi, handle: Handle,
              result: TestResult) -> bool:
    """Probe invalid or empty configurations. Returns True when the test case is finished."""
    batch_count = routine.batch_count(arg)
    if routine.positive_batch_only and batch_count <= 0:
        logger.debug(f"{result.test_name}: batch_count={batch_count}, nothing to do")
        result.outcome = Outcome.QUICK_RETURN
        return True

    invalid = routine.invalid_size(arg, ntype)
    if not invalid and not routine.empty(arg):
        return False

    expected = Status.INVALID_VALUE if invalid else Status.SUCCESS
    status = routine.probe(api, handle, arg, ntype)
    result.probe_status = status
    logger.debug(f"{result.test_name}: probe returned {status.value}, expected {expected.value}")
    if status != expected:
        raise UnexpectedStatusError(routine.symbol(ntype), expected, status)
    result.outcome = Outcome.INVALID_PROBE if invalid else Outcome.QUICK_RETURN
    return True


def run_test(routine: Routine, arg: Arguments, ntype=None, *, library: Optional[SoftBlas] = None,
             device: Optional[Device] = None, sink: Optional[ReportSink] = None) -> TestResult:
    """Run one test case.

    Args:
        routine: Routine descriptor (one routine in one batch variant)
        arg: Test configuration
        ntype: Element type (precision code, dtype or NumericType); defaults to arg.a_type
        library: Library under test (default: a SoftBlas on `device`)
        device: Device to run on (default: the library's device or a new Device)
        sink: Destination of the performance record when timing (default: logging)

    Returns:
        TestResult describing the completed test case

    Raises:
        UnexpectedStatusError: An invalid or empty configuration was not reported as expected
        BlasStatusError: The routine failed on live data
        DeviceError: Allocation or transfer failure
        UnitCheckError: A result is outside the unit-check tolerance
    """
    ntype = get_numeric_type(ntype if ntype is not None else arg.a_type)
    if not routine.supports(ntype):
        raise ValueError(
            f"{routine.full_name} does not support type '{ntype.name}'. "
            f"Supported: {list(routine.supported_types)}"
        )

    if library is None:
        library = SoftBlas(device or Device())
    device = library.device
    api = make_api(library, arg.api)
    batch_count = routine.batch_count(arg)

    result = TestResult(routine=routine.full_name, a_type=ntype.name, test_name=routine.test_name(arg, ntype))
    logger.debug(f"{result.test_name}: configure ({arg.api.value} api)")

    with ExitStack() as stack:
        handle = stack.enter_context(library.handle())

        if _validate(routine, arg, ntype, api, handle, result):
            return result

        # Generate
        specs = routine.buffers(arg, ntype)
        generator = DataGenerator(arg)
        originals = {}
        for spec in specs:
            host = make_host_container(routine.batch_kind, spec.n, spec.inc, spec.stride, batch_count, ntype.dtype)
            generator.init(host, spec)
            originals[spec.name] = host

        # Stage
        device_buffers = {}
        for spec in specs:
            buffer = stack.enter_context(
                make_device_container(device, routine.batch_kind, spec.n, spec.inc, spec.stride,
                                      batch_count, ntype.dtype)
            )
            status = buffer.memcheck()
            if status != Status.SUCCESS:
                raise DeviceError(status, f"device buffer '{spec.name}' is not allocated")
            buffer.transfer_from(originals[spec.name])
            device_buffers[spec.name] = buffer

        scalars = {}
        for scalar in routine.scalars(arg, ntype):
            pair = ScalarPair(device, scalar.name, scalar.value(arg, ntype), scalar.numeric_type(ntype).dtype)
            stack.callback(pair.release)
            scalars[scalar.name] = pair
        logger.debug(f"{result.test_name}: staged {len(specs)} buffers and {len(scalars)} scalars "
                     f"({device.live_allocations} live allocations)")

        invoker = DeviceInvoker(routine, api, handle, arg, ntype, specs, device_buffers, scalars)
        outputs = [spec for spec in specs if spec.output]

        errors = NormErrors()
        if arg.unit_check or arg.norm_check:
            # Host pointer mode
            host_results = {spec.name: originals[spec.name].clone()
                            for spec in specs if spec.output or spec.pointer_mode_operand}
            invoker.invoke(PointerMode.HOST, host_results)
            handle.get_stream().synchronize()
            for spec in outputs:
                if not spec.pointer_mode_operand:
                    host_results[spec.name].transfer_from(device_buffers[spec.name])
            for spec in specs:
                if spec.restore:
                    device_buffers[spec.name].transfer_from(originals[spec.name])
            logger.debug(f"{result.test_name}: host pointer mode pass done")

            # Device pointer mode
            invoker.invoke(PointerMode.DEVICE)
            handle.get_stream().synchronize()
            device_results = {}
            for spec in outputs:
                mirror = originals[spec.name].clone()
                mirror.transfer_from(device_buffers[spec.name])
                device_results[spec.name] = mirror
            logger.debug(f"{result.test_name}: device pointer mode pass done")

            # Oracle on copies of the originals
            gold = {spec.name: originals[spec.name].clone() for spec in specs}
            scalar_values = {name: pair.value for name, pair in scalars.items()}
            for b in range(batch_count):
                routine.reference(arg, ntype, scalar_values, {name: gold[name][b] for name in gold})

            comparator = Comparator(arg.unit_check, arg.norm_check)
            errors = comparator.compare(
                ntype,
                [OutputComparison(spec, gold[spec.name], host_results[spec.name], device_results[spec.name])
                 for spec in outputs],
                batch_count,
            )
            result.error_host = errors.host
            result.error_device = errors.device
            logger.debug(f"{result.test_name}: comparison passed")

        if arg.timing:
            for spec in outputs:
                device_buffers[spec.name].transfer_from(originals[spec.name])
            status = handle.set_pointer_mode(PointerMode.DEVICE)
            if status != Status.SUCCESS:
                raise BlasStatusError(invoker.symbol, status, PointerMode.DEVICE)

            harness = PerformanceHarness(arg.cold_iters, arg.iters)
            result.gpu_time_us = harness.measure(
                lambda: invoker.invoke(PointerMode.DEVICE, verify=False), handle.get_stream()
            )
            result.record = routine.model.log_args(
                sink or LoggingReportSink(),
                routine.full_name,
                arg,
                ntype.name,
                result.gpu_time_us,
                routine.gflop_count(arg, ntype),
                routine.gbyte_count(arg, ntype),
                errors.host,
                errors.device,
                batch_count=batch_count,
            )

        result.device_calls = invoker.calls

    logger.debug(f"{result.test_name}: teardown done ({device.live_allocations} live allocations)")
    return result
