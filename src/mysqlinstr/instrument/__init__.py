"""Instrumentation policies and the per-file pipeline."""

from mysqlinstr.instrument.coverage import COVERAGE_PROCEDURE, CoverageInstrumenter, coverage_call
from mysqlinstr.instrument.ftrace import FtraceInstrumenter
from mysqlinstr.instrument.pipeline import (
    RoutineContext,
    RoutineInstrumenter,
    check_labels,
    instrument_file,
    output_path,
    quote_literal,
)

__all__ = [
    "COVERAGE_PROCEDURE",
    "CoverageInstrumenter",
    "FtraceInstrumenter",
    "RoutineContext",
    "RoutineInstrumenter",
    "check_labels",
    "coverage_call",
    "instrument_file",
    "output_path",
    "quote_literal",
]
