"""Database access: engine, recording schema and event models."""

from mysqlinstr.db.database import Database, normalize_dsn
from mysqlinstr.db.models import CoverageEvent, FtraceEvent
from mysqlinstr.db.schema import (
    COVERAGE_SCHEMA,
    COVERAGE_TABLE,
    FTRACE_SCHEMA,
    FTRACE_TABLE,
    created_objects,
    install_coverage_schema,
    install_ftrace_schema,
)

__all__ = [
    "COVERAGE_SCHEMA",
    "COVERAGE_TABLE",
    "CoverageEvent",
    "Database",
    "FTRACE_SCHEMA",
    "FTRACE_TABLE",
    "FtraceEvent",
    "created_objects",
    "install_coverage_schema",
    "install_ftrace_schema",
    "normalize_dsn",
]
