"""Core module exports."""

from mysqlinstr.core.errors import (
    ConfigError,
    DatabaseError,
    ErrorCode,
    InstrumentError,
    InstrumentIOError,
    InternalError,
    LexicalError,
    ParseError,
    ReportError,
    TransformError,
)
from mysqlinstr.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)
from mysqlinstr.core.progress import pluralize, progress, spinner, status

__all__ = [
    # Errors
    "ConfigError",
    "DatabaseError",
    "ErrorCode",
    "InstrumentError",
    "InstrumentIOError",
    "InternalError",
    "LexicalError",
    "ParseError",
    "ReportError",
    "TransformError",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
    # Progress
    "pluralize",
    "progress",
    "spinner",
    "status",
]
