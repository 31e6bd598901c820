"""Instrumentation error types with typed error codes.

Error code ranges:
- 1xxx: Lexical / parse
- 2xxx: Config
- 3xxx: Transform
- 4xxx: File I/O
- 5xxx: Database
- 6xxx: Reporting
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

SNIPPET_LENGTH = 50


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Lexical / parse (1xxx)
    LEXICAL_UNTERMINATED = 1001
    LEXICAL_EMPTY_DELIMITER = 1002
    PARSE_UNEXPECTED_TOKEN = 1101
    PARSE_STATEMENT_FAILED = 1102

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Transform (3xxx)
    TRANSFORM_UNKNOWN_LABEL = 3001

    # File I/O (4xxx)
    IO_READ_FAILED = 4001
    IO_WRITE_FAILED = 4002

    # Database (5xxx)
    DATABASE_INVALID_DSN = 5001
    DATABASE_CONNECTION_FAILED = 5002
    DATABASE_QUERY_FAILED = 5003

    # Reporting (6xxx)
    REPORT_INVALID_LCOV = 6001
    REPORT_PUBLISH_FAILED = 6002

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class InstrumentError(Exception):
    """Base error with structured context for diagnostics."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'PARSE_STATEMENT_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


def snippet(text: str, limit: int = SNIPPET_LENGTH) -> str:
    """First line of a statement, truncated for error context."""
    first = text.strip().split("\n", 1)[0].rstrip()
    if len(first) > limit:
        return first[:limit] + "..."
    return first


class LexicalError(InstrumentError):
    """Unterminated literals/comments and malformed DELIMITER directives."""

    @classmethod
    def unterminated(cls, line: int) -> "LexicalError":
        return cls(
            code=ErrorCode.LEXICAL_UNTERMINATED,
            message=f"unterminated literal/comment at line {line}",
            details={"line": line},
        )

    @classmethod
    def empty_delimiter(cls, line: int) -> "LexicalError":
        return cls(
            code=ErrorCode.LEXICAL_EMPTY_DELIMITER,
            message=f"DELIMITER directive without a delimiter at line {line}",
            details={"line": line},
        )


class ParseError(InstrumentError):
    """Flow parser failures.

    Raised with a statement-relative line by the parser, then re-raised by
    the orchestrator with the absolute file line and a context snippet.
    """

    @property
    def line(self) -> int:
        return int(self.details.get("line", 0))

    @property
    def cause(self) -> str:
        return str(self.details.get("cause", self.message))

    @classmethod
    def unexpected(cls, reason: str, *, line: int, column: int) -> "ParseError":
        return cls(
            code=ErrorCode.PARSE_UNEXPECTED_TOKEN,
            message=f"line {line}, column {column}: {reason}",
            details={"line": line, "column": column, "cause": reason},
        )

    @classmethod
    def at_statement(cls, line: int, text: str, cause: str) -> "ParseError":
        context = snippet(text)
        return cls(
            code=ErrorCode.PARSE_STATEMENT_FAILED,
            message=f"failed to parse statement starting at file line {line} ({context}): {cause}",
            details={"line": line, "snippet": context, "cause": cause},
        )


class TransformError(InstrumentError):
    """Tree transform failures (label references the emitter cannot render)."""

    @classmethod
    def unknown_label(cls, target: str, *, routine: str, line: int) -> "TransformError":
        return cls(
            code=ErrorCode.TRANSFORM_UNKNOWN_LABEL,
            message=f"label '{target}' is not defined by an enclosing block in {routine} "
            f"(file line {line})",
            details={"label": target, "routine": routine, "line": line},
        )


class InstrumentIOError(InstrumentError):
    """Reading or writing instrumented files failed."""

    @classmethod
    def read_failed(cls, path: str, reason: str) -> "InstrumentIOError":
        return cls(
            code=ErrorCode.IO_READ_FAILED,
            message=f"cannot read {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def write_failed(cls, path: str, reason: str) -> "InstrumentIOError":
        return cls(
            code=ErrorCode.IO_WRITE_FAILED,
            message=f"cannot write {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class ConfigError(InstrumentError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class DatabaseError(InstrumentError):
    """Errors from the init/lcov/report database paths."""

    @classmethod
    def invalid_dsn(cls, dsn: str, reason: str) -> "DatabaseError":
        return cls(
            code=ErrorCode.DATABASE_INVALID_DSN,
            message=f"invalid database DSN: {reason}",
            details={"dsn": dsn, "reason": reason},
        )

    @classmethod
    def connection_failed(cls, reason: str) -> "DatabaseError":
        return cls(
            code=ErrorCode.DATABASE_CONNECTION_FAILED,
            message=f"failed to connect to database: {reason}",
            retryable=True,
            details={"reason": reason},
        )

    @classmethod
    def query_failed(cls, operation: str, reason: str) -> "DatabaseError":
        return cls(
            code=ErrorCode.DATABASE_QUERY_FAILED,
            message=f"failed to {operation}: {reason}",
            details={"operation": operation, "reason": reason},
        )


class ReportError(InstrumentError):
    """Coverage/trace report failures."""

    @classmethod
    def invalid_lcov(cls, path: str, line_number: int, reason: str) -> "ReportError":
        return cls(
            code=ErrorCode.REPORT_INVALID_LCOV,
            message=f"invalid LCOV data in {path} at line {line_number}: {reason}",
            details={"path": path, "line": line_number, "reason": reason},
        )

    @classmethod
    def publish_failed(cls, reason: str, *, status_code: int | None = None) -> "ReportError":
        return cls(
            code=ErrorCode.REPORT_PUBLISH_FAILED,
            message=f"failed to post PR comment: {reason}",
            retryable=status_code is not None and status_code >= 500,
            details={"reason": reason, "status_code": status_code},
        )


class InternalError(InstrumentError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
