"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (MYSQLINSTR__SECTION__KEY)
3. Project YAML (.mysqlinstr.yaml in the working directory)
4. Global YAML (~/.config/mysqlinstr/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    MYSQLINSTR__<SECTION>__<KEY>=<VALUE>

Examples:
    MYSQLINSTR__LOGGING__LEVEL=DEBUG
    MYSQLINSTR__DATABASE__DSN=root:secret@tcp(127.0.0.1:3306)/app
    MYSQLINSTR__INSTRUMENT__TRACE_STATEMENTS=true
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        MYSQLINSTR__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="WARNING",
        description="Root log level. The CLI -v flag forces DEBUG.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class InstrumentConfig(BaseModel):
    """Instrumentation output configuration.

    Env vars:
        MYSQLINSTR__INSTRUMENT__COVERAGE_SUFFIX: Suffix for coverage output files
        MYSQLINSTR__INSTRUMENT__FTRACE_SUFFIX: Suffix for ftrace output files
        MYSQLINSTR__INSTRUMENT__TRACE_STATEMENTS: Emit statement-level trace calls
    """

    coverage_suffix: str = Field(
        default=".instrumented",
        description="Appended to the input file name for coverage output.",
    )
    ftrace_suffix: str = Field(
        default=".ftraced",
        description="Appended to the input file name for ftrace output.",
    )
    trace_statements: bool = Field(
        default=False,
        description="Also record every executed statement and SET assignment. "
        "Greatly increases event volume.",
    )

    @model_validator(mode="after")
    def validate_suffixes(self) -> "InstrumentConfig":
        for name in ("coverage_suffix", "ftrace_suffix"):
            value = getattr(self, name)
            if not value or "/" in value:
                raise ValueError(f"{name} must be a non-empty file name suffix, got {value!r}")
        return self


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    Env vars:
        MYSQLINSTR__DATABASE__DSN: SQLAlchemy URL or user:pass@tcp(host:port)/db
        MYSQLINSTR__DATABASE__CONNECT_TIMEOUT_SEC: Driver connect timeout
        MYSQLINSTR__DATABASE__ECHO: Log every SQL statement
    """

    dsn: str | None = Field(
        default=None,
        description="Default DSN for init/lcov/report when --database is omitted.",
    )
    connect_timeout_sec: int = Field(
        default=10,
        description="Seconds to wait for the server before failing.",
    )
    pool_pre_ping: bool = Field(
        default=True,
        description="Validate pooled connections before use.",
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL through the sqlalchemy.engine logger.",
    )

    @field_validator("connect_timeout_sec")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"connect_timeout_sec must be positive, got {v}")
        return v


class CoverageThresholds(BaseModel):
    """Percentages that pick the badge and verdict in the PR summary."""

    excellent: float = 90.0
    good: float = 70.0
    moderate: float = 50.0

    @model_validator(mode="after")
    def validate_order(self) -> "CoverageThresholds":
        if not (100 >= self.excellent >= self.good >= self.moderate >= 0):
            raise ValueError("thresholds must satisfy 100 >= excellent >= good >= moderate >= 0")
        return self


class ReportConfig(BaseModel):
    """Report and publishing configuration.

    Env vars:
        MYSQLINSTR__REPORT__GITHUB_API_URL: GitHub REST API base URL
        MYSQLINSTR__REPORT__REQUEST_TIMEOUT_SEC: HTTP timeout for PR comments
    """

    github_api_url: str = Field(
        default="https://api.github.com",
        description="Base URL of the GitHub REST API (GitHub Enterprise uses /api/v3).",
    )
    request_timeout_sec: float = Field(default=30.0)
    coverage_thresholds: CoverageThresholds = Field(default_factory=CoverageThresholds)


class InstrumentationConfig(BaseModel):
    """Root configuration.

    All settings can be configured via:
    1. Environment variables: MYSQLINSTR__SECTION__KEY
    2. YAML config files (project or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    instrument: InstrumentConfig = Field(default_factory=InstrumentConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
