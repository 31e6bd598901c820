"""Config module exports."""

from mysqlinstr.config.loader import load_config
from mysqlinstr.config.models import (
    CoverageThresholds,
    DatabaseConfig,
    InstrumentationConfig,
    InstrumentConfig,
    LoggingConfig,
    ReportConfig,
)

__all__ = [
    "load_config",
    "CoverageThresholds",
    "DatabaseConfig",
    "InstrumentationConfig",
    "InstrumentConfig",
    "LoggingConfig",
    "ReportConfig",
]
