"""Function-trace reporting."""

from mysqlinstr.ftrace.report import (
    REPORT_FORMATS,
    fetch_events,
    fold_stacks,
    render_flamegraph,
    render_json,
    render_report,
    render_text,
)

__all__ = [
    "REPORT_FORMATS",
    "fetch_events",
    "fold_stacks",
    "render_flamegraph",
    "render_json",
    "render_report",
    "render_text",
]
