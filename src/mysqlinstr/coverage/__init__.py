"""Coverage reporting: instrumented-file scanning, LCOV and PR summaries."""

from mysqlinstr.coverage.github import post_pr_comment
from mysqlinstr.coverage.instrumented import (
    CoveragePoint,
    discover_instrumented_files,
    scan_files,
    scan_text,
)
from mysqlinstr.coverage.lcov import LcovParser, build_report, fetch_hit_counts, write_lcov
from mysqlinstr.coverage.models import (
    CoverageReport,
    CoverageSummary,
    FileCoverage,
    FunctionCoverage,
)
from mysqlinstr.coverage.report import render_summary

__all__ = [
    "CoveragePoint",
    "CoverageReport",
    "CoverageSummary",
    "FileCoverage",
    "FunctionCoverage",
    "LcovParser",
    "build_report",
    "discover_instrumented_files",
    "fetch_hit_counts",
    "post_pr_comment",
    "render_summary",
    "scan_files",
    "scan_text",
    "write_lcov",
]
