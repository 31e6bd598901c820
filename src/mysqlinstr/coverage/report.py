"""Markdown coverage summary for pull request comments."""

from __future__ import annotations

from pathlib import PurePosixPath

from mysqlinstr.config.models import CoverageThresholds
from mysqlinstr.coverage.models import CoverageReport

DEFAULT_TITLE = "📊 MySQL Coverage Report"
FOOTER = "*Generated by mysql-coverage tool*"


def coverage_emoji(percent: float, thresholds: CoverageThresholds) -> str:
    if percent >= thresholds.excellent:
        return "🟢"
    if percent >= thresholds.good:
        return "🟡"
    if percent >= thresholds.moderate:
        return "🟠"
    return "🔴"


def quality_message(percent: float, thresholds: CoverageThresholds) -> str:
    if percent >= thresholds.excellent:
        return "Excellent Coverage"
    if percent >= thresholds.good:
        return "Good Coverage"
    if percent >= thresholds.moderate:
        return "Moderate Coverage"
    return "Low Coverage"


def render_summary(
    report: CoverageReport,
    *,
    title: str = DEFAULT_TITLE,
    thresholds: CoverageThresholds | None = None,
) -> str:
    """Render overall totals, a per-file table and a quality verdict.

    The per-file table is only shown when more than one file is covered.
    """
    thresholds = thresholds or CoverageThresholds()
    summary = report.summary
    lines = [
        f"## {title}",
        "",
        "### 📈 Overall Coverage",
        "",
        "| Metric | Coverage | Hit | Total |",
        "|--------|----------|-----|-------|",
        f"| **Functions** | **{summary.function_percent:.1f}%** "
        f"| {summary.functions_hit} | {summary.functions_found} |",
        f"| **Lines** | **{summary.line_percent:.1f}%** "
        f"| {summary.lines_hit} | {summary.lines_found} |",
        "",
    ]

    files = report.sorted_files()
    if len(files) > 1:
        lines += [
            "### 📁 Coverage by File",
            "",
            "| File | Function Coverage | Line Coverage | Functions | Lines |",
            "|------|-------------------|---------------|-----------|-------|",
        ]
        for file in files:
            fn_pct = file.function_rate * 100
            line_pct = file.line_rate * 100
            lines.append(
                f"| `{PurePosixPath(file.path).name}` "
                f"| {coverage_emoji(fn_pct, thresholds)} {fn_pct:.1f}% "
                f"| {coverage_emoji(line_pct, thresholds)} {line_pct:.1f}% "
                f"| {file.functions_hit}/{file.functions_found} "
                f"| {file.lines_hit}/{file.lines_found} |"
            )
        lines.append("")

    overall = summary.line_percent
    lines += [
        "### 🎯 Coverage Quality",
        "",
        f"{coverage_emoji(overall, thresholds)} **{quality_message(overall, thresholds)}** "
        f"({overall:.1f}% line coverage)",
        "",
        "---",
        FOOTER,
    ]
    return "\n".join(lines)
