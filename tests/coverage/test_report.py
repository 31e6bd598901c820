"""Tests for coverage/report.py module."""

from __future__ import annotations

import pytest

from mysqlinstr.config.models import CoverageThresholds
from mysqlinstr.coverage.models import CoverageReport, FileCoverage, FunctionCoverage
from mysqlinstr.coverage.report import (
    DEFAULT_TITLE,
    FOOTER,
    coverage_emoji,
    quality_message,
    render_summary,
)

THRESHOLDS = CoverageThresholds()


def covered_file(path: str, hit: int, total: int) -> FileCoverage:
    return FileCoverage(
        path=path,
        lines={n: (1 if n <= hit else 0) for n in range(1, total + 1)},
        functions={"main": FunctionCoverage(name="main", start_line=1, hits=int(hit > 0))},
    )


class TestThresholds:
    @pytest.mark.parametrize(
        ("percent", "emoji", "message"),
        [
            (100.0, "🟢", "Excellent Coverage"),
            (90.0, "🟢", "Excellent Coverage"),
            (89.9, "🟡", "Good Coverage"),
            (70.0, "🟡", "Good Coverage"),
            (55.0, "🟠", "Moderate Coverage"),
            (49.9, "🔴", "Low Coverage"),
            (0.0, "🔴", "Low Coverage"),
        ],
    )
    def test_default_bands(self, percent: float, emoji: str, message: str) -> None:
        assert coverage_emoji(percent, THRESHOLDS) == emoji
        assert quality_message(percent, THRESHOLDS) == message

    def test_custom_bands(self) -> None:
        strict = CoverageThresholds(excellent=99, good=95, moderate=80)

        assert coverage_emoji(90.0, strict) == "🟠"
        assert quality_message(96.0, strict) == "Good Coverage"


class TestRenderSummary:
    def test_single_file_has_no_file_table(self) -> None:
        # Given
        report = CoverageReport(files={"sql/a.sql": covered_file("sql/a.sql", 3, 4)})

        # When
        text = render_summary(report)

        # Then
        assert text == "\n".join(
            [
                f"## {DEFAULT_TITLE}",
                "",
                "### 📈 Overall Coverage",
                "",
                "| Metric | Coverage | Hit | Total |",
                "|--------|----------|-----|-------|",
                "| **Functions** | **100.0%** | 1 | 1 |",
                "| **Lines** | **75.0%** | 3 | 4 |",
                "",
                "### 🎯 Coverage Quality",
                "",
                "🟡 **Good Coverage** (75.0% line coverage)",
                "",
                "---",
                FOOTER,
            ]
        )

    def test_file_table_for_several_files(self) -> None:
        report = CoverageReport(
            files={
                "sql/b.sql": covered_file("sql/b.sql", 0, 2),
                "sql/a.sql": covered_file("sql/a.sql", 2, 2),
            }
        )

        lines = render_summary(report, title="Nightly").splitlines()

        assert lines[0] == "## Nightly"
        start = lines.index("### 📁 Coverage by File")
        assert lines[start + 2] == (
            "| File | Function Coverage | Line Coverage | Functions | Lines |"
        )
        assert lines[start + 4] == "| `a.sql` | 🟢 100.0% | 🟢 100.0% | 1/1 | 2/2 |"
        assert lines[start + 5] == "| `b.sql` | 🔴 0.0% | 🔴 0.0% | 0/1 | 0/2 |"
        assert "🟠 **Moderate Coverage** (50.0% line coverage)" in lines

    def test_empty_report(self) -> None:
        text = render_summary(CoverageReport())

        assert "| **Lines** | **0.0%** | 0 | 0 |" in text
        assert "🔴 **Low Coverage** (0.0% line coverage)" in text
