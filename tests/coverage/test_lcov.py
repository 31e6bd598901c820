"""Tests for coverage/lcov.py module."""

from __future__ import annotations

import io
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlmodel import SQLModel

from mysqlinstr.core.errors import ErrorCode, InstrumentIOError, ReportError
from mysqlinstr.coverage.instrumented import CoveragePoint
from mysqlinstr.coverage.lcov import (
    LcovParser,
    build_report,
    fetch_hit_counts,
    is_excluded,
    write_lcov,
)
from mysqlinstr.db import CoverageEvent, Database

POINTS = [
    CoveragePoint("b.sql", "q", 2),
    CoveragePoint("a.sql", "p", 5),
    CoveragePoint("a.sql", "p", 3),
    CoveragePoint("a.sql", "r", 10),
]


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    database = Database(f"sqlite:///{tmp_path / 'coverage.db'}", max_retries=0)
    SQLModel.metadata.create_all(database.engine)
    yield database
    database.dispose()


# =============================================================================
# Building reports
# =============================================================================


class TestFetchHitCounts:
    def test_counts_grouped_per_line(self, db: Database) -> None:
        # Given
        with db.session() as session:
            for line in (3, 3, 3, 5):
                session.add(CoverageEvent(filename="a.sql", function_name="p", line_number=line))
            session.add(CoverageEvent(filename="b.sql", function_name="q", line_number=2))
            session.commit()

        # When
        hits = fetch_hit_counts(db)

        # Then
        assert hits == {("a.sql", 3): 3, ("a.sql", 5): 1, ("b.sql", 2): 1}

    def test_empty_table(self, db: Database) -> None:
        assert fetch_hit_counts(db) == {}


class TestBuildReport:
    def test_unrecorded_points_have_zero_hits(self) -> None:
        report = build_report(POINTS, {("a.sql", 3): 4})

        assert report.files["a.sql"].lines == {3: 4, 5: 0, 10: 0}
        assert report.files["b.sql"].lines == {2: 0}

    def test_hits_outside_catalogue_ignored(self) -> None:
        report = build_report(POINTS, {("a.sql", 99): 7, ("c.sql", 1): 1})

        assert set(report.files) == {"a.sql", "b.sql"}
        assert 99 not in report.files["a.sql"].lines

    def test_routine_start_and_hit(self) -> None:
        report = build_report(POINTS, {("a.sql", 5): 1})

        functions = report.files["a.sql"].functions
        assert (functions["p"].start_line, functions["p"].hits) == (3, 1)
        assert (functions["r"].start_line, functions["r"].hits) == (10, 0)


class TestWriteLcov:
    def test_exact_output(self) -> None:
        # Given
        report = build_report(POINTS, {("a.sql", 3): 2, ("b.sql", 2): 1})
        out = io.StringIO()

        # When
        write_lcov(report, out, test_name="suite")

        # Then
        assert out.getvalue() == (
            "TN:suite\n"
            "SF:a.sql\n"
            "FN:3,p\n"
            "FN:10,r\n"
            "FNDA:1,p\n"
            "FNDA:0,r\n"
            "FNF:2\n"
            "FNH:1\n"
            "DA:3,2\n"
            "DA:5,0\n"
            "DA:10,0\n"
            "LF:3\n"
            "LH:1\n"
            "end_of_record\n"
            "TN:suite\n"
            "SF:b.sql\n"
            "FN:2,q\n"
            "FNDA:1,q\n"
            "FNF:1\n"
            "FNH:1\n"
            "DA:2,1\n"
            "LF:1\n"
            "LH:1\n"
            "end_of_record\n"
        )

    def test_written_report_parses_back(self) -> None:
        report = build_report(POINTS, {("a.sql", 5): 3})
        out = io.StringIO()
        write_lcov(report, out)

        parsed = LcovParser().parse_text(out.getvalue())

        assert parsed.summary == report.summary


# =============================================================================
# Parsing
# =============================================================================


class TestIsExcluded:
    @pytest.mark.parametrize(
        ("path", "patterns", "excluded"),
        [
            ("sql/test_util.sql", ["test_*.sql"], True),
            ("sql/test_util.sql", ["sql/*"], True),
            ("sql/util.sql", ["test_*.sql"], False),
            ("sql/util.sql", [], False),
        ],
    )
    def test_patterns(self, path: str, patterns: list[str], excluded: bool) -> None:
        assert is_excluded(path, patterns) is excluded


class TestLcovParser:
    def test_parses_records(self) -> None:
        content = (
            "TN:\n"
            "SF:src/a.sql\n"
            "FN:3,p\n"
            "FNDA:2,p\n"
            "DA:3,2\n"
            "DA:4,-\n"
            "DA:7,1,abcdef\n"
            "end_of_record\n"
        )

        report = LcovParser().parse_text(content)

        file = report.files["src/a.sql"]
        assert file.lines == {3: 2, 4: 0, 7: 1}
        assert file.functions["p"].start_line == 3
        assert file.functions["p"].hits == 2

    def test_excluded_files_dropped(self) -> None:
        content = "SF:a.sql\nDA:1,1\nend_of_record\nSF:test_a.sql\nDA:1,0\nend_of_record\n"

        report = LcovParser(exclude=["test_*"]).parse_text(content)

        assert list(report.files) == ["a.sql"]

    def test_missing_end_of_record_keeps_file(self) -> None:
        report = LcovParser().parse_text("SF:a.sql\nDA:1,1\n")

        assert report.files["a.sql"].lines == {1: 1}

    def test_malformed_number(self) -> None:
        with pytest.raises(ReportError) as exc_info:
            LcovParser().parse_text("SF:a.sql\nDA:x,1\n", source="cov.info")

        assert exc_info.value.code is ErrorCode.REPORT_INVALID_LCOV
        assert exc_info.value.details["line"] == 2
        assert exc_info.value.message == (
            "invalid LCOV data in cov.info at line 2: expected a number, got 'x'"
        )

    def test_malformed_record(self) -> None:
        with pytest.raises(ReportError) as exc_info:
            LcovParser().parse_text("SF:a.sql\nFN:12\n")

        assert "malformed record 'FN:12'" in exc_info.value.message

    def test_parse_file(self, tmp_path: Path) -> None:
        path = tmp_path / "coverage.info"
        path.write_text("SF:a.sql\nDA:2,5\nend_of_record\n")

        assert LcovParser().parse(path).files["a.sql"].lines == {2: 5}

    def test_parse_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(InstrumentIOError):
            LcovParser().parse(tmp_path / "nope.info")
