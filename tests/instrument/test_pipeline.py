"""Tests for instrument/pipeline.py module."""

from __future__ import annotations

from pathlib import Path

import pytest

from mysqlinstr.core.errors import (
    ErrorCode,
    InstrumentIOError,
    LexicalError,
    ParseError,
    TransformError,
)
from mysqlinstr.instrument import (
    CoverageInstrumenter,
    RoutineContext,
    RoutineInstrumenter,
    check_labels,
    instrument_file,
    output_path,
    quote_literal,
)
from mysqlinstr.sql.ast import Routine
from mysqlinstr.sql.parser import parse


class IdentityInstrumenter(RoutineInstrumenter):
    """Re-emits routines without changing them."""

    def transform(self, context: RoutineContext) -> Routine:
        return context.routine


def context_for(text: str, base_line: int = 1) -> RoutineContext:
    routine = parse(text)
    assert isinstance(routine, Routine)
    return RoutineContext(filename="t.sql", routine=routine, base_line=base_line)


class TestQuoteLiteral:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("t.sql", "'t.sql'"), ("o'brien.sql", "'o''brien.sql'"), ("", "''")],
    )
    def test_single_quotes_doubled(self, value: str, expected: str) -> None:
        assert quote_literal(value) == expected


class TestRoutineContext:
    def test_line_of_maps_to_file_line(self) -> None:
        context = context_for("CREATE PROCEDURE p()\nBEGIN\n  SELECT 1;\nEND", base_line=10)

        begin = context.routine.body[0]
        assert context.line_of(begin) == 11
        assert context.line_of(begin.body[0]) == 12  # type: ignore[attr-defined]
        assert context.name == "p"


class TestCheckLabels:
    def test_enclosing_label_accepted(self) -> None:
        check_labels(context_for("CREATE PROCEDURE p() a: LOOP LEAVE A; END LOOP"))

    def test_unknown_label_rejected_with_file_line(self) -> None:
        # Given
        context = context_for(
            "CREATE PROCEDURE p()\nBEGIN\n  a: LOOP SELECT 1; END LOOP;\n  LEAVE a;\nEND",
            base_line=3,
        )

        # When / Then
        with pytest.raises(TransformError) as exc_info:
            check_labels(context)
        assert exc_info.value.details == {"label": "a", "routine": "p", "line": 6}


class TestInstrumentContent:
    """Whole-file processing through the identity policy."""

    def test_non_routine_sql_copied_verbatim(self) -> None:
        content = (
            "-- schema\n"
            "CREATE TABLE t (id INT);\n"
            "\n"
            "INSERT INTO t VALUES (1);   # seed\n"
            "DELIMITER $$\n"
            "SELECT 1$$\n"
            "DELIMITER ;\n"
        )

        assert IdentityInstrumenter("t.sql").instrument(content) == content

    def test_routine_followed_by_active_delimiter(self) -> None:
        content = "DELIMITER //\nCREATE PROCEDURE p() SELECT 1//\nDELIMITER ;\n"

        result = IdentityInstrumenter("t.sql").instrument(content)

        assert result == "DELIMITER //\nCREATE PROCEDURE p()\nSELECT 1 //\nDELIMITER ;\n"

    def test_leading_comment_kept_before_routine(self) -> None:
        content = "-- header\nCREATE PROCEDURE p() SELECT 1;"

        result = IdentityInstrumenter("t.sql").instrument(content)

        assert result == "-- header\nCREATE PROCEDURE p()\nSELECT 1 ;\n"

    def test_newline_inserted_when_next_statement_shares_line(self) -> None:
        content = "CREATE PROCEDURE p() SELECT 1; SELECT 2;"

        result = IdentityInstrumenter("t.sql").instrument(content)

        assert result == "CREATE PROCEDURE p()\nSELECT 1 ;\n SELECT 2;"

    def test_parse_error_reports_absolute_line_and_snippet(self) -> None:
        # Given
        content = "SELECT 1;\nCREATE PROCEDURE p()\nBEGIN\n  IF x THEN SELECT 1;\nEND;\n"

        # When
        with pytest.raises(ParseError) as exc_info:
            IdentityInstrumenter("t.sql").instrument(content)

        # Then
        error = exc_info.value
        assert error.code is ErrorCode.PARSE_STATEMENT_FAILED
        assert error.line == 5
        assert error.details["snippet"] == "CREATE PROCEDURE p()"
        assert error.cause == "expected IF, found end of statement"

    def test_unparseable_non_routine_passes_through(self) -> None:
        content = "CREATE TABLE weird ((( ;\n"

        assert IdentityInstrumenter("t.sql").instrument(content) == content

    def test_lexical_error_aborts(self) -> None:
        with pytest.raises(LexicalError):
            IdentityInstrumenter("t.sql").instrument("SELECT 'open;\n")


# =============================================================================
# File I/O
# =============================================================================


class TestInstrumentFile:
    def test_output_path_beside_source_or_in_directory(self, tmp_path: Path) -> None:
        source = tmp_path / "src" / "a.sql"

        assert output_path(source, ".instrumented") == tmp_path / "src" / "a.sql.instrumented"
        in_dir = output_path(source, ".ftraced", tmp_path / "out")
        assert in_dir == tmp_path / "out" / "a.sql.ftraced"

    def test_writes_instrumented_file(self, tmp_path: Path) -> None:
        # Given
        source = tmp_path / "a.sql"
        source.write_text("CREATE PROCEDURE p() SELECT 1;\n")

        # When
        target = instrument_file(
            source,
            CoverageInstrumenter("a.sql"),
            suffix=".instrumented",
            output_dir=tmp_path / "out",
        )

        # Then
        assert target == tmp_path / "out" / "a.sql.instrumented"
        assert "CALL __record_coverage('a.sql', 'p', 1);" in target.read_text()

    def test_preserves_crlf_line_endings_outside_routines(self, tmp_path: Path) -> None:
        source = tmp_path / "a.sql"
        source.write_bytes(b"SELECT 1;\r\nSELECT 2;\r\n")

        target = instrument_file(source, CoverageInstrumenter("a.sql"), suffix=".out")

        assert target.read_bytes() == b"SELECT 1;\r\nSELECT 2;\r\n"

    def test_missing_input_is_read_error(self, tmp_path: Path) -> None:
        with pytest.raises(InstrumentIOError) as exc_info:
            instrument_file(tmp_path / "missing.sql", CoverageInstrumenter("m"), suffix=".x")

        assert exc_info.value.code is ErrorCode.IO_READ_FAILED
        assert exc_info.value.details["path"] == str(tmp_path / "missing.sql")

    def test_unwritable_output_is_write_error(self, tmp_path: Path) -> None:
        source = tmp_path / "a.sql"
        source.write_text("SELECT 1;\n")
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(InstrumentIOError) as exc_info:
            instrument_file(source, CoverageInstrumenter("a.sql"), suffix=".x", output_dir=blocker)

        assert exc_info.value.code is ErrorCode.IO_WRITE_FAILED

    def test_failed_parse_leaves_no_output(self, tmp_path: Path) -> None:
        source = tmp_path / "bad.sql"
        source.write_text("CREATE PROCEDURE p() BEGIN WHILE x DO SELECT 1; END LOOP; END;\n")

        with pytest.raises(ParseError):
            instrument_file(source, CoverageInstrumenter("bad.sql"), suffix=".instrumented")

        assert not (tmp_path / "bad.sql.instrumented").exists()
