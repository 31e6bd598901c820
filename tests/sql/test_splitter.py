"""Tests for sql/splitter.py module."""

from __future__ import annotations

import pytest

from mysqlinstr.core.errors import ErrorCode, LexicalError
from mysqlinstr.sql.splitter import StatementKind, split_statements


def texts(sql: str) -> list[str]:
    return [stmt.text for stmt in split_statements(sql)]


class TestDelimiterDirective:
    """DELIMITER handling."""

    def test_given_delimiter_switch_when_split_then_four_statements_with_lines(self) -> None:
        # Given
        sql = "DELIMITER $$ \n SELECT 1$$ \n DELIMITER ; \n SELECT 2;"

        # When
        statements = split_statements(sql)

        # Then
        assert [(s.kind, s.text) for s in statements] == [
            (StatementKind.DELIMITER, "DELIMITER $$"),
            (StatementKind.SQL, "SELECT 1"),
            (StatementKind.DELIMITER, "DELIMITER ;"),
            (StatementKind.SQL, "SELECT 2"),
        ]
        assert [s.line for s in statements] == [1, 2, 3, 4]

    def test_directive_is_case_insensitive(self) -> None:
        statements = split_statements("delimiter //\nSELECT 1//\n")

        assert statements[0].kind is StatementKind.DELIMITER
        assert statements[1].text == "SELECT 1"
        assert statements[1].delimiter == "//"

    def test_directive_only_recognized_at_line_start(self) -> None:
        statements = split_statements("SELECT 1; DELIMITER $$")

        assert [s.kind for s in statements] == [StatementKind.SQL, StatementKind.SQL]
        assert statements[1].text == "DELIMITER $$"

    def test_statement_records_active_delimiter(self) -> None:
        statements = split_statements("SELECT 0;\nDELIMITER $$\nSELECT 1$$\n")

        assert [s.delimiter for s in statements] == [";", "$$", "$$"]

    def test_empty_delimiter_argument_fails(self) -> None:
        with pytest.raises(LexicalError) as exc_info:
            split_statements("SELECT 1;\nDELIMITER \nSELECT 2;")

        assert exc_info.value.code is ErrorCode.LEXICAL_EMPTY_DELIMITER
        assert exc_info.value.details == {"line": 2}


class TestTerminators:
    """Terminators inside literals and comments are inert."""

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT ';' FROM t;\nSELECT 2;",
            'SELECT ";" FROM t;\nSELECT 2;',
            "SELECT `a;b` FROM t;\nSELECT 2;",
            "SELECT 'it\\'s;' FROM t;\nSELECT 2;",
            "SELECT 'it''s;' FROM t;\nSELECT 2;",
            "SELECT 1 -- ;\n+ 1;\nSELECT 2;",
            "SELECT 1 # ;\n+ 1;\nSELECT 2;",
            "SELECT /* ; */ 1;\nSELECT 2;",
        ],
    )
    def test_semicolon_inside_literal_or_comment_does_not_split(self, sql: str) -> None:
        statements = split_statements(sql)

        assert len(statements) == 2
        assert statements[1].text == "SELECT 2"

    def test_double_dash_without_space_is_not_a_comment(self) -> None:
        assert texts("SELECT 1--1;\nSELECT 2;") == ["SELECT 1--1", "SELECT 2"]

    def test_empty_runs_are_dropped(self) -> None:
        assert texts("SELECT 1;;  ;\nSELECT 2;") == ["SELECT 1", "SELECT 2"]

    def test_trailing_statement_without_terminator(self) -> None:
        assert texts("SELECT 1;\nSELECT 2") == ["SELECT 1", "SELECT 2"]

    def test_interior_whitespace_preserved(self) -> None:
        assert texts("  SELECT a,\n\t b\nFROM t ;") == ["SELECT a,\n\t b\nFROM t"]

    def test_rejoined_statements_split_the_same(self) -> None:
        original = texts("SELECT 'a;b';\nINSERT INTO t VALUES (1, 'x');\nUPDATE t SET a = 2")

        assert texts(";\n".join(original)) == original


class TestClassification:
    def test_comment_only_file_is_one_comment_statement(self) -> None:
        statements = split_statements("-- only a comment\n\n")

        assert len(statements) == 1
        assert statements[0].kind is StatementKind.COMMENT
        assert statements[0].text == "-- only a comment"

    def test_leading_comment_with_sql_is_sql(self) -> None:
        statements = split_statements("/* header */\nSELECT 1;")

        assert statements[0].kind is StatementKind.SQL
        assert statements[0].text == "/* header */\nSELECT 1"


class TestLineTracking:
    def test_newlines_inside_literals_advance_lines(self) -> None:
        statements = split_statements("SELECT 'a\nb\nc';\nSELECT 2;")

        assert [s.line for s in statements] == [1, 4]

    def test_newlines_inside_block_comment_advance_lines(self) -> None:
        statements = split_statements("/* one\ntwo */ SELECT 1;\nSELECT 2;")

        assert [s.line for s in statements] == [1, 3]

    def test_line_is_first_non_blank_character(self) -> None:
        statements = split_statements("\n\n   SELECT 1;")

        assert statements[0].line == 3

    def test_offsets_cover_the_terminator(self) -> None:
        sql = "SELECT 1;\nSELECT 2;"

        first, second = split_statements(sql)

        assert sql[first.start_offset : first.end_offset] == "SELECT 1;"
        assert sql[second.start_offset : second.end_offset] == "SELECT 2;"


class TestRoutinesWithoutDirective:
    def test_begin_block_holds_semicolons(self) -> None:
        # Given
        sql = (
            "CREATE PROCEDURE p()\n"
            "BEGIN\n"
            "  SET @a = 1;\n"
            "  IF @a THEN SELECT 1; END IF;\n"
            "  CASE WHEN @a THEN SELECT 2; ELSE SELECT 3; END CASE;\n"
            "END;\n"
            "SELECT 2;"
        )

        # When
        statements = split_statements(sql)

        # Then
        assert len(statements) == 2
        assert statements[0].text.startswith("CREATE PROCEDURE p()")
        assert statements[0].text.endswith("END CASE;\nEND")
        assert statements[1].line == 7

    def test_non_routine_begin_is_not_held(self) -> None:
        assert texts("BEGIN;\nSELECT 1;\nCOMMIT;") == ["BEGIN", "SELECT 1", "COMMIT"]


class TestLexicalErrors:
    @pytest.mark.parametrize(
        ("sql", "line"),
        [
            ("SELECT 'abc;\n", 1),
            ("SELECT 1;\n/* open", 2),
            ('SELECT 1;\n\nSELECT "x\\', 3),
        ],
    )
    def test_unterminated_fails_with_line(self, sql: str, line: int) -> None:
        with pytest.raises(LexicalError) as exc_info:
            split_statements(sql)

        assert exc_info.value.message == f"unterminated literal/comment at line {line}"
