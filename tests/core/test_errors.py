"""Tests for error types and codes."""

import pytest

from mysqlinstr.core.errors import (
    ConfigError,
    DatabaseError,
    ErrorCode,
    InstrumentError,
    InstrumentIOError,
    InternalError,
    LexicalError,
    ParseError,
    ReportError,
    TransformError,
    snippet,
)


class TestErrorCode:
    """Error code value tests."""

    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.LEXICAL_UNTERMINATED, 1000),
            (ErrorCode.PARSE_STATEMENT_FAILED, 1000),
            (ErrorCode.CONFIG_INVALID_VALUE, 2000),
            (ErrorCode.TRANSFORM_UNKNOWN_LABEL, 3000),
            (ErrorCode.IO_WRITE_FAILED, 4000),
            (ErrorCode.DATABASE_QUERY_FAILED, 5000),
            (ErrorCode.REPORT_INVALID_LCOV, 6000),
            (ErrorCode.INTERNAL_ERROR, 9000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        """Error codes fall within their designated numeric range."""
        assert expected_range <= code.value < expected_range + 1000


class TestInstrumentError:
    """Base error behavior tests."""

    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        # Given
        error = InstrumentError(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message="Test message",
            retryable=True,
            details={"key": "value"},
        )

        # When
        result = error.to_dict()

        # Then
        assert result == {
            "code": 2001,
            "error": "CONFIG_PARSE_ERROR",
            "message": "Test message",
            "retryable": True,
            "details": {"key": "value"},
        }

    def test_given_error_when_str_then_human_readable(self) -> None:
        error = InstrumentError(code=ErrorCode.INTERNAL_ERROR, message="Something broke")

        assert str(error) == "[9001] INTERNAL_ERROR: Something broke"

    def test_given_error_when_raised_then_catchable_as_exception(self) -> None:
        with pytest.raises(InstrumentError) as exc_info:
            raise LexicalError.unterminated(3)

        assert exc_info.value.code is ErrorCode.LEXICAL_UNTERMINATED


class TestSnippet:
    def test_short_text_kept(self) -> None:
        assert snippet("  SELECT 1  ") == "SELECT 1"

    def test_only_first_line(self) -> None:
        assert snippet("CREATE PROCEDURE p()\nBEGIN\nEND") == "CREATE PROCEDURE p()"

    def test_long_line_truncated(self) -> None:
        result = snippet("x" * 80)

        assert result == "x" * 50 + "..."


class TestLexicalError:
    def test_unterminated_names_line(self) -> None:
        error = LexicalError.unterminated(7)

        assert error.message == "unterminated literal/comment at line 7"
        assert error.details == {"line": 7}

    def test_empty_delimiter(self) -> None:
        error = LexicalError.empty_delimiter(2)

        assert error.code is ErrorCode.LEXICAL_EMPTY_DELIMITER
        assert "line 2" in error.message


class TestParseError:
    def test_unexpected_carries_position_and_cause(self) -> None:
        error = ParseError.unexpected("expected THEN", line=3, column=9)

        assert error.line == 3
        assert error.cause == "expected THEN"
        assert error.details["column"] == 9

    def test_at_statement_adds_absolute_line_and_snippet(self) -> None:
        # Given
        text = "CREATE PROCEDURE a_rather_long_procedure_name_for_testing(IN x INT)\nBEGIN"

        # When
        error = ParseError.at_statement(12, text, "expected ';'")

        # Then
        assert error.code is ErrorCode.PARSE_STATEMENT_FAILED
        assert error.line == 12
        assert error.cause == "expected ';'"
        assert error.details["snippet"] == text[:50] + "..."
        assert error.message.startswith("failed to parse statement starting at file line 12 (")


class TestOtherErrors:
    def test_unknown_label(self) -> None:
        error = TransformError.unknown_label("outer", routine="p", line=4)

        assert error.details == {"label": "outer", "routine": "p", "line": 4}
        assert "'outer'" in error.message

    def test_read_failed(self) -> None:
        error = InstrumentIOError.read_failed("a.sql", "No such file")

        assert error.message == "cannot read a.sql: No such file"

    def test_config_invalid_value(self) -> None:
        error = ConfigError.invalid_value("database.connect_timeout_sec", 0, "must be positive")

        assert error.details["value"] == "0"
        assert "database.connect_timeout_sec" in error.message

    def test_connection_failed_is_retryable(self) -> None:
        assert DatabaseError.connection_failed("refused").retryable is True
        assert DatabaseError.query_failed("read", "boom").retryable is False

    @pytest.mark.parametrize(
        ("status_code", "retryable"),
        [(None, False), (403, False), (502, True)],
    )
    def test_publish_failed_retryable_on_server_errors(
        self, status_code: int | None, retryable: bool
    ) -> None:
        error = ReportError.publish_failed("nope", status_code=status_code)

        assert error.retryable is retryable
        assert error.details["status_code"] == status_code

    def test_internal_error_keeps_details(self) -> None:
        error = InternalError.unexpected("bad state", line=3)

        assert error.message == "Internal error: bad state"
        assert error.details == {"line": 3}
