"""Split a SQL file into top-level statements.

The splitter honors ``DELIMITER`` redefinition the way the mysql client
does, keeps interior whitespace intact, and records the 1-based line of
each statement's first non-blank character so that instrumented events
can point back at the original file.

While the terminator is ``;``, a ``CREATE PROCEDURE``/``FUNCTION`` whose
``BEGIN`` (or ``CASE``) block is still open keeps accumulating across
semicolons. Routines can therefore be written without a ``DELIMITER``
directive.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum

from mysqlinstr.core.errors import LexicalError
from mysqlinstr.sql.scanner import QUOTES, Scanner, is_word_char

DEFAULT_DELIMITER = ";"

_DIRECTIVE = "DELIMITER"
_ROUTINE_KINDS = frozenset({"PROCEDURE", "FUNCTION", "TRIGGER", "EVENT"})
_HEAD_WORDS = 8


class StatementKind(StrEnum):
    SQL = "SQL"
    DELIMITER = "DELIMITER"
    COMMENT = "COMMENT"


@dataclass(frozen=True, slots=True)
class RawStatement:
    """One top-level statement and where it came from.

    ``start_offset``/``end_offset`` delimit the source span, terminator
    included; ``delimiter`` is the terminator in effect once the statement
    has been read (the new one, for a DELIMITER directive).
    """

    text: str
    kind: StatementKind
    line: int
    start_offset: int
    end_offset: int
    delimiter: str = DEFAULT_DELIMITER


class _CompoundTracker:
    """Tracks BEGIN/CASE … END nesting inside a routine definition."""

    __slots__ = ("_head", "_routine", "_depth", "_pending_end")

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._head: list[str] = []
        self._routine = False
        self._depth = 0
        self._pending_end = False

    def word(self, word: str) -> None:
        upper = word.upper()
        if len(self._head) < _HEAD_WORDS:
            self._head.append(upper)
            if self._head[0] == "CREATE" and upper in _ROUTINE_KINDS:
                self._routine = True
        if not self._routine:
            return
        if self._pending_end:
            # END IF / END LOOP / END WHILE / END REPEAT close nothing we count
            self._pending_end = False
            if upper not in ("IF", "LOOP", "WHILE", "REPEAT"):
                self._depth -= 1
            return
        if upper in ("BEGIN", "CASE"):
            self._depth += 1
        elif upper == "END":
            self._pending_end = True

    def other(self) -> None:
        if self._pending_end:
            self._pending_end = False
            self._depth -= 1

    def holds_terminator(self) -> bool:
        self.other()
        return self._routine and self._depth > 0


def _directive_at(sc: Scanner) -> bool:
    if not sc.text[sc.pos : sc.pos + len(_DIRECTIVE)].upper() == _DIRECTIVE:
        return False
    follower = sc.peek(len(_DIRECTIVE))
    return follower in ("", " ", "\t", "\n", "\r")


def _read_directive(sc: Scanner) -> str:
    """Consume a DELIMITER line and return its argument."""
    line = sc.line
    sc.advance_by(len(_DIRECTIVE))
    while sc.peek() in (" ", "\t"):
        sc.advance()
    start = sc.pos
    while not sc.at_end and sc.peek() not in (" ", "\t", "\r", "\n"):
        sc.advance()
    token = sc.text[start : sc.pos]
    if not token:
        raise LexicalError.empty_delimiter(line)
    while not sc.at_end and sc.peek() != "\n":
        sc.advance()
    if not sc.at_end:
        sc.advance()
    return token


def iter_statements(text: str) -> Iterator[RawStatement]:
    """Yield raw statements in file order.

    Raises:
        LexicalError: Unterminated literal or block comment, or a DELIMITER
            directive without an argument.
    """
    sc = Scanner(text)
    delimiter = DEFAULT_DELIMITER
    blocks = _CompoundTracker()
    start: int | None = None
    start_line = 0
    has_sql = False
    line_start = True

    def flush(content_end: int, span_end: int) -> RawStatement | None:
        nonlocal start, has_sql
        if start is None:
            return None
        stmt = RawStatement(
            text=text[start:content_end].strip(),
            kind=StatementKind.SQL if has_sql else StatementKind.COMMENT,
            line=start_line,
            start_offset=start,
            end_offset=span_end,
            delimiter=delimiter,
        )
        start = None
        has_sql = False
        blocks.reset()
        return stmt

    while not sc.at_end:
        ch = sc.peek()

        if line_start and ch in "dD" and _directive_at(sc):
            pending = flush(sc.pos, sc.pos)
            if pending is not None:
                yield pending
            directive_start = sc.pos
            directive_line = sc.line
            delimiter = _read_directive(sc)
            yield RawStatement(
                text=f"{_DIRECTIVE} {delimiter}",
                kind=StatementKind.DELIMITER,
                line=directive_line,
                start_offset=directive_start,
                end_offset=sc.pos,
                delimiter=delimiter,
            )
            line_start = True
            continue

        if ch == "\n":
            sc.advance()
            line_start = True
            continue
        if ch in (" ", "\t", "\r"):
            sc.advance()
            continue

        line_start = False
        if start is None:
            start = sc.pos
            start_line = sc.line

        if ch in QUOTES:
            blocks.other()
            has_sql = True
            sc.skip_literal()
        elif sc.comment_start():
            sc.skip_comment()
        elif sc.startswith(delimiter) and not (
            delimiter == DEFAULT_DELIMITER and blocks.holds_terminator()
        ):
            content_end = sc.pos
            sc.advance_by(len(delimiter))
            stmt = flush(content_end, sc.pos)
            if stmt is not None and stmt.text:
                yield stmt
        elif is_word_char(ch):
            has_sql = True
            blocks.word(sc.skip_word(stop=delimiter))
        else:
            has_sql = True
            blocks.other()
            sc.advance()

    stmt = flush(len(text), len(text))
    if stmt is not None and stmt.text:
        yield stmt


def split_statements(text: str) -> list[RawStatement]:
    """Split ``text`` into its ordered list of raw statements."""
    return list(iter_statements(text))
