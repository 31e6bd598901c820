"""Character cursor shared by the statement splitter and the tokenizer.

Both layers must agree on what is a literal and what is a comment, so the
rules live here once:

- ``'…'``, ``"…"`` and ``` `…` ``` literals; a doubled quote is an embedded
  quote and a backslash escapes the next character (newline included).
- ``--`` followed by whitespace or end of input, and ``#``, run to end of line.
- ``/* … */`` block comments, not nested.
"""

from __future__ import annotations

from mysqlinstr.core.errors import LexicalError
from mysqlinstr.sql.ast import Position

QUOTES = frozenset("'\"`")


def is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


class Scanner:
    """Forward-only cursor over SQL text that tracks line and column."""

    __slots__ = ("text", "pos", "line", "column", "_length")

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.line = 1
        self.column = 1
        self._length = len(text)

    @property
    def at_end(self) -> bool:
        return self.pos >= self._length

    def peek(self, ahead: int = 0) -> str:
        index = self.pos + ahead
        return self.text[index] if index < self._length else ""

    def startswith(self, prefix: str) -> bool:
        return self.text.startswith(prefix, self.pos)

    def mark(self) -> Position:
        return Position(line=self.line, column=self.column, offset=self.pos)

    def advance(self) -> str:
        ch = self.text[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def advance_by(self, count: int) -> None:
        for _ in range(count):
            self.advance()

    def skip_word(self, stop: str | None = None) -> str:
        """Consume identifier characters, stopping early at ``stop``."""
        start = self.pos
        while not self.at_end and is_word_char(self.peek()):
            if stop and self.startswith(stop):
                break
            self.advance()
        return self.text[start : self.pos]

    def comment_start(self) -> str | None:
        """Return the comment opener at the cursor, if any."""
        ch = self.peek()
        if ch == "#":
            return "#"
        if ch == "/" and self.peek(1) == "*":
            return "/*"
        if ch == "-" and self.peek(1) == "-" and self.peek(2) in ("", " ", "\t", "\n", "\r"):
            return "--"
        return None

    def skip_comment(self) -> str:
        """Consume the comment at the cursor.

        Line comments stop before the newline so callers still see line
        boundaries.
        """
        start = self.pos
        start_line = self.line
        if self.startswith("/*"):
            self.advance_by(2)
            while not self.startswith("*/"):
                if self.at_end:
                    raise LexicalError.unterminated(start_line)
                self.advance()
            self.advance_by(2)
        else:
            while not self.at_end and self.peek() != "\n":
                self.advance()
        return self.text[start : self.pos]

    def skip_literal(self) -> str:
        """Consume the quoted literal whose opening quote is at the cursor."""
        start = self.pos
        start_line = self.line
        quote = self.advance()
        while True:
            if self.at_end:
                raise LexicalError.unterminated(start_line)
            ch = self.advance()
            if ch == "\\":
                if self.at_end:
                    raise LexicalError.unterminated(start_line)
                self.advance()
            elif ch == quote:
                if self.peek() == quote:
                    self.advance()
                else:
                    break
        return self.text[start : self.pos]
