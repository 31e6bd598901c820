"""Tokenizer for the flow parser.

Uses the same Scanner as the splitter, so a keyword inside a literal or a
comment never becomes a WORD token. Comments are dropped; whitespace only
separates tokens.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from mysqlinstr.sql.ast import Position
from mysqlinstr.sql.scanner import Scanner, is_word_char

# Longest first so "<=>" wins over "<="
_OPERATORS = ("<=>", "->>", ":=", "<=", ">=", "<>", "!=", "||", "&&", "->", "<<", ">>")


class TokenKind(StrEnum):
    WORD = "WORD"
    STRING = "STRING"
    QUOTED_IDENT = "QUOTED_IDENT"
    PUNCT = "PUNCT"
    EOF = "EOF"


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    value: str
    pos: Position
    end: int

    @property
    def start(self) -> int:
        return self.pos.offset

    @property
    def upper(self) -> str:
        return self.value.upper()

    @property
    def is_identifier(self) -> bool:
        return self.kind in (TokenKind.WORD, TokenKind.QUOTED_IDENT)

    def is_keyword(self, *words: str) -> bool:
        return self.kind is TokenKind.WORD and self.value.upper() in words

    def is_punct(self, *values: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.value in values

    def describe(self) -> str:
        if self.kind is TokenKind.EOF:
            return "end of statement"
        return f"'{self.value}'"


def tokenize(text: str) -> list[Token]:
    """Tokenize one statement. The list always ends with an EOF token."""
    sc = Scanner(text)
    tokens: list[Token] = []

    while not sc.at_end:
        ch = sc.peek()
        if ch in (" ", "\t", "\r", "\n"):
            sc.advance()
            continue
        if sc.comment_start():
            sc.skip_comment()
            continue

        pos = sc.mark()
        if ch in ("'", '"'):
            kind = TokenKind.STRING
            sc.skip_literal()
        elif ch == "`":
            kind = TokenKind.QUOTED_IDENT
            sc.skip_literal()
        elif ch == "@":
            kind = TokenKind.WORD
            sc.advance()
            if sc.peek() == "@":
                sc.advance()
            if sc.peek() in ("'", '"', "`"):
                sc.skip_literal()
            else:
                sc.skip_word()
        elif is_word_char(ch):
            kind = TokenKind.WORD
            sc.skip_word()
        else:
            kind = TokenKind.PUNCT
            op = next((o for o in _OPERATORS if sc.startswith(o)), None)
            sc.advance_by(len(op) if op else 1)

        tokens.append(Token(kind=kind, value=text[pos.offset : sc.pos], pos=pos, end=sc.pos))

    tokens.append(Token(kind=TokenKind.EOF, value="", pos=sc.mark(), end=sc.pos))
    return tokens
