"""SQL lexical layer, statement splitter, flow parser and emitter."""

from mysqlinstr.sql.codegen import render, render_routine
from mysqlinstr.sql.parser import Parser, is_routine_definition, parse
from mysqlinstr.sql.splitter import (
    DEFAULT_DELIMITER,
    RawStatement,
    StatementKind,
    iter_statements,
    split_statements,
)
from mysqlinstr.sql.tokens import Token, TokenKind, tokenize

__all__ = [
    "DEFAULT_DELIMITER",
    "Parser",
    "RawStatement",
    "StatementKind",
    "Token",
    "TokenKind",
    "is_routine_definition",
    "iter_statements",
    "parse",
    "render",
    "render_routine",
    "split_statements",
    "tokenize",
]
