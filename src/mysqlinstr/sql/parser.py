"""Recursive-descent parser for MySQL stored-routine flow control.

Only the procedural skeleton is parsed: routine headers, compound blocks,
conditionals, loops, CASE, labeled jumps, RETURN, DECLARE and SET.
Everything else is kept as an opaque Generic leaf covering the source text
up to the statement's top-level ``;``.

Expressions are never analysed. Their extent is found by scanning for the
next stop keyword (THEN, DO, WHEN, END) at parenthesis depth 0 and outside
any nested ``CASE … END`` expression; literals and comments are already
inert because they never become WORD tokens.
"""

from __future__ import annotations

from mysqlinstr.core.errors import ParseError
from mysqlinstr.sql.ast import (
    Begin,
    Case,
    CreateFunction,
    CreateProcedure,
    Declare,
    ElseIf,
    Generic,
    If,
    Iterate,
    Leave,
    Loop,
    Parameter,
    Repeat,
    Return,
    Routine,
    SetVariable,
    Statement,
    VariableAssignment,
    When,
    While,
    unquote_identifier,
)
from mysqlinstr.sql.tokens import Token, TokenKind, tokenize

_LABELABLE = ("BEGIN", "LOOP", "WHILE", "REPEAT", "CASE")
_SET_SCOPES = ("GLOBAL", "SESSION", "LOCAL", "PERSIST", "PERSIST_ONLY")
_SET_SPECIAL = (
    "NAMES",
    "CHARACTER",
    "CHARSET",
    "TRANSACTION",
    "PASSWORD",
    "ROLE",
    "DEFAULT",
    "RESOURCE",
)
_CHARACTERISTICS: tuple[tuple[str, ...], ...] = (
    ("DETERMINISTIC",),
    ("NOT", "DETERMINISTIC"),
    ("LANGUAGE", "SQL"),
    ("CONTAINS", "SQL"),
    ("NO", "SQL"),
    ("READS", "SQL", "DATA"),
    ("MODIFIES", "SQL", "DATA"),
    ("SQL", "SECURITY", "DEFINER"),
    ("SQL", "SECURITY", "INVOKER"),
)
_CHARACTERISTIC_STARTS = frozenset({words[0] for words in _CHARACTERISTICS} | {"COMMENT"})
_BODY_STARTS = frozenset(
    {
        "BEGIN",
        "RETURN",
        "IF",
        "CASE",
        "WHILE",
        "LOOP",
        "REPEAT",
        "DECLARE",
        "SET",
        "SELECT",
        "INSERT",
        "UPDATE",
        "DELETE",
        "REPLACE",
        "CALL",
        "DO",
        "SIGNAL",
        "RESIGNAL",
    }
)


class Parser:
    """Parser over the token stream of one statement."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    @property
    def previous(self) -> Token:
        return self.tokens[self.index - 1]

    def peek(self, ahead: int = 1) -> Token:
        return self.tokens[min(self.index + ahead, len(self.tokens) - 1)]

    @property
    def at_eof(self) -> bool:
        return self.current.kind is TokenKind.EOF

    def advance(self) -> Token:
        tok = self.current
        if not self.at_eof:
            self.index += 1
        return tok

    def error(self, reason: str, token: Token | None = None) -> ParseError:
        tok = token or self.current
        return ParseError.unexpected(reason, line=tok.pos.line, column=tok.pos.column)

    def expect_keyword(self, *words: str) -> Token:
        if not self.current.is_keyword(*words):
            raise self.error(f"expected {' or '.join(words)}, found {self.current.describe()}")
        return self.advance()

    def expect_punct(self, value: str) -> Token:
        if not self.current.is_punct(value):
            raise self.error(f"expected '{value}', found {self.current.describe()}")
        return self.advance()

    def source(self, first: Token, last: Token) -> str:
        """Original text from the start of ``first`` to the end of ``last``."""
        return self.text[first.start : last.end]

    def _at_label(self) -> bool:
        return (
            self.current.is_identifier
            and self.peek().is_punct(":")
            and not self.current.is_keyword(*_LABELABLE)
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def parse_root(self) -> Statement:
        if self.at_eof:
            raise self.error("empty statement")
        node = self._parse_routine() if self.at_routine_definition() else self.parse_statement()
        if self.current.is_punct(";"):
            self.advance()
        if not self.at_eof:
            raise self.error(f"unexpected {self.current.describe()} after end of statement")
        return node

    def at_routine_definition(self) -> bool:
        if not self.current.is_keyword("CREATE"):
            return False
        i = 1
        if self.peek(i).is_keyword("DEFINER"):
            depth = 0
            while depth or not self.peek(i).is_keyword("PROCEDURE", "FUNCTION"):
                token = self.peek(i)
                if token.kind is TokenKind.EOF or token.is_punct(";"):
                    return False
                if token.is_punct("("):
                    depth += 1
                elif token.is_punct(")"):
                    if not depth:
                        return False
                    depth -= 1
                i += 1
        if not self.peek(i).is_keyword("PROCEDURE", "FUNCTION"):
            return False
        i += 1
        if self.peek(i).is_keyword("IF"):
            i += 3
        while self.peek(i).is_identifier or self.peek(i).is_punct("."):
            i += 1
        return self.peek(i).is_punct("(")

    # ------------------------------------------------------------------
    # Routines
    # ------------------------------------------------------------------

    def _parse_routine(self) -> Routine:
        create = self.expect_keyword("CREATE")

        definer = None
        if self.current.is_keyword("DEFINER"):
            first = self.advance()
            self.expect_punct("=")
            if self.current.is_keyword("PROCEDURE", "FUNCTION"):
                raise self.error("missing DEFINER user")
            while not self.current.is_keyword("PROCEDURE", "FUNCTION"):
                if self.at_eof:
                    raise self.error("expected PROCEDURE or FUNCTION after DEFINER")
                self.advance()
            definer = self.source(first, self.previous)

        kind = self.expect_keyword("PROCEDURE", "FUNCTION").upper
        if_not_exists = False
        if self.current.is_keyword("IF"):
            self.advance()
            self.expect_keyword("NOT")
            self.expect_keyword("EXISTS")
            if_not_exists = True

        if not self.current.is_identifier:
            raise self.error(f"expected routine name, found {self.current.describe()}")
        name_first = self.current
        while self.current.is_identifier or self.current.is_punct("."):
            self.advance()
        name = self.source(name_first, self.previous)

        parameters = self._parse_parameters(with_mode=kind == "PROCEDURE")

        return_type = None
        if kind == "FUNCTION":
            self.expect_keyword("RETURNS")
            return_type = self._parse_return_type()

        characteristics = self._parse_characteristics()
        if self.at_eof:
            raise self.error(f"missing body for {kind.lower()} {name}")
        body = [self.parse_statement()]

        if return_type is not None:
            return CreateFunction(
                pos=create.pos,
                name=name,
                parameters=parameters,
                return_type=return_type,
                body=body,
                definer=definer,
                if_not_exists=if_not_exists,
                characteristics=characteristics,
            )
        return CreateProcedure(
            pos=create.pos,
            name=name,
            parameters=parameters,
            body=body,
            definer=definer,
            if_not_exists=if_not_exists,
            characteristics=characteristics,
        )

    def _parse_parameters(self, *, with_mode: bool) -> list[Parameter]:
        self.expect_punct("(")
        parameters: list[Parameter] = []
        if self.current.is_punct(")"):
            self.advance()
            return parameters

        while True:
            first = self.current
            mode = "IN"
            if with_mode and self.current.is_keyword("IN", "OUT", "INOUT"):
                mode = self.advance().upper
            if not self.current.is_identifier:
                raise self.error(f"expected parameter name, found {self.current.describe()}")
            name = self.advance().value

            depth = 0
            type_first: Token | None = None
            while depth > 0 or not self.current.is_punct(",", ")"):
                tok = self.current
                if self.at_eof or (tok.is_punct(";") and depth == 0):
                    raise self.error("unterminated parameter list")
                if tok.is_punct("("):
                    depth += 1
                elif tok.is_punct(")"):
                    depth -= 1
                type_first = type_first or tok
                self.advance()
            if type_first is None:
                raise self.error(f"missing type for parameter {name}")

            parameters.append(
                Parameter(
                    name=name,
                    type=self.source(type_first, self.previous),
                    mode=mode,  # type: ignore[arg-type]
                    pos=first.pos,
                )
            )
            if self.current.is_punct(","):
                self.advance()
                continue
            self.expect_punct(")")
            return parameters

    def _parse_return_type(self) -> str:
        first = self.current
        depth = 0
        while not self.at_eof:
            tok = self.current
            if depth == 0 and (
                tok.is_keyword(*_CHARACTERISTIC_STARTS)
                or tok.is_keyword(*_BODY_STARTS)
                or self._at_label()
                or tok.is_punct(";")
            ):
                break
            if tok.is_punct("("):
                depth += 1
            elif tok.is_punct(")"):
                depth -= 1
            self.advance()
        if self.current is first:
            raise self.error("missing RETURNS type")
        return self.source(first, self.previous)

    def _match_characteristic(self) -> int:
        """Number of tokens in the characteristic at the cursor (0 if none)."""
        if self.current.is_keyword("COMMENT") and self.peek().kind is TokenKind.STRING:
            return 2
        for words in _CHARACTERISTICS:
            if all(self.peek(i).is_keyword(word) for i, word in enumerate(words)):
                return len(words)
        return 0

    def _parse_characteristics(self) -> list[str]:
        characteristics: list[str] = []
        while count := self._match_characteristic():
            first = self.current
            for _ in range(count):
                self.advance()
            characteristics.append(self.source(first, self.previous))
        return characteristics

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def parse_statement(self) -> Statement:
        start = self.current
        label = None
        if self._at_label():
            label = unquote_identifier(self.advance().value)
            self.advance()
            if not self.current.is_keyword(*_LABELABLE):
                raise self.error(
                    f"label '{label}' must precede BEGIN, LOOP, WHILE, REPEAT or CASE"
                )

        tok = self.current
        if tok.kind is not TokenKind.WORD:
            return self._parse_generic(start)

        match tok.upper:
            case "BEGIN":
                return self._parse_begin(start, label)
            case "IF":
                return self._parse_if(start)
            case "WHILE":
                return self._parse_while(start, label)
            case "LOOP":
                return self._parse_loop(start, label)
            case "REPEAT":
                return self._parse_repeat(start, label)
            case "CASE":
                return self._parse_case(start, label)
            case "LEAVE" | "ITERATE":
                return self._parse_jump(start)
            case "RETURN":
                return self._parse_return(start)
            case "DECLARE":
                return self._parse_declare(start)
            case "SET":
                return self._parse_set(start)
            case "END" | "ELSE" | "ELSEIF" | "WHEN" | "UNTIL" | "THEN" | "DO":
                raise self.error(f"unexpected {tok.describe()}")
            case _:
                return self._parse_generic(start)

    def _parse_body(self, *terminators: str) -> list[Statement]:
        body: list[Statement] = []
        while True:
            while self.current.is_punct(";"):
                self.advance()
            if self.at_eof or self.current.is_keyword(*terminators):
                return body
            body.append(self.parse_statement())
            if not self.current.is_punct(";"):
                raise self.error(f"expected ';' after statement, found {self.current.describe()}")
            self.advance()

    def _closing_label(self, label: str | None) -> None:
        if not self.current.is_identifier:
            return
        closing = unquote_identifier(self.current.value)
        if label is None:
            raise self.error(f"end label '{closing}' without a matching begin label")
        if closing.lower() != label.lower():
            raise self.error(f"end label '{closing}' does not match begin label '{label}'")
        self.advance()

    def _scan_expression(self, *stops: str) -> tuple[Token, Token | None]:
        """Consume tokens up to the first top-level stop keyword."""
        first = self.current
        last: Token | None = None
        depth = 0
        case_depth = 0
        while True:
            tok = self.current
            if self.at_eof or (tok.is_punct(";") and depth == 0):
                raise self.error(f"expected {' or '.join(stops)}, found {tok.describe()}")
            if depth == 0 and case_depth == 0 and tok.is_keyword(*stops):
                break
            if tok.is_punct("("):
                depth += 1
            elif tok.is_punct(")"):
                depth -= 1
                if depth < 0:
                    raise self.error("unbalanced ')'")
            elif tok.is_keyword("CASE"):
                case_depth += 1
            elif tok.is_keyword("END") and case_depth > 0:
                case_depth -= 1
            last = self.advance()
        return first, last

    def _read_expression(self, *stops: str) -> str:
        first, last = self._scan_expression(*stops)
        if last is None:
            raise self.error(f"missing expression before {self.current.describe()}")
        return self.source(first, last)

    def _read_to_terminator(self) -> Token | None:
        """Consume up to the next top-level ';' and return the last token read."""
        depth = 0
        last: Token | None = None
        while not self.at_eof:
            tok = self.current
            if tok.is_punct(";") and depth == 0:
                break
            if tok.is_punct("("):
                depth += 1
            elif tok.is_punct(")"):
                depth -= 1
            last = self.advance()
        return last

    def _parse_begin(self, start: Token, label: str | None) -> Begin:
        self.expect_keyword("BEGIN")
        body = self._parse_body("END")
        self.expect_keyword("END")
        self._closing_label(label)
        return Begin(pos=start.pos, label=label, body=body)

    def _parse_if(self, start: Token) -> If:
        self.expect_keyword("IF")
        condition = self._read_expression("THEN")
        self.expect_keyword("THEN")
        then = self._parse_body("ELSEIF", "ELSE", "END")

        elseifs: list[ElseIf] = []
        while self.current.is_keyword("ELSEIF"):
            head = self.advance()
            cond = self._read_expression("THEN")
            self.expect_keyword("THEN")
            elseifs.append(
                ElseIf(pos=head.pos, condition=cond, then=self._parse_body("ELSEIF", "ELSE", "END"))
            )

        else_body: list[Statement] = []
        if self.current.is_keyword("ELSE"):
            self.advance()
            else_body = self._parse_body("END")

        self.expect_keyword("END")
        self.expect_keyword("IF")
        return If(
            pos=start.pos,
            condition=condition,
            then=then,
            elseifs=elseifs,
            else_body=else_body,
        )

    def _parse_while(self, start: Token, label: str | None) -> While:
        self.expect_keyword("WHILE")
        condition = self._read_expression("DO")
        self.expect_keyword("DO")
        body = self._parse_body("END")
        self.expect_keyword("END")
        self.expect_keyword("WHILE")
        self._closing_label(label)
        return While(pos=start.pos, label=label, condition=condition, body=body)

    def _parse_loop(self, start: Token, label: str | None) -> Loop:
        self.expect_keyword("LOOP")
        body = self._parse_body("END")
        self.expect_keyword("END")
        self.expect_keyword("LOOP")
        self._closing_label(label)
        return Loop(pos=start.pos, label=label, body=body)

    def _parse_repeat(self, start: Token, label: str | None) -> Repeat:
        self.expect_keyword("REPEAT")
        body = self._parse_body("UNTIL")
        self.expect_keyword("UNTIL")
        condition = self._read_expression("END")
        self.expect_keyword("END")
        self.expect_keyword("REPEAT")
        self._closing_label(label)
        return Repeat(pos=start.pos, label=label, body=body, condition=condition)

    def _parse_case(self, start: Token, label: str | None) -> Case:
        self.expect_keyword("CASE")
        first, last = self._scan_expression("WHEN")
        expression = self.source(first, last) if last is not None else None

        whens: list[When] = []
        while self.current.is_keyword("WHEN"):
            head = self.advance()
            cond = self._read_expression("THEN")
            self.expect_keyword("THEN")
            whens.append(
                When(pos=head.pos, condition=cond, then=self._parse_body("WHEN", "ELSE", "END"))
            )
        if not whens:
            raise self.error("CASE requires at least one WHEN")

        else_body: list[Statement] = []
        if self.current.is_keyword("ELSE"):
            self.advance()
            else_body = self._parse_body("END")

        self.expect_keyword("END")
        self.expect_keyword("CASE")
        return Case(
            pos=start.pos,
            label=label,
            expression=expression,
            whens=whens,
            else_body=else_body,
        )

    def _parse_jump(self, start: Token) -> Leave | Iterate:
        keyword = self.advance().upper
        if not self.current.is_identifier:
            raise self.error(f"{keyword} requires a label, found {self.current.describe()}")
        target = unquote_identifier(self.advance().value)
        if keyword == "LEAVE":
            return Leave(pos=start.pos, target=target)
        return Iterate(pos=start.pos, target=target)

    def _parse_return(self, start: Token) -> Return:
        self.advance()
        first = self.current
        last = self._read_to_terminator()
        if last is None:
            raise self.error("RETURN requires an expression")
        return Return(pos=start.pos, expression=self.source(first, last))

    def _parse_declare(self, start: Token) -> Declare:
        self.advance()
        if self.current.is_keyword("CONTINUE", "EXIT", "UNDO") and self.peek().is_keyword(
            "HANDLER"
        ):
            self.advance()
            self.advance()
            self.expect_keyword("FOR")
            self._parse_handler_conditions()
            # Handler body stays opaque; parsing it only finds where it ends
            self.parse_statement()
            last = self.previous
        else:
            last = self._read_to_terminator()
            if last is None:
                raise self.error("incomplete DECLARE")
        return Declare(pos=start.pos, text=self.source(start, last))

    def _parse_handler_conditions(self) -> None:
        while True:
            if self.current.is_keyword("SQLSTATE"):
                self.advance()
                if self.current.is_keyword("VALUE"):
                    self.advance()
                if self.current.kind is not TokenKind.STRING:
                    raise self.error(f"expected SQLSTATE value, found {self.current.describe()}")
                self.advance()
            elif self.current.is_keyword("NOT"):
                self.advance()
                self.expect_keyword("FOUND")
            elif self.current.is_identifier:
                self.advance()
            else:
                raise self.error(f"expected handler condition, found {self.current.describe()}")
            if not self.current.is_punct(","):
                return
            self.advance()

    def _parse_set(self, start: Token) -> Statement:
        start_index = self.index
        self.advance()
        offset = 1 if self.current.is_keyword(*_SET_SCOPES) else 0
        if self.peek(offset).is_keyword(*_SET_SPECIAL) and not self.peek(offset + 1).is_punct(
            "=", ":="
        ):
            return self._parse_generic(start)

        assignments: list[VariableAssignment] = []
        while True:
            scope = None
            if self.current.is_keyword(*_SET_SCOPES) and not self.peek().is_punct("=", ":=", "."):
                scope = self.advance().value

            ref_first = self.current
            ref_last: Token | None = None
            while not self.current.is_punct("=", ":="):
                if self.at_eof or self.current.is_punct(";", ","):
                    # Not an assignment list after all
                    self.index = start_index
                    return self._parse_generic(start)
                ref_last = self.advance()
            if ref_last is None:
                raise self.error("missing variable name in SET")
            operator = self.advance().value

            value_first = self.current
            value_last: Token | None = None
            depth = 0
            while not self.at_eof:
                tok = self.current
                if depth == 0 and tok.is_punct(",", ";"):
                    break
                if tok.is_punct("("):
                    depth += 1
                elif tok.is_punct(")"):
                    depth -= 1
                value_last = self.advance()
            if value_last is None:
                raise self.error(f"missing value for {self.source(ref_first, ref_last)}")

            assignments.append(
                VariableAssignment(
                    scope=scope,
                    ref=self.source(ref_first, ref_last),
                    operator=operator,
                    value=self.source(value_first, value_last),
                )
            )
            if not self.current.is_punct(","):
                break
            self.advance()

        return SetVariable(
            pos=start.pos,
            text=self.source(start, self.previous),
            assignments=assignments,
        )

    def _parse_generic(self, start: Token) -> Generic:
        last = self._read_to_terminator()
        if last is None:
            raise self.error("empty statement")
        return Generic(pos=start.pos, text=self.source(start, last))


def parse(text: str) -> Statement:
    """Parse one statement (usually a CREATE PROCEDURE/FUNCTION).

    Raises:
        ParseError: With a statement-relative line and column.
        LexicalError: Unterminated literal or comment.
    """
    return Parser(text).parse_root()


def is_routine_definition(text: str) -> bool:
    """True when ``text`` starts with CREATE [DEFINER=…] PROCEDURE|FUNCTION name(."""
    return Parser(text).at_routine_definition()
