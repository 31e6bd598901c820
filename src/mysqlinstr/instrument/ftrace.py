"""Function-trace policy.

The executable part of each routine body is bracketed by an entry call
carrying the arguments and an exit call carrying the result:

- functions record the returned value just before every ``RETURN``, and
  once more with ``NULL`` when the body can fall off its end;
- procedures record their OUT/INOUT parameters after the body.

Declarations stay ahead of the entry call because MySQL requires them to
open the block. The recording procedures keep the call depth themselves
(entry increments, exit decrements), so nothing here does arithmetic.

With ``trace_statements`` every executable statement is also recorded
before it runs, and every SET records the values it assigned.
"""

from __future__ import annotations

import re
from dataclasses import replace

from mysqlinstr.instrument.pipeline import (
    INSTRUMENTABLE,
    RoutineContext,
    RoutineInstrumenter,
    quote_literal,
)
from mysqlinstr.sql.ast import (
    Begin,
    Case,
    CreateFunction,
    Declare,
    Generic,
    If,
    Iterate,
    Leave,
    Loop,
    Repeat,
    Return,
    Routine,
    SetVariable,
    Statement,
    While,
    map_bodies,
)

ENTRY_PROCEDURE = "__record_ftrace_entry"
EXIT_PROCEDURE = "__record_ftrace_exit"
STATEMENT_PROCEDURE = "__record_ftrace_statement"
SET_PROCEDURE = "__record_ftrace_set"

STATEMENT_TEXT_LIMIT = 200

_BINARY_TYPE = re.compile(r"BLOB|BINARY", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
# SET scope keyword -> @@scope prefix that reads the assigned value back
_SCOPE_READS = {
    "GLOBAL": "GLOBAL",
    "SESSION": "SESSION",
    "LOCAL": "SESSION",
    "PERSIST": "GLOBAL",
    "PERSIST_ONLY": "GLOBAL",
}


def is_binary_type(type_text: str) -> bool:
    return _BINARY_TYPE.search(type_text) is not None


def json_object(pairs: list[tuple[str, str]]) -> str:
    """``JSON_OBJECT('k1', v1, …)`` over (key, SQL expression) pairs."""
    return "JSON_OBJECT(" + ", ".join(f"{quote_literal(k)}, {v}" for k, v in pairs) + ")"


def return_payload(expression: str, *, binary: bool) -> str:
    if binary:
        value = f"CONCAT('base64:', TO_BASE64({expression}))"
    else:
        value = f"CAST({expression} AS CHAR)"
    return f"JSON_QUOTE(CASE WHEN {expression} IS NULL THEN 'NULL' ELSE {value} END)"


def _quote_text(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


def describe_statement(stmt: Statement) -> tuple[str, str]:
    """Statement type and a one-line summary for statement tracing."""
    match stmt:
        case If():
            kind, text = "IF", f"IF {stmt.condition}"
        case While():
            kind, text = "WHILE", f"WHILE {stmt.condition}"
        case Loop():
            kind, text = "LOOP", "LOOP"
        case Repeat():
            kind, text = "REPEAT", "REPEAT"
        case Case():
            kind = "CASE"
            text = f"CASE {stmt.expression}" if stmt.expression else "CASE"
        case Leave():
            kind, text = "LEAVE", f"LEAVE {stmt.target}"
        case Iterate():
            kind, text = "ITERATE", f"ITERATE {stmt.target}"
        case Return():
            kind, text = "RETURN", stmt.text
        case SetVariable():
            kind, text = "SET", stmt.text
        case Generic():
            kind, text = stmt.text.split(None, 1)[0].upper(), stmt.text
        case _:
            kind, text = type(stmt).__name__.upper(), ""
    text = _WHITESPACE.sub(" ", text).strip()
    if len(text) > STATEMENT_TEXT_LIMIT:
        text = text[: STATEMENT_TEXT_LIMIT - 3] + "..."
    return kind, text


class FtraceInstrumenter(RoutineInstrumenter):
    """Bracket routine bodies with entry/exit recording calls."""

    def __init__(self, filename: str, *, trace_statements: bool = False) -> None:
        super().__init__(filename)
        self.trace_statements = trace_statements

    def transform(self, context: RoutineContext) -> Routine:
        routine = context.routine
        body = routine.body
        if len(body) == 1 and isinstance(body[0], Begin):
            block = body[0]
            return replace(routine, body=[replace(block, body=self._wrap(context, block.body))])
        return replace(routine, body=[Begin(pos=body[0].pos, body=self._wrap(context, body))])

    # ------------------------------------------------------------------
    # Body rewriting
    # ------------------------------------------------------------------

    def _wrap(self, context: RoutineContext, statements: list[Statement]) -> list[Statement]:
        routine = context.routine
        split = next(
            (i for i, stmt in enumerate(statements) if not isinstance(stmt, Declare)),
            len(statements),
        )
        declares, tail = statements[:split], statements[split:]

        args = json_object([(p.identifier, p.name) for p in routine.parameters])
        out: list[Statement] = [*declares, self._call(context, ENTRY_PROCEDURE, args)]
        out.extend(self._rewrite(context, tail))

        if isinstance(routine, CreateFunction):
            if not tail or not isinstance(tail[-1], Return):
                out.append(self._call(context, EXIT_PROCEDURE, "NULL"))
        else:
            outputs = [
                (p.identifier, p.name) for p in routine.parameters if p.mode in ("OUT", "INOUT")
            ]
            out.append(self._call(context, EXIT_PROCEDURE, json_object(outputs)))
        return out

    def _rewrite(self, context: RoutineContext, body: list[Statement]) -> list[Statement]:
        routine = context.routine
        out: list[Statement] = []
        for stmt in body:
            if self.trace_statements and isinstance(stmt, INSTRUMENTABLE):
                out.append(self._statement_call(context, stmt))
            if isinstance(routine, CreateFunction) and isinstance(stmt, Return):
                binary = is_binary_type(routine.return_type)
                payload = return_payload(stmt.expression, binary=binary)
                out.append(self._call(context, EXIT_PROCEDURE, payload))
            out.append(map_bodies(stmt, lambda inner: self._rewrite(context, inner)))
            if self.trace_statements and isinstance(stmt, SetVariable):
                out.append(self._set_call(context, stmt))
        return out

    # ------------------------------------------------------------------
    # Recording calls
    # ------------------------------------------------------------------

    def _call(self, context: RoutineContext, procedure: str, payload: str) -> Generic:
        args = ", ".join(
            [
                quote_literal(self.filename),
                quote_literal(context.name),
                quote_literal(context.routine.kind),
                payload,
            ]
        )
        return Generic(pos=context.routine.pos, text=f"CALL {procedure}({args})")

    def _statement_call(self, context: RoutineContext, stmt: Statement) -> Generic:
        kind, text = describe_statement(stmt)
        args = ", ".join(
            [
                quote_literal(self.filename),
                quote_literal(context.name),
                str(context.line_of(stmt)),
                quote_literal(kind),
                _quote_text(text),
            ]
        )
        return Generic(pos=stmt.pos, text=f"CALL {STATEMENT_PROCEDURE}({args})")

    def _set_call(self, context: RoutineContext, stmt: SetVariable) -> Generic:
        pairs = [
            (a.variable_name, f"@@{_SCOPE_READS[a.scope.upper()]}.{a.ref}" if a.scope else a.ref)
            for a in stmt.assignments
        ]
        args = ", ".join(
            [
                quote_literal(self.filename),
                quote_literal(context.name),
                str(context.line_of(stmt)),
                json_object(pairs),
            ]
        )
        return Generic(pos=stmt.pos, text=f"CALL {SET_PROCEDURE}({args})")
