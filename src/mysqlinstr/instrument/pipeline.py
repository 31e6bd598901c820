"""Split, parse, transform and emit one SQL file.

``RoutineInstrumenter.instrument`` walks the raw statements of a file in
order. Whitespace between statements, DELIMITER directives, comments and
non-routine SQL are copied from the source unchanged; only
``CREATE PROCEDURE``/``CREATE FUNCTION`` statements are parsed, handed to
the policy's ``transform`` and re-emitted followed by the delimiter that
was active when they were read.

Processing is fail-fast: the first lexical, parse or transform error
aborts the file and nothing is written.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path

import structlog

from mysqlinstr.core.errors import (
    InstrumentIOError,
    InternalError,
    ParseError,
    TransformError,
)
from mysqlinstr.sql.ast import (
    Begin,
    Case,
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
    child_lists,
)
from mysqlinstr.sql.codegen import render_routine
from mysqlinstr.sql.parser import Parser
from mysqlinstr.sql.splitter import RawStatement, StatementKind, iter_statements

log = structlog.get_logger(__name__)

# Statement kinds that count as an executable line
INSTRUMENTABLE: tuple[type[Statement], ...] = (
    Generic,
    SetVariable,
    If,
    While,
    Loop,
    Repeat,
    Case,
    Return,
    Leave,
    Iterate,
)


def quote_literal(value: str) -> str:
    """Single-quote ``value`` for SQL, doubling embedded quotes."""
    return "'" + value.replace("'", "''") + "'"


@dataclass(frozen=True, slots=True)
class RoutineContext:
    """A parsed routine plus what is needed to map it back to the file."""

    filename: str
    routine: Routine
    base_line: int

    @property
    def name(self) -> str:
        return self.routine.identifier

    def line_of(self, stmt: Statement) -> int:
        """Absolute file line of a node parsed from this routine's statement."""
        return self.base_line + stmt.pos.line - 1


def check_labels(context: RoutineContext) -> None:
    """Every LEAVE/ITERATE must name a label on an enclosing construct."""

    def visit(stmt: Statement, labels: tuple[str, ...]) -> None:
        if isinstance(stmt, Leave | Iterate) and stmt.target.lower() not in labels:
            raise TransformError.unknown_label(
                stmt.target, routine=context.name, line=context.line_of(stmt)
            )
        if stmt.label:
            labels = (*labels, stmt.label.lower())
        for body in child_lists(stmt):
            for child in body:
                visit(child, labels)

    visit(context.routine, ())


def ensure_compound_body(routine: Routine) -> Routine:
    """Wrap a multi-statement routine body in BEGIN … END."""
    if len(routine.body) <= 1:
        return routine
    return replace(routine, body=[Begin(pos=routine.body[0].pos, body=list(routine.body))])


class RoutineInstrumenter(ABC):
    """Base class for instrumentation policies."""

    def __init__(self, filename: str) -> None:
        self.filename = filename

    @abstractmethod
    def transform(self, context: RoutineContext) -> Routine:
        """Return the instrumented copy of ``context.routine``."""

    def instrument(self, content: str) -> str:
        out: list[str] = []
        cursor = 0
        newline_due = False
        routines = 0

        for raw in iter_statements(content):
            out.append(_continue(content[cursor : raw.start_offset], newline_due))
            newline_due = False
            rendered = self._instrument_statement(raw) if raw.kind is StatementKind.SQL else None
            if rendered is None:
                out.append(content[raw.start_offset : raw.end_offset])
            else:
                out.append(rendered)
                newline_due = True
                routines += 1
            cursor = raw.end_offset

        out.append(_continue(content[cursor:], newline_due))
        log.debug("content_instrumented", file=self.filename, routines=routines)
        return "".join(out)

    def _instrument_statement(self, raw: RawStatement) -> str | None:
        parser = Parser(raw.text)
        if not parser.at_routine_definition():
            return None

        leading = raw.text[: parser.current.start]
        try:
            routine = parser.parse_root()
        except ParseError as e:
            raise ParseError.at_statement(
                raw.line + e.line - 1, raw.text[len(leading) :], e.cause
            ) from e

        if not isinstance(routine, Routine):
            raise InternalError.unexpected(
                "routine header did not produce a routine node", line=raw.line
            )
        context = RoutineContext(filename=self.filename, routine=routine, base_line=raw.line)
        check_labels(context)
        transformed = self.transform(context)
        log.debug(
            "routine_instrumented",
            file=self.filename,
            routine=context.name,
            kind=routine.kind,
            line=raw.line,
        )
        return f"{leading}{render_routine(transformed)} {raw.delimiter}"


def _continue(gap: str, newline_due: bool) -> str:
    if newline_due and not gap.startswith(("\n", "\r\n")):
        return "\n" + gap
    return gap


def output_path(path: Path, suffix: str, output_dir: Path | None = None) -> Path:
    return (output_dir or path.parent) / f"{path.name}{suffix}"


def instrument_file(
    path: Path,
    instrumenter: RoutineInstrumenter,
    *,
    suffix: str,
    output_dir: Path | None = None,
) -> Path:
    """Instrument ``path`` and write ``<name><suffix>`` beside it or in ``output_dir``.

    The output is built completely in memory before the target is opened,
    so a failing file never leaves partial output behind.

    Raises:
        InstrumentIOError: The input cannot be read or the output written.
        LexicalError, ParseError, TransformError: The input is not valid.
    """
    try:
        with path.open(encoding="utf-8", newline="") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise InstrumentIOError.read_failed(str(path), str(e)) from e

    result = instrumenter.instrument(content)

    target = output_path(path, suffix, output_dir)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8", newline="") as f:
            f.write(result)
    except OSError as e:
        raise InstrumentIOError.write_failed(str(target), str(e)) from e

    log.info("file_instrumented", source=str(path), output=str(target))
    return target
