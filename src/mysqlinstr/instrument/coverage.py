"""Line-coverage policy.

Every executable statement gets a ``CALL __record_coverage(file, routine,
line)`` immediately before it, at every nesting level. Control-flow
statements get a call for their own head line as well as calls inside
their bodies. DECLARE and BEGIN are never coverage points, so a call is
never placed ahead of a declaration.
"""

from __future__ import annotations

from mysqlinstr.instrument.pipeline import (
    INSTRUMENTABLE,
    RoutineContext,
    RoutineInstrumenter,
    ensure_compound_body,
    quote_literal,
)
from mysqlinstr.sql.ast import Generic, Routine, Statement, map_bodies

COVERAGE_PROCEDURE = "__record_coverage"


def coverage_call(filename: str, routine: str, line: int) -> str:
    return f"CALL {COVERAGE_PROCEDURE}({quote_literal(filename)}, {quote_literal(routine)}, {line})"


class CoverageInstrumenter(RoutineInstrumenter):
    """Insert a coverage recording call before each executable statement."""

    def transform(self, context: RoutineContext) -> Routine:
        def instrument_body(body: list[Statement]) -> list[Statement]:
            out: list[Statement] = []
            for stmt in body:
                if isinstance(stmt, INSTRUMENTABLE):
                    line = context.line_of(stmt)
                    out.append(
                        Generic(pos=stmt.pos, text=coverage_call(self.filename, context.name, line))
                    )
                out.append(map_bodies(stmt, instrument_body))
            return out

        return ensure_compound_body(map_bodies(context.routine, instrument_body))
