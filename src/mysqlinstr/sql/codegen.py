"""Re-serialize syntax trees to SQL text.

Layout is cosmetic: one tab per nesting level, one statement per line.
Every member of a compound body ends with ``;``; the outermost body of a
routine does not, because the caller appends the active delimiter.
"""

from __future__ import annotations

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
)

INDENT = "\t"


def render(stmt: Statement) -> str:
    """Render a routine or a single statement without a trailing terminator."""
    if isinstance(stmt, Routine):
        return render_routine(stmt)
    return _render(stmt, 0, member=False)


def render_routine(routine: Routine) -> str:
    head = ["CREATE"]
    if routine.definer:
        head.append(routine.definer)
    head.append(routine.kind.upper())
    if routine.if_not_exists:
        head.append("IF NOT EXISTS")
    head.append(f"{routine.name}({_render_parameters(routine)})")
    if isinstance(routine, CreateFunction):
        head.append(f"RETURNS {routine.return_type}")

    lines = [" ".join(head), *routine.characteristics]
    lines.extend(_render(stmt, 0, member=False) for stmt in routine.body)
    return "\n".join(lines)


def _render_parameters(routine: Routine) -> str:
    if isinstance(routine, CreateFunction):
        return ", ".join(f"{p.name} {p.type}" for p in routine.parameters)
    return ", ".join(f"{p.mode} {p.name} {p.type}" for p in routine.parameters)


def _render_body(body: list[Statement], level: int) -> list[str]:
    return [_render(stmt, level, member=True) for stmt in body]


def _block(opening: str, inner: list[str], closing: str, pad: str) -> str:
    return "\n".join([f"{pad}{opening}", *inner, f"{pad}{closing}"])


def _render(stmt: Statement, level: int, *, member: bool) -> str:
    pad = INDENT * level
    end = ";" if member else ""
    prefix = f"{stmt.label}: " if stmt.label else ""
    suffix = f" {stmt.label}" if stmt.label else ""

    match stmt:
        case Begin():
            return _block(
                f"{prefix}BEGIN", _render_body(stmt.body, level + 1), f"END{suffix}{end}", pad
            )
        case If():
            lines = [f"{pad}IF {stmt.condition} THEN", *_render_body(stmt.then, level + 1)]
            for branch in stmt.elseifs:
                lines.append(f"{pad}ELSEIF {branch.condition} THEN")
                lines.extend(_render_body(branch.then, level + 1))
            if stmt.else_body:
                lines.append(f"{pad}ELSE")
                lines.extend(_render_body(stmt.else_body, level + 1))
            lines.append(f"{pad}END IF{end}")
            return "\n".join(lines)
        case While():
            return _block(
                f"{prefix}WHILE {stmt.condition} DO",
                _render_body(stmt.body, level + 1),
                f"END WHILE{suffix}{end}",
                pad,
            )
        case Loop():
            return _block(
                f"{prefix}LOOP", _render_body(stmt.body, level + 1), f"END LOOP{suffix}{end}", pad
            )
        case Repeat():
            return _block(
                f"{prefix}REPEAT",
                [*_render_body(stmt.body, level + 1), f"{pad}UNTIL {stmt.condition}"],
                f"END REPEAT{suffix}{end}",
                pad,
            )
        case Case():
            head = f"{prefix}CASE {stmt.expression}" if stmt.expression else f"{prefix}CASE"
            lines = [f"{pad}{head}"]
            for when in stmt.whens:
                lines.append(f"{pad}{INDENT}WHEN {when.condition} THEN")
                lines.extend(_render_body(when.then, level + 2))
            if stmt.else_body:
                lines.append(f"{pad}{INDENT}ELSE")
                lines.extend(_render_body(stmt.else_body, level + 2))
            lines.append(f"{pad}END CASE{end}")
            return "\n".join(lines)
        case Leave():
            return f"{pad}LEAVE {stmt.target}{end}"
        case Iterate():
            return f"{pad}ITERATE {stmt.target}{end}"
        case Return():
            return f"{pad}{stmt.text}{end}"
        case Declare() | SetVariable() | Generic():
            return f"{pad}{stmt.text}{end}"
        case _:
            raise TypeError(f"cannot render {type(stmt).__name__}")
