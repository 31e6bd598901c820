"""Syntax tree for MySQL stored-routine flow control.

Every statement node carries the Position of its first significant token
(the label, when one is present) relative to the statement text it was
parsed from, plus an optional label. Child statement lists are ordinary
Python lists; transforms build new nodes with ``map_bodies`` instead of
mutating.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from typing import ClassVar, Literal, TypeVar

S = TypeVar("S", bound="Statement")

ParameterMode = Literal["IN", "OUT", "INOUT"]


@dataclass(frozen=True, slots=True)
class Position:
    """1-based line/column plus 0-based character offset."""

    line: int = 1
    column: int = 1
    offset: int = 0


@dataclass(slots=True, kw_only=True)
class Statement:
    pos: Position = field(default_factory=Position)
    label: str | None = None


@dataclass(slots=True, kw_only=True)
class Parameter:
    name: str
    type: str
    mode: ParameterMode = "IN"
    pos: Position = field(default_factory=Position)

    @property
    def identifier(self) -> str:
        return unquote_identifier(self.name)


@dataclass(slots=True, kw_only=True)
class Routine(Statement):
    """Common shape of CREATE PROCEDURE / CREATE FUNCTION."""

    name: str
    parameters: list[Parameter] = field(default_factory=list)
    body: list[Statement] = field(default_factory=list)
    definer: str | None = None
    if_not_exists: bool = False
    characteristics: list[str] = field(default_factory=list)

    kind: ClassVar[str] = "routine"

    @property
    def identifier(self) -> str:
        return unquote_identifier(self.name)


@dataclass(slots=True, kw_only=True)
class CreateProcedure(Routine):
    kind: ClassVar[str] = "procedure"


@dataclass(slots=True, kw_only=True)
class CreateFunction(Routine):
    return_type: str
    kind: ClassVar[str] = "function"


@dataclass(slots=True, kw_only=True)
class Begin(Statement):
    body: list[Statement] = field(default_factory=list)


@dataclass(slots=True, kw_only=True)
class ElseIf:
    condition: str
    then: list[Statement] = field(default_factory=list)
    pos: Position = field(default_factory=Position)


@dataclass(slots=True, kw_only=True)
class If(Statement):
    condition: str
    then: list[Statement] = field(default_factory=list)
    elseifs: list[ElseIf] = field(default_factory=list)
    else_body: list[Statement] = field(default_factory=list)


@dataclass(slots=True, kw_only=True)
class While(Statement):
    condition: str
    body: list[Statement] = field(default_factory=list)


@dataclass(slots=True, kw_only=True)
class Loop(Statement):
    body: list[Statement] = field(default_factory=list)


@dataclass(slots=True, kw_only=True)
class Repeat(Statement):
    body: list[Statement] = field(default_factory=list)
    condition: str


@dataclass(slots=True, kw_only=True)
class When:
    condition: str
    then: list[Statement] = field(default_factory=list)
    pos: Position = field(default_factory=Position)


@dataclass(slots=True, kw_only=True)
class Case(Statement):
    expression: str | None = None
    whens: list[When] = field(default_factory=list)
    else_body: list[Statement] = field(default_factory=list)


@dataclass(slots=True, kw_only=True)
class Leave(Statement):
    target: str


@dataclass(slots=True, kw_only=True)
class Iterate(Statement):
    target: str


@dataclass(slots=True, kw_only=True)
class Return(Statement):
    expression: str

    @property
    def text(self) -> str:
        return f"RETURN {self.expression}"


@dataclass(slots=True, kw_only=True)
class Declare(Statement):
    """Variable, condition, cursor or handler declaration, kept opaque."""

    text: str


@dataclass(slots=True, kw_only=True)
class VariableAssignment:
    ref: str
    operator: str
    value: str
    scope: str | None = None

    @property
    def variable_name(self) -> str:
        """Bare variable name without sigils or scope prefix."""
        name = self.ref.lstrip("@")
        lowered = name.lower()
        for prefix in ("global.", "session.", "local.", "persist.", "persist_only."):
            if lowered.startswith(prefix):
                name = name[len(prefix) :]
                break
        return unquote_identifier(name)


@dataclass(slots=True, kw_only=True)
class SetVariable(Statement):
    text: str
    assignments: list[VariableAssignment] = field(default_factory=list)


@dataclass(slots=True, kw_only=True)
class Generic(Statement):
    text: str


def unquote_identifier(name: str) -> str:
    """Strip backtick quoting from an identifier or dotted path."""
    if "`" not in name:
        return name
    out: list[str] = []
    i = 0
    while i < len(name):
        ch = name[i]
        if ch == "`":
            end = i + 1
            while end < len(name):
                if name[end] == "`":
                    if name[end + 1 : end + 2] == "`":
                        end += 2
                        continue
                    break
                end += 1
            out.append(name[i + 1 : end].replace("``", "`"))
            i = end + 1
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def child_lists(stmt: Statement) -> list[list[Statement]]:
    """Ordered child statement lists of a node (empty for leaves)."""
    match stmt:
        case Routine() | Begin() | While() | Loop() | Repeat():
            return [stmt.body]
        case If():
            return [stmt.then, *(e.then for e in stmt.elseifs), stmt.else_body]
        case Case():
            return [*(w.then for w in stmt.whens), stmt.else_body]
        case _:
            return []


def map_bodies(stmt: S, fn: Callable[[list[Statement]], list[Statement]]) -> S:
    """Return a copy of ``stmt`` with every child list replaced by ``fn(list)``.

    Leaves are returned unchanged. ``fn`` is not applied recursively; callers
    recurse from inside ``fn`` when they need to reach deeper levels.
    """
    match stmt:
        case Routine() | Begin() | While() | Loop() | Repeat():
            return replace(stmt, body=fn(stmt.body))
        case If():
            return replace(
                stmt,
                then=fn(stmt.then),
                elseifs=[replace(e, then=fn(e.then)) for e in stmt.elseifs],
                else_body=fn(stmt.else_body),
            )
        case Case():
            return replace(
                stmt,
                whens=[replace(w, then=fn(w.then)) for w in stmt.whens],
                else_body=fn(stmt.else_body),
            )
        case _:
            return stmt


def walk(stmt: Statement) -> Iterator[Statement]:
    """Pre-order traversal over a node and all its descendants."""
    yield stmt
    for body in child_lists(stmt):
        for child in body:
            yield from walk(child)
