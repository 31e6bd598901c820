"""Render recorded function-trace events.

Three formats are supported:

- ``text``: an indented call tree per connection, one line per event;
- ``json``: the raw events as a JSON array;
- ``flamegraph``: folded stacks (``conn;outer;inner <microseconds>``),
  the input format of flamegraph.pl and speedscope. Each line carries the
  self time of its innermost frame.

Events are read in connection order, then by timestamp and id, which is
the order the recording procedures wrote them within one connection.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, TextIO

import structlog
from sqlmodel import Session, select

from mysqlinstr.db.models import FtraceEvent

if TYPE_CHECKING:
    from mysqlinstr.db.database import Database

log = structlog.get_logger(__name__)

REPORT_TITLE = "MySQL Function Call Trace Report"
INDENT = "    "
SET_TEXT_WIDTH = 30


def fetch_events(db: Database, connection_id: int | None = None) -> list[FtraceEvent]:
    """Trace events, optionally limited to one connection."""

    def run(session: Session) -> list[FtraceEvent]:
        statement = select(FtraceEvent)
        if connection_id is not None:
            statement = statement.where(FtraceEvent.connection_id == connection_id)
        statement = statement.order_by(
            FtraceEvent.connection_id,  # type: ignore[arg-type]
            FtraceEvent.timestamp,  # type: ignore[arg-type]
            FtraceEvent.id,  # type: ignore[arg-type]
        )
        return list(session.exec(statement))

    events = db.query("fetch ftrace events", run)
    log.debug("ftrace_events_fetched", events=len(events), connection_id=connection_id)
    return events


# =============================================================================
# Text
# =============================================================================


def format_timestamp(ts: datetime | None) -> str:
    if ts is None:
        return "--:--:--.---"
    return f"{ts:%H:%M:%S}.{ts.microsecond // 1000:03d}"


def format_value(value: Any) -> str:
    if value is None:
        return ""
    return json.dumps(value, ensure_ascii=False)


def format_args(args: Any) -> str:
    """``k=v`` pairs sorted by key; non-object payloads are shown as JSON."""
    if not isinstance(args, dict):
        return format_value(args)
    return ", ".join(f"{key}={format_value(args[key])}" for key in sorted(args))


def _statement_text(event: FtraceEvent) -> str:
    value = event.return_value
    return value if isinstance(value, str) else format_value(value)


class _TextRenderer:
    def __init__(self, out: TextIO) -> None:
        self.out = out
        # SET statement waiting for the assignment record of the same line
        self.pending: FtraceEvent | None = None

    def line(self, event: FtraceEvent, text: str, *, nested: bool = False) -> None:
        indent = INDENT * max(event.call_depth - 1, 0)
        if nested:
            indent += INDENT
            if event.line_number:
                text = f"L{event.line_number}: {text}"
        self.out.write(f"[{format_timestamp(event.timestamp)}] {indent}{text}\n")

    def flush(self) -> None:
        if self.pending is not None:
            self.line(self.pending, _statement_text(self.pending), nested=True)
            self.pending = None

    def event(self, event: FtraceEvent) -> None:
        match event.call_type:
            case "entry":
                self.flush()
                self.line(event, f"ENTER {event.function_name}({format_args(event.arguments)})")
            case "exit":
                self.flush()
                self.line(event, f"RETURN {format_value(event.return_value)}".rstrip())
            case "statement":
                self.flush()
                if event.statement_type == "SET":
                    self.pending = event
                else:
                    self.line(event, _statement_text(event), nested=True)
            case "set_variable":
                assigned = format_args(event.variable_assignments)
                pending = self.pending
                if pending is not None and pending.line_number == event.line_number:
                    text = f"{_statement_text(pending):<{SET_TEXT_WIDTH}} → {assigned}"
                    self.pending = None
                else:
                    self.flush()
                    text = f"SET {assigned}"
                self.line(event, text, nested=True)
            case other:
                log.debug("ftrace_event_skipped", id=event.id, call_type=other)


def render_text(events: Sequence[FtraceEvent], out: TextIO, *, by_connection: bool = True) -> None:
    out.write(f"{REPORT_TITLE}\n")
    out.write("=" * len(REPORT_TITLE) + "\n\n")

    renderer = _TextRenderer(out)
    current: int | None = None
    for event in events:
        if by_connection and event.connection_id != current:
            renderer.flush()
            if current is not None:
                out.write("\n")
            out.write(f"=== Connection ID: {event.connection_id} ===\n")
            current = event.connection_id
        renderer.event(event)
    renderer.flush()


# =============================================================================
# JSON
# =============================================================================


def event_to_dict(event: FtraceEvent) -> dict[str, Any]:
    data = event.model_dump()
    if event.timestamp is not None:
        data["timestamp"] = event.timestamp.isoformat()
    return data


def render_json(events: Sequence[FtraceEvent], out: TextIO, *, by_connection: bool = True) -> None:
    json.dump([event_to_dict(e) for e in events], out, indent=2, ensure_ascii=False)
    out.write("\n")


# =============================================================================
# Flamegraph
# =============================================================================


@dataclass(slots=True)
class _Frame:
    name: str
    started: datetime | None
    child_us: int = 0


@dataclass(slots=True)
class _Stacks:
    """Per-connection call stacks folded into ``path → self microseconds``."""

    folded: dict[str, int] = field(default_factory=dict)
    stacks: dict[int, list[_Frame]] = field(default_factory=dict)

    def enter(self, event: FtraceEvent) -> None:
        stack = self.stacks.setdefault(event.connection_id, [])
        stack.append(_Frame(event.function_name, event.timestamp))

    def leave(self, event: FtraceEvent) -> None:
        stack = self.stacks.get(event.connection_id, [])
        names = [frame.name for frame in stack]
        if event.function_name not in names:
            log.debug("ftrace_unmatched_exit", id=event.id, function=event.function_name)
            return
        # Frames above the matching one never recorded an exit (error signal)
        depth = len(names) - 1 - names[::-1].index(event.function_name)
        del stack[depth + 1 :]

        frame = stack.pop()
        total = _elapsed_us(frame.started, event.timestamp)
        if stack:
            stack[-1].child_us += total
        path = ";".join([f"connection-{event.connection_id}", *names[: depth + 1]])
        self.folded[path] = self.folded.get(path, 0) + max(total - frame.child_us, 0)


def _elapsed_us(start: datetime | None, end: datetime | None) -> int:
    if start is None or end is None:
        return 0
    delta = end - start
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


def fold_stacks(events: Sequence[FtraceEvent]) -> dict[str, int]:
    """Fold entry/exit pairs into stack paths with their self time."""
    stacks = _Stacks()
    for event in events:
        if event.call_type == "entry":
            stacks.enter(event)
        elif event.call_type == "exit":
            stacks.leave(event)
    unfinished = sum(len(s) for s in stacks.stacks.values())
    if unfinished:
        log.debug("ftrace_unfinished_frames", frames=unfinished)
    return stacks.folded


def render_flamegraph(
    events: Sequence[FtraceEvent], out: TextIO, *, by_connection: bool = True
) -> None:
    for path, micros in sorted(fold_stacks(events).items()):
        out.write(f"{path} {micros}\n")


RENDERERS: dict[str, Callable[..., None]] = {
    "text": render_text,
    "json": render_json,
    "flamegraph": render_flamegraph,
}
REPORT_FORMATS = tuple(RENDERERS)


def render_report(
    events: Sequence[FtraceEvent], out: TextIO, *, fmt: str = "text", by_connection: bool = True
) -> None:
    RENDERERS[fmt](events, out, by_connection=by_connection)
