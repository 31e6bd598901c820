"""LCOV export and import.

LCOV format is a plain text format with records like:
- TN:<test name>
- SF:<source file path>
- FN:<line>,<name>
- FNDA:<hit count>,<name>
- FNF:<functions found>
- FNH:<functions hit>
- DA:<line>,<hit count>
- LF:<lines found>
- LH:<lines hit>
- end_of_record

Only the records written here are read back; branch records are ignored.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, TextIO

import structlog
from sqlalchemy import func
from sqlmodel import Session, select

from mysqlinstr.core.errors import InstrumentIOError, ReportError
from mysqlinstr.coverage.instrumented import CoveragePoint
from mysqlinstr.coverage.models import CoverageReport, FileCoverage, FunctionCoverage
from mysqlinstr.db.models import CoverageEvent

if TYPE_CHECKING:
    from pathlib import Path

    from mysqlinstr.db.database import Database

log = structlog.get_logger(__name__)

# (filename, line_number) → hit count
HitCounts = dict[tuple[str, int], int]


def fetch_hit_counts(db: Database) -> HitCounts:
    """Hit counts per coverage point from ``__CoverageEvent``."""

    def run(session: Session) -> HitCounts:
        statement = select(
            CoverageEvent.filename,
            CoverageEvent.function_name,
            CoverageEvent.line_number,
            func.count(),
        ).group_by(
            CoverageEvent.filename,
            CoverageEvent.function_name,
            CoverageEvent.line_number,
        )
        hits: HitCounts = {}
        for filename, _function, line_number, count in session.exec(statement):
            key = (filename, line_number)
            hits[key] = hits.get(key, 0) + count
        return hits

    hits = db.query("fetch coverage events", run)
    log.debug("coverage_events_fetched", points=len(hits))
    return hits


def build_report(points: Iterable[CoveragePoint], hits: HitCounts) -> CoverageReport:
    """Merge the instrumented catalogue with recorded hits.

    Points never recorded get zero hits. Recorded hits for lines that are
    not in the catalogue are ignored. A routine starts at its smallest
    instrumented line and counts as hit when any of its lines ran.
    """
    report = CoverageReport()
    routine_lines: dict[tuple[str, str], list[int]] = {}

    for point in points:
        file = report.files.get(point.filename)
        if file is None:
            file = report.files[point.filename] = FileCoverage(path=point.filename)
        file.lines[point.line_number] = hits.get((point.filename, point.line_number), 0)
        routine_lines.setdefault((point.filename, point.function_name), []).append(
            point.line_number
        )

    for (filename, name), lines in routine_lines.items():
        file = report.files[filename]
        hit = any(file.lines[line] > 0 for line in lines)
        file.functions[name] = FunctionCoverage(name=name, start_line=min(lines), hits=int(hit))

    return report


def write_lcov(report: CoverageReport, out: TextIO, *, test_name: str = "") -> None:
    """Write ``report`` as LCOV, files sorted by path and lines ascending."""
    for file in report.sorted_files():
        functions = sorted(file.functions.values(), key=lambda f: (f.start_line, f.name))
        out.write(f"TN:{test_name}\n")
        out.write(f"SF:{file.path}\n")
        for fn in functions:
            out.write(f"FN:{fn.start_line},{fn.name}\n")
        for fn in functions:
            out.write(f"FNDA:{fn.hits},{fn.name}\n")
        out.write(f"FNF:{file.functions_found}\n")
        out.write(f"FNH:{file.functions_hit}\n")
        for line in sorted(file.lines):
            out.write(f"DA:{line},{file.lines[line]}\n")
        out.write(f"LF:{file.lines_found}\n")
        out.write(f"LH:{file.lines_hit}\n")
        out.write("end_of_record\n")


def is_excluded(path: str, patterns: Sequence[str]) -> bool:
    """Whether ``path`` or its basename matches any glob in ``patterns``."""
    name = PurePosixPath(path).name
    return any(fnmatch.fnmatchcase(path, p) or fnmatch.fnmatchcase(name, p) for p in patterns)


class LcovParser:
    """Parser for LCOV coverage files."""

    def __init__(self, exclude: Sequence[str] = ()) -> None:
        self.exclude = tuple(exclude)

    def parse(self, path: Path) -> CoverageReport:
        """Parse an LCOV file, dropping excluded source files.

        Raises:
            InstrumentIOError: The file cannot be read.
            ReportError: A record carries a malformed number.
        """
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise InstrumentIOError.read_failed(str(path), str(e)) from e
        return self.parse_text(content, source=str(path))

    def parse_text(self, content: str, *, source: str = "<lcov>") -> CoverageReport:
        report = CoverageReport()
        current: FileCoverage | None = None
        # Track function start lines for FNDA matching
        fn_lines: dict[str, int] = {}

        for line_number, line in enumerate(content.splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            record = _Record(source, line_number, line)

            if line.startswith("SF:"):
                path = line[3:]
                if is_excluded(path, self.exclude):
                    log.debug("lcov_file_excluded", path=path)
                    current = None
                else:
                    current = FileCoverage(path=path)
                fn_lines = {}

            elif line == "end_of_record":
                if current is not None:
                    report.files[current.path] = current
                current = None

            elif current is None:
                # TN records, or records of an excluded file
                continue

            elif line.startswith("DA:"):
                # DA:line,hits[,checksum]
                line_no, hits = record.fields(line[3:], 2, allow_extra=True)
                current.lines[record.number(line_no)] = record.number(hits)

            elif line.startswith("FN:"):
                start, name = record.fields(line[3:], 2)
                fn_lines[name] = record.number(start)

            elif line.startswith("FNDA:"):
                hits, name = record.fields(line[5:], 2)
                current.functions[name] = FunctionCoverage(
                    name=name, start_line=fn_lines.get(name, 0), hits=record.number(hits)
                )

        # File without end_of_record
        if current is not None:
            report.files[current.path] = current

        log.debug("lcov_parsed", source=source, files=len(report.files))
        return report


@dataclass(frozen=True, slots=True)
class _Record:
    """One LCOV line, for error reporting while its fields are decoded."""

    source: str
    line_number: int
    text: str

    def fields(self, payload: str, count: int, *, allow_extra: bool = False) -> list[str]:
        parts = payload.split(",") if allow_extra else payload.split(",", count - 1)
        if len(parts) < count:
            raise ReportError.invalid_lcov(
                self.source, self.line_number, f"malformed record {self.text!r}"
            )
        return parts[:count]

    def number(self, value: str) -> int:
        # Some tools write '-' for "not executed"
        if value == "-":
            return 0
        try:
            return int(value)
        except ValueError:
            raise ReportError.invalid_lcov(
                self.source, self.line_number, f"expected a number, got {value!r}"
            ) from None
