"""Coverage data model.

File-centric: a source file owns its instrumented lines and the routines
defined in it. Both the database-backed builder and the LCOV parser
produce this representation.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class FunctionCoverage:
    """Routine coverage. ``hits`` is non-zero when any of its lines ran."""

    name: str
    start_line: int
    hits: int


@dataclass(slots=True)
class FileCoverage:
    """Coverage data for a single source file.

    Lines are stored as a dict mapping line number → hit count.
    """

    path: str
    lines: dict[int, int] = field(default_factory=dict)  # line_number → hit_count
    functions: dict[str, FunctionCoverage] = field(default_factory=dict)  # name → coverage

    @property
    def lines_found(self) -> int:
        return len(self.lines)

    @property
    def lines_hit(self) -> int:
        return sum(1 for hits in self.lines.values() if hits > 0)

    @property
    def line_rate(self) -> float:
        """Fraction of lines covered (0.0 to 1.0)."""
        if not self.lines:
            return 0.0
        return self.lines_hit / len(self.lines)

    @property
    def uncovered_lines(self) -> list[int]:
        return sorted(line for line, hits in self.lines.items() if hits == 0)

    @property
    def functions_found(self) -> int:
        return len(self.functions)

    @property
    def functions_hit(self) -> int:
        return sum(1 for f in self.functions.values() if f.hits > 0)

    @property
    def function_rate(self) -> float:
        if not self.functions:
            return 0.0
        return self.functions_hit / len(self.functions)


@dataclass(frozen=True, slots=True)
class CoverageSummary:
    """Aggregate coverage statistics over every file of a report."""

    lines_found: int
    lines_hit: int
    functions_found: int
    functions_hit: int
    line_rate: float
    function_rate: float

    @property
    def line_percent(self) -> float:
        return self.line_rate * 100

    @property
    def function_percent(self) -> float:
        return self.function_rate * 100


@dataclass(slots=True)
class CoverageReport:
    """Coverage for a set of source files, keyed by path."""

    files: dict[str, FileCoverage] = field(default_factory=dict)

    @property
    def summary(self) -> CoverageSummary:
        lines_found = sum(f.lines_found for f in self.files.values())
        lines_hit = sum(f.lines_hit for f in self.files.values())
        functions_found = sum(f.functions_found for f in self.files.values())
        functions_hit = sum(f.functions_hit for f in self.files.values())

        return CoverageSummary(
            lines_found=lines_found,
            lines_hit=lines_hit,
            functions_found=functions_found,
            functions_hit=functions_hit,
            line_rate=lines_hit / lines_found if lines_found > 0 else 0.0,
            function_rate=functions_hit / functions_found if functions_found > 0 else 0.0,
        )

    def sorted_files(self) -> list[FileCoverage]:
        return [self.files[path] for path in sorted(self.files)]
