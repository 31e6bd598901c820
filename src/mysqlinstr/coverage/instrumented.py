"""Recover coverage points from instrumented SQL files.

The instrumented output is the catalogue of every line that could have
been hit: each ``CALL __record_coverage('<file>', '<routine>', <line>)``
names one coverage point, whether or not it ever ran.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import structlog

from mysqlinstr.core.errors import InstrumentIOError
from mysqlinstr.instrument.coverage import COVERAGE_PROCEDURE

log = structlog.get_logger(__name__)

INSTRUMENTED_GLOB = "*.sql.instrumented"

_CALL_PATTERN = re.compile(
    rf"CALL {re.escape(COVERAGE_PROCEDURE)}\('((?:[^']|'')+)', '((?:[^']|'')+)', (\d+)\)"
)


@dataclass(frozen=True, slots=True)
class CoveragePoint:
    filename: str
    function_name: str
    line_number: int


def scan_text(text: str) -> list[CoveragePoint]:
    """Coverage points named by the recording calls in ``text``."""
    return [
        CoveragePoint(
            filename=m.group(1).replace("''", "'"),
            function_name=m.group(2).replace("''", "'"),
            line_number=int(m.group(3)),
        )
        for m in _CALL_PATTERN.finditer(text)
    ]


def scan_files(paths: Iterable[Path]) -> list[CoveragePoint]:
    """Coverage points of several files, in file order.

    Raises:
        InstrumentIOError: A file cannot be read.
    """
    points: list[CoveragePoint] = []
    for path in paths:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise InstrumentIOError.read_failed(str(path), str(e)) from e
        found = scan_text(text)
        log.debug("instrumented_file_scanned", path=str(path), points=len(found))
        points.extend(found)
    return points


def discover_instrumented_files(root: Path) -> list[Path]:
    """Instrumented outputs under ``root``, sorted for stable reports."""
    return sorted(p for p in root.rglob(INSTRUMENTED_GLOB) if p.is_file())
