"""Read models for the event tables written by the recording procedures.

The tables themselves are created by the DDL in ``schema``; these
mappings only describe the columns the reporters read.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from mysqlinstr.db.schema import COVERAGE_TABLE, FTRACE_TABLE


class CoverageEvent(SQLModel, table=True):
    """One executed coverage point."""

    __tablename__ = COVERAGE_TABLE

    id: int | None = Field(default=None, primary_key=True)
    filename: str
    function_name: str
    line_number: int
    timestamp: datetime | None = Field(default=None, sa_column=Column(DateTime))


class FtraceEvent(SQLModel, table=True):
    """One entry, exit, statement or SET record."""

    __tablename__ = FTRACE_TABLE

    id: int | None = Field(default=None, primary_key=True)
    connection_id: int
    filename: str
    function_name: str
    object_type: str  # function, procedure, statement, variable
    call_type: str  # entry, exit, statement, set_variable
    arguments: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    return_value: Any = Field(default=None, sa_column=Column(JSON))
    call_depth: int = 0
    line_number: int | None = None
    statement_type: str | None = None
    variable_assignments: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    timestamp: datetime | None = Field(default=None, sa_column=Column(DateTime))
