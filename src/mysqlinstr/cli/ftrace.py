"""mysql-ftrace: call tracing for MySQL stored routines."""

from __future__ import annotations

from functools import partial
from pathlib import Path

import click

from mysqlinstr.cli.utils import (
    DATABASE_HELP,
    fail,
    get_config,
    instrument_paths,
    open_database,
    setup,
)
from mysqlinstr.core.errors import InstrumentError
from mysqlinstr.core.progress import pluralize, spinner, status
from mysqlinstr.db.schema import install_ftrace_schema
from mysqlinstr.ftrace.report import REPORT_FORMATS, fetch_events, render_report
from mysqlinstr.instrument.ftrace import FtraceInstrumenter


@click.group()
@click.version_option(version="0.1.0", prog_name="mysql-ftrace")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def ftrace_cli(ctx: click.Context, verbose: bool) -> None:
    """Instrument MySQL stored procedures and functions for call tracing."""
    setup(ctx, verbose)


@ftrace_cli.command("instrument")
@click.argument("files", nargs=-1, type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "-o",
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for traced files (default: next to each input)",
)
@click.option(
    "--trace-statements/--no-trace-statements",
    default=None,
    help="Also record every statement and SET assignment (significant overhead)",
)
@click.option(
    "--filename",
    default="stdin",
    show_default=True,
    help="File name recorded in trace events when reading stdin",
)
@click.pass_context
def instrument_command(
    ctx: click.Context,
    files: tuple[Path, ...],
    output_dir: Path | None,
    trace_statements: bool | None,
    filename: str,
) -> None:
    """Wrap routine bodies with entry/exit trace calls.

    Each FILE is written to FILE.ftraced. With no FILES, SQL is read from
    stdin and the traced SQL is written to stdout.
    """
    config = get_config(ctx)
    if trace_statements is None:
        trace_statements = config.instrument.trace_statements
    instrument_paths(
        files,
        partial(FtraceInstrumenter, trace_statements=trace_statements),
        suffix=config.instrument.ftrace_suffix,
        output_dir=output_dir,
        stdin_name=filename,
    )


@ftrace_cli.command("init")
@click.option("--database", "dsn", help=DATABASE_HELP)
@click.pass_context
def init_command(ctx: click.Context, dsn: str | None) -> None:
    """Install the trace event table and recording procedures."""
    config = get_config(ctx)
    with open_database(config, dsn) as db:
        try:
            with spinner("Installing function tracing schema"):
                created = install_ftrace_schema(db)
        except InstrumentError as e:
            fail(f"Error: {e.message}")

    status("Initialized database with function tracing schema", style="success")
    for name in created:
        status(f"- Created {name}", indent=2)


@ftrace_cli.command("report")
@click.option("--database", "dsn", help=DATABASE_HELP)
@click.option(
    "-o",
    "--output",
    default="-",
    type=click.Path(dir_okay=False, allow_dash=True),
    help="Output file (default: stdout)",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(REPORT_FORMATS),
    default="text",
    show_default=True,
    help="Report format",
)
@click.option("--connection-id", type=int, help="Only report events of this connection")
@click.pass_context
def report_command(
    ctx: click.Context, dsn: str | None, output: str, fmt: str, connection_id: int | None
) -> None:
    """Render recorded trace events."""
    config = get_config(ctx)
    with open_database(config, dsn) as db:
        try:
            with spinner("Reading trace events"):
                events = fetch_events(db, connection_id)
        except InstrumentError as e:
            fail(f"Error: {e.message}")

    with click.open_file(output, "w", encoding="utf-8") as out:
        render_report(events, out, fmt=fmt, by_connection=connection_id is None)
    status(f"Rendered {pluralize(len(events), 'event')}", style="success")


if __name__ == "__main__":
    ftrace_cli()
