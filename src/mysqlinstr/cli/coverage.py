"""mysql-coverage: line coverage for MySQL stored routines."""

from __future__ import annotations

from pathlib import Path
from typing import cast

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
from mysqlinstr.coverage.github import post_pr_comment
from mysqlinstr.coverage.instrumented import discover_instrumented_files, scan_files
from mysqlinstr.coverage.lcov import LcovParser, build_report, fetch_hit_counts, write_lcov
from mysqlinstr.coverage.report import DEFAULT_TITLE, render_summary
from mysqlinstr.db.schema import install_coverage_schema
from mysqlinstr.instrument.coverage import CoverageInstrumenter


@click.group()
@click.version_option(version="0.1.0", prog_name="mysql-coverage")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def coverage_cli(ctx: click.Context, verbose: bool) -> None:
    """Instrument MySQL stored procedures and functions for coverage analysis."""
    setup(ctx, verbose)


@coverage_cli.command("instrument")
@click.argument("files", nargs=-1, type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "-o",
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for instrumented files (default: next to each input)",
)
@click.option(
    "--filename",
    default="stdin",
    show_default=True,
    help="File name recorded in coverage events when reading stdin",
)
@click.pass_context
def instrument_command(
    ctx: click.Context, files: tuple[Path, ...], output_dir: Path | None, filename: str
) -> None:
    """Insert coverage recording calls into SQL files.

    Each FILE is written to FILE.instrumented. With no FILES, SQL is read
    from stdin and the instrumented SQL is written to stdout.
    """
    config = get_config(ctx)
    instrument_paths(
        files,
        CoverageInstrumenter,
        suffix=config.instrument.coverage_suffix,
        output_dir=output_dir,
        stdin_name=filename,
    )


@coverage_cli.command("init")
@click.option("--database", "dsn", help=DATABASE_HELP)
@click.pass_context
def init_command(ctx: click.Context, dsn: str | None) -> None:
    """Install the coverage event table and recording procedure."""
    config = get_config(ctx)
    with open_database(config, dsn) as db:
        try:
            with spinner("Installing coverage schema"):
                created = install_coverage_schema(db)
        except InstrumentError as e:
            fail(f"Error: {e.message}")

    status("Initialized database with coverage tracking schema", style="success")
    for name in created:
        status(f"- Created {name}", indent=2)


@coverage_cli.command("lcov")
@click.argument("sources", nargs=-1, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--database", "dsn", help=DATABASE_HELP)
@click.option(
    "-o",
    "--output",
    default="-",
    type=click.Path(dir_okay=False, allow_dash=True),
    help="Output file (default: stdout)",
)
@click.option(
    "--instrumented-file",
    "instrumented",
    multiple=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Instrumented file listing coverage points (repeatable)",
)
@click.option("--test-name", default="", help="Value of the LCOV TN record")
@click.pass_context
def lcov_command(
    ctx: click.Context,
    sources: tuple[Path, ...],
    dsn: str | None,
    output: str,
    instrumented: tuple[Path, ...],
    test_name: str,
) -> None:
    """Write an LCOV report from recorded coverage events.

    Coverage points come from instrumented files: those given with
    --instrumented-file, SOURCE.instrumented for each SOURCE, or every
    *.sql.instrumented under the current directory.
    """
    config = get_config(ctx)
    suffix = config.instrument.coverage_suffix
    files = [*instrumented, *(s.with_name(s.name + suffix) for s in sources)]
    if not files:
        files = discover_instrumented_files(Path.cwd())
    if not files:
        status("No instrumented files found", style="warning")

    with open_database(config, dsn) as db:
        try:
            points = scan_files(files)
            with spinner("Reading coverage events"):
                hits = fetch_hit_counts(db)
        except InstrumentError as e:
            fail(f"Error: {e.message}")

    report = build_report(points, hits)
    with click.open_file(output, "w", encoding="utf-8") as out:
        write_lcov(report, out, test_name=test_name)

    summary = report.summary
    status(
        f"{pluralize(len(report.files), 'file')}, "
        f"{summary.lines_hit}/{summary.lines_found} lines covered",
        style="success",
    )


@coverage_cli.command("github-comment")
@click.option(
    "--lcov-file",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to LCOV coverage file",
)
@click.option(
    "--exclude-file",
    "exclude",
    multiple=True,
    help="Glob of source files left out of the summary (repeatable)",
)
@click.option("--dry-run", is_flag=True, help="Print the comment instead of posting it")
@click.option(
    "--repo",
    envvar="GITHUB_REPOSITORY",
    help="Repository as owner/repo (default: $GITHUB_REPOSITORY)",
)
@click.option("--pr", "pr_number", type=int, help="Pull request number")
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token (default: $GITHUB_TOKEN)")
@click.option("--title", default=DEFAULT_TITLE, show_default=True, help="Comment title")
@click.pass_context
def github_comment_command(
    ctx: click.Context,
    lcov_file: Path,
    exclude: tuple[str, ...],
    dry_run: bool,
    repo: str | None,
    pr_number: int | None,
    token: str | None,
    title: str,
) -> None:
    """Post a coverage summary as a pull request comment."""
    config = get_config(ctx)
    if not dry_run:
        for value, flag in ((token, "--token"), (repo, "--repo"), (pr_number, "--pr")):
            if not value:
                fail(f"Error: {flag} is required when not using --dry-run")

    try:
        report = LcovParser(exclude).parse(lcov_file)
    except InstrumentError as e:
        fail(f"Error: {e.message}")

    body = render_summary(report, title=title, thresholds=config.report.coverage_thresholds)
    if dry_run:
        click.echo(body)
        return

    try:
        with spinner("Posting coverage comment"):
            post_pr_comment(
                body,
                repo=cast(str, repo),
                pr_number=cast(int, pr_number),
                token=cast(str, token),
                api_url=config.report.github_api_url,
                timeout=config.report.request_timeout_sec,
            )
    except InstrumentError as e:
        fail(f"Error: {e.message}")
    status(f"Posted coverage comment to PR #{pr_number} in {repo}", style="success")


if __name__ == "__main__":
    coverage_cli()
