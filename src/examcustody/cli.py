"""CLI entry point for examcustody operators.

Commands:
- serve: run the REST API under uvicorn
- enroll: create registrations for a timetable or a single exam entry
- stats: print a batch's submission and grading progress
- history: print a batch's chain-of-custody entries
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from examcustody.config import ConfigError, CustodyConfig, load_config
from examcustody.engine import CustodyEngine
from examcustody.logging import setup_logging
from examcustody.state_store import CustodyError


def _prepare(config_path: Path | None, db_path: str | None, verbose: bool) -> CustodyConfig:
    """Load configuration and start logging, exiting on configuration errors."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    if db_path is not None:
        config.database.path = db_path
    if not verbose:
        # Command output stays clean; log lines still reach the files
        config.logging.console = False
    setup_logging(config.logging, verbose=verbose)
    return config


config_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to examcustody.yaml (defaults to ./examcustody.yaml if present)",
)
db_option = click.option(
    "--db",
    "db_path",
    type=str,
    default=None,
    help="SQLite database path (overrides configuration)",
)
verbose_option = click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")


@click.group()
@click.version_option(package_name="examcustody")
def main() -> None:
    """Exam script registration and chain-of-custody tools."""
    pass


@main.command()
@config_option
@db_option
@verbose_option
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port")
def serve(
    config_path: Path | None, db_path: str | None, verbose: bool, host: str, port: int
) -> None:
    """Serve the REST API."""
    import uvicorn  # noqa: PLC0415

    from examcustody.api.app import create_app  # noqa: PLC0415

    config = _prepare(config_path, db_path, verbose)
    click.echo(f"Serving on http://{host}:{port} (database: {config.database.path})")
    uvicorn.run(create_app(config=config), host=host, port=port, log_level="info")


@main.command()
@config_option
@db_option
@verbose_option
@click.option("--timetable", "timetable_id", default=None, help="Enroll every entry of a timetable")
@click.option("--exam-entry", "exam_entry_id", default=None, help="Enroll a single exam entry")
def enroll(
    config_path: Path | None,
    db_path: str | None,
    verbose: bool,
    timetable_id: str | None,
    exam_entry_id: str | None,
) -> None:
    """Create exam registrations and batches."""
    if (timetable_id is None) == (exam_entry_id is None):
        click.echo("Error: pass exactly one of --timetable or --exam-entry", err=True)
        sys.exit(2)

    config = _prepare(config_path, db_path, verbose)
    engine = CustodyEngine.from_config(config)
    try:
        if exam_entry_id is not None:
            result = engine.enroller.enroll_for_exam_entry(exam_entry_id)
            click.echo(f"Exam entry {result.exam_entry_id}")
            click.echo(f"  Eligible students: {result.eligible_students}")
            click.echo(f"  Registrations created: {result.registrations_created}")
            click.echo(f"  Batch: {result.batch_script_id}")
            return

        assert timetable_id is not None
        report = engine.enroller.enroll_for_timetable(timetable_id, show_progress=True)
        click.echo(f"Timetable {timetable_id}")
        click.echo(
            f"  Entries: {report.successful_entries}/{report.entries_processed} succeeded"
        )
        click.echo(f"  Registrations created: {report.registrations_created}")
        click.echo(f"  Batches created: {report.batch_scripts_created}")
        for outcome in report.outcomes:
            if not outcome.success:
                click.echo(f"  FAILED {outcome.exam_entry_id}: {outcome.message}", err=True)
        if report.failed_entries:
            sys.exit(1)
    except CustodyError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        engine.close()


@main.command()
@config_option
@db_option
@click.argument("batch_id")
def stats(config_path: Path | None, db_path: str | None, batch_id: str) -> None:
    """Print submission and grading progress for a batch."""
    config = _prepare(config_path, db_path, verbose=False)
    engine = CustodyEngine.from_config(config)
    try:
        s = engine.registry.statistics(batch_id)
    except CustodyError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        engine.close()

    click.echo(f"Batch {s.batch_id} [{s.status.value}]")
    click.echo(f"  Registered: {s.total_registered}")
    click.echo(f"  Submitted:  {s.scripts_submitted} ({s.submission_rate:.2f}%)")
    click.echo(f"  Pending:    {s.pending}")
    click.echo(f"  Graded:     {s.scripts_graded} ({s.grading_progress:.2f}%)")


@main.command()
@config_option
@db_option
@click.option("--limit", default=100, show_default=True, type=int, help="Max entries")
@click.argument("batch_id")
def history(config_path: Path | None, db_path: str | None, limit: int, batch_id: str) -> None:
    """Print chain-of-custody entries for a batch, most recent first."""
    config = _prepare(config_path, db_path, verbose=False)
    engine = CustodyEngine.from_config(config)
    try:
        movements = engine.submissions.batch_history(batch_id, limit=limit)
    except CustodyError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        engine.close()

    if not movements:
        click.echo("No entries.")
        return
    for m in movements:
        target = f"script {m.script_id}" if m.script_id else "batch"
        line = f"{m.timestamp:%Y-%m-%d %H:%M:%S}  {m.type:<24} {target} -> {m.to_user_id}"
        if m.location:
            line += f" @ {m.location}"
        if m.notes:
            line += f"  ({m.notes})"
        click.echo(line)


if __name__ == "__main__":
    main()
