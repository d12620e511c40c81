# ruff: noqa: I001
"""CLI for the ``rideshare_import`` package.

This module exposes callable command handlers (``cmd_import_statement`` and
friends) and a Typer-based console interface. Environment variables (notably
``DATABASE_URL``) are loaded from a local ``.env`` using ``python-dotenv``
before delegating to command logic. Business logic lives in
``rideshare_import.api`` and the workflow modules.

Handlers print ``Error: ...`` to stderr and return ``1`` on failure.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .errors import ReconciliationConflict, StatementImportError
from .logging_setup import configure_logging
from .models import ConflictChoice, MergeDecision, StatementPeriod

type ConflictSelector = Callable[[ReconciliationConflict, str], ConflictChoice | None]


def _err(msg: str) -> int:
    print(f"Error: {msg}", file=sys.stderr)
    return 1


def _parse_period(label: str | None) -> StatementPeriod | None:
    if label is None:
        return None
    return StatementPeriod.from_label(label)


# ---- Command handlers --------------------------------------------------------


def cmd_import_statement(
    statement_path: str,
    *,
    decision: MergeDecision = MergeDecision.REPLACE_ALL,
    period: str | None = None,
    database_url: str | None = None,
    dry_run: bool = False,
    missing_shifts_csv: str | None = None,
) -> int:
    """Import one statement and print a summary.

    When ``missing_shifts_csv`` is given, transactions that matched no shift
    are written there as a shift-import template.
    """

    from .api import import_statement
    from .term_ui import describe_conflict

    try:
        stmt_period = _parse_period(period)
    except ValueError as e:
        return _err(f"invalid --period: {e}")

    try:
        report = import_statement(
            statement_path,
            decision=decision,
            period=stmt_period,
            database_url=database_url,
            dry_run=dry_run,
            on_progress=print,
        )
    except FileNotFoundError as e:
        return _err(str(e))
    except StatementImportError as e:
        return _err(str(e))
    except (RuntimeError, ValueError) as e:
        return _err(f"import failed: {e}")

    tx_counts = report.transactions.counts
    print(
        f"{report.period.label}: {tx_counts.added} added, {tx_counts.updated} updated, "
        f"{tx_counts.skipped} skipped, {tx_counts.removed} replaced"
        + (" (dry run, nothing saved)" if dry_run else "")
    )
    for failure in report.parse.failures:
        print(f"  skipped {failure}")
    flagged = sum(1 for t in report.parse.transactions if t.needs_manual_verification)
    if flagged:
        print(f"  {flagged} transaction(s) need manual verification")
    for conflict in report.conflicts:
        print(f"  conflict: {describe_conflict(conflict)}")

    if missing_shifts_csv and report.unmatched:
        try:
            Path(missing_shifts_csv).write_text(report.missing_shifts_csv(), encoding="utf-8")
        except OSError as e:
            return _err(f"could not write {missing_shifts_csv}: {e}")
        print(f"Wrote {len(report.unmatched)} unmatched transaction(s) to {missing_shifts_csv}")
    return 0


def cmd_restore_backup(
    backup_path: str,
    *,
    decision: MergeDecision = MergeDecision.ADD_MISSING_ONLY,
    database_url: str | None = None,
    dry_run: bool = False,
) -> int:
    from .api import restore_backup

    try:
        restore_backup(
            backup_path,
            decision=decision,
            database_url=database_url,
            dry_run=dry_run,
            on_progress=print,
        )
    except StatementImportError as e:
        return _err(str(e))
    except RuntimeError as e:
        return _err(f"restore failed: {e}")
    return 0


def cmd_export_backup(output_path: str, *, database_url: str | None = None) -> int:
    from db.client import session_scope

    from .backup import build_backup, write_backup
    from .persistence import load_expenses, load_shifts, load_transactions

    try:
        with session_scope(database_url=database_url) as session:
            backup = build_backup(
                load_shifts(session), load_expenses(session), load_transactions(session)
            )
        write_backup(output_path, backup)
    except OSError as e:
        return _err(f"could not write {output_path}: {e}")
    except RuntimeError as e:
        return _err(f"export failed: {e}")
    print(
        f"Wrote {len(backup.shifts)} shift(s), {len(backup.expenses)} expense(s), "
        f"{len(backup.transactions)} transaction(s) to {output_path}"
    )
    return 0


def _prompt_selector(conflict: ReconciliationConflict, summary: str) -> ConflictChoice | None:
    from .term_ui import select_conflict_choice

    print(summary)
    return select_conflict_choice(conflict)


def cmd_resolve_conflicts(
    *,
    database_url: str | None = None,
    choice: ConflictChoice | None = None,
    selector: ConflictSelector | None = None,
) -> int:
    """Walk pending manual-vs-imported conflicts and settle each one.

    ``choice`` applies one answer to every conflict; otherwise ``selector``
    (the interactive prompt by default) is asked per conflict. A ``None``
    answer leaves that conflict pending.
    """

    from db.client import session_scope
    from sqlalchemy.exc import SQLAlchemyError

    from .persistence import load_shifts, save_shifts
    from .reconcile import pending_conflicts, resolve_conflict
    from .term_ui import describe_conflict

    ask = selector or _prompt_selector
    try:
        with session_scope(database_url=database_url) as session:
            shifts = {s.id: s for s in load_shifts(session)}
            conflicts = pending_conflicts(shifts.values())
            if not conflicts:
                print("No pending conflicts.")
                return 0

            resolved = 0
            for conflict in conflicts:
                shift = shifts[conflict.shift_id]
                answer = choice or ask(
                    conflict, describe_conflict(conflict, shift_start=shift.start_at)
                )
                if answer is None:
                    continue
                shifts[shift.id] = resolve_conflict(shift, conflict, answer)
                resolved += 1
            save_shifts(session, (shifts[c.shift_id] for c in conflicts))
    except SQLAlchemyError as e:
        return _err(f"could not save resolutions: {e}")
    except RuntimeError as e:
        return _err(str(e))

    print(f"Resolved {resolved} of {len(conflicts)} conflict(s).")
    return 0


def cmd_missing_shifts(
    statement_path: str,
    *,
    output_path: str | None = None,
    period: str | None = None,
    database_url: str | None = None,
) -> int:
    """Write (or print) the shift template for transactions with no shift."""

    from .api import import_statement

    try:
        report = import_statement(
            statement_path,
            period=_parse_period(period),
            database_url=database_url,
            dry_run=True,
        )
    except FileNotFoundError as e:
        return _err(str(e))
    except StatementImportError as e:
        return _err(str(e))
    except (RuntimeError, ValueError) as e:
        return _err(f"missing-shifts failed: {e}")

    text = report.missing_shifts_csv()
    if output_path is None:
        sys.stdout.write(text)
        return 0
    try:
        Path(output_path).write_text(text, encoding="utf-8")
    except OSError as e:
        return _err(f"could not write {output_path}: {e}")
    print(f"Wrote {len(report.unmatched)} unmatched transaction(s) to {output_path}")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import Uber weekly statements, match them to logged shifts and reconcile "
        "imported earnings. Loads DATABASE_URL from a local .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
STATEMENT_OPTION: OptionInfo = typer.Option(
    ...,
    "--statement",
    help="Path to an Uber statement (PDF or CSV)",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
PERIOD_OPTION: OptionInfo = typer.Option(
    None,
    "--period",
    help="Statement period when the document lacks one, e.g. 'Aug 4, 2025 - Aug 11, 2025'.",
)


@app.command("import-statement")
def import_statement_cmd(
    statement: Annotated[Path, STATEMENT_OPTION],
    *,
    decision: MergeDecision = typer.Option(
        MergeDecision.REPLACE_ALL, help="Policy for a statement period imported before."
    ),
    period: str | None = PERIOD_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
    dry_run: bool = typer.Option(False, help="Parse, match and reconcile without saving."),
    missing_shifts_csv: Path | None = typer.Option(
        None, help="Write unmatched transactions here as a shift-import CSV."
    ),
) -> None:
    """Import a statement into the database."""

    raise typer.Exit(
        cmd_import_statement(
            str(statement),
            decision=decision,
            period=period,
            database_url=database_url,
            dry_run=dry_run,
            missing_shifts_csv=str(missing_shifts_csv) if missing_shifts_csv else None,
        )
    )


@app.command("restore-backup")
def restore_backup_cmd(
    backup: Annotated[Path, typer.Option(..., "--backup", help="Backup JSON file")],
    *,
    decision: MergeDecision = typer.Option(
        MergeDecision.ADD_MISSING_ONLY, help="How to treat shifts/expenses already stored."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
    dry_run: bool = typer.Option(False, help="Report counts without saving."),
) -> None:
    """Restore shifts, expenses and statement transactions from a backup."""

    raise typer.Exit(
        cmd_restore_backup(
            str(backup), decision=decision, database_url=database_url, dry_run=dry_run
        )
    )


@app.command("export-backup")
def export_backup_cmd(
    output: Annotated[Path, typer.Option(..., "--output", help="Backup JSON file to write")],
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Write every stored record to a backup JSON file."""

    raise typer.Exit(cmd_export_backup(str(output), database_url=database_url))


@app.command("resolve-conflicts")
def resolve_conflicts_cmd(
    *,
    database_url: str | None = DATABASE_URL_OPTION,
    keep_manual: bool = typer.Option(False, help="Keep the manual value for every conflict."),
    accept_imported: bool = typer.Option(
        False, help="Accept the imported value for every conflict."
    ),
) -> None:
    """Review shifts whose manual tips/tolls exceed the imported totals."""

    if keep_manual and accept_imported:
        raise typer.Exit(_err("--keep-manual and --accept-imported are mutually exclusive"))
    choice = None
    if keep_manual:
        choice = ConflictChoice.KEEP_MANUAL
    elif accept_imported:
        choice = ConflictChoice.ACCEPT_IMPORTED
    raise typer.Exit(cmd_resolve_conflicts(database_url=database_url, choice=choice))


@app.command("missing-shifts")
def missing_shifts_cmd(
    statement: Annotated[Path, STATEMENT_OPTION],
    *,
    output: Path | None = typer.Option(None, help="CSV file to write (stdout when omitted)."),
    period: str | None = PERIOD_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Build a shift-import CSV for statement transactions with no shift."""

    raise typer.Exit(
        cmd_missing_shifts(
            str(statement),
            output_path=str(output) if output else None,
            period=period,
            database_url=database_url,
        )
    )


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    log_level: str | None = typer.Option(
        None, help="Logging level (defaults to RIDESHARE_IMPORT_LOG_LEVEL or INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    # Running as a module: `python -m rideshare_import.cli`
    app()
