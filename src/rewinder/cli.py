# src/rewinder/cli.py
"""Rewinder Command Line Interface.

Entry point for the rewinder CLI tool.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import typer
from pydantic import ValidationError

from rewinder import __version__
from rewinder.contracts.config import RuntimeConfig
from rewinder.contracts.enums import IdentityKind
from rewinder.contracts.identity import RecordIdentity
from rewinder.core.config import RewinderSettings, load_settings, redact_url

if TYPE_CHECKING:
    from rewinder.core.history import HistoryDB
    from rewinder.core.retention import PruneResult

__all__ = ["app"]

DEFAULT_SETTINGS_FILE = "rewinder.yaml"

app = typer.Typer(
    name="rewinder",
    help="Rewinder: version history for mutable records.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"rewinder version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """Rewinder: version history for mutable records."""
    from rewinder.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")


def _load_cli_settings(settings_path: Path | None) -> RewinderSettings:
    """Settings from --settings, else ./rewinder.yaml, else defaults."""
    path = settings_path
    if path is None and Path(DEFAULT_SETTINGS_FILE).exists():
        path = Path(DEFAULT_SETTINGS_FILE)
    if path is None:
        return RewinderSettings()

    try:
        return load_settings(path)
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {path}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo(f"Error: Invalid settings in {path}:", err=True)
        for error in e.errors():
            loc = ".".join(str(part) for part in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


def _resolve_database_url(database: str | None, settings: RewinderSettings) -> str:
    """--database (URL or SQLite file path) overrides store.url from settings."""
    if database is None:
        return settings.store.url
    if "://" in database:
        return database
    db_path = Path(database).expanduser().resolve()
    # Fail fast on typoed paths instead of silently creating an empty database
    if not db_path.exists():
        typer.echo(f"Error: Database file not found: {db_path}", err=True)
        raise typer.Exit(1)
    return f"sqlite:///{db_path}"


def _open_history_db(url: str, runtime: RuntimeConfig) -> HistoryDB:
    from rewinder.contracts.errors import SchemaCompatibilityError
    from rewinder.core.history import HistoryDB

    try:
        return HistoryDB.from_url(url, schema=runtime.schema)
    except SchemaCompatibilityError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None


def _format_bool(value: bool) -> str:
    return "Yes" if value else "No"


def _echo_prune_result(result: PruneResult) -> None:
    if result.dry_run:
        typer.secho("DRY RUN MODE - No versions were actually deleted", fg=typer.colors.YELLOW)
        typer.echo()

    typer.echo(result.summary())
    typer.echo()

    if result.total_deleted > 0:
        action = "Would delete" if result.dry_run else "Deleted"
        typer.secho(f"{action} by record type:", fg=typer.colors.YELLOW)
        for record_type, count in sorted(result.deleted_by_type.items()):
            typer.echo(f"  - {record_type}: {count} version(s)")
        typer.echo()

    if result.total_preserved > 0:
        typer.secho("Preserved by record type:", fg=typer.colors.GREEN)
        for record_type, count in sorted(result.preserved_by_type.items()):
            typer.echo(f"  - {record_type}: {count} version(s)")
        typer.echo()

    if result.dry_run and result.total_deleted > 0:
        typer.echo("Run without --dry-run to actually delete these versions.")
    elif result.total_deleted > 0:
        typer.echo("Pruning completed successfully!")
    else:
        typer.echo("No versions matched the retention criteria for deletion.")


@app.command()
def prune(
    days: int | None = typer.Option(
        None,
        "--days",
        "-d",
        min=1,
        help="Keep only versions created within the last N days.",
    ),
    keep: int | None = typer.Option(
        None,
        "--keep",
        "-k",
        min=1,
        help="Keep only the last N versions per record.",
    ),
    record_type: str | None = typer.Option(
        None,
        "--type",
        "-t",
        help="Only prune versions of this record type.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would be deleted without deleting.",
    ),
    database: str | None = typer.Option(
        None,
        "--database",
        help="History database URL or SQLite file path (default: store.url from settings).",
    ),
    settings_path: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help=f"Settings YAML file (default: ./{DEFAULT_SETTINGS_FILE} if present).",
    ),
) -> None:
    """Prune old versions according to retention policy.

    When both --days and --keep are given, a version is only deleted if
    it is outside BOTH windows.

    Examples:

        # See what would be deleted
        rewinder prune --keep 50 --dry-run --database ./state/rewinder.db

        # Delete versions older than 90 days for one record type
        rewinder prune --days 90 --type invoice
    """
    from rewinder.core.history import VersionStore
    from rewinder.core.retention import PruneEngine

    settings = _load_cli_settings(settings_path)
    runtime = RuntimeConfig.from_settings(settings)

    typer.echo("Starting version pruning...")
    typer.echo()

    retention_days = days if days is not None else runtime.prune.retention_days
    retention_count = keep if keep is not None else runtime.prune.retention_count
    if retention_days is None and retention_count is None:
        typer.secho("No retention policy configured.", fg=typer.colors.YELLOW, err=True)
        typer.echo(
            "Set pruning.retention_days or pruning.retention_count in settings, or use --days or --keep.",
            err=True,
        )
        raise typer.Exit(1)

    typer.echo("Active retention policies:")
    if retention_days is not None:
        typer.echo(f"  - Keep versions from last {retention_days} days")
    if retention_count is not None:
        typer.echo(f"  - Keep last {retention_count} versions per record")
    if record_type:
        typer.echo(f"  - Target record type: {record_type}")
    typer.echo(f"  - Preserve version 1: {_format_bool(runtime.prune.keep_version_one)}")
    typer.echo(f"  - Preserve reconstruction snapshots: {_format_bool(runtime.prune.keep_snapshots)}")
    typer.echo()

    url = _resolve_database_url(database, settings)
    db = _open_history_db(url, runtime)
    try:
        engine = PruneEngine(VersionStore(db), runtime.prune)
        policy = engine.policy_from_settings(
            retention_days=retention_days,
            retention_count=retention_count,
            record_type=record_type,
            dry_run=dry_run,
        )
        result = engine.prune(policy)
    finally:
        db.close()

    _echo_prune_result(result)


@app.command()
def history(
    record_type: str = typer.Argument(..., help="Record type discriminator."),
    record_id: str = typer.Argument(..., help="Record primary key."),
    kind: IdentityKind | None = typer.Option(
        None,
        "--kind",
        help="Identity kind (default: integer for digit-only keys, otherwise detected).",
    ),
    database: str | None = typer.Option(
        None,
        "--database",
        help="History database URL or SQLite file path (default: store.url from settings).",
    ),
    settings_path: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help=f"Settings YAML file (default: ./{DEFAULT_SETTINGS_FILE} if present).",
    ),
) -> None:
    """List the stored versions of one record."""
    from rewinder.core.history import VersionStore

    if kind is not None:
        identity = RecordIdentity(kind=kind, value=record_id)
    elif record_id.isdigit():
        identity = RecordIdentity.from_key(int(record_id))
    else:
        identity = RecordIdentity.from_key(record_id)

    settings = _load_cli_settings(settings_path)
    runtime = RuntimeConfig.from_settings(settings)
    url = _resolve_database_url(database, settings)
    db = _open_history_db(url, runtime)
    try:
        versions = VersionStore(db).list_instance_versions(record_type, identity)
    finally:
        db.close()

    if not versions:
        typer.echo(f"No versions stored for {record_type}:{identity} in {redact_url(url)}")
        return

    typer.echo(f"{record_type}:{identity} ({identity.kind.value}), {len(versions)} version(s):")
    for version in versions:
        label = "snapshot" if version.is_snapshot else "diff"
        changed = ", ".join(sorted(version.new_values or {})) or "-"
        user = f"  user={version.user_id}" if version.user_id is not None else ""
        typer.echo(f"  v{version.version:<4} {version.created_at:%Y-%m-%d %H:%M:%S}  {label:<8}{user}  {changed}")
