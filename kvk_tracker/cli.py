"""
KvK Tracker — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Open the SQLite database (schema applied on demand).
  4. Run the store / service operation.
  5. Report the result to stdout; domain errors print ``[ERROR]`` and exit 1.

Install and run::

    pip install -e .
    kvk-tracker --help
    kvk-tracker init-db
    kvk-tracker import-snapshot exports/pass4_start.csv --order 1
    kvk-tracker create-event kvk3 --name "KvK 3" --start <id> --end <id> --honor <id>
    kvk-tracker delta kvk3 --stat killPoints --limit 20
    kvk-tracker compare <id> <id> --stat power
    kvk-tracker history kvk3 178913422 --stat honorPoint
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

app = typer.Typer(
    name="kvk-tracker",
    help="KvK roster snapshot diffing and player progression CLI.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from kvk_tracker.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from kvk_tracker.utils.logging import configure_logging
    configure_logging(config.logging, debug=config.debug)


def _fail(message: str) -> typer.Exit:
    typer.echo(f"[ERROR] {message}", err=True)
    return typer.Exit(code=1)


@contextmanager
def _open_db(config, db_path: Optional[str] = None) -> Iterator:
    """Open the configured database with the schema in place."""
    from kvk_tracker.db.connection import get_connection
    from kvk_tracker.db.schema import apply_schema

    with get_connection(
        db_path or config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        yield conn


def _build_service(conn, config):
    from kvk_tracker.db.repositories.event_repo import KvkEventRepository
    from kvk_tracker.db.repositories.snapshot_repo import SnapshotRepository
    from kvk_tracker.engine.normalizer import RowNormalizer
    from kvk_tracker.engine.service import ProgressionService

    return ProgressionService(
        snapshots=SnapshotRepository(conn),
        events=KvkEventRepository(conn),
        normalizer=RowNormalizer(config.normalizer),
    )


def _resolve_import(config, file: Path) -> Path:
    """Fall back to ``data.imports_dir`` for a relative path missing from the cwd."""
    if file.exists() or file.is_absolute():
        return file
    candidate = Path(config.data.imports_dir) / file
    return candidate if candidate.exists() else file


def _resolve_export(config, raw: str) -> Path:
    """Place a bare file name (no directory part) under ``data.exports_dir``."""
    path = Path(raw)
    if path.is_absolute() or path.parent != Path("."):
        return path
    return Path(config.data.exports_dir) / path


def _parse_fight(raw: str):
    """Parse ``ID:START:END[:NAME]`` into a ``KvkFight``."""
    from kvk_tracker.models.event import KvkFight

    parts = raw.split(":", 3)
    if len(parts) < 3 or not parts[0].strip():
        raise ValueError(f"Invalid --fight '{raw}'. Expected ID:START:END[:NAME].")
    fight_id, start, end = (p.strip() for p in parts[:3])
    name = parts[3].strip() if len(parts) == 4 else fight_id
    return KvkFight(
        fight_id=fight_id,
        name=name,
        start_snapshot_id=start or None,
        end_snapshot_id=end or None,
    )


# ── Setup commands ────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite database and apply the schema.

    Safe to run multiple times; all DDL uses IF NOT EXISTS.
    """
    from kvk_tracker.db.schema import ALL_TABLE_NAMES

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with _open_db(config, target_path):
        pass

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all alias tables.",
    ),
) -> None:
    """Validate the configuration file and print parsed values."""
    config = _load_config_or_exit(config_path)
    norm = config.normalizer

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:     {config.database.db_path}")
    typer.echo(f"  Decimal separator: '{norm.decimal_separator}'")
    typer.echo(f"  Numeric ids:       {norm.numeric_ids}")
    typer.echo(f"  Statistics:        {', '.join(norm.stat_aliases)}")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


# ── Snapshot commands ─────────────────────────────────────────────────────────

@app.command("import-snapshot")
def import_snapshot(
    file: Path = typer.Argument(..., help="Roster export (.csv, comma/semicolon/tab)."),
    name: Optional[str] = typer.Option(None, "--name", help="Display name (default: file name)."),
    order: int = typer.Option(0, "--order", help="Chronological position of the snapshot."),
    snapshot_id: Optional[str] = typer.Option(None, "--id", help="Snapshot id (default: random)."),
    uploaded_at: Optional[str] = typer.Option(
        None,
        "--uploaded-at",
        help="Upload time, ISO 8601 (default: now, UTC).",
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Import one roster export file as a snapshot.

    The file is stored as-is; column recognition happens when a computation
    reads it. A header check is still run here so obviously wrong files are
    reported early (as a warning, not a failure).
    """
    from kvk_tracker.db.repositories.snapshot_repo import SnapshotRepository
    from kvk_tracker.engine.normalizer import RowNormalizer
    from kvk_tracker.errors import SchemaError
    from kvk_tracker.ingestion.roster_csv import parse_roster_csv
    from kvk_tracker.utils.time_utils import parse_timestamp

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        when = parse_timestamp(uploaded_at) if uploaded_at else None
        file = _resolve_import(config, file)
        snapshot = parse_roster_csv(
            file, snapshot_id=snapshot_id, name=name, order=order, uploaded_at=when
        )
    except (FileNotFoundError, ValueError) as exc:
        raise _fail(str(exc))

    try:
        columns = RowNormalizer(config.normalizer).resolve_columns(snapshot)
        typer.echo(
            f"  Columns: id='{columns.id_column}' name='{columns.name_column}' "
            f"alliance='{columns.alliance_column}' "
            f"stats={sorted(columns.stat_columns)}"
        )
    except SchemaError as exc:
        typer.echo(f"  [WARN] {exc}", err=True)

    with _open_db(config, db_path) as conn:
        repo = SnapshotRepository(conn)
        if repo.exists(snapshot.snapshot_id):
            raise _fail(f"Snapshot '{snapshot.snapshot_id}' already exists.")
        repo.insert(snapshot)

    typer.echo(f"[OK] Imported {snapshot.snapshot_id}: {len(snapshot.rows)} rows from {file.name}")


@app.command("list-snapshots")
def list_snapshots(
    event_id: Optional[str] = typer.Option(
        None,
        "--event",
        help="Only snapshots referenced by this event.",
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """List stored snapshots in chronological order."""
    from kvk_tracker.db.repositories.snapshot_repo import SnapshotRepository
    from kvk_tracker.reporting.formatters import format_snapshot_list

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        repo = SnapshotRepository(conn)
        snapshots = repo.list_snapshots(event_id) if event_id else repo.list_all()

    typer.echo(format_snapshot_list(snapshots))


@app.command("reorder-snapshots")
def reorder_snapshots(
    snapshot_ids: list[str] = typer.Argument(..., help="Snapshot ids in chronological order."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Assign order 0, 1, 2, ... to the given snapshots."""
    from kvk_tracker.db.repositories.snapshot_repo import SnapshotRepository

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        try:
            SnapshotRepository(conn).reorder(snapshot_ids)
        except KeyError as exc:
            raise _fail(f"Snapshot {exc} not found.")
        except ValueError as exc:
            raise _fail(str(exc))

    typer.echo(f"[OK] Reordered {len(snapshot_ids)} snapshot(s).")


@app.command("delete-snapshot")
def delete_snapshot(
    snapshot_id: str = typer.Argument(..., help="Snapshot to delete."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Delete a snapshot. Events referencing it lose that reference."""
    from kvk_tracker.db.repositories.snapshot_repo import SnapshotRepository

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        if not SnapshotRepository(conn).delete(snapshot_id):
            raise _fail(f"Snapshot '{snapshot_id}' not found.")

    typer.echo(f"[OK] Deleted snapshot {snapshot_id}.")


# ── Event commands ────────────────────────────────────────────────────────────

@app.command("create-event")
def create_event(
    event_id: str = typer.Argument(..., help="Event id, e.g. kvk3."),
    name: Optional[str] = typer.Option(None, "--name", help="Display name (default: event id)."),
    start: Optional[str] = typer.Option(None, "--start", help="Start snapshot id."),
    end: Optional[str] = typer.Option(None, "--end", help="End snapshot id."),
    honor: Optional[list[str]] = typer.Option(
        None,
        "--honor",
        help="Honor snapshot id. Repeatable; order is irrelevant.",
    ),
    fight: Optional[list[str]] = typer.Option(
        None,
        "--fight",
        help="Fight as ID:START:END[:NAME]. Repeatable.",
    ),
    public: bool = typer.Option(False, "--public", help="Mark the event as public."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Create or replace an event descriptor.

    Every referenced snapshot must already be imported.
    """
    from pydantic import ValidationError

    from kvk_tracker.db.repositories.event_repo import KvkEventRepository
    from kvk_tracker.db.repositories.snapshot_repo import SnapshotRepository
    from kvk_tracker.models.event import EventDescriptor
    from kvk_tracker.reporting.formatters import format_event
    from kvk_tracker.utils.time_utils import utcnow

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        event = EventDescriptor(
            event_id=event_id,
            name=name or event_id,
            start_snapshot_id=start,
            end_snapshot_id=end,
            honor_snapshot_ids=list(honor or []),
            fights=[_parse_fight(f) for f in fight or []],
            is_public=public,
            created_at=utcnow(),
        )
    except (ValueError, ValidationError) as exc:
        raise _fail(str(exc))

    with _open_db(config, db_path) as conn:
        snapshots = SnapshotRepository(conn)
        missing = [sid for sid in event.referenced_snapshot_ids() if not snapshots.exists(sid)]
        if missing:
            raise _fail(f"Unknown snapshot id(s): {missing}")
        KvkEventRepository(conn).upsert(event)

    typer.echo(format_event(event))
    typer.echo(f"[OK] Event {event_id} saved.")


@app.command("list-events")
def list_events(
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """List stored events with their snapshot references."""
    from kvk_tracker.db.repositories.event_repo import KvkEventRepository
    from kvk_tracker.reporting.formatters import format_event

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        events = KvkEventRepository(conn).list_events()

    if not events:
        typer.echo("  (no events stored)")
    for event in events:
        typer.echo(format_event(event))


@app.command("delete-event")
def delete_event(
    event_id: str = typer.Argument(..., help="Event to delete."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Delete an event descriptor. Its snapshots are kept."""
    from kvk_tracker.db.repositories.event_repo import KvkEventRepository

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        if not KvkEventRepository(conn).delete(event_id):
            raise _fail(f"Event '{event_id}' not found.")

    typer.echo(f"[OK] Deleted event {event_id}.")


# ── Analysis commands ─────────────────────────────────────────────────────────

@app.command("list-stats")
def list_stats(
    event_id: str = typer.Argument(..., help="Event id."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """List statistics present in every snapshot of an event."""
    from kvk_tracker.errors import KvkTrackerError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        try:
            tracked = _build_service(conn, config).list_tracked_statistics(event_id)
        except KvkTrackerError as exc:
            raise _fail(str(exc))

    if not tracked:
        typer.echo("  (no statistic is present in every snapshot)")
    for statistic in sorted(tracked):
        typer.echo(f"  {statistic}")


@app.command("delta")
def delta(
    event_id: str = typer.Argument(..., help="Event id."),
    statistic: str = typer.Option("honorPoint", "--stat", "-s", help="Statistic to diff."),
    fight_id: Optional[str] = typer.Option(
        None,
        "--fight",
        help="Diff a single fight's start/end instead of the whole event.",
    ),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Show only the top N players."),
    export_path: Optional[str] = typer.Option(
        None,
        "--export",
        help="Also write the full report (.csv or .json).",
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Per-player start-to-end change of one statistic, ranked."""
    from kvk_tracker.errors import KvkTrackerError
    from kvk_tracker.reporting.export import export_delta_report
    from kvk_tracker.reporting.formatters import format_delta_table

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        service = _build_service(conn, config)
        try:
            if fight_id:
                report = service.compute_fight_delta(event_id, fight_id, statistic)
            else:
                report = service.compute_delta(event_id, statistic)
        except KvkTrackerError as exc:
            raise _fail(str(exc))

    typer.echo(format_delta_table(report, limit=limit))

    if export_path:
        written = export_delta_report(report, _resolve_export(config, export_path))
        typer.echo(f"\n[OK] Exported {len(report.players)} rows to {written}")


@app.command("compare")
def compare(
    start_id: str = typer.Argument(..., help="Earlier snapshot id."),
    end_id: str = typer.Argument(..., help="Later snapshot id."),
    statistic: str = typer.Option("power", "--stat", "-s", help="Statistic to diff."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Show only the top N players."),
    export_path: Optional[str] = typer.Option(
        None,
        "--export",
        help="Also write the full report (.csv or .json).",
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Per-player change between any two snapshots, without an event."""
    from kvk_tracker.errors import KvkTrackerError
    from kvk_tracker.reporting.export import export_delta_report
    from kvk_tracker.reporting.formatters import format_delta_table

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        try:
            report = _build_service(conn, config).compare_snapshots(start_id, end_id, statistic)
        except KvkTrackerError as exc:
            raise _fail(str(exc))

    typer.echo(format_delta_table(report, limit=limit))

    if export_path:
        written = export_delta_report(report, _resolve_export(config, export_path))
        typer.echo(f"\n[OK] Exported {len(report.players)} rows to {written}")


@app.command("history")
def history(
    event_id: str = typer.Argument(..., help="Event id."),
    player_id: str = typer.Argument(..., help="Player id."),
    statistic: str = typer.Option("honorPoint", "--stat", "-s", help="Statistic to trace."),
    export_path: Optional[str] = typer.Option(None, "--export", help="Also write the series as CSV."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """A player's statistic across the event's honor snapshots."""
    from kvk_tracker.errors import KvkTrackerError
    from kvk_tracker.reporting.export import export_to_csv, flatten_history
    from kvk_tracker.reporting.formatters import format_history

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        try:
            result = _build_service(conn, config).compute_history(event_id, player_id, statistic)
        except KvkTrackerError as exc:
            raise _fail(str(exc))

    typer.echo(format_history(result))

    if export_path:
        written = export_to_csv(flatten_history(result), _resolve_export(config, export_path))
        typer.echo(f"\n[OK] Exported {len(result.points)} points to {written}")


@app.command("totals")
def totals(
    event_id: str = typer.Argument(..., help="Event id."),
    statistic: str = typer.Option("honorPoint", "--stat", "-s", help="Statistic to sum."),
    export_path: Optional[str] = typer.Option(None, "--export", help="Also write the series as CSV."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Event-wide total of a statistic per honor snapshot."""
    from kvk_tracker.errors import KvkTrackerError
    from kvk_tracker.reporting.export import export_to_csv, flatten_totals
    from kvk_tracker.reporting.formatters import format_totals

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        try:
            result = _build_service(conn, config).compute_totals(event_id, statistic)
        except KvkTrackerError as exc:
            raise _fail(str(exc))

    typer.echo(format_totals(result))

    if export_path:
        written = export_to_csv(flatten_totals(result), _resolve_export(config, export_path))
        typer.echo(f"\n[OK] Exported {len(result.points)} points to {written}")


@app.command("search")
def search(
    event_id: str = typer.Argument(..., help="Event id."),
    query: str = typer.Argument(..., help="Exact player id or part of a name."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Find players of an event by id or name."""
    from kvk_tracker.errors import KvkTrackerError
    from kvk_tracker.reporting.formatters import format_search_results

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        try:
            matches = _build_service(conn, config).search_players(event_id, query)
        except KvkTrackerError as exc:
            raise _fail(str(exc))

    typer.echo(format_search_results(matches))


if __name__ == "__main__":
    app()
