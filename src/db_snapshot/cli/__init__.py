"""CLI for database snapshot backup and restore.

Provides commands for profile management, taking and pruning snapshots,
and validating and restoring snapshot files.

Usage:
    db-snapshot use prod
    db-snapshot status
    db-snapshot profiles
    db-snapshot backup --type manual
    db-snapshot export -o snapshot.json
    db-snapshot validate snapshot.json
    db-snapshot restore snapshot.json --mode merge --yes
    db-snapshot restore-stored <history-id> --yes
    db-snapshot rollback --yes
    db-snapshot history --type auto
    db-snapshot download <history-id> -o copy.json
    db-snapshot delete <history-id> --yes
    db-snapshot prune --keep 7

Commands:
    use             - Set the active profile (.db-profile lock file)
    status          - Show current profile and snapshot settings
    profiles        - List available profiles
    backup          - Take a snapshot, store it, and record it in backup history
    export          - Export a snapshot to a local file without recording it
    validate        - Validate a snapshot file and show per-table counts
    restore         - Restore a snapshot file, after storing a safety backup
    restore-stored  - Restore a stored snapshot by its history id
    rollback        - Restore the newest safety backup
    history         - List recorded snapshots
    download        - Save a stored snapshot to a local file
    delete          - Delete a stored snapshot and its history entry
    prune           - Apply the retention policy
"""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from db_snapshot.backup.catalog import DEFAULT_CATALOG
from db_snapshot.backup.errors import SnapshotError
from db_snapshot.backup.report import RunReport
from db_snapshot.backup.validator import inspect_snapshot, load_snapshot
from db_snapshot.backup.writer import snapshot_file_name
from db_snapshot.config.loader import load_db_config
from db_snapshot.factory import (
    ProfileNotFoundError,
    get_active_profile_name,
    get_adapter,
    get_storage,
    read_profile_lock,
    write_profile_lock,
)
from db_snapshot.service import SAFETY_BACKUP_REASON, SnapshotService

console = Console()


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@asynccontextmanager
async def _open_service(args: argparse.Namespace) -> AsyncIterator[SnapshotService]:
    """Build a ``SnapshotService`` for the active profile and close it after use."""
    config = load_db_config()
    adapter = get_adapter(env_prefix=getattr(args, "env_prefix", ""), config=config)
    try:
        yield SnapshotService(adapter, get_storage(config.snapshot, adapter), config.snapshot)
    finally:
        await adapter.close()


def _print_report(report: RunReport) -> None:
    """Render a restore report as a table plus warnings."""
    table = Table(title="Restore Report", show_header=True, header_style="bold")
    table.add_column("Table", style="dim")
    table.add_column("Status")
    table.add_column("Written", justify="right")
    table.add_column("Skipped", justify="right")

    for s in report.success:
        table.add_row(s.table, "[green]ok[/green]", str(s.records_written), str(s.records_skipped))
    for e in report.errors:
        table.add_row(e.table, f"[red]{e.error}[/red]", str(e.records_written), "")
    for name in report.skipped:
        table.add_row(name, "[dim]empty[/dim]", "0", "")

    console.print(table)

    for w in report.warnings:
        console.print(f"[yellow]![/yellow] {w.table}: {w.message}")

    console.print(f"\n{report.summary()}")


def _confirm(prompt: str = "Continue?") -> bool:
    response = console.input(f"{prompt} \\[y/N] ")
    return response.lower() in ("y", "yes")


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Returns:
        0 on success, 1 on failure.
    """
    async with _open_service(args) as service:
        try:
            result = await service.run_backup(backup_type=args.type, created_by=args.created_by)
        except SnapshotError as e:
            console.print(f"[bold red]x[/bold red] Backup failed: {e}")
            return 1

    console.print(
        f"[bold green]v[/bold green] Stored [cyan]{result.storage_path}[/cyan] "
        f"({result.record_count} records from {result.table_count} tables, "
        f"{result.file_size} bytes)"
    )
    for error in result.errors:
        console.print(f"  [yellow]![/yellow] {error}")
    return 0


async def _async_export(args: argparse.Namespace) -> int:
    """Async implementation for export command.

    Returns:
        0 on success, 1 if any table could not be read.
    """
    async with _open_service(args) as service:
        export = await service.export()

    if args.output:
        output = Path(args.output)
    else:
        output = Path(snapshot_file_name(datetime.now(timezone.utc)))
    output.write_text(export.document.to_json(), encoding="utf-8")

    console.print(
        f"[bold green]v[/bold green] Exported {export.record_count} records "
        f"from {export.table_count} tables to [cyan]{output}[/cyan]"
    )
    for error in export.errors:
        console.print(f"  [yellow]![/yellow] {error}")
    return 1 if export.errors else 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Returns:
        0 when every table restored or was empty, 1 otherwise.
    """
    try:
        document = load_snapshot(args.backup_path)
    except SnapshotError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1

    if not args.yes:
        console.print(f"Restore [cyan]{args.backup_path}[/cyan] ({document.created_at})")
        console.print(f"  Mode: [bold]{args.mode}[/bold]")
        if args.mode == "replace":
            console.print(
                "  [yellow]WARNING: existing rows of every restored table are deleted![/yellow]"
            )
        if args.safety_backup:
            console.print("  A safety backup is stored first; undo with: db-snapshot rollback")
        if not _confirm():
            console.print("Cancelled.")
            return 0

    async with _open_service(args) as service:
        try:
            report = await service.run_restore(
                document, mode=args.mode, safety_backup=args.safety_backup
            )
        except SnapshotError as e:
            console.print(f"[bold red]x[/bold red] Safety backup failed, nothing restored: {e}")
            return 1

    if service.safety_backup:
        console.print(
            f"Safety backup: [cyan]{service.safety_backup.storage_path}[/cyan] "
            f"(id {service.safety_backup.history_id})"
        )
    _print_report(report)
    if report.has_errors and service.safety_backup:
        console.print("[yellow]Roll back with:[/yellow] [cyan]db-snapshot rollback[/cyan]")
    return 1 if report.has_errors else 0


async def _async_restore_stored(args: argparse.Namespace) -> int:
    """Async implementation for restore-stored command.

    Returns:
        0 when every table restored or was empty, 1 otherwise.
    """
    async with _open_service(args) as service:
        try:
            entry = await service.get_entry(args.entry_id)
        except SnapshotError as e:
            console.print(f"[bold red]x[/bold red] {e}")
            return 1

        if not args.yes:
            console.print(f"Restore stored backup [cyan]{entry.backup_name}[/cyan]")
            console.print(f"  Mode: [bold]{args.mode}[/bold]")
            if not _confirm():
                console.print("Cancelled.")
                return 0

        try:
            report = await service.restore_stored(args.entry_id, mode=args.mode)
        except SnapshotError as e:
            console.print(f"[bold red]x[/bold red] Restore failed: {e}")
            return 1

    _print_report(report)
    return 1 if report.has_errors else 0


async def _async_rollback(args: argparse.Namespace) -> int:
    """Async implementation for rollback command.

    Returns:
        0 when the safety backup was restored cleanly, 1 otherwise.
    """
    async with _open_service(args) as service:
        entry = await service.latest_safety_backup()
        if entry is None:
            console.print("[yellow]No safety backup available.[/yellow]")
            return 1

        if not args.yes:
            console.print(
                f"Roll back to [cyan]{entry.backup_name}[/cyan], "
                "the data from before the last restore"
            )
            if not _confirm():
                console.print("Cancelled.")
                return 0

        try:
            report = await service.rollback()
        except SnapshotError as e:
            console.print(f"[bold red]x[/bold red] Rollback failed: {e}")
            return 1

    _print_report(report)
    return 1 if report.has_errors else 0


async def _async_history(args: argparse.Namespace) -> int:
    """Async implementation for history command."""
    async with _open_service(args) as service:
        entries = await service.history.list(backup_type=args.type)

    table = Table(title="Backup History", show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Created")
    table.add_column("Type")
    table.add_column("Name", style="cyan")
    table.add_column("Tables", justify="right")
    table.add_column("Records", justify="right")
    table.add_column("Size", justify="right")

    for entry in entries:
        name = entry.backup_name
        if entry.metadata.get("reason") == SAFETY_BACKUP_REASON:
            name += " [dim](safety)[/dim]"
        table.add_row(
            entry.id or "",
            entry.created_at.isoformat(timespec="seconds") if entry.created_at else "",
            entry.backup_type,
            name,
            str(entry.table_count),
            str(entry.record_count),
            str(entry.file_size),
        )

    console.print(table)
    return 0


async def _async_download(args: argparse.Namespace) -> int:
    """Async implementation for download command.

    Returns:
        0 on success, 1 if the backup could not be read.
    """
    async with _open_service(args) as service:
        try:
            entry, data = await service.download(args.entry_id)
        except SnapshotError as e:
            console.print(f"[bold red]x[/bold red] Download failed: {e}")
            return 1

    output = Path(args.output) if args.output else Path(entry.backup_name)
    output.write_bytes(data)
    console.print(f"[bold green]v[/bold green] Saved {len(data)} bytes to [cyan]{output}[/cyan]")
    return 0


async def _async_delete(args: argparse.Namespace) -> int:
    """Async implementation for delete command.

    Returns:
        0 when the history entry was deleted, 1 otherwise.
    """
    async with _open_service(args) as service:
        try:
            entry = await service.get_entry(args.entry_id)
        except SnapshotError as e:
            console.print(f"[bold red]x[/bold red] {e}")
            return 1

        if not args.yes:
            if entry.storage_path:
                console.print(f"Delete [cyan]{entry.backup_name}[/cyan] (file and history entry)")
            else:
                console.print(
                    f"Remove record [cyan]{entry.backup_name}[/cyan] (file is not in storage)"
                )
            if not _confirm():
                console.print("Cancelled.")
                return 0

        try:
            result = await service.delete_backup(args.entry_id)
        except SnapshotError as e:
            console.print(f"[bold red]x[/bold red] Delete failed: {e}")
            return 1

    if result.storage_error:
        console.print(f"  [yellow]![/yellow] Storage delete failed: {result.storage_error}")
    console.print(f"[bold green]v[/bold green] Deleted {entry.backup_name}")
    return 0


async def _async_prune(args: argparse.Namespace) -> int:
    """Async implementation for prune command.

    Returns:
        0 when both storage and history cleanup succeeded, 1 otherwise.
    """
    async with _open_service(args) as service:
        result = await service.prune(backup_type=args.type, keep=args.keep)

    console.print(f"Deleted {len(result.evicted)} old {args.type} backups")
    if result.storage_error:
        console.print(f"  [yellow]![/yellow] Storage cleanup failed: {result.storage_error}")
    for error in result.history_errors:
        console.print(f"  [yellow]![/yellow] History cleanup failed: {error}")
    return 0 if result.complete else 1


# ============================================================================
# Sync command wrappers (use, status, profiles, validate are local only)
# ============================================================================


def _run(coro_fn, args: argparse.Namespace) -> int:
    """Run an async command, reporting configuration errors."""
    try:
        return asyncio.run(coro_fn(args))
    except (FileNotFoundError, ProfileNotFoundError, KeyError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1


def cmd_backup(args: argparse.Namespace) -> int:
    """Take a snapshot of the active profile.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return _run(_async_backup, args)


def cmd_export(args: argparse.Namespace) -> int:
    """Export a snapshot to a local file."""
    return _run(_async_export, args)


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a snapshot file into the active profile."""
    return _run(_async_restore, args)


def cmd_restore_stored(args: argparse.Namespace) -> int:
    """Restore a stored snapshot by its history id."""
    return _run(_async_restore_stored, args)


def cmd_rollback(args: argparse.Namespace) -> int:
    """Restore the newest safety backup."""
    return _run(_async_rollback, args)


def cmd_history(args: argparse.Namespace) -> int:
    """List recorded snapshots."""
    return _run(_async_history, args)


def cmd_download(args: argparse.Namespace) -> int:
    """Save a stored snapshot to a local file."""
    return _run(_async_download, args)


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete a stored snapshot and its history entry."""
    return _run(_async_delete, args)


def cmd_prune(args: argparse.Namespace) -> int:
    """Apply the retention policy."""
    return _run(_async_prune, args)


def cmd_use(args: argparse.Namespace) -> int:
    """Set the active profile.

    Returns:
        0 on success, 1 if db.toml or the profile is missing.
    """
    try:
        config = load_db_config()
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if args.profile not in config.profiles:
        console.print(f"[red]Error: profile '{args.profile}' not found in db.toml[/red]")
        console.print(f"[dim]Available:[/dim] {', '.join(config.profiles)}")
        return 1

    previous = read_profile_lock()
    write_profile_lock(args.profile)
    console.print(
        f"[bold green]v[/bold green] Using profile: [bold cyan]{args.profile}[/bold cyan]"
    )
    if previous and previous != args.profile:
        console.print(f"[dim]Switched from[/dim] [bold]{previous}[/bold]")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show current profile and snapshot settings.

    Reads only local files (lock file and TOML config) -- no database calls.

    Returns:
        0 always (informational command).
    """
    env_prefix = getattr(args, "env_prefix", "")
    try:
        profile = get_active_profile_name(env_prefix=env_prefix)
    except ProfileNotFoundError:
        console.print("[yellow]No active profile.[/yellow]")
        console.print("[dim]Run:[/dim] [cyan]db-snapshot use <name>[/cyan]")
        return 0

    table = Table(title="Snapshot Status", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")

    table.add_row("Current profile", f"[bold cyan]{profile}[/bold cyan]")
    env_var = f"{env_prefix}DB_PROFILE"
    source = env_var if os.environ.get(env_var) else ".db-profile"
    table.add_row("Profile source", source)

    try:
        config = load_db_config()
        if profile in config.profiles:
            p = config.profiles[profile]
            table.add_row("Provider", p.provider)
            if p.description:
                table.add_row("Description", p.description)
        s = config.snapshot
        location = s.bucket if s.storage == "supabase" else s.storage_path
        table.add_row("Storage", f"{s.storage} ({location})")
        table.add_row("Retention", f"{s.retention_keep} auto backups")
    except FileNotFoundError:
        table.add_row("Warning", "[yellow]db.toml not found[/yellow]")

    console.print(table)
    return 0


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Returns:
        0 on success, 1 if db.toml not found.
    """
    try:
        config = load_db_config()
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    current = read_profile_lock()

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        table.add_row(
            marker,
            f"[bold cyan]{name}[/bold cyan]" if name == current else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = current profile")

    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a snapshot file without touching the database.

    Returns:
        0 if the file is a valid snapshot, 1 otherwise.
    """
    console.print(f"Validating: [cyan]{args.backup_path}[/cyan]")
    try:
        document = load_snapshot(args.backup_path)
    except SnapshotError as e:
        console.print(f"\n[bold red]x[/bold red] Backup is invalid: {e}")
        return 1

    info = inspect_snapshot(document, DEFAULT_CATALOG)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Table", style="dim")
    table.add_column("Records", justify="right")
    for name, count in info["counts"].items():
        table.add_row(name, str(count))
    console.print(table)

    console.print(f"Version {info['version']}, taken {info['timestamp']}")
    console.print(f"{info['record_count']} records in {len(info['counts'])} tables")

    for warning in info["warnings"]:
        console.print(f"  [yellow]![/yellow] {warning}")

    if info["warnings"]:
        console.print("\n[bold green]v[/bold green] Backup is valid (with warnings)")
    else:
        console.print("\n[bold green]v[/bold green] Backup is valid")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the ``db-snapshot`` argument parser."""
    parser = argparse.ArgumentParser(
        prog="db-snapshot",
        description="Relational snapshot backup and restore",
    )

    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_use = subparsers.add_parser("use", help="Set the active profile")
    p_use.add_argument("profile", help="Profile name from db.toml")
    p_use.set_defaults(func=cmd_use)

    p_status = subparsers.add_parser("status", help="Show current profile and settings")
    p_status.set_defaults(func=cmd_status)

    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    p_backup = subparsers.add_parser("backup", help="Take and store a snapshot")
    p_backup.add_argument(
        "--type",
        choices=["manual", "auto"],
        default="manual",
        help="Backup type; auto runs apply retention (default: manual)",
    )
    p_backup.add_argument(
        "--created-by",
        default=None,
        help="User id recorded as the backup owner (auto default: first admin)",
    )
    p_backup.set_defaults(func=cmd_backup)

    p_export = subparsers.add_parser("export", help="Export a snapshot to a local file")
    p_export.add_argument(
        "--output",
        "-o",
        help="Output file path (default: backup_<timestamp>.json)",
    )
    p_export.set_defaults(func=cmd_export)

    p_validate = subparsers.add_parser("validate", help="Validate a snapshot file")
    p_validate.add_argument("backup_path", help="Path to snapshot JSON file")
    p_validate.set_defaults(func=cmd_validate)

    p_restore = subparsers.add_parser("restore", help="Restore a snapshot file")
    p_restore.add_argument("backup_path", help="Path to snapshot JSON file")
    p_restore.add_argument(
        "--mode",
        "-m",
        choices=["replace", "merge"],
        default="replace",
        help="replace clears each table first; merge upserts by id (default: replace)",
    )
    p_restore.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip confirmation prompt",
    )
    p_restore.add_argument(
        "--safety-backup",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Store an automatic backup of the current data first (default: on)",
    )
    p_restore.set_defaults(func=cmd_restore)

    p_restore_stored = subparsers.add_parser(
        "restore-stored", help="Restore a stored snapshot by history id"
    )
    p_restore_stored.add_argument("entry_id", help="Backup history id (see: history)")
    p_restore_stored.add_argument(
        "--mode",
        "-m",
        choices=["replace", "merge"],
        default="replace",
        help="replace clears each table first; merge upserts by id (default: replace)",
    )
    p_restore_stored.add_argument(
        "--yes", "-y", action="store_true", help="Skip confirmation prompt"
    )
    p_restore_stored.set_defaults(func=cmd_restore_stored)

    p_rollback = subparsers.add_parser("rollback", help="Restore the newest safety backup")
    p_rollback.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    p_rollback.set_defaults(func=cmd_rollback)

    p_history = subparsers.add_parser("history", help="List recorded snapshots")
    p_history.add_argument(
        "--type",
        choices=["manual", "auto"],
        default=None,
        help="Only show this backup type",
    )
    p_history.set_defaults(func=cmd_history)

    p_download = subparsers.add_parser("download", help="Save a stored snapshot to a file")
    p_download.add_argument("entry_id", help="Backup history id (see: history)")
    p_download.add_argument(
        "--output",
        "-o",
        help="Output file path (default: the backup name)",
    )
    p_download.set_defaults(func=cmd_download)

    p_delete = subparsers.add_parser("delete", help="Delete a stored snapshot")
    p_delete.add_argument("entry_id", help="Backup history id (see: history)")
    p_delete.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    p_delete.set_defaults(func=cmd_delete)

    p_prune = subparsers.add_parser("prune", help="Apply the retention policy")
    p_prune.add_argument(
        "--type",
        choices=["manual", "auto"],
        default="auto",
        help="Backup type to prune (default: auto)",
    )
    p_prune.add_argument(
        "--keep",
        type=int,
        default=None,
        help="Number of newest backups to keep (default: retention_keep)",
    )
    p_prune.set_defaults(func=cmd_prune)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
