"""Operator command line for the Daily Vibe backend.

Usage:
    # Run the API server
    daily-vibe serve --port 3000

    # Create tables and apply pending migrations
    daily-vibe update-schema

    # Remove duplicate tasks (keeps the newest per user and title)
    daily-vibe cleanup-duplicates --dry-run
    daily-vibe cleanup-duplicates

    # Remove attachment links whose task or file is gone
    daily-vibe sweep-orphans

    # Remove expired and revoked login sessions
    daily-vibe cleanup-sessions

    # Snapshot and restore the critical files
    daily-vibe backup
    daily-vibe restore                 # list backups
    daily-vibe restore backup-<stamp>

    # Check files, configuration and database connectivity
    daily-vibe validate --skip-db

Environment variables are read as by the server (DATABASE_URL, SQLITE_PATH,
BACKUP_DIR, STATIC_DIR, ...). Exit code is 0 on success, 1 on failure.
"""

import argparse
import json
import logging
import shutil
import sys
from pathlib import Path

from daily_vibe import __version__
from daily_vibe.config import Settings, get_settings
from daily_vibe.db import Database
from daily_vibe.db.migrate import current_revision
from daily_vibe.errors import AppError
from daily_vibe.logging_config import configure_logging
from daily_vibe.models.base import utcnow
from daily_vibe.services.auth import cleanup_expired_sessions
from daily_vibe.services.maintenance import cleanup_duplicate_tasks, sweep_orphan_attachments

logger = logging.getLogger(__name__)

BACKUP_INFO = "backup-info.json"

# Static UI files the server cannot run without, relative to STATIC_DIR
UI_FILES = ["index.html", "css/main.css", "js/app.js"]


def _under(root: Path, path: str | Path) -> Path:
    path = Path(path)
    return path if path.is_absolute() else root / path


def _relative(root: Path, path: Path) -> str:
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


def required_files(settings: Settings, root: Path) -> list[str]:
    """Files that must exist for the app to serve its UI."""
    static_dir = _under(root, settings.STATIC_DIR)
    return [_relative(root, static_dir / name) for name in UI_FILES]


def critical_files(settings: Settings, root: Path) -> list[str]:
    """Files captured by a backup, relative to the project root."""
    files = required_files(settings, root) + [".env"]
    if settings.storage_backend == "sqlite":
        files.append(_relative(root, _under(root, settings.SQLITE_PATH)))
    return files


def list_backups(backup_dir: Path) -> list[dict]:
    """Backups under ``backup_dir``, newest first."""
    if not backup_dir.is_dir():
        return []

    backups = []
    for entry in backup_dir.iterdir():
        info_path = entry / BACKUP_INFO
        if not entry.is_dir() or not info_path.is_file():
            continue
        try:
            info = json.loads(info_path.read_text(encoding="utf-8"))
        except ValueError:
            logger.warning("Skipping backup with unreadable info", extra={"backup": entry.name})
            continue
        backups.append(
            {
                "name": entry.name,
                "path": str(entry),
                "timestamp": info.get("timestamp", ""),
                "version": info.get("version"),
                "files": info.get("files", []),
            }
        )
    return sorted(backups, key=lambda b: b["timestamp"], reverse=True)


def create_backup(settings: Settings, root: Path) -> Path:
    """Copy the critical files into a new ``backup-<timestamp>`` directory."""
    now = utcnow()
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S-%f")[:-3] + "Z"
    backup_path = _under(root, settings.BACKUP_DIR) / f"backup-{stamp}"
    backup_path.mkdir(parents=True, exist_ok=False)

    files = critical_files(settings, root)
    for name in files:
        source = root / name
        if not source.is_file():
            logger.warning("File not found, skipped", extra={"file": name})
            continue
        destination = backup_path / name
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, destination)
        logger.info("Backed up", extra={"file": name})

    info = {"timestamp": now.isoformat(), "files": files, "version": __version__}
    (backup_path / BACKUP_INFO).write_text(json.dumps(info, indent=2), encoding="utf-8")
    return backup_path


def restore_backup(settings: Settings, root: Path, name: str) -> list[str]:
    """Copy a backup's files back into place. Returns the files restored.

    Raises:
        FileNotFoundError: If there is no backup with that name
    """
    backup_dir = _under(root, settings.BACKUP_DIR)
    backup_path = backup_dir / name
    if Path(name).name != name or not (backup_path / BACKUP_INFO).is_file():
        raise FileNotFoundError(f"Backup not found: {name}")

    info = json.loads((backup_path / BACKUP_INFO).read_text(encoding="utf-8"))
    restored = []
    for file_name in info.get("files", []):
        source = backup_path / file_name
        if not source.is_file():
            logger.warning("File not found in backup", extra={"file": file_name})
            continue
        destination = root / file_name
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, destination)
        restored.append(file_name)
        logger.info("Restored", extra={"file": file_name})
    return restored


# -- commands -----------------------------------------------------------------


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    uvicorn.run(
        "daily_vibe.main:app",
        host=args.host or settings.HOST,
        port=args.port or settings.PORT,
        reload=args.reload,
        log_level=settings.LOG_LEVEL.lower(),
    )
    return 0


def cmd_update_schema(args: argparse.Namespace, settings: Settings) -> int:
    database = Database(settings)
    try:
        database.initialize()
        with database.connect() as connection:
            revision = current_revision(connection)
    finally:
        database.close()

    print(f"Schema is up to date ({database.backend}, revision {revision})")
    return 0


def cmd_cleanup_duplicates(args: argparse.Namespace, settings: Settings) -> int:
    database = Database(settings)
    try:
        database.initialize()
        with database.session_scope() as session:
            result = cleanup_duplicate_tasks(session, dry_run=args.dry_run)
    finally:
        database.close()

    verb = "Would delete" if args.dry_run else "Deleted"
    print("\n--- Duplicate Cleanup Summary ---")
    print(f"Total tasks: {result.total_tasks}")
    print(f"Titles with duplicates: {result.duplicate_groups}")
    print(f"{verb}: {result.deleted_count}")
    for task_id in result.deleted_ids:
        print(f"  - {task_id}")
    print(f"Remaining tasks: {result.remaining_tasks}")
    return 0


def cmd_sweep_orphans(args: argparse.Namespace, settings: Settings) -> int:
    database = Database(settings)
    try:
        database.initialize()
        with database.session_scope() as session:
            removed = sweep_orphan_attachments(session)
    finally:
        database.close()

    print(f"Removed {removed} orphan attachment link(s)")
    return 0


def cmd_cleanup_sessions(args: argparse.Namespace, settings: Settings) -> int:
    database = Database(settings)
    try:
        database.initialize()
        with database.session_scope() as session:
            removed = cleanup_expired_sessions(session)
    finally:
        database.close()

    print(f"Removed {removed} expired or revoked session(s)")
    return 0


def cmd_backup(args: argparse.Namespace, settings: Settings) -> int:
    backup_path = create_backup(settings, args.root)
    print(f"Backup completed: {backup_path}")
    return 0


def cmd_restore(args: argparse.Namespace, settings: Settings) -> int:
    if not args.name:
        backups = list_backups(_under(args.root, settings.BACKUP_DIR))
        if not backups:
            print("No backups found")
            return 1
        print("Available backups:")
        for backup in backups:
            print(f"  {backup['name']}  {backup['timestamp']}  v{backup['version']}")
        return 0

    try:
        restored = restore_backup(settings, args.root, args.name)
    except FileNotFoundError as exc:
        print(str(exc))
        return 1

    print(f"Restored {len(restored)} file(s) from {args.name}")
    return 0


def cmd_validate(args: argparse.Namespace, settings: Settings) -> int:
    failures = []

    for name in required_files(settings, args.root):
        if (args.root / name).is_file():
            print(f"Found: {name}")
        else:
            print(f"Missing: {name}")
            failures.append(f"missing file {name}")

    for problem in settings.validate():
        print(f"Config: {problem}")
        failures.append(problem)

    if not args.skip_db:
        database = Database(settings)
        try:
            database.initialize()
            connected = database.health_check()
        except AppError:
            connected = False
        finally:
            database.close()
        print(f"Database ({database.backend}): {'connected' if connected else 'unavailable'}")
        if not connected:
            failures.append("database unavailable")

    if failures:
        print(f"\nValidation failed: {len(failures)} problem(s)")
        return 1

    print("\nAll checks passed")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="daily-vibe",
        description="Operate the Daily Vibe backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Project root that relative paths resolve against (default: cwd)",
    )

    # Logging
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Reduce logging to warnings only",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")
    serve.set_defaults(func=cmd_serve)

    commands.add_parser(
        "update-schema", help="Create tables and apply pending migrations"
    ).set_defaults(func=cmd_update_schema)

    cleanup = commands.add_parser(
        "cleanup-duplicates", help="Keep only the newest task per user and title"
    )
    cleanup.add_argument(
        "--dry-run",
        action="store_true",
        help="Report duplicates without deleting anything",
    )
    cleanup.set_defaults(func=cmd_cleanup_duplicates)

    commands.add_parser(
        "sweep-orphans", help="Remove attachment links whose task or file is gone"
    ).set_defaults(func=cmd_sweep_orphans)

    commands.add_parser(
        "cleanup-sessions", help="Remove expired and revoked login sessions"
    ).set_defaults(func=cmd_cleanup_sessions)

    commands.add_parser("backup", help="Back up the critical files").set_defaults(func=cmd_backup)

    restore = commands.add_parser("restore", help="Restore a backup, or list backups")
    restore.add_argument("name", nargs="?", default=None, help="Backup directory name")
    restore.set_defaults(func=cmd_restore)

    validate = commands.add_parser("validate", help="Check files, configuration and database")
    validate.add_argument(
        "--skip-db",
        action="store_true",
        help="Do not try to reach the database",
    )
    validate.set_defaults(func=cmd_validate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entrypoint for the operator CLI."""
    args = build_parser().parse_args(argv)

    # Configure logging
    if args.verbose:
        configure_logging(logging.DEBUG)
    elif args.quiet:
        configure_logging(logging.WARNING)
    else:
        configure_logging(logging.INFO)

    settings = get_settings()
    try:
        return args.func(args, settings)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except AppError as e:
        logger.error(f"Command failed: {e.message}")
        return 1
    except Exception as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
