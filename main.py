"""Command-line interface for the to-do service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
        venv_dir / "Scripts" / "python.exe",
        venv_dir / "Scripts" / "python",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


if __name__ == "__main__":
    _bootstrap_virtualenv()

from todoapp.config import Settings, load_settings
from todoapp.database import Database
from todoapp.users import CredentialStore, ensure_demo_account

logger = logging.getLogger("todoapp.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Personal to-do list service")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: TODO_CONFIG_PATH or config/todo.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the database tables and the demo account")
    subparsers.add_parser("users", help="List registered accounts")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=5000,
        help="Port for the HTTP API (default: 5000)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "users"}

    # Global options come before the sub-command; find the first positional.
    prefix: list[str] = []
    rest = list(args_list)
    while rest and (rest[0] == "--config" or rest[0].startswith("--config=")):
        width = 2 if rest[0] == "--config" else 1
        prefix.extend(rest[:width])
        rest = rest[width:]

    if not rest:
        rest = ["serve"]
    else:
        first = rest[0]
        if first in ("-h", "--help"):
            return parser.parse_args([*prefix, *rest])
        if first not in known_commands:
            if any(flag in rest for flag in ("-h", "--help")):
                return parser.parse_args([*prefix, *rest])
            rest = ["serve", *rest]

    return parser.parse_args([*prefix, *rest])


def _initialise_database(settings: Settings, *, seed_demo: bool = False) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    if seed_demo:
        ensure_demo_account(CredentialStore(database), settings)
    return database


def _serve(*, settings: Settings, database: Database, host: str, port: int) -> None:
    from todoapp.application import create_application
    import uvicorn

    logger.info("Starting to-do API on http://%s:%s/api", host, port)

    app = create_application(settings=settings, backend=database)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _list_users(database: Database) -> None:
    users = CredentialStore(database).list_all()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':<32}  {'Username':<20}  {'Email':<32}  Created")
    print("-" * 110)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{user.id:<32}  {user.username:<20}  {user.email:<32}  {created}")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = load_settings(Path(args.config).expanduser() if args.config else None)
    database = _initialise_database(settings, seed_demo=args.command == "init-db")

    if args.command == "serve":
        _serve(settings=settings, database=database, host=args.host, port=args.port)
    elif args.command == "users":
        _list_users(database)
    elif args.command == "init-db":
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
