"""Command-line interface for the task management service."""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from app.config import Settings, load_settings
from app.database import Database

logger = logging.getLogger("taskmanager.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        help="Path to a YAML settings file (default: TASKS_CONFIG or config/settings.yaml)",
    )

    parser = argparse.ArgumentParser(description="Task management API utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve", config=None)

    subparsers.add_parser("init-db", parents=[common], help="Initialise the task database")

    serve_parser = subparsers.add_parser("serve", parents=[common], help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=5000,
        help="Port for the HTTP API (default: 5000)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    return database


def _serve(*, settings: Settings, database: Database, host: str, port: int) -> None:
    from app.api import create_app
    import uvicorn

    logger.info("Starting task management API on http://%s:%s", host, port)
    logger.info("API documentation available at http://%s:%s/api-docs", host, port)

    app = create_app(settings=settings, database=database, initialize_database=False)
    uvicorn.run(app, host=host, port=port, log_level="info")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    config_path = Path(args.config).expanduser() if args.config else None
    try:
        settings = load_settings(config_path)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(settings=settings, database=database, host=args.host, port=args.port)
    elif args.command == "init-db":
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
