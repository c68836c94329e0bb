"""Command-line interface for the user management service."""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from usermanagement.config import ConfigurationError, Settings, load_settings
from usermanagement.seed import SeedFetcher

logger = logging.getLogger("usermanagement.main")

_KNOWN_COMMANDS = {"serve", "fetch-seed"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User management service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=5000,
        help="Port for the HTTP API (default: 5000)",
    )
    serve_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML settings file (default: USER_MANAGEMENT_CONFIG or config/settings.yaml)",
    )
    serve_parser.add_argument(
        "--no-seed",
        action="store_true",
        help="Skip fetching initial users from the seed source on startup",
    )

    fetch_parser = subparsers.add_parser(
        "fetch-seed", help="Fetch the seed dataset once and print it"
    )
    fetch_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML settings file",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in _KNOWN_COMMANDS:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _load_settings(config_path: Path | None) -> Settings:
    try:
        return load_settings(config_path)
    except ConfigurationError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc


def _serve(settings: Settings, *, host: str, port: int, seed: bool) -> None:
    from usermanagement.api import create_app
    import uvicorn

    logger.info("Starting user management API on http://%s:%s", host, port)
    app = create_app(settings=settings, seed_on_startup=seed and settings.seed_on_startup)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())


def _fetch_seed(settings: Settings) -> int:
    fetcher = SeedFetcher(
        settings.seed_url,
        timeout=settings.seed_timeout,
        max_attempts=settings.seed_max_attempts,
    )
    users = fetcher.fetch_initial_users()
    if not users:
        print(f"No users could be fetched from {settings.seed_url}.")
        return 1

    print(f"{len(users)} user(s) fetched from {settings.seed_url}:")
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  Company")
    print("-" * 80)
    for user in users:
        print(f"{user.id:>4}  {user.name:<24}  {user.email:<32}  {user.company or '-'}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    settings = _load_settings(args.config)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "serve":
        _serve(settings, host=args.host, port=args.port, seed=not args.no_seed)
        return 0
    if args.command == "fetch-seed":
        return _fetch_seed(settings)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
