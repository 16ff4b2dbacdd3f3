"""Command-line interface for pysocialite configuration and debugging."""

from __future__ import annotations

import argparse
import asyncio
import sys

from pathlib import Path
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Sequence

    from .config import SocialiteSettings


def main(argv: Sequence[str] | None = None) -> int:
    """Run the main CLI entry point.

    Returns
    -------
    int
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="pysocialite",
        description="pysocialite configuration and OAuth2 debugging tools",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Show or export configuration",
    )
    config_group = config_parser.add_mutually_exclusive_group()
    config_group.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration (secrets redacted)",
    )
    config_group.add_argument(
        "--toml",
        action="store_true",
        help="Export configuration as TOML (secrets redacted)",
    )
    config_parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Output file path (default: stdout)",
    )

    # url command
    url_parser = subparsers.add_parser(
        "url",
        help="Print the authorization URL for a configured driver",
    )
    url_parser.add_argument("driver", help="Driver name, e.g. github")
    url_parser.add_argument(
        "--redirect",
        type=str,
        default=None,
        help="Override the configured redirect URL",
    )
    url_parser.add_argument(
        "--stateless",
        action="store_true",
        help="Build the URL without a state parameter",
    )

    args = parser.parse_args(argv)

    if args.command == "config":
        return handle_config(args)
    if args.command == "url":
        return handle_url(args)
    parser.print_help()
    return 0


def _load_settings() -> SocialiteSettings:
    from .config import get_settings
    from .log import configure_from_settings

    settings = get_settings()
    configure_from_settings(settings.log)
    return settings


def handle_config(args: argparse.Namespace) -> int:
    """Handle the config command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    settings = _load_settings()

    output = settings.to_toml() if args.toml else settings.show()

    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(f"Configuration written to {args.output}")
    else:
        print(output)

    return 0


def handle_url(args: argparse.Namespace) -> int:
    """Handle the url command.

    Prints the authorization URL and, for stateful drivers, the state
    the callback must carry.

    Returns
    -------
    int
        Exit code (1 if the driver cannot be built).
    """
    from .config import Config
    from .exceptions import SocialiteException
    from .flow import AuthFlow
    from .http import HttpOptions
    from .manager import SocialiteManager
    from .session import MemorySessionStore
    from .state import STATE_SESSION_KEY

    settings = _load_settings()
    manager = SocialiteManager(
        Config.from_settings(settings),
        http_options=HttpOptions.from_settings(settings.http),
    )

    async def _build() -> tuple[str, str | None]:
        session = MemorySessionStore()
        provider = manager.driver(args.driver).clone()
        if args.stateless:
            provider.stateless()
        url = await AuthFlow(provider, session=session).begin(redirect_url=args.redirect)
        return url, await session.get(STATE_SESSION_KEY)

    try:
        url, state = asyncio.run(_build())
    except SocialiteException as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(url)
    if state:
        print(f"state: {state}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
