"""CLI entry point for spacebot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
import sys
from pathlib import Path

from . import __version__


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def _build_services(config):
    from .core.locations import LocationResolver
    from .core.search import SearchEngine
    from .providers.matrix import MatrixAPIClient

    client = MatrixAPIClient(config.matrix)
    resolver = LocationResolver(client, preferred_location_id=config.matrix.preferred_location)
    search = SearchEngine(client, client, config.search)
    return client, resolver, search


def cmd_init(args: argparse.Namespace) -> None:
    """Initialize spacebot configuration in the current directory."""
    config_dest = Path("config.yaml")
    env_dest = Path(".env")

    pkg_dir = Path(__file__).parent.parent.parent  # src/spacebot -> project root
    config_src = pkg_dir / "config.example.yaml"
    env_src = pkg_dir / ".env.example"

    if config_dest.exists() and not args.force:
        print("config.yaml already exists. Use --force to overwrite.")
    else:
        if config_src.exists():
            shutil.copy(config_src, config_dest)
        else:
            config_dest.write_text(
                "matrix:\n  username: \"${MATRIX_USERNAME}\"\n  password: \"${MATRIX_PASSWORD}\"\n"
                "  preferred_location: \"${MATRIX_PREFERRED_LOCATION}\"\n"
            )
        print(f"Created {config_dest}")

    if env_dest.exists() and not args.force:
        print(".env already exists. Use --force to overwrite.")
    else:
        if env_src.exists():
            shutil.copy(env_src, env_dest)
        else:
            env_dest.write_text("MATRIX_USERNAME=\nMATRIX_PASSWORD=\nMATRIX_PREFERRED_LOCATION=\n")
        print(f"Created {env_dest}")

    print("\nNext steps:")
    print("  1. Edit .env with your Matrix Booking credentials")
    print("  2. Set preferred_location to your building's location ID")
    print("  3. Check the connection: spacebot check")
    print("  4. Run the MCP server: spacebot mcp")


def cmd_check(args: argparse.Namespace) -> None:
    """Check config and the booking API connection."""
    from .config import load_config
    from .models import LocationQuery

    print(f"spacebot v{__version__} connection check\n")

    try:
        config = load_config(args.config)
        print(f"[OK] Config loaded from {args.config}")
    except Exception as e:
        print(f"[FAIL] Config: {e}")
        sys.exit(1)

    if not config.matrix.username or config.matrix.username.startswith("$"):
        print("[FAIL] Matrix credentials not set")
        sys.exit(1)
    print(f"[OK] Matrix user: {config.matrix.username}")

    if config.matrix.preferred_location is None:
        print("[WARN] No preferred_location set; searches cover the whole organisation")

    client, _, _ = _build_services(config)
    try:
        hierarchy = asyncio.run(client.get_location_hierarchy(LocationQuery(
            parent_id=config.matrix.preferred_location,
            include_children=True,
        )))
        print(f"[OK] Matrix API: {len(hierarchy.flatten())} locations visible")
    except Exception as e:
        print(f"[FAIL] Matrix API: {e}")
        sys.exit(1)


def cmd_search(args: argparse.Namespace) -> None:
    """Run a free-text search and print ranked results."""
    from .config import load_config
    from .mcp_server import render_search_response

    _setup_logging(args.verbose)
    config = load_config(args.config)
    _, _, search = _build_services(config)

    response = asyncio.run(search.search_by_query(args.query))
    print(render_search_response(response))


def cmd_resolve(args: argparse.Namespace) -> None:
    """Resolve a location reference to its ID."""
    from .config import load_config
    from .errors import SpacebotError

    _setup_logging(args.verbose)
    config = load_config(args.config)
    _, resolver, _ = _build_services(config)

    reference = int(args.reference) if args.id else args.reference
    try:
        location_id = asyncio.run(resolver.resolve_location_id(reference))
    except SpacebotError as e:
        print(f"[FAIL] {e}")
        sys.exit(1)
    print(location_id)


def cmd_mcp(args: argparse.Namespace) -> None:
    """Run the MCP server (stdio transport for local testing / Claude Desktop)."""
    from .config import load_config
    from .mcp_server import create_mcp_server

    _setup_logging(args.verbose)

    config = load_config(args.config)
    client, resolver, search = _build_services(config)

    mcp = create_mcp_server(config, client, client, resolver=resolver, search=search)
    mcp.run(transport=args.transport or config.mcp.transport)


def main():
    parser = argparse.ArgumentParser(
        prog="spacebot",
        description="Room and desk search tools for AI agents",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize configuration")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing files")

    # check
    check_parser = subparsers.add_parser("check", help="Check the booking API connection")
    check_parser.add_argument("-c", "--config", default="config.yaml", help="Config file path")

    # search
    search_parser = subparsers.add_parser("search", help="Search rooms and desks by free text")
    search_parser.add_argument("query", help='e.g. "room for 6 with a screen tomorrow"')
    search_parser.add_argument("-c", "--config", default="config.yaml", help="Config file path")
    search_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    # resolve
    resolve_parser = subparsers.add_parser("resolve", help="Resolve a location reference to an ID")
    resolve_parser.add_argument("reference", help='Location ID, room number or name, e.g. "701"')
    resolve_parser.add_argument("--id", action="store_true", help="Treat the reference as a numeric ID")
    resolve_parser.add_argument("-c", "--config", default="config.yaml", help="Config file path")
    resolve_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    # mcp
    mcp_parser = subparsers.add_parser("mcp", help="Run the MCP server")
    mcp_parser.add_argument("-c", "--config", default="config.yaml", help="Config file path")
    mcp_parser.add_argument("-t", "--transport", default=None, choices=["stdio", "streamable-http"], help="MCP transport")
    mcp_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(0)

    commands = {
        "init": cmd_init,
        "check": cmd_check,
        "search": cmd_search,
        "resolve": cmd_resolve,
        "mcp": cmd_mcp,
    }
    commands[args.command](args)
