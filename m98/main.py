"""m98 - M98 macro manager.

Command line entry point: serves the macro HTTP API and offers a few
maintenance commands against the configured data directory.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from aiohttp import web

from m98 import __version__
from m98.api.routes import create_app
from m98.config import get_settings, reload_settings
from m98.macros.errors import MacroError
from m98.macros.manager import MacroManager
from m98.utils.logger import get_logger, setup_logger

logger = get_logger(__name__)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2))


def cmd_serve(manager: MacroManager, args: argparse.Namespace) -> int:
    settings = get_settings()
    host = args.host or settings.server.host
    port = args.port or settings.server.port

    logger.info("macro_api_starting", host=host, port=port, data_dir=settings.app.data_dir)
    web.run_app(create_app(manager), host=host, port=port, print=None)
    return 0


def cmd_list(manager: MacroManager, args: argparse.Namespace) -> int:
    _print_json([macro.to_dict() for macro in manager.list_all()])
    return 0


def cmd_migrate(manager: MacroManager, args: argparse.Namespace) -> int:
    _print_json(manager.migrate().to_dict())
    return 0


def cmd_expand(manager: MacroManager, args: argparse.Namespace) -> int:
    expansion = manager.expand(args.command)
    if expansion is None:
        print(f"Not an M98 command: {args.command}", file=sys.stderr)
        return 1
    for line in expansion.commands:
        print(line)
    return 0


def cmd_run(manager: MacroManager, args: argparse.Namespace) -> int:
    result = asyncio.run(manager.execute(args.id))
    _print_json(result.to_dict())
    for sent in manager.controller.sent:
        print(sent.command)
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="m98",
        description="M98 macro manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  m98 serve                 Serve the macro API
  m98 list                  Print all macros as JSON
  m98 expand "M98 P9001"    Print the lines a call expands to
  m98 run 9001              Dry-run a macro
        """,
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        help="Path to configuration file",
    )
    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"m98 {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    commands = parser.add_subparsers(dest="command_name", required=True)

    serve = commands.add_parser("serve", help="Serve the macro HTTP API")
    serve.add_argument("--host", help="Bind address")
    serve.add_argument("--port", type=int, help="Bind port")
    serve.set_defaults(handler=cmd_serve)

    commands.add_parser("list", help="List macros").set_defaults(handler=cmd_list)
    commands.add_parser("migrate", help="Migrate legacy macros.json").set_defaults(handler=cmd_migrate)

    expand = commands.add_parser("expand", help="Expand an M98 command")
    expand.add_argument("command", help='Command text, e.g. "M98 P9001"')
    expand.set_defaults(handler=cmd_expand)

    run = commands.add_parser("run", help="Execute a macro against a dry-run controller")
    run.add_argument("id", help="Macro identifier")
    run.set_defaults(handler=cmd_run)

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    settings = reload_settings(args.config) if args.config else get_settings()
    setup_logger(
        level="DEBUG" if args.debug else settings.app.log_level,
        json_output=settings.app.json_logs,
    )

    manager = MacroManager.from_config(settings)
    try:
        return args.handler(manager, args)
    except MacroError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
