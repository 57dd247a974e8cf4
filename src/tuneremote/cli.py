"""Command-line interface for tuneremote.

Provides the main entry point for running the remote-control server,
or issuing a single command against the player for testing.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="tuneremote",
        description="Remote control for a desktop music player",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/tuneremote.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP + WebSocket server")
    serve_parser.add_argument("--host", type=str, default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")
    serve_parser.add_argument(
        "--no-auto-connect", action="store_true",
        help="Do not connect to the player until the first request",
    )

    subparsers.add_parser("status", help="Print the player status once")

    control_parser = subparsers.add_parser("control", help="Send one command to the player")
    control_parser.add_argument("action", type=str, help="e.g. toggle, next, volume, seek")
    control_parser.add_argument("value", type=str, nargs="?", default=None)

    return parser.parse_args(argv)


async def _one_shot(settings, action: str, value: str | None) -> dict:
    """Connect once, run a single command, and disconnect."""
    from tuneremote.commands.translator import CommandTranslator
    from tuneremote.domain.models import PlayerStatus
    from tuneremote.server.multiplexer import RequestMultiplexer
    from tuneremote.session.executor import ExpressionExecutor
    from tuneremote.session.lifecycle import SessionLifecycle
    from tuneremote.transport.cdp import CdpTransport

    auto = settings.automation
    lifecycle = SessionLifecycle(
        CdpTransport(timeout=auto.evaluate_timeout),
        host=auto.endpoint_host,
        port=auto.endpoint_port,
        auto_connect=False,
    )
    mux = RequestMultiplexer(CommandTranslator(ExpressionExecutor(lifecycle), lifecycle))
    try:
        outcome = await mux.execute(action, value)
    finally:
        await lifecycle.close()
    if isinstance(outcome, PlayerStatus):
        return outcome.model_dump(mode="json")
    return {"action": action, **outcome.model_dump(mode="json")}


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the tuneremote CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from tuneremote.config.settings import load_settings
    from tuneremote.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        import uvicorn
        from tuneremote.server.app import create_app

        if args.host:
            settings.server.host = args.host
        if args.port:
            settings.server.port = args.port
        if args.no_auto_connect:
            settings.automation.auto_connect = False

        logger.info("Starting server, player endpoint %s:%d",
                    settings.automation.endpoint_host, settings.automation.endpoint_port)
        app = create_app(settings)
        uvicorn.run(app, host=settings.server.host, port=settings.server.port)

    elif args.command == "status":
        result = asyncio.run(_one_shot(settings, "status", None))
        print(json.dumps(result, indent=2, ensure_ascii=False))

    elif args.command == "control":
        from tuneremote.server.multiplexer import UnknownCommandError

        try:
            result = asyncio.run(_one_shot(settings, args.action, args.value))
        except UnknownCommandError as e:
            raise SystemExit(str(e)) from e
        print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
