"""Command-line entry point.

Usage:
    python -m assistant_link status <context-id>
    python -m assistant_link connect <context-id>
    python -m assistant_link disconnect <context-id>
"""

import argparse
import asyncio
import logging
import sys

from rich.console import Console

from assistant_link.config import LinkConfig, is_dev
from assistant_link.exceptions import IntegrationError
from assistant_link.flows.controller import AuthFlowController
from assistant_link.notify import ConsoleNotifier
from assistant_link.service.client import IntegrationClient
from assistant_link.terminal import TerminalLink

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assistant_link",
        description="Link a coding-assistant account to a desktop session.",
    )
    parser.add_argument(
        "command", choices=["status", "connect", "disconnect"], help="action to run"
    )
    parser.add_argument("context_id", help="team/account id to link")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


async def run(command: str, context_id: str) -> bool:
    config = LinkConfig.from_env()
    controller = AuthFlowController(
        IntegrationClient(config),
        notifier=ConsoleNotifier(console),
        config=config,
    )
    link = TerminalLink(controller, context_id, console=console)
    try:
        if command == "status":
            await link.status()
            return True
        if command == "connect":
            return await link.connect()
        return await link.disconnect()
    finally:
        await controller.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose or is_dev() else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        ok = asyncio.run(run(args.command, args.context_id))
    except IntegrationError as e:
        console.print(f"[bold red][ERROR] {e}[/bold red]")
        return 1
    except KeyboardInterrupt:
        return 130
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
