"""Entry point for `python -m clawcker` / `clawcker`.

Subcommands:
    clawcker new <name>         Create an instance (prompts for a provider)
    clawcker start <name>       Start an instance and wait for its gateway
    clawcker stop <name>        Stop an instance
    clawcker status <name>      Show the run state of an instance
    clawcker list               List all instances
    clawcker configure <name>   Change provider / API key
    clawcker talk <name>        Open the web UI in the default browser
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from clawcker.config import get_settings
from clawcker.errors import ClawckerError
from clawcker.lifecycle import InstanceManager
from clawcker.logger import set_level


def _manager(args: argparse.Namespace) -> InstanceManager:
    from clawcker.console import ConsolePrompter

    interactive = sys.stdin.isatty() and not getattr(args, "no_input", False)
    return InstanceManager(prompter=ConsolePrompter() if interactive else None, log=print)


async def _dispatch(args: argparse.Namespace) -> int:
    manager = _manager(args)

    match args.command:
        case "new":
            await manager.create(args.name, provider=args.provider, api_key=args.api_key)
        case "start":
            await manager.start(args.name)
            print("Waiting for the gateway to become healthy...")
            wait = args.wait if args.wait is not None else manager.settings.health.max_wait
            if await manager.wait_for_healthy(args.name, max_wait=wait):
                print("✓ Gateway is healthy")
            else:
                print(f"Gateway did not answer within {wait:g}s; it may still be starting")
        case "stop":
            await manager.stop(args.name)
        case "status":
            print(f"{args.name}: {await manager.status(args.name)}")
        case "list":
            records = manager.list_instances()
            if not records:
                print("No instances found")
            for record in records:
                status = await manager.status(record.name)
                provider = record.provider or "-"
                print(f"{record.name:<20} {status:<22} port={record.port} provider={provider}")
        case "configure":
            if not await manager.configure(args.name, provider=args.provider, api_key=args.api_key):
                return 2
        case "talk":
            from clawcker.console import open_browser

            await manager.open_web_ui(args.name, open_browser)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="clawcker",
        description="Manage isolated OpenClaw instances in local containers",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    for command, help_text in (
        ("new", "Create a new instance"),
        ("configure", "Change the provider and API key of an instance"),
    ):
        p = sub.add_parser(command, help=help_text)
        p.add_argument("name")
        p.add_argument("--provider", help="anthropic, openai, openrouter or gemini")
        p.add_argument("--api-key", help="Provider API key (prompted for when omitted)")
        p.add_argument("--no-input", action="store_true", help="Never prompt")

    p = sub.add_parser("start", help="Start an instance")
    p.add_argument("name")
    p.add_argument(
        "--wait",
        type=float,
        default=None,
        help="Seconds to wait for health (default: [health] max_wait)",
    )

    for command, help_text in (
        ("stop", "Stop an instance"),
        ("status", "Show instance status"),
        ("talk", "Open the web UI in the default browser"),
    ):
        sub.add_parser(command, help=help_text).add_argument("name")
    sub.add_parser("list", help="List instances")

    args = parser.parse_args()
    try:
        set_level(get_settings().logging.level)
        code = asyncio.run(_dispatch(args))
    except ClawckerError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
