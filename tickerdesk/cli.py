"""Command-line entry point.

Examples:
    tickerdesk -v run news
    tickerdesk -t run news          # local test server
    tickerdesk run all
    tickerdesk add AAPL MSFT
    tickerdesk clear                # deactivate every ticker
    tickerdesk watch AAPL
    tickerdesk status
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from tickerdesk import __version__
from tickerdesk.agents import AGENTS, NewsAgent, TickerCommands
from tickerdesk.core.config import settings
from tickerdesk.core.exceptions import FatalConfig
from tickerdesk.core.logging import get_logger, setup_logging


logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tickerdesk",
        description="Market-data agents sharing JSON record files",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "-t", "--test", action="store_true", help="Use the local test server for news"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run an agent until interrupted")
    run.add_argument("agent", choices=sorted([*AGENTS, "all"]))

    add = sub.add_parser("add", help="Add tickers (or reactivate existing ones)")
    add.add_argument("symbols", nargs="+")

    clear = sub.add_parser("clear", help="Deactivate tickers (all when none given)")
    clear.add_argument("symbols", nargs="*")

    sub.add_parser("deactivate", help="Deactivate every ticker")

    watch = sub.add_parser("watch", help="Pin tickers to the watchlist")
    watch.add_argument("symbols", nargs="+")

    unwatch = sub.add_parser("unwatch", help="Remove tickers from the watchlist")
    unwatch.add_argument("symbols", nargs="+")

    sub.add_parser("status", help="Print the ticker board once")
    return parser


def make_agent(name: str, test_mode: bool = False):
    if name == "news":
        return NewsAgent(test_mode=test_mode)
    return AGENTS[name]()


async def run_agents(names: Sequence[str], test_mode: bool = False) -> None:
    agents = [make_agent(name, test_mode) for name in names]
    await asyncio.gather(*(agent.run() for agent in agents))


async def run_command(args: argparse.Namespace) -> int:
    commands = TickerCommands()
    try:
        return await _dispatch(commands, args)
    except ValueError as e:
        # Invalid ticker symbol on the command line
        print(f"Error: {e}", file=sys.stderr)
        return 2


async def _dispatch(commands: TickerCommands, args: argparse.Namespace) -> int:
    if args.command == "add":
        symbols = await commands.add(*args.symbols)
        print(f"Added: {', '.join(symbols)}")
    elif args.command in ("clear", "deactivate"):
        cleared = await commands.clear(*getattr(args, "symbols", []))
        print(f"Cleared {len(cleared)} ticker(s)")
    elif args.command == "watch":
        print(f"Watching: {', '.join(await commands.watch(*args.symbols))}")
    elif args.command == "unwatch":
        removed = await commands.unwatch(*args.symbols)
        print(f"Removed: {', '.join(removed) or 'nothing'}")
    elif args.command == "status":
        print(await commands.status())
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging("DEBUG" if args.verbose else settings.log_level, settings.log_format)

    try:
        if args.command == "run":
            names = list(AGENTS) if args.agent == "all" else [args.agent]
            asyncio.run(run_agents(names, test_mode=args.test))
            return 0
        return asyncio.run(run_command(args))
    except FatalConfig as e:
        logger.error(e.message)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 0


if __name__ == "__main__":
    sys.exit(main())
