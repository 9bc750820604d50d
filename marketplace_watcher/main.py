"""
Main entry point for the Marketplace Watcher system.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from .exceptions import ConfigurationError
from .orchestrator import ApplicationOrchestrator
from .services.config_manager import ConfigurationManager
from .utils.logging import get_logger, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="marketplace-watcher",
        description="Watch Enjoei, Mercado Livre and OLX for new listings "
        "and price drops, with alerts delivered through Telegram.",
    )
    parser.add_argument(
        "config",
        nargs="?",
        default=None,
        help="Path to the YAML configuration file (default: search standard paths)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single check cycle and exit",
    )
    parser.add_argument(
        "--validate-config",
        action="store_true",
        help="Validate the configuration file and exit",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level used until the configuration is loaded",
    )
    return parser


async def run_once(orchestrator: ApplicationOrchestrator) -> int:
    """Initialize, run one cycle, shut down. Returns a process exit code."""
    try:
        if not await orchestrator.initialize():
            return 1
        summary = await orchestrator.trigger_check()
        print(
            f"{summary.total_new} new listing(s), {summary.price_drops} price drop(s), "
            f"{summary.groups_failed}/{summary.groups_total} group(s) failed"
        )
        return 0 if summary.groups_failed == 0 else 2
    finally:
        await orchestrator.shutdown()


async def async_main(config_path: Optional[str] = None, once: bool = False) -> int:
    """Async main application entry point."""
    logger = get_logger("main")
    logger.info(
        "Starting Marketplace Watcher", extra={"config_path": config_path, "once": once}
    )

    orchestrator = ApplicationOrchestrator(config_path)
    if once:
        return await run_once(orchestrator)

    await orchestrator.run()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level)

    if args.validate_config:
        try:
            manager = ConfigurationManager(args.config)
            manager.validate_config_file(manager.config_path)
        except ConfigurationError as e:
            print(f"Configuration invalid: {e}")
            return 1
        print(f"Configuration OK: {manager.config_path}")
        return 0

    try:
        return asyncio.run(async_main(args.config, once=args.once))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
