"""
Entry point for the geo_service component.

Commands:
    serve   load the database, refresh it weekly and keep running
    update  run one refresh and exit with its status
    lookup  print the location of one or more addresses
"""

import argparse
import asyncio
import json
import logging
import sys

from tqdm.contrib.logging import logging_redirect_tqdm

from .application.domain import CoordinatorState, RefreshOutcome
from .application.exceptions import GeoServiceError, QueryError
from .application.lookup import LookupService
from .infrastructure.containers import Container

logger = logging.getLogger(__name__)


def setup_logging(level: str):
    """Applies basic logging configuration."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def serve(container: Container, args: argparse.Namespace) -> int:
    """Keeps the database loaded and refreshed until interrupted."""

    coordinator = container.coordinator()
    scheduler = container.scheduler()

    state = await coordinator.initialize()
    if (
        state is CoordinatorState.EMPTY
        and container.config().schedule.refresh_if_missing
    ):
        logger.info("No database installed yet. Refreshing now...")
        await coordinator.trigger_refresh()

    scheduler.start()
    logger.info("Service is running. Press Ctrl+C to stop.")
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()
    return 0


async def update(container: Container, args: argparse.Namespace) -> int:
    """Runs a single refresh, as a cron job would."""

    coordinator = container.coordinator()
    await coordinator.initialize()

    with logging_redirect_tqdm():
        outcome = await coordinator.trigger_refresh()

    if outcome is RefreshOutcome.COMPLETED:
        logger.info("Database update completed successfully")
        return 0
    logger.error("Database update failed")
    return 1


async def lookup(container: Container, args: argparse.Namespace) -> int:
    """Prints one JSON record (or a not-found line) per address."""

    coordinator = container.offline_coordinator()
    lookup_service = LookupService(coordinator)
    await coordinator.initialize()

    for ip in args.ips:
        try:
            location = await lookup_service.get_location(ip)
        except QueryError as e:
            print(f"{ip}: {e}")
            continue
        if location is None:
            print(f"{ip}: location not found")
        else:
            print(json.dumps(location.to_dict()))
    return 0


COMMANDS = {
    "serve": serve,
    "update": update,
    "lookup": lookup,
}


async def run_application(args: argparse.Namespace) -> int:
    """Wires and runs the application using the DI container."""

    container = Container()
    container.cli_args.from_dict(vars(args))

    try:
        setup_logging(level=container.config().logging.level)
        return await COMMANDS[args.command](container, args)
    except GeoServiceError as e:
        logger.error(f"An application error occurred: {e}")
        return 1
    finally:
        await container.http_client().aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="GeoIP Lookup Service")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "serve",
        help="Load the database and refresh it on the configured schedule.",
    )

    update_parser = subparsers.add_parser(
        "update", help="Download and install the latest database once."
    )
    update_parser.add_argument(
        "--no-progress",
        dest="show_progress",
        action="store_false",
        help="Do not display a download progress bar.",
    )

    lookup_parser = subparsers.add_parser(
        "lookup", help="Look up the location of IP addresses."
    )
    lookup_parser.add_argument(
        "ips",
        nargs="+",
        help="IPv4 or IPv6 addresses, e.g. 8.8.8.8",
    )

    return parser


def main():
    cli_args = build_parser().parse_args()
    try:
        sys.exit(asyncio.run(run_application(cli_args)))
    except KeyboardInterrupt:
        logger.info("Interrupted.")


if __name__ == "__main__":
    main()
