from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from .config import load_config
from .randomness import KeccakRandomnessSource
from .raffle_client import RaffleClient
from .scheduler import KeeperScheduler, TickResult


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


async def run(args: argparse.Namespace) -> Optional[TickResult]:
    settings = load_config(args.env_file)
    configure_logging(args.verbose)
    logger = logging.getLogger("raffle.oracle")

    source = KeccakRandomnessSource(settings.randomness_seed)
    client = RaffleClient(settings)
    scheduler = KeeperScheduler(settings, source, client, logger=logger)

    try:
        if args.once or settings.run_once:
            result = await scheduler.run_once()
            logger.info(
                "Keeper tick done: fulfilled=%s requested=%s",
                [f.request_id for f in result.fulfilled],
                result.requested_id,
            )
            return result

        await scheduler.run_forever()
        return None
    finally:
        await client.close()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Raffle keeper and randomness responder")
    parser.add_argument("--env-file", type=str, default=None, help="Path to .env file with settings")
    parser.add_argument("--once", action="store_true", help="Run a single tick and exit.")
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging (default INFO)."
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("Keeper stopped by user.")


if __name__ == "__main__":
    main()
