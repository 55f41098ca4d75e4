"""
Runner for the expiry reaper.

Inside the API process the loop is started from the lifespan when
REAPER_ENABLED is set. For cron-style deployments run it standalone:

    python -m shuttle.tasks.expiry           # loop every REAPER_INTERVAL_SECONDS
    python -m shuttle.tasks.expiry --once    # single sweep, then exit
"""

import argparse
import asyncio
from typing import Optional

from shuttle.core.config import get_settings
from shuttle.core.logging import get_logger, setup_logging
from shuttle.db.session import session_scope
from shuttle.services.reaper import reap_expired_bookings

logger = get_logger(__name__)
settings = get_settings()


async def run_once() -> list[int]:
    async with session_scope() as db:
        return await reap_expired_bookings(db)


async def run_forever(interval: Optional[float] = None) -> None:
    """
    Sweep forever. A failed run is logged and the next tick tries again;
    expiry is idempotent so nothing is lost.
    """
    interval = interval or settings.REAPER_INTERVAL_SECONDS
    logger.info("reaper_started", interval_seconds=interval)
    while True:
        try:
            await run_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("reaper_run_failed", error=str(e), exc_info=True)
        await asyncio.sleep(interval)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Expire overdue pending bookings.")
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    parser.add_argument("--interval", type=float, default=None, help="seconds between sweeps")
    args = parser.parse_args(argv)

    setup_logging(component="reaper")
    if args.once:
        expired = asyncio.run(run_once())
        logger.info("reaper_sweep_complete", expired=len(expired))
    else:
        asyncio.run(run_forever(args.interval))


if __name__ == "__main__":
    main()
