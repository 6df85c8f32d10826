"""Pipeline entry point — run as a separate process.

Usage:
    python -m evcharge.pipeline.main

Or via the console script:
    evcharge-pipeline
"""

import asyncio
import logging
import signal
import sys

from evcharge.config import settings
from evcharge.context import build_context
from evcharge.errors import CaptureStartupError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("evcharge.pipeline")


async def run() -> int:
    """Run capture and the stats job until interrupted. Returns an exit code."""
    ctx = await build_context(settings)
    stop = asyncio.Event()

    # Handle shutdown signals
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    logger.info(
        "Pipeline starting (db=%s, collections=%s)",
        settings.mongodb_database,
        ", ".join(settings.tracked_collections),
    )

    try:
        await ctx.start(with_gateway=False)
    except CaptureStartupError as e:
        logger.error("Capture startup failed: %s", e)
        await ctx.close()
        return 1

    if not ctx.broker.is_available():
        logger.warning("Broker unavailable; changes will be captured but not broadcast")

    try:
        await stop.wait()
    finally:
        await ctx.close()
        logger.info("Pipeline stopped. Stats: %s", ctx.stats.as_dict())
    return 0


def main():
    """CLI entry point."""
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
