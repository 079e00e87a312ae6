"""Standalone worker for material inventory sync.

Runs the periodic reconciliation pass without the HTTP server.

Run with --once to run a single pass, print its report and exit.
"""

import argparse
import asyncio
import json
import signal

from api.services import build_services
from core.config import load_settings
from core.observability.logging import configure_logging, get_logger

logger = get_logger(__name__)


async def run_worker(once: bool = False) -> int:
    """Run one pass or the scheduler until interrupted.

    Returns:
        Process exit code
    """
    settings = load_settings()
    configure_logging(settings.logging_level, settings.log_json)
    services = build_services(settings)

    await services.startup(start_scheduler=not once)
    try:
        if once:
            report = await services.scheduler.run_once()
            if report is None:
                return 1
            print(json.dumps(report.to_dict(), indent=2))
            return 1 if report.failed else 0

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        logger.info("Worker running... (Ctrl+C to stop)")
        await stop.wait()
        logger.info("Worker interrupted")
        return 0
    finally:
        await services.shutdown()


def main():
    """Entry point for worker with CLI args."""
    parser = argparse.ArgumentParser(description="Material inventory sync worker")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single reconciliation pass and exit",
    )

    args = parser.parse_args()
    raise SystemExit(asyncio.run(run_worker(once=args.once)))


if __name__ == "__main__":
    main()
