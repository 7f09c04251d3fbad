"""
Outbox relay worker for deployments that do not run it in-process

Usage:
    python -m scripts.run_relay
    python -m scripts.run_relay --once

Sweeps every outbox-carrying collection on the configured interval until
interrupted.
"""
import argparse
import time
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from missionledger.config.settings import settings
from missionledger.repositories.mongo_client import close_connection
from missionledger.scheduler.dev_scheduler import DevScheduler
from missionledger.utils.logger import get_logger

logger = get_logger("missionledger.relay_worker")


def main() -> int:
    parser = argparse.ArgumentParser(description="Project pending outbox entries")
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    parser.add_argument(
        "--interval",
        type=int,
        default=settings.outbox_relay_interval_seconds,
        help="Seconds between sweeps"
    )
    args = parser.parse_args()

    worker = DevScheduler()
    logger.info(f"Relay worker started, sweeping every {args.interval}s")
    try:
        while True:
            applied = worker.run_once()
            if args.once:
                print(f"Projected {applied} entries")
                return 0
            time.sleep(args.interval)
    except KeyboardInterrupt:
        logger.info("Relay worker stopped")
        return 0
    finally:
        close_connection()


if __name__ == "__main__":
    sys.exit(main())
