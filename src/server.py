"""Reminders service runner.

Builds settings, logging, the ``reminders`` domain and the notification
engine, then runs the dispatch worker until interrupted.

Usage:
    python src/server.py                 # Run the dispatch worker
    python src/server.py --log-dir /tmp  # Write log files elsewhere
    python src/server.py --health        # Print channel health and exit
"""

import argparse
import asyncio
import json
import signal

import structlog

logger = structlog.get_logger(__name__)


async def run(engine):
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    health = engine.health_check()
    if not health["healthy"]:
        logger.warning("Starting with unhealthy channels", **health)

    await engine.start()
    try:
        await stop.wait()
    finally:
        await engine.stop()


def main():
    parser = argparse.ArgumentParser(description="Reminders dispatch worker")
    parser.add_argument("--log-dir", default="logs", help="Directory for log files")
    parser.add_argument("--health", action="store_true", help="Print channel health and exit")
    args = parser.parse_args()

    from reminders.config import DispatchSettings
    from reminders.domain import reminders
    from reminders.engine import NotificationEngine
    from reminders.utils.logging import configure_logging

    configure_logging(args.log_dir)
    reminders.init()

    engine = NotificationEngine(DispatchSettings())

    if args.health:
        print(json.dumps(engine.health_check(), indent=2))
        return

    with reminders.domain_context():
        asyncio.run(run(engine))


if __name__ == "__main__":
    main()
