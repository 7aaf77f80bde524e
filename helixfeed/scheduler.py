"""Long-running helixfeed service.

An APScheduler interval job re-enters :meth:`FeedMonitor.start_monitoring`
and a small aiohttp app reports on it:

* ``GET /health`` returns ``{"status": "ok"}``
* ``GET /feeds`` returns :meth:`FeedMonitor.feed_status`

Start it with ``helixfeed serve`` or directly::

    python -m helixfeed.scheduler --db-url sqlite:///helixfeed.db --port 8000

The first pass runs at start-up and later ones every
``monitor_interval_minutes`` (30 unless ``feeds.yaml`` says otherwise).
A feed is still only fetched once its own ``check_frequency`` has
elapsed.  Overlap is ruled out twice: the job has ``max_instances=1``
and the monitor ignores a call made mid-pass.  The service runs until
the process is terminated.
"""

import argparse
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .models import open_session
from .monitor import FeedMonitor
from .registry import load_registry

logger = logging.getLogger(__name__)


def build_app(monitor: FeedMonitor) -> web.Application:
    async def health(_: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def feeds(_: web.Request) -> web.Response:
        return web.json_response(monitor.feed_status())

    app = web.Application()
    app.add_routes([web.get("/health", health), web.get("/feeds", feeds)])
    return app


def schedule_monitoring(monitor: FeedMonitor) -> AsyncIOScheduler:
    """Register the recurring pass; the first one fires immediately."""
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        monitor.start_monitoring,
        "interval",
        minutes=monitor.settings.monitor_interval_minutes,
        next_run_time=datetime.now(timezone.utc),
        max_instances=1,
        coalesce=True,
    )
    return scheduler


async def run_scheduler(db_url: str, config_path: Optional[str], port: int) -> None:
    settings, feeds = load_registry(config_path)
    session = open_session(db_url)
    monitor = FeedMonitor(db=session, feeds=feeds, settings=settings)

    scheduler = schedule_monitoring(monitor)
    runner = web.AppRunner(build_app(monitor))
    await runner.setup()
    scheduler.start()
    try:
        await web.TCPSite(runner, "0.0.0.0", port).start()
        logger.info(
            f"Serving on port {port}; monitoring {len(feeds)} feeds "
            f"every {settings.monitor_interval_minutes} minutes"
        )
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()
        await runner.cleanup()
        session.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="helixfeed scheduler")
    parser.add_argument("--db-url", default="sqlite:///helixfeed.db")
    parser.add_argument("--config", default=None, help="Path to feeds.yaml")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )
    asyncio.run(run_scheduler(args.db_url, args.config, args.port))


if __name__ == "__main__":  # pragma: no cover
    main()
