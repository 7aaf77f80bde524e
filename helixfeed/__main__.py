"""Command line entry point for helixfeed.

Run a single monitoring pass over the registry, inspect feed status or
review probable duplicates.  For example:

```sh
    python -m helixfeed check --db-url sqlite:///helixfeed.db
    python -m helixfeed check --feed fda-main
    python -m helixfeed duplicates --threshold 0.9
```

``serve`` starts the long-running scheduler service (see
:mod:`helixfeed.scheduler`).  Outside of ``serve`` every command runs
once and exits, so it can also be driven from cron.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List

from .dedup import find_near_duplicates
from .exceptions import HelixFeedError
from .models import RegulatoryUpdate, open_session
from .monitor import FeedMonitor
from .registry import load_registry


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--db-url",
        default="sqlite:///helixfeed.db",
        help="SQLAlchemy database URL (default: sqlite:///helixfeed.db)",
    )
    p.add_argument("--config", default=None, help="Path to feeds.yaml (optional)")
    p.add_argument("--verbose", action="store_true", help="Enable verbose logging")


def _print_report(report) -> None:
    for result in report.results:
        line = f"{result.feed_id}: {result.status}"
        if result.status != "skipped":
            line += (
                f" ({result.items_found} found, {result.new_items} new, "
                f"{result.duplicates + result.near_duplicates} duplicates)"
            )
        if result.error:
            line += f" - {result.error}"
        print(line)
    print(f"Pass done: {report.summary()}")


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="helixfeed CLI")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p1 = sub.add_parser("check", help="Run one monitoring pass")
    p1.add_argument("--feed", default=None, help="Check only this feed id, even if not due")
    _add_common(p1)

    p2 = sub.add_parser("feeds", help="List registered feeds")
    _add_common(p2)

    p3 = sub.add_parser("duplicates", help="Report stored updates with similar titles")
    p3.add_argument("--threshold", type=float, default=0.85)
    _add_common(p3)

    p4 = sub.add_parser("serve", help="Run the scheduler service")
    p4.add_argument("--port", type=int, default=8000)
    _add_common(p4)

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")

    if args.cmd == "serve":
        from .scheduler import run_scheduler
        asyncio.run(run_scheduler(args.db_url, args.config, args.port))
        return 0

    try:
        settings, feeds = load_registry(args.config)
    except HelixFeedError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    session = open_session(args.db_url)

    try:
        monitor = FeedMonitor(db=session, feeds=feeds, settings=settings)
        if args.cmd == "check":
            if args.feed:
                try:
                    result = asyncio.run(monitor.sync_feed(args.feed))
                except HelixFeedError as e:
                    print(f"error: {e}", file=sys.stderr)
                    return 2
                print(f"{result.feed_id}: {result.status}, {result.new_items} new")
            else:
                _print_report(asyncio.run(monitor.start_monitoring()))
        elif args.cmd == "feeds":
            for status in monitor.feed_status():
                flag = "active" if status["active"] else "inactive"
                print(
                    f"{status['id']:<22} {status['authority']:<11} "
                    f"every {status['check_frequency']} min  {flag}  {status['name']}"
                )
        elif args.cmd == "duplicates":
            matches = find_near_duplicates(session.query(RegulatoryUpdate).all(), args.threshold)
            for m in matches:
                print(f"[{m.authority}] {m.similarity:.3f}")
                print(f"  {m.first_identifier}: {m.first_title}")
                print(f"  {m.second_identifier}: {m.second_title}")
            print(f"{len(matches)} probable duplicate pairs")
    finally:
        session.close()
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
