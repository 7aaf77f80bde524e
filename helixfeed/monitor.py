# monitor.py
"""Polling monitor for regulatory-authority feeds.

:class:`FeedMonitor` owns the feed registry and runs monitoring passes:
for every active feed that is due it fetches, parses, normalizes,
de-duplicates and stores the feed's items.  Feeds are processed one
after another with a politeness delay after every request, so a pass
never has more than one request in flight.

The monitor is a two-state machine.  ``start_monitoring`` moves it from
``IDLE`` to ``MONITORING`` for the length of one pass; a call made while
a pass is running returns ``None`` without doing anything.  Recurring
passes are driven from outside (see :mod:`helixfeed.scheduler`).
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

import aiohttp
from sqlalchemy.orm import Session

from .dedup import IDENTIFIER, DuplicateFilter
from .exceptions import DuplicateRecordError, FeedNotFoundError, FetchError
from .fetcher import fetch_feed
from .models import FeedCheckLog, utcnow
from .normalizer import normalize_item
from .parser import FeedItem, parse_feed
from .registry import FeedDefinition, MonitorSettings
from .sink import RegulatoryUpdateSink

logger = logging.getLogger(__name__)


class MonitorState(enum.Enum):
    IDLE = "idle"
    MONITORING = "monitoring"


@dataclass
class FeedCheckResult:
    """Outcome of one feed check."""
    feed_id: str
    status: str  # skipped, success, fetch_error, parse_error, error
    items_found: int = 0
    new_items: int = 0
    duplicates: int = 0
    near_duplicates: int = 0
    errors: int = 0
    error: Optional[str] = None
    response_time: Optional[float] = None
    bytes_downloaded: Optional[int] = None


@dataclass
class PassReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    results: List[FeedCheckResult] = field(default_factory=list)

    @property
    def checked(self) -> int:
        return sum(1 for r in self.results if r.status != "skipped")

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == "skipped")

    @property
    def new_items(self) -> int:
        return sum(r.new_items for r in self.results)

    @property
    def failed(self) -> int:
        return sum(
            1 for r in self.results
            if r.status in ("fetch_error", "parse_error", "error")
        )

    def summary(self) -> Dict[str, int]:
        return {
            "checked": self.checked,
            "skipped": self.skipped,
            "failed": self.failed,
            "new_items": self.new_items,
        }


class FeedMonitor:
    """Runs monitoring passes over a feed registry."""

    def __init__(
        self,
        db: Session,
        feeds: Sequence[FeedDefinition],
        settings: Optional[MonitorSettings] = None,
        fetcher: Callable = fetch_feed,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.feeds = list(feeds)
        self.settings = settings or MonitorSettings()
        self.fetcher = fetcher
        self.clock = clock
        self.sink = RegulatoryUpdateSink(db)
        self.state = MonitorState.IDLE

    @property
    def is_monitoring(self) -> bool:
        return self.state is MonitorState.MONITORING

    def is_due(self, feed: FeedDefinition, now: datetime) -> bool:
        if feed.last_check is None:
            return True
        return now - feed.last_check >= timedelta(minutes=feed.check_frequency)

    def get_feed(self, feed_id: str) -> FeedDefinition:
        for feed in self.feeds:
            if feed.id == feed_id:
                return feed
        raise FeedNotFoundError(feed_id)

    async def start_monitoring(self) -> Optional[PassReport]:
        """Run one pass over the active feeds.

        Returns
        -------
        Optional[PassReport]
            The pass results, or ``None`` when a pass was already running
        """
        if self.state is MonitorState.MONITORING:
            logger.info("Monitoring already in progress")
            return None

        # must flip before the first await so concurrent callers see it
        self.state = MonitorState.MONITORING
        report = PassReport(started_at=self.clock())
        try:
            active = [feed for feed in self.feeds if feed.active]
            logger.info(f"Starting monitoring pass over {len(active)} active feeds")
            async with aiohttp.ClientSession() as session:
                for feed in active:
                    report.results.append(await self.check_feed(session, feed))
                    await asyncio.sleep(self.settings.inter_feed_delay)
        except Exception:
            logger.exception("Monitoring pass aborted")
        finally:
            self.state = MonitorState.IDLE
            report.finished_at = self.clock()

        logger.info(f"Monitoring pass completed: {report.summary()}")
        return report

    async def sync_feed(self, feed_id: str) -> FeedCheckResult:
        """Check one feed now, whether or not it is due."""
        feed = self.get_feed(feed_id)
        async with aiohttp.ClientSession() as session:
            return await self.check_feed(session, feed, force=True)

    async def check_feed(
        self,
        session: aiohttp.ClientSession,
        feed: FeedDefinition,
        force: bool = False,
    ) -> FeedCheckResult:
        """Fetch, parse and store one feed if it is due (or ``force``)."""
        now = self.clock()
        if not force and not self.is_due(feed, now):
            minutes = round((now - feed.last_check).total_seconds() / 60)
            logger.info(f"Skipping {feed.name} - checked {minutes} minutes ago")
            return FeedCheckResult(feed_id=feed.id, status="skipped")

        logger.info(f"Checking feed: {feed.name}")
        try:
            result = await self._run_check(session, feed, now)
        except Exception as e:
            logger.exception("%s processing %s", type(e).__name__, feed.id)
            self.db.rollback()
            result = FeedCheckResult(feed_id=feed.id, status="error", error=str(e))
        self._log_check(result)
        return result

    async def _run_check(
        self,
        session: aiohttp.ClientSession,
        feed: FeedDefinition,
        now: datetime,
    ) -> FeedCheckResult:
        try:
            fetched = await self.fetcher(
                session,
                feed.url,
                timeout=self.settings.request_timeout,
                attempts=self.settings.fetch_attempts,
            )
        except FetchError as e:
            if e.status is not None:
                logger.error("HTTP %s %s; url=%s", e.status, e.message, e.url)
            else:
                logger.error("Fetch failed for %s: %s", e.url, e.message)
            return FeedCheckResult(feed_id=feed.id, status="fetch_error", error=str(e))
        finally:
            await asyncio.sleep(self.settings.politeness_delay)

        result = FeedCheckResult(
            feed_id=feed.id,
            status="success",
            response_time=fetched.elapsed,
            bytes_downloaded=fetched.size,
        )
        parsed = parse_feed(fetched.text, feed.url)
        if parsed is None:
            logger.warning(f"Could not parse feed: {feed.name}")
            result.status = "parse_error"
            result.error = "no title element"
        else:
            logger.info(f"Processing {len(parsed.items)} items from {feed.name}")
            result.items_found = len(parsed.items)
            duplicate_filter = DuplicateFilter.from_sink(self.sink)
            for item in parsed.items:
                self._process_item(feed, item, duplicate_filter, result, now)

        feed.last_check = now
        logger.info(
            f"Completed {feed.name}: {result.new_items} new, "
            f"{result.duplicates + result.near_duplicates} duplicates"
        )
        return result

    def _process_item(
        self,
        feed: FeedDefinition,
        item: FeedItem,
        duplicate_filter: DuplicateFilter,
        result: FeedCheckResult,
        now: datetime,
    ) -> None:
        try:
            record = normalize_item(item, feed, now)
            reason = duplicate_filter.check(record)
            if reason == IDENTIFIER:
                logger.debug(f"Skipping known item {record.identifier}")
                result.duplicates += 1
                return
            if reason is not None:
                logger.debug(
                    f"Skipping probable duplicate of '{record.title}' "
                    f"({record.authority}) as {record.identifier}"
                )
                result.near_duplicates += 1
                return

            self.sink.create_regulatory_update(record)
            duplicate_filter.remember(record)
            result.new_items += 1
        except DuplicateRecordError as e:
            logger.debug(f"Sink rejected {e.identifier}: {e}")
            result.duplicates += 1
        except Exception:
            logger.exception("Error processing item %r from %s", item.title, feed.id)
            result.errors += 1

    def _log_check(self, result: FeedCheckResult) -> None:
        """Record a performed check in ``feed_check_log``."""
        log = FeedCheckLog(
            feed_id=result.feed_id,
            status=result.status,
            checked_at=self.clock(),
            items_found=result.items_found,
            new_items=result.new_items,
            duplicates=result.duplicates + result.near_duplicates,
            response_time=result.response_time,
            bytes_downloaded=result.bytes_downloaded,
            error_message=result.error,
        )
        try:
            self.db.add(log)
            self.db.commit()
        except Exception:
            logger.exception("Failed to log check of %s", result.feed_id)
            self.db.rollback()

    def feed_status(self) -> List[Dict]:
        state = self.state.value
        return [
            {
                "id": feed.id,
                "name": feed.name,
                "authority": feed.authority,
                "region": feed.region,
                "active": feed.active,
                "last_check": feed.last_check.isoformat() if feed.last_check else None,
                "check_frequency": feed.check_frequency,
                "status": state,
            }
            for feed in self.feeds
        ]
