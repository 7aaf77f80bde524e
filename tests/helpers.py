from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from aioresponses import aioresponses

from helixfeed.exceptions import FetchError
from helixfeed.fetcher import FetchResult
from helixfeed.registry import FeedDefinition


def create_test_feed(
    feed_id: str,
    authority: str = "FDA",
    url: Optional[str] = None,
    check_frequency: int = 60,
    active: bool = True,
    checked_minutes_ago: Optional[int] = None,
) -> FeedDefinition:
    """Build a feed definition, optionally already checked some time ago"""
    last_check = None
    if checked_minutes_ago is not None:
        last_check = datetime.now(timezone.utc) - timedelta(minutes=checked_minutes_ago)
    return FeedDefinition(
        id=feed_id,
        name=f"{authority} feed {feed_id}",
        url=url or f"https://example.com/{feed_id}.xml",
        authority=authority,
        region="Test Region",
        active=active,
        check_frequency=check_frequency,
        last_check=last_check,
    )


def _rss_item(item: Dict) -> str:
    parts = []
    if "title" in item:
        parts.append(f"<title>{item['title']}</title>")
    for key in ("link", "description", "guid", "pubDate"):
        if key in item:
            parts.append(f"<{key}>{item[key]}</{key}>")
    for category in item.get("categories", []):
        parts.append(f"<category>{category}</category>")
    return "<item>" + "".join(parts) + "</item>"


def mock_rss_feed(items: List[Dict], title: str = "Test Feed") -> str:
    """RSS 2.0 document with the given items (dicts of element -> text)"""
    body = "\n".join(_rss_item(item) for item in items)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
    <rss version="2.0">
        <channel>
            <title>{title}</title>
            <link>https://example.com</link>
            <description>Test description</description>
            {body}
        </channel>
    </rss>"""


class FakeFetcher:
    """Stands in for ``fetch_feed``: serves canned bodies and counts calls per URL"""

    def __init__(self, responses: Optional[Dict[str, object]] = None):
        self.responses: Dict[str, object] = dict(responses or {})
        self.calls: List[str] = []

    def calls_for(self, url: str) -> int:
        return self.calls.count(url)

    async def __call__(self, session, url, timeout=30, attempts=1, user_agent=None):
        self.calls.append(url)
        response = self.responses.get(url)
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise FetchError(url, 404, "Not Found")
        return FetchResult(url=url, text=response, status=200, elapsed=0.01, size=len(response))


def setup_aiohttp_mocks(
    m: aioresponses,
    url: str,
    method: str = "GET",
    status: int = 200,
    content: str = "test content",
    headers: Optional[Dict] = None
):
    """Register an aiohttp mock response"""
    m.add(
        url=url,
        method=method,
        status=status,
        body=content,
        headers=headers or {}
    )
