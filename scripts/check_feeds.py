"""Probe every registered feed once and print how many items parse.

Nothing is written to the database.  Useful after editing feeds.yaml:

    python scripts/check_feeds.py [path/to/feeds.yaml]
"""

import asyncio
import sys

import aiohttp

from helixfeed.exceptions import FetchError
from helixfeed.fetcher import fetch_feed
from helixfeed.parser import parse_feed
from helixfeed.registry import load_registry


async def main(config_path=None):
    settings, feeds = load_registry(config_path)
    async with aiohttp.ClientSession() as s:
        for feed in feeds:
            try:
                fetched = await fetch_feed(s, feed.url, timeout=settings.request_timeout)
            except FetchError as e:
                print(feed.id, "→ fetch failed:", e)
                continue
            finally:
                await asyncio.sleep(settings.politeness_delay)
            parsed = parse_feed(fetched.text, feed.url)
            if parsed is None:
                print(feed.id, "→ not a feed")
            else:
                print(feed.id, "→", len(parsed.items), "items", f"({parsed.title})")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
