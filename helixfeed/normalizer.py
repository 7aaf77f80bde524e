# normalizer.py
"""Map parsed feed items onto the regulatory-update record shape.

Priority and tags come from keyword tables.  The priority families are
checked in a fixed order (critical, high, medium) and the first family
with a hit wins, so an item mentioning both "recall" and "guidance" is
critical.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, List, Optional, Tuple

from .parser import FeedItem
from .registry import FeedDefinition

logger = logging.getLogger(__name__)

ITEM_KEY_LENGTH = 64
_DIGEST_LENGTH = 16
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")

PRIORITY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("critical", ("recall", "safety alert", "urgent", "immediate action")),
    ("high", ("warning", "guidance", "approval", "clearance")),
    ("medium", ("announcement", "update", "new", "change")),
)

# tag -> keywords looked up in the lowercased title and description
CONTENT_TAGS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("approval", ("approval",)),
    ("recall", ("recall",)),
    ("guidance", ("guidance",)),
    ("safety", ("safety",)),
    ("medical_device", ("device",)),
    ("software", ("software",)),
    ("ai", ("artificial intelligence",)),
)
_AI_WORD = re.compile(r"\bai\b")


@dataclass
class RegulatoryUpdateRecord:
    """Normalized record handed to the persistence sink."""
    identifier: str
    title: str
    content: str
    source: str
    authority: str
    region: str
    priority: str
    published_at: datetime
    update_type: str = "rss_update"
    status: str = "published"
    metadata: Dict = field(default_factory=dict)


def derive_item_key(item: FeedItem) -> str:
    """Stable key for an item: guid, else link, else title.

    Non-alphanumerics are dropped and the result is lowercased; a source
    that leaves nothing behind falls through to the next one.  Keys
    longer than ``ITEM_KEY_LENGTH`` keep a prefix plus a digest of the
    whole key, so URLs that only differ near the end stay distinct.
    """
    key = ""
    for base in (item.guid, item.link, item.title):
        key = _NON_ALNUM.sub("", base or "").lower()
        if key:
            break
    else:
        # e.g. a title written entirely in a non-Latin script
        return hashlib.sha256(item.title.encode()).hexdigest()[:ITEM_KEY_LENGTH]
    if len(key) <= ITEM_KEY_LENGTH:
        return key
    digest = hashlib.sha256(key.encode()).hexdigest()[:_DIGEST_LENGTH]
    return f"{key[: ITEM_KEY_LENGTH - _DIGEST_LENGTH - 1]}-{digest}"


def derive_identifier(item: FeedItem, feed: FeedDefinition) -> str:
    return f"rss-{feed.id}-{derive_item_key(item)}"


def determine_priority(title: str, description: str) -> str:
    """Classify an item into low/medium/high/critical by keyword."""
    content = f"{title} {description}".lower()
    for priority, keywords in PRIORITY_KEYWORDS:
        if any(keyword in content for keyword in keywords):
            return priority
    return "low"


def extract_tags(item: FeedItem, feed: FeedDefinition) -> List[str]:
    tags = [feed.authority.lower(), "rss_feed", *item.categories]

    title = item.title.lower()
    description = item.description.lower()
    for tag, keywords in CONTENT_TAGS:
        if any(k in title or k in description for k in keywords):
            tags.append(tag)
    if "ai" not in tags and _AI_WORD.search(title):
        tags.append("ai")

    # dedupe, keep first occurrence
    return list(dict.fromkeys(tags))


def parse_feed_date(value: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Parse an RSS (RFC 822) or Atom (ISO 8601) date.

    Naive results are taken as UTC.  Anything unparseable yields ``now``
    so that a bad date never rejects an item.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    value = (value or "").strip()
    if not value:
        return now

    parsed: Optional[datetime] = None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        parsed = None
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Could not parse date: {value!r}")
            return now

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_content(item: FeedItem, feed: FeedDefinition) -> str:
    parts = [f"**Source:** {feed.name}"]
    if item.author:
        parts.append(f"**Author:** {item.author}")
    if item.categories:
        parts.append(f"**Categories:** {', '.join(item.categories)}")
    if item.link:
        parts.append(f"**Original Link:** {item.link}")
    if item.description:
        parts.append(f"**Description:**\n{item.description}")
    return "\n\n".join(parts)


def normalize_item(
    item: FeedItem,
    feed: FeedDefinition,
    now: Optional[datetime] = None,
) -> RegulatoryUpdateRecord:
    """Turn one parsed item into a record ready for the duplicate filter."""
    return RegulatoryUpdateRecord(
        identifier=derive_identifier(item, feed),
        title=item.title,
        content=format_content(item, feed),
        source=f"{feed.name} (RSS)",
        authority=feed.authority,
        region=feed.region,
        priority=determine_priority(item.title, item.description),
        published_at=parse_feed_date(item.pub_date, now),
        metadata={
            "feed_id": feed.id,
            "feed_name": feed.name,
            "original_link": item.link,
            "guid": item.guid,
            "categories": list(item.categories),
            "tags": extract_tags(item, feed),
            "author": item.author,
            "feed_url": feed.url,
        },
    )
