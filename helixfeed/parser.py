# parser.py
"""Tolerant RSS/Atom parsing.

Third-party regulatory feeds are frequently malformed, so extraction is
done field by field instead of all-or-nothing.  feedparser is consulted
first; when its entries line up with the ``<item>``/``<entry>`` blocks
found in the raw text its values are used, and pattern extraction on the
raw block fills every field it left empty.  When feedparser cannot make
sense of the document the patterns are used alone.
"""

import io
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable, List, Optional

import feedparser

logger = logging.getLogger(__name__)

_TITLE_ELEMENT = re.compile(r"<title\b[^>]*>", re.I)
_ITEM_BLOCK = re.compile(r"<item\b[^>]*>.*?</item\s*>", re.I | re.S)
_ENTRY_BLOCK = re.compile(r"<entry\b[^>]*>.*?</entry\s*>", re.I | re.S)
_HREF = re.compile(r"<link\b[^>]*?\bhref\s*=\s*[\"']([^\"']*)[\"']", re.I)
_CATEGORY_TERM = re.compile(
    r"<category\b[^>]*?\bterm\s*=\s*[\"']([^\"']*)[\"']", re.I
)

_CDATA = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.S)
_TAG = re.compile(r"</?[A-Za-z!?][^<>]*>")
# &amp; last so "&amp;lt;" decodes to "&lt;", not "<"
_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&apos;", "'"),
    ("&nbsp;", " "),
    ("&amp;", "&"),
)
_HTML_TYPES = {"text/html", "application/xhtml+xml"}


@dataclass
class FeedItem:
    title: str
    link: str = ""
    description: str = ""
    pub_date: str = ""
    guid: str = ""
    categories: List[str] = field(default_factory=list)
    author: Optional[str] = None


@dataclass
class ParsedFeed:
    feed_url: str
    title: str
    description: str
    items: List[FeedItem]
    last_build_date: Optional[str] = None


def clean_text(text: Optional[str]) -> str:
    """Unwrap CDATA, strip markup, decode the standard entities and trim."""
    if not text:
        return ""
    text = _CDATA.sub(r"\1", text)
    text = _TAG.sub("", text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    # escaped markup only becomes visible after decoding
    text = _TAG.sub("", text)
    return text.strip()


@lru_cache(maxsize=None)
def _element_pattern(name: str) -> "re.Pattern[str]":
    tag = re.escape(name)
    return re.compile(rf"<{tag}(?:\s[^>]*)?(?<!/)>(.*?)</{tag}\s*>", re.I | re.S)


def _first_element(block: str, names: Iterable[str]) -> Optional[str]:
    for name in names:
        m = _element_pattern(name).search(block)
        if m:
            return m.group(1)
    return None


def _all_elements(block: str, name: str) -> List[str]:
    return _element_pattern(name).findall(block)


def _entry_text(entry, key: str) -> str:
    """Text of a feedparser field, cleaned according to its content type."""
    if entry is None:
        return ""
    value = entry.get(key) or ""
    detail = entry.get(f"{key}_detail") or {}
    if detail.get("type") in _HTML_TYPES:
        return clean_text(value)
    return value.strip()


def _entry_description(entry) -> str:
    if entry is None:
        return ""
    summary = _entry_text(entry, "summary")
    if summary:
        return summary
    for content in entry.get("content") or []:
        value = content.get("value") or ""
        if content.get("type") in _HTML_TYPES:
            value = clean_text(value)
        if value.strip():
            return value.strip()
    return ""


def _entry_categories(entry) -> List[str]:
    if entry is None:
        return []
    terms = (clean_text(tag.get("term")) for tag in entry.get("tags") or [])
    return [t for t in terms if t]


def _block_categories(block: str) -> List[str]:
    found = [clean_text(c) for c in _all_elements(block, "category")]
    found += [clean_text(t) for t in _CATEGORY_TERM.findall(block)]
    return [c for c in found if c]


def _block_link(block: str) -> str:
    text = clean_text(_first_element(block, ("link",)))
    if text:
        return text
    m = _HREF.search(block)
    return clean_text(m.group(1)) if m else ""


def _parse_item(block: str, entry=None) -> Optional[FeedItem]:
    """Build a FeedItem from a raw block and its feedparser entry, if any.

    Returns ``None`` when no non-empty title can be found.
    """
    title = _entry_text(entry, "title") or clean_text(
        _first_element(block, ("title",))
    )
    if not title:
        return None

    # feedparser copies a permalink guid into link when the item has none
    raw_link = _block_link(block)
    link = (_entry_text(entry, "link") or raw_link) if raw_link else ""

    author = (
        _entry_text(entry, "author")
        or clean_text(_first_element(block, ("author", "dc:creator")))
        or None
    )
    return FeedItem(
        title=title,
        link=link,
        description=_entry_description(entry)
        or clean_text(
            _first_element(
                block, ("description", "summary", "content:encoded", "content")
            )
        ),
        pub_date=(
            _entry_text(entry, "published")
            or _entry_text(entry, "updated")
            or clean_text(
                _first_element(block, ("pubDate", "published", "updated", "dc:date"))
            )
        ),
        guid=_entry_text(entry, "id") or clean_text(_first_element(block, ("guid", "id"))),
        categories=_entry_categories(entry) or _block_categories(block),
        author=author,
    )


def _feedparser_result(raw: str):
    # a stream keeps feedparser from treating the text as a path or URL
    try:
        return feedparser.parse(io.BytesIO(raw.encode("utf-8")))
    except Exception as e:  # feedparser is best effort here
        logger.warning(f"feedparser failed, using pattern extraction only: {e}")
        return None


def parse_feed(raw: str, feed_url: str = "") -> Optional[ParsedFeed]:
    """Parse raw RSS/Atom text.

    Parameters
    ----------
    raw : str
        Feed body as downloaded
    feed_url : str
        URL the body came from, copied into the result

    Returns
    -------
    Optional[ParsedFeed]
        ``None`` when the text contains no title element at all; otherwise
        the feed with every titled item in document order
    """
    if not raw or not _TITLE_ELEMENT.search(raw):
        logger.warning(f"No title element found, feed is unparseable: {feed_url or '<raw>'}")
        return None

    blocks = _ITEM_BLOCK.findall(raw) or _ENTRY_BLOCK.findall(raw)

    parsed = _feedparser_result(raw)
    entries = list(parsed.entries) if parsed is not None else []
    if len(entries) != len(blocks):
        if entries:
            logger.debug(
                f"feedparser found {len(entries)} entries but {len(blocks)} "
                f"blocks in {feed_url or '<raw>'}; using pattern extraction"
            )
        entries = [None] * len(blocks)

    items = []
    for block, entry in zip(blocks, entries):
        item = _parse_item(block, entry)
        if item is None:
            logger.debug("Dropping feed item without title")
            continue
        items.append(item)

    channel = parsed.feed if parsed is not None else {}
    head = raw[: raw.find(blocks[0])] if blocks else raw
    title = _entry_text(channel, "title") or clean_text(_first_element(raw, ("title",)))
    description = _entry_text(channel, "subtitle") or clean_text(
        _first_element(head, ("description", "subtitle"))
    )
    last_build = clean_text(_first_element(head, ("lastBuildDate", "updated"))) or (
        _entry_text(channel, "updated") or None
    )

    return ParsedFeed(
        feed_url=feed_url,
        title=title or "Unknown Feed",
        description=description,
        items=items,
        last_build_date=last_build,
    )
