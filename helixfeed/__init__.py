# helixfeed package
"""Regulatory feed ingestion: poll authority RSS/Atom feeds and store de-duplicated updates."""

from .models import RegulatoryUpdate, FeedCheckLog
from .registry import FeedDefinition, MonitorSettings, load_registry
from .fetcher import FetchResult, fetch_feed
from .parser import FeedItem, ParsedFeed, clean_text, parse_feed
from .normalizer import (
    RegulatoryUpdateRecord, derive_identifier, determine_priority,
    normalize_item, parse_feed_date,
)
from .dedup import DuplicateFilter, find_near_duplicates
from .sink import RegulatoryUpdateSink
from .monitor import FeedMonitor, MonitorState, FeedCheckResult, PassReport
from .exceptions import (
    HelixFeedError, ConfigError, FetchError, FeedNotFoundError, DuplicateRecordError,
)

__version__ = "1.0.0"

__all__ = [
    # Models
    "RegulatoryUpdate", "FeedCheckLog",

    # Registry
    "FeedDefinition", "MonitorSettings", "load_registry",

    # Pipeline
    "FetchResult", "fetch_feed",
    "FeedItem", "ParsedFeed", "clean_text", "parse_feed",
    "RegulatoryUpdateRecord", "derive_identifier", "determine_priority",
    "normalize_item", "parse_feed_date",
    "DuplicateFilter", "find_near_duplicates",
    "RegulatoryUpdateSink",

    # Monitoring
    "FeedMonitor", "MonitorState", "FeedCheckResult", "PassReport",

    # Errors
    "HelixFeedError", "ConfigError", "FetchError", "FeedNotFoundError",
    "DuplicateRecordError",
]
