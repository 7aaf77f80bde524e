"""Tests for item normalization: identifiers, priorities, tags and dates."""

from datetime import datetime, timezone

import pytest

from helixfeed.normalizer import (
    ITEM_KEY_LENGTH,
    derive_identifier,
    derive_item_key,
    determine_priority,
    extract_tags,
    format_content,
    normalize_item,
    parse_feed_date,
)
from helixfeed.parser import FeedItem


class TestIdentifier:

    def test_prefers_guid(self, fda_feed):
        item = FeedItem(title="Recall Notice", link="https://x/1", guid="abc123")
        assert derive_item_key(item) == "abc123"
        assert derive_identifier(item, fda_feed) == "rss-fda-main-abc123"

    def test_falls_back_to_link_then_title(self):
        assert derive_item_key(FeedItem(title="T", link="https://x.org/A-1")) == "httpsxorga1"
        assert derive_item_key(FeedItem(title="Class I Recall!")) == "classirecall"

    def test_guid_without_alphanumerics_falls_through(self):
        item = FeedItem(title="Title", link="https://x/2", guid="---")
        assert derive_item_key(item) == "httpsx2"

    def test_deterministic(self, fda_feed):
        item = FeedItem(
            title="Recall Notice",
            description="Class I recall",
            guid="urn:uuid:0F1E-22",
        )
        first = normalize_item(item, fda_feed)
        second = normalize_item(
            FeedItem(title="Recall Notice", description="Class I recall", guid="urn:uuid:0F1E-22"),
            fda_feed,
        )
        assert first.identifier == second.identifier == "rss-fda-main-urnuuid0f1e22"

    def test_long_keys_are_bounded_and_distinct(self):
        base = "https://www.fda.gov/medical-devices/safety-communications/" + "x" * 80
        a = derive_item_key(FeedItem(title="A", link=base + "/alpha"))
        b = derive_item_key(FeedItem(title="B", link=base + "/beta"))
        assert len(a) == len(b) == ITEM_KEY_LENGTH
        assert a != b
        assert a == derive_item_key(FeedItem(title="A", link=base + "/alpha"))

    def test_non_latin_title(self):
        key = derive_item_key(FeedItem(title="医疗器械召回"))
        assert key
        assert key == derive_item_key(FeedItem(title="医疗器械召回"))


class TestPriority:

    @pytest.mark.parametrize(
        "title,description,expected",
        [
            ("Recall of insulin pumps", "", "critical"),
            ("Safety Alert", "", "critical"),
            ("Notice", "Urgent field correction", "critical"),
            ("Notice", "Immediate action required", "critical"),
            ("Warning letter issued", "", "high"),
            ("Draft Guidance", "", "high"),
            ("510(k) clearance", "", "high"),
            ("Approval of device", "", "high"),
            ("Announcement", "", "medium"),
            ("Labeling change", "", "medium"),
            ("Quarterly statistics", "", "low"),
            ("", "", "low"),
        ],
    )
    def test_keyword_families(self, title, description, expected):
        assert determine_priority(title, description) == expected

    def test_recall_wins_over_other_families(self):
        assert determine_priority("Recall guidance update", "approval announcement") == "critical"
        assert determine_priority("RECALL", "warning") == "critical"

    def test_high_wins_over_medium(self):
        assert determine_priority("New guidance", "") == "high"

    def test_pure(self):
        results = {determine_priority("Guidance on cybersecurity", "update") for _ in range(5)}
        assert results == {"high"}


class TestDates:

    def test_rfc822(self):
        parsed = parse_feed_date("Mon, 15 Jan 2024 10:00:00 GMT")
        assert parsed == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)

    def test_iso8601_with_zulu(self):
        parsed = parse_feed_date("2024-01-14T09:30:00Z")
        assert parsed == datetime(2024, 1, 14, 9, 30, tzinfo=timezone.utc)

    def test_naive_iso_is_utc(self):
        parsed = parse_feed_date("2024-01-14T09:30:00")
        assert parsed.tzinfo is not None
        assert parsed == datetime(2024, 1, 14, 9, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", ["", None, "yesterday-ish", "32/13/2024"])
    def test_unparseable_falls_back_to_now(self, value, frozen_now):
        assert parse_feed_date(value, now=frozen_now) == frozen_now


class TestRecord:

    def test_normalize_item(self, fda_feed, frozen_now):
        item = FeedItem(
            title="Recall Notice",
            link="https://www.fda.gov/recall",
            description="Class I recall — immediate action required",
            pub_date="not a date",
            guid="abc123",
            categories=["recalls"],
            author="FDA Press",
        )
        record = normalize_item(item, fda_feed, now=frozen_now)

        assert record.identifier == "rss-fda-main-abc123"
        assert record.title == "Recall Notice"
        assert record.authority == "FDA"
        assert record.region == "United States"
        assert record.source == "FDA News & Updates (RSS)"
        assert record.priority == "critical"
        assert record.published_at == frozen_now
        assert record.update_type == "rss_update"
        assert record.metadata["feed_id"] == "fda-main"
        assert record.metadata["original_link"] == "https://www.fda.gov/recall"
        assert record.metadata["guid"] == "abc123"
        assert record.metadata["categories"] == ["recalls"]
        assert "recall" in record.metadata["tags"]

    def test_format_content(self, fda_feed):
        item = FeedItem(
            title="T",
            link="https://x/1",
            description="Body text",
            categories=["a", "b"],
            author="Jane",
        )
        assert format_content(item, fda_feed) == (
            "**Source:** FDA News & Updates\n\n"
            "**Author:** Jane\n\n"
            "**Categories:** a, b\n\n"
            "**Original Link:** https://x/1\n\n"
            "**Description:**\nBody text"
        )

    def test_format_content_minimal(self, fda_feed):
        assert format_content(FeedItem(title="T"), fda_feed) == "**Source:** FDA News & Updates"

    def test_extract_tags(self, fda_feed):
        item = FeedItem(
            title="AI software for device recall tracking",
            description="Safety guidance",
            categories=["recall", "devices"],
        )
        tags = extract_tags(item, fda_feed)
        assert tags[:2] == ["fda", "rss_feed"]
        assert tags.count("recall") == 1
        for tag in ("devices", "guidance", "safety", "medical_device", "software", "ai"):
            assert tag in tags
        assert "approval" not in tags

    def test_ai_tag_needs_whole_word(self, fda_feed):
        item = FeedItem(title="Maintenance schedule", description="")
        assert "ai" not in extract_tags(item, fda_feed)
