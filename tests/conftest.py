#!/usr/bin/env python3
"""
Pytest configuration and fixtures
"""

import pytest
from datetime import datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import yaml

from helixfeed.models import Base
from helixfeed.registry import FeedDefinition, MonitorSettings
from tests.helpers import FakeFetcher, mock_rss_feed


@pytest.fixture
def test_db():
    """In-memory SQLite database for tests"""
    engine = create_engine(
        "sqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def fast_settings():
    """Monitor settings without politeness delays"""
    return MonitorSettings(politeness_delay=0, inter_feed_delay=0, request_timeout=5)


@pytest.fixture
def fda_feed():
    return FeedDefinition(
        id="fda-main",
        name="FDA News & Updates",
        url="https://www.fda.gov/rss.xml",
        authority="FDA",
        region="United States",
        check_frequency=60,
    )


@pytest.fixture
def ema_feed():
    return FeedDefinition(
        id="ema-main",
        name="EMA News & Updates",
        url="https://www.ema.europa.eu/en/rss.xml",
        authority="EMA",
        region="European Union",
        check_frequency=120,
    )


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def frozen_now():
    return datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_rss_feed():
    """Test RSS 2.0 feed with three items"""
    return mock_rss_feed([
        {
            "title": "FDA Approves New Cardiac Monitor",
            "link": "https://www.fda.gov/news/cardiac-monitor",
            "description": "Approval of an implantable cardiac monitoring device.",
            "guid": "fda-2024-001",
            "categories": ["approvals", "cardiac"],
        },
        {
            "title": "Safety Communication on Surgical Robots",
            "link": "https://www.fda.gov/news/surgical-robots",
            "description": "Information about risks of robotic surgical systems.",
            "guid": "fda-2024-002",
        },
        {
            "title": "Recall of Insulin Pumps",
            "link": "https://www.fda.gov/news/insulin-pumps",
            "description": "Voluntary recall due to potential dosing errors.",
            "guid": "fda-2024-003",
        },
    ])


@pytest.fixture
def sample_atom_feed():
    """Test Atom feed with two entries"""
    return """<?xml version="1.0" encoding="UTF-8"?>
    <feed xmlns="http://www.w3.org/2005/Atom">
        <title>MHRA Updates</title>
        <updated>2024-01-15T10:00:00Z</updated>
        <entry>
            <title>MHRA Publishes Post-Market Surveillance Guidance</title>
            <link rel="alternate" href="https://www.gov.uk/guidance/pms"/>
            <id>tag:gov.uk,2024:pms</id>
            <updated>2024-01-14T09:30:00Z</updated>
            <summary>New guidance for post-market surveillance.</summary>
            <author><name>MHRA</name></author>
            <category term="guidance"/>
        </entry>
        <entry>
            <title>Device Safety Information: Infusion Sets</title>
            <link rel="alternate" href="https://www.gov.uk/drug-device-alerts/infusion-sets"/>
            <id>tag:gov.uk,2024:infusion</id>
            <updated>2024-01-13T08:00:00Z</updated>
            <summary>Field safety notice for infusion sets.</summary>
        </entry>
    </feed>"""


@pytest.fixture
def test_config_path(tmp_path):
    """Temporary feeds.yaml for tests"""
    config = {
        "settings": {"politeness_delay": 0, "inter_feed_delay": 0},
        "feeds": [
            {
                "id": "test-rss",
                "name": "Test RSS",
                "url": "https://example.com/rss.xml",
                "authority": "FDA",
                "region": "United States",
                "check_frequency": 60,
            },
            {
                "id": "test-atom",
                "name": "Test Atom",
                "url": "https://example.com/feed.atom",
                "authority": "MHRA",
                "region": "United Kingdom",
                "active": False,
                "check_frequency": 120,
            },
        ],
    }
    config_path = tmp_path / "feeds.yaml"
    config_path.write_text(yaml.safe_dump(config))
    return config_path
