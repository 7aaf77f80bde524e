# models.py
"""SQLAlchemy models for the regulatory-update store.

Two tables back the ingestion pipeline: ``regulatory_updates`` holds one
row per ingested feed item and ``feed_check_log`` records every feed
check performed by the monitor.  The derived item identifier carries a
real unique constraint so that duplicate suppression does not depend on
the application-level check alone; (title, authority) is indexed for the
secondary duplicate heuristic.
"""

from datetime import datetime, timezone
from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    Enum,
    Float,
    Integer,
    JSON,
    Index,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Session, declarative_base, sessionmaker
import uuid


Base = declarative_base()

PRIORITIES = ("low", "medium", "high", "critical")


def generate_uuid():
    """Generate UUID objects compatible with SQLAlchemy's UUID type."""
    return uuid.uuid4()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RegulatoryUpdate(Base):
    __tablename__ = "regulatory_updates"
    __table_args__ = (
        UniqueConstraint("identifier", name="uq_regulatory_update_identifier"),
        Index("ix_regulatory_update_title_authority", "title", "authority"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    identifier = Column(String(128), nullable=False)
    title = Column(Text, nullable=False)
    content = Column(Text)
    source = Column(String(255))
    authority = Column(String(50), nullable=False)
    region = Column(String(100))
    update_type = Column(String(50), default="rss_update")
    priority = Column(Enum(*PRIORITIES, name="update_priority"), default="low")
    status = Column(String(20), default="published")
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=True)


class FeedCheckLog(Base):
    """One row per feed check performed by the monitor."""
    __tablename__ = "feed_check_log"
    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    feed_id = Column(String(50), nullable=False, index=True)
    status = Column(
        Enum("success", "fetch_error", "parse_error", "error", name="check_status")
    )
    checked_at = Column(DateTime(timezone=True), default=utcnow)
    items_found = Column(Integer, default=0)
    new_items = Column(Integer, default=0)
    duplicates = Column(Integer, default=0)
    response_time = Column(Float, nullable=True)  # seconds
    bytes_downloaded = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)


def open_session(db_url: str) -> Session:
    """Create the tables if needed and return a session bound to ``db_url``."""
    engine = create_engine(db_url)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)()
