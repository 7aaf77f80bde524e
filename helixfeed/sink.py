# sink.py
"""Persistence of normalized regulatory updates.

Writes go through a single ``create_regulatory_update`` call.  The unique
constraint on ``identifier`` is the authoritative duplicate check: a
violation is rolled back and surfaced as :class:`DuplicateRecordError`
so callers can treat it as insert-or-skip.
"""

import logging
from typing import Set, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .exceptions import DuplicateRecordError
from .models import RegulatoryUpdate
from .normalizer import RegulatoryUpdateRecord

logger = logging.getLogger(__name__)


class RegulatoryUpdateSink:
    """Stores regulatory updates through a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def create_regulatory_update(self, record: RegulatoryUpdateRecord) -> RegulatoryUpdate:
        row = RegulatoryUpdate(
            identifier=record.identifier,
            title=record.title,
            content=record.content,
            source=record.source,
            authority=record.authority,
            region=record.region,
            update_type=record.update_type,
            priority=record.priority,
            status=record.status,
            published_at=record.published_at,
            extra=record.metadata,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateRecordError(record.identifier) from e
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Stored regulatory update: {record.title}")
        return row

    def existing_keys(self) -> Tuple[Set[str], Set[Tuple[str, str]]]:
        """Identifiers and (title, authority) pairs already stored."""
        rows = self.db.query(
            RegulatoryUpdate.identifier,
            RegulatoryUpdate.title,
            RegulatoryUpdate.authority,
        ).all()
        return (
            {r.identifier for r in rows},
            {(r.title, r.authority) for r in rows},
        )
