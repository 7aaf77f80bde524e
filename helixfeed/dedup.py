# dedup.py
"""Duplicate detection for regulatory updates.

:class:`DuplicateFilter` is the write-time check used by the monitor: a
candidate is rejected when its identifier is already stored, or when a
stored record has the same (title, authority) pair.  Both cases are
expected while re-polling feeds and are not errors.

:func:`find_near_duplicates` is an offline review aid.  It groups stored
records of the same authority whose titles are similar but not equal;
nothing is rejected or deleted on its basis.
"""

import difflib
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple

from .models import RegulatoryUpdate

logger = logging.getLogger(__name__)

IDENTIFIER = "identifier"
TITLE_AUTHORITY = "title_authority"


class DuplicateFilter:
    """In-memory view of the stored duplicate keys."""

    def __init__(
        self,
        identifiers: Iterable[str] = (),
        title_keys: Iterable[Tuple[str, str]] = (),
    ):
        self.identifiers: Set[str] = set(identifiers)
        self.title_keys: Set[Tuple[str, str]] = set(title_keys)

    @classmethod
    def from_sink(cls, sink) -> "DuplicateFilter":
        """Load the keys of every stored record."""
        identifiers, title_keys = sink.existing_keys()
        return cls(identifiers, title_keys)

    def check(self, record) -> Optional[str]:
        """Return why ``record`` is a duplicate, or ``None`` to accept it."""
        if record.identifier in self.identifiers:
            return IDENTIFIER
        if (record.title, record.authority) in self.title_keys:
            return TITLE_AUTHORITY
        return None

    def remember(self, record) -> None:
        self.identifiers.add(record.identifier)
        self.title_keys.add((record.title, record.authority))

    def __len__(self):
        return len(self.identifiers)


@dataclass
class NearDuplicate:
    authority: str
    first_identifier: str
    first_title: str
    second_identifier: str
    second_title: str
    similarity: float


_PUNCT = re.compile(r"[^\w\s]")
_SPACES = re.compile(r"\s+")


def _normalize_title(title: str) -> str:
    return _SPACES.sub(" ", _PUNCT.sub("", title.lower())).strip()


def title_similarity(a: str, b: str) -> float:
    """Ratio in [0, 1] between two titles, ignoring case and punctuation."""
    a, b = _normalize_title(a), _normalize_title(b)
    if a == b:
        return 1.0
    return difflib.SequenceMatcher(None, a, b).ratio()


def find_near_duplicates(
    records: Iterable[RegulatoryUpdate],
    threshold: float = 0.85,
) -> List[NearDuplicate]:
    """Pairs of records from one authority with similar titles.

    Parameters
    ----------
    records : Iterable[RegulatoryUpdate]
        Stored records to compare
    threshold : float
        Minimum :func:`title_similarity` for a pair to be reported

    Returns
    -------
    List[NearDuplicate]
        Matches sorted by descending similarity
    """
    by_authority = {}
    for record in records:
        by_authority.setdefault(record.authority, []).append(record)

    matches: List[NearDuplicate] = []
    for authority, group in by_authority.items():
        for i, first in enumerate(group):
            for second in group[i + 1:]:
                score = title_similarity(first.title, second.title)
                if score >= threshold:
                    matches.append(
                        NearDuplicate(
                            authority=authority,
                            first_identifier=first.identifier,
                            first_title=first.title,
                            second_identifier=second.identifier,
                            second_title=second.title,
                            similarity=round(score, 3),
                        )
                    )

    matches.sort(key=lambda m: m.similarity, reverse=True)
    logger.info(f"Found {len(matches)} near-duplicate pairs (threshold {threshold})")
    return matches
