"""Per-item classification of Issues and Pull Requests.

This module derives the timing facts and contributor credit of one item:
- First response: earliest comment by anyone other than the item author.
- First official response: earliest such comment by an Owner or Member.
- Close and merge latency, measured from creation.
- Commentor credit: every distinct non-author commentor, once per item.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import AbstractSet, Iterable, Optional

from .models import ClassifiedItem, Comment, ItemRecord, PullRequestRecord

logger = logging.getLogger(__name__)


def _elapsed(record: ItemRecord, moment: Optional[datetime], metric: str) -> Optional[float]:
    """Seconds between item creation and ``moment``; ``None`` if absent or negative."""
    if moment is None:
        return None

    duration_seconds = (moment - record.created_at).total_seconds()
    if duration_seconds < 0:
        logger.debug(
            "Skipping negative duration",
            extra={"number": record.number, "metric": metric, "duration_seconds": duration_seconds},
        )
        return None

    return duration_seconds


def _first_response(
    record: ItemRecord,
    comments: Iterable[Comment],
) -> Optional[datetime]:
    for comment in comments:
        if comment.author == record.author:
            continue
        return comment.created_at
    return None


def classify(
    record: ItemRecord,
    official_associations: Optional[AbstractSet[str]] = None,
) -> ClassifiedItem:
    """Classify one decoded record.

    Comments are inspected in API delivery order. An author commenting on
    their own item never counts as a response, official or otherwise.

    Args:
        record: Decoded Issue or Pull Request.
        official_associations: Author associations treated as official. When
            omitted, each comment's own ``is_official`` flag is used.

    Returns:
        The ``ClassifiedItem`` for ``record``.
    """
    if official_associations is None:
        official = [comment for comment in record.comments if comment.is_official]
    else:
        official = [comment for comment in record.comments if comment.association in official_associations]

    first_response_at = _first_response(record, record.comments)
    first_official_at = _first_response(record, official)

    merged_at = record.merged_at if isinstance(record, PullRequestRecord) else None

    commentors = frozenset(
        comment.author for comment in record.comments if comment.author != record.author
    )

    return ClassifiedItem(
        kind=record.kind,
        number=record.number,
        author=record.author,
        is_closed=record.closed_at is not None,
        is_merged=merged_at is not None,
        first_response_time=_elapsed(record, first_response_at, "first_response"),
        first_official_response_time=_elapsed(record, first_official_at, "first_official_response"),
        close_time=_elapsed(record, record.closed_at, "close"),
        merge_time=_elapsed(record, merged_at, "merge"),
        commentors=commentors,
    )
