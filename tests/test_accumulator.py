"""Tests for running aggregation of classified items."""

import random
import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from credit.accumulator import Accumulator
from credit.errors import InvalidStateError
from credit.models import ClassifiedItem, CollectionKind


def _issue(number: int, **kwargs) -> ClassifiedItem:
    defaults = {"kind": CollectionKind.ISSUES, "number": number, "author": "author", "is_closed": False}
    defaults.update(kwargs)
    return ClassifiedItem(**defaults)


def _pr(number: int, **kwargs) -> ClassifiedItem:
    defaults = {"kind": CollectionKind.PULL_REQUESTS, "number": number, "author": "author", "is_closed": False}
    defaults.update(kwargs)
    return ClassifiedItem(**defaults)


def test_ingest_total_is_independent_of_order():
    """Verify total and samples are the same for any ingestion order."""
    items = [
        _issue(i, is_closed=i % 2 == 0, first_response_time=float(i * 60), commentors=frozenset({f"user{i % 3}"}))
        for i in range(1, 11)
    ]
    shuffled = list(items)
    random.Random(7).shuffle(shuffled)

    first = Accumulator(CollectionKind.ISSUES)
    second = Accumulator(CollectionKind.ISSUES)
    for item in items:
        first.ingest(item)
    for item in shuffled:
        second.ingest(item)

    assert first.total == second.total == 10
    assert first.closed == second.closed == 5
    assert sorted(first.response_times) == sorted(second.response_times)
    assert first.commentors == second.commentors


def test_ingest_closed_issue_without_response():
    """Verify a closed item without comments only counts as closed."""
    accumulator = Accumulator(CollectionKind.ISSUES)
    accumulator.ingest(_issue(1, is_closed=True, close_time=3600.0))

    assert accumulator.closed == 1
    assert accumulator.with_response == 0
    assert accumulator.response_times == []
    assert accumulator.official_response_times == []
    assert accumulator.close_times == [3600.0]


def test_ingest_counts_official_responses():
    """Verify any and official responses are counted and sampled separately."""
    accumulator = Accumulator(CollectionKind.ISSUES)
    accumulator.ingest(_issue(1, first_response_time=60.0, first_official_response_time=120.0))
    accumulator.ingest(_issue(2, first_response_time=30.0))

    assert accumulator.with_response == 2
    assert accumulator.with_official_response == 1
    assert accumulator.official_response_times == [120.0]


def test_merged_pull_request_credits_author_once():
    """Verify a merged PR adds exactly one code contribution regardless of commits or comments."""
    accumulator = Accumulator(CollectionKind.PULL_REQUESTS)
    accumulator.ingest(
        _pr(
            1,
            author="alice",
            is_closed=True,
            is_merged=True,
            merge_time=600.0,
            commits=12,
            commentors=frozenset({"bob", "carol"}),
        )
    )

    assert accumulator.code_contributors == {"alice": 1}
    assert accumulator.contributor_commits == {"alice": 12}
    assert accumulator.merged == 1
    assert accumulator.merge_times == [600.0]
    assert accumulator.commentors == {"bob": 1, "carol": 1}


def test_closed_unmerged_pull_request_counts_as_closed_without_merge():
    """Verify closed unmerged PRs earn no code contribution credit."""
    accumulator = Accumulator(CollectionKind.PULL_REQUESTS)
    accumulator.ingest(_pr(1, author="alice", is_closed=True))

    assert accumulator.closed_without_merge == 1
    assert accumulator.merged == 0
    assert accumulator.code_contributors == {}


def test_ingest_after_finalize_raises_invalid_state():
    """Verify a finalized accumulator refuses further items."""
    accumulator = Accumulator(CollectionKind.ISSUES)
    accumulator.ingest(_issue(1))
    frozen = accumulator.finalize()

    with pytest.raises(InvalidStateError):
        accumulator.ingest(_issue(2))

    assert frozen.total == 1
    assert accumulator.finalize() is frozen


def test_ingest_wrong_kind_raises_invalid_state():
    """Verify pull request items cannot be ingested into an issue accumulator."""
    accumulator = Accumulator(CollectionKind.ISSUES)

    with pytest.raises(InvalidStateError):
        accumulator.ingest(_pr(1))


def test_finalize_snapshot_is_detached_from_accumulator():
    """Verify the frozen snapshot holds copies of samples and rankings."""
    accumulator = Accumulator(CollectionKind.ISSUES)
    accumulator.ingest(_issue(1, first_response_time=5.0, commentors=frozenset({"bob"})))
    frozen = accumulator.finalize()

    accumulator.commentors["bob"] = 99

    assert frozen.response_times == (5.0,)
    assert frozen.commentors == {"bob": 1}
