"""Tests for fetch orchestration across repositories and collections."""

import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from credit.errors import RateLimitExhausted, TransportFailure
from credit.models import CollectionKind, DateRange, GraphQLResponse, Repository, Strategy
from credit.orchestrator import fetch_collection, fetch_reports, fetch_repository


def _issue_node(number, author="alice", comments=()):
    return {
        "number": number,
        "author": {"login": author},
        "createdAt": "2026-01-01T00:00:00Z",
        "closedAt": "2026-01-01T02:00:00Z",
        "comments": {"nodes": list(comments)},
    }


def _pr_node(number, author="alice", merged=True):
    node = _issue_node(number, author=author)
    node["mergedAt"] = "2026-01-01T02:00:00Z" if merged else None
    node["reviews"] = {
        "nodes": [{"author": {"login": "maint"}, "authorAssociation": "MEMBER", "createdAt": "2026-01-01T01:00:00Z"}]
    }
    return node


def _page(kind, nodes):
    return GraphQLResponse(
        data={"repository": {kind: {"pageInfo": {"hasNextPage": False, "endCursor": None}, "nodes": nodes}}},
        rate_limit_remaining=4000,
    )


def _client(failing=None, error=None):
    """Build a fake client serving one page per collection for any repository."""
    calls = []
    lock = threading.Lock()

    def execute(query, variables):
        kind = "issues" if "issues(" in query else "pullRequests"
        full_name = f"{variables['owner']}/{variables['name']}"
        with lock:
            calls.append((full_name, kind))
        if full_name == failing:
            raise error
        if kind == "issues":
            return _page(kind, [_issue_node(1), _issue_node(2, author="bob")])
        return _page(kind, [_pr_node(3), _pr_node(4, merged=False)])

    client = Mock()
    client.execute.side_effect = execute
    client.commit_count.return_value = 3
    client.calls = calls
    return client


def test_fetch_collection_returns_frozen_accumulator():
    """Verify one collection fetch folds every item into a finalized accumulator."""
    client = _client()

    frozen = fetch_collection(client, Repository("o", "one"), CollectionKind.PULL_REQUESTS, DateRange())

    assert frozen.kind is CollectionKind.PULL_REQUESTS
    assert frozen.total == 2
    assert frozen.merged == 1
    assert frozen.closed_without_merge == 1
    assert frozen.with_official_response == 2
    assert frozen.code_contributors == {"alice": 1}
    assert frozen.contributor_commits == {}
    client.commit_count.assert_not_called()


def test_fetch_repository_concurrent_returns_both_collections():
    """Verify the concurrent strategy fetches Issues and Pull Requests of a repository."""
    client = _client()

    fetch = fetch_repository(client, Repository("o", "one"))

    assert fetch.issues.total == 2
    assert fetch.pull_requests.total == 2
    assert sorted(client.calls) == [("o/one", "issues"), ("o/one", "pullRequests")]


def test_fetch_repository_serial_fetches_issues_first():
    """Verify the serial strategy finishes Issues before requesting Pull Requests."""
    client = _client()

    fetch_repository(client, Repository("o", "one"), strategy=Strategy.SERIAL)

    assert client.calls == [("o/one", "issues"), ("o/one", "pullRequests")]


def test_fetch_reports_returns_each_repository_in_request_order():
    """Verify every requested repository gets its own accumulator pair."""
    client = _client()
    repositories = [Repository("o", "one"), Repository("o", "two"), Repository("o", "three")]

    results = fetch_reports(client, repositories)

    assert list(results) == ["o/one", "o/two", "o/three"]
    assert all(fetch.issues.total == 2 for fetch in results.values())
    assert results["o/two"].repository == Repository("o", "two")


def test_fetch_reports_commit_tracking_counts_commits_of_merged_prs():
    """Verify commit tracking issues one extra request per merged PR."""
    client = _client()

    results = fetch_reports(client, [Repository("o", "one")], commit_tracking=True)

    client.commit_count.assert_called_once_with(Repository("o", "one"), 3)
    assert results["o/one"].pull_requests.contributor_commits == {"alice": 3}


def test_fetch_reports_rate_limit_discards_all_results():
    """Verify a quota failure on one of three repositories surfaces one RateLimitExhausted error."""
    client = _client(failing="o/two", error=RateLimitExhausted("API rate limit exceeded"))
    repositories = [Repository("o", "one"), Repository("o", "two"), Repository("o", "three")]

    with pytest.raises(RateLimitExhausted) as excinfo:
        fetch_reports(client, repositories)

    assert excinfo.value.repository == "o/two"
    assert excinfo.value.kind in ("issues", "pullRequests")


def test_fetch_reports_serial_stops_after_failure():
    """Verify the serial strategy does not start repositories queued after a failure."""
    client = _client(failing="o/one", error=TransportFailure("connection reset"))
    repositories = [Repository("o", "one"), Repository("o", "two")]

    with pytest.raises(TransportFailure):
        fetch_reports(client, repositories, strategy=Strategy.SERIAL)

    assert all(full_name == "o/one" for full_name, _ in client.calls)


def test_fetch_reports_applies_date_range():
    """Verify items outside the date range are not accumulated."""
    client = _client()
    date_range = DateRange(after=datetime(2026, 2, 1, tzinfo=timezone.utc))

    results = fetch_reports(client, [Repository("o", "one")], date_range=date_range)

    assert results["o/one"].issues.total == 0
    assert results["o/one"].pull_requests.total == 0
