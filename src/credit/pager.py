"""Cursor-based pagination over the Issue and Pull Request connections.

A ``Pager`` issues one GraphQL request per page, newest items first, and
yields decoded records in the order the API delivers them. Records created
outside the requested date range are dropped, and paging stops early once a
page reaches past the lower bound of the range.
"""

from __future__ import annotations

import heapq
import logging
import threading
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import CollectionError, MalformedResponse
from .github_client import GitHubClient, parse_datetime
from .models import (
    GHOST,
    CollectionKind,
    Comment,
    Cursor,
    DateRange,
    IssueRecord,
    ItemRecord,
    PullRequestRecord,
    Repository,
)

logger = logging.getLogger(__name__)

OFFICIAL_ASSOCIATIONS = frozenset({"OWNER", "MEMBER"})

_COMMENT_FIELDS = """
          author {
            login
          }
          authorAssociation
          createdAt
"""

_ISSUES_QUERY = """
query($owner: String!, $name: String!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $name) {
    issues(first: $first, after: $after, orderBy: {field: CREATED_AT, direction: DESC}) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        number
        author {
          login
        }
        createdAt
        closedAt
        comments(first: 100) {
          nodes {%s}
        }
      }
    }
  }
}
""" % _COMMENT_FIELDS

_PULL_REQUESTS_QUERY = """
query($owner: String!, $name: String!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $name) {
    pullRequests(first: $first, after: $after, orderBy: {field: CREATED_AT, direction: DESC}) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        number
        author {
          login
        }
        createdAt
        closedAt
        mergedAt
        comments(first: 100) {
          nodes {%s}
        }
        reviews(first: 100) {
          nodes {%s}
        }
      }
    }
  }
}
""" % (_COMMENT_FIELDS, _COMMENT_FIELDS)


def build_query(kind: CollectionKind) -> str:
    """Return the GraphQL document used to page through ``kind``."""
    if kind is CollectionKind.ISSUES:
        return _ISSUES_QUERY
    return _PULL_REQUESTS_QUERY


def _login(author: Optional[Dict[str, Any]]) -> str:
    if not author or not author.get("login"):
        return GHOST
    return str(author["login"])


def _require_datetime(value: Any, context: str) -> datetime:
    try:
        parsed = parse_datetime(value)
    except (TypeError, ValueError) as exc:
        raise MalformedResponse(f"Unparseable timestamp {value!r} in {context}") from exc
    if parsed is None:
        raise MalformedResponse(f"Missing timestamp in {context}")
    return parsed


def _decode_comments(connection: Any, context: str) -> List[Comment]:
    if connection is None:
        return []
    if not isinstance(connection, dict) or not isinstance(connection.get("nodes"), list):
        raise MalformedResponse(f"Comment connection without nodes in {context}")

    comments: List[Comment] = []
    for node in connection["nodes"]:
        if not isinstance(node, dict):
            raise MalformedResponse(f"Unexpected comment payload in {context}: {node!r}")
        association = str(node.get("authorAssociation") or "NONE").upper()
        comments.append(
            Comment(
                author=_login(node.get("author")),
                created_at=_require_datetime(node.get("createdAt"), context),
                association=association,
                is_official=association in OFFICIAL_ASSOCIATIONS,
            )
        )
    return comments


def decode_item(node: Any, kind: CollectionKind) -> ItemRecord:
    """Decode one GraphQL node into an ``IssueRecord`` or ``PullRequestRecord``.

    Raises:
        MalformedResponse: If required fields are missing or unparseable.
    """
    if not isinstance(node, dict) or node.get("number") is None:
        raise MalformedResponse(f"{kind.label} payload is missing required fields: {node!r}")

    context = f"{kind.value} #{node['number']}"
    try:
        number = int(node["number"])
    except (TypeError, ValueError) as exc:
        raise MalformedResponse(f"Non-numeric item number in {context}") from exc

    created_at = _require_datetime(node.get("createdAt"), context)
    closed_at = parse_datetime(node.get("closedAt"))
    comments = _decode_comments(node.get("comments"), context)

    if kind is CollectionKind.ISSUES:
        return IssueRecord(
            number=number,
            author=_login(node.get("author")),
            created_at=created_at,
            closed_at=closed_at,
            comments=tuple(comments),
        )

    # Comments and reviews each arrive in chronological order; interleave them
    # without disturbing either sequence.
    reviews = _decode_comments(node.get("reviews"), context)
    merged = heapq.merge(comments, reviews, key=lambda comment: comment.created_at)
    return PullRequestRecord(
        number=number,
        author=_login(node.get("author")),
        created_at=created_at,
        closed_at=closed_at,
        comments=tuple(merged),
        merged_at=parse_datetime(node.get("mergedAt")),
    )


class Pager:
    """Lazy, non-restartable iteration over one repository connection."""

    def __init__(
        self,
        client: GitHubClient,
        repository: Repository,
        kind: CollectionKind,
        page_size: int = 100,
        date_range: Optional[DateRange] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._client = client
        self._repository = repository
        self._kind = kind
        self._page_size = page_size
        self._date_range = date_range or DateRange()
        self._cancel_event = cancel_event
        self._started = False

        self.pages_fetched = 0
        self.rate_limit_remaining: Optional[int] = None

    def _fetch_page(self, cursor: Cursor) -> Tuple[List[Any], Cursor]:
        variables = {
            "owner": self._repository.owner,
            "name": self._repository.name,
            "first": self._page_size,
            "after": cursor.end_cursor,
        }

        try:
            response = self._client.execute(build_query(self._kind), variables)
        except CollectionError as exc:
            raise exc.for_collection(self._repository.full_name, self._kind.value) from exc

        self.pages_fetched += 1
        if response.rate_limit_remaining is not None:
            self.rate_limit_remaining = response.rate_limit_remaining

        try:
            connection = response.data["repository"][self._kind.value]
            nodes = connection["nodes"]
            page_info = connection["pageInfo"]
            next_cursor = Cursor(
                end_cursor=page_info.get("endCursor"),
                has_next_page=bool(page_info.get("hasNextPage")),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise MalformedResponse(
                "Unexpected connection payload",
                repository=self._repository.full_name,
                kind=self._kind.value,
            ) from exc

        if not isinstance(nodes, list):
            raise MalformedResponse(
                "Connection nodes are not a list",
                repository=self._repository.full_name,
                kind=self._kind.value,
            )

        return nodes, next_cursor

    def pages(self) -> Iterator[List[ItemRecord]]:
        """Yield one list of in-range records per fetched page."""
        if self._started:
            raise RuntimeError("Pager has already been consumed and cannot be restarted.")
        self._started = True

        cursor = Cursor()
        while cursor.has_next_page:
            if self._cancel_event is not None and self._cancel_event.is_set():
                logger.debug(
                    "Pagination cancelled",
                    extra={"repository": self._repository.full_name, "kind": self._kind.value},
                )
                return

            nodes, next_cursor = self._fetch_page(cursor)
            try:
                records = [decode_item(node, self._kind) for node in nodes]
            except MalformedResponse as exc:
                raise exc.for_collection(self._repository.full_name, self._kind.value) from exc

            yield [record for record in records if self._date_range.contains(record.created_at)]

            after = self._date_range.after
            if after is not None and records and records[-1].created_at < after:
                logger.debug(
                    "Stopping pagination early; remaining items predate the range",
                    extra={"repository": self._repository.full_name, "kind": self._kind.value},
                )
                return

            if next_cursor.has_next_page and not next_cursor.end_cursor:
                raise MalformedResponse(
                    "hasNextPage is set but endCursor is missing",
                    repository=self._repository.full_name,
                    kind=self._kind.value,
                )
            cursor = next_cursor

        logger.debug(
            "Pagination complete",
            extra={
                "repository": self._repository.full_name,
                "kind": self._kind.value,
                "pages": self.pages_fetched,
            },
        )

    def __iter__(self) -> Iterator[ItemRecord]:
        for page in self.pages():
            yield from page


def paginate(
    client: GitHubClient,
    repository: Repository,
    kind: CollectionKind,
    page_size: int = 100,
    after: Optional[datetime] = None,
    before: Optional[datetime] = None,
) -> Iterator[ItemRecord]:
    """Lazily yield every record of ``kind`` created in ``[after, before)``."""
    return iter(Pager(client, repository, kind, page_size, DateRange(after=after, before=before)))
