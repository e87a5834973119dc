"""Domain models for GitHub contribution report processing.

These dataclasses intentionally model only the subset of GraphQL payload
fields that are required for report computation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional, Tuple

GHOST = "@ghost"


class CollectionKind(str, Enum):
    """The two independently paged GraphQL connections of a repository."""

    ISSUES = "issues"
    PULL_REQUESTS = "pullRequests"

    @property
    def label(self) -> str:
        return "Issues" if self is CollectionKind.ISSUES else "Pull Requests"


class Strategy(str, Enum):
    """How the Issue and Pull Request pagers of one repository are scheduled."""

    CONCURRENT = "concurrent"
    SERIAL = "serial"


@dataclass(frozen=True, slots=True)
class Repository:
    """An ``owner/name`` pair identifying a GitHub repository."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> "Repository":
        owner, _, name = value.strip().partition("/")
        if not owner or not name or "/" in name:
            raise ValueError(f"expected 'owner/name', got '{value}'")
        return cls(owner=owner, name=name)

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True, slots=True)
class DateRange:
    """Half-open creation-time window ``[after, before)``; ``None`` is unbounded."""

    after: Optional[datetime] = None
    before: Optional[datetime] = None

    def contains(self, moment: datetime) -> bool:
        if self.after is not None and moment < self.after:
            return False
        if self.before is not None and moment >= self.before:
            return False
        return True


@dataclass(slots=True)
class Comment:
    """A comment or review on an Issue or Pull Request."""

    author: str
    created_at: datetime
    association: str
    is_official: bool


@dataclass(slots=True)
class ItemRecord:
    """Fields shared by Issues and Pull Requests."""

    number: int
    author: str
    created_at: datetime
    closed_at: Optional[datetime]
    comments: Tuple[Comment, ...] = ()

    kind = CollectionKind.ISSUES


@dataclass(slots=True)
class IssueRecord(ItemRecord):
    """A GitHub Issue as decoded from the GraphQL ``issues`` connection."""

    kind = CollectionKind.ISSUES


@dataclass(slots=True)
class PullRequestRecord(ItemRecord):
    """A GitHub Pull Request as decoded from the ``pullRequests`` connection."""

    merged_at: Optional[datetime] = None

    kind = CollectionKind.PULL_REQUESTS


@dataclass(frozen=True, slots=True)
class ClassifiedItem:
    """Per-item timing facts and contributor credit, all durations in seconds."""

    kind: CollectionKind
    number: int
    author: str
    is_closed: bool
    is_merged: bool = False
    first_response_time: Optional[float] = None
    first_official_response_time: Optional[float] = None
    close_time: Optional[float] = None
    merge_time: Optional[float] = None
    commentors: FrozenSet[str] = field(default_factory=frozenset)
    commits: Optional[int] = None


@dataclass(frozen=True, slots=True)
class Summary:
    """Median and mean of a duration sample, in seconds."""

    median: float
    mean: float


@dataclass(frozen=True, slots=True)
class Cursor:
    """Pagination state of one GraphQL connection."""

    end_cursor: Optional[str] = None
    has_next_page: bool = True


@dataclass(frozen=True, slots=True)
class GraphQLResponse:
    """The ``data`` member of a GraphQL response and the quota left after it."""

    data: dict
    rate_limit_remaining: Optional[int] = None


@dataclass(frozen=True, slots=True)
class RateLimit:
    """Remaining GraphQL API quota for the current token."""

    limit: int
    remaining: int
    reset_at: datetime


@dataclass(frozen=True, slots=True)
class UserContribution:
    """A user and their public contribution count."""

    login: str
    name: Optional[str]
    followers: int
    public_contributions: int
