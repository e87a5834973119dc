"""Running aggregation of classified items for one repository collection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .errors import InvalidStateError
from .models import ClassifiedItem, CollectionKind, Repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrozenAccumulator:
    """Read-only counts, samples and rankings of one finished collection fetch."""

    kind: CollectionKind
    total: int = 0
    closed: int = 0
    merged: int = 0
    closed_without_merge: int = 0
    with_response: int = 0
    with_official_response: int = 0
    response_times: Tuple[float, ...] = ()
    official_response_times: Tuple[float, ...] = ()
    close_times: Tuple[float, ...] = ()
    merge_times: Tuple[float, ...] = ()
    commentors: Dict[str, int] = field(default_factory=dict)
    code_contributors: Dict[str, int] = field(default_factory=dict)
    contributor_commits: Dict[str, int] = field(default_factory=dict)


class Accumulator:
    """Folds classified items of one collection into counts, samples and rankings.

    ``ingest`` is the only mutator and only ever adds. Once ``finalize`` has
    been called the accumulator refuses further items.
    """

    def __init__(self, kind: CollectionKind, repository: Optional[Repository] = None) -> None:
        self.kind = kind
        self.repository = repository
        self.total = 0
        self.closed = 0
        self.merged = 0
        self.closed_without_merge = 0
        self.with_response = 0
        self.with_official_response = 0
        self.response_times: List[float] = []
        self.official_response_times: List[float] = []
        self.close_times: List[float] = []
        self.merge_times: List[float] = []
        self.commentors: Dict[str, int] = {}
        self.code_contributors: Dict[str, int] = {}
        self.contributor_commits: Dict[str, int] = {}
        self._frozen: Optional[FrozenAccumulator] = None

    @property
    def is_finalized(self) -> bool:
        return self._frozen is not None

    def ingest(self, item: ClassifiedItem) -> None:
        """Add one classified item.

        Raises:
            InvalidStateError: If the accumulator is finalized or ``item`` is of
                a different collection kind.
        """
        if self._frozen is not None:
            raise InvalidStateError(f"Cannot ingest {self.kind.value} item #{item.number}: accumulator is finalized.")
        if item.kind is not self.kind:
            raise InvalidStateError(
                f"Cannot ingest {item.kind.value} item #{item.number} into a {self.kind.value} accumulator."
            )

        self.total += 1

        if item.is_closed:
            self.closed += 1
            if item.close_time is not None:
                self.close_times.append(item.close_time)

        if item.first_response_time is not None:
            self.with_response += 1
            self.response_times.append(item.first_response_time)

        if item.first_official_response_time is not None:
            self.with_official_response += 1
            self.official_response_times.append(item.first_official_response_time)

        for handle in item.commentors:
            self.commentors[handle] = self.commentors.get(handle, 0) + 1

        if self.kind is not CollectionKind.PULL_REQUESTS:
            return

        if item.is_merged:
            self.merged += 1
            if item.merge_time is not None:
                self.merge_times.append(item.merge_time)
            self.code_contributors[item.author] = self.code_contributors.get(item.author, 0) + 1
            if item.commits is not None:
                self.contributor_commits[item.author] = self.contributor_commits.get(item.author, 0) + item.commits
        elif item.is_closed:
            self.closed_without_merge += 1

    def finalize(self) -> FrozenAccumulator:
        """Freeze the accumulator and return its read-only snapshot.

        Calling ``finalize`` again returns the same snapshot.
        """
        if self._frozen is None:
            self._frozen = FrozenAccumulator(
                kind=self.kind,
                total=self.total,
                closed=self.closed,
                merged=self.merged,
                closed_without_merge=self.closed_without_merge,
                with_response=self.with_response,
                with_official_response=self.with_official_response,
                response_times=tuple(self.response_times),
                official_response_times=tuple(self.official_response_times),
                close_times=tuple(self.close_times),
                merge_times=tuple(self.merge_times),
                commentors=dict(self.commentors),
                code_contributors=dict(self.code_contributors),
                contributor_commits=dict(self.contributor_commits),
            )
            logger.debug(
                "Finalized accumulator",
                extra={
                    "repository": str(self.repository) if self.repository else None,
                    "kind": self.kind.value,
                    "total": self.total,
                },
            )
        return self._frozen


@dataclass(frozen=True)
class RepositoryFetch:
    """The finished Issue and Pull Request accumulators of one repository."""

    repository: Repository
    issues: FrozenAccumulator
    pull_requests: FrozenAccumulator
