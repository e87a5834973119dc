"""Fetch orchestration across repositories and collections.

Each repository is fetched by its own task. Within a repository the Issue
and Pull Request pagers run either as two concurrent tasks (the default) or
one after the other. Every pager owns its accumulator, so ingestion needs no
locking. The first failure cancels the remaining work and is re-raised; no
partial results are returned.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import replace
from typing import Dict, Mapping, Optional, Sequence

from .accumulator import Accumulator, FrozenAccumulator, RepositoryFetch
from .classifier import classify
from .errors import CollectionError
from .github_client import GitHubClient
from .models import CollectionKind, DateRange, Repository, Strategy
from .pager import Pager

logger = logging.getLogger(__name__)

LOW_QUOTA_THRESHOLD = 100


def _raise_first_failure(futures: Mapping[Future, object], cancel_event: threading.Event) -> None:
    """Wait for ``futures``; on the first failure cancel the rest and re-raise it."""
    done, pending = wait(futures, return_when=FIRST_EXCEPTION)
    failures = [future for future in futures if future in done and future.exception() is not None]
    if not failures:
        return

    cancel_event.set()
    for future in pending:
        future.cancel()
    raise failures[0].exception()


def fetch_collection(
    client: GitHubClient,
    repository: Repository,
    kind: CollectionKind,
    date_range: DateRange,
    commit_tracking: bool = False,
    page_size: int = 100,
    cancel_event: Optional[threading.Event] = None,
) -> FrozenAccumulator:
    """Page through one collection and fold every item into a fresh accumulator.

    With ``commit_tracking`` each merged Pull Request costs one extra request
    to count its commits.
    """
    accumulator = Accumulator(kind, repository)
    pager = Pager(
        client,
        repository,
        kind,
        page_size=page_size,
        date_range=date_range,
        cancel_event=cancel_event,
    )

    for page in pager.pages():
        for record in page:
            item = classify(record)
            if commit_tracking and item.is_merged:
                try:
                    commits = client.commit_count(repository, record.number)
                except CollectionError as exc:
                    raise exc.for_collection(repository.full_name, kind.value) from exc
                item = replace(item, commits=commits)
            accumulator.ingest(item)

    remaining = pager.rate_limit_remaining
    if remaining is not None and remaining < LOW_QUOTA_THRESHOLD:
        logger.warning(
            "GitHub API quota is running low; consider --serial or a narrower date range",
            extra={"repository": repository.full_name, "kind": kind.value, "remaining": remaining},
        )

    logger.info(
        "Fetched collection",
        extra={
            "repository": repository.full_name,
            "kind": kind.value,
            "items": accumulator.total,
            "pages": pager.pages_fetched,
        },
    )
    return accumulator.finalize()


def fetch_repository(
    client: GitHubClient,
    repository: Repository,
    date_range: Optional[DateRange] = None,
    strategy: Strategy = Strategy.CONCURRENT,
    commit_tracking: bool = False,
    page_size: int = 100,
    cancel_event: Optional[threading.Event] = None,
) -> RepositoryFetch:
    """Fetch the Issue and Pull Request accumulators of one repository."""
    date_range = date_range or DateRange()
    cancel_event = cancel_event or threading.Event()

    def _fetch(kind: CollectionKind) -> FrozenAccumulator:
        return fetch_collection(
            client,
            repository,
            kind,
            date_range,
            commit_tracking=commit_tracking and kind is CollectionKind.PULL_REQUESTS,
            page_size=page_size,
            cancel_event=cancel_event,
        )

    if strategy is Strategy.SERIAL:
        issues = _fetch(CollectionKind.ISSUES)
        pull_requests = _fetch(CollectionKind.PULL_REQUESTS)
        return RepositoryFetch(repository=repository, issues=issues, pull_requests=pull_requests)

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix=f"fetch-{repository.name}") as executor:
        issues_future = executor.submit(_fetch, CollectionKind.ISSUES)
        prs_future = executor.submit(_fetch, CollectionKind.PULL_REQUESTS)
        _raise_first_failure(
            {issues_future: CollectionKind.ISSUES, prs_future: CollectionKind.PULL_REQUESTS},
            cancel_event,
        )

    return RepositoryFetch(
        repository=repository,
        issues=issues_future.result(),
        pull_requests=prs_future.result(),
    )


def fetch_reports(
    client: GitHubClient,
    repositories: Sequence[Repository],
    date_range: Optional[DateRange] = None,
    strategy: Strategy = Strategy.CONCURRENT,
    commit_tracking: bool = False,
    page_size: int = 100,
    max_workers: int = 4,
) -> Dict[str, RepositoryFetch]:
    """Fetch every requested repository.

    Under ``Strategy.SERIAL`` repositories are also fetched one at a time.

    Returns:
        Mapping of ``owner/name`` to its finished accumulator pair, in the
        order the repositories were requested.

    Raises:
        CollectionError: The first fetch or authentication failure of any
            sub-fetch. Results of other repositories are discarded.
    """
    cancel_event = threading.Event()

    logger.info(
        "Fetching repositories",
        extra={
            "repositories": [repository.full_name for repository in repositories],
            "strategy": strategy.value,
            "commit_tracking": commit_tracking,
        },
    )

    if strategy is Strategy.SERIAL:
        return {
            repository.full_name: fetch_repository(
                client, repository, date_range, strategy, commit_tracking, page_size, cancel_event
            )
            for repository in repositories
        }

    workers = max(1, min(max_workers, len(repositories)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fetch-repo") as executor:
        futures = {
            executor.submit(
                fetch_repository,
                client,
                repository,
                date_range,
                strategy,
                commit_tracking,
                page_size,
                cancel_event,
            ): repository
            for repository in repositories
        }
        try:
            _raise_first_failure(futures, cancel_event)
        except CollectionError as exc:
            logger.error(
                "Aborting fetch; discarding results of all repositories",
                extra={"failed_repository": exc.repository, "kind": exc.kind},
            )
            raise

    return {repository.full_name: future.result() for future, repository in futures.items()}
