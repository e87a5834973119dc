"""Merging of per-repository accumulators into one report, and its JSON form.

Counts add up, duration samples are pooled before being summarized again, and
contributor rankings add up key by key. The serialized report is a flat
mapping of named metrics that can be read back and re-emitted unchanged.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .accumulator import FrozenAccumulator, RepositoryFetch
from .errors import DataValidationError, InvalidStateError
from .models import CollectionKind, Summary
from .stats import summarize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectionReport:
    """Counts and duration summaries of one collection across repositories."""

    kind: CollectionKind
    total: int = 0
    closed: int = 0
    merged: int = 0
    closed_without_merge: int = 0
    with_response: int = 0
    with_official_response: int = 0
    response_time: Optional[Summary] = None
    official_response_time: Optional[Summary] = None
    close_time: Optional[Summary] = None
    merge_time: Optional[Summary] = None


@dataclass(frozen=True)
class Report:
    """The final, immutable aggregate over all requested repositories."""

    repositories: Tuple[str, ...]
    issues: CollectionReport
    pull_requests: CollectionReport
    commentors: Dict[str, int] = field(default_factory=dict)
    code_contributors: Dict[str, int] = field(default_factory=dict)
    contributor_commits: Dict[str, int] = field(default_factory=dict)


def merge_rankings(tables: Iterable[Mapping[str, int]]) -> Dict[str, int]:
    """Combine ranking tables by adding the counts of equal handles."""
    merged: Dict[str, int] = {}
    for table in tables:
        for handle, count in table.items():
            merged[handle] = merged.get(handle, 0) + count
    return merged


def top_contributors(table: Mapping[str, int], n: Optional[int] = None) -> List[Tuple[str, int]]:
    """Order a ranking by count descending, breaking ties by ascending handle."""
    ranked = sorted(table.items(), key=lambda entry: (-entry[1], entry[0]))
    return ranked if n is None else ranked[:n]


def _merge_collection(kind: CollectionKind, parts: Sequence[FrozenAccumulator]) -> CollectionReport:
    for part in parts:
        if part.kind is not kind:
            raise InvalidStateError(f"Expected {kind.value} accumulator, got {part.kind.value}.")

    return CollectionReport(
        kind=kind,
        total=sum(part.total for part in parts),
        closed=sum(part.closed for part in parts),
        merged=sum(part.merged for part in parts),
        closed_without_merge=sum(part.closed_without_merge for part in parts),
        with_response=sum(part.with_response for part in parts),
        with_official_response=sum(part.with_official_response for part in parts),
        response_time=summarize(value for part in parts for value in part.response_times),
        official_response_time=summarize(value for part in parts for value in part.official_response_times),
        close_time=summarize(value for part in parts for value in part.close_times),
        merge_time=summarize(value for part in parts for value in part.merge_times),
    )


def merge(fetches: Sequence[RepositoryFetch]) -> Report:
    """Combine per-repository accumulator pairs into a single ``Report``.

    Medians and means are computed over the pooled samples of every
    repository, not averaged per repository.
    """
    issues = [fetch.issues for fetch in fetches]
    pull_requests = [fetch.pull_requests for fetch in fetches]
    everything = issues + pull_requests

    report = Report(
        repositories=tuple(fetch.repository.full_name for fetch in fetches),
        issues=_merge_collection(CollectionKind.ISSUES, issues),
        pull_requests=_merge_collection(CollectionKind.PULL_REQUESTS, pull_requests),
        commentors=merge_rankings(part.commentors for part in everything),
        code_contributors=merge_rankings(part.code_contributors for part in pull_requests),
        contributor_commits=merge_rankings(part.contributor_commits for part in pull_requests),
    )

    logger.info(
        "Merged repository reports",
        extra={
            "repositories": len(fetches),
            "issues": report.issues.total,
            "pull_requests": report.pull_requests.total,
        },
    )
    return report


def _summary_to_dict(summary: Optional[Summary]) -> Optional[Dict[str, float]]:
    if summary is None:
        return None
    return {"median": summary.median, "mean": summary.mean}


def _summary_from_dict(data: Any, key: str) -> Optional[Summary]:
    if data is None:
        return None
    try:
        return Summary(median=float(data["median"]), mean=float(data["mean"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise DataValidationError(f"Invalid duration summary for '{key}': {data!r}") from exc


def report_to_dict(report: Report) -> Dict[str, Any]:
    """Flatten a report into its interchange mapping."""
    issues = report.issues
    prs = report.pull_requests
    return {
        "repositories": list(report.repositories),
        "commentors": dict(report.commentors),
        "code_contributors": dict(report.code_contributors),
        "contributor_commits": dict(report.contributor_commits),
        "all_issues": issues.total,
        "all_closed_issues": issues.closed,
        "issues_with_responses": issues.with_response,
        "issues_with_official_responses": issues.with_official_response,
        "issue_first_resp_time": _summary_to_dict(issues.response_time),
        "issue_official_first_resp_time": _summary_to_dict(issues.official_response_time),
        "issue_close_time": _summary_to_dict(issues.close_time),
        "all_prs": prs.total,
        "all_closed_prs": prs.closed,
        "prs_merged": prs.merged,
        "prs_closed_without_merging": prs.closed_without_merge,
        "prs_with_responses": prs.with_response,
        "prs_with_official_responses": prs.with_official_response,
        "pr_first_resp_time": _summary_to_dict(prs.response_time),
        "pr_official_first_resp_time": _summary_to_dict(prs.official_response_time),
        "pr_close_time": _summary_to_dict(prs.close_time),
        "pr_merge_time": _summary_to_dict(prs.merge_time),
    }


def _integer(value: Any, context: str) -> int:
    # Counts must be JSON integers; floats and booleans are rejected.
    if isinstance(value, bool) or not isinstance(value, int):
        raise DataValidationError(f"{context} is not an integer: {value!r}")
    return value


def _ranking_from_dict(data: Mapping[str, Any], key: str) -> Dict[str, int]:
    table = data.get(key) or {}
    if not isinstance(table, dict):
        raise DataValidationError(f"Expected a mapping for '{key}', got {type(table).__name__}.")
    return {str(handle): _integer(count, f"Count of '{handle}' in '{key}'") for handle, count in table.items()}


def _count(data: Mapping[str, Any], key: str) -> int:
    if key not in data:
        raise DataValidationError(f"Report is missing required field '{key}'.")
    return _integer(data[key], f"Report field '{key}'")


def _repositories(data: Mapping[str, Any]) -> Tuple[str, ...]:
    names = data.get("repositories")
    if names is None:
        return ()
    if not isinstance(names, list) or not all(isinstance(name, str) for name in names):
        raise DataValidationError(f"Expected a list of repository names for 'repositories', got {names!r}.")
    return tuple(names)


def report_from_dict(data: Mapping[str, Any]) -> Report:
    """Rebuild a report from its interchange mapping.

    Raises:
        DataValidationError: If required fields are missing or malformed.
    """
    if not isinstance(data, Mapping):
        raise DataValidationError("Report must be a JSON object.")

    issues = CollectionReport(
        kind=CollectionKind.ISSUES,
        total=_count(data, "all_issues"),
        closed=_count(data, "all_closed_issues"),
        with_response=_count(data, "issues_with_responses"),
        with_official_response=_count(data, "issues_with_official_responses"),
        response_time=_summary_from_dict(data.get("issue_first_resp_time"), "issue_first_resp_time"),
        official_response_time=_summary_from_dict(
            data.get("issue_official_first_resp_time"), "issue_official_first_resp_time"
        ),
        close_time=_summary_from_dict(data.get("issue_close_time"), "issue_close_time"),
    )

    merged = _count(data, "prs_merged")
    closed_without_merge = _count(data, "prs_closed_without_merging")
    # Reports written before closed PRs were counted lack "all_closed_prs".
    closed_prs = _count(data, "all_closed_prs") if "all_closed_prs" in data else merged + closed_without_merge

    pull_requests = CollectionReport(
        kind=CollectionKind.PULL_REQUESTS,
        total=_count(data, "all_prs"),
        closed=closed_prs,
        merged=merged,
        closed_without_merge=closed_without_merge,
        with_response=_count(data, "prs_with_responses"),
        with_official_response=_count(data, "prs_with_official_responses"),
        response_time=_summary_from_dict(data.get("pr_first_resp_time"), "pr_first_resp_time"),
        official_response_time=_summary_from_dict(
            data.get("pr_official_first_resp_time"), "pr_official_first_resp_time"
        ),
        close_time=_summary_from_dict(data.get("pr_close_time"), "pr_close_time"),
        merge_time=_summary_from_dict(data.get("pr_merge_time"), "pr_merge_time"),
    )

    return Report(
        repositories=_repositories(data),
        issues=issues,
        pull_requests=pull_requests,
        commentors=_ranking_from_dict(data, "commentors"),
        code_contributors=_ranking_from_dict(data, "code_contributors"),
        contributor_commits=_ranking_from_dict(data, "contributor_commits"),
    )


def dumps(report: Report) -> str:
    """Serialize a report to JSON text."""
    return json.dumps(report_to_dict(report), indent=2, sort_keys=True)


def loads(text: str) -> Report:
    """Parse JSON text produced by :func:`dumps`."""
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise DataValidationError(f"Report is not valid JSON: {exc}") from exc
    return report_from_dict(data)
