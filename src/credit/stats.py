"""Statistics and formatting helpers for contribution reporting.

This module provides utilities for:
- Computing linear-interpolation percentiles from pre-sorted samples.
- Summarizing a duration sample into its median and mean.
- Formatting second-based durations as human-friendly periods.
- Building the Markdown project report and the users report.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

from .models import Summary, UserContribution

if TYPE_CHECKING:
    from .report import CollectionReport, Report

TOP_N = 10


def calculate_percentile(sorted_values: Sequence[float], p: float) -> Optional[float]:
    """Calculate a percentile using linear interpolation.

    The input sequence is expected to already be sorted in ascending order.
    - Empty input returns ``None``.
    - ``p <= 0`` returns the first value.
    - ``p >= 100`` returns the last value.
    - Otherwise, percentile is linearly interpolated between adjacent ranks,
      so ``p == 50`` on an even-length sample is the midpoint of the two
      central values.

    Args:
        sorted_values: Sorted numeric samples.
        p: Percentile in the inclusive range ``[0, 100]``.

    Returns:
        Percentile value as ``float`` or ``None`` when input is empty.

    Raises:
        ValueError: If ``p`` is outside ``[0, 100]``.
    """
    if not 0 <= p <= 100:
        raise ValueError("Percentile 'p' must be in the range [0, 100].")

    if not sorted_values:
        return None

    if p <= 0:
        return float(sorted_values[0])

    if p >= 100:
        return float(sorted_values[-1])

    position = (len(sorted_values) - 1) * (p / 100.0)
    lower_index = math.floor(position)
    upper_index = math.ceil(position)

    if lower_index == upper_index:
        return float(sorted_values[int(position)])

    lower_value = sorted_values[lower_index]
    upper_value = sorted_values[upper_index]
    return float(lower_value + (upper_value - lower_value) * (position - lower_index))


def summarize(sample: Iterable[float]) -> Optional[Summary]:
    """Summarize a duration sample into its median and arithmetic mean.

    Every value takes part; no outliers are removed. An empty sample has no
    summary, which keeps "no data" distinct from a zero duration.
    """
    values = sorted(sample)
    if not values:
        return None

    median = calculate_percentile(values, 50)
    return Summary(median=float(median), mean=math.fsum(values) / len(values))


def format_duration(seconds: Optional[float]) -> str:
    """Format seconds as a human-friendly period.

    Returns ``"None"`` when ``seconds`` is ``None``; otherwise minutes below
    one hour, hours up to 48 hours, and days beyond that.
    """
    if seconds is None:
        return "None"

    total_seconds = max(0, int(seconds))
    hours = total_seconds // 3600

    if hours > 48:
        return f"{hours // 24} days"
    if hours > 1:
        return f"{hours} hours"
    if hours == 1:
        return "1 hour"
    return f"{total_seconds // 60} minutes"


def percent(part: int, whole: int) -> float:
    """Calculate ``part`` as a percentage of ``whole``.

    Args:
        part: Count of matching items.
        whole: Count of all items.

    Returns:
        Percentage in ``[0, 100]``; ``0.0`` when ``whole`` is zero.
    """
    if whole == 0:
        return 0.0
    return 100.0 * part / whole


def _summary_lines(title: str, summary: Optional[Summary]) -> List[str]:
    median = summary.median if summary is not None else None
    mean = summary.mean if summary is not None else None
    return [
        f"{title}:",
        f"- Median: {format_duration(median)}",
        f"- Average: {format_duration(mean)}",
    ]


def _ranking_lines(ranking: Sequence) -> List[str]:
    return [f"{index:2}. {handle}: {count}" for index, (handle, count) in enumerate(ranking, start=1)]


def _issue_section(issues: "CollectionReport") -> List[str]:
    if issues.total == 0:
        return ["No issues found."]

    lines = [
        f"{issues.total} issues found, {issues.closed} of which are now closed "
        f"({percent(issues.closed, issues.total):.1f}%).",
        "",
        f"- {issues.with_response} ({percent(issues.with_response, issues.total):.1f}%) "
        "of these received a response.",
        f"- {issues.with_official_response} "
        f"({percent(issues.with_official_response, issues.total):.1f}%) "
        "have an official response from a repo Owner or organization Member.",
        "",
    ]
    lines += _summary_lines("Response Times (any)", issues.response_time)
    lines.append("")
    lines += _summary_lines("Response Times (official)", issues.official_response_time)
    return lines


def _pull_request_section(prs: "CollectionReport") -> List[str]:
    if prs.total == 0:
        return ["No Pull Requests found."]

    lines = [
        f"{prs.total} Pull Requests found, {prs.merged} of which are now merged "
        f"({percent(prs.merged, prs.total):.1f}%).",
        f"{prs.closed_without_merge} have been closed without merging "
        f"({percent(prs.closed_without_merge, prs.total):.1f}%).",
        "",
        f"- {prs.with_response} ({percent(prs.with_response, prs.total):.1f}%) "
        "of these received a response.",
        f"- {prs.with_official_response} "
        f"({percent(prs.with_official_response, prs.total):.1f}%) "
        "have an official response from a repo Owner or organization Member.",
        "",
    ]
    lines += _summary_lines("Response Times (any)", prs.response_time)
    lines.append("")
    lines += _summary_lines("Response Times (official)", prs.official_response_time)
    lines.append("")
    lines += _summary_lines("Time-to-Merge", prs.merge_time)
    return lines


def generate_report(report: "Report", commits: bool = False) -> str:
    """Generate the Markdown project report.

    Args:
        report: Merged report of one or more repositories.
        commits: Include the commits-in-merged-PRs ranking.

    Returns:
        Formatted multi-line Markdown text.
    """
    from .report import top_contributors

    name = ", ".join(report.repositories) or "(no repositories)"
    lines = [f"# Project Report for {name}", "", "## Issues", ""]
    lines += _issue_section(report.issues)
    lines += ["", "## Pull Requests", ""]
    lines += _pull_request_section(report.pull_requests)
    lines += ["", "## Contributors", "", "Top 10 Commentors (Issues and PRs):"]
    lines += _ranking_lines(top_contributors(report.commentors, TOP_N))
    lines += ["", "Top 10 Code Contributors (by merged PRs):"]
    lines += _ranking_lines(top_contributors(report.code_contributors, TOP_N))

    if commits:
        lines += ["", "Top 10 Code Contributors (by commits-in-merged-PRs):"]
        lines += _ranking_lines(top_contributors(report.contributor_commits, TOP_N))

    return "\n".join(lines)


def generate_users_report(location: str, total_users: int, users: Sequence[UserContribution]) -> str:
    """Generate the Markdown table of the most active users of a location."""
    lines = [
        f"# Top {len(users)} users in {location}",
        "",
        f"{total_users} users found in total.",
        "",
        "| Rank | Login | Name | Contributions |",
        "| ---: | ----- | ---- | ------------: |",
    ]
    for rank, user in enumerate(users, start=1):
        lines.append(f"| {rank} | {user.login} | {user.name or ''} | {user.public_contributions} |")
    return "\n".join(lines)

