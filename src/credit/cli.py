"""Command-line argument parsing for the contribution report tool."""

from __future__ import annotations

import argparse
from datetime import datetime, timezone
from typing import Optional, Sequence

from .models import Repository


def _repository(value: str) -> Repository:
    """Parse and validate an ``owner/name`` CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not of the form ``owner/name``.
    """
    try:
        return Repository.parse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _timestamp(value: str) -> datetime:
    """Parse a ``YYYY-MM-DD`` date or ISO8601 timestamp into an aware UTC datetime.

    Raises:
        argparse.ArgumentTypeError: If value is not a valid date.
    """
    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be a date such as 2020-01-31") from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _global_options(suppress: bool) -> argparse.ArgumentParser:
    """Build a parent parser holding the options accepted before or after a subcommand.

    Args:
        suppress: Leave unset options out of the namespace, so a value given
            before the subcommand is not overwritten by the subcommand's default.

    Returns:
        Parser without help, meant to be passed through ``parents=``.
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--token",
        default=argparse.SUPPRESS if suppress else None,
        help="GitHub personal access token (default: $GITHUB_TOKEN).",
    )
    common.add_argument(
        "--json",
        action="store_true",
        default=argparse.SUPPRESS if suppress else False,
        help="Print results as JSON instead of Markdown.",
    )
    common.add_argument(
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress else False,
        help="Enable debug logging on stderr.",
    )
    return common


def build_parser() -> argparse.ArgumentParser:
    """Build the ``credit`` argument parser with its subcommands.

    ``--token``, ``--json`` and ``--verbose`` are accepted both before the
    subcommand and among its own options.

    Returns:
        Configured top-level parser.
    """
    parser = argparse.ArgumentParser(
        prog="credit",
        description="Measure contributions to GitHub repositories (responses, merges, contributors).",
        parents=[_global_options(suppress=False)],
    )
    common = _global_options(suppress=True)

    subparsers = parser.add_subparsers(dest="command", required=True)

    repo = subparsers.add_parser("repo", help="Analyze one or more repositories.", parents=[common])
    repo.add_argument(
        "repositories",
        nargs="+",
        type=_repository,
        metavar="OWNER/NAME",
        help="Repository to analyze (can pass multiple).",
    )
    repo.add_argument(
        "--serial",
        action="store_true",
        help="Fetch Issues and Pull Requests one after the other to spare the API quota.",
    )
    repo.add_argument(
        "--commits",
        action="store_true",
        help="Also rank contributors by commits in merged Pull Requests (one extra call per PR).",
    )
    repo.add_argument(
        "--start",
        type=_timestamp,
        default=None,
        help="Only consider items created on or after this date.",
    )
    repo.add_argument(
        "--end",
        type=_timestamp,
        default=None,
        help="Only consider items created before this date.",
    )

    users = subparsers.add_parser("users", help="Rank the most active users of a location.", parents=[common])
    users.add_argument(
        "--location",
        required=True,
        help="Location as written on user profiles, e.g. 'Vancouver'.",
    )

    subparsers.add_parser("limit", help="Show the remaining GitHub API quota.", parents=[common])

    json_command = subparsers.add_parser("json", help="Render a previously saved JSON report as Markdown.")
    json_command.add_argument("file", help="Path to a JSON report written with 'repo --json'.")
    json_command.add_argument(
        "--commits",
        action="store_true",
        help="Include the commits-in-merged-PRs ranking.",
    )

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed CLI arguments; ``command`` names the chosen subcommand.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "repo" and args.start is not None and args.end is not None and args.start >= args.end:
        parser.error("--start must be earlier than --end")

    return args
