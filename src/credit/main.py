"""Application entry point for the contribution report tool."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .cli import parse_args
from .config import Config, load_config
from .errors import (
    AuthenticationError,
    ConfigurationError,
    CreditError,
    DataValidationError,
    FetchError,
    RateLimitExhausted,
)
from .github_client import GitHubClient
from .models import DateRange, Strategy
from .orchestrator import fetch_reports
from .report import dumps, loads, merge
from .stats import generate_report, generate_users_report
from .users import user_contributions, users_to_dict

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIGURATION = 2
EXIT_AUTHENTICATION = 3
EXIT_FETCH = 4


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def run_repo(args: argparse.Namespace, config: Config) -> str:
    """Fetch, merge and render the report for the requested repositories."""
    client = GitHubClient(config=config)
    names = ", ".join(repository.full_name for repository in args.repositories)
    strategy = Strategy.SERIAL if config.serial else Strategy.CONCURRENT
    print(f"Fetching Issues and Pull Requests for {names} ({strategy.value})...", file=sys.stderr)

    fetches = fetch_reports(
        client,
        args.repositories,
        date_range=DateRange(after=config.start, before=config.end),
        strategy=strategy,
        commit_tracking=config.commits,
        page_size=config.page_size,
        max_workers=config.max_workers,
    )
    report = merge(list(fetches.values()))

    if args.json:
        return dumps(report)
    return generate_report(report, commits=config.commits)


def run_users(args: argparse.Namespace, config: Config) -> str:
    """Rank the most active users of ``args.location``.

    Args:
        args: Parsed CLI arguments with ``location`` and ``json``.
        config: Validated runtime configuration.

    Returns:
        Markdown table, or JSON text when ``--json`` was given.
    """
    client = GitHubClient(config=config)
    total, users = user_contributions(client, args.location)
    if args.json:
        return json.dumps(users_to_dict(total, users), indent=2)
    return generate_users_report(args.location, total, users)


def run_limit(args: argparse.Namespace, config: Config) -> str:
    """Report the remaining GitHub API quota of the configured token.

    Args:
        args: Parsed CLI arguments with ``json``.
        config: Validated runtime configuration.

    Returns:
        One-line summary, or JSON text when ``--json`` was given.
    """
    limit = GitHubClient(config=config).rate_limit()
    if args.json:
        return json.dumps(
            {"limit": limit.limit, "remaining": limit.remaining, "reset_at": limit.reset_at.isoformat()},
            indent=2,
        )
    return f"{limit.remaining}/{limit.limit} requests remaining, resets at {limit.reset_at.isoformat()}."


def run_json(args: argparse.Namespace) -> str:
    """Re-render a saved JSON report as Markdown."""
    path = Path(args.file)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read report file '{path}': {exc}") from exc

    report = loads(text)
    commits = args.commits or bool(report.contributor_commits)
    return generate_report(report, commits=commits)


def orchestrate(argv: Optional[Sequence[str]] = None) -> int:
    """Run the selected subcommand and map failures to exit codes.

    Returns:
        ``0`` on success, ``2`` for configuration or input errors, ``3`` for
        authentication errors, ``4`` for fetch errors and ``1`` otherwise.
    """
    try:
        args = parse_args(argv)
        _configure_logging(getattr(args, "verbose", False))

        if args.command == "json":
            output = run_json(args)
        else:
            config = load_config(
                token=args.token,
                start=getattr(args, "start", None),
                end=getattr(args, "end", None),
                serial=getattr(args, "serial", False),
                commits=getattr(args, "commits", False),
            )
            if args.command == "repo":
                output = run_repo(args, config)
            elif args.command == "users":
                output = run_users(args, config)
            else:
                output = run_limit(args, config)
    except (ConfigurationError, DataValidationError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except AuthenticationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_AUTHENTICATION
    except RateLimitExhausted as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        print("Hint: re-run with --serial or a narrower --start/--end range.", file=sys.stderr)
        return EXIT_FETCH
    except FetchError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_FETCH
    except CreditError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_UNEXPECTED
    except Exception:
        logger.exception("Unexpected error")
        return EXIT_UNEXPECTED

    print(output)
    return EXIT_OK


def main() -> None:
    raise SystemExit(orchestrate())


if __name__ == "__main__":
    main()
