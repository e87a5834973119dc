"""Configuration parsing and validation for the contribution report tool."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .errors import AuthenticationError, ConfigurationError

TOKEN_ENV_VAR = "GITHUB_TOKEN"


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the report generator."""

    token: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    serial: bool = False
    commits: bool = False
    page_size: int = 100
    max_workers: int = 4


def load_config(
    token: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    serial: bool = False,
    commits: bool = False,
    page_size: int = 100,
    max_workers: int = 4,
) -> Config:
    """Build and validate application configuration.

    Args:
        token: Token given on the command line. Falls back to ``GITHUB_TOKEN``.
        start: Inclusive lower bound on item creation time.
        end: Exclusive upper bound on item creation time.
        serial: Fetch Issues and Pull Requests one after the other.
        commits: Count commits of merged Pull Requests.
        page_size: Items requested per GraphQL page (1-100).
        max_workers: Upper bound on concurrently fetched repositories.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigurationError: If the date range or sizes are invalid.
        AuthenticationError: If no token is available.
    """
    if start is not None and end is not None and start >= end:
        raise ConfigurationError("Invalid date range: '--start' must be earlier than '--end'.")

    if not 1 <= page_size <= 100:
        raise ConfigurationError("Invalid value for 'page_size': expected an integer in [1, 100].")

    if max_workers <= 0:
        raise ConfigurationError("Invalid value for 'max_workers': expected an integer greater than 0.")

    resolved = (token or os.getenv(TOKEN_ENV_VAR, "")).strip()
    if not resolved:
        raise AuthenticationError(
            "Missing required GitHub access token. "
            f"Pass '--token' or set the '{TOKEN_ENV_VAR}' environment variable."
        )

    return Config(
        token=resolved,
        start=start,
        end=end,
        serial=serial,
        commits=commits,
        page_size=page_size,
        max_workers=max_workers,
    )
