"""GitHub GraphQL API client used to fetch repository activity."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from .config import Config
from .errors import (
    AuthenticationError,
    FetchError,
    MalformedResponse,
    RateLimitExhausted,
    TransportFailure,
)
from .models import GraphQLResponse, RateLimit, Repository

logger = logging.getLogger(__name__)

RATE_LIMIT_QUERY = """
query {
  rateLimit {
    limit
    remaining
    resetAt
  }
}
"""

COMMIT_COUNT_QUERY = """
query($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) {
      commits {
        totalCount
      }
    }
  }
}
"""


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse GitHub ISO8601 timestamps into timezone-aware datetimes."""
    if not value:
        return None

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


class GitHubClient:
    """Small, typed client for the GitHub GraphQL v4 API."""

    _API_URL = "https://api.github.com/graphql"
    _MAX_RETRIES = 5
    _MAX_BACKOFF_SECONDS = 30

    def __init__(self, config: Config, timeout_seconds: int = 30) -> None:
        """Initialize an authenticated GitHub API client.

        Args:
            config: Validated runtime configuration including the access token.
            timeout_seconds: Per-request timeout in seconds.
        """
        self._config = config
        self._timeout_seconds = timeout_seconds

        self._session = requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"bearer {config.token}",
                "Accept": "application/json",
                "User-Agent": "credit-report",
            }
        )

    def _backoff_seconds(self, response: Optional[requests.Response], attempt: int) -> int:
        """Compute exponential backoff seconds, honoring Retry-After when available."""
        retry_after_header = response.headers.get("Retry-After") if response is not None else None
        if retry_after_header:
            try:
                retry_after_seconds = int(retry_after_header)
                return min(self._MAX_BACKOFF_SECONDS, max(1, retry_after_seconds))
            except ValueError:
                pass

        return min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1))

    @staticmethod
    def _is_rate_limited(response: requests.Response, remaining: Optional[int]) -> bool:
        """Tell primary and secondary rate-limit responses apart from other failures."""
        if response.status_code == 429:
            return True
        if response.status_code != 403:
            return False
        if remaining == 0 or response.headers.get("Retry-After"):
            return True
        return "rate limit" in (response.text or "").lower()

    @staticmethod
    def _remaining_quota(response: requests.Response) -> Optional[int]:
        value = response.headers.get("X-RateLimit-Remaining")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def _raise_for_errors(self, payload: Dict[str, Any]) -> None:
        """Translate the ``errors`` member of a GraphQL response into exceptions."""
        errors = payload.get("errors")
        if not errors:
            return

        messages = []
        for error in errors:
            if not isinstance(error, dict):
                continue
            if error.get("type") == "RATE_LIMITED":
                raise RateLimitExhausted(str(error.get("message", "API rate limit exceeded")))
            messages.append(str(error.get("message", "unknown error")))

        raise FetchError("GitHub GraphQL API returned errors: " + "; ".join(messages))

    def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> GraphQLResponse:
        """Execute a GraphQL query with retry logic for 5xx responses.

        Raises:
            AuthenticationError: If the token is rejected.
            RateLimitExhausted: If the API quota is exhausted.
            TransportFailure: If the request repeatedly fails or returns HTTP >= 400.
            MalformedResponse: If the response is not a GraphQL JSON document.
            FetchError: If the GraphQL document carries errors.
        """
        body: Dict[str, Any] = {"query": query, "variables": dict(variables or {})}

        for attempt in range(1, self._MAX_RETRIES + 1):
            try:
                response = self._session.post(self._API_URL, json=body, timeout=self._timeout_seconds)
            except requests.RequestException as exc:
                if attempt == self._MAX_RETRIES:
                    raise TransportFailure(f"GitHub request failed after retries: {exc}") from exc
                logger.debug("Retrying GitHub request after network error", extra={"attempt": attempt})
                time.sleep(self._backoff_seconds(None, attempt))
                continue

            status_code = response.status_code
            remaining = self._remaining_quota(response)

            if 500 <= status_code <= 599 and attempt < self._MAX_RETRIES:
                logger.debug(
                    "Retrying GitHub request after server error",
                    extra={"attempt": attempt, "status_code": status_code},
                )
                time.sleep(self._backoff_seconds(response, attempt))
                continue

            if status_code == 401:
                raise AuthenticationError("GitHub rejected the access token (HTTP 401).")

            if self._is_rate_limited(response, remaining):
                raise RateLimitExhausted(
                    f"GitHub API rate limit exceeded (HTTP {status_code}) - {response.text}"
                )

            if status_code >= 400:
                raise TransportFailure(
                    f"GitHub API request failed: POST {self._API_URL} returned {status_code} - {response.text}"
                )

            try:
                payload = response.json()
            except ValueError as exc:
                raise MalformedResponse("GitHub API returned invalid JSON.") from exc

            if not isinstance(payload, dict):
                raise MalformedResponse("GitHub API returned unexpected payload shape.")

            self._raise_for_errors(payload)

            data = payload.get("data")
            if not isinstance(data, dict):
                raise MalformedResponse("GitHub API response is missing its 'data' member.")

            return GraphQLResponse(data=data, rate_limit_remaining=remaining)

        raise TransportFailure("GitHub request failed after retries.")

    def rate_limit(self) -> RateLimit:
        """Discover the remaining API quota for the configured token."""
        data = self.execute(RATE_LIMIT_QUERY).data
        limit = data.get("rateLimit") or {}

        try:
            return RateLimit(
                limit=int(limit["limit"]),
                remaining=int(limit["remaining"]),
                reset_at=parse_datetime(limit["resetAt"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedResponse(f"Unexpected rateLimit payload: {limit}") from exc

    def commit_count(self, repository: Repository, number: int) -> int:
        """Count the commits of one Pull Request."""
        data = self.execute(
            COMMIT_COUNT_QUERY,
            {"owner": repository.owner, "name": repository.name, "number": number},
        ).data

        try:
            return int(data["repository"]["pullRequest"]["commits"]["totalCount"])
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedResponse(
                f"Unexpected commit count payload for pull request #{number}",
                repository=repository.full_name,
                kind="pullRequests",
            ) from exc
