"""Custom exception types for the GitHub contribution report tool."""

from __future__ import annotations

from typing import Optional


class CreditError(Exception):
    """Base exception for all recoverable report generator errors."""


class ConfigurationError(CreditError):
    """Raised when runtime configuration values are missing or invalid."""


class InvalidStateError(CreditError):
    """Raised when an object is used after it has been frozen or with the wrong input."""


class CollectionError(CreditError):
    """Base for errors that can name the repository and collection being fetched.

    ``repository`` and ``kind`` are filled in by the pager once the failing
    request is known, so a diagnostic can name what was being fetched.
    """

    label = "error"

    def __init__(
        self,
        message: str,
        repository: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.repository = repository
        self.kind = kind

    def for_collection(self, repository: str, kind: str) -> "CollectionError":
        """Return a copy of this error annotated with the collection being fetched."""
        return type(self)(self.message, repository=repository, kind=kind)

    def __str__(self) -> str:
        if self.repository and self.kind:
            return f"{self.label} while fetching {self.kind} for {self.repository}: {self.message}"
        if self.repository:
            return f"{self.label} while fetching {self.repository}: {self.message}"
        return f"{self.label}: {self.message}"


class AuthenticationError(CollectionError):
    """Raised when GitHub credentials are unavailable or rejected."""

    label = "authentication failed"


class FetchError(CollectionError):
    """Raised when fetching a collection from the GitHub API fails."""

    label = "fetch error"


class TransportFailure(FetchError):
    """Raised when the GitHub API cannot be reached or answers with an error."""

    label = "network failure"


class RateLimitExhausted(FetchError):
    """Raised when the GitHub API quota for the current token is used up."""

    label = "quota exhausted"


class MalformedResponse(FetchError):
    """Raised when an API payload does not have the expected shape."""

    label = "malformed response"


class DataValidationError(CreditError):
    """Raised when a stored report does not meet the expected structure."""
