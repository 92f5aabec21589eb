"""Error types raised by gradebook sync operations."""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all gradebook sync failures."""


class ConfigurationMissing(SyncError):
    """Raised when a required setting is absent, before any network call.

    Attributes:
        missing: Names of the settings that were not provided.
    """

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing configuration: {', '.join(missing)}")


class TransportError(SyncError):
    """Raised when a request fails below HTTP (DNS, timeout, refused connection)."""


class ApiError(SyncError):
    """Raised for a non-2xx response from the LMS.

    Attributes:
        status_code: HTTP status code of the response.
        body_excerpt: Start of the response body, truncated.
    """

    def __init__(self, status_code: int, body_excerpt: str, url: str | None = None) -> None:
        self.status_code = status_code
        self.body_excerpt = body_excerpt
        self.url = url
        location = f" from {url}" if url else ""
        super().__init__(f"HTTP {status_code}{location}: {body_excerpt}")


class PaginationLimitError(SyncError):
    """Raised when a paginated collection advertises more pages than allowed."""


class GradeValidationError(SyncError, ValueError):
    """Raised when a local grade cell cannot be sent to the LMS."""


BODY_EXCERPT_LIMIT: int = 500


def truncate_body(text: str | None, limit: int = BODY_EXCERPT_LIMIT) -> str:
    """Shorten a response body for inclusion in an error message."""
    if not text:
        return ""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
