"""Cursor pagination over LMS list endpoints.

List endpoints return one page of JSON records per request and advertise the
following page in the ``Link`` response header::

    Link: <https://lms.example.edu/api/v1/courses/1/users?page=2>; rel="next",
          <https://lms.example.edu/api/v1/courses/1/users?page=9>; rel="last"

``fetch_all`` follows ``rel="next"`` until the server stops advertising one.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from requests.utils import parse_header_links

from gradebook_sync.errors import ApiError, PaginationLimitError, TransportError, truncate_body
from gradebook_sync.types import ProgressCallback, RemoteRecord

logger = logging.getLogger(__name__)


def next_page_url(link_header: str | None) -> str | None:
    """Return the URL tagged ``rel="next"`` in a ``Link`` header value.

    Args:
        link_header: Raw header value; may be empty or None.

    Returns:
        The next-page URL, or None when the header advertises no next page.
    """
    if not link_header or not link_header.strip():
        return None

    for link in parse_header_links(link_header.strip()):
        # rel may carry several space-separated relation names
        relations = link.get("rel", "").lower().split()
        if "next" in relations:
            url = link.get("url", "").strip()
            return url or None
    return None


def _decode_page(response: requests.Response) -> list[RemoteRecord]:
    """Parse a page body as a JSON list of records."""
    try:
        payload = response.json()
    except ValueError as e:
        raise ApiError(response.status_code, f"Response is not JSON: {truncate_body(response.text)}", response.url) from e
    if not isinstance(payload, list):
        raise ApiError(response.status_code, f"Expected a JSON list, got {type(payload).__name__}", response.url)
    return payload


def fetch_all(
    session: requests.Session,
    seed_url: str,
    *,
    params: dict[str, Any] | None = None,
    timeout: int = 30,
    max_pages: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[RemoteRecord]:
    """Fetch every page of a paginated collection.

    Pages are requested strictly one after another; the next request is only
    issued once the previous response's ``Link`` header has been read.
    Records are returned in server order and are not deduplicated.

    Args:
        session: Authenticated requests session.
        seed_url: URL of the first page.
        params: Query parameters for the first request only. Cursor URLs
            returned by the server already carry them.
        timeout: Per-request timeout in seconds.
        max_pages: Optional upper bound on the number of pages requested.
        on_progress: Called after each page with ``(pages, None, detail)``
            and once more with ``(pages, pages, detail)`` when done.

    Returns:
        All records from all pages.

    Raises:
        ApiError: If any page answers with a non-2xx status or a non-list body.
        TransportError: If a request fails below HTTP.
        PaginationLimitError: If more than ``max_pages`` pages are advertised.
    """
    records: list[RemoteRecord] = []
    cursor: str | None = seed_url
    request_params = params
    pages = 0

    while cursor is not None:
        if max_pages is not None and pages >= max_pages:
            raise PaginationLimitError(f"Stopped after {pages} pages of {seed_url}; the server kept advertising more")

        logger.debug(f"GET {cursor}")
        try:
            response = session.get(cursor, params=request_params, timeout=timeout)
        except requests.RequestException as e:
            raise TransportError(f"Request to {cursor} failed: {e}") from e
        request_params = None
        pages += 1

        if not 200 <= response.status_code < 300:
            logger.error(f"Page {pages} of {seed_url} failed with HTTP {response.status_code}")
            raise ApiError(response.status_code, truncate_body(response.text), cursor)

        page = _decode_page(response)
        records.extend(page)
        cursor = next_page_url(response.headers.get("Link"))

        if on_progress:
            on_progress(pages, None, f"{len(records)} records")

    logger.info(f"Fetched {len(records)} records in {pages} page(s) from {seed_url}")
    if on_progress:
        on_progress(pages, pages, f"{len(records)} records")
    return records
