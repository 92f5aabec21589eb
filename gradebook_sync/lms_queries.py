"""LMS REST endpoints for rosters, assignments and submissions."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import requests

from gradebook_sync.pagination import fetch_all
from gradebook_sync.types import CLEAR_SENTINEL, ProgressCallback, RemoteRecord

PER_PAGE: int = 100


def build_session(token: str) -> requests.Session:
    """Create a session that sends the API token as a bearer credential."""
    session = requests.Session()
    session.headers.update(
        {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
    )
    return session


def api_url(domain: str, path: str) -> str:
    """Join a normalized domain and an API path.

    Args:
        domain: Scheme and host without a trailing slash, e.g. ``https://lms.example.edu``.
        path: Path below ``/api/v1``, with or without a leading slash.
    """
    return f"{domain}/api/v1/{path.lstrip('/')}"


def list_students(
    session: requests.Session,
    domain: str,
    course_id: str | int,
    *,
    timeout: int = 30,
    max_pages: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[RemoteRecord]:
    """List the students enrolled in a course, including their SIS ids."""
    return fetch_all(
        session,
        api_url(domain, f"courses/{course_id}/users"),
        params={"enrollment_type[]": "student", "per_page": PER_PAGE, "include[]": "email"},
        timeout=timeout,
        max_pages=max_pages,
        on_progress=on_progress,
    )


def list_assignments(
    session: requests.Session,
    domain: str,
    course_id: str | int,
    *,
    timeout: int = 30,
    max_pages: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[RemoteRecord]:
    """List the assignments of a course in gradebook order."""
    return fetch_all(
        session,
        api_url(domain, f"courses/{course_id}/assignments"),
        params={"order_by": "position", "per_page": PER_PAGE},
        timeout=timeout,
        max_pages=max_pages,
        on_progress=on_progress,
    )


def list_submissions(
    session: requests.Session,
    domain: str,
    course_id: str | int,
    assignment_id: str | int,
    *,
    timeout: int = 30,
    max_pages: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[RemoteRecord]:
    """List the submissions of one assignment, each carrying its user record."""
    return fetch_all(
        session,
        api_url(domain, f"courses/{course_id}/assignments/{assignment_id}/submissions"),
        params={"include[]": "user", "per_page": PER_PAGE},
        timeout=timeout,
        max_pages=max_pages,
        on_progress=on_progress,
    )


def list_student_submissions(
    session: requests.Session,
    domain: str,
    course_id: str | int,
    *,
    timeout: int = 30,
    max_pages: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[RemoteRecord]:
    """List the submissions of every student for every assignment of a course."""
    return fetch_all(
        session,
        api_url(domain, f"courses/{course_id}/students/submissions"),
        params={"student_ids[]": "all", "include[]": "user", "per_page": PER_PAGE},
        timeout=timeout,
        max_pages=max_pages,
        on_progress=on_progress,
    )


def find_assignment(assignments: list[RemoteRecord], name_or_id: str | int) -> RemoteRecord:
    """Find an assignment by numeric id or by exact name.

    Args:
        assignments: Assignment records of the course.
        name_or_id: Assignment id, or assignment name.

    Returns:
        The matching assignment record.

    Raises:
        ValueError: If no assignment matches.
    """
    wanted = str(name_or_id).strip()
    if wanted.isdigit():
        for assignment in assignments:
            if str(assignment.get("id")) == wanted:
                return assignment
    for assignment in assignments:
        if assignment.get("name") == wanted:
            return assignment
    raise ValueError(f"Assignment '{wanted}' not found.")


def user_sis_id(record: RemoteRecord) -> str | None:
    """SIS id of a user record."""
    return record.get("sis_user_id")


def submission_sis_id(record: RemoteRecord) -> str | None:
    """SIS id of the user a submission record belongs to."""
    user = record.get("user") or {}
    return user.get("sis_user_id")


def grade_value(field: str = "score") -> Callable[[RemoteRecord], Any]:
    """Build an extractor for a submission's grade field.

    A null grade and a missing field both mean the sheet cell is cleared.
    """

    def extract(record: RemoteRecord) -> Any:
        value = record.get(field)
        return CLEAR_SENTINEL if value is None else value

    return extract
