"""Posting grades to the LMS, one student and assignment at a time."""

from __future__ import annotations

import logging
import math
import re
import time
from collections.abc import Iterable
from typing import Any, Literal
from urllib.parse import quote

import requests

from gradebook_sync.errors import GradeValidationError, truncate_body
from gradebook_sync.lms_queries import api_url
from gradebook_sync.reporting import progress_due
from gradebook_sync.types import CLEAR_SENTINEL, GradeWriteOutcome, ProgressCallback, RunSummary

logger = logging.getLogger(__name__)

BlankPolicy = Literal["skip", "clear"]

SKIP_EMPTY_KEY = "empty SIS id"
SKIP_BLANK_GRADE = "blank grade"

# Plain decimal text as typed in a sheet: no digit separators, no exponent
GRADE_TEXT_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)", re.ASCII)


def parse_grade_value(raw: Any) -> str | float:
    """Classify a grade cell as the clear-sentinel or a finite number.

    Args:
        raw: Cell value as read from the sheet.

    Returns:
        ``CLEAR_SENTINEL`` for an empty cell, otherwise the grade as a float.

    Raises:
        GradeValidationError: If the cell holds text that is not a finite number.
    """
    if raw is None:
        return CLEAR_SENTINEL
    if isinstance(raw, bool):
        raise GradeValidationError(f"Grade must be a number, got {raw!r}")
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).strip()
        if not text:
            return CLEAR_SENTINEL
        if not GRADE_TEXT_PATTERN.fullmatch(text):
            raise GradeValidationError(f"Grade must be a number, got {text!r}")
        value = float(text)
    if not math.isfinite(value):
        raise GradeValidationError(f"Grade must be a finite number, got {raw!r}")
    return value


def _posted_grade(grade_value: str | float) -> str | int | float:
    if isinstance(grade_value, float) and grade_value.is_integer():
        return int(grade_value)
    return grade_value


def submission_url(base_url: str, course_id: str | int, assignment_id: str | int, student_key: str) -> str:
    """URL of one student's submission, addressed by SIS id."""
    sis_ref = quote(f"sis_user_id:{student_key}", safe=":")
    return api_url(base_url, f"courses/{course_id}/assignments/{assignment_id}/submissions/{sis_ref}")


def _validation_message(response: requests.Response) -> str:
    """Join the messages of a 400 response, or fall back to the raw body."""
    try:
        payload = response.json()
    except ValueError:
        return truncate_body(response.text)

    errors = payload.get("errors") if isinstance(payload, dict) else None
    if isinstance(errors, dict):
        # {"errors": {"field": [{"message": ...}]}}
        errors = [item for items in errors.values() if isinstance(items, list) for item in items]
    if isinstance(errors, list):
        messages = [str(e["message"]) for e in errors if isinstance(e, dict) and e.get("message")]
        if messages:
            return "; ".join(messages)
    return truncate_body(response.text)


def _classify_response(student_key: str, response: requests.Response) -> GradeWriteOutcome:
    status = response.status_code
    if 200 <= status < 300:
        return GradeWriteOutcome(student_key, True, "Grade posted")
    if status in (401, 403):
        message = f"Not authorized (HTTP {status}); check the API token and its permissions"
    elif status == 404:
        message = "Student or assignment not found (HTTP 404)"
    elif status == 400:
        message = f"Rejected by the LMS (HTTP 400): {_validation_message(response)}"
    elif status == 409:
        message = "Conflict (HTTP 409); the submission was changed concurrently"
    else:
        message = f"HTTP {status}: {truncate_body(response.text)}"
    return GradeWriteOutcome(student_key, False, message)


def submit_grade(
    session: requests.Session,
    base_url: str,
    course_id: str | int,
    assignment_id: str | int,
    student_key: str,
    grade_value: str | float,
    *,
    timeout: int = 30,
) -> GradeWriteOutcome:
    """Post one grade for one student.

    HTTP and transport failures are returned as unsuccessful outcomes rather
    than raised.

    Args:
        session: Authenticated requests session.
        base_url: Normalized LMS domain.
        course_id: Course id.
        assignment_id: Assignment id.
        student_key: SIS id of the student.
        grade_value: ``CLEAR_SENTINEL`` or a finite number.
        timeout: Request timeout in seconds.

    Returns:
        The outcome of the request.
    """
    url = submission_url(base_url, course_id, assignment_id, student_key)
    body = {"submission": {"posted_grade": _posted_grade(grade_value)}}
    try:
        response = session.put(url, json=body, timeout=timeout)
    except requests.RequestException as e:
        return GradeWriteOutcome(student_key, False, f"Request failed: {e}")
    return _classify_response(student_key, response)


def _plan_row(
    row: int,
    raw_key: Any,
    raw_grade: Any,
    blank_policy: BlankPolicy,
    summary: RunSummary,
) -> tuple[str, str | float] | None:
    """Decide whether a row is sent, recording skipped and invalid rows.

    Returns:
        ``(sis_id, grade_value)`` to send, or None when the row is not sent.
    """
    student_key = "" if raw_key is None else str(raw_key).strip()
    if not student_key:
        summary.skipped[SKIP_EMPTY_KEY] += 1
        logger.info(f"Row {row}: skipped, {SKIP_EMPTY_KEY}")
        return None

    try:
        grade_value = parse_grade_value(raw_grade)
    except GradeValidationError as e:
        summary.invalid += 1
        summary.reasons.append(f"Row {row} ({student_key}): {e}")
        logger.warning(f"Row {row} ({student_key}): {e}")
        return None

    if grade_value == CLEAR_SENTINEL and blank_policy == "skip":
        summary.skipped[SKIP_BLANK_GRADE] += 1
        logger.info(f"Row {row} ({student_key}): skipped, {SKIP_BLANK_GRADE}")
        return None
    return student_key, grade_value


def submit_grades(
    session: requests.Session,
    base_url: str,
    course_id: str | int,
    assignment_id: str | int,
    rows: Iterable[tuple[int, str, Any]],
    *,
    pause_seconds: float = 0.0,
    timeout: int = 30,
    blank_policy: BlankPolicy = "skip",
    on_progress: ProgressCallback | None = None,
) -> tuple[list[GradeWriteOutcome], RunSummary]:
    """Post a column of grades, one request per row, in row order.

    Args:
        session: Authenticated requests session.
        base_url: Normalized LMS domain.
        course_id: Course id.
        assignment_id: Assignment id.
        rows: ``(sheet_row, sis_id, raw_grade)`` triples.
        pause_seconds: Sleep between two requests.
        timeout: Request timeout in seconds.
        blank_policy: ``"skip"`` leaves blank cells alone, ``"clear"`` un-posts them.
        on_progress: Called at every 5% of the rows and on the last one.

    Returns:
        Tuple of (outcomes of the requests that were sent, run summary).
    """
    pending = list(rows)
    total = len(pending)
    outcomes: list[GradeWriteOutcome] = []
    summary = RunSummary()

    for position, (row, raw_key, raw_grade) in enumerate(pending, start=1):
        planned = _plan_row(row, raw_key, raw_grade, blank_policy, summary)
        if planned is not None:
            student_key, grade_value = planned
            if outcomes and pause_seconds > 0:
                time.sleep(pause_seconds)
            outcome = submit_grade(session, base_url, course_id, assignment_id, student_key, grade_value, timeout=timeout)
            outcomes.append(outcome)
            if outcome.success:
                summary.success += 1
                logger.info(f"Row {row} ({student_key}): {outcome.message}")
            else:
                summary.failed += 1
                summary.reasons.append(f"Row {row} ({student_key}): {outcome.message}")
                logger.error(f"Row {row} ({student_key}): {outcome.message}")

        if on_progress and progress_due(position, total):
            on_progress(position, total, f"row {row}")

    return outcomes, summary
