"""High-level operations: pull the roster, pull grades, push grades."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

import requests

from gradebook_sync.columns import column_index, index_to_letter
from gradebook_sync.configs import Config, require_lms_settings
from gradebook_sync.grade_submission import submit_grades
from gradebook_sync.lms_queries import (
    build_session,
    find_assignment,
    grade_value,
    list_assignments,
    list_student_submissions,
    list_students,
    list_submissions,
    submission_sis_id,
    user_sis_id,
)
from gradebook_sync.reconciliation import read_local_keys, reconcile
from gradebook_sync.reporting import format_reconciliation, format_summary, progress_due, save_report
from gradebook_sync.sheet import LocalStore, WorkbookSheet
from gradebook_sync.types import (
    CLEAR_SENTINEL,
    LocalKey,
    ProgressCallback,
    ReconciliationResult,
    RemoteRecord,
    RunSummary,
)

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """User-facing messages and confirmations."""

    def notify(self, message: str) -> None: ...

    def confirm(self, prompt: str) -> bool: ...


@contextmanager
def _lms_session(token: str, session: requests.Session | None) -> Iterator[requests.Session]:
    """Yield the given session, or a new one that is closed afterwards."""
    if session is not None:
        yield session
        return
    with build_session(token) as owned:
        yield owned


def _open_store(config: Config, store: LocalStore | None) -> LocalStore:
    if store is not None:
        return store
    return WorkbookSheet(config.sheet.workbook, config.sheet.sheet)


def _read_sis_ids(config: Config, store: LocalStore) -> list[LocalKey]:
    layout = config.sheet
    return read_local_keys(store.read_column(layout.first_data_row, layout.sis_id_column), layout.first_data_row)


def _resolve_assignment(
    config: Config,
    session: requests.Session,
    domain: str,
    course_id: str | int,
    assignment: str | int,
    on_progress: ProgressCallback | None,
) -> RemoteRecord:
    ops = config.operational
    assignments = list_assignments(
        session,
        domain,
        course_id,
        timeout=ops.request_timeout_seconds,
        max_pages=ops.max_pages,
        on_progress=on_progress,
    )
    return find_assignment(assignments, assignment)


def pull_roster(
    config: Config,
    notifier: Notifier,
    store: LocalStore | None = None,
    session: requests.Session | None = None,
    on_progress: ProgressCallback | None = None,
) -> int:
    """Write the SIS id, name and email of every student to the sheet.

    Students are written in sortable-name order from the first data row down.
    Leftover rows from a longer, older roster are cleared.

    Returns:
        Number of students written.

    Raises:
        ConfigurationMissing: If domain, token or course id is absent.
        FileNotFoundError: If the workbook doesn't exist.
        KeyError: If the worksheet is not in the workbook.
        ApiError: If the roster cannot be fetched.
        TransportError: If the LMS cannot be reached.
    """
    domain, token, course_id = require_lms_settings(config.lms)
    layout = config.sheet
    ops = config.operational
    store = _open_store(config, store)

    with _lms_session(token, session) as lms:
        students = list_students(
            lms,
            domain,
            course_id,
            timeout=ops.request_timeout_seconds,
            max_pages=ops.max_pages,
            on_progress=on_progress,
        )

    students = sorted(students, key=lambda s: str(s.get("sortable_name") or s.get("name") or ""))

    for offset, student in enumerate(students):
        row = layout.first_data_row + offset
        store.write_cell(row, layout.sis_id_column, user_sis_id(student) or CLEAR_SENTINEL)
        store.write_cell(row, layout.name_column, student.get("sortable_name") or student.get("name") or CLEAR_SENTINEL)
        store.write_cell(row, layout.email_column, student.get("email") or CLEAR_SENTINEL)

    for row in range(layout.first_data_row + len(students), store.last_row() + 1):
        for column in (layout.sis_id_column, layout.name_column, layout.email_column):
            store.write_cell(row, column, CLEAR_SENTINEL)
    store.save()

    without_sis_id = sum(1 for s in students if not user_sis_id(s))
    logger.info(f"Wrote {len(students)} student(s) to the roster; {without_sis_id} without an SIS id")
    message = f"Roster updated: {len(students)} student(s)."
    if without_sis_id:
        message += f" {without_sis_id} student(s) have no SIS id."
    notifier.notify(message)
    return len(students)


def pull_assignment_grades(
    config: Config,
    assignment: str | int,
    column: str | int,
    notifier: Notifier,
    store: LocalStore | None = None,
    session: requests.Session | None = None,
    on_progress: ProgressCallback | None = None,
) -> ReconciliationResult:
    """Write the grades of one assignment into one sheet column.

    The assignment name goes to the header row. Rows whose SIS id has no
    submission keep their current value.

    Args:
        config: Loaded configuration.
        assignment: Assignment id or exact name.
        column: Target column, as letters or 1-based index.
        notifier: Receives the summary.
        store: Sheet to write; opened from the configuration when omitted.
        session: LMS session; created from the token when omitted.
        on_progress: Progress callback for the fetches.

    Returns:
        The reconciliation result that was written.
    """
    domain, token, course_id = require_lms_settings(config.lms)
    col = column_index(column)
    layout = config.sheet
    ops = config.operational
    store = _open_store(config, store)

    with _lms_session(token, session) as lms:
        target = _resolve_assignment(config, lms, domain, course_id, assignment, on_progress)
        submissions = list_submissions(
            lms,
            domain,
            course_id,
            target["id"],
            timeout=ops.request_timeout_seconds,
            max_pages=ops.max_pages,
            on_progress=on_progress,
        )

    result = reconcile(_read_sis_ids(config, store), submissions, submission_sis_id, grade_value(ops.grade_field))

    store.write_cell(layout.header_row, col, target.get("name") or str(target["id"]))
    for entry in result.entries:
        store.write_cell(entry.row, col, entry.value)
    store.save()

    notifier.notify(format_reconciliation(f"Pulled '{target.get('name')}' into column {index_to_letter(col)}", result))
    return result


def pull_gradebook(
    config: Config,
    notifier: Notifier,
    store: LocalStore | None = None,
    session: requests.Session | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[tuple[RemoteRecord, ReconciliationResult]]:
    """Write every assignment of the course into consecutive sheet columns.

    Columns start at ``gradebook_start_column``, one per assignment in
    gradebook order, each headed by the assignment name.

    Returns:
        Each assignment with the reconciliation result written for it.
    """
    domain, token, course_id = require_lms_settings(config.lms)
    layout = config.sheet
    ops = config.operational
    start = column_index(layout.gradebook_start_column)
    store = _open_store(config, store)

    with _lms_session(token, session) as lms:
        assignments = list_assignments(
            lms,
            domain,
            course_id,
            timeout=ops.request_timeout_seconds,
            max_pages=ops.max_pages,
            on_progress=on_progress,
        )
        submissions = list_student_submissions(
            lms,
            domain,
            course_id,
            timeout=ops.request_timeout_seconds,
            max_pages=ops.max_pages,
            on_progress=on_progress,
        )

    by_assignment: dict[str, list[RemoteRecord]] = defaultdict(list)
    for submission in submissions:
        by_assignment[str(submission.get("assignment_id"))].append(submission)

    local_keys = _read_sis_ids(config, store)
    extract = grade_value(ops.grade_field)
    results: list[tuple[RemoteRecord, ReconciliationResult]] = []

    for offset, assignment in enumerate(assignments):
        col = start + offset
        result = reconcile(local_keys, by_assignment.get(str(assignment["id"]), []), submission_sis_id, extract)
        store.write_cell(layout.header_row, col, assignment.get("name") or str(assignment["id"]))
        for entry in result.entries:
            store.write_cell(entry.row, col, entry.value)
        results.append((assignment, result))
        if on_progress and progress_due(offset + 1, len(assignments)):
            on_progress(offset + 1, len(assignments), assignment.get("name") or "")
    store.save()

    cells = sum(len(result.entries) for _, result in results)
    last = index_to_letter(start + len(assignments) - 1) if assignments else index_to_letter(start)
    logger.info(f"Gradebook pull wrote {cells} cell(s) for {len(assignments)} assignment(s)")
    notifier.notify(
        f"Gradebook updated: {len(assignments)} assignment(s) in columns "
        f"{index_to_letter(start)}-{last}, {cells} grade cell(s) written."
    )
    return results


def push_grades(
    config: Config,
    assignment: str | int,
    column: str | int,
    notifier: Notifier,
    store: LocalStore | None = None,
    session: requests.Session | None = None,
    on_progress: ProgressCallback | None = None,
    confirm: bool = True,
) -> RunSummary | None:
    """Post the grades of one sheet column to one assignment.

    Rows are matched to students by SIS id on the LMS side. A failed row is
    recorded and the batch carries on.

    Args:
        config: Loaded configuration.
        assignment: Assignment id or exact name.
        column: Column holding the grades.
        notifier: Receives the confirmation prompt and the summary.
        store: Sheet to read; opened from the configuration when omitted.
        session: LMS session; created from the token when omitted.
        on_progress: Progress callback for the fetch and the batch.
        confirm: Ask before posting.

    Returns:
        The run summary, or None when the user declined.
    """
    domain, token, course_id = require_lms_settings(config.lms)
    col = column_index(column)
    layout = config.sheet
    ops = config.operational
    store = _open_store(config, store)

    with _lms_session(token, session) as lms:
        target = _resolve_assignment(config, lms, domain, course_id, assignment, on_progress)
        name = target.get("name") or str(target["id"])

        keys = _read_sis_ids(config, store)
        grades = store.read_column(layout.first_data_row, col)
        rows = [
            (local.row, local.key, grades[i] if i < len(grades) else None)
            for i, local in enumerate(keys)
        ]
        # completely blank rows are not students
        rows = [(row, key, grade) for row, key, grade in rows if key or (grade is not None and str(grade).strip())]

        if confirm and not notifier.confirm(
            f"Post {len(rows)} row(s) from column {index_to_letter(col)} to '{name}'?"
        ):
            notifier.notify("Nothing was posted.")
            return None

        logger.info(f"Posting grades from column {index_to_letter(col)} to assignment '{name}' ({target['id']})")
        outcomes, summary = submit_grades(
            lms,
            domain,
            course_id,
            target["id"],
            rows,
            pause_seconds=ops.submission_pause_seconds,
            timeout=ops.request_timeout_seconds,
            blank_policy=ops.blank_grade_policy,
            on_progress=on_progress,
        )

    logger.info(
        f"Grade push to '{name}': {summary.success} succeeded, {summary.failed} failed, "
        f"{summary.invalid} invalid, {summary.skipped_total} skipped"
    )
    notifier.notify(format_summary(f"Grades posted to '{name}'", summary, ops.summary_display_limit))

    if config.report_path:
        try:
            save_report(outcomes, config.report_path)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to save grade report to {config.report_path}: {e}")
            notifier.notify(f"Grade report was not saved: {e}")
    return summary
