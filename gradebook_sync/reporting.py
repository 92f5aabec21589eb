"""Progress checkpoints, run summaries and grade outcome reports."""

from __future__ import annotations

import csv
import logging
import math
from collections.abc import Sequence
from pathlib import Path

import yaml

from gradebook_sync.configs import DEFAULT_SUMMARY_DISPLAY_LIMIT, REPORT_SUFFIXES
from gradebook_sync.types import GradeWriteOutcome, OutcomeRow, ReconciliationResult, RunSummary

logger = logging.getLogger(__name__)

PROGRESS_STEPS: int = 20  # one checkpoint per 5%


def progress_due(current: int, total: int) -> bool:
    """Return True when ``current`` is a 5% checkpoint of ``total`` or the last item."""
    if total <= 0:
        return False
    if current >= total:
        return True
    step = max(1, math.ceil(total / PROGRESS_STEPS))
    return current % step == 0


def cap_lines(lines: Sequence[str], limit: int = DEFAULT_SUMMARY_DISPLAY_LIMIT) -> list[str]:
    """Return at most ``limit`` lines, with a ``+N more`` line for the rest."""
    if len(lines) <= limit:
        return list(lines)
    return [*lines[:limit], f"+{len(lines) - limit} more"]


def format_summary(title: str, summary: RunSummary, limit: int = DEFAULT_SUMMARY_DISPLAY_LIMIT) -> str:
    """Render a batch summary for display.

    Args:
        title: First line of the message.
        summary: Counters and reasons of the run.
        limit: Maximum number of reason lines shown.

    Returns:
        Multi-line summary text.
    """
    lines = [
        title,
        f"Succeeded: {summary.success}",
        f"Failed: {summary.failed}",
        f"Invalid grades: {summary.invalid}",
        f"Skipped: {summary.skipped_total}",
    ]
    for reason, count in sorted(summary.skipped.items()):
        lines.append(f"  {reason}: {count}")

    if summary.reasons:
        lines.append("Details:")
        lines.extend(f"  {line}" for line in cap_lines(summary.reasons, limit))
    return "\n".join(lines)


def format_reconciliation(title: str, result: ReconciliationResult) -> str:
    """Render the counters of a pull for display."""
    lines = [
        title,
        f"Rows written: {len(result.entries)}",
        f"Rows without a match: {result.local_miss_count}",
        f"Rows without an SIS id: {result.empty_key_count}",
        f"Remote records without a row: {result.unmatched_remote_count}",
    ]
    if result.missing_remote_key_count:
        lines.append(f"Remote records without an SIS id: {result.missing_remote_key_count}")
    if result.duplicate_remote_key_count:
        lines.append(f"Duplicate remote SIS ids ignored: {result.duplicate_remote_key_count}")
    return "\n".join(lines)


def _outcome_rows(outcomes: Sequence[GradeWriteOutcome]) -> list[OutcomeRow]:
    return [OutcomeRow(student=o.student_key, success=o.success, message=o.message) for o in outcomes]


def _save_report_as_yaml(outcomes: Sequence[GradeWriteOutcome], report_path: Path) -> None:
    """Save grade outcomes to a YAML file.

    Raises:
        OSError: If report cannot be written.
    """
    with open(report_path, "w") as f:
        yaml.dump(_outcome_rows(outcomes), f, default_flow_style=False, sort_keys=False)
    logger.info(f"Wrote grade report to {report_path} (YAML format)")


def _save_report_as_csv(outcomes: Sequence[GradeWriteOutcome], report_path: Path) -> None:
    """Save grade outcomes to a CSV file.

    Raises:
        OSError: If report cannot be written.
    """
    with open(report_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["SIS ID", "Success", "Message"])
        for row in _outcome_rows(outcomes):
            writer.writerow([row["student"], "yes" if row["success"] else "no", row["message"]])
    logger.info(f"Wrote grade report to {report_path} (CSV format)")


def save_report(outcomes: Sequence[GradeWriteOutcome], report_path: Path) -> None:
    """Save grade outcomes to file (YAML or CSV based on extension).

    Args:
        outcomes: Outcomes in submission order.
        report_path: Path to save the report.

    Raises:
        OSError: If report cannot be written.
        ValueError: If file extension is not supported.
    """
    suffix = report_path.suffix.lower()

    if suffix not in REPORT_SUFFIXES:
        raise ValueError(f"Unsupported report file extension: {suffix}. Supported formats: {', '.join(REPORT_SUFFIXES)}")
    if suffix in (".yaml", ".yml"):
        _save_report_as_yaml(outcomes, report_path)
    else:
        _save_report_as_csv(outcomes, report_path)
