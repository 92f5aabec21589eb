"""Type definitions for gradebook sync."""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, NamedTuple, TypedDict

# Written to the LMS to un-post a grade, and to the sheet to blank a cell.
CLEAR_SENTINEL: str = ""

RemoteRecord = dict[str, Any]

# on_progress(current, total, detail); total is None while it is still unknown.
ProgressCallback = Callable[[int, int | None, str], None]


class LocalKey(NamedTuple):
    """A sheet row and the stripped SIS id read from it."""

    row: int
    key: str


@dataclass(frozen=True)
class ReconciliationEntry:
    """One write instruction: put ``value`` into sheet row ``row``."""

    row: int
    value: Any


@dataclass(frozen=True)
class ReconciliationResult:
    """Write plan and counters produced by joining sheet rows to remote records."""

    entries: list[ReconciliationEntry]
    unmatched_remote_count: int = 0
    local_miss_count: int = 0
    empty_key_count: int = 0
    missing_remote_key_count: int = 0
    duplicate_remote_key_count: int = 0


@dataclass(frozen=True)
class GradeWriteOutcome:
    """Result of posting one grade for one student."""

    student_key: str
    success: bool
    message: str


@dataclass
class RunSummary:
    """Tally of a batch run.

    Attributes:
        success: Grades accepted by the LMS.
        failed: Grades rejected by the LMS or lost in transport.
        invalid: Rows whose grade cell could not be parsed.
        skipped: Rows never sent, counted per reason.
        reasons: One line per non-successful row, in row order.
    """

    success: int = 0
    failed: int = 0
    invalid: int = 0
    skipped: Counter[str] = field(default_factory=Counter)
    reasons: list[str] = field(default_factory=list)

    @property
    def skipped_total(self) -> int:
        return sum(self.skipped.values())

    @property
    def total(self) -> int:
        return self.success + self.failed + self.invalid + self.skipped_total


class OutcomeRow(TypedDict):
    """Type definition for grade outcome report entries."""

    student: str
    success: bool
    message: str
