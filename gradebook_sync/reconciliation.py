"""Joining sheet rows to LMS records by SIS id."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from gradebook_sync.types import LocalKey, ReconciliationEntry, ReconciliationResult, RemoteRecord

logger = logging.getLogger(__name__)

KeyExtractor = Callable[[RemoteRecord], Any]
ValueExtractor = Callable[[RemoteRecord], Any]


def _cell_text(value: Any) -> str:
    """Render a cell value as key text.

    Integral floats lose their ``.0`` so a numeric SIS id cell reads the way it
    is displayed.
    """
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def read_local_keys(cells: Sequence[Any], start_row: int) -> list[LocalKey]:
    """Pair each cell of a key column with its sheet row.

    Args:
        cells: Cell values of the key column, top to bottom.
        start_row: Sheet row of ``cells[0]``.

    Returns:
        One LocalKey per cell, stripped. Empty keys are kept so that callers
        can count them.
    """
    return [LocalKey(start_row + offset, _cell_text(value).strip()) for offset, value in enumerate(cells)]


def index_by_key(
    records: Iterable[RemoteRecord],
    key_extractor: KeyExtractor,
) -> tuple[dict[str, RemoteRecord], int, int]:
    """Build a lookup from stripped key to remote record.

    Args:
        records: Remote records to index.
        key_extractor: Returns the SIS id of a record, or None when it has none.

    Returns:
        Tuple of (index, records without a key, records whose key was already
        taken). The first record seen for a key wins.
    """
    index: dict[str, RemoteRecord] = {}
    missing = 0
    duplicates = 0

    for record in records:
        raw_key = key_extractor(record)
        key = _cell_text(raw_key).strip()
        if not key:
            missing += 1
            continue
        if key in index:
            duplicates += 1
            logger.warning(f"Duplicate remote record for SIS id {key!r}; keeping the first one")
            continue
        index[key] = record

    return index, missing, duplicates


def reconcile(
    local_keys: Iterable[LocalKey | tuple[int, str]],
    remote_records: Iterable[RemoteRecord],
    key_extractor: KeyExtractor,
    value_extractor: ValueExtractor,
) -> ReconciliationResult:
    """Match sheet rows to remote records and produce the write plan.

    Matching is exact and case-sensitive after stripping whitespace on both
    sides. Neither input is modified.

    Args:
        local_keys: ``(row, key)`` pairs in sheet order.
        remote_records: Records fetched from the LMS.
        key_extractor: Returns the SIS id of a remote record.
        value_extractor: Returns the value to write for a matched record.

    Returns:
        Entries in the order of ``local_keys`` plus the match counters.
    """
    index, missing_remote_keys, duplicate_remote_keys = index_by_key(remote_records, key_extractor)

    entries: list[ReconciliationEntry] = []
    matched_keys: set[str] = set()
    local_misses = 0
    empty_keys = 0

    for row, raw_key in local_keys:
        key = _cell_text(raw_key).strip()
        if not key:
            empty_keys += 1
            continue

        record = index.get(key)
        if record is None:
            local_misses += 1
            logger.debug(f"No remote record for SIS id {key!r} (row {row})")
            continue

        matched_keys.add(key)
        entries.append(ReconciliationEntry(row=row, value=value_extractor(record)))

    unmatched_remote = len(index.keys() - matched_keys)

    logger.info(
        f"Reconciled {len(entries)} row(s); {local_misses} without a remote record, "
        f"{unmatched_remote} remote record(s) without a row, {empty_keys} empty key(s)"
    )
    return ReconciliationResult(
        entries=entries,
        unmatched_remote_count=unmatched_remote,
        local_miss_count=local_misses,
        empty_key_count=empty_keys,
        missing_remote_key_count=missing_remote_keys,
        duplicate_remote_key_count=duplicate_remote_keys,
    )
