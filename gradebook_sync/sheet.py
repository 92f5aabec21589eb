"""Workbook access for the roster and grade columns."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

import openpyxl
from openpyxl.worksheet.worksheet import Worksheet

from gradebook_sync.columns import column_index
from gradebook_sync.types import CLEAR_SENTINEL


class LocalStore(Protocol):
    """Positional row/column access to the sheet of record."""

    def read_column(self, start_row: int, column: str | int) -> list[Any]: ...

    def write_cell(self, row: int, column: str | int, value: Any) -> None: ...

    def last_row(self) -> int: ...

    def save(self) -> None: ...


def _validate_workbook_file(path: Path) -> None:
    """Validate that the workbook exists.

    Raises:
        FileNotFoundError: If the workbook doesn't exist.
    """
    if not path.exists():
        raise FileNotFoundError(f"Workbook not found: {path}")


class WorkbookSheet:
    """One worksheet of an ``.xlsx`` workbook.

    Writes stay in memory until ``save`` is called.

    Args:
        path: Path to the workbook.
        sheet_name: Worksheet title; the active sheet when omitted.

    Raises:
        FileNotFoundError: If the workbook doesn't exist.
        KeyError: If the worksheet is not in the workbook.
    """

    def __init__(self, path: str | Path, sheet_name: str | None = None) -> None:
        self.path = Path(path)
        _validate_workbook_file(self.path)
        self._workbook = openpyxl.load_workbook(self.path)
        if sheet_name is None:
            self._sheet: Worksheet = self._workbook.active
        elif sheet_name in self._workbook.sheetnames:
            self._sheet = self._workbook[sheet_name]
        else:
            raise KeyError(f"Worksheet '{sheet_name}' not found in {self.path}: {self._workbook.sheetnames}")

    @property
    def title(self) -> str:
        return self._sheet.title

    def last_row(self) -> int:
        return self._sheet.max_row

    def read_cell(self, row: int, column: str | int) -> Any:
        return self._sheet.cell(row=row, column=column_index(column)).value

    def read_column(self, start_row: int, column: str | int) -> list[Any]:
        """Read one column from ``start_row`` down to the last used row."""
        col = column_index(column)
        last = self._sheet.max_row
        if start_row > last:
            return []
        return [
            row[0]
            for row in self._sheet.iter_rows(
                min_row=start_row, max_row=last, min_col=col, max_col=col, values_only=True
            )
        ]

    def write_cell(self, row: int, column: str | int, value: Any) -> None:
        """Write one cell; the clear-sentinel empties it."""
        self._sheet.cell(row=row, column=column_index(column)).value = None if value == CLEAR_SENTINEL else value

    def save(self) -> None:
        self._workbook.save(self.path)
