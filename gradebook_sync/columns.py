"""Spreadsheet column letters.

Columns are numbered the spreadsheet way: bijective base 26, where ``A`` is 1,
``Z`` is 26 and ``AA`` is 27. There is no zero digit.
"""

from __future__ import annotations


def letter_to_index(letters: str) -> int:
    """Convert column letters to a 1-based column index.

    Args:
        letters: Column letters such as ``"A"`` or ``"az"``. Case is ignored.

    Returns:
        The 1-based column index.

    Raises:
        ValueError: If ``letters`` is empty or contains anything but A-Z.
    """
    normalized = letters.strip().upper()
    if not normalized or not all("A" <= ch <= "Z" for ch in normalized):
        raise ValueError(f"Invalid column letters: {letters!r}")

    index = 0
    for ch in normalized:
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index


def index_to_letter(index: int) -> str:
    """Convert a 1-based column index to column letters.

    Args:
        index: Column index, 1 or greater.

    Returns:
        Upper-case column letters.

    Raises:
        ValueError: If ``index`` is below 1.
    """
    if index < 1:
        raise ValueError(f"Column index must be 1 or greater, got {index}")

    letters: list[str] = []
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters.append(chr(ord("A") + remainder))
    return "".join(reversed(letters))


def column_index(column: str | int) -> int:
    """Accept a column as letters or as a 1-based index and return the index."""
    if isinstance(column, bool):
        raise ValueError(f"Invalid column: {column!r}")
    if isinstance(column, int):
        if column < 1:
            raise ValueError(f"Column index must be 1 or greater, got {column}")
        return column
    return letter_to_index(column)
