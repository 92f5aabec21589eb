"""Test doubles: fake HTTP responses, an in-memory sheet and a notifier."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

from gradebook_sync.columns import column_index


def make_response(status_code: int = 200, body: Any = None, link: str | None = None, url: str = "") -> MagicMock:
    """Build a stand-in for requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.url = url
    response.headers = {"Link": link} if link else {}
    if isinstance(body, str):
        response.text = body
        try:
            parsed = json.loads(body)
        except ValueError:
            response.json.side_effect = ValueError("No JSON object could be decoded")
        else:
            response.json.return_value = parsed
    else:
        response.text = json.dumps(body) if body is not None else ""
        response.json.return_value = body
    return response


class MemoryStore:
    """LocalStore backed by a dict of (row, column) -> value."""

    def __init__(self, cells: dict[tuple[int, int], Any] | None = None) -> None:
        self.cells: dict[tuple[int, int], Any] = dict(cells or {})
        self.saved = 0

    def last_row(self) -> int:
        return max((row for row, _ in self.cells), default=0)

    def read_column(self, start_row: int, column: str | int) -> list[Any]:
        col = column_index(column)
        return [self.cells.get((row, col)) for row in range(start_row, self.last_row() + 1)]

    def write_cell(self, row: int, column: str | int, value: Any) -> None:
        self.cells[(row, column_index(column))] = None if value == "" else value

    def save(self) -> None:
        self.saved += 1

    def get(self, row: int, column: str | int) -> Any:
        return self.cells.get((row, column_index(column)))


class RecordingNotifier:
    """Notifier that remembers messages and answers confirmations."""

    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.messages: list[str] = []
        self.prompts: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answer
