"""Logging setup for command-line runs."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_logging(log_path: Path | None, verbose: bool = False) -> None:
    """Send the full log to ``log_path`` and warnings to stderr.

    With ``verbose`` both receive DEBUG records. Every grade outcome is logged at INFO or above, so the log file keeps the
    complete list that on-screen summaries cut short.
    """
    handlers: list[logging.Handler] = []

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    handlers.append(console_handler)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # requests/urllib3 debug output would drown the per-row log
    logging.getLogger("urllib3").setLevel(logging.WARNING)
