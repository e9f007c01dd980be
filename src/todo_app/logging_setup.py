# src/todo_app/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from pathlib import Path

LOG_FILE_NAME = "todo.log"

# Minimum level a record needs to reach the console, by logger-name prefix.
# The REPL prints to the same terminal, so chatter from the input loop and the
# sqlite engine is kept in the log file only.
CONSOLE_LEVELS: dict[str, int] = {
    "todo_app": logging.DEBUG,
    "todo_app.connectors": logging.INFO,
    "todo_app.storage": logging.WARNING,
    "py.warnings": logging.ERROR,
}
_FOREIGN_LEVEL = logging.ERROR


class _ConsoleLevelFilter(logging.Filter):
    """Drop records below the level configured for the longest matching prefix."""

    def __init__(self, levels: Mapping[str, int] = CONSOLE_LEVELS, default: int = _FOREIGN_LEVEL) -> None:
        super().__init__()
        # longest prefix first, so todo_app.storage wins over todo_app
        self._levels = sorted(levels.items(), key=lambda kv: len(kv[0]), reverse=True)
        self._default = default

    def min_level(self, name: str) -> int:
        for prefix, level in self._levels:
            if name == prefix or name.startswith(prefix + "."):
                return level
        return self._default

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.min_level(record.name)


def setup_logging(
    *,
    log_dir: str | Path = ".local/todo",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Send filtered records to stderr and everything to <log_dir>/todo.log.

    Handlers already on the root logger are detached first. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleLevelFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
