# src/sd_workflow/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "sd_workflow.log"

# Minimum console level per logger prefix; the longest matching prefix wins.
# Anything outside sd_workflow (httpx, httpcore, py.warnings, ...) only shows at ERROR.
CONSOLE_LEVELS: dict[str, int] = {
    "sd_workflow": logging.DEBUG,
    # The poll loop logs a merge summary every couple of seconds.
    "sd_workflow.sync.remote_store": logging.INFO,
    "sd_workflow.remote": logging.WARNING,
}
_DEFAULT_CONSOLE_LEVEL = logging.ERROR


class _ConsoleNoiseFilter(logging.Filter):
    """Keep the interactive prompt readable: per-prefix thresholds from CONSOLE_LEVELS."""

    def __init__(self, levels: dict[str, int] | None = None) -> None:
        super().__init__()
        self._levels = sorted((levels or CONSOLE_LEVELS).items(), key=lambda kv: -len(kv[0]))

    def threshold(self, name: str) -> int:
        for prefix, level in self._levels:
            if name == prefix or name.startswith(prefix + "."):
                return level
        return _DEFAULT_CONSOLE_LEVEL

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.threshold(record.name)


def setup_logging(
    *,
    log_dir: str | Path = ".local/sd_workflow",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Configure the root logger once, at startup:
    - stderr handler at console_level, filtered by CONSOLE_LEVELS
    - rotating file handler with everything down to file_level

    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())

    # The poll loop writes all day; cap the file.
    file_handler = RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)

    root.addHandler(console)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return log_file
