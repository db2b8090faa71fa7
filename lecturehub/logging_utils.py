"""Logging setup shared by the CLI and the web server."""

from __future__ import annotations

import logging
from logging import Logger
from pathlib import Path
from typing import Iterable, List, Optional


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE_NAME = "lecturehub.log"

# Marks handlers installed through configure_logging so a later call replaces them.
_MANAGED_ATTRIBUTE = "_lecturehub_managed"


def get_log_file_path(storage_root: Path) -> Path:
    return storage_root / LOG_FILE_NAME


def build_cli_handlers(storage_root: Path, *, fmt: str = DEFAULT_LOG_FORMAT) -> List[logging.Handler]:
    """Return a file handler writing ``lecturehub.log`` plus a console handler."""

    formatter = logging.Formatter(fmt)
    file_handler = logging.FileHandler(get_log_file_path(storage_root), encoding="utf-8")
    stream_handler = logging.StreamHandler()
    for handler in (file_handler, stream_handler):
        handler.setFormatter(formatter)
    return [file_handler, stream_handler]


def configure_logging(
    level: int = logging.INFO, *, handlers: Optional[Iterable[logging.Handler]] = None
) -> Logger:
    """Install *handlers* (or a formatted stream handler) on the root logger.

    Handlers from an earlier call are closed and removed first, so running
    several commands in one process does not duplicate every line. Handlers
    added by other code, such as the web debug log, are left alone.
    """

    root = logging.getLogger()
    root.setLevel(level)

    for existing in list(root.handlers):
        if getattr(existing, _MANAGED_ATTRIBUTE, False):
            root.removeHandler(existing)
            existing.close()

    if handlers is None:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        handlers = [console]

    for handler in handlers:
        setattr(handler, _MANAGED_ATTRIBUTE, True)
        root.addHandler(handler)
    return root


__all__ = [
    "DEFAULT_LOG_FORMAT",
    "LOG_FILE_NAME",
    "build_cli_handlers",
    "configure_logging",
    "get_log_file_path",
]
