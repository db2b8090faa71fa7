from __future__ import annotations

import logging
from pathlib import Path

import pytest

from lecturehub.logging_utils import (
    DEFAULT_LOG_FORMAT,
    build_cli_handlers,
    configure_logging,
    get_log_file_path,
)


@pytest.fixture()
def root_logger():
    root = logging.getLogger()
    saved_level = root.level
    yield root
    for handler in list(root.handlers):
        if getattr(handler, "_lecturehub_managed", False) or isinstance(handler, logging.NullHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(saved_level)


def test_cli_handlers_write_to_storage_log(tmp_path: Path) -> None:
    handlers = build_cli_handlers(tmp_path)
    try:
        file_handler, stream_handler = handlers
        assert isinstance(file_handler, logging.FileHandler)
        assert Path(file_handler.baseFilename) == get_log_file_path(tmp_path)
        assert get_log_file_path(tmp_path).name == "lecturehub.log"
        assert stream_handler.formatter._fmt == DEFAULT_LOG_FORMAT
    finally:
        for handler in handlers:
            handler.close()


def test_configure_logging_replaces_its_own_handlers(tmp_path: Path, root_logger: logging.Logger) -> None:
    unrelated = logging.NullHandler()
    root_logger.addHandler(unrelated)

    configure_logging(handlers=build_cli_handlers(tmp_path))
    configure_logging(logging.DEBUG, handlers=build_cli_handlers(tmp_path))

    file_handlers = [handler for handler in root_logger.handlers if isinstance(handler, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert unrelated in root_logger.handlers
    assert root_logger.level == logging.DEBUG

    logging.getLogger("lecturehub.tests").info("written once")
    file_handlers[0].flush()
    assert get_log_file_path(tmp_path).read_text(encoding="utf-8").count("written once") == 1
