"""Bootstrap logic that prepares runtime directories and the local document table."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from . import config as config_module
from .config import AppConfig, load_config

LOGGER = logging.getLogger(__name__)


DOCUMENT_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (collection, id)
);

CREATE INDEX IF NOT EXISTS idx_documents_collection_created
    ON documents (collection, created_at);
"""


class BootstrapError(RuntimeError):
    """Raised when initialization cannot be completed."""


class Bootstrapper:
    """Prepare storage folders and, for the sqlite backend, the document table."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    @property
    def config(self) -> AppConfig:
        return self._config

    def initialize(self) -> None:
        LOGGER.debug("Starting bootstrap sequence (backend=%s)", self._config.backend)
        self._ensure_directories()
        if self._config.backend == "sqlite":
            self._ensure_database()
        else:
            LOGGER.debug("Skipping local schema; documents live in Firestore")
        LOGGER.info("Bootstrap completed successfully")

    def _ensure_directories(self) -> None:
        storage_root = self._config.storage_root
        if not config_module._ensure_writable_directory(storage_root):
            raise BootstrapError(f"Storage directory '{storage_root}' is not writable.")
        LOGGER.debug("Ensured directory exists: %s", storage_root)

        exports_root = self._config.exports_root
        try:
            exports_root.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise BootstrapError(
                f"Exports directory '{exports_root}' could not be created: {error}"
            ) from error
        LOGGER.debug("Ensured directory exists: %s", exports_root)

    def _ensure_database(self) -> None:
        database_file = self._config.database_file
        LOGGER.debug("Ensuring document table at %s", database_file)
        try:
            database_file.parent.mkdir(parents=True, exist_ok=True)
            connection = sqlite3.connect(database_file)
        except (OSError, sqlite3.Error) as error:
            raise BootstrapError(f"Could not open database '{database_file}': {error}") from error
        try:
            connection.executescript(DOCUMENT_SCHEMA)
            connection.commit()
        except sqlite3.Error as error:
            raise BootstrapError(f"Could not prepare database schema: {error}") from error
        finally:
            connection.close()


def initialize_app(config_path: Path | None = None) -> AppConfig:
    """Load configuration and run :class:`Bootstrapper` against it."""

    config = load_config(config_path=config_path)
    Bootstrapper(config).initialize()
    return config


__all__ = ["BootstrapError", "Bootstrapper", "initialize_app"]
