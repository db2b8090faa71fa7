"""Configuration loading utilities for the LectureHub service."""

from __future__ import annotations

import contextlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple


LOGGER = logging.getLogger(__name__)


_PERMISSION_SENTINEL = ".lecturehub_write_check"

SUPPORTED_BACKENDS = ("sqlite", "firestore")
DEFAULT_UNIVERSITY_NAME = "Mountains of Moon University"
DEFAULT_UNIVERSITY_CODE = "MMU"


def _ensure_writable_directory(path: Path) -> bool:
    """Return ``True`` if *path* exists (or can be created) and accepts writes."""

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False

    sentinel = path / _PERMISSION_SENTINEL
    try:
        with sentinel.open("w", encoding="utf-8") as handle:
            handle.write("ok")
    except OSError:
        return False
    finally:
        with contextlib.suppress(OSError):
            sentinel.unlink()

    return True


def _select_writable_directory(
    preferred: Path,
    *,
    label: str,
    fallbacks: Iterable[Path] = (),
) -> Tuple[Path, bool]:
    """Pick the first usable directory among ``preferred`` and ``fallbacks``.

    Returns the chosen path together with a flag telling whether a fallback
    replaced the preferred location. When nothing is writable the preferred
    path is returned unchanged so that later steps can report the failure.
    """

    preferred = preferred.resolve()
    if _ensure_writable_directory(preferred):
        return preferred, False

    for fallback in fallbacks:
        candidate = fallback.resolve()
        if candidate == preferred:
            continue
        if _ensure_writable_directory(candidate):
            LOGGER.warning(
                "Preferred %s directory '%s' is not writable; using fallback '%s'.",
                label,
                preferred,
                candidate,
            )
            return candidate, True

    LOGGER.warning(
        "%s directory '%s' is not writable and no fallback is available.",
        label.capitalize(),
        preferred,
    )
    return preferred, False


def _resolve_database_file(
    database_file: Path,
    *,
    preferred_storage: Path,
    storage_root: Path,
    storage_fallback_used: bool,
) -> Path:
    if storage_fallback_used:
        try:
            relative = database_file.relative_to(preferred_storage)
        except ValueError:
            relative = None
        if relative is not None:
            relocated = (storage_root / relative).resolve()
            if _ensure_writable_directory(relocated.parent):
                LOGGER.warning(
                    "Preferred database location '%s' is not writable; using fallback '%s'.",
                    database_file,
                    relocated,
                )
                return relocated

    if _ensure_writable_directory(database_file.parent):
        return database_file

    relocated = (storage_root / database_file.name).resolve()
    if relocated != database_file and _ensure_writable_directory(relocated.parent):
        LOGGER.warning(
            "Preferred database location '%s' is not writable; using fallback '%s'.",
            database_file,
            relocated,
        )
        return relocated

    LOGGER.warning(
        "Database location '%s' is not writable and no fallback is available.",
        database_file,
    )
    return database_file


@dataclass(frozen=True)
class AppConfig:
    """Runtime settings: filesystem locations, storage backend and branding."""

    storage_root: Path
    database_file: Path
    exports_root: Path
    backend: str = "sqlite"
    firestore_project: Optional[str] = None
    firestore_credentials: Optional[Path] = None
    university_name: str = DEFAULT_UNIVERSITY_NAME
    university_code: str = DEFAULT_UNIVERSITY_CODE

    @property
    def settings_file(self) -> Path:
        return self.storage_root / "settings.json"

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any], *, base_path: Path) -> "AppConfig":
        backend = str(mapping.get("backend") or "sqlite").strip().lower()
        if backend not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unsupported storage backend '{backend}'. "
                f"Expected one of: {', '.join(SUPPORTED_BACKENDS)}."
            )

        preferred_storage = (base_path / mapping["storage_root"]).resolve()
        storage_root, storage_fallback_used = _select_writable_directory(
            preferred_storage,
            label="storage",
            fallbacks=(Path.home() / ".lecturehub" / "storage",),
        )

        database_file = _resolve_database_file(
            (base_path / mapping["database_file"]).resolve(),
            preferred_storage=preferred_storage,
            storage_root=storage_root,
            storage_fallback_used=storage_fallback_used,
        )

        exports_setting = mapping.get("exports_root") or "exports"
        exports_root, _ = _select_writable_directory(
            (base_path / exports_setting).resolve(),
            label="exports",
            fallbacks=(storage_root / "_exports",),
        )

        firestore_settings = mapping.get("firestore") or {}
        project_id = str(firestore_settings.get("project_id") or "").strip() or None
        credentials_setting = str(firestore_settings.get("credentials_file") or "").strip()
        credentials_file = (
            (base_path / credentials_setting).resolve() if credentials_setting else None
        )

        university = mapping.get("university") or {}
        university_name = (
            str(university.get("name") or "").strip() or DEFAULT_UNIVERSITY_NAME
        )
        university_code = (
            str(university.get("short_code") or "").strip().upper() or DEFAULT_UNIVERSITY_CODE
        )

        return cls(
            storage_root=storage_root,
            database_file=database_file,
            exports_root=exports_root,
            backend=backend,
            firestore_project=project_id,
            firestore_credentials=credentials_file,
            university_name=university_name,
            university_code=university_code,
        )


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load the application configuration from ``config/default.json`` by default."""

    base_path = Path(__file__).resolve().parent.parent
    if config_path is None:
        config_path = base_path / "config" / "default.json"

    with config_path.open("r", encoding="utf-8") as config_file:
        raw_config = json.load(config_file)

    return AppConfig.from_mapping(raw_config, base_path=base_path)


__all__ = ["AppConfig", "SUPPORTED_BACKENDS", "load_config"]
