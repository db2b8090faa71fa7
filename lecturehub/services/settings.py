"""Persistence helpers for dashboard preferences."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Literal

from ..config import AppConfig
from .calendar_view import DAY_END_HOUR, DAY_START_HOUR
from .scheduling import MAX_OCCURRENCES, RECURRENCE_PATTERNS


LOGGER = logging.getLogger(__name__)

ThemeName = Literal["dark", "light"]

THEMES = ("dark", "light")


@dataclass
class DashboardSettings:
    """Container for the customisable dashboard options."""

    theme: ThemeName = "light"
    calendar_start_hour: int = DAY_START_HOUR
    calendar_end_hour: int = DAY_END_HOUR
    default_recurrence: str = "weekly"
    default_occurrences: int = 12


def _bounded_int(value: Any, default: int, *, minimum: int, maximum: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(minimum, min(number, maximum))


def normalize_settings(values: Dict[str, Any]) -> DashboardSettings:
    """Build settings from *values*, replacing anything out of range with defaults."""

    defaults = DashboardSettings()
    theme = str(values.get("theme") or defaults.theme).strip().lower()
    start_hour = _bounded_int(
        values.get("calendar_start_hour"), defaults.calendar_start_hour, minimum=0, maximum=23
    )
    end_hour = _bounded_int(
        values.get("calendar_end_hour"), defaults.calendar_end_hour, minimum=0, maximum=23
    )
    if end_hour < start_hour:
        start_hour, end_hour = defaults.calendar_start_hour, defaults.calendar_end_hour
    recurrence = str(values.get("default_recurrence") or defaults.default_recurrence).strip().lower()
    return DashboardSettings(
        theme=theme if theme in THEMES else defaults.theme,  # type: ignore[arg-type]
        calendar_start_hour=start_hour,
        calendar_end_hour=end_hour,
        default_recurrence=recurrence if recurrence in RECURRENCE_PATTERNS else defaults.default_recurrence,
        default_occurrences=_bounded_int(
            values.get("default_occurrences"),
            defaults.default_occurrences,
            minimum=1,
            maximum=MAX_OCCURRENCES,
        ),
    )


class SettingsStore:
    """Load and store :class:`DashboardSettings` next to the local database."""

    def __init__(self, config: AppConfig) -> None:
        self._path = config.settings_file

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> DashboardSettings:
        if not self._path.exists():
            return DashboardSettings()

        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("Ignoring unreadable settings file at %s", self._path)
            return DashboardSettings()
        if not isinstance(payload, dict):
            return DashboardSettings()
        return normalize_settings(payload)

    def save(self, settings: DashboardSettings) -> DashboardSettings:
        cleaned = normalize_settings(asdict(settings))
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(asdict(cleaned), indent=2), encoding="utf-8")
        return cleaned


__all__ = ["DashboardSettings", "SettingsStore", "THEMES", "ThemeName", "normalize_settings"]
