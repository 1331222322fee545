"""User settings (settings.yaml) and the local clock."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from studysmart.fileio import read_yaml, write_yaml_atomic
from studysmart.models import DEFAULT_DAILY_HOURS, DEFAULT_START_TIME, StudyPlanConfig
from studysmart.workspace import data_root, settings_path

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = {"sqlite", "json"}


def _number(d: dict[str, Any], key: str, default: Any, kind: type) -> Any:
    try:
        return kind(d.get(key, default))
    except (TypeError, ValueError):
        logger.warning("Invalid %s %r, using %s", key, d.get(key), default)
        return default


@dataclass
class Settings:
    timezone: str = "UTC"
    storage: str = "sqlite"
    start_time: str = DEFAULT_START_TIME
    max_daily_hours: float = DEFAULT_DAILY_HOURS
    grace_seconds: float = 5.0
    focus_penalty: int = 5
    root: Path | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any], root: Path | None = None) -> Settings:
        if not d or not isinstance(d, dict):
            return cls(root=root)
        storage = str(d.get("storage", "sqlite")).strip().lower()
        if storage not in STORAGE_BACKENDS:
            logger.warning("Unknown storage backend %r, using sqlite", storage)
            storage = "sqlite"
        start = d.get("start_time")
        if isinstance(start, int) and not isinstance(start, bool):
            # YAML 1.1 reads an unquoted 12:30 as the sexagesimal int 750
            start = "%02d:%02d" % divmod(start, 60)
        plan = StudyPlanConfig.from_values(start, d.get("max_daily_hours"))
        return cls(
            timezone=str(d.get("timezone", "UTC")),
            storage=storage,
            start_time=plan.start_time,
            max_daily_hours=plan.max_daily_hours,
            grace_seconds=_number(d, "grace_seconds", 5.0, float),
            focus_penalty=_number(d, "focus_penalty", 5, int),
            root=root,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "storage": self.storage,
            "start_time": self.start_time,
            "max_daily_hours": self.max_daily_hours,
            "grace_seconds": self.grace_seconds,
            "focus_penalty": self.focus_penalty,
        }

    def plan_config(self) -> StudyPlanConfig:
        return StudyPlanConfig(start_time=self.start_time, max_daily_hours=self.max_daily_hours)

    def tzinfo(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, using UTC", self.timezone)
            return ZoneInfo("UTC")

    def now(self) -> datetime:
        """Current wall-clock time in the user's timezone, without tzinfo.

        Task due dates are stored as naive local timestamps, so comparisons
        stay naive too.
        """
        return datetime.now(self.tzinfo()).replace(tzinfo=None)

    def today(self) -> date:
        return self.now().date()


def load_settings(root: Path | None = None) -> Settings:
    """Load settings.yaml, falling back to defaults when missing or unreadable."""
    if root is None:
        root = data_root()
    try:
        data = read_yaml(settings_path(root))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not read settings, using defaults: %s", e)
        data = {}
    return Settings.from_dict(data, root=root)


def save_settings(settings: Settings) -> None:
    write_yaml_atomic(settings_path(settings.root), settings.to_dict())
