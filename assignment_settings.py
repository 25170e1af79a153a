from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from models import AssignmentSetting
from schedule_service import normalize_day, normalize_name

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.getenv("SUBSTITUTE_DATA_DIR", os.path.join(BASE_DIR, "data"))
SETTINGS_FILE = os.path.join(DATA_DIR, "assignment_settings.json")
OVERRIDES_FILE = os.path.join(DATA_DIR, "period_overrides.json")

DEFAULT_ASSIGNMENT_SETTINGS: Dict[str, int] = {
    "max_daily_workload": 6,
    "max_substitute_assignments": 3,
    "max_regular_assignments": 2,
    "default_grade_level": 10,
}

# Known data-quality exception: this teacher's Tuesday periods are missing
# from every other source.
DEFAULT_PERIOD_OVERRIDES: list[dict[str, Any]] = [
    {
        "names": ["mushtaque", "mushtaq"],
        "day": "tuesday",
        "periods": [
            {"period": 1, "className": "10B"},
            {"period": 2, "className": "10B"},
            {"period": 8, "className": "10A"},
        ],
    }
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodOverride:
    names: tuple[str, ...]
    day: str
    periods: tuple[tuple[int, str], ...] = field(default_factory=tuple)

    def matches(self, normalized_name: str, normalized_day: str) -> bool:
        if normalized_day != self.day:
            return False
        return any(fragment and fragment in normalized_name for fragment in self.names)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PeriodOverride":
        names = payload.get("names") or payload.get("name") or []
        if isinstance(names, str):
            names = [names]
        periods = []
        for entry in payload.get("periods") or []:
            try:
                period = int(entry.get("period"))
            except (TypeError, ValueError):
                continue
            class_name = str(entry.get("className") or "").strip().upper()
            periods.append((period, class_name))
        return cls(
            names=tuple(normalize_name(name) for name in names if normalize_name(name)),
            day=normalize_day(payload.get("day")),
            periods=tuple(periods),
        )


def _as_int(value: Optional[str | int], fallback: int) -> int:
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return fallback


class AssignmentSettingsManager:
    def __init__(
        self,
        storage_path: Optional[str] = None,
        overrides_path: Optional[str] = None,
        session_factory: Callable | None = None,
    ):
        self.storage_path = storage_path or SETTINGS_FILE
        self.overrides_path = overrides_path or OVERRIDES_FILE
        self._session_factory = session_factory
        self._settings = DEFAULT_ASSIGNMENT_SETTINGS.copy()
        self._overrides = self._load_overrides()
        self._load()

    def _load(self) -> None:
        if not self._session_factory:
            self._settings = self._load_from_file() or DEFAULT_ASSIGNMENT_SETTINGS.copy()
            return
        with self._session_factory() as session:
            records = session.query(AssignmentSetting).all()
            if records:
                merged = DEFAULT_ASSIGNMENT_SETTINGS.copy()
                for record in records:
                    if record.key in merged:
                        merged[record.key] = _as_int(record.value, merged[record.key])
                self._settings = merged
                return
            self._settings = self._load_from_file() or DEFAULT_ASSIGNMENT_SETTINGS.copy()
            session.add_all(
                [AssignmentSetting(key=key, value=value) for key, value in self._settings.items()]
            )
            session.commit()

    def _save(self) -> None:
        if self._session_factory:
            with self._session_factory() as session:
                for key, value in self._settings.items():
                    record = session.get(AssignmentSetting, key)
                    if record:
                        record.value = value
                    else:
                        session.add(AssignmentSetting(key=key, value=value))
                session.commit()
            return
        directory = os.path.dirname(self.storage_path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)
        with open(self.storage_path, "w", encoding="utf-8") as handle:
            json.dump(self._settings, handle, indent=2)

    def _load_from_file(self) -> Dict[str, int]:
        if not os.path.exists(self.storage_path):
            return {}
        try:
            with open(self.storage_path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable settings file %s", self.storage_path)
            return {}
        if not isinstance(data, dict):
            return {}
        merged = DEFAULT_ASSIGNMENT_SETTINGS.copy()
        for key, value in data.items():
            if key in merged:
                merged[key] = _as_int(value, merged[key])
        return merged

    def _load_overrides(self) -> list[PeriodOverride]:
        raw: Any = DEFAULT_PERIOD_OVERRIDES
        if os.path.exists(self.overrides_path):
            try:
                with open(self.overrides_path, encoding="utf-8") as handle:
                    raw = json.load(handle)
            except (OSError, json.JSONDecodeError):
                logger.warning(
                    "Ignoring unreadable period override file %s, using defaults",
                    self.overrides_path,
                )
                raw = DEFAULT_PERIOD_OVERRIDES
        if not isinstance(raw, list):
            return []
        return [PeriodOverride.from_dict(entry) for entry in raw if isinstance(entry, dict)]

    def update(self, overrides: Dict[str, int]) -> None:
        updated = False
        for key, value in overrides.items():
            if key not in self._settings or value <= 0:
                continue
            if self._settings[key] != value:
                self._settings[key] = value
                updated = True
        if updated:
            self._save()

    def to_dict(self) -> Dict[str, int]:
        return self._settings.copy()

    def get(self, key: str) -> int:
        return self._settings.get(key, DEFAULT_ASSIGNMENT_SETTINGS.get(key, 1))

    @property
    def period_overrides(self) -> list[PeriodOverride]:
        return list(self._overrides)

    @property
    def max_daily_workload(self) -> int:
        return self.get("max_daily_workload")

    @property
    def max_substitute_assignments(self) -> int:
        return self.get("max_substitute_assignments")

    @property
    def max_regular_assignments(self) -> int:
        return self.get("max_regular_assignments")

    @property
    def default_grade_level(self) -> int:
        return self.get("default_grade_level")
