from __future__ import annotations

import io
import json
import logging
import os
import uuid
from typing import Any, Iterable, Optional

import pandas as pd

from csv_repair import ROSTER_FIELD_COUNT, CsvParseError, load_with_repair
from records import DEFAULT_GRADE_LEVEL, RosterEntry, Teacher
from schedule_service import normalize_name

logger = logging.getLogger(__name__)


def parse_roster(content: str) -> list[RosterEntry]:
    if not content.strip():
        return []
    df = pd.read_csv(
        io.StringIO(content),
        header=None,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
    ).fillna("")
    if df.shape[1] > ROSTER_FIELD_COUNT:
        raise CsvParseError(
            f"Substitute roster has {df.shape[1]} columns, expected at most {ROSTER_FIELD_COUNT}"
        )
    entries: list[RosterEntry] = []
    for values in df.itertuples(index=False, name=None):
        name = str(values[0]).strip()
        if not name:
            continue
        phone = str(values[1]).strip() if len(values) > 1 else ""
        entries.append(RosterEntry(name=name, phone=phone))
    return entries


def load_roster(path: str) -> list[RosterEntry]:
    return load_with_repair(path, parse_roster, ROSTER_FIELD_COUNT, label="Substitute")


def _random_id() -> str:
    return f"teacher-{uuid.uuid4().hex[:7]}"


def _grade_level(value: Any, fallback: int) -> int:
    try:
        grade = int(value)
    except (TypeError, ValueError):
        return fallback
    return grade or fallback


def teacher_from_dict(payload: dict[str, Any], default_grade_level: int = DEFAULT_GRADE_LEVEL) -> Teacher:
    phone = str(payload.get("phone") or "").strip()
    is_regular = payload.get("isRegular")
    variations = payload.get("variations") or []
    if isinstance(variations, str):
        variations = [variations]
    return Teacher(
        name=str(payload.get("name") or "").strip(),
        phone=phone,
        grade_level=_grade_level(payload.get("gradeLevel"), default_grade_level),
        is_regular=True if is_regular is None else bool(is_regular),
        variations=[str(item) for item in variations if str(item).strip()],
        id=str(payload.get("id") or phone or _random_id()),
    )


def load_teachers(path: str, default_grade_level: int = DEFAULT_GRADE_LEVEL) -> list[Teacher]:
    if not path or not os.path.exists(path):
        return []
    try:
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Error loading teachers: {exc}") from exc
    if not isinstance(data, list):
        raise ValueError(f"Error loading teachers: expected a list in {path}")
    teachers = [
        teacher_from_dict(entry, default_grade_level)
        for entry in data
        if isinstance(entry, dict) and str(entry.get("name") or "").strip()
    ]
    logger.info("Loaded %d teachers from %s", len(teachers), path)
    return teachers


def load_declared_schedules(path: str) -> dict[str, list[dict[str, Any]]]:
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Error loading schedules: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Error loading schedules: expected a mapping in {path}")
    schedules: dict[str, list[dict[str, Any]]] = {}
    for name, entries in data.items():
        if not isinstance(entries, list):
            continue
        key = normalize_name(name)
        schedules.setdefault(key, []).extend(entry for entry in entries if isinstance(entry, dict))
    return schedules


class TeacherDirectory:
    def __init__(
        self,
        teachers: Iterable[Teacher] = (),
        roster: Iterable[RosterEntry] = (),
    ):
        self._teachers: list[Teacher] = []
        self._by_name: dict[str, Teacher] = {}
        self._roster_names: set[str] = set()
        for teacher in teachers:
            self._add(teacher)
        for entry in roster:
            self._add_roster_entry(entry)

    def _add(self, teacher: Teacher) -> None:
        self._teachers.append(teacher)
        self._by_name[normalize_name(teacher.name)] = teacher
        for variation in teacher.variations:
            key = normalize_name(variation)
            if key:
                self._by_name[key] = teacher

    def _add_roster_entry(self, entry: RosterEntry) -> None:
        key = normalize_name(entry.name)
        self._roster_names.add(key)
        existing = self._by_name.get(key)
        if existing:
            self._roster_names.add(normalize_name(existing.name))
            if not existing.phone:
                existing.phone = entry.phone
            return
        self._add(
            Teacher(
                name=entry.name,
                phone=entry.phone,
                is_regular=False,
                id=entry.phone or _random_id(),
            )
        )

    @property
    def teachers(self) -> list[Teacher]:
        return list(self._teachers)

    @property
    def roster_names(self) -> set[str]:
        return set(self._roster_names)

    def find(self, name: str) -> Optional[Teacher]:
        return self._by_name.get(normalize_name(name))

    def substitute_pool(self) -> list[Teacher]:
        return [teacher for teacher in self._teachers if teacher.phone.strip()]

    def is_roster_substitute(self, name: str) -> bool:
        key = normalize_name(name)
        if key in self._roster_names:
            return True
        teacher = self._by_name.get(key)
        return bool(teacher and normalize_name(teacher.name) in self._roster_names)

    def __len__(self) -> int:
        return len(self._teachers)
