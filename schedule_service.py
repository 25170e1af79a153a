from __future__ import annotations

import io
import logging
import re
from datetime import datetime
from typing import Optional

import pandas as pd

from csv_repair import TIMETABLE_FIELD_COUNT, CsvParseError, load_with_repair
from records import ScheduleEntry, TimetableRow

CLASS_COLUMNS = (
    "10A",
    "10B",
    "10C",
    "9A",
    "9B",
    "9C",
    "8A",
    "8B",
    "8C",
    "7A",
    "7B",
    "7C",
    "6A",
    "6B",
    "6C",
)
DAY_ABBREVIATIONS = {
    "mon": "monday",
    "tue": "tuesday",
    "wed": "wednesday",
    "thu": "thursday",
    "fri": "friday",
    "sat": "saturday",
    "sun": "sunday",
}
WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
EMPTY_CELL = "empty"
SCAN_PREFIX_LENGTH = 5

WHITESPACE_RUN = re.compile(r"\s+")

logger = logging.getLogger(__name__)


def normalize_name(name: Optional[str]) -> str:
    if not name:
        return ""
    return WHITESPACE_RUN.sub(" ", str(name).strip().lower())


def normalize_day(day: Optional[str]) -> str:
    normalized = str(day or "").strip().lower()
    return DAY_ABBREVIATIONS.get(normalized[:3], normalized)


def day_from_date(date_string: str) -> str:
    text = str(date_string).strip()
    # fromisoformat only accepts a trailing "Z" from Python 3.11
    if text.endswith(("Z", "z")):
        text = text[:-1]
    parsed = datetime.fromisoformat(text)
    return WEEKDAY_NAMES[parsed.weekday()]


def parse_period(value) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        try:
            return int(float(str(value).strip()))
        except (TypeError, ValueError):
            return None


def is_empty_cell(value: Optional[str]) -> bool:
    text = str(value or "").strip()
    return not text or text.lower() == EMPTY_CELL


def parse_timetable(content: str) -> list[TimetableRow]:
    if not content.strip():
        return []
    df = pd.read_csv(
        io.StringIO(content),
        header=None,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
    ).fillna("")
    if df.shape[1] != TIMETABLE_FIELD_COUNT:
        raise CsvParseError(
            f"Timetable has {df.shape[1]} columns, expected {TIMETABLE_FIELD_COUNT}"
        )
    rows: list[TimetableRow] = []
    for values in df.iloc[1:].itertuples(index=False, name=None):
        period = parse_period(values[1])
        if period is None:
            continue
        rows.append(
            TimetableRow(
                day=normalize_day(values[0]),
                period=period,
                cells=tuple(str(value) for value in values[2:]),
            )
        )
    return rows


class ScheduleManager:
    def __init__(self, timetable_path: str | None = None):
        self.timetable_path = timetable_path
        self._rows: list[TimetableRow] = []
        self._schedule: dict[str, dict[int, list[str]]] = {}
        self._teacher_classes: dict[str, list[ScheduleEntry]] = {}
        if timetable_path:
            self.reload_data()

    def reload_data(self, timetable_path: str | None = None) -> None:
        """Reload the timetable from disk, repairing it once if it fails to parse."""
        if timetable_path:
            self.timetable_path = timetable_path
        if not self.timetable_path:
            raise ValueError("No timetable path configured")
        rows = load_with_repair(
            self.timetable_path, parse_timetable, TIMETABLE_FIELD_COUNT, label="Timetable"
        )
        self.build(rows)
        logger.info(
            "Loaded %d timetable rows for %d teachers from %s",
            len(rows),
            len(self._teacher_classes),
            self.timetable_path,
        )

    def build(self, rows: list[TimetableRow]) -> None:
        schedule: dict[str, dict[int, list[str]]] = {}
        teacher_classes: dict[str, list[ScheduleEntry]] = {}
        for row in rows:
            teachers: list[str] = []
            for index, cell in enumerate(row.cells):
                if is_empty_cell(cell):
                    continue
                teacher = normalize_name(cell)
                teachers.append(teacher)
                if index < len(CLASS_COLUMNS):
                    teacher_classes.setdefault(teacher, []).append(
                        ScheduleEntry(day=row.day, period=row.period, class_name=CLASS_COLUMNS[index])
                    )
            schedule.setdefault(row.day, {})[row.period] = teachers
        self._rows = list(rows)
        self._schedule = schedule
        self._teacher_classes = teacher_classes

    @property
    def teacher_names(self) -> list[str]:
        return list(self._teacher_classes)

    def teachers_for(self, day: str, period: int) -> list[str]:
        return list(self._schedule.get(normalize_day(day), {}).get(period, []))

    def classes_for_teacher(self, name: str) -> list[ScheduleEntry]:
        return list(self._teacher_classes.get(normalize_name(name), []))

    def is_teaching(self, name: str, day: str, period: int) -> bool:
        return normalize_name(name) in self.teachers_for(day, period)

    def find_in_timetable(self, name: str, day: str) -> list[ScheduleEntry]:
        fragment = normalize_name(name)[:SCAN_PREFIX_LENGTH]
        if not fragment:
            return []
        target_day = normalize_day(day)
        found: list[ScheduleEntry] = []
        for row in self._rows:
            if row.day != target_day:
                continue
            for index, cell in enumerate(row.cells[: len(CLASS_COLUMNS)]):
                if is_empty_cell(cell):
                    continue
                if fragment in normalize_name(cell):
                    found.append(
                        ScheduleEntry(day=row.day, period=row.period, class_name=CLASS_COLUMNS[index])
                    )
        return found
