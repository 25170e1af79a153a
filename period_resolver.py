from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Iterable, Optional

from assignment_settings import PeriodOverride
from schedule_service import ScheduleManager, normalize_day, normalize_name, parse_period
from teacher_directory import TeacherDirectory

logger = logging.getLogger(__name__)

LogCallback = Callable[..., Any]


class PeriodSource(str, enum.Enum):
    SPECIAL = "special"
    CLASS_MAP = "classMap"
    SCHEDULE = "schedule"
    VARIATION = "variation"
    TIMETABLE_SCAN = "timetable"


@dataclass(frozen=True)
class ResolvedPeriod:
    period: Optional[int]
    class_name: str
    source: PeriodSource
    detail: str = ""

    @property
    def key(self) -> tuple[Optional[int], str]:
        return (self.period, self.class_name)

    @property
    def is_valid(self) -> bool:
        return isinstance(self.period, int) and self.period > 0 and bool(self.class_name)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["className"] = payload.pop("class_name")
        payload["source"] = f"{self.source.value}:{self.detail}" if self.detail else self.source.value
        payload.pop("detail")
        return payload


def _as_dicts(periods: Iterable[ResolvedPeriod]) -> list[dict[str, Any]]:
    return [period.to_dict() for period in periods]


def _null_log(*_args, **_kwargs) -> None:
    return None


def deduplicate(periods: Iterable[ResolvedPeriod]) -> list[ResolvedPeriod]:
    unique: dict[tuple[Optional[int], str], ResolvedPeriod] = {}
    for candidate in periods:
        if not candidate.is_valid:
            continue
        existing = unique.get(candidate.key)
        if existing and existing.source is PeriodSource.SPECIAL:
            continue
        unique[candidate.key] = candidate
    return list(unique.values())


class PeriodResolver:
    def __init__(
        self,
        schedule_manager: ScheduleManager,
        directory: TeacherDirectory,
        declared_schedules: dict[str, list[dict[str, Any]]],
        overrides: Iterable[PeriodOverride] = (),
    ):
        self.schedule_manager = schedule_manager
        self.directory = directory
        self.declared_schedules = declared_schedules
        self.overrides = list(overrides)

    def _special_periods(self, name: str, day: str) -> list[ResolvedPeriod]:
        periods: list[ResolvedPeriod] = []
        for override in self.overrides:
            if not override.matches(name, day):
                continue
            periods.extend(
                ResolvedPeriod(period, class_name, PeriodSource.SPECIAL, "timetable")
                for period, class_name in override.periods
            )
        return periods

    def _declared_periods(
        self, name: str, day: str, source: PeriodSource, detail: str = ""
    ) -> tuple[int, list[ResolvedPeriod]]:
        entries = self.declared_schedules.get(normalize_name(name)) or []
        periods = [
            ResolvedPeriod(
                parse_period(entry.get("period")),
                str(entry.get("className") or "").strip().upper(),
                source,
                detail,
            )
            for entry in entries
            if normalize_day(entry.get("day")) == day
        ]
        return len(entries), [period for period in periods if period.is_valid]

    def resolve(
        self,
        teacher_name: str,
        day: str,
        log: LogCallback | None = None,
    ) -> list[ResolvedPeriod]:
        """Work out which (period, class) slots a teacher has on a day.

        Sources are consulted in priority order: the override table, the
        timetable's class map, the declared schedules, the declared schedules
        of every name variation and, only when all of those come up empty, a
        fuzzy scan of the raw timetable rows.
        """
        log = _null_log if log is None else log
        name = normalize_name(teacher_name)
        target_day = normalize_day(day)
        log(
            "NameProcessing",
            "Starting name normalization",
            "info",
            {"originalName": teacher_name, "normalizedName": name},
        )

        special = self._special_periods(name, target_day)
        if special:
            log(
                "SpecialCase",
                f"Found {len(special)} periods in the override table for {teacher_name}",
                "info",
                {"periods": _as_dicts(special)},
            )

        classes = self.schedule_manager.classes_for_teacher(name)
        class_map = [
            ResolvedPeriod(entry.period, entry.class_name, PeriodSource.CLASS_MAP)
            for entry in classes
            if entry.day == target_day
        ]
        log(
            "ClassMapLookup",
            "Checked teacher classes map",
            "info",
            {
                "teacherName": name,
                "entriesFound": len(classes),
                "filteredCount": len(class_map),
                "periods": _as_dicts(class_map),
            },
        )

        raw_count, declared = self._declared_periods(name, target_day, PeriodSource.SCHEDULE)
        log(
            "ScheduleAnalysis",
            "Processed schedule periods",
            "info",
            {"rawEntries": raw_count, "validCount": len(declared), "periods": _as_dicts(declared)},
        )

        variation_periods: list[ResolvedPeriod] = []
        teacher = self.directory.find(name)
        if teacher and teacher.variations:
            for variation in teacher.variations:
                _, found = self._declared_periods(
                    variation, target_day, PeriodSource.VARIATION, variation
                )
                variation_periods.extend(found)
            log(
                "VariationCheck",
                f"Checked {len(teacher.variations)} name variations",
                "info",
                {
                    "variations": list(teacher.variations),
                    "count": len(variation_periods),
                    "periods": _as_dicts(variation_periods),
                },
            )

        candidates = special + class_map + declared + variation_periods
        if not candidates:
            log("TimetableLookup", "Attempting direct timetable lookup", "info")
            scanned = [
                ResolvedPeriod(entry.period, entry.class_name, PeriodSource.TIMETABLE_SCAN)
                for entry in self.schedule_manager.find_in_timetable(name, target_day)
            ]
            if scanned:
                log(
                    "TimetableFound",
                    f"Found {len(scanned)} periods in timetable",
                    "info",
                    {"periods": _as_dicts(scanned)},
                )
            candidates.extend(scanned)

        unique = deduplicate(candidates)
        log(
            "FinalResult",
            f"Found {len(unique)} unique periods",
            "info",
            {"periods": _as_dicts(unique)},
        )
        logger.debug("Resolved %d periods for %s on %s", len(unique), name, target_day)
        return unique
