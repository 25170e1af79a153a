from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from assignment_settings import DATA_DIR, AssignmentSettingsManager
from assignment_store import AssignmentStore
from period_resolver import PeriodResolver, ResolvedPeriod
from process_log import ProcessLogger
from records import Assignment, ProcessLog, RosterEntry, SubstituteAssignment, Teacher, VerificationReport
from schedule_service import ScheduleManager, day_from_date, normalize_day, normalize_name, parse_period
from teacher_directory import (
    TeacherDirectory,
    load_declared_schedules,
    load_roster,
    load_teachers,
)
from verification import RunState, verify_run

TIMETABLE_FILENAME = "timetable_file.csv"
SUBSTITUTES_FILENAME = "substitute_file.csv"
TEACHERS_FILENAME = "total_teacher.json"
SCHEDULES_FILENAME = "teacher_schedules.json"
SETTINGS_FILENAME = "assignment_settings.json"
OVERRIDES_FILENAME = "period_overrides.json"

NON_DIGITS = re.compile(r"\D")

logger = logging.getLogger(__name__)


@dataclass
class AssignmentResult:
    assignments: list[SubstituteAssignment] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    logs: list[ProcessLog] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "assignments": [assignment.to_dict() for assignment in self.assignments],
            "warnings": list(self.warnings),
            "logs": [log.to_dict() for log in self.logs],
        }


def _target_grade(class_name: str) -> int:
    digits = NON_DIGITS.sub("", class_name or "")
    return int(digits) if digits else 0


class SubstituteAssignmentManager:
    def __init__(
        self,
        data_dir: Optional[str] = None,
        timetable_path: Optional[str] = None,
        substitutes_path: Optional[str] = None,
        teachers_path: Optional[str] = None,
        schedules_path: Optional[str] = None,
        settings: Optional[AssignmentSettingsManager] = None,
        store: Optional[AssignmentStore] = None,
        session_factory: Callable | None = None,
    ):
        self.data_dir = data_dir or DATA_DIR
        self.timetable_path = timetable_path or os.path.join(self.data_dir, TIMETABLE_FILENAME)
        self.substitutes_path = substitutes_path or os.path.join(self.data_dir, SUBSTITUTES_FILENAME)
        self.teachers_path = teachers_path or os.path.join(self.data_dir, TEACHERS_FILENAME)
        self.schedules_path = schedules_path or os.path.join(self.data_dir, SCHEDULES_FILENAME)
        self.settings = settings or AssignmentSettingsManager(
            storage_path=os.path.join(self.data_dir, SETTINGS_FILENAME),
            overrides_path=os.path.join(self.data_dir, OVERRIDES_FILENAME),
            session_factory=session_factory,
        )
        self.store = store or AssignmentStore(self.data_dir, session_factory=session_factory)
        self.schedule_manager = ScheduleManager()
        self.roster: list[RosterEntry] = []
        self.directory = TeacherDirectory()
        self.run_state = RunState()
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def load_data(
        self,
        timetable_path: Optional[str] = None,
        substitutes_path: Optional[str] = None,
    ) -> None:
        if timetable_path:
            self.timetable_path = timetable_path
        if substitutes_path:
            self.substitutes_path = substitutes_path
        logger.info(
            "Loading data from timetable=%s substitutes=%s",
            self.timetable_path,
            self.substitutes_path,
        )
        schedule_manager = ScheduleManager()
        schedule_manager.reload_data(self.timetable_path)
        roster = load_roster(self.substitutes_path)
        self.schedule_manager = schedule_manager
        self.roster = roster
        self.directory = TeacherDirectory(roster=roster)
        self._loaded = True
        logger.info("Loaded %d substitutes", len(roster))

    def auto_assign_substitutes(
        self,
        date: str,
        absent_teacher_names: Optional[Iterable[str]] = None,
    ) -> AssignmentResult:
        if not self._loaded:
            self.load_data()
        names = [str(name) for name in (absent_teacher_names or [])]
        log = ProcessLogger()
        assignments: list[SubstituteAssignment] = []
        warnings: list[str] = []
        self.run_state = RunState()

        def warn(action: str, message: str) -> None:
            warnings.append(message)
            log.add(action, message, "warning")

        try:
            log.add("ProcessStart", "Starting auto-assignment process", "info", {"date": date, "teachers": names})
            day = day_from_date(date)
            log.add("DayCalculation", f"Calculated day: {day}")

            teachers = load_teachers(self.teachers_path, self.settings.default_grade_level)
            schedules = load_declared_schedules(self.schedules_path)
            directory = TeacherDirectory(teachers, self.roster)
            self.directory = directory
            resolver = PeriodResolver(
                self.schedule_manager, directory, schedules, self.settings.period_overrides
            )
            pool = directory.substitute_pool()
            absent_keys = self._absent_keys(names, directory)
            self.run_state.substitute_names = directory.roster_names | {
                normalize_name(teacher.name) for teacher in directory.teachers if not teacher.is_regular
            }
            workload: dict[str, int] = {}
            assigned_periods: dict[str, set[int]] = {}
            log.add(
                "DataLoading",
                "Loaded required data",
                "info",
                {"teachersCount": len(directory), "substitutesCount": len(pool)},
            )

            for teacher_name in names:
                log.add("TeacherProcessing", f"Processing teacher: {teacher_name}")
                periods = resolver.resolve(teacher_name, day, log.add)
                if not periods:
                    warn("NoPeriodsFound", f"No periods found for {teacher_name} on {day}")
                    continue
                log.add(
                    "PeriodsFound",
                    f"Found {len(periods)} periods for {teacher_name}",
                    "info",
                    {"periods": [period.to_dict() for period in periods]},
                )
                for resolved in periods:
                    available = [
                        substitute
                        for substitute in pool
                        if self._is_eligible(
                            substitute, resolved.period, day, schedules, workload, assigned_periods, absent_keys
                        )
                    ]
                    if not available:
                        warn(
                            "NoSubstituteAvailable",
                            f"No available substitutes for {teacher_name}, period {resolved.period}",
                        )
                        continue
                    selected = self.select_best_candidate(available, workload)
                    assignment = self._record(
                        teacher_name, day, resolved, selected, workload, assigned_periods
                    )
                    assignments.append(assignment)
                    log.add(
                        "AssignmentMade",
                        f"Assigned {selected.name} to {teacher_name}'s period {resolved.period}",
                        "info",
                        {
                            "period": resolved.period,
                            "className": resolved.class_name,
                            "substituteWorkload": workload[normalize_name(selected.name)],
                        },
                    )

            if assignments:
                self.store.save_assignments(assignments)
                log.add("AssignmentsSaved", f"Saved {len(assignments)} assignments")
            log.add(
                "ProcessComplete",
                "Auto-assignment process completed",
                "info",
                {"assignmentsCount": len(assignments), "warningsCount": len(warnings)},
            )
            self.store.save_logs(log.entries, date)
            self.store.save_warnings(warnings, date)
            return AssignmentResult(assignments, warnings, log.entries)
        except Exception as exc:
            error_message = f"Error in auto-assign process: {exc}"
            logger.exception("Auto-assignment failed for %s", date)
            log.add("ProcessError", error_message, "error")
            self.store.save_logs(log.entries, date)
            self.store.save_warnings([error_message], date)
            return AssignmentResult([], [error_message], log.entries)

    def _absent_keys(self, names: Iterable[str], directory: TeacherDirectory) -> set[str]:
        keys: set[str] = set()
        for name in names:
            keys.add(normalize_name(name))
            teacher = directory.find(name)
            if teacher:
                keys.add(normalize_name(teacher.name))
        return keys

    def _is_eligible(
        self,
        substitute: Teacher,
        period: int,
        day: str,
        schedules: dict[str, list[dict[str, Any]]],
        workload: dict[str, int],
        assigned_periods: dict[str, set[int]],
        absent_keys: set[str],
    ) -> bool:
        key = normalize_name(substitute.name)
        if key in absent_keys:
            return False
        if period in assigned_periods.get(key, set()):
            return False
        if workload.get(key, 0) >= self.settings.max_daily_workload:
            return False
        return self.check_availability(substitute, period, day, schedules)

    def _record(
        self,
        teacher_name: str,
        day: str,
        resolved: ResolvedPeriod,
        selected: Teacher,
        workload: dict[str, int],
        assigned_periods: dict[str, set[int]],
    ) -> SubstituteAssignment:
        key = normalize_name(selected.name)
        workload[key] = workload.get(key, 0) + 1
        assigned_periods.setdefault(key, set()).add(resolved.period)
        self.run_state.record(
            Assignment(
                day=day,
                period=resolved.period,
                class_name=resolved.class_name,
                original_teacher=teacher_name,
                substitute=selected.name,
            )
        )
        return SubstituteAssignment(
            original_teacher=teacher_name,
            period=resolved.period,
            class_name=resolved.class_name,
            substitute=selected.name,
            substitute_phone=selected.phone,
        )

    @staticmethod
    def check_availability(
        substitute: Teacher,
        period: int,
        day: str,
        schedules: dict[str, list[dict[str, Any]]],
    ) -> bool:
        entries = schedules.get(normalize_name(substitute.name)) or []
        target_day = normalize_day(day)
        return not any(
            normalize_day(entry.get("day")) == target_day and parse_period(entry.get("period")) == period
            for entry in entries
        )

    @staticmethod
    def select_best_candidate(candidates: list[Teacher], workload: dict[str, int]) -> Teacher:
        return sorted(candidates, key=lambda teacher: workload.get(normalize_name(teacher.name), 0))[0]

    def find_suitable_substitutes(
        self,
        class_name: str,
        period: int,
        day: str,
        schedules: dict[str, list[dict[str, Any]]],
        workload: dict[str, int],
        assigned_periods: dict[str, set[int]],
        substitutes: Optional[list[Teacher]] = None,
    ) -> tuple[list[Teacher], list[str]]:
        """Grade-aware candidate filter.

        Substitutes at or above the class's grade are preferred; for grades 8
        and below, grade 9+ substitutes are the fallback. Not used by
        ``auto_assign_substitutes``.
        """
        target_grade = _target_grade(class_name)
        preferred: list[Teacher] = []
        fallback: list[Teacher] = []
        warnings: list[str] = []
        pool = substitutes if substitutes is not None else self.directory.substitute_pool()
        for substitute in pool:
            key = normalize_name(substitute.name)
            if not self.check_availability(substitute, period, day, schedules):
                continue
            if period in assigned_periods.get(key, set()):
                continue
            if workload.get(key, 0) >= self.settings.max_daily_workload:
                continue
            grade_level = substitute.grade_level or self.settings.default_grade_level
            if grade_level >= target_grade:
                preferred.append(substitute)
            elif target_grade <= 8 and grade_level >= 9:
                fallback.append(substitute)
                warnings.append(f"Using higher-grade substitute {substitute.name} for {class_name}")
        return (preferred if preferred else fallback), warnings

    def validate_assignments(
        self,
        assignments: Iterable[SubstituteAssignment],
        workload: dict[str, int],
        max_workload: Optional[int] = None,
    ) -> tuple[bool, list[str]]:
        limit = max_workload or self.settings.max_daily_workload
        warnings: list[str] = []
        for name, count in workload.items():
            if count <= limit:
                continue
            teacher = self.directory.find(name)
            if teacher:
                warnings.append(f"{teacher.name} exceeded maximum workload ({count}/{limit})")
        for assignment in assignments:
            teacher = self.directory.find(assignment.substitute)
            if not teacher:
                continue
            grade_level = teacher.grade_level or self.settings.default_grade_level
            if _target_grade(assignment.class_name) <= 8 and grade_level >= 9:
                warnings.append(
                    f"Grade conflict: {teacher.name} (grade {grade_level}) assigned to {assignment.class_name}"
                )
        return not warnings, warnings

    def resolve_teacher_names(self, names: Iterable[str]) -> tuple[list[Teacher], list[str]]:
        resolved: list[Teacher] = []
        warnings: list[str] = []
        for name in names:
            teacher = self.directory.find(name)
            if not teacher:
                warnings.append(f"Unknown teacher: {name}")
                continue
            resolved.append(teacher)
        return resolved, warnings

    def get_substitute_assignments(self) -> dict[str, Any]:
        if self.store.uses_database:
            return {"assignments": [row.to_dict() for row in self.store.load_assignments()]}
        persisted = self.store.read_assignments_file()
        if persisted is not None:
            return persisted
        result: dict[str, Any] = {}
        for assignment in self.run_state.assignments:
            teacher = self.directory.find(assignment.substitute)
            result[f"{assignment.period}-{assignment.class_name}"] = {
                "originalTeacher": assignment.original_teacher,
                "substitute": assignment.substitute,
                "substitutePhone": teacher.phone if teacher else "",
                "period": assignment.period,
                "className": assignment.class_name,
                "day": assignment.day,
            }
        return result

    def clear_assignments(self) -> None:
        self.run_state.clear()

    def verify_assignments(self) -> list[VerificationReport]:
        return verify_run(
            self.run_state,
            self.schedule_manager,
            self.settings.max_substitute_assignments,
            self.settings.max_regular_assignments,
        )
