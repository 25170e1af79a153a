from __future__ import annotations

from dataclasses import dataclass, field

from records import Assignment, VerificationReport
from schedule_service import ScheduleManager, normalize_name

PASS = "PASS"
FAIL = "FAIL"


@dataclass
class RunState:
    """What the last allocation run did, keyed by normalized teacher name."""

    assignments: list[Assignment] = field(default_factory=list)
    substitute_assignments: dict[str, list[Assignment]] = field(default_factory=dict)
    workload: dict[str, int] = field(default_factory=dict)
    substitute_names: set[str] = field(default_factory=set)

    def record(self, assignment: Assignment) -> None:
        key = normalize_name(assignment.substitute)
        self.assignments.append(assignment)
        self.substitute_assignments.setdefault(key, []).append(assignment)
        self.workload[key] = self.workload.get(key, 0) + 1

    def clear(self) -> None:
        self.assignments.clear()
        self.substitute_assignments.clear()
        self.workload.clear()


def verify_substitute_limits(state: RunState, max_assignments: int = 3) -> VerificationReport:
    violations = [
        name for name, rows in state.substitute_assignments.items() if len(rows) > max_assignments
    ]
    return VerificationReport(
        check="Substitute Assignment Limits",
        status=FAIL if violations else PASS,
        details=(
            f"{len(violations)} substitutes exceeded max assignments"
            if violations
            else "All within limits"
        ),
    )


def verify_availability(state: RunState, schedule_manager: ScheduleManager) -> VerificationReport:
    conflicts = [
        assignment
        for assignment in state.assignments
        if schedule_manager.is_teaching(assignment.substitute, assignment.day, assignment.period)
    ]
    return VerificationReport(
        check="Availability Validation",
        status=FAIL if conflicts else PASS,
        details=f"{len(conflicts)} scheduling conflicts found" if conflicts else "No conflicts",
    )


def verify_workload_distribution(
    state: RunState,
    max_substitute_assignments: int = 3,
    max_regular_assignments: int = 2,
) -> VerificationReport:
    overloaded = []
    for teacher, count in state.workload.items():
        cap = (
            max_substitute_assignments
            if teacher in state.substitute_names
            else max_regular_assignments
        )
        if count > cap:
            overloaded.append(teacher)
    return VerificationReport(
        check="Workload Distribution",
        status=FAIL if overloaded else PASS,
        details=f"{len(overloaded)} teachers overloaded" if overloaded else "Fair distribution",
    )


def verify_run(
    state: RunState,
    schedule_manager: ScheduleManager,
    max_substitute_assignments: int = 3,
    max_regular_assignments: int = 2,
) -> list[VerificationReport]:
    return [
        verify_substitute_limits(state, max_substitute_assignments),
        verify_availability(state, schedule_manager),
        verify_workload_distribution(state, max_substitute_assignments, max_regular_assignments),
    ]
