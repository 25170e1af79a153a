import json
import os

import pytest

from records import SubstituteAssignment, Teacher
from substitute_assignment import SubstituteAssignmentManager
from tests.conftest import MONDAY, TUESDAY, timetable_row


def _run(data_dir, absent, date=MONDAY, **kwargs):
    manager = SubstituteAssignmentManager(data_dir=data_dir, **kwargs)
    return manager, manager.auto_assign_substitutes(date, absent)


def _assert_no_double_booking(assignments):
    slots = [(assignment.period, assignment.substitute) for assignment in assignments]
    assert len(slots) == len(set(slots))


def test_roster_substitute_covers_absent_teacher(make_data_dir):
    data_dir = make_data_dir(
        rows=[timetable_row("Monday", 1, "Smith", "Jones")],
        roster="Doe,555-1111\n",
    )
    _, result = _run(data_dir, ["Smith"])

    assert result.assignments == [
        SubstituteAssignment(
            original_teacher="Smith",
            period=1,
            class_name="10A",
            substitute="Doe",
            substitute_phone="555-1111",
        )
    ]
    assert result.warnings == []


def test_empty_roster_produces_one_warning(make_data_dir):
    data_dir = make_data_dir(rows=[timetable_row("Monday", 1, "Smith", "Jones")], roster="")
    _, result = _run(data_dir, ["Smith"])

    assert result.assignments == []
    assert result.warnings == ["No available substitutes for Smith, period 1"]


def test_unknown_teacher_warns_about_missing_periods(make_data_dir):
    data_dir = make_data_dir(rows=[timetable_row("Monday", 1, "Smith")], roster="Doe,555-1111\n")
    _, result = _run(data_dir, ["Nobody"])

    assert result.assignments == []
    assert result.warnings == ["No periods found for Nobody on monday"]


def test_single_substitute_is_never_double_booked(make_data_dir):
    data_dir = make_data_dir(
        rows=[timetable_row("Monday", 1, "Smith", "Jones")],
        roster="Doe,555-1111\n",
    )
    _, result = _run(data_dir, ["Smith", "Jones"])

    assert [(a.original_teacher, a.substitute) for a in result.assignments] == [("Smith", "Doe")]
    assert result.warnings == ["No available substitutes for Jones, period 1"]
    _assert_no_double_booking(result.assignments)


def test_least_loaded_substitute_is_selected(make_data_dir):
    data_dir = make_data_dir(
        rows=[
            timetable_row("Monday", 1, "Smith"),
            timetable_row("Monday", 2, "Smith"),
            timetable_row("Monday", 3, "Smith"),
        ],
        roster="Doe,555-1111\nRoe,555-2222\n",
    )
    _, result = _run(data_dir, ["Smith"])

    assert [(a.period, a.substitute) for a in result.assignments] == [(1, "Doe"), (2, "Roe"), (3, "Doe")]
    assert result.warnings == []


def test_daily_workload_cap(make_data_dir):
    data_dir = make_data_dir(
        rows=[timetable_row("Monday", 1, "Smith"), timetable_row("Monday", 2, "Smith")],
        roster="Doe,555-1111\n",
        settings={"max_daily_workload": 1},
    )
    _, result = _run(data_dir, ["Smith"])

    assert [a.period for a in result.assignments] == [1]
    assert result.warnings == ["No available substitutes for Smith, period 2"]


def test_declared_schedule_blocks_busy_substitute(make_data_dir):
    data_dir = make_data_dir(
        rows=[timetable_row("Monday", 1, "Smith")],
        roster="Doe,555-1111\nRoe,555-2222\n",
        schedules={"Doe": [{"day": "Monday", "period": 1, "className": "9A"}]},
    )
    _, result = _run(data_dir, ["Smith"])

    assert [a.substitute for a in result.assignments] == ["Roe"]


def test_absent_teacher_is_not_a_candidate(make_data_dir):
    data_dir = make_data_dir(
        rows=[timetable_row("Monday", 1, "Smith", "Jones")],
        roster="Jones,555-3333\n",
    )
    _, result = _run(data_dir, ["Smith", "Jones"])

    assert result.assignments == []
    assert result.warnings == [
        "No available substitutes for Smith, period 1",
        "No available substitutes for Jones, period 1",
    ]


def test_teacher_list_with_phone_joins_the_pool(make_data_dir):
    data_dir = make_data_dir(
        rows=[timetable_row("Monday", 1, "Smith")],
        roster="",
        teachers=[{"name": "Lee", "phone": "555-4444"}, {"name": "Smith"}],
    )
    _, result = _run(data_dir, ["Smith"])

    assert [(a.substitute, a.substitute_phone) for a in result.assignments] == [("Lee", "555-4444")]


def test_run_persists_assignments_logs_and_warnings(make_data_dir):
    data_dir = make_data_dir(rows=[timetable_row("Monday", 1, "Smith")], roster="Doe,555-1111\n")
    _, result = _run(data_dir, ["Smith", "Nobody"])

    with open(os.path.join(data_dir, "assigned_teacher.json")) as handle:
        assert json.load(handle) == {"assignments": [result.assignments[0].to_dict()]}
    with open(os.path.join(data_dir, "substitute_warnings.json")) as handle:
        assert json.load(handle) == {MONDAY: ["No periods found for Nobody on monday"]}
    with open(os.path.join(data_dir, "substitute_logs.json")) as handle:
        logs = json.load(handle)[MONDAY]

    actions = [entry["action"] for entry in logs]
    assert actions[0] == "ProcessStart"
    assert actions[-1] == "ProcessComplete"
    assert "AssignmentMade" in actions
    assert "AssignmentsSaved" in actions
    durations = [entry["durationMs"] for entry in logs]
    assert durations == sorted(durations)


def test_invalid_date_returns_error_warning(make_data_dir):
    data_dir = make_data_dir(rows=[timetable_row("Monday", 1, "Smith")], roster="Doe,555-1111\n")
    _, result = _run(data_dir, ["Smith"], date="not-a-date")

    assert result.assignments == []
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("Error in auto-assign process: ")
    assert result.logs[-1].action == "ProcessError"
    assert result.logs[-1].status == "error"
    with open(os.path.join(data_dir, "substitute_warnings.json")) as handle:
        assert json.load(handle) == {"not-a-date": result.warnings}


def test_corrupt_teacher_list_returns_error_warning(make_data_dir):
    data_dir = make_data_dir(rows=[timetable_row("Monday", 1, "Smith")], roster="Doe,555-1111\n")
    with open(os.path.join(data_dir, "total_teacher.json"), "w") as handle:
        handle.write("{oops")
    _, result = _run(data_dir, ["Smith"])

    assert result.assignments == []
    assert "Error loading teachers" in result.warnings[0]


def test_missing_timetable_raises(tmp_path):
    manager = SubstituteAssignmentManager(data_dir=str(tmp_path))
    with pytest.raises(FileNotFoundError) as excinfo:
        manager.auto_assign_substitutes(MONDAY, ["Smith"])
    assert "timetable_file.csv" in str(excinfo.value)


def test_repaired_timetable_is_used(make_data_dir):
    data_dir = make_data_dir(rows=[timetable_row("Monday", 1, '"Smith')], roster="Doe,555-1111\n")
    _, result = _run(data_dir, ["Smith"])

    assert [(a.period, a.class_name, a.substitute) for a in result.assignments] == [(1, "10A", "Doe")]
    assert os.path.exists(os.path.join(data_dir, "timetable_file.csv.bak"))


def test_database_store(make_data_dir, session_factory):
    data_dir = make_data_dir(rows=[timetable_row("Monday", 1, "Smith")], roster="Doe,555-1111\n")
    manager, result = _run(data_dir, ["Smith"], session_factory=session_factory)

    assert manager.get_substitute_assignments() == {
        "assignments": [assignment.to_dict() for assignment in result.assignments]
    }
    assert not os.path.exists(os.path.join(data_dir, "assigned_teacher.json"))


def test_get_substitute_assignments_falls_back_to_run_state(make_data_dir):
    data_dir = make_data_dir(rows=[timetable_row("Monday", 1, "Smith")], roster="Doe,555-1111\n")
    manager, _ = _run(data_dir, ["Smith"])
    os.remove(os.path.join(data_dir, "assigned_teacher.json"))

    assert manager.get_substitute_assignments() == {
        "1-10A": {
            "originalTeacher": "Smith",
            "substitute": "Doe",
            "substitutePhone": "555-1111",
            "period": 1,
            "className": "10A",
            "day": "monday",
        }
    }
    manager.clear_assignments()
    assert manager.get_substitute_assignments() == {}


def test_select_best_candidate_keeps_order_on_ties():
    doe, roe, lee = Teacher("Doe"), Teacher("Roe"), Teacher("Lee")
    assert SubstituteAssignmentManager.select_best_candidate([doe, roe, lee], {}) is doe
    assert SubstituteAssignmentManager.select_best_candidate([doe, roe, lee], {"doe": 1}) is roe


def test_check_availability():
    doe = Teacher("Doe")
    schedules = {"doe": [{"day": "Mon", "period": "2", "className": "9A"}]}
    assert not SubstituteAssignmentManager.check_availability(doe, 2, "monday", schedules)
    assert SubstituteAssignmentManager.check_availability(doe, 3, "monday", schedules)
    assert SubstituteAssignmentManager.check_availability(Teacher("Roe"), 2, "monday", schedules)


def test_find_suitable_substitutes_prefers_matching_grade(tmp_path):
    manager = SubstituteAssignmentManager(data_dir=str(tmp_path))
    junior = Teacher("Junior", phone="1", grade_level=7)
    senior = Teacher("Senior", phone="2", grade_level=10)

    preferred, warnings = manager.find_suitable_substitutes("7B", 1, "monday", {}, {}, {}, [junior, senior])
    assert preferred == [junior, senior]
    assert warnings == []

    preferred, warnings = manager.find_suitable_substitutes("9A", 1, "monday", {}, {}, {}, [junior, senior])
    assert preferred == [senior]


def test_validate_assignments_and_name_resolution(make_data_dir):
    data_dir = make_data_dir(
        rows=[timetable_row("Monday", 1, "Smith")],
        roster="Doe,555-1111\n",
        teachers=[{"name": "Abdul Rahman", "variations": ["A. Rahman"]}],
    )
    manager, result = _run(data_dir, ["Smith"])

    valid, warnings = manager.validate_assignments(result.assignments, {"doe": 1})
    assert valid
    assert warnings == []

    valid, warnings = manager.validate_assignments(result.assignments, {"doe": 9})
    assert not valid
    assert warnings == ["Doe exceeded maximum workload (9/6)"]

    resolved, warnings = manager.resolve_teacher_names(["A. Rahman", "Ghost"])
    assert [teacher.name for teacher in resolved] == ["Abdul Rahman"]
    assert warnings == ["Unknown teacher: Ghost"]


def test_override_table_with_abbreviated_day(make_data_dir):
    data_dir = make_data_dir(rows=[timetable_row("Tuesday", 1, "Smith")], roster="Doe,555-1111\n")
    with open(os.path.join(data_dir, "period_overrides.json"), "w") as handle:
        json.dump([{"names": ["khan"], "day": "Tue", "periods": [{"period": 4, "className": "9A"}]}], handle)
    _, result = _run(data_dir, ["Khan"], date=TUESDAY)

    assert [(a.period, a.class_name, a.substitute) for a in result.assignments] == [(4, "9A", "Doe")]
    assert result.warnings == []
