import json

import pytest

from csv_repair import CsvParseError
from records import RosterEntry, Teacher
from teacher_directory import (
    TeacherDirectory,
    load_declared_schedules,
    load_roster,
    load_teachers,
    parse_roster,
    teacher_from_dict,
)


def test_parse_roster_skips_blank_names():
    entries = parse_roster("Roe,555-2222,notes\nDoe,555-1111\n,555-0000\n\n")
    assert entries == [RosterEntry("Roe", "555-2222"), RosterEntry("Doe", "555-1111")]


def test_parse_roster_name_only_rows():
    assert parse_roster("Doe\nRoe\n") == [RosterEntry("Doe", ""), RosterEntry("Roe", "")]


def test_parse_roster_rejects_extra_columns():
    with pytest.raises(CsvParseError):
        parse_roster("Doe,555-1111,a,b\n")


def test_load_roster_repairs_extra_columns(tmp_path):
    path = tmp_path / "substitute_file.csv"
    path.write_text("Doe,555-1111,a,b\n")
    assert load_roster(str(path)) == [RosterEntry("Doe", "555-1111")]
    assert (tmp_path / "substitute_file.csv.bak").exists()


def test_load_roster_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_roster(str(tmp_path / "nope.csv"))


def test_teacher_defaults():
    teacher = teacher_from_dict({"name": " Smith ", "phone": "555-9999"})
    assert teacher.name == "Smith"
    assert teacher.grade_level == 10
    assert teacher.is_regular is True
    assert teacher.variations == []
    assert teacher.id == "555-9999"

    anonymous = teacher_from_dict({"name": "Jones", "gradeLevel": 0, "isRegular": False})
    assert anonymous.grade_level == 10
    assert anonymous.is_regular is False
    assert anonymous.id.startswith("teacher-")


def test_load_teachers(tmp_path):
    path = tmp_path / "total_teacher.json"
    path.write_text(json.dumps([{"name": "Smith", "gradeLevel": 8}, {"phone": "no name"}]))
    teachers = load_teachers(str(path))
    assert [teacher.name for teacher in teachers] == ["Smith"]
    assert teachers[0].grade_level == 8

    assert load_teachers(str(tmp_path / "missing.json")) == []

    path.write_text("{broken")
    with pytest.raises(ValueError, match="Error loading teachers"):
        load_teachers(str(path))


def test_load_declared_schedules_normalizes_keys(tmp_path):
    path = tmp_path / "teacher_schedules.json"
    path.write_text(json.dumps({"  Doe ": [{"day": "Monday", "period": 1, "className": "9A"}]}))
    assert load_declared_schedules(str(path)) == {
        "doe": [{"day": "Monday", "period": 1, "className": "9A"}]
    }
    assert load_declared_schedules(str(tmp_path / "missing.json")) == {}


def test_variations_resolve_to_the_same_teacher():
    teacher = Teacher(name="Abdul Rahman", variations=["A. Rahman", "Rahman"])
    directory = TeacherDirectory([teacher])
    assert directory.find("a. rahman") is teacher
    assert directory.find("RAHMAN") is teacher
    assert directory.find("Abdul  Rahman") is teacher
    assert directory.find("Unknown") is None


def test_roster_entries_join_the_directory():
    smith = Teacher(name="Smith")
    directory = TeacherDirectory([smith], [RosterEntry("Doe", "555-1111"), RosterEntry("smith", "555-2222")])

    doe = directory.find("doe")
    assert doe.phone == "555-1111"
    assert doe.is_regular is False
    assert smith.phone == "555-2222"
    assert len(directory) == 2
    assert directory.roster_names == {"doe", "smith"}
    assert directory.is_roster_substitute("Doe")


def test_substitute_pool_requires_a_phone():
    directory = TeacherDirectory(
        [Teacher(name="Smith"), Teacher(name="Lee", phone="555-3333")],
        [RosterEntry("Doe", "")],
    )
    assert [teacher.name for teacher in directory.substitute_pool()] == ["Lee"]
