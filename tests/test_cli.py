import json

from cli import main
from tests.conftest import MONDAY, timetable_row


def test_assign_prints_assignments_and_verification(make_data_dir, capsys):
    data_dir = make_data_dir(rows=[timetable_row("Monday", 1, "Smith")], roster="Doe,555-1111\n")

    exit_code = main(["--data-dir", data_dir, "assign", "--date", MONDAY, "--absent", "Smith", "--verify"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["assignments"][0]["substitute"] == "Doe"
    assert payload["warnings"] == []
    assert "logs" not in payload
    assert [report["status"] for report in payload["verification"]] == ["PASS", "PASS", "PASS"]


def test_assign_with_logs(make_data_dir, capsys):
    data_dir = make_data_dir(rows=[timetable_row("Monday", 1, "Smith")], roster="")

    main(["--data-dir", data_dir, "assign", "--date", MONDAY, "--absent", "Smith", "--include-logs"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["logs"][0]["action"] == "ProcessStart"
    assert payload["warnings"] == ["No available substitutes for Smith, period 1"]


def test_show_reads_persisted_assignments(make_data_dir, capsys):
    data_dir = make_data_dir(rows=[timetable_row("Monday", 1, "Smith")], roster="Doe,555-1111\n")
    main(["--data-dir", data_dir, "assign", "--date", MONDAY, "--absent", "Smith"])
    capsys.readouterr()

    assert main(["--data-dir", data_dir, "show"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["assignments"][0]["originalTeacher"] == "Smith"


def test_missing_input_returns_error_code(tmp_path, capsys):
    exit_code = main(["--data-dir", str(tmp_path), "assign", "--date", MONDAY, "--absent", "Smith"])

    assert exit_code == 1
    assert "Timetable file not found" in capsys.readouterr().err


def test_settings_update_persists(tmp_path, capsys):
    assert main(["--data-dir", str(tmp_path), "settings", "--max-daily-workload", "4"]) == 0
    assert json.loads(capsys.readouterr().out)["max_daily_workload"] == 4

    main(["--data-dir", str(tmp_path), "settings"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["max_daily_workload"] == 4
    assert payload["max_regular_assignments"] == 2
    assert json.loads((tmp_path / "assignment_settings.json").read_text())["max_daily_workload"] == 4
