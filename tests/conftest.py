"""Pytest configuration and shared fixtures."""

import json

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db import Base
from schedule_service import CLASS_COLUMNS

MONDAY = "2024-09-02"
TUESDAY = "2024-09-03"
TIMETABLE_HEADER = "Day,Period," + ",".join(CLASS_COLUMNS)


def timetable_row(day, period, *teachers):
    cells = list(teachers) + ["empty"] * (len(CLASS_COLUMNS) - len(teachers))
    return ",".join([day, str(period), *cells])


def timetable_text(*rows):
    return "\n".join([TIMETABLE_HEADER, *rows]) + "\n"


@pytest.fixture
def make_data_dir(tmp_path):
    """Write the input files for one engine and return the directory path."""

    def _make(rows=(), roster="", teachers=None, schedules=None, settings=None):
        data_dir = tmp_path / "data"
        data_dir.mkdir(exist_ok=True)
        (data_dir / "timetable_file.csv").write_text(timetable_text(*rows))
        (data_dir / "substitute_file.csv").write_text(roster)
        if teachers is not None:
            (data_dir / "total_teacher.json").write_text(json.dumps(teachers))
        if schedules is not None:
            (data_dir / "teacher_schedules.json").write_text(json.dumps(schedules))
        if settings is not None:
            (data_dir / "assignment_settings.json").write_text(json.dumps(settings))
        return str(data_dir)

    return _make


@pytest.fixture
def session_factory():
    """In-memory SQLite session factory shared across sessions."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    yield factory
    engine.dispose()
