from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from db import Base


class SubstituteAssignmentRecord(Base):
    __tablename__ = "substitute_assignments"

    id = Column(Integer, primary_key=True)
    original_teacher = Column(String, index=True, nullable=False)
    period = Column(Integer, nullable=False)
    class_name = Column(String, nullable=False)
    substitute = Column(String, index=True, nullable=False)
    substitute_phone = Column(String)
    assigned_at = Column(DateTime)

    __table_args__ = (
        UniqueConstraint("period", "substitute", name="uq_substitute_period"),
    )


class AssignmentSetting(Base):
    __tablename__ = "assignment_settings"

    key = Column(String, primary_key=True)
    value = Column(Integer, nullable=False)
