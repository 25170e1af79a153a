from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

DEFAULT_GRADE_LEVEL = 10


@dataclass
class Teacher:
    name: str
    phone: str = ""
    grade_level: int = DEFAULT_GRADE_LEVEL
    is_regular: bool = True
    variations: list[str] = field(default_factory=list)
    id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "gradeLevel": self.grade_level,
            "isRegular": self.is_regular,
            "variations": list(self.variations),
        }


@dataclass(frozen=True)
class TimetableRow:
    day: str
    period: int
    cells: tuple[str, ...]


@dataclass(frozen=True)
class RosterEntry:
    name: str
    phone: str


@dataclass
class ScheduleEntry:
    day: str
    period: int
    class_name: str


@dataclass
class Assignment:
    day: str
    period: int
    class_name: str
    original_teacher: str
    substitute: str = ""


@dataclass
class SubstituteAssignment:
    original_teacher: str
    period: int
    class_name: str
    substitute: str
    substitute_phone: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalTeacher": self.original_teacher or "",
            "period": self.period or 0,
            "className": self.class_name or "",
            "substitute": self.substitute or "",
            "substitutePhone": self.substitute_phone or "",
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SubstituteAssignment":
        return cls(
            original_teacher=str(payload.get("originalTeacher") or ""),
            period=int(payload.get("period") or 0),
            class_name=str(payload.get("className") or ""),
            substitute=str(payload.get("substitute") or ""),
            substitute_phone=str(payload.get("substitutePhone") or ""),
        )


@dataclass
class ProcessLog:
    timestamp: str
    action: str
    details: str
    status: str = "info"
    data: Optional[dict[str, Any]] = None
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "timestamp": self.timestamp,
            "action": self.action,
            "details": self.details,
            "status": self.status,
            "durationMs": self.duration_ms,
        }
        if self.data is not None:
            entry["data"] = self.data
        return entry


@dataclass
class VerificationReport:
    check: str
    status: str
    details: str

    @property
    def passed(self) -> bool:
        return self.status == "PASS"

    def to_dict(self) -> dict[str, str]:
        return {"check": self.check, "status": self.status, "details": self.details}
