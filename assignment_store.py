from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Optional

from assignment_settings import DATA_DIR
from models import SubstituteAssignmentRecord
from records import ProcessLog, SubstituteAssignment

ASSIGNMENTS_FILENAME = "assigned_teacher.json"
LOGS_FILENAME = "substitute_logs.json"
WARNINGS_FILENAME = "substitute_warnings.json"
ARCHIVE_DIRNAME = "old_logs"
CORRUPTED_NOTICE = "Previous data was corrupted and has been reset"

logger = logging.getLogger(__name__)


class AssignmentStore:
    def __init__(
        self,
        data_dir: Optional[str] = None,
        session_factory: Callable | None = None,
    ):
        self.data_dir = data_dir or DATA_DIR
        self._session_factory = session_factory
        self.assignments_path = os.path.join(self.data_dir, ASSIGNMENTS_FILENAME)
        self.logs_path = os.path.join(self.data_dir, LOGS_FILENAME)
        self.warnings_path = os.path.join(self.data_dir, WARNINGS_FILENAME)
        self.archive_dir = os.path.join(self.data_dir, ARCHIVE_DIRNAME)

    @property
    def uses_database(self) -> bool:
        return self._session_factory is not None

    def _write_json(self, path: str, payload: Any) -> None:
        directory = os.path.dirname(path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)
        tmp_handle = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            delete=False,
            dir=directory or os.getcwd(),
        )
        tmp_path = tmp_handle.name
        try:
            with tmp_handle:
                json.dump(payload, tmp_handle, indent=2)
                tmp_handle.flush()
                os.fsync(tmp_handle.fileno())
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def save_assignments(self, assignments: Iterable[SubstituteAssignment]) -> int:
        rows = list(assignments)
        if self._session_factory:
            assigned_at = datetime.now(timezone.utc)
            with self._session_factory() as session:
                session.query(SubstituteAssignmentRecord).delete()
                session.add_all(
                    [
                        SubstituteAssignmentRecord(
                            original_teacher=row.original_teacher,
                            period=row.period,
                            class_name=row.class_name,
                            substitute=row.substitute,
                            substitute_phone=row.substitute_phone,
                            assigned_at=assigned_at,
                        )
                        for row in rows
                    ]
                )
                session.commit()
            return len(rows)
        logger.info("Saving %d assignments to %s", len(rows), self.assignments_path)
        self._write_json(self.assignments_path, {"assignments": [row.to_dict() for row in rows]})
        return len(rows)

    def read_assignments_file(self) -> Optional[dict[str, Any]]:
        if not os.path.exists(self.assignments_path):
            return None
        try:
            with open(self.assignments_path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError):
            return None
        return data if isinstance(data, dict) else None

    def load_assignments(self) -> list[SubstituteAssignment]:
        if self._session_factory:
            with self._session_factory() as session:
                records = (
                    session.query(SubstituteAssignmentRecord)
                    .order_by(SubstituteAssignmentRecord.id)
                    .all()
                )
            return [
                SubstituteAssignment(
                    original_teacher=record.original_teacher,
                    period=record.period,
                    class_name=record.class_name,
                    substitute=record.substitute,
                    substitute_phone=record.substitute_phone or "",
                )
                for record in records
            ]
        if not os.path.exists(self.assignments_path):
            self._write_json(self.assignments_path, {"assignments": [], "warnings": []})
            return []
        data = self.read_assignments_file()
        entries = data.get("assignments") if data else None
        if not isinstance(entries, list):
            logger.warning("Resetting unreadable assignments file %s", self.assignments_path)
            self._write_json(
                self.assignments_path, {"assignments": [], "warnings": [CORRUPTED_NOTICE]}
            )
            return []
        return [SubstituteAssignment.from_dict(entry) for entry in entries if isinstance(entry, dict)]

    def _backup_corrupted(self, path: str) -> Optional[str]:
        backup_path = f"{path}.bak.{int(time.time() * 1000)}"
        try:
            shutil.copyfile(path, backup_path)
        except OSError:
            logger.exception("Failed to back up corrupted file %s", path)
            return None
        logger.warning("Backed up corrupted file %s to %s", path, backup_path)
        return backup_path

    def _archive_existing(self, path: str) -> dict[str, Any]:
        """Copy the current per-date file into the archive and return its content.

        A file that cannot be read or parsed gets a timestamped backup and is
        treated as empty.
        """
        if not os.path.exists(path):
            return {}
        try:
            with open(path, encoding="utf-8") as handle:
                content = handle.read()
            existing = json.loads(content) if content.strip() else {}
            if not isinstance(existing, dict):
                raise ValueError(f"expected a mapping of dates in {path}")
        except (OSError, ValueError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            self._backup_corrupted(path)
            return {}
        if not existing:
            return {}
        stem = os.path.splitext(os.path.basename(path))[0]
        archive_path = os.path.join(self.archive_dir, f"{stem}_{date.today().isoformat()}.json")
        try:
            os.makedirs(self.archive_dir, exist_ok=True)
            with open(archive_path, "w", encoding="utf-8") as handle:
                handle.write(content)
        except OSError:
            logger.exception("Failed to archive %s", path)
        else:
            logger.info("Archived previous %s to %s", os.path.basename(path), archive_path)
        return existing

    def _save_for_date(self, path: str, date_key: str, values: list[Any]) -> None:
        existing = self._archive_existing(path)
        existing[date_key] = values
        self._write_json(path, existing)

    def save_logs(self, logs: Iterable[ProcessLog], date_key: str) -> None:
        entries = [log.to_dict() for log in logs]
        try:
            self._save_for_date(self.logs_path, date_key, entries)
        except OSError:
            logger.exception("Failed to save logs for %s", date_key)
            return
        logger.info("Saved %d logs for %s to %s", len(entries), date_key, self.logs_path)

    def save_warnings(self, warnings: Iterable[str], date_key: str) -> None:
        entries = [str(warning) for warning in warnings]
        try:
            self._save_for_date(self.warnings_path, date_key, entries)
        except OSError:
            logger.exception("Failed to save warnings for %s", date_key)
            return
        logger.info("Saved %d warnings for %s to %s", len(entries), date_key, self.warnings_path)

    def _read_mapping(self, path: str) -> dict[str, Any]:
        if not os.path.exists(path):
            return {}
        try:
            with open(path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def load_logs(self) -> dict[str, list[dict[str, Any]]]:
        return self._read_mapping(self.logs_path)

    def load_warnings(self) -> dict[str, list[str]]:
        return self._read_mapping(self.warnings_path)
