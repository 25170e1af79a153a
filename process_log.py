from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from records import ProcessLog

STATUS_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class ProcessLogger:
    """Append-only trail of one assignment run.

    Every entry is stamped with the milliseconds elapsed since the logger was
    created and mirrored to the ``logging`` module.
    """

    def __init__(self, name: str = "substitutes.run"):
        self._started = time.monotonic()
        self._entries: list[ProcessLog] = []
        self._logger = logging.getLogger(name)

    def add(
        self,
        action: str,
        details: str,
        status: str = "info",
        data: Optional[dict[str, Any]] = None,
    ) -> ProcessLog:
        if status not in STATUS_LEVELS:
            raise ValueError(f"Unknown log status: {status}")
        entry = ProcessLog(
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action,
            details=details,
            status=status,
            data=data,
            duration_ms=self.elapsed_ms(),
        )
        self._entries.append(entry)
        self._logger.log(STATUS_LEVELS[status], "[%s] %s", action, details)
        return entry

    __call__ = add

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    @property
    def entries(self) -> list[ProcessLog]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
