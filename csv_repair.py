from __future__ import annotations

import csv
import io
import logging
import os
from typing import Callable, TypeVar

import pandas as pd

TIMETABLE_FIELD_COUNT = 17
ROSTER_FIELD_COUNT = 3

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CsvParseError(ValueError):
    def __init__(self, message: str, path: str | None = None, cause: Exception | None = None):
        super().__init__(message)
        self.path = path
        self.cause = cause


PARSE_ERRORS = (CsvParseError, pd.errors.ParserError, pd.errors.EmptyDataError)


def _split_fields(line: str) -> list[str]:
    if '"' not in line:
        return line.split(",")
    return next(csv.reader([line]))


def _join_fields(fields: list[str]) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="").writerow(fields)
    return buffer.getvalue()


def repair_line(line: str, expected_fields: int) -> str:
    if line.count('"') % 2 != 0:
        line = line.replace('"', "")
    if not line.strip():
        return line
    fields = _split_fields(line)
    if len(fields) > expected_fields:
        if '"' not in line:
            return ",".join(fields[:expected_fields])
        return _join_fields(fields[:expected_fields])
    if len(fields) < expected_fields:
        return line + "," * (expected_fields - len(fields))
    return line


def repair_csv_text(text: str, expected_fields: int) -> str:
    """Fix unbalanced quotes and ragged rows.

    Returns the input unchanged when every line is already well formed, so
    callers can compare the result with the original to tell whether a
    repair happened.
    """
    repaired: list[str] = []
    for raw_line in text.split("\n"):
        ending = ""
        line = raw_line
        if line.endswith("\r"):
            line, ending = line[:-1], "\r"
        repaired.append(repair_line(line, expected_fields) + ending)
    return "\n".join(repaired)


def has_unbalanced_quotes(text: str) -> bool:
    return any(line.count('"') % 2 for line in text.split("\n"))


def load_with_repair(
    path: str,
    parser: Callable[[str], T],
    expected_fields: int,
    label: str = "CSV",
) -> T:
    """Parse a file, repairing it once when it is malformed.

    Lines with an odd number of quotes go straight to repair; otherwise the
    parser gets the first try. The original content is kept in ``<path>.bak``.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"{label} file not found at: {path}")
    with open(path, encoding="utf-8", newline="") as handle:
        content = handle.read()
    fixed_content = repair_csv_text(content, expected_fields)
    if has_unbalanced_quotes(content):
        logger.warning("Unbalanced quotes in %s file %s", label, path)
    else:
        try:
            return parser(content)
        except PARSE_ERRORS as exc:
            logger.warning("Error parsing %s file %s: %s", label, path, exc)
            if fixed_content == content:
                raise CsvParseError(
                    f"Error parsing {label} file {path}: {exc}", path=path, cause=exc
                ) from exc
    backup_path = f"{path}.bak"
    with open(backup_path, "w", encoding="utf-8", newline="") as handle:
        handle.write(content)
    with open(path, "w", encoding="utf-8", newline="") as handle:
        handle.write(fixed_content)
    logger.info("Fixed and saved %s file %s. Original backed up to %s", label, path, backup_path)
    try:
        return parser(fixed_content)
    except PARSE_ERRORS as exc:
        raise CsvParseError(
            f"Error parsing {label} file {path} after repair: {exc}", path=path, cause=exc
        ) from exc
