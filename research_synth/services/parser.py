# =============================================================================
# Financial Data Parser — CSV and JSON Input Normalisation
# =============================================================================
#
# Turns caller-supplied CSV or JSON into one shape:
#
#     {category: [entry, entry, ...], ...}
#
# JSON:
#   - an object maps category → list of entries and is returned as-is
#   - a bare array is treated as the single category "records"
# CSV:
#   - the header row names the fields
#   - an optional `category` column groups rows (default "records")
#   - numeric-looking cells become int/float, except *id columns
#
# Parsing is purely structural. Business rules (required fields, known
# categories) are checked afterwards by validation.py.
# =============================================================================

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any

from research_synth.services.errors import ParseFailure

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "records"

Records = dict[str, list[Any]]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_json(data: str | dict[str, Any] | list[Any]) -> Records:
    """Parse a JSON string or decoded JSON value into category → entries."""
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ParseFailure(
                f"Invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})"
            ) from exc

    if isinstance(data, dict):
        return data
    if isinstance(data, list):
        return {DEFAULT_CATEGORY: data}
    raise ParseFailure(
        "JSON financial data must be an object of categories or an array of entries"
    )


def parse_csv(text: str) -> Records:
    """Parse CSV text with a header row into category → entries."""
    reader = csv.DictReader(io.StringIO(text.strip()))
    records: Records = {}

    try:
        if not reader.fieldnames:
            raise ParseFailure("CSV input is empty")
        for row in reader:
            category = (row.pop("category", None) or "").strip() or DEFAULT_CATEGORY
            entry = {
                key.strip(): _coerce(key.strip(), value)
                for key, value in row.items()
                if key is not None
            }
            records.setdefault(category, []).append(entry)
    except csv.Error as exc:
        raise ParseFailure(f"Invalid CSV at line {reader.line_num}: {exc}") from exc

    if not records:
        raise ParseFailure("CSV contains a header row but no data rows")

    logger.debug(
        "Parsed CSV: %d rows across %d categories",
        sum(len(entries) for entries in records.values()), len(records),
    )
    return records


def parse_file(path: Path) -> Records:
    """Parse a .csv or .json file, dispatching on its extension."""
    suffix = path.suffix.lower()
    if suffix not in (".csv", ".json"):
        raise ParseFailure(f"Unsupported file format '{suffix or path.name}'")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseFailure(f"File is not valid UTF-8 text: {exc}") from exc

    if suffix == ".csv":
        return parse_csv(content)
    return parse_json(content)


def count_records(records: Records) -> int:
    """Total number of entries across all categories."""
    return sum(len(entries) for entries in records.values() if isinstance(entries, list))


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _coerce(key: str, value: str | None) -> Any:
    """Convert a CSV cell to int/float when it looks numeric."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if key.lower().endswith("id"):
        return value
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value
