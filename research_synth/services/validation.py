"""Business-rule checks for parsed financial data.

Every rule is evaluated and every violation collected, so a client can fix
all problems in one round trip instead of one per request.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

KNOWN_CATEGORIES = frozenset({
    "invoices",
    "expenses",
    "payments",
    "ledger",
    "inventory",
    "purchaseOrders",
    "records",
})

REQUIRED_FIELDS = ("id", "date", "amount")


@dataclass
class ValidationReport:
    valid: bool
    errors: list[str] = field(default_factory=list)


def validate_financial_data(records: Any) -> ValidationReport:
    """Check parsed records against the schema and return every violation."""
    errors: list[str] = []

    if not isinstance(records, dict) or not records:
        return ValidationReport(False, ["Financial data contains no categories"])

    for category, entries in records.items():
        if category not in KNOWN_CATEGORIES:
            errors.append(
                f"Unknown category '{category}'. "
                f"Expected one of: {', '.join(sorted(KNOWN_CATEGORIES))}"
            )
            continue
        if not isinstance(entries, list):
            errors.append(f"Category '{category}' must be a list of entries")
            continue
        if not entries:
            errors.append(f"Category '{category}' has no entries")
            continue
        for index, entry in enumerate(entries):
            errors.extend(_validate_entry(f"{category}[{index}]", entry))

    return ValidationReport(not errors, errors)


def _validate_entry(location: str, entry: Any) -> list[str]:
    if not isinstance(entry, dict):
        return [f"{location}: entry must be an object"]

    errors = [
        f"{location}: missing required field '{name}'"
        for name in REQUIRED_FIELDS
        if entry.get(name) in (None, "")
    ]

    amount = entry.get("amount")
    if amount not in (None, "") and (
        isinstance(amount, bool) or not isinstance(amount, (int, float))
    ):
        errors.append(f"{location}: 'amount' must be a number")
    elif isinstance(amount, float) and not math.isfinite(amount):
        # "nan" and "inf" cells parse as floats but are not valid JSON
        errors.append(f"{location}: 'amount' must be a finite number")

    date_value = entry.get("date")
    if date_value not in (None, "") and not _is_iso_date(date_value):
        errors.append(f"{location}: 'date' must be an ISO-8601 date")

    return errors


def _is_iso_date(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True
