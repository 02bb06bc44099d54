"""
Collected answer helpers.

Answers are a flat field -> value mapping accumulated across steps. Values are
kept JSON-compatible so a saved snapshot loads back equal to what was saved.
"""

import logging
from datetime import date, datetime
from typing import Any, Mapping

logger = logging.getLogger(__name__)


def normalize_value(value: Any) -> Any:
    """Convert a submitted value into its JSON-compatible stored form."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(normalize_value(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    if isinstance(value, Mapping):
        return {str(k): normalize_value(v) for k, v in value.items()}
    return value


def merge_answers(current: Mapping[str, Any], updates: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Return a new mapping with updates applied over current answers.

    Overwrite semantics: a later value for the same field replaces the earlier one.
    """
    merged = dict(current)
    for field_name, value in (updates or {}).items():
        merged[str(field_name)] = normalize_value(value)
    return merged


def is_blank(value: Any) -> bool:
    """True for missing, empty or whitespace-only values."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def parse_birth_date(value: Any) -> date | None:
    """Parse a stored birth date (ISO string or date). None when unusable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            logger.debug(f"Unparseable birth date: {value!r}")
    return None


def compute_age(birth_date: date, today: date | None = None) -> int:
    """Age in whole years, accounting for month and day."""
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def age_from_answers(answers: Mapping[str, Any], field: str = "date_of_birth", today: date | None = None) -> int | None:
    """Computed age from the birth date field, or None if not collected yet."""
    birth_date = parse_birth_date(answers.get(field))
    if birth_date is None:
        return None
    return compute_age(birth_date, today)
