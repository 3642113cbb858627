"""Utility helper functions."""

import uuid
from typing import Any, Iterable, List


def format_price(price: Any) -> str:
    """Format a whole-forint price the way the storefront shows it.

    >>> format_price(89990)
    '89 990 Ft'
    """
    try:
        amount = int(round(float(price)))
    except (TypeError, ValueError):
        return "N/A"
    sign = "-" if amount < 0 else ""
    grouped = f"{abs(amount):,}".replace(",", " ")
    return f"{sign}{grouped} Ft"


def truncate_text(text: str, max_length: int = 200) -> str:
    """Truncate text to max length."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def dedupe_strings(values: Iterable[Any], max_length: int = 80) -> List[str]:
    """Strip, drop empties and case-insensitive duplicates, keep order."""
    seen = set()
    result = []
    for value in values or []:
        if not isinstance(value, str):
            continue
        cleaned = " ".join(value.split())
        if not cleaned:
            continue
        cleaned = truncate_text(cleaned, max_length)
        key = cleaned.casefold()
        if key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result


def new_message_id() -> str:
    """Opaque, unique message identifier."""
    return uuid.uuid4().hex
