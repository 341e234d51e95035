"""Date and amount normalization for bank statement fields.

Both parsers return ``None`` for unusable input instead of raising, so the
ingestor can turn a bad field into a row-level error and move on.
"""

import datetime as dt
import re
from decimal import Decimal, InvalidOperation

_DATE_PART = re.compile(r"[0-9]+")
_AMOUNT_NOISE = re.compile(r"[(),$\s]")


def parse_date(raw: str | None) -> dt.date | None:
    """Parse ``MM/DD/YYYY`` (zero padding optional) into a calendar date."""
    if raw is None:
        return None
    trimmed = raw.strip()
    if not trimmed:
        return None

    parts = trimmed.split("/")
    if len(parts) != 3:
        return None

    numbers: list[int] = []
    for part in parts:
        part = part.strip()
        if not _DATE_PART.fullmatch(part):
            return None
        value = int(part)
        if value == 0:
            return None
        numbers.append(value)

    month, day, year = numbers
    try:
        return dt.date(year, month, day)
    except ValueError:
        return None


def parse_amount(raw: str | None) -> float | None:
    """Parse a statement amount.

    ``"($21.54)"`` -> ``-21.54``, ``"$1,234.50"`` -> ``1234.5``, ``"-5"`` -> ``-5.0``.
    Parenthesized values and a leading minus both mean money leaving the account.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None

    has_parens = text.startswith("(") and text.endswith(")")
    cleaned = _AMOUNT_NOISE.sub("", text)
    if not cleaned:
        return None

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None

    if has_parens or cleaned.startswith("-"):
        value = -abs(value)
    return float(value)
