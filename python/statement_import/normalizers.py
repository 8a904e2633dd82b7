"""
Field Normalizers

Locale-aware parsing of dates, amounts and installment markers as they
appear in Brazilian card statements ("15/01/2026", "1.234,56", "03/10").
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import NamedTuple

PLACEHOLDER_VALUES = ("-",)
SINGLE_INSTALLMENT_MARKERS = ("única", "unica")

INSTALLMENT_PATTERN = re.compile(r'^(\d+)/(\d+)$')
CURRENCY_PREFIX = re.compile(r'^(R\$|US\$|\$)')


class Installment(NamedTuple):
    """A parsed "N/M" installment marker."""

    number: int
    total: int


def parse_date(raw: str | None) -> str | None:
    """Parse a DD/MM/YYYY date into ISO format.

    Args:
        raw: Date string with day, month and year separated by "/"

    Returns:
        "YYYY-MM-DD" string, or None if the value is not a valid date
    """
    if not raw:
        return None

    parts = raw.strip().split("/")
    if len(parts) != 3:
        return None

    day, month, year = (p.strip() for p in parts)
    if not (day.isdigit() and month.isdigit() and year.isdigit()) or len(year) != 4:
        return None

    try:
        date(int(year), int(month), int(day))
    except ValueError:
        return None

    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


def parse_number(raw: str | int | float | Decimal | None) -> Decimal:
    """Parse an amount written with decimal comma or decimal point.

    "1.234,56" -> 1234.56, "150,00" -> 150.00, "12.50" -> 12.50.
    Empty or unparseable input yields 0.

    Args:
        raw: Amount string, or a number already decoded by a JSON payload

    Returns:
        Decimal amount
    """
    if raw is None or isinstance(raw, bool):
        return Decimal("0")
    if isinstance(raw, (int, float, Decimal)):
        amount = Decimal(str(raw))
        return amount if amount.is_finite() else Decimal("0")

    cleaned = re.sub(r'\s+', '', raw)
    cleaned = CURRENCY_PREFIX.sub('', cleaned)
    if not cleaned:
        return Decimal("0")

    if "," in cleaned:
        # Decimal comma: dots are thousand separators
        cleaned = cleaned.replace(".", "").replace(",", ".")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0")

    return amount if amount.is_finite() else Decimal("0")


def parse_installment(
    raw: str | None,
    single_markers: tuple[str, ...] = SINGLE_INSTALLMENT_MARKERS,
) -> Installment | None:
    """Parse an installment marker such as "03/10".

    Single-payment markers, malformed values and pairs where the number
    exceeds the total all yield None, meaning "not an installment purchase".

    Args:
        raw: Installment marker from the statement
        single_markers: Lowercase literals meaning a single payment

    Returns:
        Installment or None
    """
    if not raw:
        return None

    value = raw.strip()
    if value.lower() in single_markers:
        return None

    match = INSTALLMENT_PATTERN.match(value)
    if not match:
        return None

    number, total = int(match.group(1)), int(match.group(2))
    if number < 1 or number > total:
        return None

    return Installment(number, total)


def clean_text(
    raw: str | None,
    placeholders: tuple[str, ...] = PLACEHOLDER_VALUES,
) -> str | None:
    """Trim a text field, mapping empty and placeholder values to None."""
    if raw is None:
        return None
    value = str(raw).strip()
    if not value or value in placeholders:
        return None
    return value
