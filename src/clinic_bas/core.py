from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping, Optional, Sequence


ISO_TS = "%Y-%m-%dT%H:%M:%S.%fZ"

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce a raw entered figure to ``Decimal``; anything unusable becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return ZERO
        try:
            result = Decimal(text)
        except (InvalidOperation, ValueError):
            return ZERO
    if not result.is_finite():
        return ZERO
    return result


def rate_from_percent(value: Any) -> Decimal:
    return to_decimal(value) / HUNDRED


def money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Decimal) -> str:
    return str(money(value))


def first_amount(source: Mapping[str, Any], keys: Sequence[str]) -> Decimal:
    """Return the first non-zero amount found under ``keys``.

    Stored records written by older versions of the application used several
    names for the same quantity, so lookups walk a precedence list.
    """
    for key in keys:
        amount = to_decimal(source.get(key))
        if amount != 0:
            return amount
    return ZERO


def parse_entry_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime(ISO_TS)
