"""Input cleaning and price arithmetic shared by the catalog commands."""
from __future__ import annotations

import html
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, List, Optional

import bleach

from descuentosya.models import as_utc

_WHOLE_UNIT = Decimal("1")


class InvalidInput(ValueError):
    """Raised by the helpers below; services turn it into a VALIDATION_ERROR result."""


def clean_text(value: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Strip markup and surrounding whitespace from business-supplied text.

    bleach escapes ``&``, ``<`` and ``>`` in what it keeps; the result is
    stored and served as JSON, not HTML, so the entities are decoded again.
    """
    if value is None:
        return ""
    cleaned = html.unescape(bleach.clean(str(value), tags=[], strip=True)).strip()
    if max_length is not None:
        cleaned = cleaned[:max_length]
    return cleaned


def clean_terms(terms: Optional[Iterable[str]], max_terms: int) -> List[str]:
    if not terms:
        return []
    if isinstance(terms, str):
        terms = [terms]
    cleaned: List[str] = []
    for term in terms:
        text = clean_text(term, max_length=500)
        if text:
            cleaned.append(text)
        if len(cleaned) >= max_terms:
            break
    return cleaned


def to_decimal(value, field_name: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput(f"{field_name} must be a number")
    if not number.is_finite():
        raise InvalidInput(f"{field_name} must be a number")
    return number


def compute_discount_price(original_price: Decimal, discount_percent: Decimal) -> Decimal:
    """original * (1 - pct/100), rounded half-up to whole currency units."""
    raw = original_price * (Decimal(1) - discount_percent / Decimal(100))
    return raw.quantize(_WHOLE_UNIT, rounding=ROUND_HALF_UP)


def parse_instant(value, field_name: str = "expires_at") -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str) and value.strip():
        candidate = value.strip()
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            return as_utc(datetime.fromisoformat(candidate))
        except ValueError:
            pass
    raise InvalidInput(f"{field_name} must be an ISO-8601 timestamp")


def to_positive_int(value, field_name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field_name} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidInput(f"{field_name} must be an integer")
    if number <= 0:
        raise InvalidInput(f"{field_name} must be greater than zero")
    return number


def to_coordinate(value, field_name: str, limit: float) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field_name} must be a number")
    if not -limit <= number <= limit:
        raise InvalidInput(f"{field_name} must be between -{limit:g} and {limit:g}")
    return number
