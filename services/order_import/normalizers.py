"""
Numeric and date normalization for localized spreadsheet values.
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from settings import SERIAL_DATE_EPOCH, MIN_ORDER_YEAR, MAX_ORDER_YEAR

from .errors import InvalidDateError

_CURRENCY_AND_SPACE = re.compile(r"[$€£¥₹\s]")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_PLAIN_NUMBER = re.compile(r"^-?\d+(?:\.\d+)?$")

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d",
    "%Y/%m/%d", "%d/%m/%Y %H:%M:%S", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y",
    "%m/%d/%Y %H:%M:%S", "%m/%d/%Y", "%d %b %Y", "%d %B %Y", "%b %d, %Y",
)


def normalize_invoice(value: Optional[str]) -> str:
    """Invoice numbers compare trimmed and case-insensitively."""
    return (value or "").strip().lower()


def _to_decimal(value: Any) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return number if number.is_finite() else Decimal("0")


def _resolve_separators(text: str) -> str:
    last_comma = text.rfind(",")
    last_dot = text.rfind(".")
    if last_comma == -1:
        return text
    if last_dot != -1:
        if last_comma > last_dot:
            # 1.234,56
            return text.replace(".", "").replace(",", ".")
        # 1,234.56
        return text.replace(",", "")
    if len(text) - last_comma - 1 <= 2 and text.count(",") == 1:
        # 10,00 -> decimal comma
        return text.replace(",", ".")
    return text.replace(",", "")


def parse_number(value: Any) -> Decimal:
    """Parse a localized numeric value; empty or unparseable input yields 0."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, (int, float, Decimal)):
        return _to_decimal(value)
    text = _CURRENCY_AND_SPACE.sub("", str(value))
    if not text:
        return Decimal("0")
    text = _NON_NUMERIC.sub("", _resolve_separators(text))
    if not text or text in {"-", ".", "-."}:
        return Decimal("0")
    # Keep a single leading sign and the first decimal point.
    negative = text.startswith("-")
    digits = text.replace("-", "")
    if digits.count(".") > 1:
        head, _, tail = digits.partition(".")
        digits = f"{head}.{tail.replace('.', '')}"
    return _to_decimal(f"-{digits}" if negative else digits)


def parse_tax_rate(value: Any) -> Decimal:
    """Tax as a percentage; fractions such as 0.14 are read as 14%."""
    rate = parse_number(value)
    if Decimal("0") < rate < Decimal("1"):
        rate = rate * 100
    return rate


def serial_to_datetime(serial: Decimal) -> datetime:
    base = datetime(SERIAL_DATE_EPOCH.year, SERIAL_DATE_EPOCH.month, SERIAL_DATE_EPOCH.day,
                    tzinfo=timezone.utc)
    try:
        result = base + timedelta(days=float(serial))
    except OverflowError as exc:
        raise InvalidDateError(f"Serial date {serial} is out of range") from exc
    if result.year < MIN_ORDER_YEAR or result.year > MAX_ORDER_YEAR:
        raise InvalidDateError(f"Serial date {serial} resolves to {result.date()}, outside {MIN_ORDER_YEAR}-{MAX_ORDER_YEAR}")
    return result


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_order_date(value: Any, now: Optional[datetime] = None) -> datetime:
    """
    Parse an order date.

    Missing values fall back to `now`. Plain numbers above 1000 are spreadsheet
    serial dates; anything else must be ISO-8601 or one of the known formats.
    Raises InvalidDateError for values that cannot be trusted.
    """
    if isinstance(value, datetime):
        return _as_utc(value)
    text = "" if value is None else str(value).strip()
    if not text:
        return _as_utc(now or datetime.now(timezone.utc))

    if _PLAIN_NUMBER.match(text):
        serial = Decimal(text)
        if serial > 1000:
            return serial_to_datetime(serial)

    iso = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return _as_utc(datetime.fromisoformat(iso))
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return _as_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue

    raise InvalidDateError(f"Could not parse date '{text}'")
