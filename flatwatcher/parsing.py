"""Pure text helpers that turn scraped fragments into prices and unit identities."""

from __future__ import annotations

import datetime as dt
import re
from typing import List, Optional, Tuple

PRICE_MIN = 1000
PRICE_MAX = 20000

PRICE_PATTERN = re.compile(r"\$\s?(\d{1,3}(?:,\d{3})+|\d+)")
KEYWORD_UNIT_MARKER = r"(?:(?<![A-Za-z])(?:unit|apartment|apt)\.?\s*#?\s*)"
# Labels may also use a bare "#"; free text only trusts the keywords.
UNIT_MARKER = r"(?:%s|#\s*)" % KEYWORD_UNIT_MARKER
UNIT_ID = r"(?P<unit_id>[A-Za-z]{0,2}-?\d[\w-]*)"
UNIT_PATTERN = re.compile(UNIT_MARKER + UNIT_ID, re.IGNORECASE)

_MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%m-%d-%Y")


def parse_price(text: Optional[str]) -> Optional[int]:
    """Return the first currency amount in ``text`` as an integer.

    Thousands separators are stripped and cents are ignored, so ``"$5,411.50"``
    becomes ``5411``. Returns ``None`` when no amount is present.
    """
    if not text:
        return None
    match = PRICE_PATTERN.search(text)
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def find_prices(text: Optional[str]) -> List[int]:
    """Return every currency amount in ``text`` in document order."""
    if not text:
        return []
    return [int(amount.replace(",", "")) for amount in PRICE_PATTERN.findall(text)]


def is_plausible_price(price: Optional[int]) -> bool:
    """Whether ``price`` looks like a monthly rent rather than a fee or deposit."""
    return price is not None and PRICE_MIN <= price <= PRICE_MAX


def floor_from_unit_id(unit_id: Optional[str]) -> Optional[str]:
    """Derive the floor from a floor-coded unit number.

    The first dash-separated segment must be a 3 or 4 digit number whose
    leading digit(s) name the floor: ``350-227`` is on floor 3 and ``1204`` on
    floor 12.
    """
    if not unit_id:
        return None
    segment = unit_id.split("-", 1)[0]
    if not segment.isdigit() or len(segment) not in (3, 4):
        return None
    floor = int(segment[:-2])
    if floor <= 0:
        return None
    return str(floor)


def clean_unit_id(raw: str) -> str:
    return raw.strip().strip("-").strip()


def parse_unit_identity(text: Optional[str]) -> Optional[Tuple[str, Optional[str]]]:
    """Find ``(unit_id, floor)`` after a unit marker such as ``Unit`` or ``#``."""
    if not text:
        return None
    match = UNIT_PATTERN.search(text)
    if not match:
        return None
    unit_id = clean_unit_id(match.group("unit_id"))
    if not unit_id:
        return None
    return unit_id, floor_from_unit_id(unit_id)


def format_available_date(value: Optional[str]) -> Optional[str]:
    """Render a date attribute as month abbreviation plus day (``"Jan 25"``).

    Values that are not recognisable dates are returned verbatim.
    """
    if not value:
        return None
    value = value.strip()
    if not value:
        return None
    candidate = value.split("T", 1)[0]
    for fmt in _DATE_FORMATS:
        try:
            parsed = dt.datetime.strptime(candidate, fmt)
        except ValueError:
            continue
        return f"{_MONTH_ABBR[parsed.month - 1]} {parsed.day}"
    return value


__all__ = [
    "PRICE_MAX",
    "PRICE_MIN",
    "find_prices",
    "floor_from_unit_id",
    "format_available_date",
    "is_plausible_price",
    "parse_price",
    "parse_unit_identity",
]
