"""Ordered extraction strategies that pull unit records out of a rendered plan page."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import cached_property
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from .models import Availability, UnitRecord
from .parsing import (
    KEYWORD_UNIT_MARKER,
    UNIT_ID,
    clean_unit_id,
    find_prices,
    floor_from_unit_id,
    format_available_date,
    is_plausible_price,
    parse_price,
    parse_unit_identity,
)

logger = logging.getLogger(__name__)

MAX_PATTERN_GAP = 500

UNIT_ELEMENT_SELECTOR = (
    "[data-unit], [data-unit-id], .unit-item, .spaces-unit, .unit-row, .unit-card"
)
UNIT_LABEL_SELECTOR = ".unit-number, .unit-name, .unit-title"
PRICE_SELECTOR = ".unit-price, .unit-rent, .price, .rent"
AVAILABILITY_SELECTOR = ".available-date, .unit-availability, .availability"
AVAILABLE_NOW_SELECTOR = ".available-now, [data-available-now]"
UNIT_ID_ATTRIBUTES = ("data-unit", "data-unit-id")
AVAILABLE_DATE_ATTRIBUTES = (
    "data-available-date",
    "data-soonest-available",
    "data-availability-date",
)

AVAILABLE_NOW_PATTERN = re.compile(r"available\s+now", re.IGNORECASE)
AVAILABLE_DATE_PATTERN = re.compile(
    r"available\s+(?:on\s+|from\s+)?"
    r"(?P<date>[A-Z][a-z]{2,8}\.?\s+\d{1,2}(?:,?\s+\d{4})?|\d{1,2}/\d{1,2}(?:/\d{2,4})?)",
    re.IGNORECASE,
)
AVAILABLE_PREFIX_PATTERN = re.compile(r"^available\s*(?:on|from)?\s*:?\s*", re.IGNORECASE)

# Stops a gap from running past the next unit marker.
_NEXT_UNIT = r"(?<![A-Za-z])(?:unit|apartment|apt)\.?\s*#?\s*\d"
_GAP = r"(?P<gap>(?:(?!%s).){0,%d}?)" % (_NEXT_UNIT, MAX_PATTERN_GAP)
UNIT_PRICE_PATTERN = re.compile(
    KEYWORD_UNIT_MARKER
    + UNIT_ID
    + _GAP
    + r"\$\s?(?P<amount>\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{2})?\s*"
    + r"(?:/\s*mo(?:nth)?\b|per\s+month|monthly)",
    re.IGNORECASE | re.DOTALL,
)


@dataclass(frozen=True)
class RenderedPage:
    """Rendered markup and visible text of one page."""

    url: str
    html: str
    text: str = ""

    @classmethod
    def from_html(cls, url: str, html: str) -> "RenderedPage":
        soup = BeautifulSoup(html, "html.parser")
        page = cls(url=url, html=html, text=soup.get_text(" "))
        page.__dict__["soup"] = soup
        return page

    @cached_property
    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, "html.parser")


Strategy = Callable[[RenderedPage], List[UnitRecord]]


@dataclass(frozen=True)
class ExtractionResult:
    """Units found on a page and the strategy that produced them."""

    units: List[UnitRecord] = field(default_factory=list)
    strategy: Optional[str] = None


def _dedupe(units: Iterable[UnitRecord], key: Callable[[UnitRecord], str]) -> List[UnitRecord]:
    seen: set[str] = set()
    unique: List[UnitRecord] = []
    for unit in units:
        unit_key = key(unit)
        if unit_key in seen:
            continue
        seen.add(unit_key)
        unique.append(unit)
    return unique


def _attribute(element: Tag, names: Sequence[str]) -> Optional[str]:
    """Read the first present attribute from ``element`` or one of its descendants."""
    for name in names:
        value = element.get(name)
        if value:
            return str(value).strip()
    for name in names:
        child = element.find(attrs={name: True})
        if child is not None and child.get(name):
            return str(child.get(name)).strip()
    return None


def _unit_identity(element: Tag) -> Optional[Tuple[str, Optional[str]]]:
    raw_id = _attribute(element, UNIT_ID_ATTRIBUTES)
    if raw_id:
        parsed = parse_unit_identity(raw_id)
        if parsed:
            return parsed
        unit_id = clean_unit_id(raw_id)
        return (unit_id, floor_from_unit_id(unit_id)) if unit_id else None

    label = element.select_one(UNIT_LABEL_SELECTOR)
    if label is not None:
        text = label.get_text(" ", strip=True)
        parsed = parse_unit_identity(text)
        if parsed:
            return parsed
        if text and " " not in text and any(char.isdigit() for char in text):
            unit_id = clean_unit_id(text)
            return unit_id, floor_from_unit_id(unit_id)

    return parse_unit_identity(element.get_text(" ", strip=True))


def _unit_price(element: Tag) -> Optional[int]:
    raw_price = _attribute(element, ("data-price",))
    if raw_price:
        digits = re.sub(r"[^\d.]", "", raw_price).split(".", 1)[0]
        if digits:
            return int(digits)
    price_element = element.select_one(PRICE_SELECTOR)
    if price_element is not None:
        return parse_price(price_element.get_text(" ", strip=True))
    return None


def _unit_availability(element: Tag) -> str:
    if element.select_one(AVAILABLE_NOW_SELECTOR) is not None or element.has_attr(
        "data-available-now"
    ):
        return Availability.AVAILABLE_NOW
    if AVAILABLE_NOW_PATTERN.search(element.get_text(" ", strip=True)):
        return Availability.AVAILABLE_NOW

    soonest = format_available_date(_attribute(element, AVAILABLE_DATE_ATTRIBUTES))
    if soonest:
        return soonest

    label = element.select_one(AVAILABILITY_SELECTOR)
    if label is not None:
        text = AVAILABLE_PREFIX_PATTERN.sub("", label.get_text(" ", strip=True))
        formatted = format_available_date(text)
        if formatted:
            return formatted
    return Availability.UNKNOWN


def structured_strategy(page: RenderedPage) -> List[UnitRecord]:
    """Read units from elements that carry a unit attribute or a known unit class."""
    units: List[UnitRecord] = []
    for element in page.soup.select(UNIT_ELEMENT_SELECTOR):
        # Wrappers around several unit elements are not units; the innermost match wins.
        if element.select_one(UNIT_ELEMENT_SELECTOR) is not None:
            continue
        identity = _unit_identity(element)
        if identity is None:
            continue
        price = _unit_price(element)
        if not is_plausible_price(price):
            logger.debug("Discarding unit %s with implausible price %s", identity[0], price)
            continue
        unit_id, floor = identity
        floor = _attribute(element, ("data-floor",)) or floor
        units.append(
            UnitRecord(
                unit_id=unit_id,
                floor=floor,
                price=price,
                availability=_unit_availability(element),
            )
        )
    return _dedupe(units, key=lambda unit: unit.identity_key)


def _availability_from_text(text: str) -> str:
    if AVAILABLE_NOW_PATTERN.search(text):
        return Availability.AVAILABLE_NOW
    match = AVAILABLE_DATE_PATTERN.search(text)
    if match:
        return format_available_date(match.group("date")) or Availability.UNKNOWN
    return Availability.UNKNOWN


def pattern_strategy(page: RenderedPage) -> List[UnitRecord]:
    """Scan page text for ``Unit <id> ... $<amount>/mo`` runs."""
    units: List[UnitRecord] = []
    for match in UNIT_PRICE_PATTERN.finditer(page.text):
        price = int(match.group("amount").replace(",", ""))
        if not is_plausible_price(price):
            continue
        unit_id = clean_unit_id(match.group("unit_id"))
        if not unit_id:
            continue
        units.append(
            UnitRecord(
                unit_id=unit_id,
                floor=floor_from_unit_id(unit_id),
                price=price,
                availability=_availability_from_text(match.group("gap")),
            )
        )
    return _dedupe(units, key=lambda unit: unit.unit_id)


def price_harvest_strategy(page: RenderedPage) -> List[UnitRecord]:
    """Synthesize one placeholder unit per distinct plausible price on the page."""
    prices = sorted({price for price in find_prices(page.text) if is_plausible_price(price)})
    return [
        UnitRecord(
            unit_id=f"Unit {index}",
            floor=None,
            price=price,
            availability=Availability.CALL_FOR_DETAILS,
        )
        for index, price in enumerate(prices, start=1)
    ]


DEFAULT_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("structured", structured_strategy),
    ("pattern", pattern_strategy),
    ("price_harvest", price_harvest_strategy),
)


def extract_units(
    page: RenderedPage,
    strategies: Sequence[Tuple[str, Strategy]] = DEFAULT_STRATEGIES,
) -> ExtractionResult:
    """Run ``strategies`` in order and return the first non-empty result."""
    for name, strategy in strategies:
        try:
            units = strategy(page)
        except Exception:  # noqa: BLE001
            logger.exception("Extraction strategy %s failed on %s", name, page.url)
            continue
        if units:
            logger.debug("Strategy %s extracted %d unit(s) from %s", name, len(units), page.url)
            return ExtractionResult(units=list(units), strategy=name)
        logger.debug("Strategy %s found no units on %s", name, page.url)
    return ExtractionResult()


__all__ = [
    "DEFAULT_STRATEGIES",
    "ExtractionResult",
    "RenderedPage",
    "Strategy",
    "extract_units",
    "pattern_strategy",
    "price_harvest_strategy",
    "structured_strategy",
]
