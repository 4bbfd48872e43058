"""Core data models for FlatWatcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

UNKNOWN_FLOOR = "unknown"


class Availability:
    """Well-known availability labels; any other value is a verbatim date string."""

    AVAILABLE_NOW = "Available Now"
    CALL_FOR_DETAILS = "Call for details"
    UNKNOWN = "Unknown"
    NO_LONGER_AVAILABLE = "No longer available"


class ErrorKind(str, Enum):
    """Closed set of failure categories a run can surface."""

    TRANSPORT_FAILURE = "transport_failure"
    EXTRACTION_EMPTY = "extraction_empty"
    PERSISTENCE_FAILURE = "persistence_failure"
    NOTIFICATION_FAILURE = "notification_failure"


class ChangeStatus(str, Enum):
    """Per-unit classification produced by the reconciler."""

    NEW = "new"
    INCREASED = "increased"
    DECREASED = "decreased"
    UNCHANGED = "unchanged"
    REMOVED = "removed"


def identity_key(unit_id: str, floor: Optional[str]) -> str:
    """Composite key used to match a unit across runs."""
    return f"{unit_id}-{floor or UNKNOWN_FLOOR}"


@dataclass(frozen=True)
class TrackedPage:
    """A floor-plan page to observe."""

    name: str
    url: str


@dataclass(frozen=True)
class UnitRecord:
    """One rentable unit extracted from a plan page."""

    unit_id: str
    floor: Optional[str]
    price: int
    availability: str = Availability.UNKNOWN

    @property
    def identity_key(self) -> str:
        return identity_key(self.unit_id, self.floor)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "floor": self.floor,
            "price": self.price,
            "availability": self.availability,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UnitRecord":
        return cls(
            unit_id=str(data["unit_id"]),
            floor=data.get("floor"),
            price=int(data["price"]),
            availability=data.get("availability") or Availability.UNKNOWN,
        )


@dataclass(frozen=True)
class PriceRange:
    """Lowest and highest unit price within a plan."""

    min: int
    max: int

    @classmethod
    def from_units(cls, units: Sequence[UnitRecord]) -> Optional["PriceRange"]:
        if not units:
            return None
        prices = [unit.price for unit in units]
        return cls(min=min(prices), max=max(prices))

    def to_dict(self) -> Dict[str, int]:
        return {"min": self.min, "max": self.max}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["PriceRange"]:
        if not data:
            return None
        return cls(min=int(data["min"]), max=int(data["max"]))


@dataclass(frozen=True)
class PlanSnapshot:
    """Result of scraping one tracked page."""

    plan_name: str
    url: str
    units: Sequence[UnitRecord]
    scraped_at: str
    success: bool = True
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    strategy: Optional[str] = None

    @property
    def total_units(self) -> int:
        return len(self.units)

    @property
    def price_range(self) -> Optional[PriceRange]:
        return PriceRange.from_units(self.units)

    def to_dict(self) -> Dict[str, Any]:
        price_range = self.price_range
        return {
            "plan_name": self.plan_name,
            "url": self.url,
            "units": [unit.to_dict() for unit in self.units],
            "total_units": self.total_units,
            "price_range": price_range.to_dict() if price_range else None,
            "scraped_at": self.scraped_at,
            "success": self.success,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "strategy": self.strategy,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlanSnapshot":
        error_kind = data.get("error_kind")
        return cls(
            plan_name=data["plan_name"],
            url=data["url"],
            units=tuple(UnitRecord.from_dict(unit) for unit in data.get("units") or []),
            scraped_at=data.get("scraped_at") or "",
            success=bool(data.get("success", True)),
            error=data.get("error"),
            error_kind=ErrorKind(error_kind) if error_kind else None,
            strategy=data.get("strategy"),
        )


@dataclass(frozen=True)
class ObservationSnapshot:
    """All plan snapshots captured by a single run."""

    date: str
    timestamp: str
    plans: Sequence[PlanSnapshot]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "timestamp": self.timestamp,
            "plans": [plan.to_dict() for plan in self.plans],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObservationSnapshot":
        return cls(
            date=data["date"],
            timestamp=data["timestamp"],
            plans=tuple(PlanSnapshot.from_dict(plan) for plan in data.get("plans") or []),
        )


@dataclass(frozen=True)
class ChangeRecord:
    """Reconciled state of one unit between two observations."""

    unit_id: str
    floor: Optional[str]
    current_price: Optional[int]
    previous_price: Optional[int]
    difference: int
    status: ChangeStatus
    availability: str

    @property
    def identity_key(self) -> str:
        return identity_key(self.unit_id, self.floor)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity_key": self.identity_key,
            "unit_id": self.unit_id,
            "floor": self.floor,
            "current_price": self.current_price,
            "previous_price": self.previous_price,
            "difference": self.difference,
            "status": self.status.value,
            "availability": self.availability,
        }


@dataclass
class PlanReport:
    """Change records for one plan."""

    plan_name: str
    url: str
    total_units: int
    price_range: Optional[PriceRange]
    units: List[ChangeRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan_name": self.plan_name,
            "url": self.url,
            "total_units": self.total_units,
            "price_range": self.price_range.to_dict() if self.price_range else None,
            "units": [record.to_dict() for record in self.units],
        }


@dataclass
class ReportSnapshot:
    """Reconciliation output consumed by formatters and notifiers."""

    date: str
    timestamp: str
    plans: List[PlanReport]

    def records(self) -> List[ChangeRecord]:
        return [record for plan in self.plans for record in plan.units]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "timestamp": self.timestamp,
            "plans": [plan.to_dict() for plan in self.plans],
        }


@dataclass
class RunSummary:
    """Aggregated result returned by a monitoring cycle."""

    executed_at: str
    observation: ObservationSnapshot
    report: ReportSnapshot
    status_counts: Dict[ChangeStatus, int]
    has_updates: bool
    notified: bool = False
    persisted: bool = False
