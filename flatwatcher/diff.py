"""Reconcile an observation against the previous one, unit by unit."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import (
    Availability,
    ChangeRecord,
    ChangeStatus,
    ObservationSnapshot,
    PlanReport,
    PlanSnapshot,
    ReportSnapshot,
    UnitRecord,
)

UPDATE_STATUSES = frozenset(
    {
        ChangeStatus.NEW,
        ChangeStatus.INCREASED,
        ChangeStatus.DECREASED,
        ChangeStatus.REMOVED,
    }
)


def classify(
    current_price: Optional[int],
    previous_price: Optional[int],
) -> Tuple[ChangeStatus, int]:
    """Return ``(status, difference)`` for a pair of prices."""
    if current_price is None:
        return ChangeStatus.REMOVED, 0
    if previous_price is None:
        return ChangeStatus.NEW, 0
    difference = current_price - previous_price
    if difference < 0:
        return ChangeStatus.DECREASED, difference
    if difference > 0:
        return ChangeStatus.INCREASED, difference
    return ChangeStatus.UNCHANGED, 0


def _index_units(units: Iterable[UnitRecord]) -> Dict[str, UnitRecord]:
    # First occurrence wins.
    index: Dict[str, UnitRecord] = {}
    for unit in units:
        index.setdefault(unit.identity_key, unit)
    return index


def diff_units(
    current_units: Sequence[UnitRecord],
    previous_units: Sequence[UnitRecord],
) -> List[ChangeRecord]:
    """Compute change records for one plan."""
    previous_map = _index_units(previous_units)
    current_keys = set()
    records: List[ChangeRecord] = []

    for unit in current_units:
        current_keys.add(unit.identity_key)
        previous = previous_map.get(unit.identity_key)
        previous_price = previous.price if previous else None
        status, difference = classify(unit.price, previous_price)
        records.append(
            ChangeRecord(
                unit_id=unit.unit_id,
                floor=unit.floor,
                current_price=unit.price,
                previous_price=previous_price,
                difference=difference,
                status=status,
                availability=unit.availability,
            )
        )

    for key, previous in previous_map.items():
        if key in current_keys:
            continue
        records.append(
            ChangeRecord(
                unit_id=previous.unit_id,
                floor=previous.floor,
                current_price=None,
                previous_price=previous.price,
                difference=0,
                status=ChangeStatus.REMOVED,
                availability=Availability.NO_LONGER_AVAILABLE,
            )
        )

    return records


def reconcile(
    current: ObservationSnapshot,
    previous: Optional[ObservationSnapshot],
) -> ReportSnapshot:
    """Match current plans to previous plans by name and diff their units."""
    previous_plans: Dict[str, PlanSnapshot] = {}
    if previous is not None:
        for plan in previous.plans:
            previous_plans.setdefault(plan.plan_name, plan)

    plan_reports: List[PlanReport] = []
    for plan in current.plans:
        previous_plan = previous_plans.get(plan.plan_name)
        previous_units = previous_plan.units if previous_plan else ()
        plan_reports.append(
            PlanReport(
                plan_name=plan.plan_name,
                url=plan.url,
                total_units=plan.total_units,
                price_range=plan.price_range,
                units=diff_units(plan.units, previous_units),
            )
        )

    return ReportSnapshot(
        date=current.date,
        timestamp=current.timestamp,
        plans=plan_reports,
    )


def has_updates(report: ReportSnapshot) -> bool:
    """True when any unit is new, removed, or changed price."""
    return any(record.status in UPDATE_STATUSES for record in report.records())


def count_statuses(report: ReportSnapshot) -> Dict[ChangeStatus, int]:
    counts = {status: 0 for status in ChangeStatus}
    for record in report.records():
        counts[record.status] += 1
    return counts


def headline_status(counts: Dict[ChangeStatus, int]) -> Optional[ChangeStatus]:
    """Pick the status that leads a notification subject.

    Priority is removed, then new, then price movement (the larger of increases
    and decreases, decreases on a tie), then unchanged.
    """
    if counts.get(ChangeStatus.REMOVED):
        return ChangeStatus.REMOVED
    if counts.get(ChangeStatus.NEW):
        return ChangeStatus.NEW
    increased = counts.get(ChangeStatus.INCREASED, 0)
    decreased = counts.get(ChangeStatus.DECREASED, 0)
    if increased or decreased:
        return ChangeStatus.INCREASED if increased > decreased else ChangeStatus.DECREASED
    if counts.get(ChangeStatus.UNCHANGED):
        return ChangeStatus.UNCHANGED
    return None


__all__ = [
    "UPDATE_STATUSES",
    "classify",
    "count_statuses",
    "diff_units",
    "has_updates",
    "headline_status",
    "reconcile",
]
