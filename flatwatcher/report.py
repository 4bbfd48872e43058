"""Render change reports for the console, email bodies and subject lines."""

from __future__ import annotations

import datetime as dt
import html
from typing import Dict, List, Optional, Sequence

from .diff import classify, count_statuses, headline_status
from .models import (
    Availability,
    ChangeRecord,
    ChangeStatus,
    PlanReport,
    PriceRange,
    ReportSnapshot,
    TrackedPage,
)

DEFAULT_SITE_NAME = "CityLine Flats"
RULE_WIDTH = 70

HEADLINES = {
    ChangeStatus.REMOVED: "Units removed",
    ChangeStatus.NEW: "New units listed",
    ChangeStatus.INCREASED: "Price increases",
    ChangeStatus.DECREASED: "Price drops",
    ChangeStatus.UNCHANGED: "No changes",
}

CONSOLE_MARKERS = {
    ChangeStatus.DECREASED: "↓",
    ChangeStatus.INCREASED: "↑",
    ChangeStatus.NEW: "★",
    ChangeStatus.REMOVED: "✕",
    ChangeStatus.UNCHANGED: "–",
}

# (foreground, background) per status for the HTML badge.
BADGE_COLORS = {
    ChangeStatus.DECREASED: ("#16a34a", "#dcfce7"),
    ChangeStatus.INCREASED: ("#dc2626", "#fee2e2"),
    ChangeStatus.NEW: ("#2563eb", "#dbeafe"),
    ChangeStatus.REMOVED: ("#9a3412", "#ffedd5"),
    ChangeStatus.UNCHANGED: ("#6b7280", "#f3f4f6"),
}


def format_price(value: Optional[int]) -> str:
    if value is None:
        return "N/A"
    return f"${value:,}"


def format_price_range(price_range: Optional[PriceRange]) -> str:
    if price_range is None:
        return "N/A"
    return f"{format_price(price_range.min)} - {format_price(price_range.max)}"


def describe_change(record: ChangeRecord) -> str:
    if record.status is ChangeStatus.DECREASED:
        return f"Decreased by {format_price(abs(record.difference))}"
    if record.status is ChangeStatus.INCREASED:
        return f"Increased by {format_price(abs(record.difference))}"
    if record.status is ChangeStatus.NEW:
        return "New listing"
    if record.status is ChangeStatus.REMOVED:
        return "Removed"
    return "No change"


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def summary_line(counts: Dict[ChangeStatus, int]) -> str:
    """One-line tally such as ``1 price drop • 2 new units • 3 unchanged``."""
    parts: List[str] = []
    if counts.get(ChangeStatus.DECREASED):
        parts.append(_plural(counts[ChangeStatus.DECREASED], "price drop", "price drops"))
    if counts.get(ChangeStatus.INCREASED):
        parts.append(_plural(counts[ChangeStatus.INCREASED], "increase", "increases"))
    if counts.get(ChangeStatus.NEW):
        parts.append(_plural(counts[ChangeStatus.NEW], "new unit", "new units"))
    if counts.get(ChangeStatus.REMOVED):
        parts.append(f"{counts[ChangeStatus.REMOVED]} removed")
    if counts.get(ChangeStatus.UNCHANGED):
        parts.append(f"{counts[ChangeStatus.UNCHANGED]} unchanged")
    return " • ".join(parts) if parts else "No units found"


def build_subject(
    report: ReportSnapshot,
    counts: Optional[Dict[ChangeStatus, int]] = None,
    site_name: str = DEFAULT_SITE_NAME,
) -> str:
    if counts is None:
        counts = count_statuses(report)
    status = headline_status(counts)
    headline = HEADLINES[status] if status else "No units found"
    return f"Rent Report {report.date}: {headline} - {site_name}"


def _unit_label(record: ChangeRecord) -> str:
    label = record.unit_id or "Unit"
    if record.floor:
        label += f" (Floor {record.floor})"
    return label


def _text_plan_lines(plan: PlanReport, marker: bool) -> List[str]:
    lines = [
        plan.plan_name,
        f"  URL: {plan.url}",
        f"  Total Units: {plan.total_units}",
        f"  Price Range: {format_price_range(plan.price_range)}",
        "  Units:",
    ]
    if not plan.units:
        lines.append("    (no units found)")
    for record in plan.units:
        change = describe_change(record)
        if marker:
            change = f"{CONSOLE_MARKERS[record.status]} {change}"
        lines.append(
            f"    • {_unit_label(record)}: {format_price(record.current_price)} - {change}"
        )
        if record.availability and record.availability != Availability.UNKNOWN:
            lines.append(f"      Available: {record.availability}")
    lines.append("")
    return lines


def format_console_summary(report: ReportSnapshot) -> str:
    lines = [
        "=" * RULE_WIDTH,
        f"RENT PRICE REPORT - {report.date}",
        "=" * RULE_WIDTH,
        "",
    ]
    for plan in report.plans:
        lines.extend(_text_plan_lines(plan, marker=True))
    lines.append(summary_line(count_statuses(report)))
    lines.append("=" * RULE_WIDTH)
    return "\n".join(lines)


def render_text(report: ReportSnapshot, site_name: str = DEFAULT_SITE_NAME) -> str:
    lines = [
        f"RENT PRICE REPORT - {report.date}",
        site_name,
        "=" * RULE_WIDTH,
        "",
        summary_line(count_statuses(report)),
        "",
    ]
    for plan in report.plans:
        lines.extend(_text_plan_lines(plan, marker=False))
    lines.append("-" * RULE_WIDTH)
    lines.append(f"Generated by FlatWatcher for {site_name}")
    return "\n".join(lines) + "\n"


def _html_unit_row(record: ChangeRecord) -> str:
    color, background = BADGE_COLORS[record.status]
    was = ""
    if record.previous_price is not None and record.status is not ChangeStatus.UNCHANGED:
        was = (
            '<br><span style="color: #9ca3af; font-size: 11px;">'
            f"was {format_price(record.previous_price)}/mo</span>"
        )
    current = (
        f"{format_price(record.current_price)}/mo" if record.current_price is not None else "N/A"
    )
    return (
        "<tr>"
        '<td style="padding: 12px 16px; border-bottom: 1px solid #e5e7eb;">'
        f'<div style="font-weight: 600;">{html.escape(_unit_label(record))}</div>'
        f'<div style="font-size: 12px; color: #16a34a;">{html.escape(record.availability or Availability.UNKNOWN)}</div>'
        "</td>"
        '<td style="padding: 12px 16px; border-bottom: 1px solid #e5e7eb; text-align: right;">'
        f'<span style="font-weight: 700;">{current}</span>{was}'
        "</td>"
        '<td style="padding: 12px 16px; border-bottom: 1px solid #e5e7eb; text-align: center;">'
        f'<span style="padding: 4px 12px; border-radius: 9999px; color: {color}; '
        f'background-color: {background}; font-size: 12px;">'
        f"{CONSOLE_MARKERS[record.status]} {html.escape(describe_change(record))}</span>"
        "</td>"
        "</tr>"
    )


def _html_plan(plan: PlanReport) -> str:
    rows = "".join(_html_unit_row(record) for record in plan.units)
    if not rows:
        rows = '<tr><td colspan="3" style="padding: 12px 16px; color: #6b7280;">No units found</td></tr>'
    units_label = _plural(plan.total_units, "unit", "units")
    return (
        '<div style="margin-bottom: 24px;">'
        '<div style="background-color: #f9fafb; padding: 12px 16px; border-left: 4px solid #3b82f6;">'
        f'<h2 style="margin: 0; font-size: 18px;">{html.escape(plan.plan_name)}</h2>'
        '<p style="margin: 4px 0 0 0; font-size: 13px; color: #6b7280;">'
        f"{units_label} available • Price range: {format_price_range(plan.price_range)}</p>"
        "</div>"
        '<table style="width: 100%; border-collapse: collapse;">'
        "<thead><tr>"
        '<th style="text-align: left; padding: 10px 16px;">Unit &amp; Availability</th>'
        '<th style="text-align: right; padding: 10px 16px;">Monthly Rent</th>'
        '<th style="text-align: center; padding: 10px 16px;">Change</th>'
        "</tr></thead>"
        f"<tbody>{rows}</tbody>"
        "</table>"
        "</div>"
    )


def render_html(report: ReportSnapshot, site_name: str = DEFAULT_SITE_NAME) -> str:
    plans_html = "".join(_html_plan(plan) for plan in report.plans)
    links = " • ".join(
        f'<a href="{html.escape(plan.url, quote=True)}" style="color: #3b82f6;">'
        f"{html.escape(plan.plan_name)}</a>"
        for plan in report.plans
    )
    summary = html.escape(summary_line(count_statuses(report)))
    return (
        "<!DOCTYPE html>"
        '<html><head><meta charset="utf-8"></head>'
        '<body style="margin: 0; font-family: -apple-system, \'Segoe UI\', Roboto, Arial, sans-serif;">'
        '<div style="max-width: 600px; margin: 0 auto; padding: 20px;">'
        '<div style="background: #1d4ed8; padding: 32px 24px; text-align: center; color: white;">'
        '<h1 style="margin: 0; font-size: 24px;">Rent Price Report</h1>'
        f'<p style="margin: 8px 0 0 0;">{html.escape(site_name)} • {html.escape(report.date)}</p>'
        "</div>"
        f'<p style="text-align: center; color: #4b5563;">{summary}</p>'
        f'<div style="padding: 20px;">{plans_html}</div>'
        f'<p style="text-align: center; font-size: 12px;">View listings directly: {links}</p>'
        "</div></body></html>"
    )


# (unit_id, floor, current, previous, availability) rows cycled across plans.
_SAMPLE_PLAN_UNITS = (
    (
        ("350-201", "3", 5010, 5100, Availability.AVAILABLE_NOW),
        ("345-305", "3", 5064, 5064, "Jan 25"),
        ("412-109", "4", 5114, None, "Feb 10"),
    ),
    (
        ("350-227", "3", 5411, None, Availability.AVAILABLE_NOW),
        ("345-222", "3", 5426, None, Availability.AVAILABLE_NOW),
        ("345-208", "3", 5426, None, Availability.AVAILABLE_NOW),
    ),
)


def build_sample_report(
    pages: Sequence[TrackedPage],
    date: Optional[str] = None,
) -> ReportSnapshot:
    """Build a canned report over ``pages`` for checking notification delivery."""
    now = dt.datetime.now(dt.timezone.utc)
    plans: List[PlanReport] = []
    for index, page in enumerate(pages):
        records = []
        for unit_id, floor, current, previous, availability in _SAMPLE_PLAN_UNITS[
            index % len(_SAMPLE_PLAN_UNITS)
        ]:
            status, difference = classify(current, previous)
            records.append(
                ChangeRecord(
                    unit_id=unit_id,
                    floor=floor,
                    current_price=current,
                    previous_price=previous,
                    difference=difference,
                    status=status,
                    availability=availability,
                )
            )
        prices = [record.current_price for record in records]
        plans.append(
            PlanReport(
                plan_name=page.name,
                url=page.url,
                total_units=len(records),
                price_range=PriceRange(min=min(prices), max=max(prices)),
                units=records,
            )
        )
    return ReportSnapshot(
        date=date or now.date().isoformat(),
        timestamp=now.isoformat(),
        plans=plans,
    )


__all__ = [
    "build_sample_report",
    "build_subject",
    "describe_change",
    "format_console_summary",
    "format_price",
    "format_price_range",
    "render_html",
    "render_text",
    "summary_line",
]
