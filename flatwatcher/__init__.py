"""FlatWatcher package initialization."""

from .db import Database, PersistenceError
from .diff import count_statuses, has_updates, headline_status, reconcile
from .extraction import RenderedPage, extract_units
from .models import (
    Availability,
    ChangeRecord,
    ChangeStatus,
    ErrorKind,
    ObservationSnapshot,
    PlanReport,
    PlanSnapshot,
    PriceRange,
    ReportSnapshot,
    RunSummary,
    TrackedPage,
    UnitRecord,
)
from .runner import FlatWatcherRunner
from .scraper import scrape_all_plans, scrape_plan

__all__ = [
    "Availability",
    "ChangeRecord",
    "ChangeStatus",
    "Database",
    "ErrorKind",
    "FlatWatcherRunner",
    "ObservationSnapshot",
    "PersistenceError",
    "PlanReport",
    "PlanSnapshot",
    "PriceRange",
    "RenderedPage",
    "ReportSnapshot",
    "RunSummary",
    "TrackedPage",
    "UnitRecord",
    "count_statuses",
    "extract_units",
    "has_updates",
    "headline_status",
    "reconcile",
    "scrape_all_plans",
    "scrape_plan",
]
