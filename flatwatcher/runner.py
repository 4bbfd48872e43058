"""Core execution workflow for FlatWatcher."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from .db import Database
from .diff import count_statuses, has_updates, reconcile
from .models import (
    ChangeStatus,
    ErrorKind,
    ObservationSnapshot,
    ReportSnapshot,
    RunSummary,
    TrackedPage,
)
from .notifications import SEND_MODE_ALWAYS, Notifier, should_notify
from .render import DEFAULT_TIMEOUT_MS
from .report import DEFAULT_SITE_NAME, build_subject, format_console_summary
from .scraper import scrape_all_plans

logger = logging.getLogger(__name__)

Scraper = Callable[[Sequence[TrackedPage], int], ObservationSnapshot]


def _default_scraper(pages: Sequence[TrackedPage], timeout_ms: int) -> ObservationSnapshot:
    return scrape_all_plans(pages, timeout_ms=timeout_ms)


@dataclass
class FlatWatcherRunner:
    """Coordinates scrape, reconcile, notify, and persistence steps."""

    database: Database
    pages: List[TrackedPage]
    scraper: Scraper = field(default_factory=lambda: _default_scraper)
    notifier: Optional[Notifier] = None
    send_mode: str = SEND_MODE_ALWAYS
    site_name: str = DEFAULT_SITE_NAME
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def init(self) -> None:
        """Initialize required persistence structures."""
        logger.info("Initializing database at %s", self.database.path)
        self.database.initialize()

    def run(self, dry_run: bool = False) -> RunSummary:
        """Execute a single monitoring cycle."""
        logger.info("Starting monitor cycle for %d plan page(s)", len(self.pages))
        executed_at = dt.datetime.now(dt.timezone.utc).isoformat()
        self.database.initialize()

        try:
            observation = self.scraper(self.pages, self.timeout_ms)
        except Exception as exc:
            logger.exception("Scraping failed: %s", exc)
            self.database.add_run(
                executed_at=executed_at,
                status="error",
                notes=f"scrape_failed: {exc}",
            )
            raise

        previous = self.database.get_last()
        if previous is not None:
            logger.info("Found previous observation from %s", previous.date)
        else:
            logger.info("No previous observation found (first run)")

        report = reconcile(observation, previous)
        counts = count_statuses(report)
        updates = has_updates(report)
        logger.info("Rent report:\n%s", format_console_summary(report))
        logger.info("Report has updates: %s", updates)

        notified = False
        if dry_run:
            logger.info("Dry run: skipping notifications and history update")
        else:
            notified = self._notify(report, counts, updates)

        persisted = False
        if dry_run:
            note = _format_note(observation, counts, prefix="dry-run ")
            status = "dry_run"
        else:
            self.database.append(observation)
            persisted = True
            logger.info("Observation for %s appended to history", observation.date)
            note = _format_note(observation, counts)
            status = "success"

        self.database.add_run(executed_at=executed_at, status=status, notes=note)
        logger.info("Run recorded at %s", executed_at)
        return RunSummary(
            executed_at=executed_at,
            observation=observation,
            report=report,
            status_counts=counts,
            has_updates=updates,
            notified=notified,
            persisted=persisted,
        )

    def _notify(
        self,
        report: ReportSnapshot,
        counts: Dict[ChangeStatus, int],
        updates: bool,
    ) -> bool:
        if self.notifier is None:
            logger.debug("No notifier configured; skipping delivery")
            return False
        if not should_notify(self.send_mode, updates):
            logger.info("Send mode %s and no updates found; skipping notification", self.send_mode)
            return False

        subject = build_subject(report, counts, site_name=self.site_name)
        try:
            result = self.notifier.send(report, subject)
        except Exception:  # noqa: BLE001
            logger.exception("Notification failed (%s); continuing", ErrorKind.NOTIFICATION_FAILURE.value)
            return False
        if result is False:
            logger.warning("Notification was not delivered to every channel")
            return False
        logger.info("Notification delivered: %s", subject)
        return True


def _format_note(
    observation: ObservationSnapshot,
    counts: Dict[ChangeStatus, int],
    prefix: str = "",
) -> str:
    """Render a concise run note summarizing the reconcile outcome."""
    failed = sum(1 for plan in observation.plans if not plan.success)
    empty = sum(
        1 for plan in observation.plans if plan.error_kind is ErrorKind.EXTRACTION_EMPTY
    )
    return (
        f"{prefix}"
        f"plans({len(observation.plans)} / failed {failed} / empty {empty}) "
        f"units(+{counts[ChangeStatus.NEW]} / -{counts[ChangeStatus.REMOVED]} / "
        f"↑{counts[ChangeStatus.INCREASED]} / ↓{counts[ChangeStatus.DECREASED]} / "
        f"={counts[ChangeStatus.UNCHANGED]})"
    )
