"""CLI entrypoint for the FlatWatcher agent."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from flatwatcher.config import Settings, load_settings
from flatwatcher.db import Database, PersistenceError, resolve_sqlite_path
from flatwatcher.models import ChangeStatus
from flatwatcher.notifications import SEND_MODES, CompositeNotifier, build_notifier_from_env
from flatwatcher.report import build_sample_report, build_subject, render_text
from flatwatcher.runner import FlatWatcherRunner

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="FlatWatcher rent tracking agent")
    parser.add_argument("--init", action="store_true", help="initialize storage and exit")
    parser.add_argument(
        "--run",
        action="store_true",
        help="execute one monitoring cycle",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="skip notifications and history updates while still scraping and diffing",
    )
    parser.add_argument(
        "--pages-file",
        help="JSON file listing tracked pages (overrides TRACKED_PAGES_FILE env var)",
    )
    parser.add_argument(
        "--env-file",
        help="dotenv file to load before reading settings (default: ./.env)",
    )
    parser.add_argument(
        "--send-mode",
        choices=SEND_MODES,
        help="notification policy (overrides SEND_MODE env var)",
    )
    parser.add_argument(
        "--export",
        metavar="PATH",
        help="write the latest observation's units to an .xlsx workbook",
    )
    parser.add_argument(
        "--test-email",
        action="store_true",
        help="send a sample report through the configured notifiers and exit",
    )
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    return parser


def send_test_report(notifier: CompositeNotifier | None, settings: Settings) -> int:
    """Deliver a canned report so channel credentials can be checked without scraping."""
    report = build_sample_report(settings.pages)
    logger.info("Test report:\n%s", render_text(report, site_name=settings.site_name))
    if notifier is None:
        logger.error("No notifier configured; set RESEND_API_KEY and RECIPIENT_EMAIL or SLACK_WEBHOOK")
        return 1
    subject = f"[TEST] {build_subject(report, site_name=settings.site_name)}"
    if not notifier.send(report, subject):
        logger.error("Test report was not delivered to every channel")
        return 1
    logger.info("Test report sent: %s", subject)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = load_settings(pages_file=args.pages_file, env_file=args.env_file)
    except (OSError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    if args.send_mode:
        settings.send_mode = args.send_mode

    notifier = build_notifier_from_env(site_name=settings.site_name)
    if args.test_email:
        return send_test_report(notifier, settings)

    database = Database(path=resolve_sqlite_path(settings.database_url))
    runner = FlatWatcherRunner(
        database=database,
        pages=settings.pages,
        notifier=notifier,
        send_mode=settings.send_mode,
        site_name=settings.site_name,
        timeout_ms=settings.page_timeout_ms,
    )

    if args.init:
        runner.init()
        return 0

    if not args.run:
        parser.print_help()
        return 1

    try:
        summary = runner.run(dry_run=args.dry_run)
    except PersistenceError as exc:
        logger.error("History store failure: %s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Monitor cycle aborted before completion")
        return 1

    counts = summary.status_counts
    logger.info(
        "Run complete: %d new, %d removed, %d increased, %d decreased, %d unchanged",
        counts[ChangeStatus.NEW],
        counts[ChangeStatus.REMOVED],
        counts[ChangeStatus.INCREASED],
        counts[ChangeStatus.DECREASED],
        counts[ChangeStatus.UNCHANGED],
    )
    for plan in summary.observation.plans:
        if not plan.success:
            logger.warning("%s failed: %s", plan.plan_name, plan.error)

    if args.export and not args.dry_run:
        try:
            export_path = database.export_units_to_xlsx(Path(args.export))
            logger.info("Exported unit inventory to %s", export_path)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to export unit inventory snapshot")
    return 0


if __name__ == "__main__":
    sys.exit(main())
