import pytest

from flatwatcher.db import Database, PersistenceError
from flatwatcher.models import (
    Availability,
    ChangeStatus,
    ErrorKind,
    ObservationSnapshot,
    PlanSnapshot,
    TrackedPage,
    UnitRecord,
)
from flatwatcher.runner import FlatWatcherRunner

PAGES = [
    TrackedPage(name="Plan B", url="https://example.com/plan-b"),
    TrackedPage(name="Plan C + Den", url="https://example.com/plan-c"),
]


class RecordingNotifier:

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send(self, report, subject):
        if self.fail:
            raise RuntimeError("resend rejected the request")
        self.sent.append((report, subject))


def make_observation(date: str, plan_b_price: int = 5100, include_removed: bool = True) -> ObservationSnapshot:
    plan_b_units = [
        UnitRecord(unit_id="350-201", floor="3", price=plan_b_price, availability=Availability.AVAILABLE_NOW),
    ]
    if include_removed:
        plan_b_units.append(
            UnitRecord(unit_id="412-109", floor="4", price=5114, availability="Feb 10"),
        )
    return ObservationSnapshot(
        date=date,
        timestamp=f"{date}T08:00:00+00:00",
        plans=(
            PlanSnapshot(
                plan_name="Plan B",
                url="https://example.com/plan-b",
                units=tuple(plan_b_units),
                scraped_at=f"{date}T08:00:04+00:00",
                strategy="structured",
            ),
            PlanSnapshot(
                plan_name="Plan C + Den",
                url="https://example.com/plan-c",
                units=(),
                scraped_at=f"{date}T08:00:09+00:00",
                success=False,
                error="timed out after 60000 ms",
                error_kind=ErrorKind.TRANSPORT_FAILURE,
            ),
        ),
    )


def build_runner(tmp_path, observation=None, **kwargs) -> FlatWatcherRunner:
    observation = observation or make_observation("2026-01-01")
    runner = FlatWatcherRunner(
        database=Database(path=tmp_path / "runs.db"),
        pages=list(PAGES),
        scraper=lambda pages, timeout_ms: observation,
        **kwargs,
    )
    runner.init()
    return runner


def test_runner_initializes_schema(tmp_path):
    runner = build_runner(tmp_path)
    assert runner.database.path.exists()


def test_first_run_reports_everything_as_new(tmp_path):
    notifier = RecordingNotifier()
    runner = build_runner(tmp_path, notifier=notifier)

    summary = runner.run()

    assert summary.persisted is True
    assert summary.notified is True
    assert summary.has_updates is True
    assert summary.status_counts[ChangeStatus.NEW] == 2
    assert runner.database.count_observations() == 1
    assert len(notifier.sent) == 1
    assert notifier.sent[0][1] == "Rent Report 2026-01-01: New units listed - CityLine Flats"

    executed_at, status, notes = list(runner.database.recent_runs())[0]
    assert executed_at == summary.executed_at
    assert status == "success"
    assert notes == "plans(2 / failed 1 / empty 0) units(+2 / -0 / ↑0 / ↓0 / =0)"


def test_second_run_compares_against_last_observation(tmp_path):
    runner = build_runner(tmp_path)
    runner.run()

    runner.scraper = lambda pages, timeout_ms: make_observation(
        "2026-01-02", plan_b_price=5010, include_removed=False
    )
    summary = runner.run()

    records = summary.report.plans[0].units
    assert [(record.unit_id, record.status) for record in records] == [
        ("350-201", ChangeStatus.DECREASED),
        ("412-109", ChangeStatus.REMOVED),
    ]
    assert records[0].difference == -90
    assert runner.database.count_observations() == 2
    assert runner.database.get_last().date == "2026-01-02"


def test_dry_run_neither_persists_nor_notifies(tmp_path):
    notifier = RecordingNotifier()
    runner = build_runner(tmp_path, notifier=notifier)

    summary = runner.run(dry_run=True)

    assert summary.persisted is False
    assert summary.notified is False
    assert notifier.sent == []
    assert runner.database.get_last() is None

    entries = list(runner.database.recent_runs())
    assert len(entries) == 1
    _, status, notes = entries[0]
    assert status == "dry_run"
    assert notes.startswith("dry-run ")


def test_notification_failure_does_not_block_persistence(tmp_path, caplog):
    runner = build_runner(tmp_path, notifier=RecordingNotifier(fail=True))

    with caplog.at_level("ERROR"):
        summary = runner.run()

    assert summary.notified is False
    assert summary.persisted is True
    assert runner.database.count_observations() == 1
    assert "notification_failure" in caplog.text


def test_partial_delivery_is_not_counted_as_notified(tmp_path):
    class PartialNotifier:

        def send(self, report, subject):
            return False

    runner = build_runner(tmp_path, notifier=PartialNotifier())

    assert runner.run().notified is False


def test_conditional_mode_skips_notification_without_updates(tmp_path):
    observation = make_observation("2026-01-01")
    notifier = RecordingNotifier()
    runner = build_runner(tmp_path, observation=observation, notifier=notifier, send_mode="conditional")

    runner.run()
    assert len(notifier.sent) == 1

    summary = runner.run()

    assert summary.has_updates is False
    assert summary.status_counts[ChangeStatus.UNCHANGED] == 2
    assert summary.notified is False
    assert len(notifier.sent) == 1
    assert runner.database.count_observations() == 2


def test_always_mode_notifies_without_updates(tmp_path):
    notifier = RecordingNotifier()
    runner = build_runner(tmp_path, notifier=notifier, send_mode="always")

    runner.run()
    runner.run()

    assert len(notifier.sent) == 2
    assert "No changes" in notifier.sent[1][1]


def test_persistence_failure_propagates(tmp_path, monkeypatch):
    runner = build_runner(tmp_path)

    def failing_append(observation):
        raise PersistenceError("disk full")

    monkeypatch.setattr(runner.database, "append", failing_append)

    with pytest.raises(PersistenceError):
        runner.run()


def test_scraper_exception_is_recorded_and_reraised(tmp_path):
    runner = build_runner(tmp_path)

    def exploding_scraper(pages, timeout_ms):
        raise RuntimeError("playwright not installed")

    runner.scraper = exploding_scraper

    with pytest.raises(RuntimeError):
        runner.run()

    _, status, notes = list(runner.database.recent_runs())[0]
    assert status == "error"
    assert "playwright not installed" in notes
    assert runner.database.get_last() is None
