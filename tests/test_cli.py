import monitor_flats
from flatwatcher.db import Database, resolve_sqlite_path
from flatwatcher.models import Availability, ObservationSnapshot, PlanSnapshot, UnitRecord

NOTIFIER_ENV = ("RESEND_API_KEY", "RECIPIENT_EMAIL", "SENDER_EMAIL", "SLACK_WEBHOOK")


def configure_env(monkeypatch, tmp_path):
    for name in NOTIFIER_ENV + ("TRACKED_PAGES_FILE", "SEND_MODE", "PAGE_TIMEOUT_MS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    database_url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", database_url)
    return resolve_sqlite_path(database_url)


def fake_scraper(pages, timeout_ms):
    return ObservationSnapshot(
        date="2026-01-01",
        timestamp="2026-01-01T08:00:00+00:00",
        plans=tuple(
            PlanSnapshot(
                plan_name=page.name,
                url=page.url,
                units=(
                    UnitRecord(
                        unit_id="350-201",
                        floor="3",
                        price=5010,
                        availability=Availability.AVAILABLE_NOW,
                    ),
                ),
                scraped_at="2026-01-01T08:00:01+00:00",
                strategy="structured",
            )
            for page in pages
        ),
    )


def test_init_creates_database(monkeypatch, tmp_path):
    db_path = configure_env(monkeypatch, tmp_path)

    assert monitor_flats.main(["--init"]) == 0
    assert db_path.exists()


def test_without_run_flag_prints_help(monkeypatch, tmp_path, capsys):
    configure_env(monkeypatch, tmp_path)

    assert monitor_flats.main([]) == 1
    assert "--dry-run" in capsys.readouterr().out


def test_invalid_pages_file_is_a_configuration_error(monkeypatch, tmp_path):
    configure_env(monkeypatch, tmp_path)
    pages_file = tmp_path / "pages.json"
    pages_file.write_text("{}", encoding="utf-8")

    assert monitor_flats.main(["--run", "--pages-file", str(pages_file)]) == 2


def test_run_appends_history_and_exports(monkeypatch, tmp_path):
    db_path = configure_env(monkeypatch, tmp_path)
    monkeypatch.setattr("flatwatcher.runner._default_scraper", fake_scraper)
    export_path = tmp_path / "units.xlsx"

    assert monitor_flats.main(["--run", "--export", str(export_path)]) == 0

    database = Database(path=db_path)
    assert database.count_observations() == 1
    assert export_path.exists()


def test_dry_run_leaves_history_untouched(monkeypatch, tmp_path):
    db_path = configure_env(monkeypatch, tmp_path)
    monkeypatch.setattr("flatwatcher.runner._default_scraper", fake_scraper)

    assert monitor_flats.main(["--run", "--dry-run"]) == 0

    database = Database(path=db_path)
    assert database.get_last() is None
    assert [status for _, status, _ in database.recent_runs()] == ["dry_run"]


def test_browser_failure_is_logged_and_exits_nonzero(monkeypatch, tmp_path, caplog):
    db_path = configure_env(monkeypatch, tmp_path)

    def failing_scraper(pages, timeout_ms):
        raise RuntimeError("Executable doesn't exist at chromium")

    monkeypatch.setattr("flatwatcher.runner._default_scraper", failing_scraper)

    with caplog.at_level("ERROR"):
        assert monitor_flats.main(["--run"]) == 1

    assert "Monitor cycle aborted" in caplog.text
    _, status, notes = list(Database(path=db_path).recent_runs())[0]
    assert status == "error"
    assert "Executable doesn't exist" in notes


class DummyResponse:

    def raise_for_status(self):
        pass

    def json(self):
        return {"id": "email-123"}


def test_test_email_sends_sample_report(monkeypatch, tmp_path):
    db_path = configure_env(monkeypatch, tmp_path)
    monkeypatch.setenv("RESEND_API_KEY", "re_test")
    monkeypatch.setenv("RECIPIENT_EMAIL", "a@example.com")
    calls = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append(json)
        return DummyResponse()

    monkeypatch.setattr("flatwatcher.notifications.requests.post", fake_post)

    assert monitor_flats.main(["--test-email"]) == 0

    assert len(calls) == 1
    assert calls[0]["subject"].startswith("[TEST] Rent Report ")
    assert "350-201 (Floor 3): $5,010 - Decreased by $90" in calls[0]["text"]
    assert not db_path.exists()


def test_test_email_without_notifier_fails(monkeypatch, tmp_path, caplog):
    configure_env(monkeypatch, tmp_path)

    with caplog.at_level("ERROR"):
        assert monitor_flats.main(["--test-email"]) == 1

    assert "No notifier configured" in caplog.text
