"""SQLite-backed append-only history of observations."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple

from openpyxl import Workbook

from .models import ErrorKind, ObservationSnapshot

SQLITE_PREFIX = "sqlite://"

EXPORT_HEADERS = [
    "date",
    "plan_name",
    "url",
    "unit_id",
    "floor",
    "price",
    "availability",
    "scraped_at",
]


class PersistenceError(Exception):
    """Raised when the history store cannot be read or written."""

    error_kind = ErrorKind.PERSISTENCE_FAILURE


def resolve_sqlite_path(database_url: str) -> Path:
    """Translate a DATABASE_URL into a filesystem path."""
    if not database_url:
        raise ValueError("DATABASE_URL must not be empty")

    if database_url.startswith(SQLITE_PREFIX):
        raw_path = database_url[len(SQLITE_PREFIX) :]
        # Allow sqlite:///path/to/file and sqlite://path/to/file styles.
        if raw_path.startswith("/"):
            raw_path = raw_path[1:]
        path = Path(raw_path)
    else:
        path = Path(database_url)

    if not path.is_absolute():
        path = Path.cwd() / path

    return path.expanduser().resolve()


@dataclass
class Database:
    """Thin wrapper around sqlite3 for run bookkeeping and observation history."""

    path: Path

    def connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(self.path)

    def initialize(self) -> None:
        try:
            with self.connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS runs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        executed_at TEXT NOT NULL,
                        status TEXT NOT NULL,
                        notes TEXT
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS observations (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        observed_on TEXT NOT NULL,
                        observed_at TEXT NOT NULL,
                        payload TEXT NOT NULL
                    )
                    """
                )
                conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Failed to initialize {self.path}: {exc}") from exc

    def add_run(self, executed_at: str, status: str, notes: str | None) -> None:
        try:
            with self.connect() as conn:
                conn.execute(
                    "INSERT INTO runs (executed_at, status, notes) VALUES (?, ?, ?)",
                    (executed_at, status, notes),
                )
                conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Failed to record run: {exc}") from exc

    def recent_runs(self, limit: int = 10) -> Iterable[Tuple[str, str, str | None]]:
        with self.connect() as conn:
            cursor = conn.execute(
                "SELECT executed_at, status, notes FROM runs ORDER BY id DESC LIMIT ?",
                (limit,),
            )
            yield from cursor.fetchall()

    def get_last(self) -> Optional[ObservationSnapshot]:
        """Return the most recent observation, or ``None`` for an empty history."""
        if not self.path.exists():
            return None
        try:
            with self.connect() as conn:
                row = conn.execute(
                    "SELECT payload FROM observations ORDER BY id DESC LIMIT 1"
                ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to read history from {self.path}: {exc}") from exc
        if not row:
            return None
        try:
            return ObservationSnapshot.from_dict(json.loads(row[0]))
        except (ValueError, KeyError, TypeError) as exc:
            raise PersistenceError(f"Corrupt observation payload in {self.path}: {exc}") from exc

    def append(self, observation: ObservationSnapshot) -> None:
        """Append an observation; existing history is never rewritten."""
        payload = json.dumps(observation.to_dict(), ensure_ascii=False)
        try:
            with self.connect() as conn:
                conn.execute(
                    """
                    INSERT INTO observations (observed_on, observed_at, payload)
                    VALUES (?, ?, ?)
                    """,
                    (observation.date, observation.timestamp, payload),
                )
                conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Failed to append observation to {self.path}: {exc}") from exc

    def count_observations(self) -> int:
        if not self.path.exists():
            return 0
        with self.connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM observations").fetchone()[0]

    def export_units_to_xlsx(self, export_path: Path) -> Path:
        """Write the units of the latest observation to an Excel workbook."""
        observation = self.get_last()
        workbook = Workbook()
        worksheet = workbook.active
        worksheet.title = "units"
        worksheet.append(EXPORT_HEADERS)

        if observation is not None:
            for plan in observation.plans:
                for unit in plan.units:
                    worksheet.append(
                        [
                            observation.date,
                            plan.plan_name,
                            plan.url,
                            unit.unit_id,
                            unit.floor or "",
                            unit.price,
                            unit.availability,
                            plan.scraped_at,
                        ]
                    )

        export_path.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(export_path)
        return export_path
