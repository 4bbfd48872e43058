"""Environment-driven settings for a monitoring run."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from .models import TrackedPage
from .notifications import SEND_MODE_ALWAYS
from .render import DEFAULT_TIMEOUT_MS
from .report import DEFAULT_SITE_NAME

DEFAULT_DATABASE_URL = "sqlite:///data/flatwatcher.db"
DEFAULT_ENV_FILE = ".env"

DEFAULT_PAGES: Tuple[TrackedPage, ...] = (
    TrackedPage(
        name="Plan B",
        url="https://citylineflats.com/apartments/?spaces_tab=plan-detail&detail=162036",
    ),
    TrackedPage(
        name="Plan C + Den",
        url="https://citylineflats.com/apartments/?spaces_tab=plan-detail&detail=162039",
    ),
)


@dataclass
class Settings:
    """Resolved configuration for one invocation."""

    database_url: str = DEFAULT_DATABASE_URL
    send_mode: str = SEND_MODE_ALWAYS
    page_timeout_ms: int = DEFAULT_TIMEOUT_MS
    site_name: str = DEFAULT_SITE_NAME
    pages: List[TrackedPage] = field(default_factory=lambda: list(DEFAULT_PAGES))


def load_tracked_pages(path: Path) -> List[TrackedPage]:
    """Read a JSON list of ``{"name": ..., "url": ...}`` objects."""
    entries = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(entries, list):
        raise ValueError(f"{path} must contain a JSON list of pages")
    pages: List[TrackedPage] = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("name") or not entry.get("url"):
            raise ValueError(f"Invalid tracked page entry in {path}: {entry!r}")
        pages.append(TrackedPage(name=str(entry["name"]), url=str(entry["url"])))
    if not pages:
        raise ValueError(f"{path} does not list any pages")
    return pages


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def load_settings(pages_file: Optional[str] = None, env_file: Optional[str] = None) -> Settings:
    """Build settings from environment variables, with an optional pages file override.

    Values in the dotenv file (``.env`` in the working directory by default) fill
    in variables that are not already set in the environment.
    """
    if env_file and not Path(env_file).is_file():
        raise ValueError(f"Env file {env_file} does not exist")
    load_dotenv(env_file or DEFAULT_ENV_FILE)
    pages_path = pages_file or (os.getenv("TRACKED_PAGES_FILE") or "").strip()
    pages = load_tracked_pages(Path(pages_path)) if pages_path else list(DEFAULT_PAGES)
    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        send_mode=(os.getenv("SEND_MODE") or SEND_MODE_ALWAYS).strip().lower(),
        page_timeout_ms=_int_env("PAGE_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
        site_name=os.getenv("SITE_NAME", DEFAULT_SITE_NAME),
        pages=pages,
    )
