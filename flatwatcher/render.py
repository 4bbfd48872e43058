"""Playwright-backed page rendering shared across one monitoring run."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from playwright.sync_api import Browser, BrowserContext, Error as PlaywrightError, Page, Playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from .extraction import RenderedPage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 60000
DEFAULT_SETTLE_MS = 3000
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class RenderError(Exception):
    """Raised when a page cannot be loaded or rendered."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class Renderer(Protocol):
    """Protocol defining the render capability contract."""

    def render(self, url: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> RenderedPage:
        ...

    def __enter__(self) -> "Renderer":
        ...

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        ...


class PlaywrightRenderer:
    """Owns one Chromium browser, context and tab for the duration of a run."""

    def __init__(self, headless: bool = True, settle_ms: int = DEFAULT_SETTLE_MS):
        self.headless = headless
        self.settle_ms = settle_ms
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    def launch(self) -> None:
        self.playwright = sync_playwright().start()
        try:
            self.browser = self.playwright.chromium.launch(headless=self.headless)
            self.context = self.browser.new_context(user_agent=USER_AGENT)
            self.page = self.context.new_page()
        except Exception:
            self.close()
            raise
        logger.info("Playwright browser launched")

    def close(self) -> None:
        if self.browser:
            try:
                self.browser.close()
            except PlaywrightError as exc:
                logger.warning("Failed to close browser cleanly: %s", exc)
        if self.playwright:
            self.playwright.stop()
        self.page = None
        self.context = None
        self.browser = None
        self.playwright = None
        logger.info("Playwright browser closed")

    def __enter__(self) -> "PlaywrightRenderer":
        self.launch()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def render(self, url: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> RenderedPage:
        if self.page is None:
            raise RuntimeError("PlaywrightRenderer.render called before launch()")

        logger.debug("Loading %s (timeout %d ms)", url, timeout_ms)
        try:
            self.page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            if self.settle_ms:
                self.page.wait_for_timeout(self.settle_ms)
            html = self.page.content()
            text = self.page.inner_text("body", timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise RenderError(url, f"timed out after {timeout_ms} ms: {exc}") from exc
        except PlaywrightError as exc:
            raise RenderError(url, str(exc)) from exc

        logger.debug("Rendered %s (%d bytes HTML, %d chars text)", url, len(html), len(text))
        return RenderedPage(url=url, html=html, text=text)
