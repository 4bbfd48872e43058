"""Drive tracked plan pages through rendering and the extraction chain."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, List, Sequence, Tuple

from .extraction import DEFAULT_STRATEGIES, Strategy, extract_units
from .models import ErrorKind, ObservationSnapshot, PlanSnapshot, TrackedPage
from .render import DEFAULT_TIMEOUT_MS, PlaywrightRenderer, RenderError, Renderer

logger = logging.getLogger(__name__)

RendererFactory = Callable[[], Renderer]


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _failed_plan(page: TrackedPage, reason: str) -> PlanSnapshot:
    return PlanSnapshot(
        plan_name=page.name,
        url=page.url,
        units=(),
        scraped_at=_utcnow().isoformat(),
        success=False,
        error=reason,
        error_kind=ErrorKind.TRANSPORT_FAILURE,
    )


def scrape_plan(
    renderer: Renderer,
    page: TrackedPage,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    strategies: Sequence[Tuple[str, Strategy]] = DEFAULT_STRATEGIES,
) -> PlanSnapshot:
    """Render one tracked page and extract its units."""
    logger.info("Scraping %s (%s)", page.name, page.url)
    try:
        rendered = renderer.render(page.url, timeout_ms=timeout_ms)
    except RenderError as exc:
        logger.warning("Failed to load %s: %s", page.name, exc.reason)
        return _failed_plan(page, exc.reason)

    result = extract_units(rendered, strategies=strategies)
    scraped_at = _utcnow().isoformat()
    if not result.units:
        logger.warning(
            "No units extracted from %s; selectors may need updating (%s)",
            page.name,
            page.url,
        )
        return PlanSnapshot(
            plan_name=page.name,
            url=page.url,
            units=(),
            scraped_at=scraped_at,
            success=True,
            error_kind=ErrorKind.EXTRACTION_EMPTY,
        )

    logger.info(
        "Extracted %d unit(s) from %s using %s strategy",
        len(result.units),
        page.name,
        result.strategy,
    )
    return PlanSnapshot(
        plan_name=page.name,
        url=page.url,
        units=tuple(result.units),
        scraped_at=scraped_at,
        success=True,
        strategy=result.strategy,
    )


def scrape_all_plans(
    pages: Sequence[TrackedPage],
    renderer_factory: RendererFactory = PlaywrightRenderer,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    strategies: Sequence[Tuple[str, Strategy]] = DEFAULT_STRATEGIES,
) -> ObservationSnapshot:
    """Scrape every tracked page sequentially with a single renderer session."""
    started = _utcnow()
    plans: List[PlanSnapshot] = []

    with renderer_factory() as renderer:
        for page in pages:
            try:
                plan = scrape_plan(renderer, page, timeout_ms=timeout_ms, strategies=strategies)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected failure while scraping %s", page.name)
                plan = _failed_plan(page, str(exc) or type(exc).__name__)
            plans.append(plan)

    succeeded = sum(1 for plan in plans if plan.success)
    logger.info("Scraped %d/%d plan page(s) successfully", succeeded, len(plans))
    return ObservationSnapshot(
        date=started.date().isoformat(),
        timestamp=started.isoformat(),
        plans=tuple(plans),
    )
