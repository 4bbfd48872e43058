import pytest

from flatwatcher.extraction import DEFAULT_STRATEGIES, RenderedPage
from flatwatcher.models import ErrorKind, PriceRange, TrackedPage
from flatwatcher.render import RenderError
from flatwatcher.scraper import scrape_all_plans, scrape_plan

PLAN_B = TrackedPage(name="Plan B", url="https://example.com/plan-b")
PLAN_C = TrackedPage(name="Plan C + Den", url="https://example.com/plan-c")

PLAN_B_HTML = """
<div class="unit-card" data-unit="350-201" data-available-now="true">
  <span class="price">$5,010</span>
</div>
<div class="unit-card" data-unit="412-109" data-available-date="2026-02-10">
  <span class="price">$5,114</span>
</div>
"""


class FakeRenderer:
    """Serves canned HTML (or raises) per URL and records its lifecycle."""

    def __init__(self, responses):
        self.responses = responses
        self.rendered = []
        self.entered = False
        self.closed = False

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.closed = True

    def render(self, url, timeout_ms=60000):
        self.rendered.append((url, timeout_ms))
        response = self.responses[url]
        if isinstance(response, BaseException):
            raise response
        return RenderedPage.from_html(url, response)


def test_scrape_plan_extracts_units_and_price_range():
    renderer = FakeRenderer({PLAN_B.url: PLAN_B_HTML})

    plan = scrape_plan(renderer, PLAN_B, timeout_ms=5000)

    assert plan.success is True
    assert plan.error is None
    assert plan.error_kind is None
    assert plan.strategy == "structured"
    assert plan.total_units == 2
    assert plan.price_range == PriceRange(min=5010, max=5114)
    assert [unit.availability for unit in plan.units] == ["Available Now", "Feb 10"]
    assert renderer.rendered == [(PLAN_B.url, 5000)]


def test_scrape_plan_render_failure_skips_extraction():
    renderer = FakeRenderer({PLAN_B.url: RenderError(PLAN_B.url, "timed out after 5000 ms")})
    invoked = []

    def recording_strategy(page):
        invoked.append(page.url)
        return []

    plan = scrape_plan(renderer, PLAN_B, strategies=[("recording", recording_strategy)])

    assert invoked == []
    assert plan.success is False
    assert plan.units == ()
    assert plan.total_units == 0
    assert plan.price_range is None
    assert plan.error == "timed out after 5000 ms"
    assert plan.error_kind is ErrorKind.TRANSPORT_FAILURE


def test_scrape_plan_with_no_matches_is_flagged_empty(caplog):
    renderer = FakeRenderer({PLAN_B.url: "<p>Contact the leasing office.</p>"})

    with caplog.at_level("WARNING"):
        plan = scrape_plan(renderer, PLAN_B)

    assert plan.success is True
    assert plan.total_units == 0
    assert plan.price_range is None
    assert plan.error_kind is ErrorKind.EXTRACTION_EMPTY
    assert "No units extracted from Plan B" in caplog.text


def test_scrape_all_plans_continues_after_page_failure():
    renderer = FakeRenderer(
        {
            PLAN_B.url: RuntimeError("browser crashed"),
            PLAN_C.url: "<p>Unit 350-227 Available Now $5,411 /mo</p>",
        }
    )

    observation = scrape_all_plans([PLAN_B, PLAN_C], renderer_factory=lambda: renderer)

    assert renderer.entered is True
    assert renderer.closed is True
    assert [plan.plan_name for plan in observation.plans] == ["Plan B", "Plan C + Den"]

    failed, succeeded = observation.plans
    assert failed.success is False
    assert failed.error == "browser crashed"
    assert failed.error_kind is ErrorKind.TRANSPORT_FAILURE
    assert succeeded.success is True
    assert succeeded.strategy == "pattern"
    assert [unit.price for unit in succeeded.units] == [5411]
    assert observation.date == observation.timestamp[:10]


def test_scrape_all_plans_releases_renderer_on_interrupt():
    renderer = FakeRenderer({PLAN_B.url: KeyboardInterrupt()})

    with pytest.raises(KeyboardInterrupt):
        scrape_all_plans([PLAN_B], renderer_factory=lambda: renderer)

    assert renderer.closed is True


def test_scrape_all_plans_visits_pages_in_order():
    renderer = FakeRenderer({PLAN_B.url: PLAN_B_HTML, PLAN_C.url: PLAN_B_HTML})

    scrape_all_plans(
        [PLAN_C, PLAN_B],
        renderer_factory=lambda: renderer,
        timeout_ms=1234,
        strategies=DEFAULT_STRATEGIES,
    )

    assert renderer.rendered == [(PLAN_C.url, 1234), (PLAN_B.url, 1234)]
