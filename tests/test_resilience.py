from __future__ import annotations

import random

import pytest

from webscraper.crawler.constants import (
    DEFAULT_USER_AGENT,
    FLAGGED_MAX_ATTEMPTS,
    USER_AGENT_POOL,
)
from webscraper.crawler.config import CrawlConfig
from webscraper.crawler.resilience import ResiliencePolicy
from webscraper.crawler.types import FetchBackend, RenderedPage

FLAGGED = "https://www.amazon.es/dp/123"
NORMAL = "https://ex.com/page"


def _page(status_code: int | None, error: str | None = None) -> RenderedPage:
    return RenderedPage(
        requested_url=NORMAL,
        final_url=NORMAL,
        status_code=status_code,
        content_type="text/html",
        error=error,
    )


def test_flagged_domain_classification(seeded_policy):
    assert seeded_policy.is_flagged(FLAGGED)
    assert seeded_policy.is_flagged("https://listado.mercadolibre.com.mx/x")
    assert not seeded_policy.is_flagged(NORMAL)
    assert not seeded_policy.is_flagged("not a url")


def test_flagged_domains_get_longer_timeouts_and_more_attempts():
    policy = ResiliencePolicy(base_timeout_seconds=10.0, retries=1, rng=random.Random(0))

    assert policy.timeout_for(NORMAL) == pytest.approx(10.0)
    assert policy.timeout_for(FLAGGED) == pytest.approx(15.0)
    assert policy.max_attempts(NORMAL) == 2
    assert policy.max_attempts(FLAGGED) == FLAGGED_MAX_ATTEMPTS


def test_pacing_ranges_are_randomized_per_call(seeded_policy):
    normal = [seeded_policy.pacing_delay(NORMAL) for _ in range(50)]
    flagged = [seeded_policy.pacing_delay(FLAGGED) for _ in range(50)]

    assert all(0.5 <= delay <= 1.5 for delay in normal)
    assert all(2.0 <= delay <= 5.0 for delay in flagged)
    assert len(set(normal)) > 1


def test_backoff_grows_exponentially_with_jitter(seeded_policy):
    first = seeded_policy.backoff_delay(FLAGGED, 1)
    second = seeded_policy.backoff_delay(FLAGGED, 2)
    third = seeded_policy.backoff_delay(FLAGGED, 3)

    assert 1.5 <= first <= 2.5
    assert 3.0 <= second <= 4.0
    assert 6.0 <= third <= 7.0


def test_user_agent_rotates_only_for_flagged_domains(seeded_policy):
    agents = {seeded_policy.user_agent_for(FLAGGED, attempt) for attempt in range(1, 30)}

    assert agents <= set(USER_AGENT_POOL)
    assert len(agents) > 1
    assert seeded_policy.user_agent_for(NORMAL, 2) == DEFAULT_USER_AGENT


def test_interaction_plan_only_for_flagged_browser_sessions(seeded_policy):
    plan = seeded_policy.interaction_plan(FLAGGED)

    assert plan
    assert {step.action for step in plan} == {"move", "scroll"}
    assert seeded_policy.interaction_plan(NORMAL) == ()

    requests_options = seeded_policy.fetch_options(FLAGGED, attempt=1, backend=FetchBackend.REQUESTS)
    browser_options = seeded_policy.fetch_options(FLAGGED, attempt=1, backend=FetchBackend.SELENIUM)
    assert requests_options.interactions == ()
    assert browser_options.interactions


def test_fetch_options_merge_headers_and_set_user_agent(seeded_policy):
    options = seeded_policy.fetch_options(
        NORMAL,
        attempt=1,
        backend=FetchBackend.REQUESTS,
        headers={"X-Trace": "1"},
        wait_seconds=0.5,
        selectors=("h1",),
    )

    assert options.headers["X-Trace"] == "1"
    assert "Accept" in options.headers
    assert options.user_agent == DEFAULT_USER_AGENT
    assert options.timeout_seconds == pytest.approx(10.0)
    assert options.selectors == ("h1",)


def test_from_config_uses_config_timeouts_and_retries():
    config = CrawlConfig(base_url=NORMAL, timeout_seconds=4.0, retries=3, user_agent="TestAgent/1.0")
    policy = ResiliencePolicy.from_config(config)

    assert policy.timeout_for(NORMAL) == pytest.approx(4.0)
    assert policy.max_attempts(NORMAL) == 4
    assert policy.user_agent_for(NORMAL, 1) == "TestAgent/1.0"


@pytest.mark.parametrize(
    "page, retryable",
    [
        (_page(None, error="ConnectionError: reset"), True),
        (_page(None), True),
        (_page(408), True),
        (_page(429), True),
        (_page(503), True),
        (_page(404), False),
        (_page(200), False),
    ],
)
def test_transient_outcomes_are_retryable(page, retryable):
    assert ResiliencePolicy.is_retryable(page) is retryable
