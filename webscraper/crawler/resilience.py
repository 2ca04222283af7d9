"""Retry, pacing, and user-agent decisions keyed by domain classification.

The policy holds no crawl state. Randomness comes from an injectable
`random.Random` so callers (and tests) control it.
"""

from __future__ import annotations

import random
from typing import Iterable, Mapping

from .constants import (
    BACKOFF_JITTER_SECONDS,
    DEFAULT_FLAGGED_DOMAINS,
    DEFAULT_HTTP_HEADERS,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    FLAGGED_BACKOFF_BASE_SECONDS,
    FLAGGED_MAX_ATTEMPTS,
    FLAGGED_PACING_RANGE_SECONDS,
    FLAGGED_TIMEOUT_MULTIPLIER,
    NORMAL_BACKOFF_BASE_SECONDS,
    NORMAL_PACING_RANGE_SECONDS,
    TRANSIENT_STATUS_CODES,
    USER_AGENT_POOL,
)
from .types import FetchBackend, FetchOptions, InteractionStep, RenderedPage
from .url import host_from_url


class ResiliencePolicy:
    """Decide timeouts, attempts, backoff, pacing and user agents per URL."""

    def __init__(
        self,
        *,
        flagged_domains: Iterable[str] = DEFAULT_FLAGGED_DOMAINS,
        user_agents: Iterable[str] = USER_AGENT_POOL,
        default_user_agent: str = DEFAULT_USER_AGENT,
        base_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        retries: int = DEFAULT_RETRIES,
        rng: random.Random | None = None,
    ) -> None:
        self.flagged_domains = tuple(domain.lower() for domain in flagged_domains)
        self.user_agents = tuple(user_agents) or (default_user_agent,)
        self.default_user_agent = default_user_agent
        self.base_timeout_seconds = base_timeout_seconds
        self.retries = max(0, retries)
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config, *, rng: random.Random | None = None) -> "ResiliencePolicy":
        return cls(
            default_user_agent=config.user_agent,
            base_timeout_seconds=config.timeout_seconds,
            retries=config.retries,
            rng=rng,
        )

    def is_flagged(self, url: str) -> bool:
        host = host_from_url(url)
        if not host:
            return False
        return any(domain in host for domain in self.flagged_domains)

    def timeout_for(self, url: str) -> float:
        if self.is_flagged(url):
            return self.base_timeout_seconds * FLAGGED_TIMEOUT_MULTIPLIER
        return self.base_timeout_seconds

    def max_attempts(self, url: str) -> int:
        if self.is_flagged(url):
            return FLAGGED_MAX_ATTEMPTS
        return 1 + self.retries

    def backoff_delay(self, url: str, attempt: int) -> float:
        """Seconds to wait after failed `attempt` (1-based) before the next one."""

        base = FLAGGED_BACKOFF_BASE_SECONDS if self.is_flagged(url) else NORMAL_BACKOFF_BASE_SECONDS
        exponential = base * (2 ** max(0, attempt - 1))
        return exponential + self._rng.uniform(0.0, BACKOFF_JITTER_SECONDS)

    def pacing_delay(self, url: str) -> float:
        """Randomized pause before fetching the next frontier entry."""

        low, high = FLAGGED_PACING_RANGE_SECONDS if self.is_flagged(url) else NORMAL_PACING_RANGE_SECONDS
        return self._rng.uniform(low, high)

    def user_agent_for(self, url: str, attempt: int) -> str:
        if self.is_flagged(url):
            return self._rng.choice(self.user_agents)
        return self.default_user_agent

    def interaction_plan(self, url: str) -> tuple[InteractionStep, ...]:
        """Pointer moves and scrolls to replay in a browser before extraction."""

        if not self.is_flagged(url):
            return ()

        steps: list[InteractionStep] = []
        for _ in range(self._rng.randint(2, 4)):
            steps.append(
                InteractionStep(
                    action="move",
                    dx=self._rng.randint(-120, 120),
                    dy=self._rng.randint(-80, 80),
                    pause_seconds=self._rng.uniform(0.1, 0.4),
                )
            )
        for _ in range(self._rng.randint(1, 3)):
            steps.append(
                InteractionStep(
                    action="scroll",
                    dy=self._rng.randint(200, 700),
                    pause_seconds=self._rng.uniform(0.3, 0.9),
                )
            )
        return tuple(steps)

    def fetch_options(
        self,
        url: str,
        *,
        attempt: int,
        backend: FetchBackend,
        headers: Mapping[str, str] | None = None,
        wait_seconds: float = 0.0,
        selectors: tuple[str, ...] = (),
        list_selectors: tuple[str, ...] = (),
    ) -> FetchOptions:
        """Build the options for one fetch attempt."""

        merged = dict(DEFAULT_HTTP_HEADERS)
        merged.update(headers or {})
        merged["User-Agent"] = self.user_agent_for(url, attempt)

        interactions: tuple[InteractionStep, ...] = ()
        if backend == FetchBackend.SELENIUM:
            interactions = self.interaction_plan(url)

        return FetchOptions(
            backend=backend,
            headers=merged,
            wait_seconds=wait_seconds,
            timeout_seconds=self.timeout_for(url),
            selectors=selectors,
            list_selectors=list_selectors,
            interactions=interactions,
        )

    @staticmethod
    def is_retryable(page: RenderedPage) -> bool:
        """Transport errors, missing status, 408/429 and 5xx are transient."""

        if page.error is not None or page.status_code is None:
            return True
        return page.status_code in TRANSIENT_STATUS_CODES or page.status_code >= 500


__all__ = ["ResiliencePolicy"]
