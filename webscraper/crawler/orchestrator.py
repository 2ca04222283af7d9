"""Breadth-first crawl orchestration.

One `CrawlOrchestrator` drives one crawl: it owns the frontier, the visited
set and the result list, fetches pages strictly one at a time through a
`PageExtractor`, and applies the resilience policy's pacing and retries
around every fetch.
"""

from __future__ import annotations

import logging
import time
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from .config import CrawlConfig
from .fetcher import Fetcher, PageExtractor
from .filters import ContentCriteria, LinkFilter, analyze_content
from .frontier import Frontier
from .navigation import NavigationResult, StructuredNavigationExtractor
from .progress import ProgressChannel
from .resilience import ResiliencePolicy
from .stats import StatsCollector, compute_content_statistics
from .types import (
    CrawlStage,
    CrawlSummary,
    ErrorRecord,
    FetchBackend,
    FrontierItem,
    ImageRef,
    JobProgress,
    PageMetadata,
    RelevanceResult,
    RenderedPage,
    ScrapedPage,
)
from .url import is_same_host, normalize_url


LOGGER = logging.getLogger(__name__)


class FetchError(RuntimeError):
    """Raised by `scrape_url` when a page cannot be fetched."""

    def __init__(self, url: str, message: str, page: RenderedPage | None = None) -> None:
        super().__init__(f"Failed to fetch {url}: {message}")
        self.url = url
        self.page = page

    @property
    def status_code(self) -> int | None:
        return None if self.page is None else self.page.status_code


def fetch_with_policy(
    extractor: PageExtractor,
    policy: ResiliencePolicy,
    url: str,
    *,
    backend: FetchBackend = FetchBackend.REQUESTS,
    headers: Mapping[str, str] | None = None,
    wait_seconds: float = 0.0,
    selectors: tuple[str, ...] = (),
    list_selectors: tuple[str, ...] = (),
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[RenderedPage, int]:
    """Fetch `url`, retrying transient failures as the policy allows.

    Returns the last page and the number of attempts made. Exceptions raised
    by the extractor propagate.
    """

    max_attempts = max(1, policy.max_attempts(url))
    attempt = 1

    while True:
        options = policy.fetch_options(
            url,
            attempt=attempt,
            backend=backend,
            headers=headers,
            wait_seconds=wait_seconds,
            selectors=selectors,
            list_selectors=list_selectors,
        )
        page = extractor.fetch(url, options)
        if page.ok or not policy.is_retryable(page) or attempt >= max_attempts:
            return page, attempt

        delay = policy.backoff_delay(url, attempt)
        LOGGER.info(
            "Retrying %s after %.2fs (attempt %d/%d): %s",
            url,
            delay,
            attempt + 1,
            max_attempts,
            page.describe_failure(),
        )
        sleep(delay)
        attempt += 1


def _merge_images(images: Iterable[ImageRef], extra: Iterable[ImageRef]) -> tuple[ImageRef, ...]:
    merged: dict[str, ImageRef] = {}
    for image in (*images, *extra):
        merged.setdefault(image.src, image)
    return tuple(merged.values())


def build_scraped_page(
    url: str,
    page: RenderedPage,
    *,
    depth: int,
    attempts: int,
    parent_url: str | None = None,
    analysis: RelevanceResult | None = None,
    navigation: NavigationResult | None = None,
) -> ScrapedPage:
    """Freeze one successfully fetched page into a `ScrapedPage`."""

    extra_images = navigation.images if navigation else ()
    return ScrapedPage(
        url=url,
        title=page.title,
        depth=depth,
        content=MappingProxyType(dict(page.content)),
        links=tuple(dict.fromkeys(link.url for link in page.links)),
        images=_merge_images(page.images, extra_images),
        list_links=tuple(page.list_links),
        metadata=PageMetadata(
            response_time_ms=int(page.elapsed_ms or 0),
            status_code=page.status_code,
            content_type=page.content_type,
            backend=page.backend,
            attempts=attempts,
            content_analysis=analysis,
            navigation_tokens=len(navigation.tokens) if navigation else 0,
        ),
        parent_url=parent_url,
        timestamp=page.fetched_at,
    )


class CrawlOrchestrator:
    """Run one breadth-first crawl for a single `CrawlConfig`.

    Stop conditions (checked before every frontier pop):
    - the frontier is empty;
    - `max_pages` URLs have been visited;
    - `target_filtered_pages` > 0 and that many relevant pages were collected.

    Individual page failures are recorded in `errors` and never abort the crawl.
    """

    def __init__(
        self,
        config: CrawlConfig,
        extractor: PageExtractor,
        *,
        policy: ResiliencePolicy | None = None,
        navigator: StructuredNavigationExtractor | None = None,
        progress: ProgressChannel | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.extractor = extractor
        self.policy = policy or ResiliencePolicy.from_config(config)
        self.progress = progress or ProgressChannel()
        self.navigator = navigator
        self._sleep = sleep
        self._clock = clock

        if config.structured_navigation and self.navigator is None:
            browser = getattr(extractor, "browser", None)
            if browser is not None:
                self.navigator = StructuredNavigationExtractor.from_config(config, browser, sleep=sleep)
            else:
                LOGGER.warning("Structured navigation requested but the extractor exposes no browser")

        self.link_filter = LinkFilter(config)
        self.criteria = ContentCriteria.from_config(config) if config.has_content_criteria else None
        self.frontier = Frontier(config.max_depth)
        self.stats = StatsCollector()

        self.pages: list[ScrapedPage] = []
        self.errors: list[ErrorRecord] = []
        self.filtered_count = 0
        self.list_links_found = 0
        self.list_links_explored = 0
        self._fetches = 0

        # Patterns apply to URLs as given or linked, before normalization.
        seed_decision = self.link_filter.url_decision(config.base_url)
        if seed_decision.accepted:
            self.stats.record_enqueue(self.frontier.seed(config.base_url))
        else:
            self.stats.record_link_decision(seed_decision)
            LOGGER.warning("Base URL %s rejected by URL patterns: %s", config.base_url, seed_decision.value)

    @property
    def target_reached(self) -> bool:
        target = self.config.target_filtered_pages
        return target > 0 and self.filtered_count >= target

    @property
    def visited_count(self) -> int:
        return len(self.frontier.visited_urls())

    def should_continue(self) -> bool:
        return (
            not self.frontier.empty()
            and self.visited_count < self.config.max_pages
            and len(self.pages) < self.config.max_pages
            and not self.target_reached
        )

    def run(self) -> CrawlSummary:
        """Crawl until a stop condition fires and return the summary."""

        started = self._clock()
        LOGGER.info(
            "Starting crawl: base_url=%s max_depth=%d max_pages=%d",
            self.config.base_url,
            self.config.max_depth,
            self.config.max_pages,
        )

        while self.should_continue():
            self.process_next()

        duration_ms = int((self._clock() - started) * 1000)
        summary = self.summary(duration_ms=duration_ms)
        self._publish(None, f"Completed: {summary.total_pages} pages, {summary.filtered_pages} filtered")
        LOGGER.info(
            "Crawl finished: pages=%d filtered=%d errors=%d duration_ms=%d",
            summary.total_pages,
            summary.filtered_pages,
            len(summary.errors),
            duration_ms,
        )
        return summary

    def process_next(self) -> ScrapedPage | None:
        """Visit the next frontier entry. Returns the page if one was collected."""

        item = self.frontier.pop()
        if item is None:
            return None

        self.frontier.mark_visited(item.url)
        self._publish(item.url, f"Processing {item.url}")

        self._pace(item.url)
        try:
            page, attempts = fetch_with_policy(
                self.extractor,
                self.policy,
                item.url,
                backend=self.config.backend,
                headers=self.config.headers,
                wait_seconds=self.config.wait_seconds,
                selectors=self.config.extraction_selectors,
                list_selectors=self.config.list_selectors,
                sleep=self._sleep,
            )
        except Exception as exc:
            LOGGER.warning("Extractor raised for %s: %s", item.url, exc)
            self.stats.increment("fetch_exception")
            self.errors.append(
                ErrorRecord.from_exception(
                    stage=CrawlStage.FETCH,
                    url=item.url,
                    exc=exc,
                    metadata={"depth": item.depth},
                )
            )
            return None

        self.stats.record_fetch(page, attempts=attempts)
        if not page.ok:
            self._record_fetch_error(item, page, attempts)
            return None

        analysis = self._analyze(item.url, page)
        relevant = analysis is None or analysis.is_relevant
        if relevant:
            self.filtered_count += 1

        navigation = self._navigate(item.url)
        scraped = build_scraped_page(
            item.url,
            page,
            depth=item.depth,
            attempts=attempts,
            parent_url=item.referrer,
            analysis=analysis,
            navigation=navigation,
        )
        self.pages.append(scraped)
        self._publish(item.url, f"Collected {item.url}")

        if self.target_reached:
            LOGGER.info(
                "Reached target of %d filtered pages at %s",
                self.config.target_filtered_pages,
                item.url,
            )
        else:
            self._expand(item, page, navigation)

        self.stats.record_frontier_snapshot(self.frontier.snapshot())
        return scraped

    def summary(self, *, duration_ms: int = 0) -> CrawlSummary:
        target = self.config.target_filtered_pages
        pages = tuple(self.pages)
        return CrawlSummary(
            base_url=self.config.base_url,
            pages=pages,
            total_pages=len(pages),
            filtered_pages=self.filtered_count,
            target_filtered_pages=target or None,
            reached_target=self.target_reached if target > 0 else None,
            total_links=sum(len(page.links) for page in pages),
            total_images=sum(len(page.images) for page in pages),
            duration_ms=duration_ms,
            list_links_found=self.list_links_found,
            list_links_explored=self.list_links_explored,
            content_statistics=compute_content_statistics(pages),
            errors=tuple(self.errors),
            counters=self.stats.counters(),
        )

    def _pace(self, url: str) -> None:
        if self._fetches > 0:
            delay = self.policy.pacing_delay(url)
            LOGGER.debug("Pacing %.2fs before %s", delay, url)
            self._sleep(delay)
        self._fetches += 1

    def _analyze(self, url: str, page: RenderedPage) -> RelevanceResult | None:
        if self.criteria is None:
            return None
        analysis = analyze_content(page.content, self.criteria, title=page.title, url=url)
        self.stats.increment("pages_relevant" if analysis.is_relevant else "pages_not_relevant")
        return analysis

    def _navigate(self, url: str) -> NavigationResult | None:
        if not self.config.structured_navigation or self.navigator is None:
            return None

        try:
            result = self.navigator.extract(url)
        except Exception as exc:
            LOGGER.warning("Structured navigation failed for %s: %s", url, exc)
            self.stats.increment("navigation_exception")
            self.errors.append(
                ErrorRecord.from_exception(stage=CrawlStage.NAVIGATION, url=url, exc=exc)
            )
            return None

        self.errors.extend(result.errors)
        self.stats.increment("navigation_tokens", len(result.tokens))
        self.stats.increment("navigation_images", len(result.images))
        return result

    def _expand(self, item: FrontierItem, page: RenderedPage, navigation: NavigationResult | None) -> None:
        if self.config.explore_lists:
            self.list_links_found += len(page.list_links)

        if item.depth >= self.config.max_depth:
            return

        candidates = [(link.url, link.text) for link in page.links]
        if navigation is not None:
            candidates.extend((url, "") for url in navigation.urls)

        for url, text in candidates:
            self._enqueue_link(item, url, text)

        if self.config.explore_lists:
            for url in page.list_links:
                if self._enqueue_link(item, url, "", via_list=True):
                    self.list_links_explored += 1

    def _enqueue_link(self, item: FrontierItem, url: str, text: str, *, via_list: bool = False) -> bool:
        if self.config.same_domain and not is_same_host(url, self.config.base_url):
            self.stats.increment("links_off_domain")
            return False

        decision = self.link_filter.link_decision(url, text)
        self.stats.record_link_decision(decision)
        if not decision.accepted:
            return False

        result = self.frontier.push(url, depth=item.depth + 1, referrer=item.url, via_list=via_list)
        self.stats.record_enqueue(result)
        return result.accepted

    def _record_fetch_error(self, item: FrontierItem, page: RenderedPage, attempts: int) -> None:
        message = page.describe_failure()
        LOGGER.warning("Fetch failed for %s after %d attempt(s): %s", item.url, attempts, message)
        self.errors.append(
            ErrorRecord(
                stage=CrawlStage.FETCH,
                url=item.url,
                message=message,
                error_type=(page.error or "").split(":", maxsplit=1)[0].strip() or None,
                status_code=page.status_code,
                metadata={"depth": item.depth, "attempts": attempts},
            )
        )

    def _publish(self, url: str | None, message: str) -> None:
        self.progress.publish(
            JobProgress(
                current_page=self.visited_count,
                total_pages=self.config.max_pages,
                filtered_pages=self.filtered_count,
                current_url=url,
                message=message,
            )
        )


def _coerce_config(config: CrawlConfig | Mapping[str, Any]) -> CrawlConfig:
    if isinstance(config, CrawlConfig):
        return config
    return CrawlConfig.from_dict(config)


def run_crawl_sync(
    config: CrawlConfig | Mapping[str, Any],
    *,
    extractor: PageExtractor | None = None,
    policy: ResiliencePolicy | None = None,
    progress: ProgressChannel | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> CrawlSummary:
    """Run one crawl on the calling thread and return its summary."""

    resolved = _coerce_config(config)
    owns_extractor = extractor is None
    active = extractor or Fetcher(user_agent=resolved.user_agent)

    try:
        orchestrator = CrawlOrchestrator(
            resolved,
            active,
            policy=policy,
            progress=progress,
            sleep=sleep,
        )
        return orchestrator.run()
    finally:
        if owns_extractor:
            active.close()


def scrape_url(
    url: str,
    selectors: Iterable[str] | None = None,
    *,
    extractor: PageExtractor | None = None,
    policy: ResiliencePolicy | None = None,
    backend: FetchBackend = FetchBackend.REQUESTS,
    sleep: Callable[[float], None] = time.sleep,
) -> ScrapedPage:
    """Fetch and extract a single page with the same retry policy as crawls."""

    normalized = normalize_url(url)
    if normalized is None:
        raise ValueError(f"url must be an absolute http(s) URL: {url!r}")

    resolved_policy = policy or ResiliencePolicy()
    owns_extractor = extractor is None
    active = extractor or Fetcher(user_agent=resolved_policy.default_user_agent)

    try:
        page, attempts = fetch_with_policy(
            active,
            resolved_policy,
            normalized,
            backend=backend,
            selectors=tuple(selectors or ()),
            sleep=sleep,
        )
    finally:
        if owns_extractor:
            active.close()

    if not page.ok:
        raise FetchError(normalized, page.describe_failure(), page)
    return build_scraped_page(normalized, page, depth=0, attempts=attempts)


__all__ = [
    "CrawlOrchestrator",
    "FetchError",
    "build_scraped_page",
    "fetch_with_policy",
    "run_crawl_sync",
    "scrape_url",
]
