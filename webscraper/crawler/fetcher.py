"""Page extraction with requests/selenium backends.

`Fetcher` performs exactly one attempt per call; retries and pacing are the
orchestrator's job, driven by `ResiliencePolicy`.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Protocol

import requests
from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.firefox.options import Options as FirefoxOptions

from .constants import DEFAULT_USER_AGENT, RENDER_MAX_POLLS, RENDER_POLL_SECONDS, RENDER_SETTLE_SECONDS
from .parsers import HTMLPageParser
from .types import FetchBackend, FetchOptions, InteractionStep, RenderedPage


LOGGER = logging.getLogger(__name__)

_HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class PageExtractor(Protocol):
    """Anything that can turn a URL into a `RenderedPage`."""

    def fetch(self, url: str, options: FetchOptions) -> RenderedPage:
        ...


def _failed_page(url: str, backend: FetchBackend, started: float, error: str) -> RenderedPage:
    return RenderedPage(
        requested_url=url,
        final_url=None,
        status_code=None,
        content_type=None,
        backend=backend,
        elapsed_ms=int((time.perf_counter() - started) * 1000),
        error=error,
    )


def _is_html(content_type: str | None) -> bool:
    if not content_type:
        return True
    lowered = content_type.lower()
    return any(kind in lowered for kind in _HTML_CONTENT_TYPES)


class Fetcher:
    """Fetch and parse pages using either `requests` or `selenium`.

    Concurrency model:
    - Each crawl job owns its own `Fetcher`, so the requests session is not shared.
    - The selenium driver is created lazily and serialized with a lock; the
      structured-navigation extractor borrows the same driver via `browser()`.
    """

    def __init__(
        self,
        *,
        parser: HTMLPageParser | None = None,
        session: requests.Session | None = None,
        driver_factory: Callable[[str], object] | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.parser = parser or HTMLPageParser()
        self.user_agent = user_agent
        self._session = session
        self._driver_factory = driver_factory or self._create_selenium_driver
        self._sleep = sleep

        self._selenium_lock = threading.RLock()
        self._selenium_driver = None
        self._driver_user_agent: str | None = None
        self._closed = False

    def fetch(self, url: str, options: FetchOptions) -> RenderedPage:
        """Fetch one URL once with the backend named in `options`."""

        if self._closed:
            return _failed_page(url, options.backend, time.perf_counter(), "Fetcher is closed")

        if options.backend == FetchBackend.SELENIUM:
            return self._fetch_selenium(url, options)
        return self._fetch_requests(url, options)

    def browser(self):
        """Return the shared browser driver, creating it on first use."""

        with self._selenium_lock:
            if self._selenium_driver is None:
                self._selenium_driver = self._driver_factory(self.user_agent)
                self._driver_user_agent = self.user_agent
            return self._selenium_driver

    def close(self) -> None:
        """Close fetcher resources (notably selenium browser)."""

        self._closed = True
        if self._session is not None:
            self._session.close()
            self._session = None

        with self._selenium_lock:
            if self._selenium_driver is None:
                return
            try:
                self._selenium_driver.quit()
            except WebDriverException as exc:
                LOGGER.debug("Ignoring error while closing browser: %s", exc)
            finally:
                self._selenium_driver = None

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _fetch_requests(self, url: str, options: FetchOptions) -> RenderedPage:
        started = time.perf_counter()
        if self._session is None:
            self._session = requests.Session()

        try:
            response = self._session.get(
                url,
                headers=dict(options.headers),
                timeout=options.timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            return _failed_page(url, FetchBackend.REQUESTS, started, f"{exc.__class__.__name__}: {exc}")

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        content_type = response.headers.get("Content-Type")
        final_url = response.url or url

        if not (200 <= response.status_code < 300) or not _is_html(content_type):
            return RenderedPage(
                requested_url=url,
                final_url=final_url,
                status_code=response.status_code,
                content_type=content_type,
                backend=FetchBackend.REQUESTS,
                elapsed_ms=elapsed_ms,
            )

        return self.parser.parse(
            url=url,
            html=response.content or b"",
            final_url=final_url,
            status_code=response.status_code,
            content_type=content_type,
            selectors=options.selectors,
            list_selectors=options.list_selectors,
            backend=FetchBackend.REQUESTS,
            elapsed_ms=elapsed_ms,
        )

    def _fetch_selenium(self, url: str, options: FetchOptions) -> RenderedPage:
        started = time.perf_counter()

        with self._selenium_lock:
            try:
                driver = self.browser()
            except Exception as exc:
                return _failed_page(
                    url,
                    FetchBackend.SELENIUM,
                    started,
                    f"Failed to initialize selenium driver: {exc}",
                )

            try:
                self._apply_user_agent(driver, options.user_agent)
                driver.set_page_load_timeout(max(1, int(options.timeout_seconds)))
                driver.get(url)
                self._wait_for_render(driver, options.wait_seconds)
                self._perform_interactions(driver, options.interactions)

                final_url = driver.current_url or url
                html = driver.page_source or ""
            except WebDriverException as exc:
                return _failed_page(url, FetchBackend.SELENIUM, started, f"{exc.__class__.__name__}: {exc}")

        # Browsers do not expose the HTTP status; a rendered document counts as 200.
        return self.parser.parse(
            url=url,
            html=html,
            final_url=final_url,
            status_code=200,
            content_type="text/html; charset=utf-8",
            selectors=options.selectors,
            list_selectors=options.list_selectors,
            backend=FetchBackend.SELENIUM,
            elapsed_ms=int((time.perf_counter() - started) * 1000),
        )

    def _apply_user_agent(self, driver, user_agent: str | None) -> None:
        if not user_agent or user_agent == self._driver_user_agent:
            return
        execute_cdp = getattr(driver, "execute_cdp_cmd", None)
        if execute_cdp is None:
            return
        execute_cdp("Network.setUserAgentOverride", {"userAgent": user_agent})
        self._driver_user_agent = user_agent

    def _wait_for_render(self, driver, wait_seconds: float) -> None:
        for _ in range(RENDER_MAX_POLLS):
            if driver.execute_script("return document.readyState") == "complete":
                break
            self._sleep(RENDER_POLL_SECONDS)

        settle = max(wait_seconds, 0.0) or RENDER_SETTLE_SECONDS
        self._sleep(settle)

    def _perform_interactions(self, driver, steps: tuple[InteractionStep, ...]) -> None:
        for step in steps:
            if step.action == "move":
                ActionChains(driver).move_by_offset(step.dx, step.dy).perform()
            elif step.action == "scroll":
                driver.execute_script("window.scrollBy(0, arguments[0]);", step.dy)
            if step.pause_seconds > 0:
                self._sleep(step.pause_seconds)

    @staticmethod
    def _create_selenium_driver(user_agent: str):
        errors: list[str] = []

        # Try Chrome first.
        try:
            chrome_options = ChromeOptions()
            chrome_options.add_argument("--headless=new")
            chrome_options.add_argument("--disable-gpu")
            chrome_options.add_argument("--no-sandbox")
            chrome_options.add_argument("--disable-dev-shm-usage")
            chrome_options.add_argument("--disable-blink-features=AutomationControlled")
            chrome_options.add_argument(f"--user-agent={user_agent}")
            return webdriver.Chrome(options=chrome_options)
        except WebDriverException as exc:
            errors.append(f"Chrome: {exc}")

        # Fallback to Firefox.
        try:
            firefox_options = FirefoxOptions()
            firefox_options.add_argument("-headless")
            firefox_options.set_preference("general.useragent.override", user_agent)
            return webdriver.Firefox(options=firefox_options)
        except WebDriverException as exc:
            errors.append(f"Firefox: {exc}")

        raise RuntimeError("; ".join(errors) or "No usable Selenium driver found")


__all__ = ["Fetcher", "PageExtractor"]
