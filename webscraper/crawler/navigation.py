"""Structured navigation: walk menu-encoded sub-pages to collect images.

Some pages keep extra galleries behind an open dropdown menu whose entries
carry a token attribute (`rel` by default). Each token names a sub-path of
the current page. The extractor renders the page, reads the tokens, visits
`<page>/<token>` for each one in sorted order and gathers the images matching
a configurable selector.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable
from urllib.parse import urlsplit, urlunsplit

from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.by import By

from .constants import (
    DEFAULT_NAVIGATION_IMAGE_SELECTOR,
    DEFAULT_NAVIGATION_MENU_SELECTOR,
    DEFAULT_NAVIGATION_PAGE_LOAD_TIMEOUT_SECONDS,
    DEFAULT_NAVIGATION_STEP_DELAY_SECONDS,
    DEFAULT_NAVIGATION_TOKEN_ATTRIBUTE,
    RENDER_MAX_POLLS,
    RENDER_POLL_SECONDS,
)
from .types import CrawlStage, ErrorRecord, ImageRef
from .url import is_http_url


LOGGER = logging.getLogger(__name__)


def order_tokens(raw_tokens: Iterable[str | None], *, remap: bool = False) -> list[str]:
    """Deduplicate and sort tokens into a stable visiting order.

    With `remap=True` the sorted tokens are replaced by "1".."n". That changes
    the constructed URLs and is off unless a site is known to need it.
    """

    unique = sorted({token.strip() for token in raw_tokens if token and token.strip()})
    if remap:
        return [str(index) for index in range(1, len(unique) + 1)]
    return unique


def build_token_url(page_url: str, token: str) -> str:
    """Join the page's path with one navigation token."""

    parsed = urlsplit(page_url)
    base = urlunsplit((parsed.scheme, parsed.netloc, parsed.path, "", ""))
    return f"{base.rstrip('/')}/{token.strip('/')}"


@dataclass(slots=True)
class NavigationResult:
    """Everything collected while walking one page's menu tokens."""

    page_url: str
    tokens: list[str] = field(default_factory=list)
    images: list[ImageRef] = field(default_factory=list)
    urls: list[str] = field(default_factory=list)
    errors: list[ErrorRecord] = field(default_factory=list)


class StructuredNavigationExtractor:
    """Discover menu tokens on a rendered page and visit each derived URL.

    `driver_provider` returns a selenium-compatible driver; the extractor does
    not own it and never quits it.
    """

    def __init__(
        self,
        driver_provider: Callable[[], object],
        *,
        menu_selector: str = DEFAULT_NAVIGATION_MENU_SELECTOR,
        token_attribute: str = DEFAULT_NAVIGATION_TOKEN_ATTRIBUTE,
        image_selector: str = DEFAULT_NAVIGATION_IMAGE_SELECTOR,
        step_delay_seconds: float = DEFAULT_NAVIGATION_STEP_DELAY_SECONDS,
        page_load_timeout_seconds: float = DEFAULT_NAVIGATION_PAGE_LOAD_TIMEOUT_SECONDS,
        remap_tokens: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._driver_provider = driver_provider
        self.menu_selector = menu_selector
        self.token_attribute = token_attribute
        self.image_selector = image_selector
        self.step_delay_seconds = step_delay_seconds
        self.page_load_timeout_seconds = page_load_timeout_seconds
        self.remap_tokens = remap_tokens
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config,
        driver_provider: Callable[[], object],
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "StructuredNavigationExtractor":
        return cls(
            driver_provider,
            menu_selector=config.navigation_menu_selector,
            token_attribute=config.navigation_token_attribute,
            image_selector=config.navigation_image_selector,
            step_delay_seconds=config.navigation_step_delay_seconds,
            remap_tokens=config.remap_navigation_tokens,
            sleep=sleep,
        )

    def extract(self, page_url: str) -> NavigationResult:
        result = NavigationResult(page_url=page_url)

        try:
            driver = self._driver_provider()
        except Exception as exc:
            LOGGER.warning("Structured navigation unavailable for %s: %s", page_url, exc)
            result.errors.append(
                ErrorRecord.from_exception(stage=CrawlStage.NAVIGATION, url=page_url, exc=exc)
            )
            return result

        try:
            self._load(driver, page_url)
            result.tokens = self.find_tokens(driver)
        except WebDriverException as exc:
            LOGGER.warning("Could not read navigation menu on %s: %s", page_url, exc)
            result.errors.append(
                ErrorRecord.from_exception(stage=CrawlStage.NAVIGATION, url=page_url, exc=exc)
            )
            return result

        if not result.tokens:
            LOGGER.debug("No navigation tokens found on %s", page_url)
            return result

        LOGGER.info("Walking %d navigation tokens on %s", len(result.tokens), page_url)
        for index, token in enumerate(result.tokens):
            if index > 0 and self.step_delay_seconds > 0:
                self._sleep(self.step_delay_seconds)

            token_url = build_token_url(page_url, token)
            try:
                self._load(driver, token_url)
                images = self.find_images(driver)
            except WebDriverException as exc:
                LOGGER.warning("Navigation token %r failed on %s: %s", token, page_url, exc)
                result.errors.append(
                    ErrorRecord.from_exception(
                        stage=CrawlStage.NAVIGATION,
                        url=token_url,
                        exc=exc,
                        metadata={"token": token, "page_url": page_url},
                    )
                )
                continue

            result.images.extend(images)
            result.urls.append(token_url)

        return result

    def find_tokens(self, driver) -> list[str]:
        """Read token attributes from every open menu container."""

        raw: list[str | None] = []
        for menu in driver.find_elements(By.CSS_SELECTOR, self.menu_selector):
            for element in menu.find_elements(By.CSS_SELECTOR, f"[{self.token_attribute}]"):
                raw.append(element.get_attribute(self.token_attribute))
        return order_tokens(raw, remap=self.remap_tokens)

    def find_images(self, driver) -> list[ImageRef]:
        images: list[ImageRef] = []
        for element in driver.find_elements(By.CSS_SELECTOR, self.image_selector):
            src = element.get_attribute("src")
            if src and is_http_url(src):
                images.append(ImageRef(src=src, alt=element.get_attribute("alt") or ""))
        return images

    def _load(self, driver, url: str) -> None:
        driver.set_page_load_timeout(max(1, int(self.page_load_timeout_seconds)))
        driver.get(url)
        for _ in range(RENDER_MAX_POLLS):
            if driver.execute_script("return document.readyState") == "complete":
                return
            self._sleep(RENDER_POLL_SECONDS)


__all__ = [
    "NavigationResult",
    "StructuredNavigationExtractor",
    "build_token_url",
    "order_tokens",
]
