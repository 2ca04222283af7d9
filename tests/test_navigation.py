from __future__ import annotations

from webscraper.crawler.config import CrawlConfig
from webscraper.crawler.constants import (
    DEFAULT_NAVIGATION_IMAGE_SELECTOR,
    DEFAULT_NAVIGATION_MENU_SELECTOR,
)
from webscraper.crawler.navigation import StructuredNavigationExtractor, build_token_url, order_tokens
from webscraper.crawler.types import CrawlStage

from fakes import FakeDriver

PAGE = "https://ex.com/catalog/item"


def _driver(pages: dict[str, dict], **kwargs) -> FakeDriver:
    return FakeDriver(
        pages,
        menu_selector=DEFAULT_NAVIGATION_MENU_SELECTOR,
        image_selector=DEFAULT_NAVIGATION_IMAGE_SELECTOR,
        **kwargs,
    )


def test_tokens_are_deduplicated_and_sorted():
    assert order_tokens(["b", "a", "a"]) == ["a", "b"]
    assert order_tokens([" b ", None, "", "a"]) == ["a", "b"]


def test_token_remapping_is_opt_in():
    assert order_tokens(["red", "blue", "red"], remap=True) == ["1", "2"]
    assert order_tokens(["red", "blue"]) == ["blue", "red"]


def test_build_token_url_joins_page_path():
    assert build_token_url("https://ex.com/catalog/item/", "blue") == "https://ex.com/catalog/item/blue"
    assert build_token_url("https://ex.com/catalog/item?x=1#g", "/red") == "https://ex.com/catalog/item/red"


def test_extract_walks_tokens_in_sorted_order(sleeps):
    driver = _driver(
        {
            PAGE: {"menus": [["b", "a"], ["a"]]},
            f"{PAGE}/a": {"images": [("https://cdn.ex.com/a1.jpg", "A1"), ("/relative.jpg", "")]},
            f"{PAGE}/b": {"images": [("https://cdn.ex.com/b1.jpg", "B1")]},
        }
    )
    extractor = StructuredNavigationExtractor(lambda: driver, step_delay_seconds=1.0, sleep=sleeps)

    result = extractor.extract(PAGE)

    assert result.tokens == ["a", "b"]
    assert driver.visited == [PAGE, f"{PAGE}/a", f"{PAGE}/b"]
    assert result.urls == [f"{PAGE}/a", f"{PAGE}/b"]
    assert [image.src for image in result.images] == [
        "https://cdn.ex.com/a1.jpg",
        "https://cdn.ex.com/b1.jpg",
    ]
    # Fixed delay between tokens only.
    assert sleeps.calls == [1.0]
    assert result.errors == []


def test_failed_token_is_recorded_and_others_continue(sleeps):
    driver = _driver(
        {
            PAGE: {"menus": [["a", "b", "c"]]},
            f"{PAGE}/a": {"images": [("https://cdn.ex.com/a.jpg", "")]},
            f"{PAGE}/c": {"images": [("https://cdn.ex.com/c.jpg", "")]},
        },
        fail_urls=[f"{PAGE}/b"],
    )
    extractor = StructuredNavigationExtractor(lambda: driver, sleep=sleeps)

    result = extractor.extract(PAGE)

    assert result.urls == [f"{PAGE}/a", f"{PAGE}/c"]
    assert len(result.images) == 2
    (error,) = result.errors
    assert error.stage == CrawlStage.NAVIGATION
    assert error.url == f"{PAGE}/b"
    assert error.metadata["token"] == "b"


def test_page_without_open_menu_yields_nothing(sleeps):
    driver = _driver({PAGE: {}})
    result = StructuredNavigationExtractor(lambda: driver, sleep=sleeps).extract(PAGE)

    assert result.tokens == []
    assert result.images == []
    assert driver.visited == [PAGE]


def test_browser_start_failure_becomes_one_error(sleeps):
    def broken_provider():
        raise RuntimeError("no browser installed")

    result = StructuredNavigationExtractor(broken_provider, sleep=sleeps).extract(PAGE)

    (error,) = result.errors
    assert error.stage == CrawlStage.NAVIGATION
    assert error.error_type == "RuntimeError"
    assert result.urls == []


def test_from_config_honours_remap_and_custom_attribute(sleeps):
    config = CrawlConfig(
        base_url=PAGE,
        structured_navigation=True,
        navigation_token_attribute="data-view",
        remap_navigation_tokens=True,
        navigation_step_delay_seconds=0,
    )
    driver = _driver(
        {PAGE: {"menus": [["front", "back"]]}, f"{PAGE}/1": {}, f"{PAGE}/2": {}},
        token_attribute="data-view",
    )
    result = StructuredNavigationExtractor.from_config(config, lambda: driver, sleep=sleeps).extract(PAGE)

    assert result.tokens == ["1", "2"]
    assert result.urls == [f"{PAGE}/1", f"{PAGE}/2"]
    assert sleeps.calls == []
