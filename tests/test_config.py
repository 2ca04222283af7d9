from __future__ import annotations

import pytest

from webscraper.crawler.config import CrawlConfig, check_request_bounds, load_config, save_config
from webscraper.crawler.types import FetchBackend


def test_defaults_and_tuple_coercion():
    config = CrawlConfig(base_url=" https://example.com ", link_keywords=["blog", " ", "news"])

    assert config.base_url == "https://example.com"
    assert config.max_depth == 2
    assert config.max_pages == 10
    assert config.target_filtered_pages == 0
    assert config.same_domain is True
    assert config.link_keywords == ("blog", "news")
    assert config.backend == FetchBackend.REQUESTS
    assert not config.has_content_criteria


@pytest.mark.parametrize(
    "overrides",
    [
        {"base_url": "ftp://example.com"},
        {"base_url": "/relative"},
        {"max_depth": 0},
        {"max_pages": 0},
        {"target_filtered_pages": -1},
        {"min_content_matches": 0},
        {"timeout_seconds": 0},
        {"retries": -1},
        {"content_patterns": ["(unclosed"]},
    ],
)
def test_invalid_configs_are_rejected(overrides):
    kwargs = {"base_url": "https://example.com", **overrides}
    with pytest.raises(ValueError):
        CrawlConfig(**kwargs)


def test_from_dict_accepts_camel_case_request_fields():
    config = CrawlConfig.from_dict(
        {
            "baseUrl": "https://ex.com",
            "maxDepth": 3,
            "maxPages": 25,
            "linkKeywords": ["product"],
            "excludeContentKeywords": ["404"],
            "minContentMatches": 2,
            "targetFilteredPages": 4,
            "processDropdowns": True,
            "exploreLists": True,
            "waitTime": 1500,
            "backend": "selenium",
        }
    )

    assert config.max_depth == 3
    assert config.max_pages == 25
    assert config.link_keywords == ("product",)
    assert config.exclude_content_keywords == ("404",)
    assert config.min_content_matches == 2
    assert config.target_filtered_pages == 4
    assert config.structured_navigation is True
    assert config.explore_lists is True
    assert config.wait_seconds == pytest.approx(1.5)
    assert config.backend == FetchBackend.SELENIUM
    assert config.has_content_criteria


def test_from_dict_rejects_unknown_and_missing_keys():
    with pytest.raises(ValueError, match="Unknown config keys"):
        CrawlConfig.from_dict({"base_url": "https://ex.com", "concurrency": 4})
    with pytest.raises(ValueError, match="base_url"):
        CrawlConfig.from_dict({"max_depth": 2})


def test_extraction_selectors_merge_without_duplicates():
    config = CrawlConfig(
        base_url="https://ex.com",
        selectors=[".price", "h1"],
        content_search_selectors=["h1", "article"],
    )
    assert config.extraction_selectors == (".price", "h1", "article")


def test_yaml_and_json_files_load_back(tmp_path):
    config = CrawlConfig(
        base_url="https://ex.com",
        max_pages=20,
        content_keywords=["react"],
        headers={"X-Test": "1"},
    )

    for name in ("config.yaml", "config.json"):
        path = tmp_path / name
        save_config(config, path)
        assert load_config(path) == config


def test_load_config_rejects_unknown_suffix(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("base_url = 'https://ex.com'\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported config suffix"):
        load_config(path)


def test_request_bounds_are_stricter_than_core_invariants():
    assert check_request_bounds(CrawlConfig(base_url="https://ex.com", max_pages=100))

    with pytest.raises(ValueError, match="max_pages"):
        check_request_bounds(CrawlConfig(base_url="https://ex.com", max_pages=101))
    with pytest.raises(ValueError, match="max_depth"):
        check_request_bounds(CrawlConfig(base_url="https://ex.com", max_depth=6))
    with pytest.raises(ValueError, match="target_filtered_pages"):
        check_request_bounds(CrawlConfig(base_url="https://ex.com", target_filtered_pages=51))
    with pytest.raises(ValueError, match="min_content_matches"):
        check_request_bounds(CrawlConfig(base_url="https://ex.com", min_content_matches=11))
