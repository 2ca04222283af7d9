"""Typed crawl configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_FETCH_BACKEND,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
    DEFAULT_MIN_CONTENT_MATCHES,
    DEFAULT_NAVIGATION_IMAGE_SELECTOR,
    DEFAULT_NAVIGATION_MENU_SELECTOR,
    DEFAULT_NAVIGATION_STEP_DELAY_SECONDS,
    DEFAULT_NAVIGATION_TOKEN_ATTRIBUTE,
    DEFAULT_RETRIES,
    DEFAULT_SAME_DOMAIN,
    DEFAULT_TARGET_FILTERED_PAGES,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    DEFAULT_WAIT_SECONDS,
    JSON_INDENT,
    REQUEST_MAX_DEPTH_RANGE,
    REQUEST_MAX_PAGES_RANGE,
    REQUEST_MIN_CONTENT_MATCHES_RANGE,
    REQUEST_TARGET_FILTERED_PAGES_RANGE,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .types import FetchBackend, JSONDict
from .url import is_http_url


_TUPLE_FIELDS = (
    "include_patterns",
    "exclude_patterns",
    "link_keywords",
    "exclude_keywords",
    "content_keywords",
    "exclude_content_keywords",
    "content_patterns",
    "content_search_selectors",
    "selectors",
    "list_selectors",
)

# Request-layer (camelCase) spellings accepted by `from_dict`.
_CAMEL_ALIASES = {
    "baseUrl": "base_url",
    "maxDepth": "max_depth",
    "maxPages": "max_pages",
    "includePatterns": "include_patterns",
    "excludePatterns": "exclude_patterns",
    "linkKeywords": "link_keywords",
    "excludeKeywords": "exclude_keywords",
    "contentKeywords": "content_keywords",
    "excludeContentKeywords": "exclude_content_keywords",
    "contentPatterns": "content_patterns",
    "minContentMatches": "min_content_matches",
    "contentSearchSelectors": "content_search_selectors",
    "targetFilteredPages": "target_filtered_pages",
    "exploreLists": "explore_lists",
    "listSelectors": "list_selectors",
    "processDropdowns": "structured_navigation",
    "structuredNavigation": "structured_navigation",
    "dropdownSelector": "navigation_menu_selector",
    "sameDomain": "same_domain",
    "waitTime": "wait_seconds",
    "timeoutSeconds": "timeout_seconds",
    "userAgent": "user_agent",
}


def _as_int(value: Any, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid int for '{key}': {value!r}") from exc


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid float for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Invalid bool for '{key}': {value!r}")


def _as_str_tuple(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ValueError(f"Invalid list for '{key}': {value!r}")
    return tuple(str(item).strip() for item in value if str(item).strip())


def _to_backend(value: Any) -> FetchBackend:
    if isinstance(value, FetchBackend):
        return value
    if isinstance(value, str):
        return FetchBackend(value.strip().lower())
    raise ValueError(f"Invalid backend value: {value!r}")


@dataclass(frozen=True, slots=True)
class CrawlConfig:
    """Immutable per-job crawl configuration."""

    base_url: str
    max_depth: int = DEFAULT_MAX_DEPTH
    max_pages: int = DEFAULT_MAX_PAGES

    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()
    link_keywords: tuple[str, ...] = ()
    exclude_keywords: tuple[str, ...] = ()

    content_keywords: tuple[str, ...] = ()
    exclude_content_keywords: tuple[str, ...] = ()
    content_patterns: tuple[str, ...] = ()
    min_content_matches: int = DEFAULT_MIN_CONTENT_MATCHES
    content_search_selectors: tuple[str, ...] = ()
    target_filtered_pages: int = DEFAULT_TARGET_FILTERED_PAGES

    selectors: tuple[str, ...] = ()
    explore_lists: bool = False
    list_selectors: tuple[str, ...] = ()

    structured_navigation: bool = False
    navigation_menu_selector: str = DEFAULT_NAVIGATION_MENU_SELECTOR
    navigation_token_attribute: str = DEFAULT_NAVIGATION_TOKEN_ATTRIBUTE
    navigation_image_selector: str = DEFAULT_NAVIGATION_IMAGE_SELECTOR
    navigation_step_delay_seconds: float = DEFAULT_NAVIGATION_STEP_DELAY_SECONDS
    remap_navigation_tokens: bool = False

    backend: FetchBackend = DEFAULT_FETCH_BACKEND
    wait_seconds: float = DEFAULT_WAIT_SECONDS
    headers: Mapping[str, str] = field(default_factory=dict)
    same_domain: bool = DEFAULT_SAME_DOMAIN
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        for name in _TUPLE_FIELDS:
            object.__setattr__(self, name, _as_str_tuple(getattr(self, name), name))
        object.__setattr__(self, "base_url", (self.base_url or "").strip())
        object.__setattr__(self, "backend", _to_backend(self.backend))
        object.__setattr__(self, "headers", {str(k): str(v) for k, v in dict(self.headers).items()})

        if not is_http_url(self.base_url):
            raise ValueError(f"base_url must be an absolute http(s) URL: {self.base_url!r}")
        if self.max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        if self.max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        if self.target_filtered_pages < 0:
            raise ValueError("target_filtered_pages must be >= 0")
        if self.min_content_matches < 1:
            raise ValueError("min_content_matches must be >= 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.wait_seconds < 0:
            raise ValueError("wait_seconds must be >= 0")
        if self.navigation_step_delay_seconds < 0:
            raise ValueError("navigation_step_delay_seconds must be >= 0")

        for pattern in self.content_patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Invalid content pattern {pattern!r}: {exc}") from exc

    @property
    def has_content_criteria(self) -> bool:
        """Whether pages get a content relevance analysis."""

        return bool(
            self.content_keywords or self.exclude_content_keywords or self.content_patterns
        )

    @property
    def extraction_selectors(self) -> tuple[str, ...]:
        """Selectors the extractor must fill, in first-seen order."""

        ordered = dict.fromkeys((*self.selectors, *self.content_search_selectors))
        return tuple(ordered)

    def to_dict(self) -> JSONDict:
        """Serialize config for manifests and reproducibility."""

        payload: JSONDict = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, FetchBackend):
                value = value.value
            elif isinstance(value, Mapping):
                value = dict(value)
            payload[item.name] = value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed mapping (snake_case or camelCase keys)."""

        data = {_CAMEL_ALIASES.get(str(key), str(key)): value for key, value in payload.items()}
        if "base_url" not in data:
            raise ValueError("Config missing required key: 'base_url'")

        known = {item.name for item in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {unknown}")

        kwargs: dict[str, Any] = {"base_url": str(data["base_url"])}
        for name in ("max_depth", "max_pages", "min_content_matches", "target_filtered_pages", "retries"):
            if name in data:
                kwargs[name] = _as_int(data[name], name)
        for name in ("timeout_seconds", "navigation_step_delay_seconds"):
            if name in data:
                kwargs[name] = _as_float(data[name], name)
        if "wait_seconds" in data:
            wait = _as_float(data["wait_seconds"], "wait_seconds")
            # waitTime arrives in milliseconds from the request layer.
            kwargs["wait_seconds"] = wait / 1000.0 if "waitTime" in payload else wait
        for name in ("explore_lists", "structured_navigation", "remap_navigation_tokens", "same_domain"):
            if name in data:
                kwargs[name] = _as_bool(data[name], name)
        for name in _TUPLE_FIELDS:
            if name in data:
                kwargs[name] = _as_str_tuple(data[name], name)
        for name in (
            "navigation_menu_selector",
            "navigation_token_attribute",
            "navigation_image_selector",
            "user_agent",
        ):
            if data.get(name) is not None:
                kwargs[name] = str(data[name])
        if "backend" in data:
            kwargs["backend"] = _to_backend(data["backend"])
        if "headers" in data:
            kwargs["headers"] = {str(k): str(v) for k, v in dict(data["headers"] or {}).items()}

        return cls(**kwargs)


def _check_range(value: int, bounds: tuple[int, int], key: str) -> None:
    low, high = bounds
    if not low <= value <= high:
        raise ValueError(f"{key} must be between {low} and {high}, got {value}")


def check_request_bounds(config: CrawlConfig) -> CrawlConfig:
    """Apply the stricter limits accepted from external callers."""

    _check_range(config.max_depth, REQUEST_MAX_DEPTH_RANGE, "max_depth")
    _check_range(config.max_pages, REQUEST_MAX_PAGES_RANGE, "max_pages")
    _check_range(
        config.target_filtered_pages,
        REQUEST_TARGET_FILTERED_PAGES_RANGE,
        "target_filtered_pages",
    )
    _check_range(config.min_content_matches, REQUEST_MIN_CONTENT_MATCHES_RANGE, "min_content_matches")
    return config


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> CrawlConfig:
    """Load CrawlConfig from JSON/YAML path."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a mapping")

    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ValueError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "CrawlConfig",
    "check_request_bounds",
    "load_config",
    "save_config",
]
