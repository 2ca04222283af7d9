"""Link and content relevance filtering pipeline.

Three stateless stages:

- URL pattern policy: `exclude_patterns` reject, then `include_patterns` must match.
- Link keyword policy: `link_keywords` is a strict allow-list over the lowercase
  URL + anchor text; `exclude_keywords` drops a link even if it was allowed.
- Content relevance: scores a page's searchable text against content keywords
  and regex patterns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping

from .config import CrawlConfig
from .types import ContentSlot, RelevanceResult


class LinkDecision(str, Enum):
    """Outcome of running one link through the filtering stages."""

    ACCEPTED = "accepted"
    EXCLUDED_PATTERN = "excluded_pattern"
    MISSING_INCLUDE_PATTERN = "missing_include_pattern"
    MISSING_LINK_KEYWORD = "missing_link_keyword"
    EXCLUDED_KEYWORD = "excluded_keyword"

    @property
    def accepted(self) -> bool:
        return self == LinkDecision.ACCEPTED


def check_url_patterns(
    url: str,
    *,
    include_patterns: Iterable[str] = (),
    exclude_patterns: Iterable[str] = (),
) -> LinkDecision:
    """Apply URL substring include/exclude patterns."""

    if any(pattern in url for pattern in exclude_patterns):
        return LinkDecision.EXCLUDED_PATTERN

    include = tuple(include_patterns)
    if include and not any(pattern in url for pattern in include):
        return LinkDecision.MISSING_INCLUDE_PATTERN

    return LinkDecision.ACCEPTED


def check_link_keywords(
    url: str,
    text: str = "",
    *,
    link_keywords: Iterable[str] = (),
    exclude_keywords: Iterable[str] = (),
) -> LinkDecision:
    """Apply allow-list and deny-list keywords to a link's URL and anchor text."""

    haystack = f"{url} {text}".lower()

    allowed = tuple(keyword.lower() for keyword in link_keywords)
    if allowed and not any(keyword in haystack for keyword in allowed):
        return LinkDecision.MISSING_LINK_KEYWORD

    if any(keyword.lower() in haystack for keyword in exclude_keywords):
        return LinkDecision.EXCLUDED_KEYWORD

    return LinkDecision.ACCEPTED


class LinkFilter:
    """Bound URL-pattern and link-keyword policies for one crawl config."""

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config

    def url_decision(self, url: str) -> LinkDecision:
        return check_url_patterns(
            url,
            include_patterns=self.config.include_patterns,
            exclude_patterns=self.config.exclude_patterns,
        )

    def link_decision(self, url: str, text: str = "") -> LinkDecision:
        decision = self.url_decision(url)
        if not decision.accepted:
            return decision
        return check_link_keywords(
            url,
            text,
            link_keywords=self.config.link_keywords,
            exclude_keywords=self.config.exclude_keywords,
        )


@dataclass(frozen=True, slots=True)
class ContentCriteria:
    """Content relevance criteria with regexes compiled once."""

    keywords: tuple[str, ...] = ()
    exclude_keywords: tuple[str, ...] = ()
    patterns: tuple[re.Pattern[str], ...] = ()
    min_matches: int = 1
    search_selectors: tuple[str, ...] = ()

    @classmethod
    def from_config(cls, config: CrawlConfig) -> "ContentCriteria":
        return cls(
            keywords=config.content_keywords,
            exclude_keywords=config.exclude_content_keywords,
            patterns=tuple(re.compile(p, re.IGNORECASE) for p in config.content_patterns),
            min_matches=config.min_content_matches,
            search_selectors=config.content_search_selectors,
        )

    @property
    def possible_matches(self) -> int:
        return max(1, len(self.keywords) + len(self.patterns))


def build_searchable_text(
    content: Mapping[str, ContentSlot],
    *,
    title: str = "",
    url: str = "",
    search_selectors: Iterable[str] = (),
) -> str:
    """Join the content slots to search, plus title and URL, lowercased."""

    selected = tuple(search_selectors)
    if selected:
        slots = [content[key] for key in selected if key in content]
    else:
        slots = list(content.values())

    parts = [slot.text() for slot in slots]
    parts.extend([title or "", url or ""])
    return " ".join(part for part in parts if part).lower()


def analyze_content(
    content: Mapping[str, ContentSlot],
    criteria: ContentCriteria,
    *,
    title: str = "",
    url: str = "",
) -> RelevanceResult:
    """Score one page against the content criteria."""

    text = build_searchable_text(
        content,
        title=title,
        url=url,
        search_selectors=criteria.search_selectors,
    )

    for keyword in criteria.exclude_keywords:
        if keyword.lower() in text:
            return RelevanceResult(is_relevant=False, excluded_by=keyword)

    keyword_matches = tuple(keyword for keyword in criteria.keywords if keyword.lower() in text)
    pattern_matches = tuple(
        match.group(0)
        for pattern in criteria.patterns
        for match in pattern.finditer(text)
        if match.group(0)
    )

    if criteria.keywords and len(keyword_matches) < criteria.min_matches:
        return RelevanceResult(
            is_relevant=False,
            keyword_matches=keyword_matches,
            pattern_matches=pattern_matches,
        )

    total = len(keyword_matches) + len(pattern_matches)
    return RelevanceResult(
        is_relevant=True,
        keyword_matches=keyword_matches,
        pattern_matches=pattern_matches,
        relevance_score=min(1.0, total / criteria.possible_matches),
    )


__all__ = [
    "ContentCriteria",
    "LinkDecision",
    "LinkFilter",
    "analyze_content",
    "build_searchable_text",
    "check_link_keywords",
    "check_url_patterns",
]
