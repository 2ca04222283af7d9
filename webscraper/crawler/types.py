"""Core type definitions for the crawl engine.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class FetchBackend(str, Enum):
    """Rendering mode used to fetch page content."""

    REQUESTS = "requests"
    SELENIUM = "selenium"


class CrawlStage(str, Enum):
    """Crawl stage names for error reporting."""

    FRONTIER = "frontier"
    FETCH = "fetch"
    PARSE = "parse"
    NAVIGATION = "navigation"


class JobStatus(str, Enum):
    """Lifecycle states of a background crawl job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {JobStatus.COMPLETED, JobStatus.FAILED}


class SlotKind(str, Enum):
    """Variant tag of one selector slot in a page content map."""

    NODES = "nodes"
    SCALAR = "scalar"
    ERROR = "error"


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string."""

    return utc_now().isoformat(timespec="seconds")


def _iso_or_none(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat(timespec="seconds")


@dataclass(frozen=True, slots=True)
class ExtractedNode:
    """Text and inner HTML of one element matched by a selector."""

    text: str
    html: str | None = None

    def to_json(self) -> JSONDict:
        return {"text": self.text, "html": self.html}


@dataclass(frozen=True, slots=True)
class ContentSlot:
    """Tagged value stored under one selector key of a page content map.

    Exactly one of `nodes`, `value`, or `error` is meaningful, as given by `kind`.
    """

    kind: SlotKind
    nodes: tuple[ExtractedNode, ...] = ()
    value: str | None = None
    error: str | None = None

    @classmethod
    def of_nodes(cls, nodes: list[ExtractedNode] | tuple[ExtractedNode, ...]) -> "ContentSlot":
        return cls(kind=SlotKind.NODES, nodes=tuple(nodes))

    @classmethod
    def of_scalar(cls, value: str | None) -> "ContentSlot":
        return cls(kind=SlotKind.SCALAR, value=value or "")

    @classmethod
    def of_error(cls, message: str) -> "ContentSlot":
        return cls(kind=SlotKind.ERROR, error=message)

    @property
    def is_error(self) -> bool:
        return self.kind == SlotKind.ERROR

    def text(self) -> str:
        """Return searchable text for this slot (empty for error markers)."""

        if self.kind == SlotKind.NODES:
            return " ".join(node.text for node in self.nodes if node.text)
        if self.kind == SlotKind.SCALAR:
            return self.value or ""
        return ""

    def to_json(self) -> JSONDict:
        if self.kind == SlotKind.NODES:
            return {"kind": self.kind.value, "nodes": [node.to_json() for node in self.nodes]}
        if self.kind == SlotKind.SCALAR:
            return {"kind": self.kind.value, "value": self.value}
        return {"kind": self.kind.value, "error": self.error}


@dataclass(frozen=True, slots=True)
class LinkRef:
    """One outbound link with its anchor text."""

    url: str
    text: str = ""


@dataclass(frozen=True, slots=True)
class ImageRef:
    """One image reference resolved to an absolute URL."""

    src: str
    alt: str = ""

    def to_json(self) -> JSONDict:
        return {"src": self.src, "alt": self.alt}


@dataclass(frozen=True, slots=True)
class InteractionStep:
    """One simulated user action performed in a browser session."""

    action: str  # "move" or "scroll"
    dx: int = 0
    dy: int = 0
    pause_seconds: float = 0.0


@dataclass(frozen=True, slots=True)
class FetchOptions:
    """Per-call options handed to a page extractor."""

    backend: FetchBackend = FetchBackend.REQUESTS
    headers: Mapping[str, str] = field(default_factory=dict)
    wait_seconds: float = 0.0
    timeout_seconds: float = 10.0
    selectors: tuple[str, ...] = ()
    list_selectors: tuple[str, ...] = ()
    interactions: tuple[InteractionStep, ...] = ()

    @property
    def user_agent(self) -> str | None:
        return self.headers.get("User-Agent")


@dataclass(slots=True)
class RenderedPage:
    """Result of asking a page extractor for one URL."""

    requested_url: str
    final_url: str | None
    status_code: int | None
    content_type: str | None
    title: str = ""
    links: list[LinkRef] = field(default_factory=list)
    images: list[ImageRef] = field(default_factory=list)
    list_links: list[str] = field(default_factory=list)
    content: dict[str, ContentSlot] = field(default_factory=dict)
    backend: FetchBackend = FetchBackend.REQUESTS
    fetched_at: str = field(default_factory=utc_now_iso)
    elapsed_ms: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return (
            self.error is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
        )

    @property
    def url(self) -> str:
        return self.final_url or self.requested_url

    def describe_failure(self) -> str:
        if self.error:
            return self.error
        if self.status_code is not None:
            return f"HTTP status {self.status_code}"
        return "Unknown fetch failure"


@dataclass(frozen=True, slots=True)
class FrontierItem:
    """A crawl candidate waiting in the frontier."""

    url: str
    depth: int
    referrer: str | None = None
    via_list: bool = False
    discovered_at: str = field(default_factory=utc_now_iso)


@dataclass(frozen=True, slots=True)
class RelevanceResult:
    """Outcome of scoring one page against the content criteria."""

    is_relevant: bool
    keyword_matches: tuple[str, ...] = ()
    pattern_matches: tuple[str, ...] = ()
    relevance_score: float = 0.0
    excluded_by: str | None = None

    @property
    def total_matches(self) -> int:
        return len(self.keyword_matches) + len(self.pattern_matches)

    def to_json(self) -> JSONDict:
        return {
            "is_relevant": self.is_relevant,
            "keyword_matches": list(self.keyword_matches),
            "pattern_matches": list(self.pattern_matches),
            "relevance_score": self.relevance_score,
            "total_matches": self.total_matches,
            "excluded_by": self.excluded_by,
        }


@dataclass(frozen=True, slots=True)
class PageMetadata:
    """Response metadata attached to a scraped page."""

    response_time_ms: int
    status_code: int | None
    content_type: str | None
    backend: FetchBackend = FetchBackend.REQUESTS
    attempts: int = 1
    content_analysis: RelevanceResult | None = None
    navigation_tokens: int = 0

    def to_json(self) -> JSONDict:
        return {
            "response_time_ms": self.response_time_ms,
            "status_code": self.status_code,
            "content_type": self.content_type,
            "backend": self.backend.value,
            "attempts": self.attempts,
            "content_analysis": (
                None if self.content_analysis is None else self.content_analysis.to_json()
            ),
            "navigation_tokens": self.navigation_tokens,
        }


@dataclass(frozen=True, slots=True)
class ScrapedPage:
    """One successfully fetched page. Immutable once created."""

    url: str
    title: str
    depth: int
    content: Mapping[str, ContentSlot]
    links: tuple[str, ...]
    images: tuple[ImageRef, ...]
    list_links: tuple[str, ...]
    metadata: PageMetadata
    parent_url: str | None = None
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def is_relevant(self) -> bool:
        analysis = self.metadata.content_analysis
        return analysis is None or analysis.is_relevant

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "title": self.title,
            "depth": self.depth,
            "parent_url": self.parent_url,
            "content": {key: slot.to_json() for key, slot in self.content.items()},
            "links": list(self.links),
            "images": [image.to_json() for image in self.images],
            "list_links": list(self.list_links),
            "timestamp": self.timestamp,
            "metadata": self.metadata.to_json(),
        }


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """One recorded failure that did not abort the crawl."""

    stage: CrawlStage
    url: str
    message: str
    error_type: str | None = None
    status_code: int | None = None
    created_at: str = field(default_factory=utc_now_iso)
    metadata: dict[str, JSONValue] = field(default_factory=dict)

    @classmethod
    def from_exception(
        cls,
        *,
        stage: CrawlStage,
        url: str,
        exc: Exception,
        **kwargs: Any,
    ) -> "ErrorRecord":
        return cls(
            stage=stage,
            url=url,
            message=str(exc),
            error_type=exc.__class__.__name__,
            **kwargs,
        )

    def to_json(self) -> JSONDict:
        return {
            "stage": self.stage.value,
            "url": self.url,
            "message": self.message,
            "error_type": self.error_type,
            "status_code": self.status_code,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }


@dataclass(frozen=True, slots=True)
class ContentStatistics:
    """Aggregate content-match statistics over analysed pages."""

    total_keyword_matches: int = 0
    total_pattern_matches: int = 0
    average_relevance_score: float = 0.0
    pages_with_content: int = 0
    top_keywords: tuple[tuple[str, int], ...] = ()
    top_patterns: tuple[tuple[str, int], ...] = ()

    def to_json(self) -> JSONDict:
        return {
            "total_keyword_matches": self.total_keyword_matches,
            "total_pattern_matches": self.total_pattern_matches,
            "average_relevance_score": self.average_relevance_score,
            "pages_with_content": self.pages_with_content,
            "top_keywords": [{"keyword": k, "count": n} for k, n in self.top_keywords],
            "top_patterns": [{"pattern": p, "count": n} for p, n in self.top_patterns],
        }


@dataclass(frozen=True, slots=True)
class CrawlSummary:
    """Pages collected by one crawl plus aggregate statistics."""

    base_url: str
    pages: tuple[ScrapedPage, ...]
    total_pages: int
    filtered_pages: int
    target_filtered_pages: int | None
    reached_target: bool | None
    total_links: int
    total_images: int
    duration_ms: int
    list_links_found: int = 0
    list_links_explored: int = 0
    content_statistics: ContentStatistics | None = None
    errors: tuple[ErrorRecord, ...] = ()
    counters: dict[str, int] = field(default_factory=dict)

    @property
    def relevant_pages(self) -> tuple[ScrapedPage, ...]:
        return tuple(page for page in self.pages if page.is_relevant)

    def to_json(self, *, include_pages: bool = False) -> JSONDict:
        payload: JSONDict = {
            "base_url": self.base_url,
            "total_pages": self.total_pages,
            "filtered_pages": self.filtered_pages,
            "target_filtered_pages": self.target_filtered_pages,
            "reached_target": self.reached_target,
            "total_links": self.total_links,
            "total_images": self.total_images,
            "duration_ms": self.duration_ms,
            "list_links_found": self.list_links_found,
            "list_links_explored": self.list_links_explored,
            "content_statistics": (
                None if self.content_statistics is None else self.content_statistics.to_json()
            ),
            "errors": [error.to_json() for error in self.errors],
            "counters": dict(self.counters),
        }
        if include_pages:
            payload["pages"] = [page.to_json() for page in self.pages]
        return payload


@dataclass(frozen=True, slots=True)
class JobProgress:
    """Latest progress report published by a running crawl."""

    current_page: int = 0
    total_pages: int = 0
    filtered_pages: int = 0
    current_url: str | None = None
    message: str = ""

    def to_json(self) -> JSONDict:
        return {
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "filtered_pages": self.filtered_pages,
            "current_url": self.current_url,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class CrawlJob:
    """Snapshot of one background crawl job."""

    job_id: str
    status: JobStatus
    base_url: str
    start_time: datetime
    progress: JobProgress = field(default_factory=JobProgress)
    result: CrawlSummary | None = None
    error: str | None = None
    end_time: datetime | None = None

    def to_json(self, *, include_pages: bool = False) -> JSONDict:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "base_url": self.base_url,
            "progress": self.progress.to_json(),
            "result": (
                None if self.result is None else self.result.to_json(include_pages=include_pages)
            ),
            "error": self.error,
            "start_time": _iso_or_none(self.start_time),
            "end_time": _iso_or_none(self.end_time),
        }


__all__ = [
    "ContentSlot",
    "ContentStatistics",
    "CrawlJob",
    "CrawlStage",
    "CrawlSummary",
    "ErrorRecord",
    "ExtractedNode",
    "FetchBackend",
    "FetchOptions",
    "FrontierItem",
    "ImageRef",
    "InteractionStep",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "JobProgress",
    "JobStatus",
    "LinkRef",
    "PageMetadata",
    "RelevanceResult",
    "RenderedPage",
    "ScrapedPage",
    "SlotKind",
    "utc_now",
    "utc_now_iso",
]
