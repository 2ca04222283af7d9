"""Crawler package: config, shared types, and crawl engine components."""

from .config import CrawlConfig, check_request_bounds, load_config, save_config
from .fetcher import Fetcher, PageExtractor
from .filters import ContentCriteria, LinkDecision, LinkFilter, analyze_content
from .frontier import EnqueueResult, EnqueueStatus, Frontier
from .jobs import InvalidTransitionError, JobManager, JobRegistry
from .navigation import NavigationResult, StructuredNavigationExtractor, build_token_url, order_tokens
from .orchestrator import CrawlOrchestrator, FetchError, fetch_with_policy, run_crawl_sync, scrape_url
from .parsers import HTMLPageParser, HTMLPageParserConfig
from .progress import ProgressChannel
from .resilience import ResiliencePolicy
from .sitetree import SiteNode, SiteTree
from .stats import StatsCollector, compute_content_statistics
from .storage import Storage
from .types import (
    ContentSlot,
    ContentStatistics,
    CrawlJob,
    CrawlStage,
    CrawlSummary,
    ErrorRecord,
    ExtractedNode,
    FetchBackend,
    FetchOptions,
    FrontierItem,
    ImageRef,
    JobProgress,
    JobStatus,
    LinkRef,
    PageMetadata,
    RelevanceResult,
    RenderedPage,
    ScrapedPage,
    SlotKind,
    utc_now_iso,
)
from .url import host_from_url, is_same_host, normalize_url, resolve_url

__all__ = [
    "ContentCriteria",
    "ContentSlot",
    "ContentStatistics",
    "CrawlConfig",
    "CrawlJob",
    "CrawlOrchestrator",
    "CrawlStage",
    "CrawlSummary",
    "EnqueueResult",
    "EnqueueStatus",
    "ErrorRecord",
    "ExtractedNode",
    "FetchBackend",
    "FetchError",
    "FetchOptions",
    "Fetcher",
    "Frontier",
    "FrontierItem",
    "HTMLPageParser",
    "HTMLPageParserConfig",
    "ImageRef",
    "InvalidTransitionError",
    "JobManager",
    "JobProgress",
    "JobRegistry",
    "JobStatus",
    "LinkDecision",
    "LinkFilter",
    "LinkRef",
    "NavigationResult",
    "PageExtractor",
    "PageMetadata",
    "ProgressChannel",
    "RelevanceResult",
    "RenderedPage",
    "ResiliencePolicy",
    "ScrapedPage",
    "SiteNode",
    "SiteTree",
    "SlotKind",
    "StatsCollector",
    "Storage",
    "StructuredNavigationExtractor",
    "analyze_content",
    "build_token_url",
    "check_request_bounds",
    "compute_content_statistics",
    "fetch_with_policy",
    "host_from_url",
    "is_same_host",
    "load_config",
    "normalize_url",
    "order_tokens",
    "resolve_url",
    "run_crawl_sync",
    "save_config",
    "scrape_url",
    "utc_now_iso",
]
