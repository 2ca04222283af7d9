"""Default values shared by config, resilience policy, fetcher, and jobs."""

from __future__ import annotations

from .types import FetchBackend


DEFAULT_MAX_DEPTH = 2
DEFAULT_MAX_PAGES = 10
DEFAULT_TARGET_FILTERED_PAGES = 0
DEFAULT_MIN_CONTENT_MATCHES = 1

DEFAULT_FETCH_BACKEND = FetchBackend.REQUESTS
DEFAULT_WAIT_SECONDS = 1.0
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_RETRIES = 1
DEFAULT_SAME_DOMAIN = True

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)
DEFAULT_HTTP_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "es-ES,es;q=0.9,en;q=0.8",
}

# Rotated per attempt for flagged domains.
USER_AGENT_POOL: tuple[str, ...] = (
    DEFAULT_USER_AGENT,
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:123.0) Gecko/20100101 Firefox/123.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36 Edg/122.0.0.0",
)

# Substring match against the URL host.
DEFAULT_FLAGGED_DOMAINS: tuple[str, ...] = (
    "amazon.",
    "mercadolibre.",
    "aliexpress.",
    "ebay.",
    "walmart.",
    "linkedin.com",
    "facebook.com",
    "instagram.com",
    "zillow.com",
    "idealista.com",
)

FLAGGED_TIMEOUT_MULTIPLIER = 1.5
FLAGGED_MAX_ATTEMPTS = 3
NORMAL_PACING_RANGE_SECONDS = (0.5, 1.5)
FLAGGED_PACING_RANGE_SECONDS = (2.0, 5.0)
NORMAL_BACKOFF_BASE_SECONDS = 0.5
FLAGGED_BACKOFF_BASE_SECONDS = 1.5
BACKOFF_JITTER_SECONDS = 1.0
TRANSIENT_STATUS_CODES = frozenset({408, 429})

DEFAULT_LIST_SELECTORS: tuple[str, ...] = ("ul", "ol", "dl")
DEFAULT_NAVIGATION_MENU_SELECTOR = ".dropdown-menu.open, .dropdown-menu[class*='open']"
DEFAULT_NAVIGATION_TOKEN_ATTRIBUTE = "rel"
DEFAULT_NAVIGATION_IMAGE_SELECTOR = ".img-responsive"
DEFAULT_NAVIGATION_STEP_DELAY_SECONDS = 1.0
DEFAULT_NAVIGATION_PAGE_LOAD_TIMEOUT_SECONDS = 30.0
RENDER_SETTLE_SECONDS = 2.0
RENDER_POLL_SECONDS = 1.0
RENDER_MAX_POLLS = 10

# Bounds enforced at the request boundary, not by the core.
REQUEST_MAX_DEPTH_RANGE = (1, 5)
REQUEST_MAX_PAGES_RANGE = (1, 100)
REQUEST_TARGET_FILTERED_PAGES_RANGE = (0, 50)
REQUEST_MIN_CONTENT_MATCHES_RANGE = (1, 10)

JOB_RETENTION_SECONDS = 60 * 60
TOP_MATCHES_LIMIT = 10

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")
