"""Breadth-first frontier with the visited set and depth enforcement."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum

from .types import FrontierItem
from .url import normalize_url


class EnqueueStatus(str, Enum):
    """Result status for frontier enqueue attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_INVALID_URL = "skipped_invalid_url"
    SKIPPED_DEPTH = "skipped_depth"
    SKIPPED_VISITED = "skipped_visited"
    SKIPPED_PENDING = "skipped_pending"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    normalized_url: str | None = None
    item: FrontierItem | None = None

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """FIFO queue of (url, depth) entries owned by one crawl.

    - URLs are normalized before they enter the queue.
    - A URL is queued at most once while pending, and never after it was
      marked visited, so the first-seen depth wins.
    - `pop` drops entries that became visited or exceed `max_depth`.

    One crawl thread owns the frontier, so no locking is done here.
    """

    def __init__(self, max_depth: int) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self.max_depth = max_depth

        self._queue: deque[FrontierItem] = deque()
        self._pending: set[str] = set()
        self._visited: set[str] = set()

        self._enqueued_count = 0
        self._dequeued_count = 0
        self._skipped_visited_count = 0
        self._skipped_pending_count = 0
        self._skipped_depth_count = 0
        self._skipped_invalid_count = 0

    def seed(self, url: str) -> EnqueueResult:
        """Seed frontier with the depth=0 base URL."""

        return self.push(url, depth=0)

    def push(
        self,
        url: str,
        *,
        depth: int,
        referrer: str | None = None,
        via_list: bool = False,
    ) -> EnqueueResult:
        """Attempt to enqueue one URL."""

        normalized = normalize_url(url)
        if not normalized:
            self._skipped_invalid_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_INVALID_URL)

        if depth > self.max_depth:
            self._skipped_depth_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_DEPTH, normalized_url=normalized)

        if normalized in self._visited:
            self._skipped_visited_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_VISITED, normalized_url=normalized)

        if normalized in self._pending:
            self._skipped_pending_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_PENDING, normalized_url=normalized)

        item = FrontierItem(url=normalized, depth=depth, referrer=referrer, via_list=via_list)
        self._queue.append(item)
        self._pending.add(normalized)
        self._enqueued_count += 1
        return EnqueueResult(EnqueueStatus.ENQUEUED, normalized_url=normalized, item=item)

    def pop(self) -> FrontierItem | None:
        """Pop the oldest entry that is neither visited nor too deep."""

        while self._queue:
            item = self._queue.popleft()
            self._pending.discard(item.url)
            self._dequeued_count += 1

            if item.url in self._visited:
                self._skipped_visited_count += 1
                continue
            if item.depth > self.max_depth:
                self._skipped_depth_count += 1
                continue
            return item
        return None

    def mark_visited(self, url: str) -> bool:
        """Record a URL as visited. Returns False if it already was."""

        normalized = normalize_url(url) or url
        if normalized in self._visited:
            return False
        self._visited.add(normalized)
        return True

    def is_visited(self, url: str) -> bool:
        normalized = normalize_url(url) or url
        return normalized in self._visited

    def pending(self) -> list[FrontierItem]:
        """Return queued entries in visiting order."""

        return list(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def empty(self) -> bool:
        return not self._queue

    def visited_urls(self) -> set[str]:
        return set(self._visited)

    def snapshot(self) -> dict[str, int]:
        """Return frontier counters for logs/stats reporting."""

        return {
            "queue_size": len(self._queue),
            "visited_urls": len(self._visited),
            "enqueued": self._enqueued_count,
            "dequeued": self._dequeued_count,
            "skipped_visited": self._skipped_visited_count,
            "skipped_pending": self._skipped_pending_count,
            "skipped_depth": self._skipped_depth_count,
            "skipped_invalid": self._skipped_invalid_count,
        }


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
]
