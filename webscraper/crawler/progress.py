"""Per-job progress channel between the crawl thread and status readers."""

from __future__ import annotations

import threading
from collections import deque

from .types import JobProgress


class ProgressChannel:
    """Thread-safe single-producer progress queue.

    The orchestrator publishes; status queries read `latest()` without
    consuming, while `drain()` hands back (and clears) the buffered history.
    """

    def __init__(self, maxlen: int = 256) -> None:
        if maxlen <= 0:
            raise ValueError("maxlen must be > 0")
        self._lock = threading.Lock()
        self._history: deque[JobProgress] = deque(maxlen=maxlen)
        self._latest = JobProgress()
        self._published = 0

    def publish(self, progress: JobProgress) -> None:
        with self._lock:
            self._latest = progress
            self._history.append(progress)
            self._published += 1

    def latest(self) -> JobProgress:
        with self._lock:
            return self._latest

    def drain(self) -> list[JobProgress]:
        with self._lock:
            items = list(self._history)
            self._history.clear()
            return items

    @property
    def published_count(self) -> int:
        with self._lock:
            return self._published


__all__ = ["ProgressChannel"]
