"""Background crawl jobs with a lock-guarded registry and progress polling."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping

from .config import CrawlConfig
from .constants import JOB_RETENTION_SECONDS
from .fetcher import Fetcher, PageExtractor
from .orchestrator import CrawlOrchestrator
from .progress import ProgressChannel
from .types import CrawlJob, CrawlSummary, JobStatus, utc_now


LOGGER = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a job is moved to a status its lifecycle does not allow."""


@dataclass(slots=True)
class _JobEntry:
    job: CrawlJob
    progress: ProgressChannel
    thread: threading.Thread | None = None


def _default_extractor_factory(config: CrawlConfig) -> PageExtractor:
    return Fetcher(user_agent=config.user_agent)


def _base_url_of(config: CrawlConfig | Mapping[str, Any]) -> str:
    if isinstance(config, CrawlConfig):
        return config.base_url
    return str(config.get("base_url") or config.get("baseUrl") or "")


class JobRegistry:
    """Map of job id to job entry.

    Each entry is written only by its own job thread; status readers get
    immutable `CrawlJob` snapshots carrying the latest published progress.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, _JobEntry] = {}

    def add(self, job: CrawlJob, progress: ProgressChannel) -> None:
        with self._lock:
            if job.job_id in self._entries:
                raise ValueError(f"Duplicate job id: {job.job_id}")
            self._entries[job.job_id] = _JobEntry(job=job, progress=progress)

    def attach_thread(self, job_id: str, thread: threading.Thread) -> None:
        with self._lock:
            self._entries[job_id].thread = thread

    def thread_for(self, job_id: str) -> threading.Thread | None:
        with self._lock:
            entry = self._entries.get(job_id)
            return None if entry is None else entry.thread

    def get(self, job_id: str) -> CrawlJob | None:
        with self._lock:
            entry = self._entries.get(job_id)
            if entry is None:
                return None
            return self._snapshot(entry)

    def list_jobs(self, status: JobStatus | None = None) -> list[CrawlJob]:
        with self._lock:
            entries = list(self._entries.values())
            return [
                self._snapshot(entry)
                for entry in entries
                if status is None or entry.job.status == status
            ]

    def transition(
        self,
        job_id: str,
        status: JobStatus,
        *,
        result: CrawlSummary | None = None,
        error: str | None = None,
        end_time: datetime | None = None,
    ) -> CrawlJob:
        with self._lock:
            entry = self._entries[job_id]
            current = entry.job.status
            if status not in _ALLOWED_TRANSITIONS[current]:
                raise InvalidTransitionError(
                    f"Job {job_id}: cannot move from {current.value} to {status.value}"
                )
            if status.is_terminal and end_time is None:
                raise ValueError("Terminal transitions require end_time")

            entry.job = replace(
                entry.job,
                status=status,
                result=result if status == JobStatus.COMPLETED else None,
                error=error if status == JobStatus.FAILED else None,
                end_time=end_time if status.is_terminal else None,
            )
            return self._snapshot(entry)

    def remove_terminal_before(self, cutoff: datetime) -> int:
        """Drop terminal jobs whose end time is older than `cutoff`."""

        with self._lock:
            expired = [
                job_id
                for job_id, entry in self._entries.items()
                if entry.job.status.is_terminal
                and entry.job.end_time is not None
                and entry.job.end_time < cutoff
            ]
            for job_id in expired:
                del self._entries[job_id]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def _snapshot(entry: _JobEntry) -> CrawlJob:
        return replace(entry.job, progress=entry.progress.latest())


class JobManager:
    """Submit crawls to background threads and answer status queries.

    Every job gets its own thread, orchestrator, extractor and progress
    channel; nothing is shared between jobs except the registry.
    """

    def __init__(
        self,
        extractor_factory: Callable[[CrawlConfig], PageExtractor] | None = None,
        *,
        retention: timedelta = timedelta(seconds=JOB_RETENTION_SECONDS),
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._extractor_factory = extractor_factory or _default_extractor_factory
        self.retention = retention
        self._clock = clock
        self._sleep = sleep
        self._registry = JobRegistry()

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    def submit(self, config: CrawlConfig | Mapping[str, Any]) -> str:
        """Register a pending job, start it, and return its id immediately."""

        job_id = uuid.uuid4().hex
        progress = ProgressChannel()
        job = CrawlJob(
            job_id=job_id,
            status=JobStatus.PENDING,
            base_url=_base_url_of(config),
            start_time=self._clock(),
        )
        self._registry.add(job, progress)

        thread = threading.Thread(
            target=self._run_job,
            args=(job_id, config, progress),
            name=f"crawl-job-{job_id[:8]}",
            daemon=True,
        )
        self._registry.attach_thread(job_id, thread)
        thread.start()
        LOGGER.info("Submitted job %s for %s", job_id, job.base_url)
        return job_id

    def get_status(self, job_id: str) -> CrawlJob | None:
        return self._registry.get(job_id)

    def list_jobs(self, status: JobStatus | str | None = None) -> list[CrawlJob]:
        resolved = JobStatus(status) if isinstance(status, str) else status
        return self._registry.list_jobs(resolved)

    def cleanup(self, now: datetime | None = None) -> int:
        """Remove terminal jobs that ended more than `retention` ago."""

        cutoff = (now or self._clock()) - self.retention
        removed = self._registry.remove_terminal_before(cutoff)
        if removed:
            LOGGER.info("Cleaned up %d expired jobs", removed)
        return removed

    def wait(self, job_id: str, timeout: float | None = None) -> CrawlJob | None:
        """Block until the job's thread finishes (or `timeout` elapses)."""

        thread = self._registry.thread_for(job_id)
        if thread is not None:
            thread.join(timeout)
        return self._registry.get(job_id)

    def _run_job(
        self,
        job_id: str,
        config: CrawlConfig | Mapping[str, Any],
        progress: ProgressChannel,
    ) -> None:
        self._registry.transition(job_id, JobStatus.RUNNING)
        extractor: PageExtractor | None = None

        try:
            resolved = config if isinstance(config, CrawlConfig) else CrawlConfig.from_dict(config)
            extractor = self._extractor_factory(resolved)
            orchestrator = CrawlOrchestrator(
                resolved,
                extractor,
                progress=progress,
                sleep=self._sleep,
            )
            summary = orchestrator.run()
        except Exception as exc:
            LOGGER.exception("Job %s failed", job_id)
            self._registry.transition(
                job_id,
                JobStatus.FAILED,
                error=str(exc) or exc.__class__.__name__,
                end_time=self._clock(),
            )
            return
        finally:
            self._close_extractor(job_id, extractor)

        self._registry.transition(
            job_id,
            JobStatus.COMPLETED,
            result=summary,
            end_time=self._clock(),
        )
        LOGGER.info(
            "Job %s completed: pages=%d filtered=%d",
            job_id,
            summary.total_pages,
            summary.filtered_pages,
        )

    @staticmethod
    def _close_extractor(job_id: str, extractor: PageExtractor | None) -> None:
        close = getattr(extractor, "close", None)
        if not callable(close):
            return
        try:
            close()
        except Exception:
            LOGGER.exception("Job %s: failed to close extractor", job_id)


__all__ = [
    "InvalidTransitionError",
    "JobManager",
    "JobRegistry",
]
