from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from webscraper.crawler.jobs import InvalidTransitionError, JobManager, JobRegistry
from webscraper.crawler.progress import ProgressChannel
from webscraper.crawler.types import CrawlJob, JobStatus

from fakes import FakeExtractor, html_page, links_html

ROOT = "https://ex.com/"
T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

SITE = {
    ROOT: html_page("Home", "widget " + links_html("/a")),
    "https://ex.com/a": html_page("A", "widget"),
}


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class BlockingExtractor(FakeExtractor):
    """Waits for `release` before answering its first fetch."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.started = threading.Event()
        self.release = threading.Event()

    def fetch(self, url, options):
        self.started.set()
        self.release.wait(5)
        return super().fetch(url, options)


def _manager(extractors: list[FakeExtractor] | None = None, **kwargs) -> JobManager:
    created = extractors if extractors is not None else []

    def factory(config):
        extractor = FakeExtractor(SITE)
        created.append(extractor)
        return extractor

    kwargs.setdefault("sleep", lambda seconds: None)
    return JobManager(factory, **kwargs)


def test_submitted_job_completes_with_result():
    extractors: list[FakeExtractor] = []
    manager = _manager(extractors)

    job_id = manager.submit({"baseUrl": ROOT, "maxPages": 5, "contentKeywords": ["widget"]})
    job = manager.wait(job_id, timeout=5)

    assert job is not None
    assert job.status == JobStatus.COMPLETED
    assert job.result is not None
    assert job.result.total_pages == 2
    assert job.result.filtered_pages == 2
    assert job.error is None
    assert job.end_time is not None and job.end_time >= job.start_time
    assert job.progress.message.startswith("Completed")
    assert extractors[0].closed is True


def test_invalid_config_produces_failed_job():
    manager = _manager()

    job_id = manager.submit({"baseUrl": ROOT, "maxDepth": 0})
    job = manager.wait(job_id, timeout=5)

    assert job is not None
    assert job.status == JobStatus.FAILED
    assert "max_depth" in job.error
    assert job.result is None
    assert job.end_time is not None


def test_extractor_factory_failure_produces_failed_job():
    def broken_factory(config):
        raise RuntimeError("chrome not found")

    manager = JobManager(broken_factory)
    job = manager.wait(manager.submit({"baseUrl": ROOT}), timeout=5)

    assert job.status == JobStatus.FAILED
    assert job.error == "chrome not found"


def test_unknown_job_id_returns_none():
    assert _manager().get_status("missing") is None


def test_list_jobs_filters_by_status():
    manager = _manager()
    done = manager.submit({"baseUrl": ROOT, "maxPages": 1})
    failed = manager.submit({"baseUrl": "not a url"})
    manager.wait(done, timeout=5)
    manager.wait(failed, timeout=5)

    assert [job.job_id for job in manager.list_jobs("completed")] == [done]
    assert [job.job_id for job in manager.list_jobs(JobStatus.FAILED)] == [failed]
    assert len(manager.list_jobs()) == 2


def test_cleanup_removes_only_expired_terminal_jobs():
    clock = FixedClock(T0)
    manager = _manager(clock=clock)
    job_id = manager.submit({"baseUrl": ROOT, "maxPages": 1})
    manager.wait(job_id, timeout=5)

    assert manager.cleanup(now=T0 + timedelta(minutes=59)) == 0
    assert manager.get_status(job_id) is not None

    assert manager.cleanup(now=T0 + timedelta(minutes=61)) == 1
    assert manager.get_status(job_id) is None


def test_cleanup_keeps_running_jobs():
    blocking = BlockingExtractor(SITE)
    manager = JobManager(lambda config: blocking, clock=FixedClock(T0), sleep=lambda seconds: None)

    job_id = manager.submit({"baseUrl": ROOT, "maxPages": 1})
    assert blocking.started.wait(5)

    running = manager.get_status(job_id)
    assert running.status == JobStatus.RUNNING
    assert running.progress.current_url == ROOT
    assert manager.cleanup(now=T0 + timedelta(days=1)) == 0

    blocking.release.set()
    assert manager.wait(job_id, timeout=5).status == JobStatus.COMPLETED


def test_registry_rejects_invalid_transitions():
    registry = JobRegistry()
    registry.add(
        CrawlJob(job_id="j1", status=JobStatus.PENDING, base_url=ROOT, start_time=T0),
        ProgressChannel(),
    )

    with pytest.raises(InvalidTransitionError):
        registry.transition("j1", JobStatus.COMPLETED, end_time=T0)

    registry.transition("j1", JobStatus.RUNNING)
    with pytest.raises(ValueError):
        registry.transition("j1", JobStatus.FAILED, error="boom")

    failed = registry.transition("j1", JobStatus.FAILED, error="boom", end_time=T0)
    assert failed.status == JobStatus.FAILED
    assert failed.error == "boom"

    with pytest.raises(InvalidTransitionError):
        registry.transition("j1", JobStatus.RUNNING)


def test_registry_rejects_duplicate_ids():
    registry = JobRegistry()
    job = CrawlJob(job_id="j1", status=JobStatus.PENDING, base_url=ROOT, start_time=T0)
    registry.add(job, ProgressChannel())

    with pytest.raises(ValueError):
        registry.add(job, ProgressChannel())
    assert len(registry) == 1


def test_error_during_crawl_fails_job_without_result():
    def broken_sleep(seconds):
        raise RuntimeError("clock stopped")

    extractors: list[FakeExtractor] = []
    manager = _manager(extractors, sleep=broken_sleep)

    job = manager.wait(manager.submit({"baseUrl": ROOT, "maxPages": 5}), timeout=5)

    assert job.status == JobStatus.FAILED
    assert job.error == "clock stopped"
    assert job.result is None
    assert job.end_time is not None
    assert extractors[0].fetched_urls == [ROOT]
    assert extractors[0].closed is True


def test_concurrent_jobs_keep_their_own_pages():
    sites = {
        "https://one.ex/": {
            "https://one.ex/": html_page("One", links_html("/x")),
            "https://one.ex/x": html_page("X"),
        },
        "https://two.ex/": {
            "https://two.ex/": html_page("Two", links_html("/y")),
            "https://two.ex/y": html_page("Y"),
        },
    }
    extractors = {base: BlockingExtractor(site) for base, site in sites.items()}
    manager = JobManager(lambda config: extractors[config.base_url], sleep=lambda seconds: None)

    first = manager.submit({"baseUrl": "https://one.ex/"})
    second = manager.submit({"baseUrl": "https://two.ex/"})
    for extractor in extractors.values():
        assert extractor.started.wait(5)

    for job_id in (first, second):
        running = manager.get_status(job_id)
        assert running.status == JobStatus.RUNNING
        assert running.end_time is None
        assert running.result is None

    for extractor in extractors.values():
        extractor.release.set()

    one = manager.wait(first, timeout=5).result
    two = manager.wait(second, timeout=5).result
    assert [page.url for page in one.pages] == ["https://one.ex/", "https://one.ex/x"]
    assert [page.url for page in two.pages] == ["https://two.ex/", "https://two.ex/y"]


def test_job_statuses_move_forward_only():
    manager = _manager()
    seen: list[JobStatus] = []
    transition = manager.registry.transition

    def recording_transition(job_id, status, **kwargs):
        seen.append(status)
        return transition(job_id, status, **kwargs)

    manager.registry.transition = recording_transition

    job = manager.wait(manager.submit({"baseUrl": ROOT, "maxPages": 1}), timeout=5)

    assert seen == [JobStatus.RUNNING, JobStatus.COMPLETED]
    assert job.status.is_terminal and job.end_time is not None
