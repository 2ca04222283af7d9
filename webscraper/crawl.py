"""CLI entrypoint for crawls, background jobs and single-page scrapes."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
import time
from typing import Any

from webscraper.crawler import (
    CrawlConfig,
    CrawlSummary,
    FetchBackend,
    FetchError,
    JobManager,
    Storage,
    check_request_bounds,
    load_config,
    run_crawl_sync,
    scrape_url,
)


LOGGER = logging.getLogger("webscraper.crawl")

MODES = ("crawl", "job", "scrape")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl a website breadth-first with link and content filters.",
    )

    parser.add_argument(
        "--mode",
        type=str,
        choices=MODES,
        default="crawl",
        help="crawl (run inline), job (submit and poll a background job), or scrape (one page).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument("--url", type=str, default=None, help="Base URL. Overrides config base_url.")
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=Path("crawled_output"),
        help="Directory for summary, pages, errors, site tree and config.",
    )

    parser.add_argument("--max_depth", type=int, default=None)
    parser.add_argument("--max_pages", type=int, default=None)
    parser.add_argument("--target_filtered_pages", type=int, default=None)
    parser.add_argument("--min_content_matches", type=int, default=None)

    parser.add_argument("--include_pattern", action="append", default=[], help="Repeatable.")
    parser.add_argument("--exclude_pattern", action="append", default=[], help="Repeatable.")
    parser.add_argument("--link_keyword", action="append", default=[], help="Repeatable.")
    parser.add_argument("--exclude_keyword", action="append", default=[], help="Repeatable.")
    parser.add_argument("--content_keyword", action="append", default=[], help="Repeatable.")
    parser.add_argument("--exclude_content_keyword", action="append", default=[], help="Repeatable.")
    parser.add_argument("--content_pattern", action="append", default=[], help="Repeatable regex.")
    parser.add_argument("--selector", action="append", default=[], help="CSS selector (repeatable).")

    parser.add_argument("--explore_lists", action="store_true", default=None)
    parser.add_argument("--structured_navigation", action="store_true", default=None)
    parser.add_argument(
        "--backend",
        type=str,
        choices=[backend.value for backend in FetchBackend],
        default=None,
    )
    parser.add_argument("--timeout_seconds", type=float, default=None)
    parser.add_argument("--retries", type=int, default=None)
    parser.add_argument("--user_agent", type=str, default=None)

    parser.add_argument(
        "--poll_seconds",
        type=float,
        default=2.0,
        help="Status polling interval in job mode.",
    )
    parser.add_argument(
        "--print_summary_json",
        action="store_true",
        help="Print full summary JSON in stdout after run.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


_LIST_ARGS = {
    "include_pattern": "include_patterns",
    "exclude_pattern": "exclude_patterns",
    "link_keyword": "link_keywords",
    "exclude_keyword": "exclude_keywords",
    "content_keyword": "content_keywords",
    "exclude_content_keyword": "exclude_content_keywords",
    "content_pattern": "content_patterns",
    "selector": "selectors",
}

_SCALAR_ARGS = (
    "max_depth",
    "max_pages",
    "target_filtered_pages",
    "min_content_matches",
    "explore_lists",
    "structured_navigation",
    "backend",
    "timeout_seconds",
    "retries",
    "user_agent",
)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    payload: dict[str, Any] = load_config(args.config).to_dict() if args.config else {}

    if args.url:
        payload["base_url"] = args.url
    if not payload.get("base_url"):
        raise ValueError("No base URL provided. Use --config or --url.")

    for arg_name, field_name in _LIST_ARGS.items():
        values = getattr(args, arg_name)
        if values:
            payload[field_name] = list(values)

    for name in _SCALAR_ARGS:
        value = getattr(args, name)
        if value is not None:
            payload[name] = value

    return check_request_bounds(CrawlConfig.from_dict(payload))


def setup_logging(verbose: bool, log_file: Path | None = None) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Trafilatura emits "discarding data: None" on most noisy pages.
    logging.getLogger("trafilatura").setLevel(logging.ERROR)
    logging.getLogger("trafilatura.core").setLevel(logging.ERROR)
    # Selenium and urllib3 log every wire request at DEBUG.
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_summary(summary: CrawlSummary, paths: dict[str, Any], *, print_summary_json: bool) -> None:
    print("\n=== Crawl Complete ===")
    print(f"base_url: {summary.base_url}")
    print(f"output_dir: {paths.get('output_dir')}")
    print(f"summary: {paths.get('summary')}")
    print(f"pages: {paths.get('pages')}")
    print(f"errors: {paths.get('errors')}")

    print("\n--- Core Stats ---")
    print(f"total_pages: {summary.total_pages}")
    print(f"filtered_pages: {summary.filtered_pages}")
    if summary.target_filtered_pages is not None:
        print(f"reached_target: {summary.reached_target} ({summary.target_filtered_pages})")
    print(f"total_links: {summary.total_links}")
    print(f"total_images: {summary.total_images}")
    print(f"errors_recorded: {len(summary.errors)}")
    print(f"duration_ms: {summary.duration_ms}")

    if print_summary_json:
        print("\n--- Full Summary JSON ---")
        print(json.dumps(summary.to_json(), indent=2, sort_keys=True))


def _run_job(config: CrawlConfig, poll_seconds: float) -> CrawlSummary:
    manager = JobManager()
    job_id = manager.submit(config)

    job = manager.get_status(job_id)
    while job is not None and not job.status.is_terminal:
        LOGGER.info(
            "Job %s %s: page %d/%d, filtered %d (%s)",
            job_id,
            job.status.value,
            job.progress.current_page,
            job.progress.total_pages,
            job.progress.filtered_pages,
            job.progress.message,
        )
        time.sleep(poll_seconds)
        job = manager.get_status(job_id)

    if job is None or job.result is None:
        raise RuntimeError(f"Job {job_id} failed: {job.error if job else 'job vanished'}")
    return job.result


def _run_scrape(args: argparse.Namespace, storage: Storage) -> int:
    url = args.url
    if not url and args.config:
        url = load_config(args.config).base_url
    if not url:
        LOGGER.error("Scrape mode needs --url or --config")
        return 2

    backend = FetchBackend(args.backend) if args.backend else FetchBackend.REQUESTS
    try:
        page = scrape_url(url, args.selector or None, backend=backend)
    except (FetchError, ValueError) as exc:
        LOGGER.error("Scrape failed: %s", exc)
        return 1

    storage.save_pages([page])
    print(json.dumps(page.to_json(), indent=2, ensure_ascii=False, sort_keys=True))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose, args.output_dir / "logs" / "crawl.log")
    storage = Storage(args.output_dir)

    if args.mode == "scrape":
        return _run_scrape(args, storage)

    try:
        config = build_config(args)
    except Exception as exc:
        LOGGER.error("Failed to build config: %s", exc)
        return 2

    storage.save_crawl_config(config)
    LOGGER.info(
        "Starting %s: base_url=%s, max_depth=%d, max_pages=%d, output_dir=%s",
        args.mode,
        config.base_url,
        config.max_depth,
        config.max_pages,
        args.output_dir,
    )

    try:
        if args.mode == "job":
            summary = _run_job(config, args.poll_seconds)
        else:
            summary = run_crawl_sync(config)
    except KeyboardInterrupt:
        LOGGER.error("Interrupted by user")
        return 130
    except Exception:
        LOGGER.exception("Crawl failed")
        return 1

    storage.save_summary(summary)
    print_summary(summary, storage.paths, print_summary_json=args.print_summary_json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
