"""Filesystem output for crawl results.

Storage owns the on-disk layout. Other modules should use this API instead of
building paths manually.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable, Mapping

from .config import CrawlConfig
from .constants import JSON_INDENT
from .sitetree import SiteTree
from .types import CrawlJob, CrawlSummary, ErrorRecord, JSONDict, ScrapedPage


class Storage:
    """Persist crawl outputs under a single `output_dir` root."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

        self.summary_path = self.output_dir / "summary.json"
        self.pages_path = self.output_dir / "pages.jsonl"
        self.errors_path = self.output_dir / "errors.jsonl"
        self.site_tree_path = self.output_dir / "site_tree.json"
        self.crawl_config_path = self.output_dir / "crawl_config.json"
        self.jobs_dir = self.output_dir / "jobs"

        self.output_dir.mkdir(parents=True, exist_ok=True)

    @property
    def paths(self) -> JSONDict:
        """Return important output paths for logging/CLI status messages."""

        return {
            "output_dir": str(self.output_dir),
            "summary": str(self.summary_path),
            "pages": str(self.pages_path),
            "errors": str(self.errors_path),
            "site_tree": str(self.site_tree_path),
            "crawl_config": str(self.crawl_config_path),
        }

    def save_crawl_config(self, config: CrawlConfig | Mapping[str, Any]) -> None:
        payload = config.to_dict() if isinstance(config, CrawlConfig) else dict(config)
        self._atomic_write_json(self.crawl_config_path, payload)

    def save_summary(self, summary: CrawlSummary) -> None:
        """Write summary, pages, errors and the site tree for one crawl."""

        self._atomic_write_json(self.summary_path, summary.to_json())
        self.save_pages(summary.pages)
        self.save_errors(summary.errors)
        self._atomic_write_json(
            self.site_tree_path,
            {"rows": SiteTree.from_pages(summary.pages).to_rows()},
        )

    def save_pages(self, pages: Iterable[ScrapedPage]) -> None:
        self._atomic_write_jsonl(self.pages_path, (page.to_json() for page in pages))

    def save_errors(self, errors: Iterable[ErrorRecord]) -> None:
        self._atomic_write_jsonl(self.errors_path, (error.to_json() for error in errors))

    def save_job(self, job: CrawlJob) -> Path:
        self.jobs_dir.mkdir(parents=True, exist_ok=True)
        path = self.jobs_dir / f"{job.job_id}.json"
        self._atomic_write_json(path, job.to_json())
        return path

    @classmethod
    def _atomic_write_jsonl(cls, path: Path, payloads: Iterable[Mapping[str, Any]]) -> None:
        content = "".join(
            json.dumps(payload, ensure_ascii=False, sort_keys=True) + "\n" for payload in payloads
        )
        cls._atomic_write_text(path, content)

    @classmethod
    def _atomic_write_json(cls, path: Path, payload: Mapping[str, Any]) -> None:
        content = json.dumps(payload, ensure_ascii=False, indent=JSON_INDENT, sort_keys=True) + "\n"
        cls._atomic_write_text(path, content)

    @staticmethod
    def _atomic_write_text(path: Path, content: str) -> None:
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise


__all__ = ["Storage"]
