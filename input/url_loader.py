"""Load the URL list that feeds a run."""

from __future__ import annotations

import csv
import logging

from engine.job_queue import Job

logger = logging.getLogger(__name__)


def _looks_like_header(cell: str) -> bool:
    text = cell.strip().lower()
    return "url" in text and "://" not in text


def read_csv_urls(path) -> list[str]:
    """Return the trimmed, non-blank first-column values of a CSV file.

    The first row is dropped when its first cell reads like a ``url`` column
    header rather than an actual URL.
    """
    urls: list[str] = []
    with open(path, "r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.reader(handle)
        first_row = True
        for row in reader:
            if not row:
                continue
            cell = row[0]
            if first_row:
                first_row = False
                if _looks_like_header(cell):
                    continue
            url = cell.strip()
            if url:
                urls.append(url)
    return urls


def dedupe_urls(urls) -> list[str]:
    """Drop exact duplicates while keeping first-seen order."""
    seen: set[str] = set()
    unique: list[str] = []
    for raw in urls:
        url = (raw or "").strip()
        if not url or url in seen:
            continue
        seen.add(url)
        unique.append(url)
    return unique


def load_jobs(path, store) -> list[Job]:
    """Read, dedupe and pre-filter URLs against the store's completed records."""
    jobs: list[Job] = []
    for url in dedupe_urls(read_csv_urls(path)):
        if store.has_downloaded_url(url):
            logger.info("[main] skipping already-downloaded url: %s", url)
            continue
        jobs.append(Job(url=url))
    return jobs
