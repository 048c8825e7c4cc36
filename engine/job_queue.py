"""Fixed-size worker pool draining a pre-filled job queue."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field

from download.worker import JOB_STATUS_DOWNLOADED, JOB_STATUS_FAILED, JOB_STATUS_SKIPPED
from engine.json_utils import log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Job:
    url: str

    def __post_init__(self):
        url = (self.url or "").strip()
        if not url:
            raise ValueError("job url must be non-empty")
        object.__setattr__(self, "url", url)


@dataclass
class RunSummary:
    downloaded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.downloaded) + len(self.failed) + len(self.skipped)

    def record(self, status: str, url: str) -> None:
        if status == JOB_STATUS_DOWNLOADED:
            self.downloaded.append(url)
        elif status == JOB_STATUS_SKIPPED:
            self.skipped.append(url)
        else:
            self.failed.append(url)


class WorkerPool:
    """Run jobs through ``worker.process_job`` on ``size`` threads.

    The queue is filled once and closed before any thread starts; a thread
    exits when it finds the queue empty. Each URL is claimed under a lock
    before processing so a URL queued twice in one run is only handled once;
    claims do not carry over to the next ``run``.
    """

    def __init__(self, worker, size: int) -> None:
        if size < 1:
            raise ValueError("pool size must be >= 1")
        self.worker = worker
        self.size = size
        self._claim_lock = threading.Lock()
        self._summary_lock = threading.Lock()

    def _claim(self, claimed: set[str], url: str) -> bool:
        with self._claim_lock:
            if url in claimed:
                return False
            claimed.add(url)
            return True

    def run(self, jobs) -> RunSummary:
        jobs = list(jobs)
        summary = RunSummary()
        if not jobs:
            log_event(logging.INFO, "pool_finished", jobs=0)
            return summary

        job_queue: queue.Queue = queue.Queue(maxsize=len(jobs))
        for job in jobs:
            job_queue.put_nowait(job)

        # Claims are scoped to this run; a later run may retry a failed URL.
        claimed: set[str] = set()
        started = time.monotonic()
        thread_count = min(self.size, len(jobs))
        log_event(logging.INFO, "pool_started", jobs=len(jobs), workers=thread_count)
        threads = []
        for index in range(thread_count):
            thread = threading.Thread(
                target=self._drain,
                args=(job_queue, summary, claimed, f"worker {index + 1}"),
                name=f"ytbatch-worker-{index + 1}",
                daemon=False,
            )
            thread.start()
            threads.append(thread)
        for thread in threads:
            thread.join()

        log_event(
            logging.INFO,
            "pool_finished",
            jobs=len(jobs),
            downloaded=len(summary.downloaded),
            failed=len(summary.failed),
            skipped=len(summary.skipped),
            elapsed_seconds=round(time.monotonic() - started, 3),
        )
        return summary

    def _drain(self, job_queue: queue.Queue, summary: RunSummary, claimed: set[str], worker_name: str) -> None:
        while True:
            try:
                job = job_queue.get_nowait()
            except queue.Empty:
                return
            try:
                if not self._claim(claimed, job.url):
                    logger.info("[%s] duplicate in this run, skipping %s", worker_name, job.url)
                    status = JOB_STATUS_SKIPPED
                else:
                    status = self.worker.process_job(job, worker_name=worker_name)
            except Exception:
                logger.exception("[%s] job crashed: %s", worker_name, job.url)
                status = JOB_STATUS_FAILED
            finally:
                job_queue.task_done()
            with self._summary_lock:
                summary.record(status, job.url)
