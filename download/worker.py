"""Per-job download behavior: skip check, extract, parse, record."""

from __future__ import annotations

import hashlib
import logging
import os
import sqlite3
from typing import Any, Protocol

from db.tracks import TRACK_STATUS_DOWNLOADED, TRACK_STATUS_FAILED, TrackRecord, TrackStore
from download.invoker import ExtractionError, ExtractionResult
from metadata.info_json import InfoJsonError, parse_info_json

logger = logging.getLogger(__name__)

JOB_STATUS_DOWNLOADED = "downloaded"
JOB_STATUS_FAILED = "failed"
JOB_STATUS_SKIPPED = "skipped"


class _Extractor(Protocol):
    def extract(self, url: str, audio_dir: str, metadata_dir: str) -> ExtractionResult:
        """Download a URL and return the published item id and file paths."""


def synthetic_item_id(url: str) -> str:
    """Return the store key used for failures that never learned an item id."""
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:16]
    return f"failed:{digest}"


class DownloadWorker:
    """Runs the full sequence for one job and records the outcome.

    Every failure is recorded and reported through the return value; nothing
    raised here is meant to reach the pool.
    """

    def __init__(self, store: TrackStore, extractor: _Extractor, audio_dir, metadata_dir) -> None:
        self._store = store
        self._extractor = extractor
        self._audio_dir = str(audio_dir)
        self._metadata_dir = str(metadata_dir)

    def process_job(self, job: Any, *, worker_name: str = "worker") -> str:
        """Process one job and return ``downloaded``, ``failed`` or ``skipped``."""
        url = job.url
        logger.info("[%s] processing %s", worker_name, url)
        try:
            return self._process(url, worker_name)
        except sqlite3.Error:
            logger.exception("[%s] db write failed for %s", worker_name, url)
            return JOB_STATUS_FAILED
        except Exception:
            logger.exception("[%s] unexpected error for %s", worker_name, url)
            return JOB_STATUS_FAILED

    def _process(self, url: str, worker_name: str) -> str:
        if self._store.has_downloaded_url(url):
            logger.info("[%s] already downloaded (DB), skipping %s", worker_name, url)
            return JOB_STATUS_SKIPPED

        try:
            result = self._extractor.extract(url, self._audio_dir, self._metadata_dir)
        except ExtractionError as exc:
            logger.warning("[%s] download failed: %s", worker_name, exc)
            info_json = _read_text_or_none(exc.info_path)
            self._record_failure(
                url,
                item_id=exc.item_id,
                error_text=f"{exc.reason}:{exc}",
                info_path=exc.info_path,
                info_json=info_json,
            )
            return JOB_STATUS_FAILED

        try:
            info = parse_info_json(result.info_path)
        except InfoJsonError as exc:
            logger.warning("[%s] failed to parse info json: %s", worker_name, exc)
            self._record_failure(
                url,
                item_id=result.item_id,
                error_text=f"parse-info-json:{exc}",
                audio_path=result.audio_path,
                info_path=result.info_path,
            )
            return JOB_STATUS_FAILED

        # Only mark downloaded once both final files are confirmed in place.
        missing = [p for p in (result.info_path, result.audio_path) if not os.path.isfile(p)]
        if missing:
            logger.warning("[%s] published files missing: %s", worker_name, ", ".join(missing))
            self._record_failure(
                url,
                item_id=result.item_id,
                error_text=f"publish:missing {', '.join(missing)}",
                info_path=result.info_path,
                info_json=info.raw_json,
            )
            return JOB_STATUS_FAILED

        self._store.upsert_track(
            TrackRecord(
                item_id=result.item_id,
                url=url,
                status=TRACK_STATUS_DOWNLOADED,
                title=info.title,
                uploader=info.uploader,
                duration_seconds=info.duration_seconds,
                audio_path=result.audio_path,
                info_path=result.info_path,
                info_json=info.raw_json,
            )
        )
        logger.info("[%s] done: %s (%s) -> %s", worker_name, url, info.webpage_url or "-", result.audio_path)
        return JOB_STATUS_DOWNLOADED

    def _record_failure(
        self,
        url: str,
        *,
        item_id: str | None,
        error_text: str,
        audio_path: str | None = None,
        info_path: str | None = None,
        info_json: str | None = None,
    ) -> None:
        self._store.upsert_track(
            TrackRecord(
                item_id=item_id or synthetic_item_id(url),
                url=url,
                status=TRACK_STATUS_FAILED,
                audio_path=audio_path,
                info_path=info_path,
                info_json=info_json,
                error_text=error_text,
            )
        )


def _read_text_or_none(path: str | None) -> str | None:
    if not path:
        return None
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError):
        return None
