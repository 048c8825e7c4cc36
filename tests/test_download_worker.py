from __future__ import annotations

import json
import logging
from pathlib import Path
from types import SimpleNamespace

from db.tracks import TRACK_STATUS_DOWNLOADED, TRACK_STATUS_FAILED, TrackRecord, TrackStore
from download.invoker import ExtractionResult, InvocationError, NoAudioError
from download.worker import (
    JOB_STATUS_DOWNLOADED,
    JOB_STATUS_FAILED,
    JOB_STATUS_SKIPPED,
    DownloadWorker,
    synthetic_item_id,
)


class _MockExtractor:
    """Writes final files directly, or raises the configured error."""

    def __init__(self, *, error=None, info_payload=None, write_audio=True) -> None:
        self.error = error
        self.info_payload = info_payload
        self.write_audio = write_audio
        self.calls: list[str] = []

    def extract(self, url: str, audio_dir: str, metadata_dir: str) -> ExtractionResult:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        item_id = url.rsplit("/", 1)[-1]
        info_path = Path(metadata_dir) / f"{item_id}.info.json"
        audio_path = Path(audio_dir) / f"{item_id}.mp3"
        info_path.parent.mkdir(parents=True, exist_ok=True)
        audio_path.parent.mkdir(parents=True, exist_ok=True)
        payload = self.info_payload
        if payload is None:
            payload = json.dumps({"id": item_id, "title": "T", "uploader": "U", "duration": 61.2})
        info_path.write_text(payload, encoding="utf-8")
        if self.write_audio:
            audio_path.write_bytes(b"audio")
        return ExtractionResult(item_id=item_id, info_path=str(info_path), audio_path=str(audio_path))


def _worker(tmp_path, extractor):
    store = TrackStore(tmp_path / "tracks.db")
    return store, DownloadWorker(store, extractor, tmp_path / "mp3", tmp_path / "json")


def test_process_job_records_downloaded_track(tmp_path) -> None:
    store, worker = _worker(tmp_path, _MockExtractor())

    status = worker.process_job(SimpleNamespace(url="https://x/abc"), worker_name="worker 1")

    assert status == JOB_STATUS_DOWNLOADED
    record = store.get_track("abc")
    assert record.status == TRACK_STATUS_DOWNLOADED
    assert record.url == "https://x/abc"
    assert record.title == "T"
    assert record.uploader == "U"
    assert record.duration_seconds == 61
    assert record.audio_path == str(tmp_path / "mp3" / "abc.mp3")
    assert json.loads(record.info_json)["id"] == "abc"


def test_process_job_logs_canonical_page_url_on_success(tmp_path, caplog) -> None:
    payload = json.dumps({"id": "abc", "webpage_url": "https://www.youtube.com/watch?v=abc"})
    _store, worker = _worker(tmp_path, _MockExtractor(info_payload=payload))

    with caplog.at_level(logging.INFO, logger="download.worker"):
        status = worker.process_job(SimpleNamespace(url="https://youtu.be/abc"), worker_name="worker 2")

    assert status == JOB_STATUS_DOWNLOADED
    done = [r.getMessage() for r in caplog.records if "done:" in r.getMessage()]
    assert done == [
        f"[worker 2] done: https://youtu.be/abc (https://www.youtube.com/watch?v=abc) -> {tmp_path / 'mp3' / 'abc.mp3'}"
    ]


def test_process_job_skips_url_already_downloaded(tmp_path) -> None:
    extractor = _MockExtractor()
    store, worker = _worker(tmp_path, extractor)
    store.upsert_track(TrackRecord(item_id="abc", url="https://x/abc", status=TRACK_STATUS_DOWNLOADED))

    status = worker.process_job(SimpleNamespace(url="https://x/abc"))

    assert status == JOB_STATUS_SKIPPED
    assert extractor.calls == []


def test_process_job_records_invocation_failure_with_synthetic_id(tmp_path) -> None:
    store, worker = _worker(tmp_path, _MockExtractor(error=InvocationError("yt-dlp failed: exit status 1")))

    status = worker.process_job(SimpleNamespace(url="https://x/bad"))

    assert status == JOB_STATUS_FAILED
    record = store.get_track(synthetic_item_id("https://x/bad"))
    assert record.status == TRACK_STATUS_FAILED
    assert record.url == "https://x/bad"
    assert record.error_text == "download:yt-dlp failed: exit status 1"
    assert store.has_downloaded_url("https://x/bad") is False


def test_failures_for_distinct_urls_keep_distinct_rows(tmp_path) -> None:
    store, worker = _worker(tmp_path, _MockExtractor(error=InvocationError("boom")))

    worker.process_job(SimpleNamespace(url="https://x/1"))
    worker.process_job(SimpleNamespace(url="https://x/2"))
    worker.process_job(SimpleNamespace(url="https://x/1"))

    assert store.count_by_status() == {TRACK_STATUS_FAILED: 2}


def test_process_job_records_no_audio_with_identifier_and_info_path(tmp_path) -> None:
    info_path = tmp_path / "json" / "abc.info.json"
    info_path.parent.mkdir(parents=True)
    info_path.write_text('{"id": "abc"}', encoding="utf-8")
    error = NoAudioError("no mp3 file produced by yt-dlp", item_id="abc", info_path=str(info_path))
    store, worker = _worker(tmp_path, _MockExtractor(error=error))

    status = worker.process_job(SimpleNamespace(url="https://x/abc"))

    assert status == JOB_STATUS_FAILED
    record = store.get_track("abc")
    assert record.status == TRACK_STATUS_FAILED
    assert record.audio_path is None
    assert record.info_path == str(info_path)
    assert record.info_json == '{"id": "abc"}'
    assert record.error_text.startswith("no-audio:")


def test_process_job_records_parse_failure_preserving_paths(tmp_path) -> None:
    store, worker = _worker(tmp_path, _MockExtractor(info_payload="{broken"))

    status = worker.process_job(SimpleNamespace(url="https://x/abc"))

    assert status == JOB_STATUS_FAILED
    record = store.get_track("abc")
    assert record.status == TRACK_STATUS_FAILED
    assert record.audio_path == str(tmp_path / "mp3" / "abc.mp3")
    assert record.error_text.startswith("parse-info-json:")


def test_process_job_never_marks_downloaded_without_audio_on_disk(tmp_path) -> None:
    store, worker = _worker(tmp_path, _MockExtractor(write_audio=False))

    status = worker.process_job(SimpleNamespace(url="https://x/abc"))

    assert status == JOB_STATUS_FAILED
    assert store.get_track("abc").status == TRACK_STATUS_FAILED
    assert store.has_downloaded_url("https://x/abc") is False


def test_process_job_reports_store_failure_without_raising(tmp_path, monkeypatch) -> None:
    import sqlite3

    store, worker = _worker(tmp_path, _MockExtractor())

    def _locked(_record):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(store, "upsert_track", _locked)

    assert worker.process_job(SimpleNamespace(url="https://x/abc")) == JOB_STATUS_FAILED
