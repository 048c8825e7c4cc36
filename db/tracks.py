"""Persistence for downloaded tracks keyed by yt-dlp item id."""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from db.migrations import ensure_tracks_table

TRACK_STATUS_DOWNLOADED = "downloaded"
TRACK_STATUS_FAILED = "failed"
TRACK_STATUSES = {TRACK_STATUS_DOWNLOADED, TRACK_STATUS_FAILED}

_COLUMNS = (
    "item_id",
    "url",
    "title",
    "uploader",
    "duration_seconds",
    "audio_path",
    "info_path",
    "info_json",
    "downloaded_at",
    "status",
    "error_text",
)


def utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


@dataclass(frozen=True)
class TrackRecord:
    item_id: str
    url: str
    status: str
    title: str | None = None
    uploader: str | None = None
    duration_seconds: int | None = None
    audio_path: str | None = None
    info_path: str | None = None
    info_json: str | None = None
    error_text: str | None = None
    downloaded_at: str | None = None


class TrackStore:
    """SQLite-backed table holding one row per item id.

    Each operation opens its own short-lived connection so worker threads never
    share a handle. Writes are additionally serialized in-process; SQLite's busy
    timeout covers writers from other processes.
    """

    def __init__(self, db_path):
        self.db_path = str(db_path)
        self._write_lock = threading.Lock()
        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            ensure_tracks_table(conn)
        finally:
            conn.close()

    def _connect(self):
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _row_to_record(row):
        if not row:
            return None
        return TrackRecord(
            item_id=row["item_id"],
            url=row["url"],
            status=row["status"],
            title=row["title"],
            uploader=row["uploader"],
            duration_seconds=row["duration_seconds"],
            audio_path=row["audio_path"],
            info_path=row["info_path"],
            info_json=row["info_json"],
            error_text=row["error_text"],
            downloaded_at=row["downloaded_at"],
        )

    def has_downloaded_url(self, url: str) -> bool:
        """Return True when a ``downloaded`` record exists for the URL."""
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT 1 FROM tracks WHERE url=? AND status=? LIMIT 1",
                (url, TRACK_STATUS_DOWNLOADED),
            )
            return cur.fetchone() is not None
        finally:
            conn.close()

    def upsert_track(self, record: TrackRecord) -> None:
        """Insert the record or overwrite every field of the existing row.

        The row keeps its item id; everything else, including the timestamp,
        is replaced. No history of prior values is kept.
        """
        if not (record.item_id or "").strip():
            raise ValueError("item_id is required")
        if not (record.url or "").strip():
            raise ValueError("url is required")
        if record.status not in TRACK_STATUSES:
            raise ValueError(f"unsupported track status: {record.status}")

        values = (
            record.item_id,
            record.url,
            record.title,
            record.uploader,
            record.duration_seconds,
            record.audio_path,
            record.info_path,
            record.info_json,
            record.downloaded_at or utc_now(),
            record.status,
            record.error_text if record.status == TRACK_STATUS_FAILED else None,
        )
        updates = ",\n                ".join(f"{col}=excluded.{col}" for col in _COLUMNS[1:])
        with self._write_lock:
            conn = self._connect()
            try:
                conn.execute(
                    f"""
                    INSERT INTO tracks ({", ".join(_COLUMNS)})
                    VALUES ({", ".join("?" for _ in _COLUMNS)})
                    ON CONFLICT(item_id) DO UPDATE SET
                    {updates}
                    """,
                    values,
                )
                conn.commit()
            finally:
                conn.close()

    def get_track(self, item_id: str) -> TrackRecord | None:
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute(f"SELECT {', '.join(_COLUMNS)} FROM tracks WHERE item_id=? LIMIT 1", (item_id,))
            return self._row_to_record(cur.fetchone())
        finally:
            conn.close()

    def list_tracks(self, *, status: str | None = None) -> list[TrackRecord]:
        conn = self._connect()
        try:
            cur = conn.cursor()
            if status is None:
                cur.execute(f"SELECT {', '.join(_COLUMNS)} FROM tracks ORDER BY id")
            else:
                cur.execute(f"SELECT {', '.join(_COLUMNS)} FROM tracks WHERE status=? ORDER BY id", (status,))
            return [self._row_to_record(row) for row in cur.fetchall()]
        finally:
            conn.close()

    def count_by_status(self) -> dict[str, int]:
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute("SELECT status, COUNT(*) FROM tracks GROUP BY status")
            return {row[0]: row[1] for row in cur.fetchall()}
        finally:
            conn.close()
