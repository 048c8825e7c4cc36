"""SQLite migrations for the track store."""

from __future__ import annotations

import sqlite3


def ensure_tracks_table(conn: sqlite3.Connection) -> None:
    """Ensure the tracks table and its lookup indexes exist."""
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS tracks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            item_id TEXT NOT NULL UNIQUE,
            url TEXT NOT NULL,
            title TEXT,
            uploader TEXT,
            duration_seconds INTEGER,
            audio_path TEXT,
            info_path TEXT,
            info_json TEXT,
            downloaded_at TEXT,
            status TEXT NOT NULL DEFAULT 'downloaded',
            error_text TEXT
        )
        """
    )
    cur.execute("PRAGMA table_info(tracks)")
    existing_columns = {row[1] for row in cur.fetchall()}
    if "info_path" not in existing_columns:
        cur.execute("ALTER TABLE tracks ADD COLUMN info_path TEXT")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_tracks_item_id ON tracks (item_id)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_tracks_url ON tracks (url)")
    conn.commit()
