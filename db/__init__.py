"""Database helpers for ytbatch."""

from db.tracks import (
    TRACK_STATUS_DOWNLOADED,
    TRACK_STATUS_FAILED,
    TrackRecord,
    TrackStore,
)

__all__ = ["TRACK_STATUS_DOWNLOADED", "TRACK_STATUS_FAILED", "TrackRecord", "TrackStore"]
