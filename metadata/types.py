"""Structured metadata types for downloaded tracks."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TrackInfo:
    """Typed view over the fields of a yt-dlp ``.info.json`` document.

    Only the fields the pipeline records are lifted out. The full document is
    kept verbatim in ``raw_json`` so that unrecognized keys survive into the
    store untouched.
    """

    item_id: str
    title: str | None
    uploader: str | None
    duration_seconds: int | None
    webpage_url: str | None
    raw_json: str
