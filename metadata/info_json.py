"""Helpers for yt-dlp ``.info.json`` sidecar files."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from config.settings import INFO_JSON_SUFFIX
from metadata.types import TrackInfo

logger = logging.getLogger(__name__)


class InfoJsonError(ValueError):
    """Raised when an info-json document cannot be read or is malformed."""


def find_info_json(directory: str | Path) -> Path | None:
    """Return the newest ``*.info.json`` file under ``directory``.

    The top level is checked first; if it holds no candidates the directory is
    walked recursively. ``None`` means the tool produced no metadata at all.
    """
    root = Path(directory)
    if not root.is_dir():
        return None
    candidates = [p for p in root.glob(f"*{INFO_JSON_SUFFIX}") if p.is_file()]
    if not candidates:
        for dirpath, _dirnames, filenames in os.walk(root):
            for name in filenames:
                if name.endswith(INFO_JSON_SUFFIX):
                    candidates.append(Path(dirpath) / name)
    if not candidates:
        return None

    def _mtime(path: Path) -> float:
        try:
            return path.stat().st_mtime
        except OSError:
            return 0.0

    return max(candidates, key=_mtime)


def item_id_from_filename(path: str | Path) -> str:
    name = Path(path).name
    if name.endswith(INFO_JSON_SUFFIX):
        return name[: -len(INFO_JSON_SUFFIX)]
    return Path(name).stem


def read_item_id(path: str | Path) -> str:
    """Return the item identifier recorded in an info-json file.

    Falls back to the filename-derived identifier when the document has no
    ``id`` or cannot be decoded, so an existing metadata file never yields an
    empty identifier. Full validation happens later in :func:`parse_info_json`.
    """
    try:
        payload = _load_document(path)
    except InfoJsonError as exc:
        logger.warning("info json unreadable, using filename id path=%s err=%s", path, exc)
        payload = {}
    item_id = str(payload.get("id") or "").strip()
    if item_id and not _is_safe_item_id(item_id):
        logger.warning("info json id is not a safe file name, using filename id path=%s id=%r", path, item_id)
        item_id = ""
    return item_id or item_id_from_filename(path)


def parse_info_json(path: str | Path) -> TrackInfo:
    """Parse an info-json file into :class:`TrackInfo`.

    Raises:
        InfoJsonError: If the file is unreadable, not JSON, or not an object.
    """
    payload, raw = _load_document_with_raw(path)
    return TrackInfo(
        item_id=_safe_item_id(payload.get("id")) or item_id_from_filename(path),
        title=_optional_str(payload.get("title")),
        uploader=_optional_str(payload.get("uploader") or payload.get("channel")),
        duration_seconds=_parse_duration_seconds(payload.get("duration")),
        webpage_url=_optional_str(payload.get("webpage_url")),
        raw_json=raw,
    )


def _load_document(path: str | Path) -> dict[str, Any]:
    payload, _raw = _load_document_with_raw(path)
    return payload


def _load_document_with_raw(path: str | Path) -> tuple[dict[str, Any], str]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = handle.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise InfoJsonError(f"cannot read {path}: {exc}") from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InfoJsonError(f"invalid JSON in {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise InfoJsonError(f"expected a JSON object in {path}, got {type(payload).__name__}")
    return payload, raw


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_duration_seconds(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _is_safe_item_id(item_id: str) -> bool:
    """Item ids become file names; they must not leave the target directory."""
    if item_id in (".", ".."):
        return False
    separators = {"/", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    return not any(sep in item_id for sep in separators) and "\x00" not in item_id


def _safe_item_id(value: Any) -> str:
    item_id = str(value or "").strip()
    return item_id if _is_safe_item_id(item_id) else ""
