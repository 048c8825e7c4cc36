"""Placement of finished artifacts into their final locations."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def ensure_parent_dir(path: str | Path) -> None:
    """Create the parent directory for a destination path when needed."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def atomic_move(src: str | Path, dst: str | Path) -> None:
    """Move ``src`` to ``dst``, falling back to copy+remove across volumes.

    ``os.replace`` is tried first: it is atomic for readers of ``dst`` but only
    works when both paths live on the same filesystem. When it fails the file is
    copied into place and the source removed. A copy that fails partway may
    leave an incomplete ``dst`` behind; the error still propagates so callers
    never record the move as successful.

    Identical source and destination paths are a no-op.
    """
    src_path = os.path.abspath(os.fspath(src))
    dst_path = os.path.abspath(os.fspath(dst))
    if src_path == dst_path:
        return
    ensure_parent_dir(dst_path)
    try:
        os.replace(src_path, dst_path)
        return
    except OSError as exc:
        logger.debug("rename failed, copying instead src=%s dst=%s err=%s", src_path, dst_path, exc)
    shutil.copy2(src_path, dst_path)
    os.remove(src_path)
