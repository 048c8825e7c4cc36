import os
from dataclasses import dataclass
from pathlib import Path

from config.settings import (
    DEFAULT_AUDIO_DIR,
    DEFAULT_CSV_PATH,
    DEFAULT_DB_PATH,
    DEFAULT_METADATA_DIR,
    ENV_AUDIO_DIR,
    ENV_CSV_PATH,
    ENV_DB_PATH,
    ENV_METADATA_DIR,
)


def default_paths():
    """Path defaults after environment overrides, before config file and flags."""
    return {
        "csv_path": os.environ.get(ENV_CSV_PATH, DEFAULT_CSV_PATH),
        "db_path": os.environ.get(ENV_DB_PATH, DEFAULT_DB_PATH),
        "audio_dir": os.environ.get(ENV_AUDIO_DIR, DEFAULT_AUDIO_DIR),
        "metadata_dir": os.environ.get(ENV_METADATA_DIR, DEFAULT_METADATA_DIR),
    }


@dataclass(frozen=True)
class PipelinePaths:
    audio_dir: str
    metadata_dir: str
    db_path: str


def ensure_dir(path):
    if path:
        os.makedirs(path, exist_ok=True)


def build_pipeline_paths(config):
    audio_dir = Path(config.audio_dir).resolve()
    metadata_dir = Path(config.metadata_dir).resolve()
    db_path = Path(config.db_path).resolve()

    # Ensure required directories exist
    for d in (audio_dir, metadata_dir, db_path.parent):
        ensure_dir(d)

    return PipelinePaths(
        audio_dir=str(audio_dir),
        metadata_dir=str(metadata_dir),
        db_path=str(db_path),
    )
