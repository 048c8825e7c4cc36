import json
import logging
import shlex
from dataclasses import dataclass

from config.settings import (
    DEFAULT_AUDIO_FORMAT,
    DEFAULT_AUDIO_QUALITY,
    DEFAULT_WORKERS,
    DEFAULT_YTDLP_COMMAND,
    SUPPORTED_AUDIO_FORMATS,
)
from db.tracks import TrackStore
from download.invoker import YtDlpInvoker
from download.worker import DownloadWorker
from engine.job_queue import RunSummary, WorkerPool
from engine.paths import build_pipeline_paths, default_paths
from input.url_loader import load_jobs

logger = logging.getLogger(__name__)

_STRING_KEYS = ("csv_path", "db_path", "audio_dir", "metadata_dir")
_OPTIONAL_STRING_KEYS = ("cookies_file", "scratch_root")


@dataclass(frozen=True)
class PipelineConfig:
    """Run-wide settings, built once and handed to each component."""

    csv_path: str
    db_path: str
    audio_dir: str
    metadata_dir: str
    workers: int = DEFAULT_WORKERS
    audio_format: str = DEFAULT_AUDIO_FORMAT
    audio_quality: str = DEFAULT_AUDIO_QUALITY
    ytdlp_command: tuple = DEFAULT_YTDLP_COMMAND
    cookies_file: str | None = None
    scratch_root: str | None = None
    invocation_timeout: float | None = None


def load_config(path):
    with open(path, "r") as f:
        return json.load(f)


def validate_config(config):
    errors = []
    if not isinstance(config, dict):
        return ["config must be a JSON object"]

    for key in _STRING_KEYS:
        value = config.get(key)
        if value is not None and (not isinstance(value, str) or not value.strip()):
            errors.append(f"{key} must be a non-empty string")

    for key in _OPTIONAL_STRING_KEYS:
        value = config.get(key)
        if value is not None and not isinstance(value, str):
            errors.append(f"{key} must be a string")

    workers = config.get("workers")
    if workers is not None:
        if not isinstance(workers, int) or isinstance(workers, bool):
            errors.append("workers must be an integer")
        elif workers < 1:
            errors.append("workers must be >= 1")

    audio_format = config.get("audio_format")
    if audio_format is not None and audio_format not in SUPPORTED_AUDIO_FORMATS:
        errors.append(f"audio_format must be one of: {', '.join(SUPPORTED_AUDIO_FORMATS)}")

    audio_quality = config.get("audio_quality")
    if audio_quality is not None and not isinstance(audio_quality, (str, int)):
        errors.append("audio_quality must be a string or integer")

    command = config.get("ytdlp_command")
    if command is not None:
        if isinstance(command, str):
            if not command.strip():
                errors.append("ytdlp_command must not be empty")
        elif isinstance(command, (list, tuple)):
            if not command or not all(isinstance(part, str) and part for part in command):
                errors.append("ytdlp_command must be a non-empty list of strings")
        else:
            errors.append("ytdlp_command must be a string or a list of strings")

    timeout = config.get("invocation_timeout")
    if timeout is not None:
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool):
            errors.append("invocation_timeout must be a number")
        elif timeout <= 0:
            errors.append("invocation_timeout must be > 0")

    return errors


def build_config(raw=None, **overrides):
    """Merge defaults, environment, a config mapping and overrides.

    ``None`` override values are ignored so unset CLI flags fall through.

    Raises:
        ValueError: If the merged settings fail :func:`validate_config`.
    """
    merged = {
        **default_paths(),
        "workers": DEFAULT_WORKERS,
        "audio_format": DEFAULT_AUDIO_FORMAT,
        "audio_quality": DEFAULT_AUDIO_QUALITY,
        "ytdlp_command": list(DEFAULT_YTDLP_COMMAND),
    }
    if raw is not None:
        if not isinstance(raw, dict):
            raise ValueError("config must be a JSON object")
        merged.update(raw)
    merged.update({key: value for key, value in overrides.items() if value is not None})

    errors = validate_config(merged)
    if errors:
        raise ValueError("invalid config: " + "; ".join(errors))

    command = merged["ytdlp_command"]
    if isinstance(command, str):
        command = shlex.split(command)
    known = PipelineConfig.__dataclass_fields__
    unknown = sorted(set(merged) - set(known))
    if unknown:
        logger.warning("ignoring unknown config keys: %s", ", ".join(unknown))
    values = {key: merged[key] for key in known if key in merged}
    values["ytdlp_command"] = tuple(command)
    values["audio_quality"] = str(merged["audio_quality"])
    return PipelineConfig(**values)


def run_pipeline(config: PipelineConfig, *, extractor=None) -> RunSummary:
    """Load the URL list and push every pending URL through the worker pool.

    ``extractor`` replaces the yt-dlp invoker; anything with a matching
    ``extract(url, audio_dir, metadata_dir)`` method works.
    """
    paths = build_pipeline_paths(config)
    store = TrackStore(paths.db_path)
    jobs = load_jobs(config.csv_path, store)
    logger.info("queued %d job(s) from %s", len(jobs), config.csv_path)

    if extractor is None:
        extractor = YtDlpInvoker.from_config(config)
    worker = DownloadWorker(store, extractor, paths.audio_dir, paths.metadata_dir)
    pool = WorkerPool(worker, config.workers)
    return pool.run(jobs)
