"""Application settings constants."""

from __future__ import annotations

# Command-line defaults.
DEFAULT_CSV_PATH = "urls.csv"
DEFAULT_DB_PATH = "tracks.db"
DEFAULT_AUDIO_DIR = "./downloads/mp3"
DEFAULT_METADATA_DIR = "./data/json"
DEFAULT_WORKERS = 3

# Audio extraction target. Quality "0" is yt-dlp's best VBR setting.
DEFAULT_AUDIO_FORMAT = "mp3"
DEFAULT_AUDIO_QUALITY = "0"
SUPPORTED_AUDIO_FORMATS = ("mp3", "m4a", "flac")

# Prefer audio-only formats first; fall back to any best format only if needed.
YTDLP_FORMAT_SELECTOR = "bestaudio/best"
YTDLP_OUTPUT_TEMPLATE = "%(id)s.%(ext)s"
DEFAULT_YTDLP_COMMAND = ("yt-dlp",)

INFO_JSON_SUFFIX = ".info.json"
SCRATCH_DIR_PREFIX = "ytjob-"

# Environment overrides, applied below the JSON config file and CLI flags.
ENV_CSV_PATH = "YTBATCH_CSV_PATH"
ENV_DB_PATH = "YTBATCH_DB_PATH"
ENV_AUDIO_DIR = "YTBATCH_AUDIO_DIR"
ENV_METADATA_DIR = "YTBATCH_METADATA_DIR"
ENV_APP_VERSION = "YTBATCH_VERSION"
