#!/usr/bin/env python3
"""
Batch audio downloader for a CSV list of media URLs.
- URLs come from the first column of a CSV (e.g. the tab tracker's export).
- A fixed pool of workers runs yt-dlp per URL in its own scratch directory.
- Audio and .info.json sidecars land in two output directories.
- A SQLite table keyed by yt-dlp id lets re-runs skip finished URLs.
"""

import argparse
import logging
import os
import sqlite3
import sys
from datetime import datetime

from engine.core import build_config, load_config, run_pipeline
from engine.runtime import get_runtime_info

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def configure_logging(verbose=False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stdout,
    )


def build_parser():
    parser = argparse.ArgumentParser(description="Download audio for every URL in a CSV file.")
    parser.add_argument("--config", help="Optional JSON config file.")
    parser.add_argument("--csv", dest="csv_path", help="CSV file of URLs (first column).")
    parser.add_argument("--db", dest="db_path", help="SQLite database path.")
    parser.add_argument("--mp3dir", "--audio-dir", dest="audio_dir", help="Directory for audio files.")
    parser.add_argument("--datadir", "--metadata-dir", dest="metadata_dir", help="Directory for .info.json files.")
    parser.add_argument("--workers", type=int, help="Number of concurrent workers.")
    parser.add_argument("--audio-format", help="Target audio codec (mp3, m4a, flac).")
    parser.add_argument("--ytdlp", dest="ytdlp_command", help="yt-dlp command to run (default: yt-dlp).")
    parser.add_argument("--cookies", dest="cookies_file", help="Cookies file passed to yt-dlp.")
    parser.add_argument("--timeout", dest="invocation_timeout", type=float, help="Per-URL yt-dlp timeout in seconds.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log yt-dlp output and debug events.")
    parser.add_argument("--version", action="store_true", help="Print version information and exit.")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.version:
        info = get_runtime_info()
        print(
            f"ytbatch {info['app_version']} "
            f"(python {info['python_version']}, yt-dlp {info['yt_dlp_version']})"
        )
        return 0

    configure_logging(args.verbose)

    raw = None
    if args.config and not os.path.exists(args.config):
        logging.error("Config file not found: %s", args.config)
        return 1

    try:
        if args.config:
            raw = load_config(args.config)
        config = build_config(
            raw,
            csv_path=args.csv_path,
            db_path=args.db_path,
            audio_dir=args.audio_dir,
            metadata_dir=args.metadata_dir,
            workers=args.workers,
            audio_format=args.audio_format,
            ytdlp_command=args.ytdlp_command,
            cookies_file=args.cookies_file,
            invocation_timeout=args.invocation_timeout,
        )
    except ValueError as exc:
        logging.error("%s", exc)
        return 1

    logging.info("runtime %s", get_runtime_info())
    try:
        summary = run_pipeline(config)
    except (OSError, sqlite3.Error) as exc:
        logging.error("cannot start run: %s", exc)
        return 1

    logging.info(
        "downloaded=%d failed=%d skipped=%d",
        len(summary.downloaded),
        len(summary.failed),
        len(summary.skipped),
    )
    print("All done at", datetime.now().isoformat(timespec="seconds"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
