"""yt-dlp invocation for a single URL inside an isolated scratch directory."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from config.settings import (
    DEFAULT_AUDIO_FORMAT,
    DEFAULT_AUDIO_QUALITY,
    DEFAULT_YTDLP_COMMAND,
    INFO_JSON_SUFFIX,
    SCRATCH_DIR_PREFIX,
    YTDLP_FORMAT_SELECTOR,
    YTDLP_OUTPUT_TEMPLATE,
)
from engine.json_utils import log_event
from media.publish import atomic_move
from metadata.info_json import find_info_json, item_id_from_filename, read_item_id

logger = logging.getLogger(__name__)

_STDERR_TAIL_LINES = 5


class ExtractionError(RuntimeError):
    """Base class for a failed extraction of one URL."""

    reason = "download"

    def __init__(self, message, *, item_id=None, info_path=None):
        super().__init__(message)
        self.item_id = item_id
        self.info_path = info_path


class InvocationError(ExtractionError):
    """yt-dlp could not be started, exited non-zero, or timed out."""


class NoMetadataError(ExtractionError):
    """yt-dlp exited cleanly but wrote no info-json sidecar."""

    reason = "no-metadata"


class NoAudioError(ExtractionError):
    """Metadata was produced and published but the audio file is missing."""

    reason = "no-audio"


class PublishError(ExtractionError):
    """A produced file could not be moved into its final location."""

    reason = "publish"


@dataclass(frozen=True)
class ExtractionResult:
    item_id: str
    info_path: str
    audio_path: str


def build_ytdlp_opts(scratch_dir, *, audio_format, audio_quality, cookies_file=None):
    """Return yt-dlp options for best-audio extraction into ``scratch_dir``."""
    opts = {
        "format": YTDLP_FORMAT_SELECTOR,
        "outtmpl": os.path.join(str(scratch_dir), YTDLP_OUTPUT_TEMPLATE),
        "no_warnings": True,
        "writeinfojson": True,
        "postprocessors": [
            {
                "key": "FFmpegExtractAudio",
                "preferredcodec": audio_format,
                "preferredquality": str(audio_quality),
            }
        ],
    }
    if cookies_file:
        opts["cookiefile"] = str(cookies_file)
    return opts


def render_ytdlp_cli_argv(opts, url, *, command=DEFAULT_YTDLP_COMMAND):
    """Return a yt-dlp argv list suitable for subprocess.run(shell=False)."""
    argv = [str(part) for part in command]
    if opts.get("no_warnings"):
        argv.append("--no-warnings")
    if opts.get("format"):
        argv.extend(["--format", str(opts["format"])])
    for pp in opts.get("postprocessors") or []:
        if pp.get("key") == "FFmpegExtractAudio":
            argv.append("--extract-audio")
            if pp.get("preferredcodec"):
                argv.extend(["--audio-format", str(pp["preferredcodec"])])
            if pp.get("preferredquality") is not None:
                argv.extend(["--audio-quality", str(pp["preferredquality"])])
    if opts.get("writeinfojson"):
        argv.append("--write-info-json")
    if opts.get("cookiefile"):
        argv.extend(["--cookies", str(opts["cookiefile"])])
    if opts.get("outtmpl"):
        argv.extend(["-o", str(opts["outtmpl"])])
    argv.append(str(url))
    return argv


def _argv_to_redacted_cli(argv):
    redacted = []
    i = 0
    while i < len(argv):
        tok = argv[i]
        if tok == "--cookies" and i + 1 < len(argv):
            redacted.extend([tok, "<redacted>"])
            i += 2
            continue
        redacted.append(tok)
        i += 1
    return shlex.join(redacted)


def run_ytdlp_cli(cmd_argv, *, timeout=None):
    """Run yt-dlp to completion and return its captured stderr.

    Raises:
        InvocationError: When the executable is missing, exits non-zero, or
            runs past ``timeout`` seconds.
    """
    stderr_lines = []
    try:
        proc = subprocess.Popen(
            cmd_argv,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
        )
    except OSError as exc:
        raise InvocationError(f"yt-dlp could not be started: {exc}") from exc

    def _read_stderr():
        stream = proc.stderr
        if stream is None:
            return
        for raw_line in iter(stream.readline, ""):
            stderr_lines.append(raw_line)
            logger.debug("yt-dlp: %s", raw_line.rstrip())
        stream.close()

    reader = threading.Thread(target=_read_stderr, name="ytdlp-stderr-reader", daemon=True)
    reader.start()

    deadline = time.monotonic() + timeout if timeout else None
    while proc.poll() is None:
        if deadline is not None and time.monotonic() >= deadline:
            proc.kill()
            proc.wait()
            reader.join(timeout=1)
            raise InvocationError(f"yt-dlp timed out after {timeout}s")
        time.sleep(0.2)

    return_code = proc.wait()
    reader.join(timeout=1)
    stderr_output = "".join(stderr_lines).strip()
    if return_code != 0:
        tail = " | ".join(stderr_output.splitlines()[-_STDERR_TAIL_LINES:])
        message = f"yt-dlp failed: exit status {return_code}"
        if tail:
            message = f"{message}: {tail}"
        raise InvocationError(message)
    return stderr_output


class YtDlpInvoker:
    """Download one URL as audio plus info-json and publish both files.

    Every call gets its own scratch directory, so concurrent calls never see
    each other's partial output even when yt-dlp would pick the same filename.
    """

    def __init__(
        self,
        *,
        command=DEFAULT_YTDLP_COMMAND,
        audio_format=DEFAULT_AUDIO_FORMAT,
        audio_quality=DEFAULT_AUDIO_QUALITY,
        cookies_file=None,
        scratch_root=None,
        timeout=None,
    ):
        self.command = tuple(command)
        self.audio_format = audio_format
        self.audio_quality = audio_quality
        self.cookies_file = cookies_file
        self.scratch_root = scratch_root
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        return cls(
            command=config.ytdlp_command,
            audio_format=config.audio_format,
            audio_quality=config.audio_quality,
            cookies_file=config.cookies_file,
            scratch_root=config.scratch_root,
            timeout=config.invocation_timeout,
        )

    def extract(self, url, audio_dir, metadata_dir) -> ExtractionResult:
        if self.scratch_root:
            os.makedirs(self.scratch_root, exist_ok=True)
        scratch_dir = tempfile.mkdtemp(prefix=SCRATCH_DIR_PREFIX, dir=self.scratch_root)
        try:
            return self._extract_in(scratch_dir, url, audio_dir, metadata_dir)
        finally:
            shutil.rmtree(scratch_dir, ignore_errors=True)

    def _extract_in(self, scratch_dir, url, audio_dir, metadata_dir) -> ExtractionResult:
        opts = build_ytdlp_opts(
            scratch_dir,
            audio_format=self.audio_format,
            audio_quality=self.audio_quality,
            cookies_file=self.cookies_file,
        )
        argv = render_ytdlp_cli_argv(opts, url, command=self.command)
        log_event(logging.DEBUG, "ytdlp_invocation", url=url, cli=_argv_to_redacted_cli(argv))
        run_ytdlp_cli(argv, timeout=self.timeout)

        scratch_info = find_info_json(scratch_dir)
        if scratch_info is None:
            raise NoMetadataError(f"no {INFO_JSON_SUFFIX} produced by yt-dlp")

        item_id = read_item_id(scratch_info)
        final_info = Path(metadata_dir) / f"{item_id}{INFO_JSON_SUFFIX}"
        final_audio = Path(audio_dir) / f"{item_id}.{self.audio_format}"

        # Audio is named by the same template as its sidecar.
        audio_candidates = [
            scratch_info.parent / f"{item_id}.{self.audio_format}",
            scratch_info.parent / f"{item_id_from_filename(scratch_info)}.{self.audio_format}",
        ]
        scratch_audio = next((p for p in audio_candidates if p.is_file()), None)

        try:
            atomic_move(scratch_info, final_info)
        except OSError as exc:
            raise PublishError(f"move info json: {exc}", item_id=item_id) from exc

        if scratch_audio is None:
            raise NoAudioError(
                f"no {self.audio_format} file produced by yt-dlp",
                item_id=item_id,
                info_path=str(final_info),
            )
        try:
            atomic_move(scratch_audio, final_audio)
        except OSError as exc:
            raise PublishError(f"move audio: {exc}", item_id=item_id, info_path=str(final_info)) from exc

        return ExtractionResult(item_id=item_id, info_path=str(final_info), audio_path=str(final_audio))
