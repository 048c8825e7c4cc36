import sys
import textwrap
from pathlib import Path

import pytest


# Ensure tests can import project packages regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)


# Stand-in for yt-dlp. Behavior per URL is driven by environment variables:
#   FAKE_YTDLP_IDS       JSON {url: item_id}; default is the last URL segment
#   FAKE_YTDLP_BEHAVIOR  JSON {url: fail|noinfo|noaudio|noid|badjson}
#   FAKE_YTDLP_DELAY     seconds to hold a fixed-name file in the output dir
#   FAKE_YTDLP_CALLS     file that receives one line per invoked URL
_FAKE_YTDLP = textwrap.dedent(
    """
    import json
    import os
    import sys
    import time

    argv = sys.argv[1:]
    url = argv[-1]
    template = argv[argv.index("-o") + 1]
    audio_format = argv[argv.index("--audio-format") + 1]

    calls = os.environ.get("FAKE_YTDLP_CALLS")
    if calls:
        with open(calls, "a", encoding="utf-8") as fh:
            fh.write(url + "\\n")

    ids = json.loads(os.environ.get("FAKE_YTDLP_IDS", "{}"))
    behavior = json.loads(os.environ.get("FAKE_YTDLP_BEHAVIOR", "{}")).get(url, "ok")
    delay = float(os.environ.get("FAKE_YTDLP_DELAY", "0"))

    if behavior == "fail":
        sys.stderr.write("ERROR: [generic] forced failure for " + url + "\\n")
        sys.exit(1)
    if behavior == "noinfo":
        sys.exit(0)

    item_id = ids.get(url) or url.rstrip("/").rsplit("/", 1)[-1]
    out_dir = os.path.dirname(template)

    # Same name for every URL: only safe when each call has its own directory.
    marker = os.path.join(out_dir, "download.part")
    with open(marker, "w", encoding="utf-8") as fh:
        fh.write(url)
    time.sleep(delay)
    with open(marker, "r", encoding="utf-8") as fh:
        if fh.read() != url:
            sys.stderr.write("ERROR: partial download clobbered\\n")
            sys.exit(2)
    os.remove(marker)

    def render(ext):
        return template.replace("%(id)s", item_id).replace("%(ext)s", ext)

    info = {
        "id": item_id,
        "title": "Title " + item_id,
        "uploader": "Uploader " + item_id,
        "duration": 212.9,
        "webpage_url": url,
        "tags": ["a", "b"],
        "format_note": "kept verbatim",
    }
    if behavior == "traversal":
        info["id"] = "../../escape"
    if behavior == "noid":
        info.pop("id")
    with open(render("info.json"), "w", encoding="utf-8") as fh:
        if behavior == "badjson":
            fh.write("{not json")
        else:
            json.dump(info, fh)
    if behavior != "noaudio":
        with open(render(audio_format), "wb") as fh:
            fh.write(b"ID3fake-audio")
    """
)


@pytest.fixture
def fake_ytdlp(tmp_path):
    """Return an argv prefix that runs the scripted yt-dlp stand-in."""
    script = tmp_path / "fake_ytdlp.py"
    script.write_text(_FAKE_YTDLP, encoding="utf-8")
    return (sys.executable, str(script))
