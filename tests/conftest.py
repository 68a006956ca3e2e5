"""Shared fixtures: temporary directories, fake transcoders, fake ffmpeg."""

import os
import stat
import sys
import threading
from pathlib import Path

import pytest

from miniradio.config import ServerConfig
from miniradio.paths import PLAYLIST_NAME
from miniradio.transcoder import TranscodeResult

SEGMENT_NAMES = ("segment000.mp3", "segment001.mp3")


def write_playlist(output_dir: Path, segment_names=SEGMENT_NAMES) -> Path:
    """Write a VOD playlist referencing segment_names."""
    lines = [
        "#EXTM3U",
        "#EXT-X-VERSION:3",
        "#EXT-X-TARGETDURATION:10",
        "#EXT-X-MEDIA-SEQUENCE:0",
        "#EXT-X-PLAYLIST-TYPE:VOD",
    ]
    for name in segment_names:
        lines += ["#EXTINF:10.000000,", name]
    lines.append("#EXT-X-ENDLIST")

    playlist = output_dir / PLAYLIST_NAME
    playlist.write_text("\n".join(lines) + "\n")
    return playlist


def playlist_segments(text: str) -> list[str]:
    return [line for line in text.splitlines() if line and not line.startswith("#")]


class FakeTranscoder:
    """
    In-process stand-in for HLSTranscoder.

    Writes segments then the playlist, like ffmpeg. Conversions of ids in
    block_ids wait on ``gate`` so tests can hold a conversion open.
    """

    def __init__(self, error=None, exception=None, block_ids=()):
        self.error = error
        self.exception = exception
        self.block_ids = set(block_ids)
        self.gate = threading.Event()
        self.started = threading.Event()
        self.calls = []
        self._calls_lock = threading.Lock()

    def transcode(self, source_path, output_dir):
        source_path = Path(source_path)
        output_dir = Path(output_dir)
        with self._calls_lock:
            self.calls.append(source_path.stem)
        self.started.set()

        if source_path.stem in self.block_ids:
            assert self.gate.wait(timeout=10), "gate never opened"

        output_dir.mkdir(parents=True, exist_ok=True)
        if self.exception is not None:
            raise self.exception
        if self.error is not None:
            output_dir.rmdir()
            return TranscodeResult(success=False, error=self.error)

        for index, name in enumerate(SEGMENT_NAMES):
            (output_dir / name).write_bytes(bytes([index]) * (1000 + index))
        write_playlist(output_dir)
        return TranscodeResult(success=True)


FAKE_FFMPEG = '''#!{python}
"""Minimal ffmpeg stand-in for HLS segmenting tests."""
import pathlib
import sys

args = sys.argv[1:]
source = pathlib.Path(args[args.index("-i") + 1])
pattern = args[args.index("-hls_segment_filename") + 1]
playlist = pathlib.Path(args[-1])

data = source.read_bytes()
half = max(1, len(data) // 2)
chunks = [data[:half], data[half:] or b"\\x00"]

names = []
for index, chunk in enumerate(chunks):
    segment = pathlib.Path(pattern % index)
    segment.write_bytes(chunk)
    names.append(segment.name)
    if b"BROKEN" in data:
        sys.stderr.write("Invalid data found when processing input\\n")
        sys.exit(1)

if b"WARN" in data:
    sys.stderr.write("Estimating duration from bitrate, this may be inaccurate\\n")

lines = ["#EXTM3U", "#EXT-X-VERSION:3", "#EXT-X-TARGETDURATION:10",
         "#EXT-X-MEDIA-SEQUENCE:0", "#EXT-X-PLAYLIST-TYPE:VOD"]
for name in names:
    lines += ["#EXTINF:10.000000,", name]
lines.append("#EXT-X-ENDLIST")
playlist.write_text("\\n".join(lines) + "\\n")
'''


@pytest.fixture
def config(tmp_path) -> ServerConfig:
    cfg = ServerConfig(mp3_dir=tmp_path / "mp3_files", cache_dir=tmp_path / "hls_cache")
    cfg.ensure_directories()
    return cfg


@pytest.fixture
def add_mp3(config):
    """Create a source MP3 with the given content."""

    def _add(asset_id: str, content: bytes = b"fake mp3 audio " * 64) -> Path:
        path = config.mp3_dir / f"{asset_id}.mp3"
        path.write_bytes(content)
        return path

    return _add


@pytest.fixture
def fake_ffmpeg(tmp_path) -> str:
    """Path to an executable script that behaves like ffmpeg's HLS muxer."""
    if os.name == "nt":
        pytest.skip("fake ffmpeg script needs a POSIX shebang")

    script = tmp_path / "bin" / "ffmpeg"
    script.parent.mkdir()
    script.write_text(FAKE_FFMPEG.format(python=sys.executable))
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)
