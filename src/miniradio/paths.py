"""
Request path parsing and traversal checks.

Stream URLs have the shape ``/stream/<asset_id>/<artifact>`` where the
artifact is either the HLS playlist (``.m3u8``) or one of its MP3 segments.
Parsing works on the raw, still percent-encoded path so an encoded ``%2F``
can never be mistaken for a real separator.
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import unquote

from miniradio.errors import BadRequestPath, RouteNotFound

PLAYLIST_NAME = "playlist.m3u8"
SEGMENT_PATTERN = "segment%03d.mp3"
SOURCE_SUFFIX = ".mp3"

_STREAM_PATH = re.compile(r"^/stream/([^/]+)/(.+\.(m3u8|mp3))$", re.IGNORECASE)
_FORBIDDEN_ID_CHARS = ("/", "\\", "\x00")


class ArtifactKind(str, Enum):
    """What a stream request asks for."""
    PLAYLIST = "playlist"
    SEGMENT = "segment"


_KIND_BY_EXTENSION = {
    "m3u8": ArtifactKind.PLAYLIST,
    "mp3": ArtifactKind.SEGMENT,
}


@dataclass(frozen=True)
class StreamRequest:
    """A parsed and validated ``/stream/...`` request."""
    asset_id: str
    artifact_name: str
    kind: ArtifactKind


def validate_asset_id(asset_id: str) -> str:
    """
    Reject identifiers that could escape the source or cache directory.

    Raises:
        BadRequestPath: identifier contains a parent-directory token or a
            path separator, or is empty/``.``
    """
    if (
        not asset_id
        or asset_id == "."
        or ".." in asset_id
        or any(ch in asset_id for ch in _FORBIDDEN_ID_CHARS)
    ):
        raise BadRequestPath("Invalid filename.")
    return asset_id


def parse_stream_path(raw_path: str) -> StreamRequest:
    """
    Parse a raw request path into a StreamRequest.

    Args:
        raw_path: Request path as received, percent-encoding intact

    Returns:
        StreamRequest with decoded identifier and artifact name

    Raises:
        RouteNotFound: path is not a stream URL with a known extension
        BadRequestPath: identifier fails validation
    """
    match = _STREAM_PATH.match(raw_path)
    if not match:
        raise RouteNotFound()

    asset_id = validate_asset_id(unquote(match.group(1)))
    artifact_name = unquote(match.group(2))
    kind = _KIND_BY_EXTENSION[match.group(3).lower()]

    return StreamRequest(asset_id=asset_id, artifact_name=artifact_name, kind=kind)


def resolve_artifact_path(cache_subdir: Path, artifact_name: str) -> Path:
    """
    Join an artifact name onto a cache subdirectory, refusing escapes.

    The check is lexical: the target usually does not exist yet, so
    resolving symlinks or calling realpath is not an option.

    Raises:
        BadRequestPath: the joined path is not strictly inside cache_subdir
    """
    if "\x00" in artifact_name:
        raise BadRequestPath("Access denied.")

    base = os.path.abspath(cache_subdir)
    target = os.path.abspath(os.path.join(base, artifact_name))

    if not target.startswith(base + os.sep):
        raise BadRequestPath("Access denied.")

    return Path(target)


def source_path_for(mp3_dir: Path, asset_id: str) -> Path:
    """Path of the source MP3 for an asset."""
    return Path(mp3_dir) / f"{asset_id}{SOURCE_SUFFIX}"


def cache_subdir_for(cache_dir: Path, asset_id: str) -> Path:
    """Cache directory holding an asset's playlist and segments."""
    return Path(cache_dir) / asset_id


def playlist_path_for(cache_dir: Path, asset_id: str) -> Path:
    """Playlist whose presence marks an asset's cache entry as ready."""
    return cache_subdir_for(cache_dir, asset_id) / PLAYLIST_NAME
