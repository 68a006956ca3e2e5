"""
Source track listing.

Reads ID3 tags from the MP3 files in the source directory for the track
index page and the JSON track list.
"""

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from mutagen import MutagenError
from mutagen.easyid3 import EasyID3

from miniradio.paths import PLAYLIST_NAME, SOURCE_SUFFIX

logger = logging.getLogger(__name__)


@dataclass
class Track:
    """One source MP3 and its tags."""
    asset_id: str
    filename: str
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None

    @property
    def url(self) -> str:
        """Playlist URL for this track."""
        return stream_url(self.asset_id)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["url"] = self.url
        return data


def stream_url(asset_id: str) -> str:
    return f"/stream/{quote(asset_id, safe='')}/{PLAYLIST_NAME}"


def _first_tag(tags: EasyID3, key: str) -> Optional[str]:
    values = tags.get(key)
    return values[0] if values else None


def read_track(path: Path) -> Track:
    """Build a Track for one MP3, tolerating missing or broken tags."""
    track = Track(asset_id=path.stem, filename=path.name)
    try:
        tags = EasyID3(path)
    except MutagenError as e:
        logger.debug(f"No readable ID3 tags in {path.name}: {e}")
        return track

    track.title = _first_tag(tags, "title")
    track.artist = _first_tag(tags, "artist")
    track.album = _first_tag(tags, "album")
    return track


def scan_tracks(mp3_dir: Path) -> list[Track]:
    """
    List every MP3 in the source directory, sorted by filename.

    Only the lowercase ``.mp3`` suffix counts, matching the file the stream
    route looks up for an asset.

    Args:
        mp3_dir: Source directory

    Returns:
        Tracks with whatever tags could be read
    """
    mp3_dir = Path(mp3_dir)
    if not mp3_dir.is_dir():
        logger.warning(f"Source directory does not exist: {mp3_dir}")
        return []

    paths = sorted(
        p for p in mp3_dir.iterdir()
        if p.is_file() and p.suffix == SOURCE_SUFFIX
    )
    return [read_track(p) for p in paths]

