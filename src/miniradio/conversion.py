"""
Singleflight conversion cache.

Makes sure an asset's HLS output exists in the cache, running the
transcoder at most once at a time per asset. Readiness is defined only by
the presence of the asset's playlist file; there is no other marker.
"""

import logging
import shutil
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from miniradio.paths import cache_subdir_for, playlist_path_for, source_path_for

logger = logging.getLogger(__name__)


class ConversionStatus(str, Enum):
    READY = "ready"
    CONVERTING = "converting"
    FAILED = "failed"


@dataclass
class ConversionOutcome:
    """Result of ensure_ready()."""
    status: ConversionStatus
    reason: Optional[str] = None
    transcoded: bool = False  # True only for the caller that ran the transcoder


class KeyedLockRegistry:
    """
    Lazily created, never evicted lock per key.

    Grows by one entry per distinct key; keys are asset identifiers, so the
    size is bounded by the number of source files.
    """

    def __init__(self):
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def get(self, key: str) -> threading.Lock:
        lock = self._locks.get(key)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.get(key)
                if lock is None:
                    lock = threading.Lock()
                    self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, key: str) -> bool:
        return key in self._locks


class ConversionCache:
    """
    Ensures HLS artifacts exist for an asset.

    Callers that find a conversion already running for the same asset do
    not wait; they get CONVERTING back and the client is told to retry.
    """

    def __init__(self, mp3_dir: Path, cache_dir: Path, transcoder: Any):
        """
        Initialize cache.

        Args:
            mp3_dir: Directory of source MP3 files
            cache_dir: Root directory of per-asset HLS output
            transcoder: Object with transcode(source_path, output_dir) -> TranscodeResult
        """
        self.mp3_dir = Path(mp3_dir)
        self.cache_dir = Path(cache_dir)
        self.transcoder = transcoder
        self.locks = KeyedLockRegistry()

    def is_ready(self, asset_id: str) -> bool:
        return playlist_path_for(self.cache_dir, asset_id).is_file()

    def ensure_ready(self, asset_id: str) -> ConversionOutcome:
        """
        Make the asset's cache entry ready, converting it if needed.

        Args:
            asset_id: Validated asset identifier

        Returns:
            ConversionOutcome: READY, CONVERTING, or FAILED with a reason
        """
        if self.is_ready(asset_id):
            return ConversionOutcome(ConversionStatus.READY)

        lock = self.locks.get(asset_id)
        if not lock.acquire(blocking=False):
            logger.info(f"[{asset_id}] is currently being converted by another request.")
            return ConversionOutcome(ConversionStatus.CONVERTING)

        try:
            # Another holder may have finished between the first check and acquire
            if self.is_ready(asset_id):
                return ConversionOutcome(ConversionStatus.READY)

            return self._convert(asset_id)
        finally:
            lock.release()

    def _convert(self, asset_id: str) -> ConversionOutcome:
        """Run the transcoder; caller holds the asset's lock."""
        source_path = source_path_for(self.mp3_dir, asset_id)
        output_dir = cache_subdir_for(self.cache_dir, asset_id)

        logger.info(f"[{asset_id}] Starting HLS conversion...")
        try:
            result = self.transcoder.transcode(source_path, output_dir)
        except Exception as e:
            logger.exception(f"[{asset_id}] Transcoder raised unexpectedly")
            shutil.rmtree(output_dir, ignore_errors=True)
            return ConversionOutcome(
                ConversionStatus.FAILED,
                reason=f"Unexpected error occurred during conversion: {e}",
            )

        if result.success:
            logger.info(f"[{asset_id}] HLS conversion completed.")
            return ConversionOutcome(ConversionStatus.READY, transcoded=True)

        logger.error(f"[{asset_id}] HLS conversion failed. Error: {result.error}")
        return ConversionOutcome(ConversionStatus.FAILED, reason=result.error)
