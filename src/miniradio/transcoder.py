"""
ffmpeg invocation for MP3 → HLS conversion.

The audio stream is copied as-is (no re-encode) into fixed-duration MP3
segments plus a VOD playlist. ffmpeg writes the segments first and the
playlist last, so the playlist only appears once the output is complete.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from miniradio.paths import PLAYLIST_NAME, SEGMENT_PATTERN

logger = logging.getLogger(__name__)


@dataclass
class TranscodeResult:
    """Outcome of one ffmpeg run."""
    success: bool
    error: Optional[str] = None


class HLSTranscoder:
    """
    Runs ffmpeg synchronously to turn one MP3 into an HLS cache entry.

    On any failure the output directory is removed again, so a later request
    starts from a clean slate.
    """

    def __init__(self, ffmpeg_cmd: str = "ffmpeg", segment_duration: int = 10):
        """
        Initialize transcoder.

        Args:
            ffmpeg_cmd: ffmpeg executable name or path
            segment_duration: Target HLS segment length in seconds
        """
        self.ffmpeg_cmd = ffmpeg_cmd
        self.segment_duration = segment_duration

    def build_command(self, source_path: Path, output_dir: Path) -> list[str]:
        """ffmpeg argument vector for converting source_path into output_dir."""
        return [
            self.ffmpeg_cmd,
            "-y",
            "-i", str(source_path),
            "-c:a", "copy",
            "-f", "hls",
            "-hls_time", str(self.segment_duration),
            "-hls_list_size", "0",  # keep every segment in the playlist
            "-hls_playlist_type", "vod",
            "-hls_segment_filename", str(output_dir / SEGMENT_PATTERN),
            str(output_dir / PLAYLIST_NAME),
        ]

    def transcode(self, source_path: Path, output_dir: Path) -> TranscodeResult:
        """
        Convert source_path into an HLS playlist and segments.

        Blocks for the full ffmpeg run; callers keep this off the event loop.

        Args:
            source_path: Source MP3 file
            output_dir: Cache directory for this asset (created if absent)

        Returns:
            TranscodeResult with success flag and error message on failure
        """
        source_path = Path(source_path)
        output_dir = Path(output_dir)

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            cmd = self.build_command(source_path, output_dir)
            logger.info(f"Executing command: {' '.join(cmd)}")

            try:
                completed = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                )
            except (FileNotFoundError, PermissionError) as e:
                error_message = f"Error occurred during ffmpeg command preparation: {e}"
                logger.error(error_message)
                self._remove_output(output_dir)
                return TranscodeResult(success=False, error=error_message)

            stderr = (completed.stderr or "").strip()

            if completed.returncode != 0:
                error_message = f"ffmpeg exited with status {completed.returncode}. Stderr: {stderr}"
                logger.error(f"ffmpeg command execution failed. {error_message}")
                self._remove_output(output_dir)
                return TranscodeResult(success=False, error=error_message)

            if stderr and "deprecated" not in stderr.lower():
                logger.warning(f"ffmpeg stderr (on success): {stderr}")

            return TranscodeResult(success=True)

        except Exception as e:
            error_message = f"Unexpected error occurred during ffmpeg execution: {e}"
            logger.error(error_message)
            self._remove_output(output_dir)
            return TranscodeResult(success=False, error=error_message)

    def _remove_output(self, output_dir: Path) -> None:
        """Best-effort removal of a partially written cache entry."""
        if not output_dir.exists():
            return
        try:
            shutil.rmtree(output_dir)
            logger.info(f"Removed incomplete cache directory: {output_dir}")
        except OSError as e:
            logger.error(f"Error occurred while deleting cache directory: {output_dir}, Error: {e}")
