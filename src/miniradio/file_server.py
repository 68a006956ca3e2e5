"""
Serves cached HLS artifacts as streaming HTTP responses.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Iterator

from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from miniradio.errors import AssetNotFound, BadRequestPath, FileServingFault

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

CONTENT_TYPES = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".mp3": "audio/mpeg",
}

# Artifacts can be replaced after a failed conversion is retried
NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def content_type_for(file_path: Path) -> str:
    """
    MIME type of an artifact, by extension.

    Raises:
        BadRequestPath: extension is neither playlist nor segment
    """
    content_type = CONTENT_TYPES.get(Path(file_path).suffix.lower())
    if content_type is None:
        logger.warning(f"Serving attempt: Unsupported file type: {file_path}")
        raise BadRequestPath("Unsupported file type.")
    return content_type


def _iter_file(handle: BinaryIO) -> Iterator[bytes]:
    try:
        while True:
            chunk = handle.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()


def serve_artifact(file_path: Path) -> StreamingResponse:
    """
    Build a streaming response for a cached playlist or segment.

    Existence is checked again here, right before opening, since a failed
    conversion elsewhere may have just removed the file.

    Args:
        file_path: Artifact inside the cache directory

    Returns:
        200 StreamingResponse with content type, length, CORS and no-cache headers

    Raises:
        BadRequestPath: unsupported extension
        AssetNotFound: file missing or vanished
        FileServingFault: other stat/open failure
    """
    file_path = Path(file_path)
    content_type = content_type_for(file_path)

    if not file_path.is_file():
        logger.warning(f"File to serve not found (serve_artifact): {file_path}")
        raise AssetNotFound("Not Found (Serving File)")

    try:
        file_size = file_path.stat().st_size
    except FileNotFoundError:
        logger.error(f"Failed to get file size (file disappeared?): {file_path}")
        raise AssetNotFound("Not Found (File disappeared)")
    except OSError as e:
        logger.error(f"Failed to get file size: {file_path}, Error: {e}")
        raise FileServingFault("Failed to get file size")

    try:
        handle = file_path.open("rb")
    except FileNotFoundError:
        logger.error(f"File disappeared before opening: {file_path}")
        raise AssetNotFound("Not Found (File disappeared)")
    except OSError as e:
        logger.error(f"Failed to open file: {file_path}, Error: {e}")
        raise FileServingFault("Failed to open file")

    headers = {
        "Content-Length": str(file_size),
        "Access-Control-Allow-Origin": "*",
        **NO_CACHE_HEADERS,
    }

    logger.info(f"Serving: {file_path} ({content_type}, {file_size} bytes)")

    # Also closes the handle when the client disconnects mid-stream
    return StreamingResponse(
        _iter_file(handle),
        media_type=content_type,
        headers=headers,
        background=BackgroundTask(handle.close),
    )
