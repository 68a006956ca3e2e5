"""
Error taxonomy for the miniradio streaming server.

Each error carries the HTTP status code the router answers with, so the
request handler can translate any of them into a plain-text response.
"""

from typing import Optional


class MiniradioError(Exception):
    """Base class for all request-level failures."""

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str]:
        """Extra response headers for this error."""
        return {}


class RouteNotFound(MiniradioError):
    """Request path does not match any stream route."""

    status_code = 404
    default_message = "Not Found (Invalid Path Format)"


class BadRequestPath(MiniradioError):
    """Malformed identifier, traversal attempt, or unsupported file type."""

    status_code = 403
    default_message = "Forbidden"


class AssetNotFound(MiniradioError):
    """Source MP3, segment, or cached file is missing."""

    status_code = 404
    default_message = "Not Found"


class ConversionInProgress(MiniradioError):
    """Another request is already transcoding this asset."""

    status_code = 503
    default_message = "Conversion in progress. Please try again shortly."

    def __init__(self, message: Optional[str] = None, retry_after: int = 5):
        super().__init__(message)
        self.retry_after = retry_after

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class ConversionFailed(MiniradioError):
    """Transcoder exited non-zero, failed to launch, or crashed."""

    status_code = 500
    default_message = "HLS conversion failed."


class FileServingFault(MiniradioError):
    """I/O error while reading a cached artifact that is known to exist."""

    status_code = 500
    default_message = "Failed to serve file"
