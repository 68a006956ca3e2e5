"""
HTTP front end for miniradio.

Routes ``/stream/<asset_id>/<artifact>`` requests through path validation,
the singleflight conversion cache, and the artifact file server, and maps
every outcome to an HTTP status:

    200  artifact body
    403  invalid identifier, traversal attempt, unsupported extension
    404  unknown asset, missing segment, vanished file
    503  conversion already running (with Retry-After)
    500  conversion failure or unexpected fault
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from fastapi.templating import Jinja2Templates

from miniradio.config import ServerConfig
from miniradio.conversion import ConversionCache, ConversionStatus
from miniradio.errors import (
    AssetNotFound,
    ConversionFailed,
    ConversionInProgress,
    MiniradioError,
    RouteNotFound,
)
from miniradio.file_server import serve_artifact
from miniradio.library import scan_tracks
from miniradio.paths import (
    ArtifactKind,
    cache_subdir_for,
    parse_stream_path,
    playlist_path_for,
    resolve_artifact_path,
    source_path_for,
)
from miniradio.transcoder import HLSTranscoder

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def plain_response(
    status_code: int, message: str, headers: Optional[dict[str, str]] = None
) -> PlainTextResponse:
    """Plain-text response with the CORS header every reply carries."""
    return PlainTextResponse(
        message + "\n",
        status_code=status_code,
        headers={"Access-Control-Allow-Origin": "*", **(headers or {})},
    )


def error_response(error: MiniradioError) -> PlainTextResponse:
    return plain_response(error.status_code, error.message, error.headers)


def raw_request_path(request: Request) -> str:
    """
    Request path with percent-encoding intact.

    Falls back to the decoded path when the server does not provide
    ``raw_path``.
    """
    raw = request.scope.get("raw_path")
    if raw:
        return raw.split(b"?", 1)[0].decode("utf-8", "surrogateescape")
    return request.scope.get("path", "")


class HLSStreamingServer:
    """
    FastAPI application serving MP3 files as on-demand HLS streams.

    Each playlist request converts the source once (per asset, at most one
    conversion at a time) and later requests are served from the cache.
    """

    def __init__(self, config: Optional[ServerConfig] = None, transcoder: Any = None):
        """
        Initialize streaming server.

        Args:
            config: Server configuration (environment defaults if None)
            transcoder: Transcoder override; defaults to ffmpeg per config
        """
        self.config = config or ServerConfig.from_env()
        self.transcoder = transcoder or HLSTranscoder(
            ffmpeg_cmd=self.config.ffmpeg_cmd,
            segment_duration=self.config.segment_duration,
        )
        self.cache = ConversionCache(self.config.mp3_dir, self.config.cache_dir, self.transcoder)

        self.app = FastAPI(title="miniradio HLS Streaming Server")
        self.templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
        self._setup_routes()

        logger.info("HLS Streaming Server initialized")
        logger.info(f"MP3 Source Directory: {self.config.mp3_dir}")
        logger.info(f"HLS Cache Directory: {self.config.cache_dir}")

    def _setup_routes(self):
        """Setup FastAPI routes."""

        @self.app.get("/", response_class=HTMLResponse)
        @self.app.get("/index.html", response_class=HTMLResponse)
        async def index(request: Request):
            """Track index page."""
            tracks = await asyncio.to_thread(scan_tracks, self.config.mp3_dir)
            return self.templates.TemplateResponse(request, "index.html", {"tracks": tracks})

        @self.app.get("/tracks")
        async def tracks():
            """Track list as JSON."""
            found = await asyncio.to_thread(scan_tracks, self.config.mp3_dir)
            return [track.to_dict() for track in found]

        @self.app.get("/stream/{stream_path:path}")
        async def stream(request: Request, stream_path: str):
            """Playlist or segment of one asset."""
            return await self.handle_stream(raw_request_path(request))

        @self.app.get("/{unmatched:path}")
        async def not_found(request: Request, unmatched: str):
            logger.warning(f"Invalid request path format: {raw_request_path(request)}")
            return error_response(RouteNotFound())

    async def handle_stream(self, raw_path: str) -> Response:
        """
        Answer one stream request; never raises.

        Args:
            raw_path: Request path, percent-encoding intact

        Returns:
            Artifact response or plain-text error response
        """
        logger.info(f"Request received: {raw_path}")
        try:
            return await self._route_stream(raw_path)
        except MiniradioError as e:
            logger.warning(f"{raw_path} -> {e.status_code} {e.message}")
            return error_response(e)
        except OSError as e:
            # Usually a race with a concurrent cache cleanup
            logger.error(f"File access error: {e}")
            return plain_response(404, "Resource not found or access denied")
        except Exception as e:
            logger.exception(f"Unexpected error occurred: {e}")
            return plain_response(500, "Internal Server Error")

    async def _route_stream(self, raw_path: str) -> Response:
        stream_request = parse_stream_path(raw_path)
        asset_id = stream_request.asset_id

        cache_subdir = cache_subdir_for(self.config.cache_dir, asset_id)
        requested_path = resolve_artifact_path(cache_subdir, stream_request.artifact_name)

        source_path = source_path_for(self.config.mp3_dir, asset_id)
        if not source_path.is_file():
            logger.warning(f"Original MP3 file not found: {source_path}")
            raise AssetNotFound("Not Found (Original MP3)")

        if stream_request.kind is ArtifactKind.PLAYLIST:
            outcome = await asyncio.to_thread(self.cache.ensure_ready, asset_id)

            if outcome.status is ConversionStatus.READY:
                return serve_artifact(playlist_path_for(self.config.cache_dir, asset_id))
            if outcome.status is ConversionStatus.CONVERTING:
                raise ConversionInProgress(retry_after=self.config.retry_after_seconds)
            raise ConversionFailed(outcome.reason)

        # Segments are only served once a playlist request has produced them
        if not requested_path.is_file():
            logger.warning(
                f"Segment file not found (cache not generated or invalid request?): {requested_path}"
            )
            raise AssetNotFound("Not Found (Segment)")

        return serve_artifact(requested_path)


def create_app(config: Optional[ServerConfig] = None, transcoder: Any = None) -> FastAPI:
    """App factory, usable as ``uvicorn --factory miniradio.server:create_app``."""
    return HLSStreamingServer(config, transcoder).app


def run_server(config: ServerConfig, log_level: str = "info") -> None:
    """Serve the app with uvicorn until interrupted."""
    import uvicorn

    server = HLSStreamingServer(config)
    uvicorn.run(server.app, host=config.host, port=config.port, log_level=log_level)
