"""
miniradio CLI - Serve MP3 files as on-demand HLS streams.

Simple, modern CLI using Typer.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from miniradio.config import ServerConfig
from miniradio.conversion import ConversionCache, ConversionStatus
from miniradio.errors import BadRequestPath
from miniradio.library import scan_tracks
from miniradio.paths import source_path_for, validate_asset_id
from miniradio.transcoder import HLSTranscoder

app = typer.Typer(
    name="miniradio",
    help="Serve a directory of MP3 files as HLS streams, converting on first request",
    add_completion=True,
    no_args_is_help=True,
)

MP3DirOption = Annotated[
    Optional[Path], typer.Option("--mp3-dir", help="Directory of source MP3 files")
]
CacheDirOption = Annotated[
    Optional[Path], typer.Option("--cache-dir", help="Directory for HLS output")
]
FFmpegOption = Annotated[
    Optional[str], typer.Option("--ffmpeg", help="ffmpeg executable")
]
SegmentDurationOption = Annotated[
    Optional[int], typer.Option("--segment-duration", help="HLS segment length (seconds)")
]
VerboseOption = Annotated[
    bool, typer.Option("--verbose", "-v", help="Enable debug logging")
]


def setup_logging(verbose: bool = False, quiet: bool = False):
    """Configure logging based on CLI flags."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def load_config(**overrides) -> ServerConfig:
    """Build the config, exiting with a readable error on bad values."""
    try:
        return ServerConfig.from_env(**overrides)
    except ValueError as e:
        typer.secho(f"✗ Configuration error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


@app.command()
def serve(
    mp3_dir: MP3DirOption = None,
    cache_dir: CacheDirOption = None,
    host: Annotated[
        Optional[str], typer.Option("--host", help="Server bind address")
    ] = None,
    port: Annotated[Optional[int], typer.Option("--port", help="Server port")] = None,
    ffmpeg: FFmpegOption = None,
    segment_duration: SegmentDurationOption = None,
    verbose: VerboseOption = False,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Minimal output")
    ] = False,
):
    """
    Start the HLS streaming server.

    Unset options fall back to MINIRADIO_* environment variables, then to
    built-in defaults.

    Examples:

        # Serve ./mp3_files on port 9292
        miniradio serve

        # Custom directories and port
        miniradio serve --mp3-dir ~/Music --cache-dir /tmp/hls --port 8080
    """
    setup_logging(verbose, quiet)

    config = load_config(
        mp3_dir=mp3_dir,
        cache_dir=cache_dir,
        host=host,
        port=port,
        ffmpeg_cmd=ffmpeg,
        segment_duration=segment_duration,
    )
    try:
        config.ensure_directories()
    except OSError as e:
        typer.secho(f"✗ Configuration error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    typer.echo(f"Starting HLS conversion and streaming server on port {config.port}...")
    typer.echo(f"MP3 Source Directory: {config.mp3_dir}")
    typer.echo(f"HLS Cache Directory: {config.cache_dir}")
    typer.echo(
        f"Example Streaming URL: http://localhost:{config.port}"
        "/stream/{mp3_filename_without_extension}/playlist.m3u8"
    )
    typer.echo("Press Ctrl+C to stop.")

    from miniradio.server import run_server

    try:
        run_server(config, log_level="debug" if verbose else "warning" if quiet else "info")
    except KeyboardInterrupt:
        typer.echo("\nShutting down server.")
    except Exception as e:
        typer.secho(f"✗ Server startup error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


@app.command("list")
def list_tracks(
    mp3_dir: MP3DirOption = None,
):
    """
    List source MP3 files with their tags and stream URLs.
    """
    config = load_config(mp3_dir=mp3_dir)
    tracks = scan_tracks(config.mp3_dir)

    if not tracks:
        typer.echo(f"No MP3 files found in {config.mp3_dir}")
        raise typer.Exit(1)

    typer.echo(f"Tracks in {config.mp3_dir}:\n")
    for track in tracks:
        details = " / ".join(v for v in (track.artist, track.album) if v)
        label = track.title or track.filename
        typer.echo(f"  • {label}" + (f" ({details})" if details else ""))
        typer.echo(f"      {track.url}")


@app.command()
def convert(
    name: Annotated[str, typer.Argument(help="MP3 filename without extension")],
    mp3_dir: MP3DirOption = None,
    cache_dir: CacheDirOption = None,
    ffmpeg: FFmpegOption = None,
    segment_duration: SegmentDurationOption = None,
    verbose: VerboseOption = False,
):
    """
    Convert one MP3 into the HLS cache ahead of the first request.

    Exit codes: 0 ready, 1 conversion failed, 2 source missing or invalid.
    """
    setup_logging(verbose, False)

    config = load_config(
        mp3_dir=mp3_dir,
        cache_dir=cache_dir,
        ffmpeg_cmd=ffmpeg,
        segment_duration=segment_duration,
    )

    try:
        validate_asset_id(name)
    except BadRequestPath:
        typer.secho(f"✗ Invalid name: {name}", fg=typer.colors.RED, err=True)
        raise typer.Exit(2)

    source_path = source_path_for(config.mp3_dir, name)
    if not source_path.is_file():
        typer.secho(f"✗ Source not found: {source_path}", fg=typer.colors.RED, err=True)
        raise typer.Exit(2)

    config.ensure_directories()
    cache = ConversionCache(
        config.mp3_dir,
        config.cache_dir,
        HLSTranscoder(config.ffmpeg_cmd, config.segment_duration),
    )
    outcome = cache.ensure_ready(name)

    if outcome.status is ConversionStatus.READY:
        state = "converted" if outcome.transcoded else "already cached"
        typer.secho(f"✓ {name}: {state}", fg=typer.colors.GREEN)
        return

    typer.secho(f"✗ {name}: {outcome.reason or outcome.status.value}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
