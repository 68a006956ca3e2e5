import pytest

from miniradio.config import DEFAULT_PORT, DEFAULT_SEGMENT_DURATION, ServerConfig


def test_defaults_are_absolute_paths():
    config = ServerConfig()

    assert config.mp3_dir.is_absolute()
    assert config.cache_dir.is_absolute()
    assert config.mp3_dir.name == "mp3_files"
    assert config.cache_dir.name == "hls_cache"
    assert config.port == DEFAULT_PORT
    assert config.segment_duration == DEFAULT_SEGMENT_DURATION
    assert config.ffmpeg_cmd == "ffmpeg"


def test_from_env_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("MINIRADIO_MP3_DIR", str(tmp_path / "music"))
    monkeypatch.setenv("MINIRADIO_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("MINIRADIO_PORT", "8080")
    monkeypatch.setenv("MINIRADIO_FFMPEG", "/opt/ffmpeg/bin/ffmpeg")
    monkeypatch.setenv("MINIRADIO_SEGMENT_DURATION", "6")
    monkeypatch.setenv("MINIRADIO_RETRY_AFTER", "2")

    config = ServerConfig.from_env()

    assert config.mp3_dir == tmp_path / "music"
    assert config.cache_dir == tmp_path / "cache"
    assert config.port == 8080
    assert config.ffmpeg_cmd == "/opt/ffmpeg/bin/ffmpeg"
    assert config.segment_duration == 6
    assert config.retry_after_seconds == 2


def test_overrides_win_and_none_is_ignored(monkeypatch):
    monkeypatch.setenv("MINIRADIO_PORT", "8080")
    monkeypatch.setenv("MINIRADIO_HOST", "127.0.0.1")

    config = ServerConfig.from_env(port=9000, host=None)

    assert config.port == 9000
    assert config.host == "127.0.0.1"


@pytest.mark.parametrize("field, value", [("segment_duration", 0), ("retry_after_seconds", -1)])
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValueError):
        ServerConfig(**{field: value})


def test_ensure_directories_creates_missing(tmp_path):
    config = ServerConfig(mp3_dir=tmp_path / "a" / "mp3", cache_dir=tmp_path / "b" / "cache")
    assert not config.mp3_dir.exists()

    config.ensure_directories()
    config.ensure_directories()  # idempotent

    assert config.mp3_dir.is_dir()
    assert config.cache_dir.is_dir()
