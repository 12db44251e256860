"""Centralised configuration via Pydantic Settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide configuration loaded from environment variables."""

    model_config = {"env_prefix": "MEDIAGRAB_", "frozen": True}

    # PostgreSQL
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "mediagrab"
    db_password: str = "mediagrab"
    db_name: str = "mediagrab"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # qBittorrent
    qbit_url: str = "http://localhost:8085"
    qbit_user: str = "admin"
    qbit_password: str = "adminadmin"
    qbit_poll_interval: int = 30
    qbit_max_poll_attempts: int = 720
    qbit_stuck_threshold: int = 10

    # Downloads / transcoding
    download_dir: str = "./data/downloads"
    transcode_dir: str = "./data/transcoded"
    # Modes:
    # - x264: re-encode to H.264/AAC MP4
    # - copy: stream-copy remux into MP4
    transcode_mode: str = "x264"
    ffmpeg_bin: str = "ffmpeg"
    transcode_timeout_seconds: int = 7200

    # Sources
    # Comma-separated adapter names tried in order.
    sources: str = "rutor,nnm,rutracker,kinozal"
    rutor_url: str = "https://rutor.info"
    nnm_url: str = "https://nnmclub.to"
    rutracker_url: str = "https://rutracker.org"
    kinozal_url: str = "https://kinozal.tv"
    kinozal_user: str = ""
    kinozal_password: str = ""
    # Optional cookies for logged-in trackers (raw Cookie header or Netscape cookie file path).
    rutracker_cookie_header: str = ""
    rutracker_cookie_file: str = ""
    kinozal_cookie_header: str = ""
    kinozal_cookie_file: str = ""
    # Format: "http://proxy1:3128,http://proxy2:3128"
    source_proxies: str = ""
    source_min_interval_seconds: float = 2.0
    source_timeout: int = 30

    # Jackett
    jackett_url: str = "http://localhost:9117"
    jackett_api_key: str = ""

    # FlareSolverr
    flaresolverr_url: str = ""

    # TMDB
    tmdb_url: str = "https://api.themoviedb.org/3"
    tmdb_api_key: str = ""

    # DoodStream
    doodstream_url: str = "https://doodapi.com"
    doodstream_api_key: str = ""
    doodstream_chunk_size_mb: int = 100
    doodstream_max_concurrency: int = 3

    # YouTube
    # Comma-separated list of API keys.
    youtube_api_keys: str = ""
    youtube_quota_per_key: int = 10000
    youtube_quota_reset_hours: int = 24
    youtube_region: str = "RU"
    youtube_language: str = "ru"
    youtube_cache_ttl_seconds: int = 86400

    # Pipeline
    preferred_language: str = "ru"
    item_delay_seconds: int = 20
    batch_interval_seconds: int = 3600
    refresh_after_days: int = 30
    retry_errors: bool = True

    # Control API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"


def get_settings() -> Settings:
    """Read settings from ``MEDIAGRAB_*`` environment variables."""
    return Settings()


def parse_csv(raw: str) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty entries."""
    return [part.strip() for part in raw.split(",") if part.strip()]
