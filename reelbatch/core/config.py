"""Application configuration using pydantic-settings."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    Instances are immutable: derive an updated configuration with
    ``settings.model_copy(update={...})`` instead of assigning attributes.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="Sheet Video Batch", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default=None, description="Optional log file path (rotated, zipped)")

    # ========================================================================
    # Directories
    # ========================================================================
    work_dir: str = Field(default="storage", description="Base directory for cache, temp and output files")
    cache_dir: Optional[str] = Field(default=None, description="Asset cache directory (default: <work_dir>/cache)")
    temp_dir: Optional[str] = Field(default=None, description="Per-row scratch directory (default: <work_dir>/temp)")
    output_dir: Optional[str] = Field(default=None, description="Rendered video directory (default: <work_dir>/output)")

    # ========================================================================
    # Asset Cache Settings
    # ========================================================================
    cache_enabled: bool = Field(default=True, description="Reuse previously downloaded assets (default: true)")
    cache_max_size_bytes: int = Field(
        default=5 * 1024 * 1024 * 1024,
        description="Maximum total size of cached files in bytes (default: 5 GiB)",
    )
    cache_ttl_seconds: int = Field(
        default=24 * 60 * 60,
        description="Cached files older than this are treated as absent (default: 24h)",
    )
    cache_eviction_target_ratio: float = Field(
        default=0.8,
        description="Eviction removes least recently used files until usage drops to this fraction of the maximum",
    )

    # ========================================================================
    # Download Settings
    # ========================================================================
    download_timeout_seconds: float = Field(default=300.0, description="Per-request download timeout (default: 5 minutes)")
    download_user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        description="User-Agent header sent with download requests",
    )
    download_chunk_size: int = Field(default=1024 * 1024, description="Streaming chunk size in bytes")
    max_parallel_downloads: int = Field(
        default=3,
        description="Maximum number of assets downloaded concurrently for one row (set to 1 for sequential)",
    )

    # ========================================================================
    # Rendering Settings
    # ========================================================================
    ffmpeg_binary: Optional[str] = Field(
        default=None,
        description="Path to the ffmpeg executable (default: binary bundled with imageio-ffmpeg)",
    )
    render_timeout_seconds: float = Field(default=300.0, description="Hard wall-clock limit for one render (default: 5 minutes)")
    video_codec: str = Field(default="libx264", description="Output video codec")
    video_preset: str = Field(default="fast", description="Encoder speed preset")
    video_crf: int = Field(default=23, description="Constant rate factor (quality)")
    canvas_width: int = Field(default=1920, description="Width of synthesized backgrounds and overlay bound")
    canvas_height: int = Field(default=1080, description="Height of synthesized backgrounds and overlay bound")
    canvas_fps: int = Field(default=30, description="Frame rate of synthesized backgrounds")
    background_color: str = Field(default="black", description="Colour of synthesized backgrounds")
    verify_render_output: bool = Field(
        default=True,
        description="Open rendered files with moviepy to confirm they are readable (default: true)",
    )

    # ========================================================================
    # Spreadsheet Settings
    # ========================================================================
    spreadsheet_id: Optional[str] = Field(default=None, description="Spreadsheet to read work rows from")
    sheet_name: Optional[str] = Field(default=None, description="Sheet (tab) name; first sheet when empty")
    sheet_range: str = Field(default="A:L", description="Column range read through the Sheets API")
    row_source_mode: str = Field(
        default="public",
        description="How rows are read: 'public' (CSV export), 'service_account' or 'oauth' (Sheets API)",
    )
    default_duration_seconds: int = Field(default=20, description="Duration used when a row leaves it empty")

    # ========================================================================
    # Google Credentials
    # ========================================================================
    google_config: Optional[str] = Field(
        default=None,
        description="Service account JSON, raw or base64 encoded (GOOGLE_CONFIG)",
    )
    google_credentials_file: Optional[str] = Field(default=None, description="Path to a service account JSON file")
    google_client_secrets_file: Optional[str] = Field(default=None, description="Path to OAuth client secrets JSON file")
    google_token_file: str = Field(default="google_token.json", description="Path to store the OAuth token")

    # ========================================================================
    # Publishing Settings
    # ========================================================================
    publisher_mode: str = Field(
        default="local",
        description="Where rendered videos go: 'drive' (Google Drive) or 'local' (served from /output)",
    )
    drive_folder_id: Optional[str] = Field(default=None, description="Drive folder receiving uploads")
    public_base_url: str = Field(default="", description="Base URL prepended to locally published links")
    publish_max_attempts: int = Field(default=3, description="Upload attempts before giving up")
    publish_retry_delay_seconds: float = Field(default=2.0, description="Delay between upload attempts")
    keep_rendered_output: bool = Field(
        default=True,
        description="Keep rendered files in the output directory after a Drive upload",
    )

    # ========================================================================
    # Scheduling Settings
    # ========================================================================
    schedule_interval_minutes: int = Field(default=5, description="Interval used by the CLI watch loop")

    @property
    def cache_path(self) -> Path:
        return Path(self.cache_dir) if self.cache_dir else Path(self.work_dir) / "cache"

    @property
    def temp_path(self) -> Path:
        return Path(self.temp_dir) if self.temp_dir else Path(self.work_dir) / "temp"

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir) if self.output_dir else Path(self.work_dir) / "output"

    def ensure_directories(self) -> None:
        """Create the cache, temp and output directories (errors are fatal)."""
        for directory in (self.cache_path, self.temp_path, self.output_path):
            directory.mkdir(parents=True, exist_ok=True)


# Global settings instance (entry points only; services receive settings explicitly)
settings = Settings()
