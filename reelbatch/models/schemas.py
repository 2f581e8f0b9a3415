"""Pydantic models and schemas for the batch video pipeline."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reelbatch.utils.io_utils import generate_output_name, normalize_output_name
from reelbatch.utils.time_utils import parse_time_to_seconds


# ============================================================================
# Enums
# ============================================================================


class OverlayKind(str, Enum):
    """Kind of the overlay input, decided by file extension."""

    NONE = "none"
    IMAGE = "image"
    VIDEO = "video"
    UNKNOWN = "unknown"


class Strategy(str, Enum):
    """Composition recipe chosen from the shape of the available inputs."""

    FULL_COMPOSITE_IMAGE = "full_composite_image"
    FULL_COMPOSITE_VIDEO = "full_composite_video"
    AUDIO_ONLY = "audio_only"
    VIDEO_AUDIO = "video_audio"
    VIDEO_OVERLAY = "video_overlay"
    VIDEO_ONLY = "video_only"


class InputRole(str, Enum):
    """Role of an encoder input within a plan."""

    BACKGROUND = "background"
    OVERLAY = "overlay"
    AUDIO = "audio"


class SourceKind(str, Enum):
    """What an encoder input reads from."""

    VIDEO = "video"
    IMAGE = "image"
    AUDIO = "audio"
    COLOR = "color"


# ============================================================================
# Work Items
# ============================================================================


class WorkItem(BaseModel):
    """One spreadsheet row flagged for execution."""

    model_config = ConfigDict(frozen=True)

    row_index: int = Field(..., ge=1, description="1-based sheet row, used for write-back")
    image_url: str = Field(default="", description="Overlay reference (image or short video)")
    video_url: str = Field(default="", description="Background video reference")
    audio_url: str = Field(default="", description="Audio track reference")
    duration: int = Field(default=20, ge=0, description="Output duration in seconds")
    output_file_name: str = Field(default_factory=generate_output_name, description="Output file name")
    video_start_time: int = Field(default=0, ge=0, description="Background start offset in seconds")
    audio_start_time: int = Field(default=0, ge=0, description="Audio start offset in seconds")
    image_scale: float = Field(default=100.0, description="Overlay scale as a percentage")
    filter_color: str = Field(default="#000000", description="Tint colour (#RRGGBB)")
    filter_opacity: float = Field(default=0.0, description="Tint opacity as a percentage")
    output_video_url: str = Field(default="", description="Previously recorded output URL, if any")

    @field_validator("video_start_time", "audio_start_time", mode="before")
    @classmethod
    def _parse_offset(cls, value: Any) -> int:
        return parse_time_to_seconds(value)

    @field_validator("output_file_name", mode="before")
    @classmethod
    def _normalize_output_name(cls, value: Any) -> str:
        return normalize_output_name(value)

    @field_validator("image_url", "video_url", "audio_url", mode="before")
    @classmethod
    def _strip_reference(cls, value: Any) -> str:
        return str(value).strip() if value is not None else ""

    def asset_urls(self) -> dict[str, str]:
        """Return the present references keyed by asset type (image, video, audio)."""
        urls = {"image": self.image_url, "video": self.video_url, "audio": self.audio_url}
        return {asset_type: url for asset_type, url in urls.items() if url}


# ============================================================================
# Asset Cache Models
# ============================================================================


class CacheEntry(BaseModel):
    """Index record for one cached remote asset."""

    url: str = Field(..., description="Source URL (cache key is derived from it)")
    stored_file_name: str = Field(..., description="File name inside the cache directory")
    original_file_name: str = Field(..., description="Original file name reported at insert time")
    size_bytes: int = Field(..., ge=0, description="Size of the stored file")
    created_at: float = Field(..., description="Insert time (epoch seconds)")
    last_accessed_at: float = Field(..., description="Last successful read (epoch seconds)")


class CacheStats(BaseModel):
    """Cache occupancy summary."""

    file_count: int
    total_size_bytes: int
    max_size_bytes: int
    usage_fraction: float


# ============================================================================
# Fetch Models
# ============================================================================


class FetchRequest(BaseModel):
    """A remote asset to download to a local path."""

    url: str = Field(..., description="Remote reference")
    output_path: Path = Field(..., description="Preferred local destination")
    label: str = Field(default="asset", description="Asset type used in logs (image, video, audio)")


class FetchedAsset(BaseModel):
    """A successfully downloaded asset."""

    url: str
    path: Path
    original_file_name: str = Field(..., description="Remote file name, or the local name when unknown")


class FetchFailure(BaseModel):
    """A failed download."""

    url: str
    error: str
    error_type: str


class FetchManyResult(BaseModel):
    """Aggregate outcome of downloading several assets."""

    succeeded: list[FetchedAsset] = Field(default_factory=list)
    failed: list[FetchFailure] = Field(default_factory=list)


# ============================================================================
# Composition Models
# ============================================================================


class CompositionInputs(BaseModel):
    """Local inputs and normalized parameters for one composition."""

    background_video_path: Optional[Path] = None
    overlay_path: Optional[Path] = None
    audio_path: Optional[Path] = None
    duration: int = Field(default=20, description="Output duration in seconds")
    video_start: int = Field(default=0, description="Background start offset in seconds")
    audio_start: int = Field(default=0, description="Audio start offset in seconds")
    image_scale: float = Field(default=1.0, description="Overlay scale as a fraction (0.8 = 80%)")
    filter_color: str = Field(default="#000000", description="Tint colour (#RRGGBB)")
    filter_opacity: float = Field(default=0.0, description="Tint opacity as a fraction (0.0-1.0)")
    output_name: str = Field(..., description="Requested output file name")


class PlanInput(BaseModel):
    """One encoder input with its trim."""

    role: InputRole
    kind: SourceKind
    path: Optional[Path] = Field(default=None, description="Local file (None for synthesized sources)")
    start_offset: int = Field(default=0, description="Seek offset in seconds")
    duration: int = Field(..., description="Seconds read from this input")
    loop: bool = Field(default=False, description="Repeat a still image for the whole duration")
    color: Optional[str] = Field(default=None, description="Colour of a synthesized source")
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[int] = None


class OverlayPlacement(BaseModel):
    """Scale bound and position of the overlay."""

    scale: float = Field(..., description="Scale factor applied to the overlay's own size")
    max_width: int
    max_height: int
    position: str = Field(default="center")


class ColorTint(BaseModel):
    """Per-channel multipliers blending a colour into the frame."""

    color: str
    opacity: float
    red: float
    green: float
    blue: float


class CompositionPlan(BaseModel):
    """Declarative description of one render."""

    strategy: Strategy
    duration: int
    inputs: list[PlanInput]
    overlay: Optional[OverlayPlacement] = None
    tint: Optional[ColorTint] = None
    video_codec: str = "libx264"
    video_preset: str = "fast"
    video_crf: int = 23
    audio_codec: Optional[str] = Field(default=None, description="None when the output has no audio track")
    output_path: Path

    def input_index(self, role: InputRole) -> Optional[int]:
        """Return the position of the input with the given role, if any."""
        for index, plan_input in enumerate(self.inputs):
            if plan_input.role == role:
                return index
        return None

    @property
    def has_audio(self) -> bool:
        return self.audio_codec is not None


# ============================================================================
# Results
# ============================================================================


class WriteBackResult(BaseModel):
    """Outcome of a best-effort spreadsheet write."""

    updated: bool
    message: str = ""


class ItemResult(BaseModel):
    """Outcome of processing one work item."""

    row_index: int
    file_name: str
    success: bool
    video_url: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    suggestion: Optional[str] = None
    strategy: Optional[Strategy] = None
    result_recorded: bool = Field(default=False, description="Published URL written back to the sheet")
    marker_cleared: bool = Field(default=False, description="Execution marker cleared in the sheet")
    elapsed_seconds: float = 0.0


class BatchResult(BaseModel):
    """Aggregate outcome of one batch invocation."""

    total_processed: int = 0
    successful: int = 0
    failed: int = 0
    results: list[ItemResult] = Field(default_factory=list)

    @classmethod
    def from_results(cls, results: list[ItemResult]) -> "BatchResult":
        successful = sum(1 for result in results if result.success)
        return cls(
            total_processed=len(results),
            successful=successful,
            failed=len(results) - successful,
            results=results,
        )


class BatchOptions(BaseModel):
    """Per-invocation options for a batch run."""

    source_id: Optional[str] = Field(default=None, description="Spreadsheet id")
    sheet_name: Optional[str] = Field(default=None, description="Sheet (tab) name")
    sheet_range: Optional[str] = Field(default=None, description="Column range for API sources")
    drive_folder_id: Optional[str] = Field(default=None, description="Upload folder override")


# ============================================================================
# API Models
# ============================================================================


class RunBatchRequest(BaseModel):
    """Request body for triggering a batch."""

    spreadsheet_id: Optional[str] = Field(default=None, description="Overrides SPREADSHEET_ID")
    sheet_name: Optional[str] = Field(default=None, description="Overrides SHEET_NAME")
    sheet_range: Optional[str] = Field(default=None, description="Overrides SHEET_RANGE")
    drive_folder_id: Optional[str] = Field(default=None, description="Overrides DRIVE_FOLDER_ID")


class VideoInfo(BaseModel):
    """Probed properties of a video file."""

    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[float] = None


class OutputVideo(BaseModel):
    """A rendered file in the output directory."""

    filename: str
    size_bytes: int
    modified_at: datetime
    url: str
    info: Optional[VideoInfo] = None


class CleanupResponse(BaseModel):
    """Number of files removed by a cleanup call."""

    deleted: int
