import uuid
from datetime import datetime
from enum import Enum, IntEnum
from pathlib import Path
from typing import Optional, Protocol, Tuple
from pydantic import BaseModel, ConfigDict, Field

class QualityTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ORIGINAL = "original"

    @property
    def label(self) -> str:
        return {
            QualityTier.LOW: "Low (1 Mbps)",
            QualityTier.MEDIUM: "Medium (4 Mbps)",
            QualityTier.HIGH: "High (8 Mbps)",
            QualityTier.ORIGINAL: "Original",
        }[self]

class Orientation(IntEnum):
    DEG_0 = 0
    DEG_90 = 90
    DEG_180 = 180
    DEG_270 = 270

    @property
    def label(self) -> str:
        return {
            Orientation.DEG_0: "Portrait",
            Orientation.DEG_90: "Landscape Right",
            Orientation.DEG_180: "Portrait Upside Down",
            Orientation.DEG_270: "Landscape Left",
        }[self]

class JobState(str, Enum):
    IDLE = "IDLE"
    PREPARING = "PREPARING"
    ENCODING = "ENCODING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_active(self) -> bool:
        return self in (JobState.PREPARING, JobState.ENCODING)

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED)

class ErrorKind(str, Enum):
    NO_VIDEO_TRACK = "NO_VIDEO_TRACK"
    IO_ERROR = "IO_ERROR"
    ENCODE_FAILED = "ENCODE_FAILED"
    OUTPUT_VERIFICATION_FAILED = "OUTPUT_VERIFICATION_FAILED"
    CANCELLED = "CANCELLED"
    ALREADY_RUNNING = "ALREADY_RUNNING"
    ALREADY_COMPRESSED = "ALREADY_COMPRESSED"

class AffineTransform(BaseModel):
    """2D affine transform in the [a b; c d; tx ty] layout used by video track headers."""
    model_config = ConfigDict(frozen=True)

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    tx: float = 0.0
    ty: float = 0.0

    def apply_to_size(self, width: float, height: float) -> Tuple[float, float]:
        """Transforms a size vector; translation does not apply to sizes."""
        return (
            self.a * width + self.c * height,
            self.b * width + self.d * height,
        )

class VideoMetadata(BaseModel):
    width: int
    height: int
    display_width: int
    display_height: int
    orientation: Orientation = Orientation.DEG_90
    codec: str = "unknown"
    container: Optional[str] = None

class CompressionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    output_path: Path
    output_size_bytes: int
    source_size_bytes: int

    @property
    def savings_percent(self) -> float:
        if self.source_size_bytes <= 0:
            return 0.0
        return (self.source_size_bytes - self.output_size_bytes) / self.source_size_bytes * 100

def format_size(size: int) -> str:
    """Format size in bytes to human readable"""
    if size == 0:
        return "0B"
    value = float(size)
    for unit in ['B', 'KB', 'MB', 'GB']:
        if value < 1024.0:
            return f"{value:.1f}{unit}"
        value /= 1024.0
    return f"{value:.1f}TB"

class SourceVideo(BaseModel):
    """A selected video. Probed fields are filled once, all together."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    path: Path
    duration: Optional[float] = None
    size_bytes: Optional[int] = None
    metadata: Optional[VideoMetadata] = None
    result: Optional[CompressionResult] = None

    @property
    def is_probed(self) -> bool:
        return self.duration is not None and self.size_bytes is not None

    def apply_probe(self, duration: float, size_bytes: int, metadata: VideoMetadata):
        if self.is_probed:
            raise ValueError(f"{self.path.name} has already been probed")
        # Assigned together so readers never see half-probed metadata
        self.__dict__.update(duration=duration, size_bytes=size_bytes, metadata=metadata)

    def attach_result(self, result: CompressionResult):
        self.result = result

    def clear_result(self):
        self.result = None

    @property
    def formatted_duration(self) -> str:
        if self.duration is None:
            return "Unknown"
        total = int(self.duration)
        return f"{total // 60}:{total % 60:02d}"

    @property
    def formatted_size(self) -> str:
        if self.size_bytes is None:
            return "Unknown"
        return format_size(self.size_bytes)

    @property
    def formatted_compressed_size(self) -> str:
        if self.result is None:
            return "N/A"
        return format_size(self.result.output_size_bytes)

class CompressionJob(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    source_id: uuid.UUID
    source_path: Path
    tier: QualityTier
    output_path: Path
    state: JobState = JobState.PREPARING
    progress: float = 0.0
    status_text: str = "Preparing export..."
    result: Optional[CompressionResult] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

class JobSnapshot(BaseModel):
    """Read-only copy of the state shown to the UI."""
    model_config = ConfigDict(frozen=True)

    job_id: Optional[uuid.UUID] = None
    state: JobState = JobState.IDLE
    progress: float = 0.0
    status_text: str = "Ready"
    result: Optional[CompressionResult] = None
    last_error: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.state.is_active

class EncodeStatus(str, Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

class EncodeOutcome(BaseModel):
    """Terminal outcome reported by an encoding engine."""
    status: EncodeStatus
    output_path: Optional[Path] = None
    reason: Optional[str] = None

class EncodingHandle(Protocol):
    def progress(self) -> float: ...

    def wait(self) -> EncodeOutcome: ...

    def cancel(self) -> None: ...

class EncodingService(Protocol):
    def begin(
        self,
        source_path: Path,
        preset_token: str,
        bitrate: Optional[int],
        output_path: Path,
    ) -> EncodingHandle: ...
