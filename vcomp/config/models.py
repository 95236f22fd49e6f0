import tempfile
from pathlib import Path
from typing import List
from pydantic import BaseModel, Field, field_validator
from vcomp.domain.models import QualityTier

def _default_scratch_dir() -> Path:
    return Path(tempfile.gettempdir()) / "CompressedVideo"

class GeneralConfig(BaseModel):
    scratch_dir: Path = Field(default_factory=_default_scratch_dir)
    poll_interval: float = Field(default=0.1, gt=0)
    output_extension: str = ".mp4"
    default_quality: QualityTier = QualityTier.MEDIUM
    input_extensions: List[str] = Field(default_factory=lambda: [".mp4", ".mov"])
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    clean_scratch_on_start: bool = True
    scratch_stale_after: float = Field(default=86400.0, gt=0)
    debug: bool = False

    @field_validator('output_extension')
    @classmethod
    def validate_extension(cls, v: str) -> str:
        if not v.startswith("."):
            v = f".{v}"
        return v.lower()

    @field_validator('input_extensions')
    @classmethod
    def normalize_input_extensions(cls, v: List[str]) -> List[str]:
        return [e.lower() if e.startswith(".") else f".{e.lower()}" for e in v]

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
