from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict
from vcomp.domain.models import QualityTier

class QualityPreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    preset_token: str
    bitrate: Optional[int] = None

QUALITY_TABLE: Dict[QualityTier, QualityPreset] = {
    QualityTier.LOW: QualityPreset(preset_token="medium-quality, max compression", bitrate=1_000_000),
    QualityTier.MEDIUM: QualityPreset(preset_token="high-quality", bitrate=4_000_000),
    QualityTier.HIGH: QualityPreset(preset_token="high-quality, minimal compression", bitrate=8_000_000),
    # No target bitrate: the encoder picks one from the source
    QualityTier.ORIGINAL: QualityPreset(preset_token="high-quality, no re-encode preference"),
}

def resolve(tier: QualityTier) -> QualityPreset:
    """Maps a quality tier to its encoder preset and optional target bitrate."""
    return QUALITY_TABLE[QualityTier(tier)]
