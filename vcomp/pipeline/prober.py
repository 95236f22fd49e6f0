"""Metadata probing for selected videos.

Display size and orientation come from the video track's affine transform.
ffprobe exposes it as a display matrix (side data) that still carries the
translation written by the recording device; older builds only report a
``rotate`` tag, in which case the canonical device transform is rebuilt.
"""
import concurrent.futures
import logging
import math
import threading
from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel
from vcomp.domain.errors import NoVideoTrackError, SourceIOError
from vcomp.domain.models import AffineTransform, Orientation, SourceVideo, VideoMetadata
from vcomp.infrastructure.ffprobe import FFprobeAdapter, FFprobeError

logger = logging.getLogger(__name__)

FIXED_16_16 = 65536.0
TRANSLATION_TOLERANCE = 0.5

class ProbeResult(BaseModel):
    duration: float
    size_bytes: int
    metadata: VideoMetadata

def _close(value: float, expected: float) -> bool:
    return math.isclose(value, expected, abs_tol=TRANSLATION_TOLERANCE)

def orientation_from_transform(transform: AffineTransform, width: float, height: float) -> Orientation:
    """Buckets a transform into one of four orientations by its translation.

    First match wins. Only the four canonical device rotations are
    told apart; skew, scale or odd angles all land in the last bucket.
    """
    if _close(transform.tx, width) and _close(transform.ty, height):
        return Orientation.DEG_0
    if _close(transform.tx, 0) and _close(transform.ty, 0):
        return Orientation.DEG_90
    if _close(transform.tx, 0) and _close(transform.ty, width):
        return Orientation.DEG_180
    return Orientation.DEG_270

def transform_for_rotation(degrees: int, width: float, height: float) -> AffineTransform:
    """Track transform a recording device writes for a clockwise display rotation."""
    degrees = degrees % 360
    if degrees == 90:
        return AffineTransform(a=0, b=1, c=-1, d=0, tx=height, ty=0)
    if degrees == 180:
        return AffineTransform(a=-1, b=0, c=0, d=-1, tx=width, ty=height)
    if degrees == 270:
        return AffineTransform(a=0, b=-1, c=1, d=0, tx=0, ty=width)
    return AffineTransform()

class MetadataProber:
    """Extracts duration, size, display resolution and orientation of a video."""

    def __init__(self, ffprobe: Optional[FFprobeAdapter] = None):
        self.ffprobe = ffprobe or FFprobeAdapter()
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._apply_lock = threading.Lock()

    def _track_transform(self, stream: Dict[str, Any], width: int, height: int) -> AffineTransform:
        for side_data in stream.get("side_data_list", []):
            if side_data.get("side_data_type") != "Display Matrix":
                continue
            matrix = side_data.get("displaymatrix")
            rows = FFprobeAdapter.parse_display_matrix(matrix) if matrix else None
            if rows:
                return AffineTransform(
                    a=rows[0][0] / FIXED_16_16,
                    b=rows[0][1] / FIXED_16_16,
                    c=rows[1][0] / FIXED_16_16,
                    d=rows[1][1] / FIXED_16_16,
                    tx=rows[2][0] / FIXED_16_16,
                    ty=rows[2][1] / FIXED_16_16,
                )
            if "rotation" in side_data:
                # ffprobe reports counter-clockwise degrees
                try:
                    return transform_for_rotation(-int(float(side_data["rotation"])), width, height)
                except (TypeError, ValueError):
                    logger.debug(f"Ignoring unparsable rotation: {side_data['rotation']!r}")
                    return AffineTransform()

        rotate_tag = stream.get("tags", {}).get("rotate")
        if rotate_tag is not None:
            try:
                return transform_for_rotation(int(float(rotate_tag)), width, height)
            except ValueError:
                logger.debug(f"Ignoring unparsable rotate tag: {rotate_tag!r}")
        return AffineTransform()

    def _duration(self, data: Dict[str, Any], stream: Dict[str, Any]) -> float:
        for raw in (data.get("format", {}).get("duration"), stream.get("duration")):
            if raw in (None, "N/A"):
                continue
            try:
                return float(raw)
            except (TypeError, ValueError):
                continue
        return 0.0

    def probe(self, path: Path) -> ProbeResult:
        path = Path(path)
        try:
            size_bytes = path.stat().st_size
        except OSError as e:
            raise SourceIOError(f"Cannot read {path}: {e}", details={"path": str(path)}) from e

        try:
            data = self.ffprobe.probe(path)
        except FFprobeError as e:
            raise SourceIOError(str(e), details={"path": str(path)}) from e

        streams = FFprobeAdapter.video_streams(data)
        if not streams:
            raise NoVideoTrackError(f"No video track found in {path.name}", details={"path": str(path)})
        stream = streams[0]

        width = int(stream.get("width", 0))
        height = int(stream.get("height", 0))
        transform = self._track_transform(stream, width, height)
        display_w, display_h = transform.apply_to_size(width, height)

        metadata = VideoMetadata(
            width=width,
            height=height,
            display_width=int(round(abs(display_w))),
            display_height=int(round(abs(display_h))),
            orientation=orientation_from_transform(transform, width, height),
            codec=stream.get("codec_name", "unknown"),
            container=data.get("format", {}).get("format_name"),
        )
        duration = self._duration(data, stream)

        logger.info(
            f"PROBED: {path.name} size={size_bytes} duration={duration:.2f}s "
            f"{metadata.display_width}x{metadata.display_height} orientation={metadata.orientation.value}"
        )
        return ProbeResult(duration=duration, size_bytes=size_bytes, metadata=metadata)

    def probe_source(self, source: SourceVideo) -> SourceVideo:
        """Probes a selected video and fills its metadata in one step."""
        if source.is_probed:
            return source
        result = self.probe(source.path)
        with self._apply_lock:
            # Another caller may have finished first
            if not source.is_probed:
                source.apply_probe(result.duration, result.size_bytes, result.metadata)
        return source

    def submit(self, source: SourceVideo) -> concurrent.futures.Future:
        """Probes in the background; the future resolves to the source."""
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="prober")
        return self._executor.submit(self.probe_source, source)

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
