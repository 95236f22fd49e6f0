import threading
import time
import pytest
from pathlib import Path
from typing import List, Optional
from unittest.mock import MagicMock
from vcomp.config.models import GeneralConfig
from vcomp.domain.models import (
    EncodeOutcome, EncodeStatus, Orientation, SourceVideo, VideoMetadata
)
from vcomp.infrastructure.event_bus import EventBus
from vcomp.pipeline.controller import JobController
from vcomp.ui.state import UIState


class FakeEncodingHandle:
    """Encoding handle whose progress follows wall-clock time."""

    def __init__(
        self,
        output_path: Path,
        duration: float = 0.3,
        outcome: EncodeStatus = EncodeStatus.COMPLETED,
        output_bytes: bytes = b"x" * 1000,
        reason: Optional[str] = None,
        honor_cancel: bool = True,
        write_partial: bool = True,
        samples: Optional[List[float]] = None,
    ):
        self.output_path = output_path
        self.duration = duration
        self.outcome = outcome
        self.output_bytes = output_bytes
        self.reason = reason
        self.honor_cancel = honor_cancel
        self.samples = list(samples) if samples else None
        self.cancel_calls = 0
        self._cancel = threading.Event()
        self._started = time.monotonic()
        if write_partial:
            output_path.write_bytes(b"partial")

    def progress(self) -> float:
        if self.samples:
            return self.samples.pop(0) if len(self.samples) > 1 else self.samples[0]
        return min(1.0, (time.monotonic() - self._started) / self.duration)

    def wait(self) -> EncodeOutcome:
        if self.honor_cancel:
            if self._cancel.wait(self.duration):
                return EncodeOutcome(status=EncodeStatus.CANCELLED)
        else:
            time.sleep(self.duration)

        if self.outcome == EncodeStatus.COMPLETED:
            self.output_path.write_bytes(self.output_bytes)
            return EncodeOutcome(status=EncodeStatus.COMPLETED, output_path=self.output_path)
        if self.outcome == EncodeStatus.FAILED:
            return EncodeOutcome(status=EncodeStatus.FAILED, reason=self.reason)
        return EncodeOutcome(status=EncodeStatus.CANCELLED)

    def cancel(self):
        self.cancel_calls += 1
        self._cancel.set()


class FakeEncodingService:
    def __init__(self, fail_on_begin: bool = False, **handle_kwargs):
        self.fail_on_begin = fail_on_begin
        self.handle_kwargs = handle_kwargs
        self.calls = []
        self.handles: List[FakeEncodingHandle] = []

    def begin(self, source_path, preset_token, bitrate, output_path):
        self.calls.append((source_path, preset_token, bitrate, output_path))
        if self.fail_on_begin:
            raise RuntimeError("encoder unavailable")
        handle = FakeEncodingHandle(output_path, **self.handle_kwargs)
        self.handles.append(handle)
        return handle


@pytest.fixture
def make_source(tmp_path):
    """Creates a source file on disk with its metadata already probed."""
    def _make(name: str = "clip.mov", size_bytes: int = 50_000_000, duration: float = 125.0) -> SourceVideo:
        path = tmp_path / name
        path.write_bytes(b"\0" * 16)
        source = SourceVideo(path=path)
        source.apply_probe(
            duration,
            size_bytes,
            VideoMetadata(
                width=1920, height=1080,
                display_width=1920, display_height=1080,
                orientation=Orientation.DEG_90, codec="hevc",
            ),
        )
        return source
    return _make


@pytest.fixture
def scratch_dir(tmp_path):
    return tmp_path / "scratch"


@pytest.fixture
def make_controller(scratch_dir):
    def _make(service, prober=None, bus=None):
        config = GeneralConfig(scratch_dir=scratch_dir, poll_interval=0.01)
        return JobController(
            service=service,
            config=config,
            event_bus=bus or EventBus(),
            prober=prober or MagicMock(),
            state=UIState(),
        )
    return _make


@pytest.fixture
def make_service():
    return FakeEncodingService
