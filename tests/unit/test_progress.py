import time
import uuid
import pytest
from unittest.mock import MagicMock
from vcomp.domain.events import JobProgressUpdated
from vcomp.domain.models import CompressionJob, JobState, QualityTier
from vcomp.infrastructure.event_bus import EventBus
from vcomp.pipeline.progress import ProgressReporter, format_status
from vcomp.ui.state import UIState


@pytest.fixture
def encoding_job(tmp_path):
    job = CompressionJob(
        source_id=uuid.uuid4(),
        source_path=tmp_path / "clip.mov",
        tier=QualityTier.MEDIUM,
        output_path=tmp_path / "out.mp4",
        state=JobState.ENCODING,
    )
    return job


@pytest.fixture
def encoding_state(encoding_job):
    state = UIState()
    state.begin_job(encoding_job)
    state.set_state(encoding_job.id, JobState.ENCODING, "Compressing...")
    return state


def test_format_status():
    assert format_status(0.0) == "Compressing… 0%"
    assert format_status(0.426) == "Compressing… 43%"
    assert format_status(1.0) == "Compressing… 100%"


def progress_events(bus):
    events = []
    bus.subscribe(JobProgressUpdated, events.append)
    return events


def test_publish_clamps_lower_values(encoding_job, encoding_state):
    bus = EventBus()
    events = progress_events(bus)
    reporter = ProgressReporter(encoding_job, MagicMock(), encoding_state, event_bus=bus)

    assert reporter.publish(0.4) is True
    assert reporter.publish(0.3) is False
    assert reporter.publish(0.4) is False
    assert reporter.publish(0.6) is True

    assert reporter.last_published == 0.6
    assert [e.progress for e in events] == [0.4, 0.6]
    assert [e.job.progress for e in events] == [0.4, 0.6]
    assert encoding_job.progress == 0.0
    assert encoding_state.progress == 0.6
    assert encoding_state.status_text == "Compressing… 60%"


def test_reporter_stops_at_full_progress(encoding_job, encoding_state):
    handle = MagicMock()
    handle.progress.side_effect = [0.2, 0.7, 1.0, 1.0, 1.0]
    bus = EventBus()
    events = progress_events(bus)
    reporter = ProgressReporter(encoding_job, handle, encoding_state, event_bus=bus, interval=0.01)

    reporter.start()
    reporter._thread.join(timeout=5)

    assert not reporter._thread.is_alive()
    assert [e.progress for e in events] == [0.2, 0.7, 1.0]
    assert handle.progress.call_count == 3


def test_reporter_clamps_out_of_range_samples(encoding_job, encoding_state):
    handle = MagicMock()
    handle.progress.side_effect = [-0.5, 1.7]
    bus = EventBus()
    events = progress_events(bus)
    reporter = ProgressReporter(encoding_job, handle, encoding_state, event_bus=bus, interval=0.01)

    reporter.start()
    reporter._thread.join(timeout=5)

    assert [e.progress for e in events] == [0.0, 1.0]


def test_reporter_survives_sampling_errors(encoding_job, encoding_state):
    handle = MagicMock()
    handle.progress.side_effect = [RuntimeError("busy"), 0.5, 1.0]
    bus = EventBus()
    events = progress_events(bus)
    reporter = ProgressReporter(encoding_job, handle, encoding_state, event_bus=bus, interval=0.01)

    reporter.start()
    reporter._thread.join(timeout=5)

    assert [e.progress for e in events] == [0.5, 1.0]


def test_reporter_stops_when_job_leaves_encoding(encoding_job, encoding_state):
    handle = MagicMock()
    handle.progress.return_value = 0.1
    reporter = ProgressReporter(
        encoding_job, handle, encoding_state, interval=0.01,
        is_encoding=lambda: encoding_job.state == JobState.ENCODING,
    )

    reporter.start()
    time.sleep(0.05)
    encoding_job.state = JobState.CANCELLED
    reporter._thread.join(timeout=5)

    assert not reporter._thread.is_alive()


def test_reporter_stop(encoding_job, encoding_state):
    handle = MagicMock()
    handle.progress.return_value = 0.3
    bus = EventBus()
    events = progress_events(bus)
    reporter = ProgressReporter(encoding_job, handle, encoding_state, event_bus=bus, interval=0.01)

    reporter.start()
    reporter.stop()

    assert not reporter._thread.is_alive()
    assert [e.progress for e in events] in ([], [0.3])


def test_reporter_never_changes_job_state(encoding_job, encoding_state):
    handle = MagicMock()
    handle.progress.return_value = 1.0
    reporter = ProgressReporter(encoding_job, handle, encoding_state, event_bus=EventBus(), interval=0.01)

    reporter.start()
    reporter._thread.join(timeout=5)

    assert encoding_job.state == JobState.ENCODING
    assert encoding_state.snapshot().state == JobState.ENCODING
