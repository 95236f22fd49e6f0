import logging
import threading
import uuid
from concurrent.futures import Future
from datetime import datetime
from pathlib import Path
from typing import Optional
from vcomp.config.models import GeneralConfig
from vcomp.domain.errors import (
    AlreadyCompressedError, AlreadyRunningError, EncodeFailedError, SourceIOError, error_for
)
from vcomp.domain.events import Event, JobCancelled, JobCompleted, JobFailed, JobStarted
from vcomp.domain.models import (
    CompressionJob, CompressionResult, EncodeOutcome, EncodeStatus, EncodingHandle,
    EncodingService, ErrorKind, JobSnapshot, JobState, QualityTier, SourceVideo
)
from vcomp.infrastructure.event_bus import EventBus
from vcomp.infrastructure.ffprobe import FFprobeAdapter
from vcomp.pipeline.prober import MetadataProber
from vcomp.pipeline.progress import ProgressReporter
from vcomp.pipeline.quality import resolve
from vcomp.ui.state import UIState

logger = logging.getLogger(__name__)

TERMINAL_STATUS = {
    JobState.COMPLETED: "Complete",
    JobState.FAILED: "Failed",
    JobState.CANCELLED: "Cancelled",
}

class JobController:
    """Runs at most one compression job at a time against an encoding service.

    ``start`` returns once the encoder has accepted the job. A supervisor
    thread waits for the encoder's terminal outcome while a
    ``ProgressReporter`` samples progress into the shared ``UIState``.
    Every non-success outcome deletes the job's output file before the
    terminal event is published.
    """

    def __init__(
        self,
        service: EncodingService,
        config: Optional[GeneralConfig] = None,
        event_bus: Optional[EventBus] = None,
        prober: Optional[MetadataProber] = None,
        state: Optional[UIState] = None,
    ):
        self.service = service
        self.config = config or GeneralConfig()
        self.event_bus = event_bus or EventBus()
        self.prober = prober or MetadataProber(FFprobeAdapter(self.config.ffprobe_path))
        self.state = state or UIState()

        self._lock = threading.Condition()
        self._job: Optional[CompressionJob] = None
        self._source: Optional[SourceVideo] = None
        self._handle: Optional[EncodingHandle] = None
        self._reporter: Optional[ProgressReporter] = None
        self._cancel_requested = False
        self._done: Optional[Future] = None

    @property
    def current_job(self) -> Optional[CompressionJob]:
        with self._lock:
            return self._job.model_copy() if self._job else None

    def _is_active(self) -> bool:
        return self._job is not None and self._job.state.is_active

    def _check_guards(self, source: SourceVideo):
        if source.result is not None:
            raise AlreadyCompressedError(f"{source.path.name} has already been compressed")
        if self._is_active() and self._source is not None and self._source.id != source.id:
            raise AlreadyRunningError(f"Already compressing {self._source.path.name}")

    def _new_output_path(self) -> Path:
        return self.config.scratch_dir / f"{uuid.uuid4()}{self.config.output_extension}"

    def _prepare_output(self, output_path: Path):
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if output_path.exists():
            output_path.unlink()

    def _remove_output(self, output_path: Path):
        try:
            output_path.unlink()
            logger.info(f"OUTPUT_DELETED: {output_path.name}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not delete {output_path}: {e}")

    def start(self, source: SourceVideo, tier: QualityTier) -> CompressionJob:
        """Starts compressing ``source``; returns once encoding has begun."""
        tier = QualityTier(tier)
        with self._lock:
            self._check_guards(source)

        # Probing runs without holding the lock
        if not source.is_probed:
            self.prober.probe_source(source)

        with self._lock:
            self._check_guards(source)
            while self._is_active():
                logger.info(f"JOB_RESTART: cancelling previous job for {source.path.name}")
                self._request_cancel()
                self._lock.wait()
                self._check_guards(source)

            preset = resolve(tier)
            job = CompressionJob(
                source_id=source.id,
                source_path=source.path,
                tier=tier,
                output_path=self._new_output_path(),
            )
            done: Future = Future()
            self._job = job
            self._source = source
            self._handle = None
            self._reporter = None
            self._cancel_requested = False
            self._done = done

            self.state.source = source
            self.state.begin_job(job)
            logger.info(
                f"JOB_START: {source.path.name} tier={tier.value} "
                f"preset='{preset.preset_token}' bitrate={preset.bitrate} output={job.output_path.name}"
            )
            self.event_bus.publish(JobStarted(job=job.model_copy()))

            try:
                self._prepare_output(job.output_path)
            except OSError as e:
                self._publish_terminal(self._finish(job, JobState.FAILED, ErrorKind.IO_ERROR, str(e)), done, job)
                raise SourceIOError(f"Cannot write to {self.config.scratch_dir}: {e}") from e

            try:
                handle = self.service.begin(source.path, preset.preset_token, preset.bitrate, job.output_path)
            except Exception as e:
                self._publish_terminal(self._finish(job, JobState.FAILED, ErrorKind.ENCODE_FAILED, str(e)), done, job)
                raise EncodeFailedError(str(e)) from e

            self._handle = handle
            job.state = JobState.ENCODING
            job.status_text = "Compressing..."
            self.state.set_state(job.id, JobState.ENCODING, job.status_text)
            logger.info(f"JOB_ENCODING: {source.path.name}")

            reporter = ProgressReporter(
                job,
                handle,
                self.state,
                event_bus=self.event_bus,
                interval=self.config.poll_interval,
                is_encoding=lambda: job.state == JobState.ENCODING,
            )
            self._reporter = reporter
            reporter.start()

            supervisor = threading.Thread(
                target=self._supervise,
                args=(job, source, handle, reporter, done),
                daemon=True,
                name=f"job-{job.id.hex[:8]}",
            )
            supervisor.start()
            return job.model_copy()

    def _supervise(
        self,
        job: CompressionJob,
        source: SourceVideo,
        handle: EncodingHandle,
        reporter: ProgressReporter,
        done: Future,
    ):
        try:
            outcome = handle.wait()
        except Exception as e:
            logger.error(f"Encoder raised while compressing {source.path.name}: {e}")
            outcome = EncodeOutcome(status=EncodeStatus.FAILED, reason=str(e))

        reporter.stop()
        with self._lock:
            event = self._resolve_outcome(job, source, outcome, reporter)
            # Published before any waiting start() can claim the slot
            self._publish_terminal(event, done, job)

    def _resolve_outcome(
        self,
        job: CompressionJob,
        source: SourceVideo,
        outcome: EncodeOutcome,
        reporter: ProgressReporter,
    ) -> Event:
        # A cancel request wins over a late success
        if self._cancel_requested:
            if outcome.status == EncodeStatus.COMPLETED:
                logger.info(f"JOB_CANCELLED: {source.path.name} finished after cancel, discarding output")
            return self._finish(job, JobState.CANCELLED)

        if outcome.status == EncodeStatus.FAILED:
            return self._finish(job, JobState.FAILED, ErrorKind.ENCODE_FAILED, outcome.reason or "unknown error")

        if outcome.status == EncodeStatus.CANCELLED:
            return self._finish(job, JobState.CANCELLED)

        try:
            output_size = job.output_path.stat().st_size
        except OSError:
            return self._finish(
                job, JobState.FAILED, ErrorKind.OUTPUT_VERIFICATION_FAILED, "Export file was not created"
            )
        if output_size <= 0:
            return self._finish(
                job, JobState.FAILED, ErrorKind.OUTPUT_VERIFICATION_FAILED, "Exported file is empty or invalid"
            )

        reporter.publish(1.0)
        result = CompressionResult(
            output_path=job.output_path,
            output_size_bytes=output_size,
            source_size_bytes=source.size_bytes or 0,
        )
        source.attach_result(result)
        return self._finish(job, JobState.COMPLETED, result=result)

    def _finish(
        self,
        job: CompressionJob,
        state: JobState,
        error_kind: Optional[ErrorKind] = None,
        message: Optional[str] = None,
        result: Optional[CompressionResult] = None,
    ) -> Event:
        """Moves the job to a terminal state. Caller holds the lock."""
        if state != JobState.COMPLETED:
            self._remove_output(job.output_path)

        job.state = state
        job.status_text = TERMINAL_STATUS[state]
        job.finished_at = datetime.now()
        job.result = result
        job.error_kind = error_kind
        job.error_message = message
        if state == JobState.COMPLETED:
            job.progress = 1.0
        else:
            job.progress = self.state.progress

        self.state.finish(job.id, state, job.status_text, result, error_kind, message)
        self._handle = None
        self._reporter = None
        self._lock.notify_all()

        name = job.source_path.name
        snapshot = job.model_copy()
        if state == JobState.COMPLETED:
            logger.info(
                f"JOB_COMPLETED: {name} output={job.output_path.name} size={result.output_size_bytes} "
                f"saved={result.savings_percent:.1f}% elapsed={job.duration_seconds:.2f}s"
            )
            return JobCompleted(job=snapshot, result=result)
        if state == JobState.FAILED:
            logger.error(f"JOB_FAILED: {name} kind={error_kind.value} reason={message}")
            return JobFailed(job=snapshot, error_kind=error_kind, error_message=message or "")
        logger.info(f"JOB_CANCELLED: {name}")
        return JobCancelled(job=snapshot)

    def _publish_terminal(self, event: Event, done: Future, job: CompressionJob):
        self.event_bus.publish(event)
        if not done.done():
            done.set_result(job.model_copy())

    def poll(self) -> JobSnapshot:
        """Returns the last published progress/status without blocking."""
        return self.state.snapshot()

    def _request_cancel(self):
        """Caller holds the lock."""
        if self._cancel_requested or not self._is_active():
            return
        self._cancel_requested = True
        logger.info(f"JOB_CANCEL_REQUESTED: {self._job.source_path.name}")
        self.state.set_status(self._job.id, "Cancelling...")
        if self._reporter is not None:
            self._reporter.stop(join=False)
        if self._handle is not None:
            self._handle.cancel()

    def cancel(self) -> bool:
        """Requests cancellation of the active job; a no-op otherwise."""
        with self._lock:
            if not self._is_active():
                return False
            self._request_cancel()
            return True

    def wait(self, timeout: Optional[float] = None, raise_on_error: bool = False) -> Optional[CompressionJob]:
        """Blocks until the current job is terminal and returns its final copy."""
        with self._lock:
            done = self._done
        if done is None:
            return None
        job = done.result(timeout=timeout)
        if raise_on_error and job.state != JobState.COMPLETED:
            kind = job.error_kind or ErrorKind.CANCELLED
            raise error_for(kind, job.error_message or "Compression cancelled")
        return job

    def reset(self, source: Optional[SourceVideo] = None):
        """Cancels any running job, disposes of a finished output and clears the result."""
        with self._lock:
            while self._is_active():
                self._request_cancel()
                self._lock.wait()

            source = source or self._source
            if source is not None and source.result is not None:
                self._remove_output(source.result.output_path)
                source.clear_result()
            self.state.reset()

    def close(self, timeout: Optional[float] = None):
        if self.cancel():
            self.wait(timeout=timeout)
        self.prober.close()

class CompressionSession:
    """A controller bound to one selected video, as seen by the UI."""

    def __init__(self, controller: JobController, source: SourceVideo):
        self.controller = controller
        self.source = source

    def start(self, tier: Optional[QualityTier] = None) -> CompressionJob:
        return self.controller.start(self.source, tier or self.controller.config.default_quality)

    def cancel(self) -> bool:
        return self.controller.cancel()

    def reset(self):
        self.controller.reset(self.source)

    @property
    def progress(self) -> float:
        return self.controller.state.progress

    @property
    def status_text(self) -> str:
        return self.controller.state.status_text

    @property
    def is_running(self) -> bool:
        return self.controller.state.is_running

    @property
    def result(self):
        return self.controller.state.result

    @property
    def last_error(self) -> Optional[ErrorKind]:
        return self.controller.state.last_error
