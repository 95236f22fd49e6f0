import threading
import uuid
from typing import Optional
from vcomp.domain.models import (
    CompressionJob, CompressionResult, ErrorKind, JobSnapshot, JobState, QualityTier, SourceVideo
)

class UIState:
    """Thread-safe snapshot of the running compression, read by the UI.

    Written by the job controller (state transitions) and the progress
    reporter (progress/status); every reader gets a consistent copy.
    """

    def __init__(self):
        self._lock = threading.RLock()

        self._job_id: Optional[uuid.UUID] = None
        self._state = JobState.IDLE
        self._progress = 0.0
        self._status_text = "Ready"
        self._result: Optional[CompressionResult] = None
        self._last_error: Optional[ErrorKind] = None
        self._error_message: Optional[str] = None
        self._last_action = ""

        # Display-only context
        self.source: Optional[SourceVideo] = None
        self.tier: Optional[QualityTier] = None

    def begin_job(self, job: CompressionJob):
        with self._lock:
            self._job_id = job.id
            self._state = job.state
            self._progress = 0.0
            self._status_text = job.status_text
            self._result = None
            self._last_error = None
            self._error_message = None
            self.tier = job.tier

    def set_state(self, job_id: uuid.UUID, state: JobState, status_text: str):
        with self._lock:
            if job_id != self._job_id:
                return
            self._state = state
            self._status_text = status_text

    def set_status(self, job_id: uuid.UUID, status_text: str):
        with self._lock:
            if job_id == self._job_id:
                self._status_text = status_text

    def update_progress(self, job_id: uuid.UUID, progress: float, status_text: str) -> bool:
        """Publishes progress for the encoding job; lower values are ignored."""
        with self._lock:
            if job_id != self._job_id or self._state != JobState.ENCODING:
                return False
            if progress < self._progress:
                return False
            self._progress = progress
            self._status_text = status_text
            return True

    def finish(
        self,
        job_id: uuid.UUID,
        state: JobState,
        status_text: str,
        result: Optional[CompressionResult] = None,
        error_kind: Optional[ErrorKind] = None,
        error_message: Optional[str] = None,
    ):
        with self._lock:
            if job_id != self._job_id:
                return
            self._state = state
            self._status_text = status_text
            self._result = result
            self._last_error = error_kind
            self._error_message = error_message
            if state == JobState.COMPLETED:
                self._progress = 1.0

    def reset(self):
        with self._lock:
            self._job_id = None
            self._state = JobState.IDLE
            self._progress = 0.0
            self._status_text = "Ready"
            self._result = None
            self._last_error = None
            self._error_message = None

    def snapshot(self) -> JobSnapshot:
        with self._lock:
            return JobSnapshot(
                job_id=self._job_id,
                state=self._state,
                progress=self._progress,
                status_text=self._status_text,
                result=self._result,
                last_error=self._last_error,
                error_message=self._error_message,
            )

    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    @property
    def status_text(self) -> str:
        with self._lock:
            return self._status_text

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._state.is_active

    @property
    def result(self) -> Optional[CompressionResult]:
        with self._lock:
            return self._result

    @property
    def last_error(self) -> Optional[ErrorKind]:
        with self._lock:
            return self._last_error

    def set_last_action(self, message: str):
        with self._lock:
            self._last_action = message

    def get_last_action(self) -> str:
        with self._lock:
            return self._last_action
