import logging
import threading
from typing import Callable, Optional
from vcomp.domain.events import JobProgressUpdated
from vcomp.domain.models import CompressionJob, EncodingHandle
from vcomp.infrastructure.event_bus import EventBus
from vcomp.ui.state import UIState

def format_status(progress: float) -> str:
    return f"Compressing… {int(round(progress * 100))}%"

class ProgressReporter:
    """Samples encoder progress in a background thread and publishes it to the UI state."""

    def __init__(
        self,
        job: CompressionJob,
        handle: EncodingHandle,
        state: UIState,
        event_bus: Optional[EventBus] = None,
        interval: float = 0.1,
        is_encoding: Optional[Callable[[], bool]] = None,
    ):
        self.job = job
        self.handle = handle
        self.state = state
        self.event_bus = event_bus
        self.interval = interval
        self.is_encoding = is_encoding or (lambda: True)
        self.last_published: Optional[float] = None
        self.logger = logging.getLogger(__name__)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _sample(self) -> Optional[float]:
        try:
            return min(1.0, max(0.0, float(self.handle.progress())))
        except Exception as e:
            self.logger.debug(f"Progress sample failed for {self.job.source_path.name}: {e}")
            return None

    def publish(self, value: float) -> bool:
        """Publishes a value unless it would move progress backwards."""
        last = self.last_published
        if last is not None and value <= last:
            return False
        if not self.state.update_progress(self.job.id, value, format_status(value)):
            return False
        self.last_published = value
        if self.event_bus is not None:
            job = self.job.model_copy(update={"progress": value})
            self.event_bus.publish(JobProgressUpdated(job=job, progress=value))
        return True

    def _run(self):
        while not self._stop_event.is_set() and self.is_encoding():
            value = self._sample()
            if value is not None:
                self.publish(value)
                if value >= 1.0:
                    break
            self._stop_event.wait(self.interval)

    def start(self):
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name=f"progress-{self.job.id.hex[:8]}"
        )
        self._thread.start()

    def stop(self, join: bool = True):
        self._stop_event.set()
        if join and self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=max(1.0, self.interval * 5))
