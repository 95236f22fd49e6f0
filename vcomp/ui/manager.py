import logging
from typing import List
from vcomp.domain.errors import user_message
from vcomp.domain.events import (
    ActionMessage, JobCancelled, JobCompleted, JobFailed, JobStarted, RequestCancel
)
from vcomp.domain.models import ErrorKind, format_size
from vcomp.infrastructure.event_bus import EventBus
from vcomp.ui.state import UIState

class UIManager:
    """Subscribes to the EventBus and turns job events into user-facing messages."""

    def __init__(self, bus: EventBus, state: UIState):
        self.bus = bus
        self.state = state
        self.messages: List[str] = []
        self.logger = logging.getLogger(__name__)
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(JobStarted, self.on_job_started)
        self.bus.subscribe(JobCompleted, self.on_job_completed)
        self.bus.subscribe(JobFailed, self.on_job_failed)
        self.bus.subscribe(JobCancelled, self.on_job_cancelled)
        self.bus.subscribe(RequestCancel, self.on_cancel_request)
        self.bus.subscribe(ActionMessage, self.on_action_message)

    def _announce(self, message: str):
        self.messages.append(message)
        self.state.set_last_action(message)
        self.logger.debug(f"UI message: {message}")

    def on_job_started(self, event: JobStarted):
        self.state.set_last_action(f"Compressing {event.job.source_path.name} ({event.job.tier.label})")

    def on_job_completed(self, event: JobCompleted):
        result = event.result
        self._announce(
            f"Compressed to {format_size(result.output_size_bytes)} "
            f"({result.savings_percent:.1f}% saved)"
        )

    def on_job_failed(self, event: JobFailed):
        self._announce(user_message(event.error_kind, event.error_message))

    def on_job_cancelled(self, event: JobCancelled):
        self._announce(user_message(ErrorKind.CANCELLED))

    def on_cancel_request(self, event: RequestCancel):
        self.state.set_last_action("Cancelling...")

    def on_action_message(self, event: ActionMessage):
        self._announce(event.message)
