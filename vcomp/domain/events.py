from typing import Optional
from pydantic import BaseModel
from .models import CompressionJob, CompressionResult, ErrorKind

class Event(BaseModel):
    """Base class for all domain events."""
    pass

class JobEvent(Event):
    job: CompressionJob

class JobStarted(JobEvent):
    pass

class JobProgressUpdated(JobEvent):
    progress: float

class JobCompleted(JobEvent):
    result: CompressionResult

class JobFailed(JobEvent):
    error_kind: ErrorKind
    error_message: str

class JobCancelled(JobEvent):
    pass

class RequestCancel(Event):
    """Emitted when the user asks to stop the running compression (Key 'C')."""
    pass

class ActionMessage(Event):
    message: str
    error: Optional[bool] = False
