"""Error hierarchy for probing and compression."""
from typing import Optional
from vcomp.domain.models import ErrorKind

class CompressorError(Exception):
    """Base error for everything the compressor surfaces to callers."""
    kind: ErrorKind = ErrorKind.ENCODE_FAILED

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

class NoVideoTrackError(CompressorError):
    kind = ErrorKind.NO_VIDEO_TRACK

class SourceIOError(CompressorError):
    """Filesystem failure reading the source or writing the output."""
    kind = ErrorKind.IO_ERROR

class EncodeFailedError(CompressorError):
    kind = ErrorKind.ENCODE_FAILED

    def __init__(self, reason: str, details: Optional[dict] = None):
        super().__init__(f"Export failed: {reason}", details=details)
        self.reason = reason

class OutputVerificationFailedError(CompressorError):
    kind = ErrorKind.OUTPUT_VERIFICATION_FAILED

class JobCancelledError(CompressorError):
    kind = ErrorKind.CANCELLED

class AlreadyRunningError(CompressorError):
    kind = ErrorKind.ALREADY_RUNNING

class AlreadyCompressedError(CompressorError):
    kind = ErrorKind.ALREADY_COMPRESSED

_ERROR_TYPES = {
    ErrorKind.NO_VIDEO_TRACK: NoVideoTrackError,
    ErrorKind.IO_ERROR: SourceIOError,
    ErrorKind.OUTPUT_VERIFICATION_FAILED: OutputVerificationFailedError,
    ErrorKind.CANCELLED: JobCancelledError,
    ErrorKind.ALREADY_RUNNING: AlreadyRunningError,
    ErrorKind.ALREADY_COMPRESSED: AlreadyCompressedError,
}

def error_for(kind: ErrorKind, message: str) -> CompressorError:
    """Rebuilds the exception matching a recorded error kind."""
    if kind == ErrorKind.ENCODE_FAILED:
        return EncodeFailedError(message)
    return _ERROR_TYPES[kind](message)

def user_message(kind: ErrorKind, reason: Optional[str] = None) -> str:
    """The single message shown to the user for a terminal non-success state."""
    if kind in (ErrorKind.ENCODE_FAILED, ErrorKind.OUTPUT_VERIFICATION_FAILED):
        return f"Compression failed: {reason or 'unknown error'}"
    if kind == ErrorKind.NO_VIDEO_TRACK:
        return "No video track found"
    if kind == ErrorKind.IO_ERROR:
        return f"Failed to load video: {reason or 'file not accessible'}"
    if kind == ErrorKind.CANCELLED:
        return "Compression cancelled"
    if kind == ErrorKind.ALREADY_RUNNING:
        return "Another video is already being compressed"
    return "This video has already been compressed"
