"""Exceptions raised by the recording engine.

Exception Hierarchy:
    RecorderError (base)
    ├── PreflightError - invalid URL or not enough disk space
    ├── ConnectivityError - source unreachable after all probe attempts
    ├── CaptureStartError - a capture attempt could not get going
    │   └── MuxStartError - the ffmpeg child could not be spawned
    └── StreamDrop - the source ended before the stop boundary

A watchdog stop is not an error and has no exception.
"""


class RecorderError(Exception):
    """Base exception for all recorder errors."""


class PreflightError(RecorderError):
    """The request cannot be recorded at all; raised before any attempt."""


class ConnectivityError(RecorderError):
    """The source stayed unreachable for every configured probe attempt."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class CaptureStartError(RecorderError):
    """A capture attempt failed before anything was captured."""


class MuxStartError(CaptureStartError):
    """The external remux process could not be started."""


class StreamDrop(RecorderError):
    """The source ended (EOF or read error) before the stop boundary.

    Attributes:
        bytes_written: Bytes this process wrote before the drop.
    """

    def __init__(self, message: str, bytes_written: int = 0) -> None:
        super().__init__(message)
        self.bytes_written = bytes_written
