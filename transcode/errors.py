"""
Exceptions raised by the transcode package.

Only process spawn failures are raised to callers. I/O failures inside the
background copy threads are logged and recorded on the thread instead.
"""

from typing import Optional, Sequence


class TranscodeError(Exception):
    """Base class for transcode errors."""


class SpawnError(TranscodeError):
    """
    The transcoding process could not be started.

    Attributes:
        command: argv that failed to start
    """

    def __init__(self, message: str, command: Optional[Sequence[str]] = None) -> None:
        super().__init__(message)
        self.command = list(command) if command is not None else []
