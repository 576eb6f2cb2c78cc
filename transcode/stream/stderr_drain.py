"""
Diagnostic drainer for transcoder stderr.

A process whose stderr pipe is never read blocks as soon as the OS pipe
buffer fills. DiagnosticDrainer reads stderr continuously for the lifetime of
the process and forwards each line to the log.
"""

from __future__ import annotations

import io
import logging
import threading
from typing import BinaryIO

logger = logging.getLogger(__name__)

# Keep the last 10KB of stderr text for post-mortem inspection
LAST_STDERR_MAX_SIZE = 10 * 1024


class DiagnosticDrainer(threading.Thread):
    """
    Thread that drains a process's stderr line by line until EOF.

    Attributes:
        stream: Process stderr pipe (BinaryIO)
        process_name: Name used to tag each log line
        diagnostic: True to log lines at the diagnostic level, False for DEBUG
        level: Logging level used when diagnostic is set
        lines_read: Number of non-empty lines forwarded
    """

    def __init__(
        self,
        stream: BinaryIO,
        process_name: str,
        diagnostic: bool = True,
        level: int = logging.INFO,
    ) -> None:
        super().__init__(name=f"StderrDrain-{process_name}", daemon=True)
        self.stream = stream
        self.process_name = process_name
        self.diagnostic = diagnostic
        self.level = level if diagnostic else logging.DEBUG
        self.lines_read = 0
        self._last_stderr = ""

    @property
    def last_stderr(self) -> str:
        """Most recent stderr text, truncated to the last 10KB."""
        return self._last_stderr

    def run(self) -> None:
        # Unbuffered pipes would otherwise be read one byte per syscall
        reader = self.stream
        if isinstance(reader, io.RawIOBase):
            reader = io.BufferedReader(reader)

        try:
            # readline() blocks until a full line, EOF, or the pipe is closed
            for line in iter(reader.readline, b""):
                text = line.decode(errors="replace").rstrip()
                if not text:
                    continue
                self.lines_read += 1
                logger.log(self.level, f"[{self.process_name}] {text}")
                self._remember(text + "\n")
        except (OSError, ValueError) as e:
            # stderr closed underneath us during shutdown
            logger.debug(f"Stderr read error for {self.process_name} (likely closed): {e}")
        finally:
            try:
                reader.close()
            except OSError:
                pass
            logger.debug(f"{self.process_name} stderr drain thread exiting")

    def _remember(self, text: str) -> None:
        combined = self._last_stderr + text
        if len(combined) > LAST_STDERR_MAX_SIZE:
            combined = combined[-LAST_STDERR_MAX_SIZE:]
        self._last_stderr = combined
