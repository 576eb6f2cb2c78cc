"""
Background copy threads feeding a transcoder's stdin.

When a TranscodeStream has an upstream source, two threads move its bytes
into the process:

    upstream --InputFeeder--> BoundedRelayPipe --StdinRelay--> process stdin

The relay pipe decouples the rate at which the upstream source is consumed
from the rate at which the process accepts input, and its fixed capacity
bounds memory use. Both threads are single-pass: they copy until EOF or the
first I/O error, log any error, and close their endpoints on the way out.
"""

from __future__ import annotations

import logging
import threading
from typing import BinaryIO, Optional

from transcode.pipe.relay_pipe import PipeReader, PipeWriter

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8192


def _close_quietly(stream, what: str) -> None:
    """Close stream, logging instead of raising."""
    if stream is None:
        return
    try:
        stream.close()
    except (OSError, ValueError) as e:
        logger.debug(f"Error closing {what}: {e}")


def _write_all(dest, data: bytes) -> None:
    """Write all of data, looping over partial writes from unbuffered pipes."""
    view = memoryview(data)
    while view:
        written = dest.write(view)
        if written is None:
            # Non-blocking destination with no room; not expected for pipes
            raise BlockingIOError("destination would block")
        view = view[written:]


class CopyThread(threading.Thread):
    """
    Single-pass copy from a source to a destination.

    Subclasses decide which endpoints to close when the copy ends. After the
    thread finishes, bytes_copied and error describe how it went; error is
    None on a clean EOF.

    Attributes:
        source: Object with read(size)
        dest: Object with write(data)
        chunk_size: Maximum bytes per read
        bytes_copied: Bytes written to dest so far
        error: Exception that stopped the copy, if any
    """

    failure_message = "Error copying data"

    def __init__(self, source, dest, chunk_size: int = DEFAULT_CHUNK_SIZE, name: Optional[str] = None) -> None:
        super().__init__(name=name, daemon=True)
        self.source = source
        self.dest = dest
        self.chunk_size = chunk_size
        self.bytes_copied = 0
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            while True:
                data = self.source.read(self.chunk_size)
                if not data:
                    break
                _write_all(self.dest, data)
                self.bytes_copied += len(data)
        except (OSError, ValueError) as e:
            self.error = e
            logger.warning(f"{self.failure_message}: {e}")
        finally:
            self.close_endpoints()
            logger.debug(f"{self.name} finished after {self.bytes_copied} bytes")

    def close_endpoints(self) -> None:
        raise NotImplementedError

    @property
    def succeeded(self) -> bool:
        """True once the thread finished without an error."""
        return not self.is_alive() and self.error is None


class InputFeeder(CopyThread):
    """
    Copies the upstream source into the relay pipe.

    Owns both the upstream source and the pipe's write end. Closing the write
    end tells the StdinRelay that input is complete.
    """

    failure_message = "Error copying input stream to pipe"

    def __init__(self, upstream, writer: PipeWriter, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        super().__init__(upstream, writer, chunk_size, name="InputFeeder")

    def close_endpoints(self) -> None:
        _close_quietly(self.source, "upstream source")
        _close_quietly(self.dest, "relay pipe writer")


class StdinRelay(CopyThread):
    """
    Copies the relay pipe into the process's stdin.

    Stops early with a logged BrokenPipeError if the process closes its
    input before consuming everything. Closing the pipe's read end on exit
    unblocks an InputFeeder waiting for space.
    """

    failure_message = "Error feeding pipe to process"

    def __init__(self, reader: PipeReader, stdin: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        super().__init__(reader, stdin, chunk_size, name="StdinRelay")

    def close_endpoints(self) -> None:
        _close_quietly(self.dest, "process stdin")
        _close_quietly(self.source, "relay pipe reader")
