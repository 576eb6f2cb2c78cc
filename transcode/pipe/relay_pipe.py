"""
Bounded in-memory byte pipe for relaying data between two threads.

This module provides BoundedRelayPipe, a fixed-capacity FIFO byte channel
with one producer and one consumer. Writes block while the pipe is full and
reads block while it is empty, so a slow consumer throttles the producer
instead of letting memory grow with the size of the input.

The pipe hands out two endpoints, PipeWriter and PipeReader, each owned by
exactly one thread. Closing the writer signals EOF to the reader once the
remaining bytes are drained. Closing the reader makes any pending or future
write fail with BrokenPipeError.
"""

from __future__ import annotations

import io
import threading
from dataclasses import dataclass

DEFAULT_PIPE_CAPACITY = 65536  # 64 KiB


@dataclass
class RelayPipeStats:
    """
    Statistics for BoundedRelayPipe.

    Attributes:
        capacity: Maximum number of bytes the pipe can hold
        count: Bytes currently buffered
        peak: Highest number of bytes ever buffered at once
        total_written: Total bytes accepted from the writer
        total_read: Total bytes handed to the reader
    """
    capacity: int
    count: int
    peak: int
    total_written: int
    total_read: int


class BoundedRelayPipe:
    """
    Fixed-capacity byte pipe with blocking write-when-full and read-when-empty.

    Thread-safe for one writer thread and one reader thread. All state is
    guarded by a single lock with a condition variable used for both
    "space available" and "data available" wakeups.

    Attributes:
        capacity: Maximum number of buffered bytes
        reader: The read endpoint (PipeReader)
        writer: The write endpoint (PipeWriter)
    """

    def __init__(self, capacity: int = DEFAULT_PIPE_CAPACITY) -> None:
        """
        Initialize the pipe.

        Args:
            capacity: Maximum number of buffered bytes (must be > 0)

        Raises:
            ValueError: If capacity <= 0
        """
        if capacity <= 0:
            raise ValueError(f"BoundedRelayPipe capacity must be > 0, got {capacity}")

        self._capacity = capacity
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._condition = threading.Condition(self._lock)

        self._write_closed = False
        self._read_closed = False

        # Statistics tracking
        self._peak = 0
        self._total_written = 0
        self._total_read = 0

        self.reader = PipeReader(self)
        self.writer = PipeWriter(self)

    @property
    def capacity(self) -> int:
        return self._capacity

    def write(self, data: bytes) -> int:
        """
        Write all of data into the pipe, blocking while it is full.

        Data larger than the free space is written in portions as the reader
        makes room, so the buffer never grows past capacity.

        Args:
            data: Bytes-like object to write

        Returns:
            Number of bytes written (always len(data))

        Raises:
            BrokenPipeError: If the read end is closed
            ValueError: If the write end is closed
        """
        view = memoryview(data).cast("B")
        written = 0
        with self._condition:
            while written < len(view):
                if self._write_closed:
                    raise ValueError("write to closed pipe writer")
                if self._read_closed:
                    raise BrokenPipeError("pipe read end is closed")

                free = self._capacity - len(self._buffer)
                if free <= 0:
                    self._condition.wait()
                    continue

                portion = view[written:written + free]
                self._buffer += portion
                written += len(portion)
                self._total_written += len(portion)
                if len(self._buffer) > self._peak:
                    self._peak = len(self._buffer)

                self._condition.notify_all()
        return written

    def read(self, size: int = -1) -> bytes:
        """
        Read up to size bytes, blocking while the pipe is empty.

        Args:
            size: Maximum number of bytes to return. Negative means
                  everything currently buffered.

        Returns:
            Between 1 and size bytes, or b"" once the writer has closed
            and the buffer is drained.

        Raises:
            ValueError: If the read end is closed
        """
        with self._condition:
            while True:
                if self._read_closed:
                    raise ValueError("read from closed pipe reader")
                if self._buffer:
                    break
                if self._write_closed:
                    return b""
                self._condition.wait()

            if size is None or size < 0 or size > len(self._buffer):
                size = len(self._buffer)
            chunk = bytes(self._buffer[:size])
            del self._buffer[:size]
            self._total_read += len(chunk)

            # Wake a writer waiting for free space
            self._condition.notify_all()
            return chunk

    def close_write(self) -> None:
        """Close the write end. Buffered bytes stay readable. Idempotent."""
        with self._condition:
            self._write_closed = True
            self._condition.notify_all()

    def close_read(self) -> None:
        """Close the read end and discard buffered bytes. Idempotent."""
        with self._condition:
            self._read_closed = True
            self._buffer.clear()
            self._condition.notify_all()

    def stats(self) -> RelayPipeStats:
        """
        Get a snapshot of pipe statistics.

        Returns:
            RelayPipeStats with capacity, count, peak, total_written, total_read
        """
        with self._lock:
            return RelayPipeStats(
                capacity=self._capacity,
                count=len(self._buffer),
                peak=self._peak,
                total_written=self._total_written,
                total_read=self._total_read,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


class PipeReader(io.RawIOBase):
    """Read endpoint of a BoundedRelayPipe."""

    def __init__(self, pipe: BoundedRelayPipe) -> None:
        super().__init__()
        self._pipe = pipe

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        self._checkClosed()
        return self._pipe.read(size)

    def readinto(self, b) -> int:
        self._checkClosed()
        view = memoryview(b).cast("B")
        chunk = self._pipe.read(len(view))
        view[:len(chunk)] = chunk
        return len(chunk)

    def close(self) -> None:
        if not self.closed:
            self._pipe.close_read()
        super().close()


class PipeWriter(io.RawIOBase):
    """Write endpoint of a BoundedRelayPipe."""

    def __init__(self, pipe: BoundedRelayPipe) -> None:
        super().__init__()
        self._pipe = pipe

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        self._checkClosed()
        return self._pipe.write(b)

    def close(self) -> None:
        if not self.closed:
            self._pipe.close_write()
        super().close()
