"""
Readable byte stream backed by an external transcoding process.

TranscodeStream spawns a process, optionally feeds it from an upstream byte
source through an in-memory bounded pipe, and exposes the process's stdout
as a raw binary stream. No temporary files are used. Streams chain naturally:
pass one TranscodeStream as the upstream of the next to convert, for
example, OGG to WAV to MP3.

Threads per instance:
- DiagnosticDrainer on stderr (always)
- InputFeeder and StdinRelay (only when an upstream source is given)
"""

from __future__ import annotations

import io
import logging
import subprocess
import threading
from pathlib import Path
from typing import Optional, Sequence, Union

from transcode.config import TranscodeConfig
from transcode.pipe.relay_pipe import BoundedRelayPipe
from transcode.process import ProcessSpec
from transcode.stream.copy_threads import InputFeeder, StdinRelay
from transcode.stream.stderr_drain import DiagnosticDrainer

logger = logging.getLogger(__name__)


class TranscodeStream(io.RawIOBase):
    """
    On-the-fly transcoding stream over a subprocess's stdout.

    Reads go straight to the process's stdout pipe with no buffering, so
    read() returns b"" (and readinto() returns 0) exactly when the process
    closes its output. Failures in the background threads never raise here;
    they show up only as truncated output, plus a log entry and the thread's
    error attribute.

    close() closes the pipes, waits for the process to exit and then kills
    it unconditionally, so the process cannot outlive the stream. It never
    raises and may be called any number of times, from any thread. A stream
    that is garbage collected unclosed kills its process without waiting.

    Attributes:
        spec: ProcessSpec that was started
        config: TranscodeConfig in effect
        drainer: DiagnosticDrainer for stderr
        relay_pipe: BoundedRelayPipe, or None without upstream
        feeder: InputFeeder, or None without upstream
        relay: StdinRelay, or None without upstream
    """

    def __init__(
        self,
        spec: Union[ProcessSpec, Sequence[str]],
        upstream=None,
        tmp_file: Optional[Union[str, Path]] = None,
        config: Optional[TranscodeConfig] = None,
    ) -> None:
        """
        Start the process and the background threads.

        Args:
            spec: ProcessSpec, or an argv sequence
            upstream: Optional byte source with read(size) and close().
                      Once the process has started, the stream owns it and
                      closes it when copying ends.
            tmp_file: Ignored. Accepted for compatibility with callers that
                      still pass a temporary file path.
            config: Optional TranscodeConfig (defaults to TranscodeConfig())

        Raises:
            ValueError: If config is invalid (nothing is started)
            SpawnError: If the process cannot be started
        """
        self._close_lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        super().__init__()
        self.spec = ProcessSpec.coerce(spec)
        self.config = config if config is not None else TranscodeConfig()
        self.config.validate()
        self.relay_pipe: Optional[BoundedRelayPipe] = None
        self.feeder: Optional[InputFeeder] = None
        self.relay: Optional[StdinRelay] = None
        self.drainer: Optional[DiagnosticDrainer] = None

        logger.info(f"Starting transcoder: {self.spec.describe()}")

        # Nothing is owned if this raises
        process = self.spec.start()
        self._process = process
        self._stdin = process.stdin
        self._stdout = process.stdout

        try:
            # Must read stderr from the process, otherwise it may block
            self.drainer = DiagnosticDrainer(
                process.stderr,
                self.spec.name,
                diagnostic=True,
                level=self.config.stderr_level,
            )
            self.drainer.start()

            if upstream is not None:
                self.relay_pipe = BoundedRelayPipe(self.config.pipe_capacity)
                self.feeder = InputFeeder(upstream, self.relay_pipe.writer, self.config.chunk_size)
                self.relay = StdinRelay(self.relay_pipe.reader, self._stdin, self.config.chunk_size)
                self.feeder.start()
                self.relay.start()
        except BaseException:
            logger.error(f"Failed to start background threads for {self.spec.name}", exc_info=True)
            self.close()
            raise

        if tmp_file is not None:
            logger.info(f"Compatibility tmp_file argument ignored: {tmp_file}")

    @property
    def process(self) -> subprocess.Popen:
        """The underlying process. The stream keeps ownership."""
        return self._process

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    @property
    def last_stderr(self) -> str:
        """Most recent stderr output of the process (up to 10KB)."""
        return self.drainer.last_stderr if self.drainer is not None else ""

    def readable(self) -> bool:
        return True

    def fileno(self) -> int:
        self._checkClosed()
        return self._stdout.fileno()

    def read(self, size: int = -1) -> bytes:
        self._checkClosed()
        return self._stdout.read(size)

    def readall(self) -> bytes:
        self._checkClosed()
        return self._stdout.readall()

    def readinto(self, b, offset: int = 0, length: Optional[int] = None) -> int:
        """
        Read into a writable buffer.

        Args:
            b: Writable bytes-like object
            offset: Index in b where data is stored
            length: Maximum bytes to read (default: rest of b after offset)

        Returns:
            Number of bytes read, 0 at end of stream
        """
        self._checkClosed()
        view = memoryview(b).cast("B")
        if offset < 0 or offset > len(view):
            raise ValueError(f"offset out of range: {offset}")
        end = len(view) if length is None else offset + length
        if length is not None and (length < 0 or end > len(view)):
            raise ValueError(f"length out of range: {length}")
        return self._stdout.readinto(view[offset:end])

    def close(self) -> None:
        """
        Release the process and its pipes.

        Steps:
        1. Close stdout and stdin (errors logged, not raised)
        2. Wait for the process to exit (bounded only if config.close_timeout is set)
        3. Kill the process, whatever happened in step 2
        4. Join background threads briefly
        """
        self._shutdown(wait=True)

    def __del__(self) -> None:
        # Finalizers must not block on the process: kill it without waiting
        self._shutdown(wait=False)

    def _shutdown(self, wait: bool) -> None:
        with self._close_lock:
            if self.closed:
                return
            try:
                if self._process is not None:
                    self._release(wait)
            except (Exception, KeyboardInterrupt):
                logger.error(f"Unexpected error closing {self.spec.name}", exc_info=True)
            finally:
                super().close()

    def _release(self, wait: bool) -> None:
        self._close_pipe(self._stdout, "stdout")
        self._close_pipe(self._stdin, "stdin")
        try:
            self._wait_and_kill(wait)
        finally:
            if wait:
                self._join_threads()

    def _close_pipe(self, pipe, label: str) -> None:
        if pipe is None:
            return
        try:
            pipe.close()
        except OSError as e:
            logger.warning(f"Error closing {self.spec.name} {label}: {e}")

    def _wait_and_kill(self, wait: bool = True) -> None:
        process = self._process
        try:
            if wait:
                process.wait(timeout=self.config.close_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(
                f"{self.spec.name} PID={process.pid} did not exit within "
                f"{self.config.close_timeout}s, killing"
            )
        except KeyboardInterrupt:
            logger.warning(f"Wait for {self.spec.name} PID={process.pid} was interrupted", exc_info=True)
        finally:
            try:
                process.kill()
            except OSError as e:
                logger.warning(f"Error killing {self.spec.name} PID={process.pid}: {e}")
            if process.returncode is None:
                self._reap(process)

        logger.debug(f"{self.spec.name} PID={process.pid} exited with {process.returncode}")

    def _reap(self, process: subprocess.Popen) -> None:
        try:
            process.wait(timeout=self.config.thread_join_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"{self.spec.name} PID={process.pid} still running after kill")
        except (KeyboardInterrupt, OSError) as e:
            logger.warning(f"Reaping {self.spec.name} PID={process.pid} failed: {e!r}")

    def _join_threads(self) -> None:
        timeout = self.config.thread_join_timeout
        remaining = []
        for thread in (self.relay, self.feeder, self.drainer):
            if thread is None:
                continue
            thread.join(timeout=timeout)
            if thread.is_alive():
                remaining.append(thread.name)
        if remaining:
            logger.warning(f"Background threads still running after close: {remaining}")
