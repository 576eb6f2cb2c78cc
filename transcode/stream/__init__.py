"""
Transcode stream subsystem.

This package provides the caller-facing stream and its background threads:
- TranscodeStream: Readable stream over a transcoder's stdout
- InputFeeder / StdinRelay: Copy upstream bytes into the process via a bounded pipe
- DiagnosticDrainer: Drains the process's stderr into the log
"""

from transcode.stream.copy_threads import CopyThread, InputFeeder, StdinRelay
from transcode.stream.stderr_drain import DiagnosticDrainer
from transcode.stream.transcode_stream import TranscodeStream

__all__ = [
    "CopyThread",
    "DiagnosticDrainer",
    "InputFeeder",
    "StdinRelay",
    "TranscodeStream",
]
