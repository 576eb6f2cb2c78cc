"""
In-memory relay pipe used between the input feeder and the stdin relay.
"""

from transcode.pipe.relay_pipe import (
    DEFAULT_PIPE_CAPACITY,
    BoundedRelayPipe,
    PipeReader,
    PipeWriter,
    RelayPipeStats,
)

__all__ = [
    "DEFAULT_PIPE_CAPACITY",
    "BoundedRelayPipe",
    "PipeReader",
    "PipeWriter",
    "RelayPipeStats",
]
