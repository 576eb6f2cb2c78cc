"""
On-the-fly transcoding through external processes and in-memory pipes.

TranscodeStream instances can be chained, each one reading the previous
one's output, without writing anything to temporary files.
"""

from transcode.config import TranscodeConfig, load_config
from transcode.errors import SpawnError, TranscodeError
from transcode.pipe.relay_pipe import BoundedRelayPipe
from transcode.process import ProcessSpec
from transcode.stream.transcode_stream import TranscodeStream

__version__ = "0.1.0"

__all__ = [
    "BoundedRelayPipe",
    "ProcessSpec",
    "SpawnError",
    "TranscodeConfig",
    "TranscodeError",
    "TranscodeStream",
    "load_config",
]
