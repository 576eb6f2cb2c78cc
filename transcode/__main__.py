#!/usr/bin/env python3
"""
Command-line entry point.

Pipes stdin through one or more transcoder commands and writes the result to
stdout, with each stage fed from the previous one through memory:

    python3 -m transcode -- flac -d -c - -- lame - -

Stages are separated by "--". Options before the first "--" configure the
streams; anything not given falls back to TRANSCODE_* environment variables.
"""

import argparse
import logging
import os
import signal
import sys
from typing import List, Optional

from transcode.config import VALID_LOG_LEVELS, load_config
from transcode.errors import SpawnError
from transcode.stream.transcode_stream import TranscodeStream

logger = logging.getLogger("transcode")


def split_stages(argv: List[str]):
    """
    Split argv into (options, stages) on "--" separators.

    Returns:
        Tuple of option args before the first "--" and a list of non-empty
        command argv lists.
    """
    options: List[str] = []
    stages: List[List[str]] = []
    current: Optional[List[str]] = None
    for arg in argv:
        if arg == "--":
            if current:
                stages.append(current)
            current = []
        elif current is None:
            options.append(arg)
        else:
            current.append(arg)
    if current:
        stages.append(current)
    return options, stages


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transcode",
        description="Pipe stdin through a chain of transcoder commands using in-memory pipes.",
        usage="%(prog)s [options] -- CMD [ARGS...] [-- CMD [ARGS...] ...]",
    )
    parser.add_argument("--chunk-size", type=int, help="bytes per read/write (TRANSCODE_CHUNK_SIZE)")
    parser.add_argument("--pipe-capacity", type=int, help="relay pipe size in bytes (TRANSCODE_PIPE_CAPACITY)")
    parser.add_argument("--log-level", choices=VALID_LOG_LEVELS, help="log level (TRANSCODE_LOG_LEVEL)")
    return parser


def exit_status(returncode: Optional[int]) -> int:
    """
    Map a stage's returncode to a process exit status.

    A stage killed by signal N reports 128 + N, as a shell does.
    """
    if returncode is None:
        return 1
    if returncode < 0:
        return 128 - returncode
    return returncode


def run_chain(stages: List[List[str]], config, source, sink) -> int:
    """
    Run stages as a chain from source to sink.

    Returns:
        Exit status of the last stage (1 if it is unknown)

    Raises:
        SpawnError: If a stage cannot be started
        BrokenPipeError: If the sink is closed before the output is written
    """
    streams: List[TranscodeStream] = []
    upstream = source
    try:
        for command in stages:
            stream = TranscodeStream(command, upstream, config=config)
            streams.append(stream)
            upstream = stream

        last = streams[-1]
        while True:
            data = last.read(config.chunk_size)
            if not data:
                break
            sink.write(data)
        sink.flush()
    finally:
        # Later stages own earlier ones, but close all of them in case a spawn failed midway
        for stream in reversed(streams):
            stream.close()

    return exit_status(streams[-1].returncode)


def _silence_stdout() -> None:
    # Avoid a second BrokenPipeError when the interpreter flushes stdout at exit
    try:
        fd = sys.stdout.fileno()
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, fd)
        os.close(devnull)
    except (OSError, ValueError) as e:
        logger.debug(f"Could not redirect stdout: {e}")


def main(argv: Optional[List[str]] = None) -> int:
    options, stages = split_stages(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(options)
    if not stages:
        parser.error("at least one command is required after --")

    # Set default log level from arguments or environment, or INFO if not set
    log_level = (args.log_level or os.getenv("TRANSCODE_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config()
    except ValueError:
        return 2
    if args.chunk_size is not None:
        config.chunk_size = args.chunk_size
    if args.pipe_capacity is not None:
        config.pipe_capacity = args.pipe_capacity
    try:
        config.validate()
    except ValueError as e:
        parser.error(str(e))

    try:
        return run_chain(stages, config, sys.stdin.buffer, sys.stdout.buffer)
    except SpawnError as e:
        logger.error(f"Transcoder failed to start: {e}")
        return 1
    except BrokenPipeError:
        logger.info("Output closed before the transcode finished")
        _silence_stdout()
        return 128 + int(signal.SIGPIPE)
    except KeyboardInterrupt:
        logger.info("Transcode interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
