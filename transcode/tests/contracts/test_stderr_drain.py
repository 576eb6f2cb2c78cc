"""
Contract tests for DiagnosticDrainer.

Covers: every stderr line logged with the process tag, severity selection,
bounded last_stderr capture, closing the channel, quiet exit on read errors.
"""

import io
import logging
from unittest.mock import MagicMock

import pytest

from transcode.stream.stderr_drain import LAST_STDERR_MAX_SIZE, DiagnosticDrainer

LOGGER = "transcode.stream.stderr_drain"


def _run(drainer):
    drainer.start()
    drainer.join(timeout=2.0)
    assert not drainer.is_alive()


class TestDiagnosticDrainer:
    @pytest.mark.timeout(5)
    def test_logs_each_line_tagged_with_process_name(self, caplog):
        stderr = io.BytesIO(b"Input #0, ogg\nStream mapping:\n\n  Duration: 00:03:12\n")
        drainer = DiagnosticDrainer(stderr, "ffmpeg", level=logging.INFO)

        with caplog.at_level(logging.INFO, logger=LOGGER):
            _run(drainer)

        messages = [r.getMessage() for r in caplog.records if r.name == LOGGER]
        assert messages == [
            "[ffmpeg] Input #0, ogg",
            "[ffmpeg] Stream mapping:",
            "[ffmpeg]   Duration: 00:03:12",
        ]
        assert all(r.levelno == logging.INFO for r in caplog.records if r.name == LOGGER)
        assert drainer.lines_read == 3

    @pytest.mark.timeout(5)
    def test_non_diagnostic_lines_go_to_debug(self, caplog):
        drainer = DiagnosticDrainer(io.BytesIO(b"chatter\n"), "lame", diagnostic=False, level=logging.ERROR)

        with caplog.at_level(logging.DEBUG, logger=LOGGER):
            _run(drainer)

        records = [r for r in caplog.records if r.getMessage() == "[lame] chatter"]
        assert len(records) == 1
        assert records[0].levelno == logging.DEBUG

    @pytest.mark.timeout(5)
    def test_undecodable_bytes_are_replaced(self, caplog):
        drainer = DiagnosticDrainer(io.BytesIO(b"bad \xff\xfe byte\n"), "sox")
        with caplog.at_level(logging.INFO, logger=LOGGER):
            _run(drainer)
        assert "[sox] bad �� byte" in caplog.text

    @pytest.mark.timeout(5)
    def test_last_stderr_keeps_most_recent_10kb(self):
        lines = b"".join(b"line %05d " % i + b"." * 90 + b"\n" for i in range(500))
        drainer = DiagnosticDrainer(io.BytesIO(lines), "ffmpeg")
        _run(drainer)

        assert len(drainer.last_stderr) == LAST_STDERR_MAX_SIZE
        assert drainer.last_stderr.endswith("line 00499 " + "." * 90 + "\n")
        assert "line 00000" not in drainer.last_stderr

    @pytest.mark.timeout(5)
    def test_closes_stderr_at_eof(self):
        stderr = io.BytesIO(b"last words\n")
        _run(DiagnosticDrainer(stderr, "ffmpeg"))
        assert stderr.closed

    @pytest.mark.timeout(5)
    def test_read_error_ends_drain_quietly(self):
        stderr = MagicMock()
        stderr.readline.side_effect = ValueError("I/O operation on closed file")
        drainer = DiagnosticDrainer(stderr, "ffmpeg")
        _run(drainer)
        stderr.close.assert_called_once()
        assert drainer.lines_read == 0

    def test_is_daemon_thread_named_after_process(self):
        drainer = DiagnosticDrainer(io.BytesIO(b""), "flac")
        assert drainer.daemon
        assert drainer.name == "StderrDrain-flac"
