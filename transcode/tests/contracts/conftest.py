"""
Shared pytest fixtures for transcode contract tests.
"""
import io
import os
import threading

import pytest

from transcode.config import TranscodeConfig


@pytest.fixture(autouse=True)
def clean_transcode_env(monkeypatch, tmp_path):
    """Keep TRANSCODE_* settings from the developer's shell out of tests."""
    for name in list(os.environ):
        if name.startswith("TRANSCODE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TRANSCODE_ENV_FILE", str(tmp_path / "absent.env"))


@pytest.fixture
def config():
    """Default config with a short thread join timeout for fast teardown."""
    return TranscodeConfig(thread_join_timeout=2.0)


@pytest.fixture
def payload():
    """Random payload several times larger than the 64 KiB relay pipe."""
    return os.urandom(300 * 1024)


class TrackingBytesIO(io.BytesIO):
    """BytesIO that remembers its contents and how often it was closed."""

    def __init__(self, initial: bytes = b"") -> None:
        super().__init__(initial)
        self.close_calls = 0
        self.final_value = b""

    def close(self) -> None:
        self.close_calls += 1
        if not self.closed:
            self.final_value = self.getvalue()
        super().close()


@pytest.fixture
def tracking_bytes():
    return TrackingBytesIO


@pytest.fixture(autouse=False)
def thread_leak_guard():
    """
    Detect threads left running by a test.

    Request it explicitly in tests that must shut down completely.
    """
    before = set(t.ident for t in threading.enumerate())
    yield
    after = set(t.ident for t in threading.enumerate())
    leaked = after - before
    if leaked:
        leaked_threads = [t for t in threading.enumerate() if t.ident in leaked]
        thread_info = '\n'.join(f"  - {t.name} (daemon={t.daemon})" for t in leaked_threads)
        assert False, f"Thread leak detected: shutdown incomplete.\nLeaked threads:\n{thread_info}"
