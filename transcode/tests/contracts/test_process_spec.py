"""
Contract tests for ProcessSpec.
"""

import subprocess
import sys
from pathlib import Path

import pytest

from transcode.errors import SpawnError, TranscodeError
from transcode.process import ProcessSpec
from transcode.tests.contracts._commands import HELLO, MISSING


class TestProcessSpec:
    def test_coerce_wraps_argv(self):
        spec = ProcessSpec.coerce(["ffmpeg", "-i", "pipe:0"])
        assert isinstance(spec, ProcessSpec)
        assert spec.command == ["ffmpeg", "-i", "pipe:0"]

    def test_coerce_returns_spec_unchanged(self):
        spec = ProcessSpec(["lame"])
        assert ProcessSpec.coerce(spec) is spec

    def test_coerce_rejects_plain_string(self):
        with pytest.raises(TypeError):
            ProcessSpec.coerce("ffmpeg -i pipe:0")

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            ProcessSpec([])

    def test_path_arguments_are_converted(self):
        spec = ProcessSpec(["ffmpeg", "-i", Path("/music/track.ogg")])
        assert spec.command[-1] == "/music/track.ogg"

    def test_name_and_describe(self):
        spec = ProcessSpec(["/usr/bin/ffmpeg", "-f", "mp3", "-"])
        assert spec.name == "ffmpeg"
        assert spec.describe() == "[/usr/bin/ffmpeg][-f][mp3][-]"

    def test_env_merges_onto_parent_environment(self, monkeypatch):
        monkeypatch.setenv("TRANSCODE_PARENT_VAR", "parent")
        env = ProcessSpec(["x"], env={"LC_ALL": "C"}).build_env()
        assert env["LC_ALL"] == "C"
        assert env["TRANSCODE_PARENT_VAR"] == "parent"

    def test_env_without_inheritance(self, monkeypatch):
        monkeypatch.setenv("TRANSCODE_PARENT_VAR", "parent")
        env = ProcessSpec(["x"], env={"LC_ALL": "C"}, inherit_env=False).build_env()
        assert env == {"LC_ALL": "C"}

    def test_default_env_inherits(self):
        assert ProcessSpec(["x"]).build_env() is None


class TestStart:
    @pytest.mark.timeout(10)
    def test_start_pipes_all_channels(self):
        process = ProcessSpec(HELLO).start()
        try:
            assert process.stdin is not None
            assert process.stderr is not None
            assert process.stdout.read() == b"hello transcoder\n"
        finally:
            process.stdin.close()
            process.stdout.close()
            process.stderr.close()
            process.wait(timeout=5)

    @pytest.mark.timeout(10)
    def test_start_passes_environment(self):
        spec = ProcessSpec(
            [sys.executable, "-c", "import os, sys; sys.stdout.write(os.environ['TRANSCODE_CHILD'])"],
            env={"TRANSCODE_CHILD": "visible"},
        )
        process = spec.start()
        try:
            out, _ = process.communicate(timeout=5)
        finally:
            if process.poll() is None:
                process.kill()
        assert out == b"visible"

    def test_missing_binary_raises_spawn_error(self):
        with pytest.raises(SpawnError) as excinfo:
            ProcessSpec(MISSING).start()
        assert isinstance(excinfo.value, TranscodeError)
        assert excinfo.value.command == MISSING
        assert isinstance(excinfo.value.__cause__, OSError)

    def test_bad_working_directory_raises_spawn_error(self, tmp_path):
        with pytest.raises(SpawnError):
            ProcessSpec(HELLO, cwd=str(tmp_path / "nope")).start()

    def test_start_uses_unbuffered_pipes(self, monkeypatch):
        calls = {}

        class FakePopen:
            pid = 4242

            def __init__(self, args, **kwargs):
                calls.update(kwargs, args=args)

        monkeypatch.setattr("transcode.process.subprocess.Popen", FakePopen)
        ProcessSpec(["ffmpeg", "-"]).start()
        assert calls["bufsize"] == 0
        assert calls["stdin"] == calls["stdout"] == calls["stderr"] == subprocess.PIPE
