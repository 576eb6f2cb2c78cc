"""
Process specification for transcoder subprocesses.

A ProcessSpec is a ready-to-start description of the external program: its
argv, environment and working directory. Building the argv for a particular
codec is left to the caller; this module only starts what it is given.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from transcode.errors import SpawnError

logger = logging.getLogger(__name__)


@dataclass
class ProcessSpec:
    """
    Description of a process to spawn with all standard channels piped.

    Attributes:
        command: argv list; command[0] is the program
        env: Environment overrides (merged onto os.environ unless inherit_env is False)
        cwd: Working directory, or None for the current one
        inherit_env: Whether env is merged onto the parent environment
    """
    command: List[str]
    env: Optional[Dict[str, str]] = None
    cwd: Optional[str] = None
    inherit_env: bool = True

    def __post_init__(self) -> None:
        self.command = [os.fspath(arg) for arg in self.command]
        if not self.command:
            raise ValueError("ProcessSpec command must not be empty")

    @classmethod
    def coerce(cls, spec: Union["ProcessSpec", Sequence[str]]) -> "ProcessSpec":
        """Return spec unchanged, or wrap a plain argv sequence."""
        if isinstance(spec, ProcessSpec):
            return spec
        if isinstance(spec, (str, bytes)):
            raise TypeError("command must be an argv sequence, not a string")
        return cls(command=list(spec))

    @property
    def name(self) -> str:
        """Program name used to tag log lines."""
        return os.path.basename(self.command[0]) or self.command[0]

    def describe(self) -> str:
        """Render argv as [arg0][arg1]... for logging."""
        return "".join(f"[{arg}]" for arg in self.command)

    def build_env(self) -> Optional[Dict[str, str]]:
        if self.env is None:
            return None if self.inherit_env else {}
        if self.inherit_env:
            return {**os.environ, **self.env}
        return dict(self.env)

    def start(self) -> subprocess.Popen:
        """
        Spawn the process.

        stdin, stdout and stderr are all pipes in blocking, unbuffered mode.

        Returns:
            The running subprocess.Popen

        Raises:
            SpawnError: If the process cannot be started
        """
        try:
            process = subprocess.Popen(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
                env=self.build_env(),
                cwd=self.cwd,
            )
        except (OSError, ValueError) as e:
            raise SpawnError(f"Failed to start {self.name}: {e}", self.command) from e

        logger.info(f"Started {self.name} PID={process.pid}")
        return process
