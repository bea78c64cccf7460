"""MindAR image-target compiler invoked as an external process."""

from __future__ import annotations

import os
import shlex
import signal
import subprocess
from pathlib import Path
from typing import List, Mapping, Optional, Protocol, Union

from common.logging import get_logger

from ..errors import CompilationFailedError

LOGGER = get_logger(__name__)

DEFAULT_COMMAND = "npx -y mind-ar-js-cli@latest compile"
DEFAULT_TIMEOUT = 300.0
_OUTPUT_TAIL = 4000


class CompilerPort(Protocol):
    """Compiles an image into a tracking target at ``output_path``."""

    def compile(self, input_path: Path, output_path: Path) -> None:
        ...


def _kill_tree(proc: subprocess.Popen) -> None:
    """Kill the compiler and everything it spawned (``npx`` forks ``node``)."""

    if os.name == "nt":
        subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
            capture_output=True,
            check=False,
        )
    else:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    if proc.poll() is None:
        proc.kill()


def _as_text(stream: Union[str, bytes, None]) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


class MindARCompiler:
    """Runs ``<command> -i <image> -o <target.mind>`` with a timeout.

    On Windows the command line goes through the shell so ``npx`` resolves;
    elsewhere arguments are passed as a list and need no quoting. The
    compiler runs in its own session so a timeout kills the whole process
    tree, not just the launcher.
    """

    def __init__(
        self,
        command: str = DEFAULT_COMMAND,
        timeout: float = DEFAULT_TIMEOUT,
        extra_env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._argv = shlex.split(command)
        if not self._argv:
            raise ValueError("MindAR compiler command is empty")
        self._timeout = timeout
        self._extra_env = dict(extra_env or {})

    @property
    def timeout(self) -> float:
        return self._timeout

    def build_command(self, input_path: Path, output_path: Path) -> List[str]:
        return [*self._argv, "-i", str(input_path), "-o", str(output_path)]

    def compile(self, input_path: Path, output_path: Path) -> None:
        argv = self.build_command(input_path, output_path)
        use_shell = os.name == "nt"
        cmd: Union[str, List[str]] = subprocess.list2cmdline(argv) if use_shell else argv
        env = {**os.environ, **self._extra_env} if self._extra_env else None

        LOGGER.info("Running MindAR compiler", command=shlex.join(argv), timeout=self._timeout)
        try:
            proc = subprocess.Popen(
                cmd,
                shell=use_shell,
                cwd=str(input_path.parent),
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                start_new_session=not use_shell,
            )
        except OSError as exc:
            LOGGER.error("MindAR compiler could not be started", command=argv[0], error=str(exc))
            raise CompilationFailedError(f"MindAR compiler not available: {argv[0]}") from exc

        try:
            stdout, stderr = proc.communicate(timeout=self._timeout)
        except subprocess.TimeoutExpired as exc:
            _kill_tree(proc)
            stdout, stderr = proc.communicate()
            stdout, stderr = _as_text(stdout or exc.stdout), _as_text(stderr or exc.stderr)
            LOGGER.warning(
                "MindAR compiler timed out",
                timeout=self._timeout,
                pid=proc.pid,
                stderr=stderr[-_OUTPUT_TAIL:],
            )
            raise CompilationFailedError(
                f"MindAR compile timed out after {self._timeout:g}s",
                stdout=stdout,
                stderr=stderr,
            ) from exc

        if proc.returncode != 0:
            LOGGER.warning(
                "MindAR compiler failed",
                returncode=proc.returncode,
                stdout=stdout[-_OUTPUT_TAIL:],
                stderr=stderr[-_OUTPUT_TAIL:],
            )
            raise CompilationFailedError(
                f"MindAR compile exited with status {proc.returncode}",
                returncode=proc.returncode,
                stdout=stdout,
                stderr=stderr,
            )
        LOGGER.info("MindAR compiler finished", output=str(output_path))


__all__ = ["CompilerPort", "MindARCompiler", "DEFAULT_COMMAND", "DEFAULT_TIMEOUT"]
