"""Step executors: turn a :class:`Step` into a :class:`StepResult`."""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Protocol

from bvh.harness.toolchain import Downloader
from bvh.harness.types import FetchError, Step, StepKind, StepResult

logger = logging.getLogger(__name__)

# Shell conventions for "not executable" and "command not found".
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127
EXIT_FETCH_FAILED = 1


class Executor(Protocol):
    def execute(self, step: Step, env: dict[str, str]) -> StepResult: ...


class SubprocessExecutor:
    """Run steps for real.

    Process steps block until the child exits; its output goes straight to
    the harness's own stdout/stderr and is not captured.
    """

    def __init__(self, cwd: str | Path = ".", downloader: Downloader | None = None) -> None:
        self._cwd = Path(cwd)
        self._downloader = downloader or Downloader()

    def execute(self, step: Step, env: dict[str, str]) -> StepResult:
        if step.kind is StepKind.FETCH:
            return self._fetch(step)
        return self._run(step, env)

    def _fetch(self, step: Step) -> StepResult:
        try:
            self._downloader.download(step.url, step.dest)
        except FetchError as exc:
            return StepResult(step, EXIT_FETCH_FAILED, str(exc))
        return StepResult(step, 0)

    def _run(self, step: Step, env: dict[str, str]) -> StepResult:
        cmdline = shlex.join(step.argv)
        logger.debug("exec: %s (cwd=%s)", cmdline, self._cwd)
        try:
            proc = subprocess.run(list(step.argv), cwd=str(self._cwd), env=env, check=False)
        except PermissionError as exc:
            return StepResult(step, EXIT_NOT_EXECUTABLE, f"{cmdline}: {exc}")
        except OSError as exc:
            return StepResult(step, EXIT_NOT_FOUND, f"{cmdline}: {exc}")
        status = proc.returncode
        if status < 0:
            # killed by signal
            status = 128 - status
        context = "" if status == 0 else f"{cmdline} exited with {status}"
        return StepResult(step, status, context)
