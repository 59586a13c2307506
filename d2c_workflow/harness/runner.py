"""External test runner — executes generated test scripts as a subprocess."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from d2c_workflow.errors import RunnerLaunchError

logger = logging.getLogger(__name__)


@dataclass
class RunnerOutput:
    exit_code: int | None  # None when the run was killed on timeout
    output: str  # combined stdout/stderr
    timed_out: bool = False
    timeout_seconds: float = 0.0


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


class TestRunner:
    """Runs a test script with a configured command under a timeout."""

    __test__ = False  # not a pytest test class

    def __init__(self, command: list[str], timeout_seconds: float = 60.0):
        self.command = list(command)
        self.timeout_seconds = timeout_seconds

    def run(self, script_path: Path, cwd: Path) -> RunnerOutput:
        """Execute ``script_path`` and return exit code and combined output.

        On timeout the child is killed and whatever it printed so far is
        returned with ``timed_out`` set. A command that cannot be started
        raises RunnerLaunchError.
        """
        args = self.command + [str(script_path)]
        logger.debug("Running %s (cwd=%s, timeout=%ss)", " ".join(args), cwd, self.timeout_seconds)
        try:
            proc = subprocess.run(
                args,
                cwd=str(cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning("Test runner timed out after %ss: %s", self.timeout_seconds, script_path)
            return RunnerOutput(
                exit_code=None,
                output=_decode(e.output),
                timed_out=True,
                timeout_seconds=self.timeout_seconds,
            )
        except OSError as e:
            raise RunnerLaunchError(self.command, e) from e

        output = _decode(proc.stdout)
        if proc.returncode != 0:
            logger.warning("Test runner exited with code %d: %s", proc.returncode, script_path)
        return RunnerOutput(exit_code=proc.returncode, output=output)
