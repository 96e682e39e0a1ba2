"""
External command execution for opshub.

Test suites, manifest validators and version-bump tools all run through this
runner so that each invocation gets its own timeout and a uniform result,
and so tests can replace it with a stub.
"""

import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Union
import logging

logger = logging.getLogger(__name__)

Command = Union[str, List[str]]


@dataclass
class CommandResult:
    """Outcome of one external command."""
    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def output(self) -> str:
        return (self.stdout or "") + (self.stderr or "")


class CommandRunner:
    """
    Runs external commands to completion, one at a time.

    Example:
        runner = CommandRunner(timeout=600)
        result = runner.run("cargo test --workspace", cwd="/work/protocol")
        if not result.ok:
            print(result.output)
    """

    def __init__(self, timeout: int = 600):
        """
        Initialize CommandRunner.

        Args:
            timeout: Default per-command timeout in seconds
        """
        self.timeout = timeout

    @staticmethod
    def _argv(cmd: Command) -> List[str]:
        return shlex.split(cmd) if isinstance(cmd, str) else list(cmd)

    def available(self, cmd: Command) -> bool:
        """True if the program of ``cmd`` is on PATH."""
        argv = self._argv(cmd)
        return bool(argv) and shutil.which(argv[0]) is not None

    def run(self, cmd: Command, cwd=None, timeout: Optional[int] = None) -> CommandResult:
        """
        Run a command and wait for it.

        Args:
            cmd: Command line (string is split with shlex) or argv list
            cwd: Working directory
            timeout: Override of the default timeout for this invocation

        Returns:
            CommandResult; a timeout or a missing program yields a failed result
        """
        argv = self._argv(cmd)
        display = shlex.join(argv)
        limit = timeout or self.timeout
        logger.debug(f"Running {display} in {cwd}")
        try:
            result = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=limit,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning(f"Command timed out after {limit}s: {display}")
            return CommandResult(display, -1, _text(e.stdout), _text(e.stderr), timed_out=True)
        except OSError as e:
            logger.warning(f"Command could not start: {display} - {e}")
            return CommandResult(display, 127, "", str(e))
        return CommandResult(display, result.returncode, result.stdout, result.stderr)


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value
