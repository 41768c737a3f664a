"""
Shell command execution.

Commands run synchronously in the working directory with stdout and
stderr captured separately. stdin is closed for the child so a command
that waits for input fails instead of hanging the session. A timeout
bounds how long one command can stall the loop.
"""

import logging
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from ikode.errors import ExecutionFailureError

logger = logging.getLogger(__name__)


@dataclass
class CommandOutput:
    exit_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def format(self) -> str:
        return f"Exit code: {self.exit_code}\nSTDOUT:\n{self.stdout}\nSTDERR:\n{self.stderr}"


def _decode(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def run_command(
    command: str,
    args: list[str] | None = None,
    cwd: str | Path = ".",
    timeout: float | None = None,
) -> CommandOutput:
    """
    Run a command and capture its output.

    With args, command is executed directly with those arguments.
    Without, command is a command line passed to the platform shell.

    Raises:
        ExecutionFailureError: the command could not be started or timed out
    """
    if args is not None:
        argv: str | list[str] = [command, *args]
        shell = False
    elif sys.platform == "win32":
        argv = ["cmd", "/C", command]
        shell = False
    else:
        argv = command
        shell = True

    logger.info(f"Running command: {command} {' '.join(args or [])}".rstrip())
    try:
        result = subprocess.run(
            argv,
            shell=shell,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout or None,
        )
    except subprocess.TimeoutExpired as e:
        raise ExecutionFailureError(
            f"Command timed out after {timeout:g} seconds.\n"
            f"STDOUT:\n{_decode(e.stdout)}\nSTDERR:\n{_decode(e.stderr)}"
        ) from e
    except OSError as e:
        raise ExecutionFailureError(f"Could not start command '{command}': {e}") from e

    return CommandOutput(
        exit_code=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
    )
