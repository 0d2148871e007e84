"""Thin wrapper around subprocess for running external tools."""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..core.errors import CommandError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of an external command."""
    args: List[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_command(args: List[str], check: bool = True, cwd: Optional[str] = None,
                env: Optional[Dict[str, str]] = None,
                timeout: Optional[int] = None) -> CommandResult:
    """Run a command without a shell and capture its output.

    Args:
        args: Command and arguments.
        check: Raise CommandError on a non-zero exit status.
        cwd: Working directory for the command.
        env: Environment for the command (inherits when None).
        timeout: Optional timeout in seconds.

    Returns:
        CommandResult with decoded stdout/stderr.

    Raises:
        CommandError: If the command fails and ``check`` is True, or the
            executable cannot be found.
    """
    logger.debug(f"Running: {' '.join(args)}" + (f" (cwd={cwd})" if cwd else ""))

    try:
        completed = subprocess.run(
            args,
            cwd=cwd,
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        if check:
            raise CommandError(args, 127, str(e))
        return CommandResult(list(args), 127, "", str(e))
    except subprocess.TimeoutExpired as e:
        raise CommandError(args, -1, f"timed out after {e.timeout} seconds")

    result = CommandResult(list(args), completed.returncode, completed.stdout or "", completed.stderr or "")

    if check and not result.ok:
        raise CommandError(args, result.returncode, result.stderr, result.stdout)

    return result


def command_exists(name: str) -> bool:
    """Check whether an executable is on PATH."""
    return shutil.which(name) is not None
