"""Subprocess helpers for the git command line."""

import asyncio
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from autopr.utils.logger import get_logger

logger = get_logger(__name__)

Command = Union[str, List[str]]


class ShellError(Exception):
    """A command exited non-zero or could not be started."""

    def __init__(self, message: str, returncode: int, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


@dataclass
class ShellResult:
    returncode: int
    stdout: str
    stderr: str
    command: str
    cwd: Optional[Path] = None

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def check(self) -> "ShellResult":
        """Raise ShellError unless the command succeeded."""
        if not self.success:
            raise ShellError(
                f"Command failed: {self.command}", self.returncode, self.stdout, self.stderr
            )
        return self


def _argv(command: Command) -> List[str]:
    # String commands split on whitespace; arguments with spaces need a list.
    return command.split() if isinstance(command, str) else list(command)


def _not_found(command_str: str, error: OSError) -> ShellError:
    logger.error(f"Command not found: {command_str}")
    return ShellError(f"Command not found: {command_str}", -1, "", str(error))


def run_command(
    command: Command,
    cwd: Optional[Union[str, Path]] = None,
    check: bool = False,
) -> ShellResult:
    """Run ``command`` and capture its output as text.

    Raises:
        ShellError: If the executable is missing, or on failure when ``check`` is set
    """
    argv = _argv(command)
    command_str = " ".join(argv)
    cwd_path = Path(cwd) if cwd else None
    logger.debug(f"Running command: {command_str} (cwd: {cwd_path})")

    try:
        completed = subprocess.run(argv, cwd=cwd_path, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise _not_found(command_str, e)

    result = ShellResult(
        completed.returncode, completed.stdout or "", completed.stderr or "", command_str, cwd_path
    )
    if not result.success:
        logger.debug(f"Command failed with code {result.returncode}: {result.stderr.strip()}")
    return result.check() if check else result


async def run_command_async(
    command: Command,
    cwd: Optional[Union[str, Path]] = None,
    check: bool = False,
) -> ShellResult:
    """Awaitable counterpart of :func:`run_command`."""
    argv = _argv(command)
    command_str = " ".join(argv)
    cwd_path = Path(cwd) if cwd else None
    logger.debug(f"Running async command: {command_str} (cwd: {cwd_path})")

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd_path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise _not_found(command_str, e)

    stdout, stderr = await process.communicate()
    result = ShellResult(
        process.returncode or 0, stdout.decode(), stderr.decode(), command_str, cwd_path
    )
    return result.check() if check else result


def get_git_root() -> Optional[Path]:
    """Top level of the enclosing git work tree, or None outside one."""
    try:
        result = run_command("git rev-parse --show-toplevel", check=True)
    except ShellError:
        return None
    return Path(result.stdout.strip())


def get_current_branch(cwd: Optional[Path] = None) -> Optional[str]:
    """Checked-out branch name (``HEAD`` when detached), or None outside a repository."""
    try:
        result = run_command("git rev-parse --abbrev-ref HEAD", cwd=cwd, check=True)
    except ShellError:
        return None
    return result.stdout.strip()
