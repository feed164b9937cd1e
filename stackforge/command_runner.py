"""
Command Runner
==============

Executes an external command (package manager, scaffolding CLI) in a working
directory and captures its output and exit status.

The runner never raises for a failing command: a non-zero exit code is the
failure signal consumed by the step executor. A command that times out or
cannot be spawned is reported with exit_code=None and an error_message.
Output is decoded as UTF-8 with undecodable bytes replaced.

There is no retry and no default timeout. When a timeout is configured the
child process is killed on expiry and whatever it already did stays in place.

Usage:
    from stackforge.command_runner import CommandRunner

    runner = CommandRunner()
    result = runner.run("pnpm add drizzle-orm", "/path/to/project")
    if not result.succeeded:
        print(result.exit_code, result.stderr)
"""
from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from stackforge.config import DEFAULT_MAX_OUTPUT_CHARS

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """
    Outcome of one command execution.

    Attributes:
        command: Command line that was executed
        cwd: Working directory
        exit_code: Process exit code, None if it timed out or never started
        stdout: Captured standard output (possibly truncated)
        stderr: Captured standard error (possibly truncated)
        elapsed_ms: Wall-clock duration in milliseconds
        error_message: Why the command has no exit code, if applicable
    """
    command: str
    cwd: str
    exit_code: int | None
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: float = 0.0
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """stdout and stderr combined, for error reporting."""
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "command": self.command,
            "cwd": self.cwd,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "elapsed_ms": self.elapsed_ms,
            "error_message": self.error_message,
        }


class CommandRunner:
    """
    Blocking shell command execution.

    Args:
        timeout_seconds: Optional per-command timeout; None disables it
        max_output_chars: Keep only the last N characters of each stream
        env: Optional environment for the child process

    Raises:
        ValueError: If max_output_chars is not positive
    """

    def __init__(
        self,
        timeout_seconds: float | None = None,
        max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
        env: dict[str, str] | None = None,
    ):
        if max_output_chars < 1:
            raise ValueError(f"max_output_chars must be positive, got {max_output_chars}")
        self.timeout_seconds = timeout_seconds
        self.max_output_chars = max_output_chars
        self.env = env

    def run(self, command: str, cwd: str | Path) -> CommandResult:
        """
        Run a command and wait for it to finish.

        Args:
            command: Shell command line
            cwd: Working directory (must exist)

        Returns:
            CommandResult; check `succeeded` or `exit_code`
        """
        cwd = str(cwd)
        start = time.perf_counter()
        _logger.debug("Running command: %s (cwd=%s)", command, cwd)

        try:
            completed = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                cwd=cwd,
                timeout=self.timeout_seconds,
                env=self.env,
            )
        except subprocess.TimeoutExpired as e:
            elapsed = (time.perf_counter() - start) * 1000
            _logger.warning("Command timed out after %ss: %s", self.timeout_seconds, command)
            return CommandResult(
                command=command,
                cwd=cwd,
                exit_code=None,
                stdout=self._truncate(_decode(e.stdout)),
                stderr=self._truncate(_decode(e.stderr)),
                elapsed_ms=elapsed,
                error_message=f"Command timed out after {self.timeout_seconds} seconds",
            )
        except OSError as e:
            elapsed = (time.perf_counter() - start) * 1000
            _logger.error("Could not start command '%s': %s", command, e)
            return CommandResult(
                command=command,
                cwd=cwd,
                exit_code=None,
                stderr=str(e),
                elapsed_ms=elapsed,
                error_message=f"Could not start command: {e}",
            )

        elapsed = (time.perf_counter() - start) * 1000
        _logger.debug("Command finished: exit_code=%d, %.0fms", completed.returncode, elapsed)
        return CommandResult(
            command=command,
            cwd=cwd,
            exit_code=completed.returncode,
            stdout=self._truncate(completed.stdout or ""),
            stderr=self._truncate(completed.stderr or ""),
            elapsed_ms=elapsed,
        )

    def _truncate(self, output: str) -> str:
        """Truncate output if it exceeds max size."""
        if len(output) > self.max_output_chars:
            return "...(truncated)...\n" + output[-self.max_output_chars:]
        return output


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data
