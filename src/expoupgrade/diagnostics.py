"""Running expo-doctor against a project directory."""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ExecutionError

logger = logging.getLogger(__name__)

DEFAULT_DOCTOR_COMMAND = ["npx", "expo-doctor"]


@dataclass(frozen=True)
class DiagnosticResult:
    """Outcome of one diagnostic run."""

    passed: bool
    exit_code: int
    output: str
    command: str = ""
    cwd: str = ""

    @property
    def error_log(self) -> str:
        """Error log handed to the prompt builder."""
        output = self.output or "No output captured"
        return (
            f"Expo Doctor Error:\n"
            f"Exit Code: {self.exit_code}\n\n"
            f"Error Output:\n{output}\n\n"
            f"Command: {self.command}\n"
            f"Working Directory: {self.cwd}"
        )


class DiagnosticRunner:
    """Runs the diagnostic command and captures its combined output."""

    def __init__(
        self,
        command: Optional[list[str]] = None,
        timeout: Optional[int] = None,
    ):
        """Initialize the runner.

        Args:
            command: Command and arguments. Defaults to ``npx expo-doctor``.
            timeout: Optional limit in seconds. None waits indefinitely.
        """
        self.command = list(command or DEFAULT_DOCTOR_COMMAND)
        self.timeout = timeout

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)

    def run(self, project_dir: Path) -> DiagnosticResult:
        """Run diagnostics in ``project_dir``.

        A non-zero exit is an ordinary failed result, not an exception.

        Raises:
            ExecutionError: If the command cannot be launched.
        """
        logger.info(f"Running diagnostics: {self.command_line}")

        try:
            result = subprocess.run(
                self.command,
                cwd=project_dir,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"Diagnostics timed out after {self.timeout}s")
            partial = e.output or ""
            if isinstance(partial, bytes):
                partial = partial.decode(errors="replace")
            return DiagnosticResult(
                passed=False,
                exit_code=-1,
                output=f"{partial}\nDiagnostics timed out after {self.timeout} seconds".lstrip(),
                command=self.command_line,
                cwd=str(project_dir),
            )
        except OSError as e:
            raise ExecutionError(
                f"Failed to run {self.command_line}: {e}",
                command=self.command_line,
            ) from e

        passed = result.returncode == 0
        logger.info(f"Diagnostics {'passed' if passed else 'failed'} (exit code: {result.returncode})")

        return DiagnosticResult(
            passed=passed,
            exit_code=result.returncode,
            output=result.stdout or "",
            command=self.command_line,
            cwd=str(project_dir),
        )
