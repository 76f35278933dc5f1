"""Dependency installation for the project being upgraded."""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from .errors import InstallError

logger = logging.getLogger(__name__)

DEFAULT_INSTALL_COMMAND = ["npm", "install"]
DEFAULT_LOCK_FILE = "package-lock.json"
MODULES_DIR = "node_modules"

# Trailing output kept in InstallError messages
MAX_ERROR_OUTPUT = 2000


class DependencyInstaller:
    """Clears resolved dependencies and runs the package manager."""

    def __init__(
        self,
        command: Optional[list[str]] = None,
        timeout: Optional[int] = None,
        lock_file: str = DEFAULT_LOCK_FILE,
    ):
        self.command = list(command or DEFAULT_INSTALL_COMMAND)
        self.timeout = timeout
        self.lock_file = lock_file

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)

    def reset(self, project_dir: Path) -> None:
        """Remove the lock file and installed modules so the manifest is re-resolved."""
        project_dir = Path(project_dir)

        lock_path = project_dir / self.lock_file
        if lock_path.exists():
            lock_path.unlink()
            logger.debug(f"Removed {lock_path}")

        modules_path = project_dir / MODULES_DIR
        if modules_path.exists():
            shutil.rmtree(modules_path)
            logger.debug(f"Removed {modules_path}")

    def install(self, project_dir: Path) -> None:
        """Install dependencies in ``project_dir``.

        Raises:
            InstallError: If the command cannot be launched, times out, or
                exits non-zero.
        """
        logger.info(f"Installing dependencies: {self.command_line}")

        try:
            result = subprocess.run(
                self.command,
                cwd=project_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise InstallError(
                f"{self.command_line} timed out after {self.timeout} seconds",
                command=self.command_line,
            ) from e
        except OSError as e:
            raise InstallError(
                f"Failed to run {self.command_line}: {e}",
                command=self.command_line,
            ) from e

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise InstallError(
                f"{self.command_line} exited with code {result.returncode}:\n{output[-MAX_ERROR_OUTPUT:]}",
                command=self.command_line,
            )

        logger.info(f"Installed dependencies in: {project_dir}")

    def reinstall(self, project_dir: Path) -> None:
        """Reset and install in one step."""
        self.reset(project_dir)
        self.install(project_dir)
