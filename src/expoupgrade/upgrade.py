"""End-to-end Expo upgrade: validate, stage, bump, install, repair."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .config import UpgradeConfig
from .diagnostics import DiagnosticRunner
from .errors import InvalidInputError
from .gemini_client import GeminiClient
from .installer import DependencyInstaller
from .llm_client import LLMClient
from .ollama_client import OLLAMA_BASE_URL, OllamaClient
from .repair_loop import RepairLoop, RepairLoopResult
from .staging import bump_expo_version, stage_project
from .upgrade_logger import UpgradeLogger

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")
MIN_GEMINI_KEY_LENGTH = 10


@dataclass(frozen=True)
class GeminiCredentials:
    """Remote backend credentials."""

    api_key: str

    def __repr__(self) -> str:
        return f"GeminiCredentials(api_key='{self.api_key[:8]}...')"


@dataclass(frozen=True)
class OllamaCredentials:
    """Local backend model and endpoint."""

    model: str
    base_url: str = OLLAMA_BASE_URL


Credentials = Union[GeminiCredentials, OllamaCredentials]


@dataclass(frozen=True)
class UpgradeRequest:
    """Validated input for one upgrade run."""

    source_path: Path
    target_version: str
    credentials: Credentials

    @property
    def backend(self) -> str:
        return "gemini" if isinstance(self.credentials, GeminiCredentials) else "ollama"


@dataclass
class UpgradeResult:
    """Outcome of a full upgrade run."""

    project_dir: Path
    loop: RepairLoopResult
    log_file: Optional[Path] = None

    @property
    def passed(self) -> bool:
        return self.loop.passed


def validate_request(
    source: Optional[str],
    expo_version: Optional[str],
    gemini_key: Optional[str] = None,
    ollama_model: Optional[str] = None,
    ollama_url: Optional[str] = None,
) -> UpgradeRequest:
    """Check CLI input and build an UpgradeRequest.

    Missing required arguments are reported first; only when all are present
    are their values checked. Every problem at a stage is reported together.

    Raises:
        InvalidInputError: With the list of problems found.
    """
    errors = []

    if not source:
        errors.append("Source path is required. Please provide the path to your React Native project.")
    if not expo_version:
        errors.append("Expo version is required. Please specify the version to upgrade to (e.g., 49.0.0).")
    if gemini_key is None and ollama_model is None:
        errors.append("Either --gemini-key or --ollama-model must be provided for authentication.")
    if errors:
        raise InvalidInputError(errors)

    source_path = Path(source).expanduser().resolve()
    if not source_path.exists():
        errors.append(f"Source path does not exist: {source_path}")

    if not VERSION_PATTERN.match(expo_version):
        errors.append(f"Invalid expo version format: {expo_version}. Expected format: X.Y.Z (e.g., 49.0.0)")

    if gemini_key is not None:
        if not gemini_key.strip():
            errors.append("Gemini key cannot be empty.")
        elif len(gemini_key.strip()) < MIN_GEMINI_KEY_LENGTH:
            errors.append("Gemini key appears to be invalid. Please check your API key.")

    if ollama_model is not None and not ollama_model.strip():
        errors.append("Ollama model cannot be empty.")

    if errors:
        raise InvalidInputError(errors)

    credentials: Credentials
    if gemini_key is not None:
        credentials = GeminiCredentials(api_key=gemini_key.strip())
    else:
        credentials = OllamaCredentials(
            model=ollama_model.strip(),
            base_url=(ollama_url or OLLAMA_BASE_URL).rstrip("/"),
        )

    return UpgradeRequest(
        source_path=source_path,
        target_version=expo_version,
        credentials=credentials,
    )


def build_client(request: UpgradeRequest, config: UpgradeConfig) -> LLMClient:
    """Create the LLM client matching the request's credentials."""
    creds = request.credentials
    if isinstance(creds, GeminiCredentials):
        return GeminiClient(
            api_key=creds.api_key,
            model=config.gemini.model,
            method=config.gemini.method,
            base_url=config.gemini.base_url,
            timeout=config.gemini.timeout,
        )
    return OllamaClient(
        model=creds.model,
        base_url=creds.base_url,
        timeout=config.ollama.timeout,
    )


def run_upgrade(
    request: UpgradeRequest,
    config: UpgradeConfig,
    client: Optional[LLMClient] = None,
    diagnostics: Optional[DiagnosticRunner] = None,
    installer: Optional[DependencyInstaller] = None,
) -> UpgradeResult:
    """Run the whole upgrade.

    Args:
        request: Validated request.
        config: Upgrade configuration.
        client: LLM client override. Built from the request when omitted.
        diagnostics: Diagnostic runner override.
        installer: Dependency installer override.

    Returns:
        UpgradeResult describing the repair loop's final state.

    Raises:
        StagingError: If the project cannot be staged or bumped.
        InstallError: If any dependency install fails.
        ExecutionError: If the diagnostic command cannot be launched.
    """
    errors = config.validate()
    if errors:
        raise InvalidInputError(errors)

    client = client or build_client(request, config)
    installer = installer or DependencyInstaller(
        command=config.commands.install,
        timeout=config.commands.install_timeout,
        lock_file=config.commands.lock_file,
    )

    project_dir = stage_project(
        request.source_path,
        request.target_version,
        temp_root=config.temp_dir,
        upgrade_root=config.upgrade_dir,
    )
    bump_expo_version(project_dir, request.target_version)

    session_log = None
    if config.write_session_log:
        session_log = UpgradeLogger(
            config.log_dir,
            project_name=request.source_path.stem,
            target_version=request.target_version,
        )

    passed = False
    try:
        installer.install(project_dir)

        loop = RepairLoop(
            config,
            client,
            diagnostics=diagnostics,
            installer=installer,
            session_log=session_log,
        )
        loop_result = loop.run(project_dir)
        passed = loop_result.passed
    except Exception as e:
        if session_log:
            session_log.log_error(str(e), {"type": type(e).__name__})
        raise
    finally:
        if session_log:
            session_log.finalize(passed, project_dir)

    return UpgradeResult(
        project_dir=project_dir,
        loop=loop_result,
        log_file=session_log.log_file if session_log else None,
    )
