"""The bounded diagnose / repair / reinstall loop.

Each attempt runs the diagnostic command. A pass ends the loop. A failure
(other than on the last attempt) asks the LLM for a corrected package.json,
writes it when the reply is usable, then clears installed dependencies and
reinstalls before the next attempt. Whatever the LLM claims about its own
fix, pass/fail always comes from a fresh diagnostic run.
"""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .config import UpgradeConfig
from .diagnostics import DiagnosticResult, DiagnosticRunner
from .errors import ExpoUpgradeError, LLMClientError, ReplyParseError
from .installer import DependencyInstaller
from .llm_client import LLMClient
from .manifest import DEPENDENCIES, DEV_DEPENDENCIES, ProjectManifest
from .prompts import SYSTEM_PROMPT, build_repair_prompt, build_repair_schema
from .upgrade_logger import UpgradeLogger

logger = logging.getLogger(__name__)

REPORTED_STATUSES = ("success", "error")

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@dataclass(frozen=True)
class RepairOutcome:
    """Parsed LLM reply. ``status`` is the model's own, unverified verdict."""

    manifest_data: dict[str, Any]
    status: str = "error"
    raw_reply: str = ""


def _is_version_map(value: Any) -> bool:
    return isinstance(value, dict) and all(isinstance(v, str) for v in value.values())


def parse_repair_reply(reply: str) -> RepairOutcome:
    """Parse a repair reply into a manifest mapping.

    ``data`` may be a nested object or a string holding a JSON document;
    both are reduced to a dict. A missing or unrecognized ``status`` is
    treated as "error".

    Raises:
        ReplyParseError: If the reply is not a JSON object, has no usable
            ``data`` field, or its dependency sections are not name to
            version mappings.
    """
    text = (reply or "").strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ReplyParseError(f"Reply is not valid JSON: {e}", raw_reply=reply) from e

    if not isinstance(payload, dict):
        raise ReplyParseError("Reply is not a JSON object", raw_reply=reply)

    data = payload.get("data")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ReplyParseError(f"Reply 'data' is not a JSON document: {e}", raw_reply=reply) from e

    if not isinstance(data, dict) or not data:
        raise ReplyParseError("Reply has no 'data' object", raw_reply=reply)

    for section in (DEPENDENCIES, DEV_DEPENDENCIES):
        if section in data and not _is_version_map(data[section]):
            raise ReplyParseError(f"Reply '{section}' is not an object of version strings", raw_reply=reply)

    status = payload.get("status")
    if status not in REPORTED_STATUSES:
        status = "error"

    return RepairOutcome(manifest_data=data, status=status, raw_reply=reply)


@dataclass
class RepairLoopResult:
    """Final state of a repair loop run."""

    passed: bool
    attempts: int
    max_attempts: int
    diagnostic_runs: int = 0
    llm_calls: int = 0
    repairs_applied: int = 0
    reinstalls: int = 0
    final_diagnostic: Optional[DiagnosticResult] = None
    reported_statuses: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.passed:
            return "passed"
        return f"failed after {self.attempts} attempts"


class RepairLoop:
    """Drives a staged project to a passing diagnostic within an attempt budget."""

    def __init__(
        self,
        config: UpgradeConfig,
        client: LLMClient,
        diagnostics: Optional[DiagnosticRunner] = None,
        installer: Optional[DependencyInstaller] = None,
        session_log: Optional[UpgradeLogger] = None,
    ):
        """Initialize the loop.

        Args:
            config: Upgrade configuration (attempt budget, commands).
            client: LLM backend used for repairs.
            diagnostics: Diagnostic runner. Built from config when omitted.
            installer: Dependency installer. Built from config when omitted.
            session_log: Optional structured session log.
        """
        self.config = config
        self.max_attempts = config.max_attempts
        self.client = client
        self.diagnostics = diagnostics or DiagnosticRunner(
            command=config.commands.doctor,
            timeout=config.commands.doctor_timeout,
        )
        self.installer = installer or DependencyInstaller(
            command=config.commands.install,
            timeout=config.commands.install_timeout,
            lock_file=config.commands.lock_file,
        )
        self.session_log = session_log

    def run(self, project_dir: Path) -> RepairLoopResult:
        """Run the loop against a project that already targets the new version.

        Raises:
            ExecutionError: If the diagnostic command cannot be launched.
            InstallError: If a reinstall fails.
        """
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

        project_dir = Path(project_dir)
        result = RepairLoopResult(passed=False, attempts=0, max_attempts=self.max_attempts)

        for attempt in range(1, self.max_attempts + 1):
            result.attempts = attempt
            logger.info(f"Attempt {attempt}/{self.max_attempts} - checking expo doctor")
            if self.session_log:
                self.session_log.log_attempt_start(attempt, self.max_attempts)

            diagnostic = self.diagnostics.run(project_dir)
            result.diagnostic_runs += 1
            result.final_diagnostic = diagnostic
            if self.session_log:
                self.session_log.log_diagnostic(diagnostic.passed, diagnostic.exit_code, diagnostic.output)

            if diagnostic.passed:
                result.passed = True
                break

            if attempt == self.max_attempts:
                break

            logger.debug(diagnostic.error_log)
            outcome = self._request_repair(project_dir, diagnostic, result)
            if outcome is not None:
                result.reported_statuses.append(outcome.status)

            logger.info(f"Reinstalling dependencies before attempt {attempt + 1}/{self.max_attempts}")
            self.installer.reinstall(project_dir)
            result.reinstalls += 1
            if self.session_log:
                self.session_log.log_reinstall()

        if result.passed:
            logger.info(f"Expo doctor passed on attempt {result.attempts}")
        else:
            logger.error(f"Expo doctor still failing after {result.attempts} attempts")
        return result

    def _request_repair(
        self,
        project_dir: Path,
        diagnostic: DiagnosticResult,
        result: RepairLoopResult,
    ) -> Optional[RepairOutcome]:
        """Ask the LLM for a fixed manifest and write it if usable.

        LLM and reply-parse failures are absorbed; the manifest is then left
        untouched and the attempt simply counts as not repaired.
        """
        try:
            manifest = ProjectManifest.load(project_dir)
        except (OSError, ValueError) as e:
            raise ExpoUpgradeError(f"Cannot read package.json in {project_dir}: {e}") from e

        schema_capable = self.client.supports_response_schema
        prompt = build_repair_prompt(diagnostic.error_log, manifest.data, data_as_object=schema_capable)
        schema = build_repair_schema() if schema_capable else None

        logger.info(f"Consulting {self.client.backend} for a resolution")
        started = time.monotonic()
        result.llm_calls += 1
        try:
            reply = self.client.complete(prompt, system_prompt=SYSTEM_PROMPT, response_schema=schema)
        except LLMClientError as e:
            logger.warning(f"Failed to get AI resolution: {e}")
            if self.session_log:
                self.session_log.log_llm_call(
                    self.client.backend,
                    self.client.model,
                    success=False,
                    error=str(e),
                    duration_ms=int((time.monotonic() - started) * 1000),
                )
                self.session_log.log_repair(applied=False, status=None)
            return None

        if self.session_log:
            self.session_log.log_llm_call(
                self.client.backend,
                self.client.model,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        logger.debug(f"{self.client.backend} response:\n{reply}")

        try:
            outcome = parse_repair_reply(reply)
        except ReplyParseError as e:
            logger.warning(f"Failed to parse {self.client.backend} response: {e}")
            if self.session_log:
                self.session_log.log_error(str(e), {"raw_reply": reply[:2000]})
                self.session_log.log_repair(applied=False, status=None)
            return None

        repaired = manifest.with_repair(outcome.manifest_data)
        changes = manifest.changed_dependencies(repaired)
        repaired.save()
        result.repairs_applied += 1

        for name, (old, new) in changes.items():
            logger.info(f"  {name}: {old or '-'} -> {new or 'removed'}")
        logger.info(f"package.json updated ({len(changes)} dependency changes, reported status: {outcome.status})")
        if self.session_log:
            self.session_log.log_repair(applied=True, status=outcome.status, changes=changes)
        return outcome
