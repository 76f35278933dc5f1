"""Session logging for an upgrade run.

Records each repair attempt, diagnostic run and LLM call, and writes the
whole session to a JSON file when the run finishes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class LLMCallLog:
    """Log entry for an LLM call."""

    timestamp: str
    backend: str
    model: str
    success: bool = True
    error: Optional[str] = None
    duration_ms: int = 0


@dataclass
class UpgradeStats:
    """Counters for one upgrade run."""

    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    attempts: int = 0
    diagnostic_runs: int = 0
    diagnostics_passed: int = 0
    repairs_applied: int = 0
    replies_rejected: int = 0
    reinstalls: int = 0
    llm_calls: list[LLMCallLog] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Get duration in seconds."""
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": self.duration_seconds,
            "attempts": self.attempts,
            "diagnostics": {
                "run": self.diagnostic_runs,
                "passed": self.diagnostics_passed,
            },
            "repairs": {
                "applied": self.repairs_applied,
                "rejected": self.replies_rejected,
            },
            "reinstalls": self.reinstalls,
            "llm_calls": len(self.llm_calls),
        }


class UpgradeLogger:
    """Collects a structured record of an upgrade run."""

    def __init__(self, log_dir: Path, project_name: str = "project", target_version: str = ""):
        """Initialize the logger.

        Args:
            log_dir: Directory for log files. Created if missing.
            project_name: Name of the project being upgraded.
            target_version: Target Expo version.
        """
        self.log_dir = Path(log_dir)
        self.project_name = project_name
        self.target_version = target_version
        self.stats = UpgradeStats()

        self.log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        safe_name = "".join(c if c.isalnum() else "_" for c in project_name[:30])
        self.log_file = self.log_dir / f"{timestamp}_{safe_name}.json"

        self.log_data: dict[str, Any] = {
            "session": {
                "id": timestamp,
                "project": project_name,
                "target_version": target_version,
                "start_time": datetime.now().isoformat(),
            },
            "attempts": [],
            "llm_calls": [],
            "errors": [],
        }

    def _current_attempt(self) -> Optional[dict]:
        return self.log_data["attempts"][-1] if self.log_data["attempts"] else None

    def log_attempt_start(self, attempt: int, max_attempts: int) -> None:
        """Log the start of a repair attempt."""
        self.stats.attempts = attempt
        self.log_data["attempts"].append({
            "number": attempt,
            "max": max_attempts,
            "start_time": datetime.now().isoformat(),
        })

    def log_diagnostic(self, passed: bool, exit_code: int, output: str) -> None:
        """Log a diagnostic run."""
        self.stats.diagnostic_runs += 1
        if passed:
            self.stats.diagnostics_passed += 1
        attempt = self._current_attempt()
        if attempt is not None:
            attempt["diagnostic"] = {
                "passed": passed,
                "exit_code": exit_code,
                "output": output,
            }

    def log_llm_call(
        self,
        backend: str,
        model: str,
        success: bool = True,
        error: Optional[str] = None,
        duration_ms: int = 0,
    ) -> None:
        """Log an LLM call."""
        call = LLMCallLog(
            timestamp=datetime.now().isoformat(),
            backend=backend,
            model=model,
            success=success,
            error=error,
            duration_ms=duration_ms,
        )
        self.stats.llm_calls.append(call)
        self.log_data["llm_calls"].append({
            "timestamp": call.timestamp,
            "backend": backend,
            "model": model,
            "success": success,
            "error": error,
            "duration_ms": duration_ms,
        })

    def log_repair(self, applied: bool, status: Optional[str], changes: Optional[dict] = None) -> None:
        """Log the outcome of a repair step."""
        if applied:
            self.stats.repairs_applied += 1
        else:
            self.stats.replies_rejected += 1
        attempt = self._current_attempt()
        if attempt is not None:
            attempt["repair"] = {
                "applied": applied,
                "reported_status": status,
                "changes": {name: list(pair) for name, pair in (changes or {}).items()},
            }

    def log_reinstall(self) -> None:
        """Log a dependency reinstall."""
        self.stats.reinstalls += 1
        attempt = self._current_attempt()
        if attempt is not None:
            attempt["reinstalled"] = True

    def log_error(self, error: str, context: Optional[dict] = None) -> None:
        """Log an error."""
        self.log_data["errors"].append({
            "timestamp": datetime.now().isoformat(),
            "error": error,
            "context": context or {},
        })
        logger.debug(f"Upgrade error recorded: {error}")

    def finalize(self, passed: bool, project_dir: Optional[Path] = None) -> None:
        """Finalize the log and write it to file."""
        self.stats.end_time = datetime.now()

        self.log_data["session"]["end_time"] = self.stats.end_time.isoformat()
        self.log_data["session"]["passed"] = passed
        self.log_data["session"]["project_dir"] = str(project_dir) if project_dir else None
        self.log_data["stats"] = self.stats.to_dict()

        try:
            with open(self.log_file, "w", encoding="utf-8") as f:
                json.dump(self.log_data, f, indent=2)
            logger.info(f"Upgrade log written to: {self.log_file}")
        except OSError as e:
            logger.error(f"Failed to write upgrade log: {e}")
