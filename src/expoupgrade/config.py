"""Configuration management for expo-upgrade."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .errors import InvalidInputError


DEFAULT_CONFIG_FILE = "expo_upgrade.yaml"
DEFAULT_WORKSPACE_ROOT = Path.home() / ".expo-upgrade"


@dataclass
class GeminiSettings:
    """Settings for the Gemini backend."""

    model: str = "gemini-2.0-flash-lite"
    method: str = "generateContent"
    base_url: str = "https://generativelanguage.googleapis.com"
    timeout: int = 120

    @classmethod
    def from_dict(cls, data: dict) -> GeminiSettings:
        """Create GeminiSettings from dictionary."""
        return cls(
            model=data.get("model", "gemini-2.0-flash-lite"),
            method=data.get("method", "generateContent"),
            base_url=data.get("base_url", "https://generativelanguage.googleapis.com"),
            timeout=int(data.get("timeout", 120)),
        )


@dataclass
class OllamaSettings:
    """Settings for the local Ollama backend."""

    model: Optional[str] = None
    base_url: str = "http://localhost:11434"
    timeout: int = 300

    @classmethod
    def from_dict(cls, data: dict) -> OllamaSettings:
        """Create OllamaSettings from dictionary."""
        return cls(
            model=data.get("model"),
            base_url=data.get("base_url", "http://localhost:11434"),
            timeout=int(data.get("timeout", 300)),
        )


def _as_command(value: object, default: list[str]) -> list[str]:
    if value is None:
        return list(default)
    if isinstance(value, str):
        return shlex.split(value)
    return [str(part) for part in value]  # type: ignore[union-attr]


@dataclass
class CommandSettings:
    """External commands run against the project directory."""

    doctor: list[str] = field(default_factory=lambda: ["npx", "expo-doctor"])
    install: list[str] = field(default_factory=lambda: ["npm", "install"])
    doctor_timeout: Optional[int] = None
    install_timeout: Optional[int] = None
    lock_file: str = "package-lock.json"

    @classmethod
    def from_dict(cls, data: dict) -> CommandSettings:
        """Create CommandSettings from dictionary.

        Commands may be given as a shell-style string or a list.
        """
        defaults = cls()
        doctor_timeout = data.get("doctor_timeout")
        install_timeout = data.get("install_timeout")
        return cls(
            doctor=_as_command(data.get("doctor"), defaults.doctor),
            install=_as_command(data.get("install"), defaults.install),
            doctor_timeout=int(doctor_timeout) if doctor_timeout is not None else None,
            install_timeout=int(install_timeout) if install_timeout is not None else None,
            lock_file=data.get("lock_file", "package-lock.json"),
        )


@dataclass
class UpgradeConfig:
    """Configuration settings for an Expo upgrade run."""

    # API Keys
    gemini_api_key: Optional[str] = None

    # Paths
    workspace_root: Path = field(default_factory=lambda: DEFAULT_WORKSPACE_ROOT)

    # Repair loop
    max_attempts: int = 5

    # Backends
    gemini: GeminiSettings = field(default_factory=GeminiSettings)
    ollama: OllamaSettings = field(default_factory=OllamaSettings)

    # External commands
    commands: CommandSettings = field(default_factory=CommandSettings)

    # Runtime Settings
    log_level: str = "INFO"
    write_session_log: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> UpgradeConfig:
        """Create UpgradeConfig from a (YAML) dictionary."""
        workspace_root = data.get("workspace_root")
        return cls(
            gemini_api_key=data.get("gemini_api_key"),
            workspace_root=Path(workspace_root).expanduser() if workspace_root else DEFAULT_WORKSPACE_ROOT,
            max_attempts=int(data.get("max_attempts", 5)),
            gemini=GeminiSettings.from_dict(data.get("gemini", {}) or {}),
            ollama=OllamaSettings.from_dict(data.get("ollama", {}) or {}),
            commands=CommandSettings.from_dict(data.get("commands", {}) or {}),
            log_level=data.get("log_level", "INFO"),
            write_session_log=bool(data.get("write_session_log", True)),
        )

    @classmethod
    def load_from_file(cls, config_path: Path) -> UpgradeConfig:
        """Load config from a YAML file, falling back to defaults.

        Raises:
            InvalidInputError: If the file is not valid YAML or holds bad values.
        """
        if not config_path.exists():
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError("top level must be a mapping")
            return cls.from_dict(data)
        except (yaml.YAMLError, ValueError, TypeError, AttributeError) as e:
            raise InvalidInputError(f"Invalid config file {config_path}: {e}") from e

    @classmethod
    def from_env(cls, config_path: Optional[Path] = None) -> UpgradeConfig:
        """Load configuration from a YAML file and environment variables.

        Environment variables win over the YAML file.

        Args:
            config_path: Optional YAML file. Defaults to expo_upgrade.yaml in CWD.

        Returns:
            UpgradeConfig instance.

        Raises:
            InvalidInputError: If the YAML file or an environment value is malformed.
        """
        load_dotenv()

        config = cls.load_from_file(Path(config_path) if config_path else Path.cwd() / DEFAULT_CONFIG_FILE)

        if os.getenv("GEMINI_API_KEY"):
            config.gemini_api_key = os.getenv("GEMINI_API_KEY")
        if os.getenv("EXPO_UPGRADE_WORKSPACE"):
            config.workspace_root = Path(os.environ["EXPO_UPGRADE_WORKSPACE"]).expanduser()
        if os.getenv("EXPO_UPGRADE_MAX_ATTEMPTS"):
            try:
                config.max_attempts = int(os.environ["EXPO_UPGRADE_MAX_ATTEMPTS"])
            except ValueError as e:
                raise InvalidInputError(
                    f"EXPO_UPGRADE_MAX_ATTEMPTS must be an integer, got {os.environ['EXPO_UPGRADE_MAX_ATTEMPTS']!r}"
                ) from e
        if os.getenv("EXPO_UPGRADE_GEMINI_MODEL"):
            config.gemini.model = os.environ["EXPO_UPGRADE_GEMINI_MODEL"]
        if os.getenv("EXPO_UPGRADE_OLLAMA_MODEL"):
            config.ollama.model = os.environ["EXPO_UPGRADE_OLLAMA_MODEL"]
        if os.getenv("EXPO_UPGRADE_OLLAMA_URL"):
            config.ollama.base_url = os.environ["EXPO_UPGRADE_OLLAMA_URL"]
        if os.getenv("EXPO_UPGRADE_DOCTOR_COMMAND"):
            config.commands.doctor = shlex.split(os.environ["EXPO_UPGRADE_DOCTOR_COMMAND"])
        if os.getenv("EXPO_UPGRADE_INSTALL_COMMAND"):
            config.commands.install = shlex.split(os.environ["EXPO_UPGRADE_INSTALL_COMMAND"])
        config.log_level = os.getenv("EXPO_UPGRADE_LOG_LEVEL", config.log_level)

        return config

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of validation error messages. Empty if valid.
        """
        errors = []

        if self.max_attempts < 1:
            errors.append(f"max_attempts must be at least 1, got {self.max_attempts}")

        if not self.commands.doctor:
            errors.append("Diagnostic command is empty")

        if not self.commands.install:
            errors.append("Install command is empty")

        return errors

    @property
    def temp_dir(self) -> Path:
        """Directory where archives are extracted."""
        return self.workspace_root / "temp"

    @property
    def upgrade_dir(self) -> Path:
        """Directory holding the upgraded project copies."""
        return self.workspace_root / "upgrade"

    @property
    def log_dir(self) -> Path:
        """Directory for JSON session logs."""
        return self.workspace_root / "logs"
