"""Tests for configuration management."""

from __future__ import annotations

from pathlib import Path

import pytest

from expoupgrade.config import (
    CommandSettings,
    GeminiSettings,
    UpgradeConfig,
)
from expoupgrade.errors import InvalidInputError

ENV_VARS = [
    "GEMINI_API_KEY",
    "EXPO_UPGRADE_WORKSPACE",
    "EXPO_UPGRADE_MAX_ATTEMPTS",
    "EXPO_UPGRADE_GEMINI_MODEL",
    "EXPO_UPGRADE_OLLAMA_MODEL",
    "EXPO_UPGRADE_OLLAMA_URL",
    "EXPO_UPGRADE_DOCTOR_COMMAND",
    "EXPO_UPGRADE_INSTALL_COMMAND",
    "EXPO_UPGRADE_LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Clear expo-upgrade environment variables and skip .env loading."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("expoupgrade.config.load_dotenv", lambda: None)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestUpgradeConfig:
    """Tests for UpgradeConfig class."""

    def test_from_env_defaults(self, clean_env: Path) -> None:
        """Test UpgradeConfig.from_env with nothing configured."""
        config = UpgradeConfig.from_env()

        assert config.gemini_api_key is None
        assert config.max_attempts == 5
        assert config.gemini.model == "gemini-2.0-flash-lite"
        assert config.ollama.model is None
        assert config.ollama.base_url == "http://localhost:11434"
        assert config.commands.doctor == ["npx", "expo-doctor"]
        assert config.commands.install == ["npm", "install"]
        assert config.log_level == "INFO"
        assert config.workspace_root == Path.home() / ".expo-upgrade"

    def test_from_env_with_values(self, clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test environment variables override defaults."""
        monkeypatch.setenv("GEMINI_API_KEY", "AIzaEnvironmentKey")
        monkeypatch.setenv("EXPO_UPGRADE_WORKSPACE", str(clean_env / "ws"))
        monkeypatch.setenv("EXPO_UPGRADE_MAX_ATTEMPTS", "3")
        monkeypatch.setenv("EXPO_UPGRADE_OLLAMA_MODEL", "qwen2.5:7b")
        monkeypatch.setenv("EXPO_UPGRADE_OLLAMA_URL", "http://gpu-box:11434")
        monkeypatch.setenv("EXPO_UPGRADE_DOCTOR_COMMAND", "npx expo-doctor --verbose")
        monkeypatch.setenv("EXPO_UPGRADE_INSTALL_COMMAND", "yarn install")
        monkeypatch.setenv("EXPO_UPGRADE_LOG_LEVEL", "DEBUG")

        config = UpgradeConfig.from_env()

        assert config.gemini_api_key == "AIzaEnvironmentKey"
        assert config.workspace_root == clean_env / "ws"
        assert config.max_attempts == 3
        assert config.ollama.model == "qwen2.5:7b"
        assert config.ollama.base_url == "http://gpu-box:11434"
        assert config.commands.doctor == ["npx", "expo-doctor", "--verbose"]
        assert config.commands.install == ["yarn", "install"]
        assert config.log_level == "DEBUG"

    def test_yaml_file_in_cwd(self, clean_env: Path) -> None:
        (clean_env / "expo_upgrade.yaml").write_text(
            "max_attempts: 7\n"
            "gemini:\n"
            "  model: gemini-2.5-flash\n"
            "commands:\n"
            "  install: pnpm install\n"
            "  lock_file: pnpm-lock.yaml\n"
            "  doctor_timeout: 600\n"
        )

        config = UpgradeConfig.from_env()

        assert config.max_attempts == 7
        assert config.gemini.model == "gemini-2.5-flash"
        assert config.commands.install == ["pnpm", "install"]
        assert config.commands.lock_file == "pnpm-lock.yaml"
        assert config.commands.doctor_timeout == 600
        assert config.commands.install_timeout is None

    def test_env_wins_over_yaml(self, clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = clean_env / "custom.yaml"
        config_file.write_text("max_attempts: 7\n")
        monkeypatch.setenv("EXPO_UPGRADE_MAX_ATTEMPTS", "2")

        config = UpgradeConfig.from_env(config_file)

        assert config.max_attempts == 2

    def test_missing_config_file_uses_defaults(self, clean_env: Path) -> None:
        config = UpgradeConfig.load_from_file(clean_env / "missing.yaml")

        assert config.max_attempts == 5

    def test_empty_yaml(self, clean_env: Path) -> None:
        config_file = clean_env / "empty.yaml"
        config_file.write_text("")

        config = UpgradeConfig.load_from_file(config_file)

        assert config.gemini.timeout == 120

    def test_validate_ok(self) -> None:
        assert UpgradeConfig().validate() == []

    def test_validate_errors(self) -> None:
        config = UpgradeConfig(max_attempts=0, commands=CommandSettings(doctor=[], install=[]))

        errors = config.validate()

        assert len(errors) == 3
        assert "max_attempts must be at least 1" in errors[0]

    def test_workspace_dirs(self, tmp_path: Path) -> None:
        config = UpgradeConfig(workspace_root=tmp_path)

        assert config.temp_dir == tmp_path / "temp"
        assert config.upgrade_dir == tmp_path / "upgrade"
        assert config.log_dir == tmp_path / "logs"


class TestSettings:
    """Tests for nested settings."""

    def test_gemini_from_dict(self) -> None:
        settings = GeminiSettings.from_dict({"model": "gemini-2.5-pro", "timeout": "30"})

        assert settings.model == "gemini-2.5-pro"
        assert settings.method == "generateContent"
        assert settings.timeout == 30

    def test_command_list_form(self) -> None:
        settings = CommandSettings.from_dict({"doctor": ["bunx", "expo-doctor"]})

        assert settings.doctor == ["bunx", "expo-doctor"]
        assert settings.install == ["npm", "install"]


class TestInvalidConfig:
    """Malformed configuration is reported as invalid input."""

    def test_broken_yaml(self, clean_env: Path) -> None:
        (clean_env / "expo_upgrade.yaml").write_text("max_attempts: [1, 2\n")

        with pytest.raises(InvalidInputError) as exc_info:
            UpgradeConfig.from_env()

        assert "expo_upgrade.yaml" in str(exc_info.value)

    def test_yaml_not_a_mapping(self, clean_env: Path) -> None:
        (clean_env / "expo_upgrade.yaml").write_text("- just\n- a list\n")

        with pytest.raises(InvalidInputError):
            UpgradeConfig.from_env()

    def test_yaml_non_integer_value(self, clean_env: Path) -> None:
        (clean_env / "expo_upgrade.yaml").write_text("max_attempts: lots\n")

        with pytest.raises(InvalidInputError):
            UpgradeConfig.from_env()

    def test_non_integer_max_attempts_env(self, clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXPO_UPGRADE_MAX_ATTEMPTS", "five")

        with pytest.raises(InvalidInputError) as exc_info:
            UpgradeConfig.from_env()

        assert exc_info.value.errors == ["EXPO_UPGRADE_MAX_ATTEMPTS must be an integer, got 'five'"]
