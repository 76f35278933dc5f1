"""Shared test fixtures for expo-upgrade tests."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from expoupgrade.config import UpgradeConfig
from expoupgrade.diagnostics import DiagnosticResult, DiagnosticRunner
from expoupgrade.installer import DependencyInstaller


SAMPLE_MANIFEST = {
    "name": "my-app",
    "version": "1.0.0",
    "main": "index.js",
    "dependencies": {
        "expo": "53.0.17",
        "expo-build-properties": "^0.13.1",
        "react": "19.0.0",
        "react-native": "0.79.2",
        "expo-modules-core": "2.3.0",
    },
    "devDependencies": {
        "@babel/core": "^7.20.0",
        "typescript": "~5.8.3",
    },
}

DOCTOR_FAILURE_OUTPUT = """Running 17 checks on your project...
15/17 checks passed. 2 checks failed. Possible issues detected:

✖ Check that packages match versions required by installed Expo SDK
The following packages should be updated for best compatibility with the installed expo version:
  expo@53.0.17 - expected version: 53.0.19
  expo-build-properties@0.13.1 - expected version: ~0.14.8

✖ Check dependencies for packages that should not be installed directly
The package "expo-modules-core" should not be installed directly in your project.
"""


@pytest.fixture
def sample_manifest() -> dict:
    """A fresh copy of the sample package.json content."""
    return json.loads(json.dumps(SAMPLE_MANIFEST))


@pytest.fixture
def expo_project(tmp_path: Path, sample_manifest: dict) -> Path:
    """Create a minimal Expo project directory."""
    project = tmp_path / "MyApp"
    project.mkdir()
    (project / "package.json").write_text(json.dumps(sample_manifest, indent=2))
    (project / "App.js").write_text("export default function App() { return null; }\n")
    (project / "package-lock.json").write_text("{}")
    (project / "node_modules").mkdir()
    (project / "node_modules" / ".package-lock.json").write_text("{}")
    return project


@pytest.fixture
def upgrade_config(tmp_path: Path) -> UpgradeConfig:
    """Configuration with the workspace kept inside tmp_path."""
    return UpgradeConfig(
        workspace_root=tmp_path / "workspace",
        max_attempts=5,
        write_session_log=False,
    )


def make_diagnostic(passed: bool, output: str = DOCTOR_FAILURE_OUTPUT) -> DiagnosticResult:
    """Build a DiagnosticResult as expo-doctor would produce it."""
    return DiagnosticResult(
        passed=passed,
        exit_code=0 if passed else 1,
        output="17/17 checks passed. No issues detected!" if passed else output,
        command="npx expo-doctor",
        cwd="/tmp/project",
    )


@pytest.fixture
def scripted_diagnostics():
    """Factory for a DiagnosticRunner mock returning results in order.

    Once the script is exhausted the last result repeats.
    """

    def factory(*outcomes: bool) -> MagicMock:
        results = [make_diagnostic(passed) for passed in outcomes]
        runner = MagicMock(spec=DiagnosticRunner)

        def run(project_dir):
            return results.pop(0) if len(results) > 1 else results[0]

        runner.run.side_effect = run
        return runner

    return factory


@pytest.fixture
def mock_installer() -> MagicMock:
    """DependencyInstaller mock that records calls without running npm."""
    return MagicMock(spec=DependencyInstaller)
