"""Loading, editing and saving a project's package.json."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .prompts import format_manifest

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"

DEPENDENCIES = "dependencies"
DEV_DEPENDENCIES = "devDependencies"


@dataclass
class ProjectManifest:
    """In-memory copy of a package.json bound to its file path."""

    path: Path
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, project_dir: Path) -> ProjectManifest:
        """Read package.json from a project directory.

        Raises:
            FileNotFoundError: If the project has no package.json.
            ValueError: If package.json is not a JSON object.
        """
        path = Path(project_dir) / MANIFEST_NAME
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{path} does not contain a JSON object")
        return cls(path=path, data=data)

    @property
    def dependencies(self) -> dict[str, str]:
        return self._section(DEPENDENCIES)

    @property
    def dev_dependencies(self) -> dict[str, str]:
        return self._section(DEV_DEPENDENCIES)

    def _section(self, name: str) -> dict[str, str]:
        section = self.data.get(name)
        return section if isinstance(section, dict) else {}

    def to_json(self) -> str:
        return format_manifest(self.data)

    def save(self) -> None:
        """Write the manifest back to disk."""
        self.path.write_text(self.to_json() + "\n", encoding="utf-8")
        logger.debug(f"Wrote {self.path}")

    def set_dependency(self, name: str, version: str) -> None:
        """Pin a runtime dependency, creating or replacing a missing or non-object section."""
        section = self.data.get(DEPENDENCIES)
        if not isinstance(section, dict):
            section = self.data[DEPENDENCIES] = {}
        section[name] = version

    def with_repair(self, proposed: dict[str, Any]) -> ProjectManifest:
        """Return a new manifest holding ``proposed`` with devDependencies kept.

        The repair flow must never touch devDependencies, so whatever the
        proposal says about them is discarded and the current section is
        carried over unchanged.
        """
        merged = dict(proposed)
        if DEV_DEPENDENCIES in self.data:
            if merged.get(DEV_DEPENDENCIES) != self.data[DEV_DEPENDENCIES]:
                logger.warning("Ignoring devDependencies changes proposed by the repair")
            merged[DEV_DEPENDENCIES] = self.data[DEV_DEPENDENCIES]
        elif DEV_DEPENDENCIES in merged:
            logger.warning("Ignoring devDependencies section added by the repair")
            del merged[DEV_DEPENDENCIES]
        return ProjectManifest(path=self.path, data=merged)

    def changed_dependencies(self, other: ProjectManifest) -> dict[str, tuple]:
        """Map each runtime dependency that differs to ``(old, new)``.

        A missing side is reported as None.
        """
        before = self.dependencies
        after = other.dependencies
        changes = {}
        for name in sorted(set(before) | set(after)):
            if before.get(name) != after.get(name):
                changes[name] = (before.get(name), after.get(name))
        return changes
