"""Preparing a working copy of the project to upgrade.

The source may be a project directory or a ``.zip`` archive of one. Either
way the project is copied into ``<upgrade_root>/<version>/<n>`` so the
original is never modified.
"""

from __future__ import annotations

import logging
import shutil
import time
import zipfile
from pathlib import Path
from typing import Optional

from .errors import StagingError
from .manifest import MANIFEST_NAME, ProjectManifest

logger = logging.getLogger(__name__)


def _safe_extract(archive: zipfile.ZipFile, target: Path) -> None:
    root = target.resolve()
    for member in archive.namelist():
        member_path = (target / member).resolve()
        if member_path != root and root not in member_path.parents:
            raise StagingError(f"Archive entry escapes extraction directory: {member}")
    archive.extractall(target)


def _project_root(extracted: Path) -> Path:
    """Find the project root inside an extracted archive.

    Archives usually wrap the project in a single top-level folder.
    """
    if (extracted / MANIFEST_NAME).exists():
        return extracted
    children = [p for p in extracted.iterdir() if p.name != "__MACOSX"]
    if len(children) == 1 and children[0].is_dir() and (children[0] / MANIFEST_NAME).exists():
        return children[0]
    return extracted


def extract_source(source: Path, temp_root: Path) -> tuple[Path, Optional[Path]]:
    """Make the project available as a directory.

    Args:
        source: Project directory or ``.zip`` archive.
        temp_root: Where archives get extracted.

    Returns:
        Tuple of (project directory, temporary directory to clean up or None).

    Raises:
        StagingError: If the archive cannot be read.
    """
    source = Path(source)
    if source.suffix.lower() != ".zip":
        return source.resolve(), None

    folder_name = source.stem
    tmp = Path(temp_root) / folder_name / str(int(time.time() * 1000))
    target = tmp / "src"
    target.mkdir(parents=True, exist_ok=True)

    try:
        with zipfile.ZipFile(source) as archive:
            _safe_extract(archive, target)
    except (zipfile.BadZipFile, OSError) as e:
        shutil.rmtree(tmp, ignore_errors=True)
        raise StagingError(f"Failed to extract {source}: {e}") from e
    except StagingError:
        shutil.rmtree(tmp, ignore_errors=True)
        raise

    logger.info(f"Extracted source files to: {target}")
    return _project_root(target), tmp


def allocate_destination(version: str, upgrade_root: Path) -> Path:
    """Create the next numbered destination directory for a version.

    Returns ``<upgrade_root>/<version>/<n>`` where ``n`` is one past the
    largest numeric entry already there (starting at 1).
    """
    version_dir = Path(upgrade_root) / version
    version_dir.mkdir(parents=True, exist_ok=True)

    next_index = 1
    for entry in version_dir.iterdir():
        if entry.name.isdigit():
            next_index = max(next_index, int(entry.name) + 1)

    dest = version_dir / str(next_index)
    dest.mkdir(parents=True, exist_ok=False)
    return dest


def bump_expo_version(project_dir: Path, version: str) -> ProjectManifest:
    """Set ``dependencies.expo`` to the target version and save.

    Raises:
        StagingError: If package.json is missing or unreadable.
    """
    try:
        manifest = ProjectManifest.load(project_dir)
    except FileNotFoundError as e:
        raise StagingError(f"No {MANIFEST_NAME} found in {project_dir}") from e
    except ValueError as e:
        raise StagingError(f"Invalid {MANIFEST_NAME} in {project_dir}: {e}") from e

    previous = manifest.dependencies.get("expo")
    manifest.set_dependency("expo", version)
    manifest.save()
    logger.info(f"Updated expo from {previous or 'unset'} to {version}")
    return manifest


def stage_project(source: Path, version: str, temp_root: Path, upgrade_root: Path) -> Path:
    """Copy the project into a fresh destination directory.

    Args:
        source: Project directory or ``.zip`` archive.
        version: Target Expo version, used to name the destination.
        temp_root: Where archives get extracted.
        upgrade_root: Parent of all upgrade destinations.

    Returns:
        The destination project directory.

    Raises:
        StagingError: If extraction or copying fails.
    """
    project_src, tmp = extract_source(source, temp_root)
    try:
        dest = allocate_destination(version, upgrade_root)
        shutil.copytree(project_src, dest, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise StagingError(f"Failed to copy {project_src}: {e}") from e
    finally:
        if tmp is not None:
            shutil.rmtree(tmp, ignore_errors=True)

    logger.info(f"Moved source files to: {dest}")
    return dest
