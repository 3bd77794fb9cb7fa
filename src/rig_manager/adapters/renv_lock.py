"""renv.lock reader.

Only `R.Version` is consumed:

    {"R": {"Version": "4.3.1", "Repositories": [...]}, "Packages": {...}}
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from rig_manager.core.domain.models import ManifestRequirement
from rig_manager.core.errors import ManifestDecodeError


def find_manifest(project_root: Path, filename: str = "renv.lock") -> Path | None:
    path = project_root / filename
    return path if path.is_file() else None


def load_manifest(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestDecodeError(f"Could not read {path.name}: {exc}", path=str(path)) from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ManifestDecodeError(
            f"{path.name} is not valid JSON (line {exc.lineno}, column {exc.colno}): {exc.msg}",
            path=str(path),
        ) from exc
    if not isinstance(data, dict):
        raise ManifestDecodeError(f"{path.name} must contain a JSON object", path=str(path))
    return data


def read_requirement(path: Path) -> ManifestRequirement | None:
    """Return the declared R version, or `None` if the lockfile declares none."""

    data = load_manifest(path)
    section = data.get("R")
    if section is None:
        return None
    if not isinstance(section, dict):
        raise ManifestDecodeError(f"'R' in {path.name} must be an object", path=str(path))

    version = section.get("Version")
    if version is None:
        return None
    if not isinstance(version, str) or not version.strip():
        raise ManifestDecodeError(f"'R.Version' in {path.name} must be a non-empty string", path=str(path))
    return ManifestRequirement(version=version.strip(), source=path)
