from __future__ import annotations

from collections.abc import Mapping
import json
from pathlib import Path
from typing import Any

from dependency_age.core.models import InvalidPackageNameError, PackageQuery

LOCK_FILENAME = "composer.lock"
MANIFEST_FILENAME = "composer.json"


class LockFileError(Exception):
    pass


def _load_json(path: Path, description: str) -> Any:
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LockFileError(f"{description} not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise LockFileError(f"Could not read {description.lower()}: {path}") from exc

    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise LockFileError(f"Invalid JSON in {description.lower()}: {exc}") from exc


def load_manifest(path: Path) -> dict[str, Any]:
    """Read composer.json; a missing manifest is treated as empty."""
    if not path.is_file():
        return {}
    data = _load_json(path, "Manifest file")
    return data if isinstance(data, dict) else {}


def direct_dependencies(manifest: Mapping[str, Any]) -> set[str]:
    names: set[str] = set()
    for section in ("require", "require-dev"):
        if isinstance(requirements := manifest.get(section), Mapping):
            names.update(name.lower() for name in requirements if isinstance(name, str))
    return names


def _create_query(raw: object, *, is_dev: bool, direct: set[str]) -> PackageQuery:
    if not isinstance(raw, Mapping) or not isinstance(raw.get("name"), str):
        raise LockFileError("Invalid package data: missing name")
    name = raw["name"]
    version = raw.get("version")
    if not isinstance(version, str):
        raise LockFileError(f"Invalid package data for {name}: missing version")
    try:
        return PackageQuery.create(
            name, version, is_dev=is_dev, is_direct=name.lower() in direct
        )
    except InvalidPackageNameError as exc:
        raise LockFileError(f"Invalid package data: {exc}") from exc


def parse_lock_data(
    data: object, manifest: Mapping[str, Any] | None = None
) -> list[PackageQuery]:
    if not isinstance(data, Mapping) or not isinstance(data.get("packages"), list):
        raise LockFileError("Invalid lock file format: missing packages array")

    direct = direct_dependencies(manifest or {})
    queries = [_create_query(raw, is_dev=False, direct=direct) for raw in data["packages"]]
    if isinstance(dev_packages := data.get("packages-dev"), list):
        queries.extend(_create_query(raw, is_dev=True, direct=direct) for raw in dev_packages)
    return queries


def parse_lockfile(project_dir: Path) -> list[PackageQuery]:
    data = _load_json(project_dir / LOCK_FILENAME, "Lock file")
    manifest = load_manifest(project_dir / MANIFEST_FILENAME)
    return parse_lock_data(data, manifest)
