from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
import json
from pathlib import Path

from dependency_age.core.models import is_valid_package_name


class WhitelistError(Exception):
    pass


def validate_package_names(packages: Iterable[object]) -> list[str]:
    errors: list[str] = []
    for package in packages:
        if not isinstance(package, str):
            errors.append(f"Invalid package name (not a string): {package!r}")
        elif not package.strip():
            errors.append("Empty package name found")
        elif not is_valid_package_name(package):
            errors.append(f"Invalid package name format: {package}")
    return errors


def _unique(packages: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(packages))


def _parse_json(content: str, path: Path) -> list[str]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise WhitelistError(f"Invalid JSON in whitelist file '{path}': {exc}") from exc

    if isinstance(data, dict) and isinstance(data.get("packages"), list):
        packages = data["packages"]
    elif isinstance(data, list):
        packages = data
    else:
        raise WhitelistError(
            "Whitelist JSON must contain 'packages' array or be a flat array"
        )

    if errors := validate_package_names(packages):
        raise WhitelistError(f"Invalid package names in whitelist: {', '.join(errors)}")
    return _unique(packages)


def _parse_text(content: str) -> list[str]:
    packages = [
        stripped
        for line in content.splitlines()
        if (stripped := line.strip()) and not stripped.startswith("#")
    ]
    if errors := validate_package_names(packages):
        raise WhitelistError(f"Invalid package names in whitelist: {', '.join(errors)}")
    return _unique(packages)


def load_whitelist(path: Path | str) -> list[str]:
    """Read package names from a ``.json`` file or a plain text list."""
    path = Path(path)
    if not path.is_file():
        raise WhitelistError(f"Whitelist file does not exist: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise WhitelistError(f"Failed to read whitelist file: {path}") from exc

    if path.suffix.lower() == ".json":
        return _parse_json(content, path)
    return _parse_text(content)


def write_default_whitelist(path: Path | str, packages: Iterable[str]) -> None:
    content = {
        "description": "Dependency Age - Package Whitelist",
        "created": datetime.now(UTC).isoformat(),
        "packages": list(packages),
    }
    try:
        Path(path).write_text(json.dumps(content, indent=4) + "\n", encoding="utf-8")
    except OSError as exc:
        raise WhitelistError(f"Failed to write default whitelist file: {path}") from exc
