from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from packaging.version import InvalidVersion, Version

from dependency_age.core.models import ReleaseInfo

MINIFIED_MARKER = "composer/2.0"
UNSET_MARKER = "__unset"
UNSTABLE_MARKERS = ("dev", "alpha", "beta", "rc", "pre", "snapshot")

type VersionData = dict[str, Any]


def expand_minified(versions: Sequence[Mapping[str, Any]]) -> list[VersionData]:
    """Undo Composer's metadata minification.

    Every version after the first only lists the keys that differ from the
    previous version; ``"__unset"`` removes a key.
    """
    expanded_versions: list[VersionData] = []
    expanded: VersionData | None = None
    for version_data in versions:
        if expanded is None:
            expanded = dict(version_data)
        else:
            expanded = dict(expanded)
            for key, value in version_data.items():
                if value == UNSET_MARKER:
                    expanded.pop(key, None)
                else:
                    expanded[key] = value
        expanded_versions.append(expanded)
    return expanded_versions


def extract_versions(payload: Mapping[str, Any], package_name: str) -> list[VersionData] | None:
    packages = payload.get("packages")
    if not isinstance(packages, Mapping):
        return None
    versions = packages.get(package_name)
    if not isinstance(versions, list):
        return None
    versions = [v for v in versions if isinstance(v, Mapping)]
    if payload.get("minified") == MINIFIED_MARKER:
        return expand_minified(versions)
    return [dict(v) for v in versions]


def parse_release_time(raw: object) -> datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_stable_version(version: str) -> bool:
    lowered = version.lower()
    return not any(marker in lowered for marker in UNSTABLE_MARKERS)


def _strip_prefix(version: str) -> str:
    return version[1:] if version.startswith(("v", "V")) else version


def find_version(versions: Sequence[VersionData], target: str) -> VersionData | None:
    for version_data in versions:
        if version_data.get("version") == target:
            return version_data

    bare_target = _strip_prefix(target)
    for version_data in versions:
        version = version_data.get("version")
        if isinstance(version, str) and _strip_prefix(version) == bare_target:
            return version_data
    return None


def _parse_version(raw: str) -> Version | None:
    try:
        return Version(raw)
    except InvalidVersion:
        return None


def find_latest_stable(versions: Sequence[VersionData]) -> VersionData | None:
    stable = [
        v
        for v in versions
        if isinstance(v.get("version"), str) and is_stable_version(v["version"])
    ]
    if not stable:
        return versions[0] if versions else None

    parsed = [(parsed, v) for v in stable if (parsed := _parse_version(v["version"]))]
    if parsed:
        return max(parsed, key=lambda item: item[0])[1]
    return stable[0]


def build_release_info(
    payload: Mapping[str, Any], package_name: str, version: str | None
) -> ReleaseInfo:
    versions = extract_versions(payload, package_name)
    if not versions:
        return ReleaseInfo.unknown(package_name, version)

    release_date = None
    if version is not None and (installed := find_version(versions, version)):
        release_date = parse_release_time(installed.get("time"))

    latest_version = None
    latest_release_date = None
    if (latest := find_latest_stable(versions)) is not None:
        latest_release_date = parse_release_time(latest.get("time"))
        if latest_release_date is not None and isinstance(latest.get("version"), str):
            latest_version = latest["version"]
        else:
            latest_release_date = None

    return ReleaseInfo(
        package_name=package_name,
        version=version,
        release_date=release_date,
        latest_version=latest_version,
        latest_release_date=latest_release_date,
    )
