from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import re

PACKAGE_NAME_PATTERN = re.compile(r"^[a-z0-9_.-]+/[a-z0-9_.-]+$", re.IGNORECASE)


class InvalidPackageNameError(ValueError):
    def __init__(self, name: object) -> None:
        self.name = name
        super().__init__(f"Invalid package name format: {name!r}")


def is_valid_package_name(name: object) -> bool:
    return isinstance(name, str) and PACKAGE_NAME_PATTERN.match(name) is not None


def normalize_package_name(name: str) -> str:
    """Return the lower-case ``vendor/name`` form, raising on anything else."""
    stripped = name.strip() if isinstance(name, str) else name
    if not is_valid_package_name(stripped):
        raise InvalidPackageNameError(name)
    return stripped.lower()


@dataclass(frozen=True, slots=True)
class PackageQuery:
    name: str
    version: str
    is_dev: bool = False
    is_direct: bool = True

    @classmethod
    def create(
        cls, name: str, version: str, *, is_dev: bool = False, is_direct: bool = True
    ) -> PackageQuery:
        return cls(
            name=normalize_package_name(name),
            version=version,
            is_dev=is_dev,
            is_direct=is_direct,
        )


@dataclass(frozen=True, slots=True)
class ReleaseInfo:
    package_name: str
    version: str | None = None
    release_date: datetime | None = None
    latest_version: str | None = None
    latest_release_date: datetime | None = None

    @classmethod
    def unknown(cls, package_name: str, version: str | None = None) -> ReleaseInfo:
        return cls(package_name=package_name, version=version)

    @property
    def is_known(self) -> bool:
        return self.release_date is not None


@dataclass(frozen=True, slots=True)
class CacheEntry:
    package_name: str
    payload: ReleaseInfo
    fetched_at: int


@dataclass(frozen=True, slots=True)
class AnalysedPackage:
    query: PackageQuery
    info: ReleaseInfo

    @property
    def name(self) -> str:
        return self.query.name

    @property
    def version(self) -> str:
        return self.query.version

    @property
    def is_dev(self) -> bool:
        return self.query.is_dev

    @property
    def release_date(self) -> datetime | None:
        return self.info.release_date

    @property
    def latest_version(self) -> str | None:
        return self.info.latest_version

    @property
    def latest_release_date(self) -> datetime | None:
        return self.info.latest_release_date
