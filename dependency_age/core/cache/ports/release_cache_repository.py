from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from dependency_age.core.models import CacheEntry, ReleaseInfo


class CacheUnavailableError(Exception):
    """Raised internally when the cache file cannot be read or written."""


@dataclass(frozen=True, slots=True)
class CacheStats:
    exists: bool
    size_bytes: int
    entries: int
    fresh_entries: int


def is_fresh(entry: CacheEntry, ttl: int, now: int) -> bool:
    return now - entry.fetched_at < ttl


class ReleaseCacheRepository(Protocol):
    def get(self, name: str) -> CacheEntry | None: ...
    def put(self, name: str, info: ReleaseInfo, now: int) -> None: ...
