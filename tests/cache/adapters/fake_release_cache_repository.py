from __future__ import annotations

from dependency_age.core.cache.ports.release_cache_repository import (
    ReleaseCacheRepository,
)
from dependency_age.core.models import CacheEntry, ReleaseInfo


class FakeReleaseCacheRepository(ReleaseCacheRepository):
    def __init__(self, entries: list[CacheEntry] | None = None) -> None:
        self.entries = {entry.package_name: entry for entry in entries or []}
        self.put_calls: list[str] = []

    def get(self, name: str) -> CacheEntry | None:
        return self.entries.get(name)

    def put(self, name: str, info: ReleaseInfo, now: int) -> None:
        self.put_calls.append(name)
        self.entries[name] = CacheEntry(package_name=name, payload=info, fetched_at=now)
