from __future__ import annotations

from dependency_age.core.cache.adapters.filesystem_release_cache_repository import (
    FileSystemReleaseCacheRepository,
)
from dependency_age.core.cache.ports.release_cache_repository import (
    CacheStats,
    CacheUnavailableError,
    ReleaseCacheRepository,
    is_fresh,
)

__all__ = [
    "CacheStats",
    "CacheUnavailableError",
    "FileSystemReleaseCacheRepository",
    "ReleaseCacheRepository",
    "is_fresh",
]
