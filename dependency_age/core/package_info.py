from __future__ import annotations

from collections.abc import Callable, Iterable
from logging import getLogger
import time

from dependency_age.core.cache.ports.release_cache_repository import (
    ReleaseCacheRepository,
    is_fresh,
)
from dependency_age.core.config import DEFAULT_CACHE_TTL, ConfigurationError
from dependency_age.core.models import AnalysedPackage, PackageQuery, ReleaseInfo
from dependency_age.core.registry.ports.registry_gateway import RegistryGateway

logger = getLogger("dependency_age")


class PackageInfoService:
    """Resolve release information for queries, consulting the cache first.

    Passing ``cache=None`` disables caching entirely. ``offline=True`` never
    touches the registry and serves any cached entry regardless of its age.
    """

    def __init__(
        self,
        gateway: RegistryGateway,
        cache: ReleaseCacheRepository | None = None,
        *,
        ttl: int = DEFAULT_CACHE_TTL,
        offline: bool = False,
        get_current_timestamp: Callable[[], int] = lambda: int(time.time()),
    ) -> None:
        if offline and cache is None:
            raise ConfigurationError(
                "Cannot use offline mode without cache (--offline requires caching)"
            )
        self._gateway = gateway
        self._cache = cache
        self._ttl = ttl
        self._offline = offline
        self._get_current_timestamp = get_current_timestamp

    async def resolve(
        self, queries: Iterable[PackageQuery], *, limit: int | None = None
    ) -> dict[str, ReleaseInfo]:
        """Return one ``ReleaseInfo`` per query name.

        ``limit`` caps how many uncached packages are fetched; the remainder
        resolve as unknown.
        """
        now = self._get_current_timestamp()
        results: dict[str, ReleaseInfo] = {}
        pending: list[PackageQuery] = []

        for query in queries:
            if (cached := self._lookup(query, now)) is not None:
                results[query.name] = cached
            else:
                pending.append(query)

        to_fetch = [] if self._offline else pending
        if limit is not None:
            to_fetch = to_fetch[: max(0, limit)]

        if to_fetch:
            logger.debug(
                "%d packages served from cache, fetching %d", len(results), len(to_fetch)
            )
            fetched = await self._gateway.fetch_many(
                [query.name for query in to_fetch],
                {query.name: query.version for query in to_fetch},
            )
            for query in to_fetch:
                if (info := fetched.get(query.name)) is None:
                    continue
                results[query.name] = info
                if self._cache is not None:
                    self._cache.put(query.name, info, now)

        for query in pending:
            results.setdefault(query.name, ReleaseInfo.unknown(query.name, query.version))
        return results

    async def analyse(
        self, queries: Iterable[PackageQuery], *, limit: int | None = None
    ) -> list[AnalysedPackage]:
        queries = list(queries)
        infos = await self.resolve(queries, limit=limit)
        return [AnalysedPackage(query=query, info=infos[query.name]) for query in queries]

    def _lookup(self, query: PackageQuery, now: int) -> ReleaseInfo | None:
        if self._cache is None:
            return None
        entry = self._cache.get(query.name)
        if entry is None or entry.payload.version != query.version:
            return None
        if self._offline or is_fresh(entry, self._ttl, now):
            return entry.payload
        return None
