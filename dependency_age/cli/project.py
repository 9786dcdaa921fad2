from __future__ import annotations

from collections.abc import Iterable
from logging import getLogger
from pathlib import Path

from dependency_age.core.cache import FileSystemReleaseCacheRepository
from dependency_age.core.config import DependencyAgeConfig
from dependency_age.core.models import PackageQuery
from dependency_age.core.package_info import PackageInfoService
from dependency_age.core.paths import resolve_cache_file
from dependency_age.core.registry import PackagistRegistryGateway, RegistryGateway

logger = getLogger("dependency_age")


def select_packages(
    queries: Iterable[PackageQuery],
    config: DependencyAgeConfig,
    *,
    direct_only: bool = False,
) -> list[PackageQuery]:
    selected: list[PackageQuery] = []
    for query in queries:
        if query.is_dev and not config.include_dev:
            continue
        if direct_only and not query.is_direct:
            continue
        if config.is_ignored(query.name):
            logger.debug("Ignoring %s", query.name)
            continue
        selected.append(query)
    return selected


def create_gateway(config: DependencyAgeConfig) -> PackagistRegistryGateway:
    return PackagistRegistryGateway(
        timeout=float(config.api_timeout),
        max_concurrent_requests=config.max_concurrent_requests,
    )


def open_cache(
    config: DependencyAgeConfig, project_dir: Path
) -> FileSystemReleaseCacheRepository:
    cache_file = resolve_cache_file(config.cache_file, project_dir)
    logger.debug("Using cache file %s", cache_file)
    return FileSystemReleaseCacheRepository(cache_file)


def create_service(
    config: DependencyAgeConfig,
    cache: FileSystemReleaseCacheRepository | None,
    *,
    offline: bool = False,
    gateway: RegistryGateway | None = None,
) -> PackageInfoService:
    return PackageInfoService(
        gateway if gateway is not None else create_gateway(config),
        cache,
        ttl=config.cache_ttl,
        offline=offline,
    )
