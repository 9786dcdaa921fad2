from __future__ import annotations

from dependency_age.core.registry.adapters.packagist_registry_gateway import (
    PACKAGIST_BASE_URL,
    PackagistRegistryGateway,
)
from dependency_age.core.registry.ports.registry_gateway import (
    DEFAULT_GATEWAY_MESSAGES,
    ExhaustedRetriesError,
    FetchOutcome,
    PackageNotFoundError,
    RegistryGateway,
    RegistryGatewayCause,
    RegistryGatewayError,
    TransientRegistryError,
)
from dependency_age.core.registry.rate_limiter import RateLimiter

__all__ = [
    "DEFAULT_GATEWAY_MESSAGES",
    "PACKAGIST_BASE_URL",
    "ExhaustedRetriesError",
    "FetchOutcome",
    "PackageNotFoundError",
    "PackagistRegistryGateway",
    "RateLimiter",
    "RegistryGateway",
    "RegistryGatewayCause",
    "RegistryGatewayError",
    "TransientRegistryError",
]
