from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum, auto
from typing import Protocol

from dependency_age.core.models import ReleaseInfo


class RegistryGatewayCause(StrEnum):
    @staticmethod
    def _generate_next_value_(
        name: str, start: int, count: int, last_values: list[str]
    ) -> str:
        return name.lower()

    NOT_FOUND = auto()
    REQUEST_FAILED = auto()
    ERROR_RESPONSE = auto()
    INVALID_RESPONSE = auto()
    EXHAUSTED_RETRIES = auto()


DEFAULT_GATEWAY_MESSAGES: dict[RegistryGatewayCause, str] = {
    RegistryGatewayCause.NOT_FOUND: "Package not found in the registry.",
    RegistryGatewayCause.REQUEST_FAILED: "Network error while fetching package metadata.",
    RegistryGatewayCause.ERROR_RESPONSE: "Unexpected response received from the registry.",
    RegistryGatewayCause.INVALID_RESPONSE: "Received an invalid response from the registry.",
    RegistryGatewayCause.EXHAUSTED_RETRIES: "Giving up after repeated registry failures.",
}


class RegistryGatewayError(Exception):
    def __init__(
        self,
        *,
        cause: RegistryGatewayCause,
        package_name: str | None = None,
        message: str | None = None,
    ) -> None:
        self.cause = cause
        self.package_name = package_name
        self.user_message = message
        detail = message or DEFAULT_GATEWAY_MESSAGES[cause]
        if package_name:
            detail = f"{package_name}: {detail}"
        super().__init__(detail)


class PackageNotFoundError(RegistryGatewayError):
    def __init__(self, package_name: str) -> None:
        super().__init__(
            cause=RegistryGatewayCause.NOT_FOUND, package_name=package_name
        )


class TransientRegistryError(RegistryGatewayError):
    """Timeouts, connection failures, non-2xx responses and malformed bodies."""


class ExhaustedRetriesError(RegistryGatewayError):
    def __init__(
        self, package_name: str, attempts: int, last_error: TransientRegistryError
    ) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            cause=RegistryGatewayCause.EXHAUSTED_RETRIES,
            package_name=package_name,
            message=f"Failed after {attempts} attempts. Last error: {last_error}",
        )


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    package_name: str
    info: ReleaseInfo | None = None
    error: RegistryGatewayError | None = None

    @property
    def is_success(self) -> bool:
        return self.info is not None


class RegistryGateway(Protocol):
    async def is_registry_reachable(self) -> bool: ...

    async def fetch_one(self, name: str, version: str | None = None) -> ReleaseInfo: ...

    async def fetch_many(
        self, names: Iterable[str], versions: Mapping[str, str] | None = None
    ) -> dict[str, ReleaseInfo | None]: ...
