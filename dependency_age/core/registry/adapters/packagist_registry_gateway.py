from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping
from contextlib import asynccontextmanager
from itertools import batched
from logging import getLogger

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from dependency_age import __version__
from dependency_age.core.models import ReleaseInfo
from dependency_age.core.registry.metadata import build_release_info
from dependency_age.core.registry.ports.registry_gateway import (
    ExhaustedRetriesError,
    FetchOutcome,
    PackageNotFoundError,
    RegistryGateway,
    RegistryGatewayCause,
    TransientRegistryError,
)
from dependency_age.core.registry.rate_limiter import RateLimiter

logger = getLogger("dependency_age")

PACKAGIST_BASE_URL = "https://repo.packagist.org"
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_TIMEOUT = 30.0
REACHABILITY_TIMEOUT = httpx.Timeout(3.0, connect=2.0)


class PackagistRegistryGateway(RegistryGateway):
    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = PACKAGIST_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        max_concurrent_requests: int = 5,
        retry_attempts: int = 3,
        retry_base_delay: float = 1.0,
        retry_delay_multiplier: float = 1.5,
        rate_limiter: RateLimiter | None = None,
        respect_rate_limit: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._max_concurrent_requests = max(1, max_concurrent_requests)
        self._retry_attempts = retry_attempts
        self._retry_base_delay = retry_base_delay
        self._retry_delay_multiplier = retry_delay_multiplier
        self._rate_limiter = (
            rate_limiter
            if rate_limiter is not None
            else RateLimiter(enabled=respect_rate_limit)
        )
        self._sleep = sleep
        self._headers = {
            "Accept": "application/json",
            "User-Agent": f"dependency-age/{__version__}",
        }

    async def is_registry_reachable(self) -> bool:
        """Quick HEAD request against the registry root; 5xx counts as unreachable."""
        async with self._session() as client:
            try:
                response = await client.head(
                    self._base_url,
                    headers=self._headers,
                    timeout=REACHABILITY_TIMEOUT,
                    follow_redirects=True,
                )
            except httpx.RequestError as exc:
                logger.debug("Registry %s is unreachable: %s", self._base_url, exc)
                return False
        return response.status_code < httpx.codes.INTERNAL_SERVER_ERROR

    async def fetch_one(self, name: str, version: str | None = None) -> ReleaseInfo:
        async with self._session() as client:
            return await self._fetch_with_retry(client, name, version)

    async def fetch_many(
        self, names: Iterable[str], versions: Mapping[str, str] | None = None
    ) -> dict[str, ReleaseInfo | None]:
        outcomes = await self.fetch_outcomes(names, versions)
        return {outcome.package_name: outcome.info for outcome in outcomes}

    async def fetch_outcomes(
        self, names: Iterable[str], versions: Mapping[str, str] | None = None
    ) -> list[FetchOutcome]:
        unique_names = list(dict.fromkeys(names))
        if not unique_names:
            return []

        versions = versions or {}
        outcomes: list[FetchOutcome] = []
        async with self._session() as client:
            for batch in batched(unique_names, self._max_concurrent_requests):
                logger.debug("Fetching batch of %d packages", len(batch))
                outcomes.extend(
                    await asyncio.gather(*(
                        self._fetch_outcome(client, name, versions.get(name))
                        for name in batch
                    ))
                )
        return outcomes

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            timeout=self._timeout, follow_redirects=True
        ) as client:
            yield client

    async def _fetch_outcome(
        self, client: httpx.AsyncClient, name: str, version: str | None
    ) -> FetchOutcome:
        try:
            info = await self._fetch_with_retry(client, name, version)
        except PackageNotFoundError as exc:
            logger.debug("Package %s not found on Packagist", name)
            return FetchOutcome(package_name=name, error=exc)
        except ExhaustedRetriesError as exc:
            logger.warning("Could not fetch %s: %s", name, exc.last_error)
            return FetchOutcome(package_name=name, error=exc)
        return FetchOutcome(package_name=name, info=info)

    async def _fetch_with_retry(
        self, client: httpx.AsyncClient, name: str, version: str | None
    ) -> ReleaseInfo:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(
                multiplier=self._retry_base_delay, exp_base=self._retry_delay_multiplier
            ),
            retry=retry_if_exception_type(TransientRegistryError),
            before_sleep=_log_retry(name),
            sleep=self._sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._request(client, name, version)
        except RetryError as exc:
            last_error = exc.last_attempt.exception()
            if not isinstance(last_error, TransientRegistryError):
                raise
            raise ExhaustedRetriesError(
                name, self._retry_attempts, last_error
            ) from last_error
        raise RuntimeError("retry loop ended without an outcome")

    async def _request(
        self, client: httpx.AsyncClient, name: str, version: str | None
    ) -> ReleaseInfo:
        await self._rate_limiter.acquire()

        try:
            response = await client.get(
                f"{self._base_url}/p2/{name}.json",
                headers=self._headers,
                timeout=self._timeout,
                follow_redirects=True,
            )
        except httpx.RequestError as exc:
            raise TransientRegistryError(
                cause=RegistryGatewayCause.REQUEST_FAILED, package_name=name
            ) from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise PackageNotFoundError(name)

        if not response.is_success:
            raise TransientRegistryError(
                cause=RegistryGatewayCause.ERROR_RESPONSE,
                package_name=name,
                message=f"HTTP {response.status_code}",
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise TransientRegistryError(
                cause=RegistryGatewayCause.INVALID_RESPONSE, package_name=name
            ) from exc

        if not isinstance(data, dict):
            raise TransientRegistryError(
                cause=RegistryGatewayCause.INVALID_RESPONSE,
                package_name=name,
                message="Expected a JSON object",
            )

        return build_release_info(data, name, version)


def _log_retry(name: str) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        logger.debug(
            "Attempt %d for %s failed (%s), retrying in %.2fs",
            retry_state.attempt_number,
            name,
            retry_state.outcome.exception() if retry_state.outcome else None,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
        )

    return log
