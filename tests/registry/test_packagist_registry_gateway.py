from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

import httpx
import pytest
import respx

from dependency_age.core.registry import (
    ExhaustedRetriesError,
    PackageNotFoundError,
    PackagistRegistryGateway,
    RateLimiter,
    RegistryGatewayCause,
)
from tests.factories import packagist_payload

Handler = Callable[[httpx.Request], httpx.Response]

PACKAGIST_URL = "https://repo.packagist.org"

MONOLOG_PAYLOAD = packagist_payload(
    "monolog/monolog",
    [
        ("3.5.0", "2024-06-01T10:00:00+00:00"),
        ("3.4.0", "2023-06-01T10:00:00+00:00"),
        ("3.5.0-RC1", "2024-05-01T10:00:00+00:00"),
    ],
)


def _package_name(request: httpx.Request) -> str:
    return request.url.path.removeprefix("/p2/").removesuffix(".json")


class RecordedSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _gateway(
    client: httpx.AsyncClient, sleep: RecordedSleep | None = None, **kwargs: object
) -> PackagistRegistryGateway:
    return PackagistRegistryGateway(
        client=client,
        rate_limiter=RateLimiter(enabled=False),
        sleep=sleep or RecordedSleep(),
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.mark.asyncio
async def test_fetches_installed_and_latest_release_dates() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/p2/monolog/monolog.json"
        assert request.headers["User-Agent"].startswith("dependency-age/")
        return httpx.Response(status_code=httpx.codes.OK, json=MONOLOG_PAYLOAD)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        info = await _gateway(client).fetch_one("monolog/monolog", "3.4.0")

    assert info.version == "3.4.0"
    assert info.release_date == datetime(2023, 6, 1, 10, tzinfo=UTC)
    assert info.latest_version == "3.5.0"
    assert info.latest_release_date == datetime(2024, 6, 1, 10, tzinfo=UTC)


@pytest.mark.asyncio
async def test_expands_minified_metadata() -> None:
    payload = {
        "minified": "composer/2.0",
        "packages": {
            "psr/log": [
                {
                    "name": "psr/log",
                    "version": "3.0.0",
                    "time": "2021-07-14T16:46:02+00:00",
                    "license": ["MIT"],
                },
                {"version": "2.0.0", "time": "2021-07-14T16:41:46+00:00"},
            ]
        },
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=httpx.codes.OK, json=payload)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        info = await _gateway(client).fetch_one("psr/log", "2.0.0")

    assert info.release_date == datetime(2021, 7, 14, 16, 41, 46, tzinfo=UTC)
    assert info.latest_version == "3.0.0"


@pytest.mark.asyncio
async def test_requests_unknown_package_once_and_reports_it_as_missing() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(status_code=httpx.codes.NOT_FOUND)

    sleep = RecordedSleep()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        gateway = _gateway(client, sleep)
        results = await gateway.fetch_many(["acme/missing"])
        with pytest.raises(PackageNotFoundError) as excinfo:
            await gateway.fetch_one("acme/missing")

    assert results == {"acme/missing": None}
    assert calls == 2
    assert sleep.delays == []
    assert excinfo.value.cause == RegistryGatewayCause.NOT_FOUND


@pytest.mark.asyncio
async def test_retries_server_errors_with_increasing_delays() -> None:
    responses = [
        httpx.Response(status_code=httpx.codes.INTERNAL_SERVER_ERROR),
        httpx.Response(status_code=httpx.codes.BAD_GATEWAY),
        httpx.Response(status_code=httpx.codes.OK, json=MONOLOG_PAYLOAD),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    sleep = RecordedSleep()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        info = await _gateway(client, sleep).fetch_one("monolog/monolog", "3.5.0")

    assert info.release_date == datetime(2024, 6, 1, 10, tzinfo=UTC)
    assert sleep.delays == [1.0, 1.5]
    assert responses == []


@pytest.mark.asyncio
async def test_raises_exhausted_retries_after_last_attempt() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(status_code=httpx.codes.SERVICE_UNAVAILABLE)

    sleep = RecordedSleep()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ExhaustedRetriesError) as excinfo:
            await _gateway(client, sleep).fetch_one("monolog/monolog", "3.5.0")

    assert calls == 3
    assert sleep.delays == [1.0, 1.5]
    assert excinfo.value.attempts == 3
    assert excinfo.value.cause == RegistryGatewayCause.EXHAUSTED_RETRIES
    assert excinfo.value.last_error.cause == RegistryGatewayCause.ERROR_RESPONSE
    assert "HTTP 503" in str(excinfo.value)
    assert excinfo.value.__cause__ is excinfo.value.last_error


@pytest.mark.asyncio
async def test_uses_configured_retry_schedule() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=httpx.codes.INTERNAL_SERVER_ERROR)

    sleep = RecordedSleep()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        gateway = _gateway(
            client,
            sleep,
            retry_attempts=4,
            retry_base_delay=0.5,
            retry_delay_multiplier=2.0,
        )
        results = await gateway.fetch_many(["monolog/monolog"])

    assert results == {"monolog/monolog": None}
    assert sleep.delays == [0.5, 1.0, 2.0]


@pytest.mark.asyncio
async def test_retries_malformed_json() -> None:
    responses = [
        httpx.Response(status_code=httpx.codes.OK, content=b"{not-json"),
        httpx.Response(status_code=httpx.codes.OK, json=MONOLOG_PAYLOAD),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    sleep = RecordedSleep()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        info = await _gateway(client, sleep).fetch_one("monolog/monolog", "3.5.0")

    assert info.latest_version == "3.5.0"
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_treats_non_object_body_as_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=httpx.codes.OK, json=["not", "an", "object"])

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ExhaustedRetriesError) as excinfo:
            await _gateway(client).fetch_one("monolog/monolog")

    assert excinfo.value.last_error.cause == RegistryGatewayCause.INVALID_RESPONSE


@pytest.mark.asyncio
async def test_wraps_network_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("boom", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ExhaustedRetriesError) as excinfo:
            await _gateway(client).fetch_one("monolog/monolog")

    assert excinfo.value.last_error.cause == RegistryGatewayCause.REQUEST_FAILED
    assert isinstance(excinfo.value.last_error.__cause__, httpx.ConnectTimeout)


@pytest.mark.asyncio
async def test_fetches_in_batches_bounded_by_max_concurrent_requests() -> None:
    names = [f"vendor/package-{index}" for index in range(7)]
    started: list[str] = []
    in_flight = 0
    peak = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal in_flight, peak
        name = _package_name(request)
        started.append(name)
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return httpx.Response(
            status_code=httpx.codes.OK,
            json=packagist_payload(name, [("1.0.0", "2024-01-01T00:00:00+00:00")]),
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        gateway = _gateway(client, max_concurrent_requests=5)
        results = await gateway.fetch_many(names, {name: "1.0.0" for name in names})

    assert peak == 5
    assert set(started[:5]) == set(names[:5])
    assert set(started[5:]) == set(names[5:])
    assert list(results) == names
    assert all(info is not None and info.is_known for info in results.values())


@pytest.mark.asyncio
async def test_deduplicates_requested_names() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(status_code=httpx.codes.OK, json=MONOLOG_PAYLOAD)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        outcomes = await _gateway(client).fetch_outcomes(
            ["monolog/monolog", "monolog/monolog"]
        )

    assert calls == 1
    assert len(outcomes) == 1
    assert outcomes[0].is_success


@pytest.mark.asyncio
async def test_outcomes_carry_the_failure_reason() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if _package_name(request) == "acme/missing":
            return httpx.Response(status_code=httpx.codes.NOT_FOUND)
        return httpx.Response(status_code=httpx.codes.OK, json=MONOLOG_PAYLOAD)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        outcomes = await _gateway(client).fetch_outcomes(
            ["monolog/monolog", "acme/missing"]
        )

    found, missing = outcomes
    assert found.is_success
    assert not missing.is_success
    assert isinstance(missing.error, PackageNotFoundError)


@pytest.mark.asyncio
async def test_returns_empty_mapping_without_requests_for_no_names() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await _gateway(client).fetch_many([]) == {}


@pytest.mark.asyncio
async def test_creates_its_own_client_when_none_is_given(
    respx_mock: respx.MockRouter,
) -> None:
    route = respx_mock.get(f"{PACKAGIST_URL}/p2/monolog/monolog.json").mock(
        return_value=httpx.Response(status_code=httpx.codes.OK, json=MONOLOG_PAYLOAD)
    )
    gateway = PackagistRegistryGateway(respect_rate_limit=False)

    info = await gateway.fetch_one("monolog/monolog", "3.4.0")

    assert route.called
    assert info.latest_version == "3.5.0"


@pytest.mark.asyncio
async def test_waits_for_the_rate_limiter_between_requests() -> None:
    waits: list[float] = []

    async def sleep(delay: float) -> None:
        waits.append(delay)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=httpx.codes.OK, json=MONOLOG_PAYLOAD)

    limiter = RateLimiter(2, clock=lambda: 100.0, sleep=sleep)
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        gateway = PackagistRegistryGateway(client=client, rate_limiter=limiter)
        await gateway.fetch_many(["a/one", "b/two", "c/three"])

    assert waits == [60.0]


def test_rejects_zero_retry_attempts() -> None:
    with pytest.raises(ValueError):
        PackagistRegistryGateway(retry_attempts=0)


@pytest.mark.asyncio
async def test_registry_is_reachable_when_head_request_succeeds() -> None:
    methods: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(status_code=httpx.codes.OK)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        reachable = await _gateway(client).is_registry_reachable()

    assert reachable is True
    assert methods == ["HEAD"]


def _refuse_connection(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


def _bad_gateway(request: httpx.Request) -> httpx.Response:
    return httpx.Response(status_code=httpx.codes.BAD_GATEWAY)


@pytest.mark.asyncio
@pytest.mark.parametrize("handler", [_refuse_connection, _bad_gateway])
async def test_registry_is_unreachable_on_connection_or_server_errors(
    handler: Callable[[httpx.Request], httpx.Response],
) -> None:
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        reachable = await _gateway(client).is_registry_reachable()

    assert reachable is False
