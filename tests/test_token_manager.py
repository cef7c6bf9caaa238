from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs

import httpx
import pytest

from job_catalog_sync.domain.errors import UpstreamAuthenticationError
from job_catalog_sync.infrastructure.upstream import TokenManager, UpstreamCredentials

TOKEN_URL = "https://upstream.example.com/oauth/token"


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class TokenEndpoint:
    def __init__(self, expires_in: int = 3600, failures: int = 0) -> None:
        self.expires_in = expires_in
        self.failures = failures
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        await asyncio.sleep(0.01)
        if self.failures > 0:
            self.failures -= 1
            return httpx.Response(500, json={"error": "server_error"})
        return httpx.Response(
            200,
            json={"access_token": f"tok-{len(self.requests)}", "expires_in": self.expires_in},
        )


def _manager(
    endpoint: TokenEndpoint,
    clock: FakeClock | None = None,
    scope: str | None = None,
) -> TokenManager:
    return TokenManager(
        UpstreamCredentials(
            client_id="client-1",
            client_secret="secret-1",
            token_url=TOKEN_URL,
            scope=scope,
        ),
        safety_margin_seconds=60,
        transport=httpx.MockTransport(endpoint),
        clock=clock or FakeClock(),
    )


def test_token_request_uses_client_credentials_grant() -> None:
    endpoint = TokenEndpoint()
    manager = _manager(endpoint, scope="jobs.read")

    token = asyncio.run(manager.get_token())

    assert token == "tok-1"
    request = endpoint.requests[0]
    assert request.method == "POST"
    assert str(request.url) == TOKEN_URL
    form = parse_qs(request.content.decode())
    assert form == {
        "grant_type": ["client_credentials"],
        "client_id": ["client-1"],
        "client_secret": ["secret-1"],
        "scope": ["jobs.read"],
    }


def test_cached_token_is_reused_until_safety_margin() -> None:
    endpoint = TokenEndpoint(expires_in=3600)
    clock = FakeClock()
    manager = _manager(endpoint, clock)

    async def scenario() -> list[str]:
        tokens = [await manager.get_token()]
        clock.advance(3_539)
        tokens.append(await manager.get_token())
        clock.advance(1)
        tokens.append(await manager.get_token())
        return tokens

    assert asyncio.run(scenario()) == ["tok-1", "tok-1", "tok-2"]
    assert len(endpoint.requests) == 2


def test_concurrent_callers_share_one_refresh() -> None:
    endpoint = TokenEndpoint()
    manager = _manager(endpoint)

    async def scenario() -> list[str]:
        return await asyncio.gather(*(manager.get_token() for _ in range(5)))

    assert asyncio.run(scenario()) == ["tok-1"] * 5
    assert len(endpoint.requests) == 1


def test_failed_refresh_is_not_cached() -> None:
    endpoint = TokenEndpoint(failures=1)
    manager = _manager(endpoint)

    with pytest.raises(UpstreamAuthenticationError):
        asyncio.run(manager.get_token())

    assert asyncio.run(manager.get_token()) == "tok-2"
    assert len(endpoint.requests) == 2


def test_unreachable_token_endpoint_raises_authentication_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    manager = TokenManager(
        UpstreamCredentials("client-1", "secret-1", TOKEN_URL),
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(UpstreamAuthenticationError, match="connection refused"):
        asyncio.run(manager.get_token())


def test_response_without_access_token_is_rejected() -> None:
    manager = TokenManager(
        UpstreamCredentials("client-1", "secret-1", TOKEN_URL),
        transport=httpx.MockTransport(lambda _: httpx.Response(200, json={"token_type": "bearer"})),
    )

    with pytest.raises(UpstreamAuthenticationError, match="access_token"):
        asyncio.run(manager.get_token())


def test_invalidate_forces_a_new_token() -> None:
    endpoint = TokenEndpoint()
    manager = _manager(endpoint)

    assert asyncio.run(manager.get_token()) == "tok-1"
    manager.invalidate()
    assert asyncio.run(manager.get_token()) == "tok-2"


def test_token_shorter_than_margin_is_returned_but_not_cached() -> None:
    endpoint = TokenEndpoint(expires_in=30)
    manager = _manager(endpoint)

    assert asyncio.run(manager.get_token()) == "tok-1"
    assert asyncio.run(manager.get_token()) == "tok-2"
    assert len(endpoint.requests) == 2
