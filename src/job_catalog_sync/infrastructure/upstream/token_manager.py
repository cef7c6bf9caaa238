"""OAuth2 client-credentials token acquisition and caching."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import httpx

from job_catalog_sync.domain.errors import UpstreamAuthenticationError

logger = logging.getLogger(__name__)

_DEFAULT_EXPIRES_IN_SECONDS = 3600


@dataclass(slots=True, frozen=True)
class UpstreamCredentials:
    """Client-credentials grant configuration."""

    client_id: str
    client_secret: str
    token_url: str
    scope: str | None = None


@dataclass(slots=True, frozen=True)
class _CachedToken:
    value: str
    refresh_at: datetime


class TokenManager:
    """Hand out bearer tokens, refreshing them a safety margin before expiry.

    Refreshes are serialized per dependency: concurrent callers that find the
    cache stale wait for the in-flight refresh and reuse its result.
    """

    def __init__(
        self,
        credentials: UpstreamCredentials,
        *,
        dependency: str = "upstream",
        safety_margin_seconds: float = 60.0,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._credentials = credentials
        self._dependency = dependency
        self._safety_margin = timedelta(seconds=max(safety_margin_seconds, 0.0))
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._tokens: dict[str, _CachedToken] = {}
        self._refresh_lock = asyncio.Lock()

    @property
    def dependency(self) -> str:
        """Dependency name the cached token belongs to."""

        return self._dependency

    async def get_token(self) -> str:
        """Return a cached token or acquire a fresh one."""

        cached = self._fresh_cached_token()
        if cached is not None:
            return cached

        async with self._refresh_lock:
            cached = self._fresh_cached_token()
            if cached is not None:
                return cached
            return await self._refresh()

    def invalidate(self) -> None:
        """Drop the cached token so the next caller acquires a new one."""

        if self._tokens.pop(self._dependency, None) is not None:
            logger.info("Invalidated cached token for '%s'.", self._dependency)

    def _fresh_cached_token(self) -> str | None:
        cached = self._tokens.get(self._dependency)
        if cached is None or self._clock() >= cached.refresh_at:
            return None
        return cached.value

    async def _refresh(self) -> str:
        form = {
            "grant_type": "client_credentials",
            "client_id": self._credentials.client_id,
            "client_secret": self._credentials.client_secret,
        }
        if self._credentials.scope:
            form["scope"] = self._credentials.scope

        url = self._credentials.token_url
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as http_client:
                response = await http_client.post(url, data=form)
        except httpx.HTTPError as exc:
            raise UpstreamAuthenticationError(
                f"Token request to {url} failed: {exc}"
            ) from exc

        if not response.is_success:
            raise UpstreamAuthenticationError(
                f"Token request to {url} failed: {response.status_code}"
            )

        access_token, expires_in = self._parse_token_response(response)
        issued_at = self._clock()
        refresh_at = issued_at + timedelta(seconds=expires_in) - self._safety_margin
        if refresh_at <= issued_at:
            logger.warning(
                "Token for '%s' expires in %ss, inside the refresh margin; not caching it.",
                self._dependency,
                expires_in,
            )
            return access_token

        self._tokens[self._dependency] = _CachedToken(value=access_token, refresh_at=refresh_at)
        logger.info(
            "Acquired token for '%s', refreshing after %s.",
            self._dependency,
            refresh_at.isoformat(),
        )
        return access_token

    def _parse_token_response(self, response: httpx.Response) -> tuple[str, float]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamAuthenticationError("Token response is not valid JSON.") from exc

        if not isinstance(payload, dict):
            raise UpstreamAuthenticationError("Token response must be a JSON object.")
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise UpstreamAuthenticationError("Token response is missing 'access_token'.")

        expires_in = payload.get("expires_in", _DEFAULT_EXPIRES_IN_SECONDS)
        try:
            return access_token, float(expires_in)
        except (TypeError, ValueError) as exc:
            raise UpstreamAuthenticationError(
                f"Token response has invalid 'expires_in': {expires_in!r}."
            ) from exc


__all__ = ["TokenManager", "UpstreamCredentials"]
