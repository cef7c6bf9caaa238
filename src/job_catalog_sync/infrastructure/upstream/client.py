"""HTTP client for the upstream job API."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import Any

import httpx

from job_catalog_sync.domain.errors import (
    PermanentUpstreamError,
    TransientUpstreamError,
    UpstreamAuthenticationError,
)
from job_catalog_sync.domain.ports import UpstreamJobSource
from job_catalog_sync.domain.upstream_models import UpstreamJobPage
from job_catalog_sync.infrastructure.metrics import CallMetricsRegistry
from job_catalog_sync.infrastructure.resilience import (
    CircuitBreaker,
    RetryPolicy,
    compose,
    retrying,
)
from job_catalog_sync.infrastructure.resilience.retry import RETRYABLE_STATUS_CODES, SleepFunction
from job_catalog_sync.infrastructure.upstream.token_manager import TokenManager

logger = logging.getLogger(__name__)

_JOBS_PATH = "/api/v1/jobs"
_HEALTH_PATH = "/api/v1/health"
_UNHEALTHY_STATUSES = frozenset({"down", "error", "unhealthy", "degraded"})


class _UnauthorizedError(PermanentUpstreamError):
    """401 from the upstream; handled by one token refresh and replay."""


class UpstreamJobsClient(UpstreamJobSource):
    """Typed calls to the upstream API behind retry and circuit-breaker protection.

    The breaker wraps each individual attempt, so retried failures are all
    visible to it. Each attempt is also counted in `call_metrics` under the
    breaker's dependency name.
    """

    def __init__(
        self,
        base_url: str,
        token_manager: TokenManager,
        circuit_breaker: CircuitBreaker,
        retry_policy: RetryPolicy | None = None,
        *,
        timeout_seconds: float = 10.0,
        max_pages: int = 10_000,
        call_metrics: CallMetricsRegistry | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunction = asyncio.sleep,
    ) -> None:
        self._base_url = self._normalize_base_url(base_url)
        self._token_manager = token_manager
        self._circuit_breaker = circuit_breaker
        self._retry_policy = retry_policy or RetryPolicy()
        self._timeout_seconds = timeout_seconds
        self._max_pages = max(max_pages, 1)
        self._call_metrics = call_metrics
        self._transport = transport
        self._sleep = sleep

    async def list_jobs(self, page: int, page_size: int) -> UpstreamJobPage:
        """Call `GET /api/v1/jobs?page=&limit=`."""

        payload = await self._get_json(_JOBS_PATH, {"page": page, "limit": page_size})
        jobs, total_pages = self._jobs_from_payload(payload)
        if total_pages is not None:
            has_more = page < total_pages
        else:
            has_more = len(jobs) >= page_size
        return UpstreamJobPage(jobs=jobs, page=page, has_more=has_more)

    async def list_jobs_updated_since(
        self,
        since: datetime,
        page_size: int = 100,
    ) -> list[dict[str, Any]]:
        """Call `GET /api/v1/jobs?updated_since=` and follow pagination."""

        if since.tzinfo is None:
            since = since.replace(tzinfo=UTC)
        updated_since = since.astimezone(UTC).isoformat()

        collected: list[dict[str, Any]] = []
        for page in range(1, self._max_pages + 1):
            payload = await self._get_json(
                _JOBS_PATH,
                {"updated_since": updated_since, "page": page, "limit": page_size},
            )
            jobs, total_pages = self._jobs_from_payload(payload)
            collected.extend(jobs)
            if total_pages is not None:
                if page >= total_pages:
                    break
            elif len(jobs) < page_size:
                break
        else:
            logger.warning(
                "Stopped paging jobs updated since %s after %s pages.",
                updated_since,
                self._max_pages,
            )
        return collected

    async def health_check(self) -> None:
        """Call `GET /api/v1/health`; raise when the upstream reports itself unhealthy."""

        payload = await self._get_json(_HEALTH_PATH)
        if isinstance(payload, dict):
            status = payload.get("status")
            if isinstance(status, str) and status.strip().lower() in _UNHEALTHY_STATUSES:
                raise TransientUpstreamError(f"Upstream reports status '{status}'.")

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        token = await self._token_manager.get_token()
        try:
            return await self._resilient_get(path, params, token)
        except _UnauthorizedError:
            logger.warning("Upstream rejected the access token for %s; refreshing once.", path)
            self._token_manager.invalidate()
            token = await self._token_manager.get_token()
            try:
                return await self._resilient_get(path, params, token)
            except _UnauthorizedError as exc:
                raise UpstreamAuthenticationError(
                    f"Upstream rejected a freshly issued token for {path}."
                ) from exc

    async def _resilient_get(
        self,
        path: str,
        params: dict[str, Any] | None,
        token: str,
    ) -> Any:
        async def attempt() -> Any:
            return await self._send_get(path, params, token)

        call = compose(
            attempt,
            self._circuit_breaker.guard,
            retrying(self._retry_policy, sleep=self._sleep),
        )
        return await call()

    async def _send_get(self, path: str, params: dict[str, Any] | None, token: str) -> Any:
        url = self._endpoint(path)
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as http_client:
                response = await http_client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            self._record_call(None, started)
            raise TransientUpstreamError(f"GET {url} timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            self._record_call(None, started)
            raise TransientUpstreamError(f"GET {url} failed: {exc}") from exc

        self._record_call(response.status_code, started)
        logger.debug("GET %s -> %s", url, response.status_code)
        self._ensure_success(response)
        try:
            return response.json()
        except ValueError as exc:
            raise PermanentUpstreamError(
                f"GET {url} returned a non-JSON body.",
                response.status_code,
            ) from exc

    def _record_call(self, status_code: int | None, started: float) -> None:
        if self._call_metrics is None:
            return
        self._call_metrics.record(
            self._circuit_breaker.dependency,
            "GET",
            status_code,
            time.perf_counter() - started,
        )

    def _ensure_success(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        status_code = response.status_code
        message = (
            f"{response.request.method} {response.request.url} failed: "
            f"{status_code} {self._detail_from_response(response)}"
        )
        if status_code == 401:
            raise _UnauthorizedError(message, status_code)
        if status_code in RETRYABLE_STATUS_CODES:
            raise TransientUpstreamError(message, status_code)
        raise PermanentUpstreamError(message, status_code)

    def _detail_from_response(self, response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            text = response.text.strip()
            return text or "<no response body>"

        if isinstance(payload, dict):
            for key in ("detail", "message", "error"):
                detail = payload.get(key)
                if isinstance(detail, str):
                    return detail
        return str(payload)

    def _jobs_from_payload(self, payload: Any) -> tuple[list[dict[str, Any]], int | None]:
        if isinstance(payload, list):
            return payload, None
        if not isinstance(payload, dict):
            raise PermanentUpstreamError("Job listing must be a JSON object or array.")

        jobs = payload.get("data", payload.get("jobs", []))
        if jobs is None:
            jobs = []
        if not isinstance(jobs, list):
            raise PermanentUpstreamError("Job listing 'data' must be an array.")

        total_pages = None
        meta = payload.get("meta")
        if isinstance(meta, dict):
            raw_total = meta.get("total_pages", meta.get("totalPages"))
            if isinstance(raw_total, int) and not isinstance(raw_total, bool):
                total_pages = raw_total
        return jobs, total_pages

    def _endpoint(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def _normalize_base_url(self, base_url: str) -> str:
        normalized = base_url.strip().rstrip("/")
        if not normalized:
            raise ValueError("Upstream base URL cannot be empty.")
        return normalized


__all__ = ["UpstreamJobsClient"]
