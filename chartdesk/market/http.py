"""ProviderHttpClient: rate-limited JSON GETs with retry/backoff.

Wraps a shared httpx.AsyncClient for one provider:
- HTTP 429: exponential backoff min(base * 2**(attempt + 1), max), retried
- Transport failure: fixed short delay, retried
- Any other non-2xx: fails immediately with ProviderUnavailable
All three share the same max-attempt budget.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx
import structlog

from chartdesk.config import FetchConfig
from chartdesk.market.errors import ProviderUnavailable, RateLimited
from chartdesk.market.rate_limit import RateLimiter

log = structlog.get_logger()

HTTP_TOO_MANY_REQUESTS = 429


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Rate-limit wait before retrying ``attempt`` (0-based): 2s, 4s, 8s... capped."""
    return min(base * 2 ** (attempt + 1), maximum)


class ProviderHttpClient:
    """JSON GET client bound to one provider's base URL."""

    def __init__(
        self,
        name: str,
        base_url: str,
        client: httpx.AsyncClient,
        config: FetchConfig,
        limiter: RateLimiter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._config = config
        self._limiter = limiter
        self._sleep = sleep

    async def get_json(
        self,
        path: str,
        params: Mapping[str, str | int | float] | None = None,
        max_attempts: int | None = None,
    ) -> Any:
        """GET ``base_url + path`` and decode the JSON body.

        Raises:
            RateLimited: Still 429 after the last attempt.
            ProviderUnavailable: Non-2xx status, network failure after the
                last attempt, or a body that is not JSON.
        """
        attempts = max_attempts or self._config.max_attempts
        url = f"{self.base_url}/{path.lstrip('/')}"
        last_error: Exception | None = None
        rate_limited = False

        for attempt in range(attempts):
            if self._limiter is not None:
                await self._limiter.acquire()
            try:
                response = await self._client.get(
                    url,
                    params=params,
                    timeout=self._config.request_timeout_seconds,
                )
            except httpx.TransportError as e:
                last_error = e
                rate_limited = False
                log.warning(
                    "provider_network_error",
                    provider=self.name,
                    attempt=attempt + 1,
                    error=str(e),
                )
                if attempt < attempts - 1:
                    await self._sleep(self._config.network_retry_delay_seconds)
                continue

            if response.status_code == HTTP_TOO_MANY_REQUESTS:
                rate_limited = True
                wait = backoff_delay(
                    attempt,
                    self._config.backoff_base_seconds,
                    self._config.max_backoff_seconds,
                )
                log.warning(
                    "provider_rate_limited",
                    provider=self.name,
                    attempt=attempt + 1,
                    wait_seconds=wait,
                )
                if attempt < attempts - 1:
                    await self._sleep(wait)
                continue

            if response.is_error:
                raise ProviderUnavailable(
                    self.name,
                    response.reason_phrase or "HTTP error",
                    status_code=response.status_code,
                )

            try:
                return response.json()
            except ValueError as e:
                raise ProviderUnavailable(
                    self.name,
                    f"invalid JSON response: {e}",
                ) from e

        if rate_limited:
            raise RateLimited(self.name, attempts)
        raise ProviderUnavailable(
            self.name,
            f"network failure after {attempts} attempts: {last_error}",
        ) from last_error
