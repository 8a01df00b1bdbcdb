"""Rate-limited JSON client. Wraps httpx.AsyncClient with bounded retry and backoff.

Invariants:
    - 429 and 5xx: retried; Retry-After (seconds) wins, floored at 1s,
      otherwise min(1s * 2^attempt, 16s) plus uniform jitter
    - Transport errors (connect, timeout): retried the same way
    - Any other non-2xx, other httpx errors, or a non-JSON body: immediate
      NetworkError, no retry
    - At most ``max_retries`` retries; every retry sleeps first
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import httpx

from opdeck.domain.constants import (
    BASE_BACKOFF_MS,
    MAX_BACKOFF_MS,
    MAX_RETRIES,
    MIN_RETRY_AFTER_MS,
    REQUEST_TIMEOUT,
    RETRY_JITTER_MS,
)
from opdeck.domain.errors import NetworkError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class RetryState(Enum):
    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    SUCCEEDED = "succeeded"
    FAILED_TERMINAL = "failed_terminal"


def is_retryable(status: int | None) -> bool:
    """429, any 5xx, and transport failures (no status) are transient."""
    return status is None or status == 429 or 500 <= status < 600


def parse_retry_after(value: str | None) -> float | None:
    """Retry-After in seconds; HTTP-date and garbage are ignored."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def backoff_ms(
    attempt: int,
    retry_after: float | None = None,
    jitter_ms: int = RETRY_JITTER_MS,
    rng: random.Random | None = None,
) -> float:
    """Delay before retry number ``attempt`` (0-based), in milliseconds."""
    if retry_after is not None:
        return max(MIN_RETRY_AFTER_MS, retry_after * 1000)
    rng = rng or random
    base = min(BASE_BACKOFF_MS * (2**attempt), MAX_BACKOFF_MS)
    return base + rng.uniform(0, jitter_ms)


class RateLimitedClient:
    """Sole point of contact with remote services.

    Requests are issued one at a time by the caller; this class never
    fans out concurrently.
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        jitter_ms: int = RETRY_JITTER_MS,
        client: httpx.AsyncClient | None = None,
        sleep: Sleep | None = None,
        rng: random.Random | None = None,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.timeout = timeout
        self.max_retries = max_retries
        self.jitter_ms = jitter_ms
        self._client = client
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            NetworkError: On a permanent status, or once retries are exhausted.
        """
        headers = {"Accept": "application/json", **(kwargs.pop("headers", None) or {})}
        client = self._get_client()

        state = RetryState.ATTEMPTING
        attempt = 0
        delay_ms = 0.0
        last_status: int | None = None
        last_body = ""
        payload: Any = None

        while state not in (RetryState.SUCCEEDED, RetryState.FAILED_TERMINAL):
            if state is RetryState.ATTEMPTING:
                retry_after = None
                try:
                    resp = await client.request(method, url, headers=headers, **kwargs)
                except httpx.TransportError as e:
                    last_status, last_body = None, str(e) or type(e).__name__
                except httpx.HTTPError as e:
                    # Redirect loops, undecodable content: not transient
                    last_status, last_body = None, str(e) or type(e).__name__
                    state = RetryState.FAILED_TERMINAL
                    continue
                else:
                    if resp.is_success:
                        try:
                            payload = resp.json()
                        except ValueError as e:
                            last_status, last_body = resp.status_code, f"invalid JSON body: {e}"
                            state = RetryState.FAILED_TERMINAL
                            continue
                        state = RetryState.SUCCEEDED
                        continue
                    last_status, last_body = resp.status_code, resp.text
                    retry_after = parse_retry_after(resp.headers.get("Retry-After"))

                if is_retryable(last_status) and attempt < self.max_retries:
                    delay_ms = backoff_ms(attempt, retry_after, self.jitter_ms, self._rng)
                    state = RetryState.BACKOFF
                else:
                    state = RetryState.FAILED_TERMINAL

            elif state is RetryState.BACKOFF:
                logger.warning(
                    f"[http] {method} {url} -> {last_status}; "
                    f"retry {attempt + 1}/{self.max_retries} in {delay_ms:.0f}ms"
                )
                await self._sleep(delay_ms / 1000)
                attempt += 1
                state = RetryState.ATTEMPTING

        if state is RetryState.SUCCEEDED:
            return payload

        logger.error(f"[http] {method} {url} failed: {last_status} {last_body[:200]}")
        raise NetworkError(last_status, last_body, url=url)

    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", url, params=params)

    async def post_json(self, url: str, body: Any) -> Any:
        return await self.request(
            "POST", url, json=body, headers={"Content-Type": "application/json"}
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
