"""Base collector class."""
import asyncio
import json
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from addon_radar.collectors.circuit import CircuitBreaker
from addon_radar.config import Settings, get_settings
from addon_radar.errors import CircuitOpenError, FatalError, TransientError

logger = logging.getLogger(__name__)


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given either as seconds or as an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


class BaseCollector:
    """Base class for upstream API clients.

    Owns the HTTP client and the resilience policy shared by every request:
    capped body reads, retries with exponential backoff for transient
    failures, and a consecutive-failure circuit breaker.
    """

    name: str = "base"
    base_url: str = ""
    rate_limit_delay: float = 1.0  # Seconds between page requests

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        breaker: CircuitBreaker | None = None,
        sleep=asyncio.sleep,
    ):
        settings = settings or get_settings()
        self.client = client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)
        self.breaker = breaker or CircuitBreaker(settings.circuit_breaker_threshold)
        self.max_retries = settings.max_retries
        self.backoff_base = settings.backoff_base_seconds
        self.max_response_bytes = settings.max_response_bytes
        self._sleep = sleep

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()

    def default_headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    async def fetch_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Fetch and decode JSON, retrying transient failures."""
        body = await self._execute_with_retry(path, params)
        try:
            return json.loads(body)
        except ValueError as e:
            raise FatalError(f"malformed JSON from {path}: {e}") from e

    async def _execute_with_retry(self, path: str, params: dict[str, Any] | None) -> bytes:
        """
        Perform a GET, retrying transient failures until max_retries attempts are used.

        Every transient failure counts against the circuit breaker; once it is
        open no further request is sent.
        """
        last_error: TransientError | None = None

        for attempt in range(1, self.max_retries + 1):
            if self.breaker.is_open:
                raise CircuitOpenError(
                    f"circuit open after {self.breaker.consecutive_failures} consecutive failures"
                )

            try:
                body = await self._fetch_once(path, params)
            except TransientError as e:
                self.breaker.record_failure()
                last_error = e
                if attempt >= self.max_retries:
                    break

                wait_time = self._get_backoff_time(attempt, e.retry_after)
                logger.warning(
                    f"Retrying {path} (attempt {attempt + 1}/{self.max_retries}) "
                    f"in {wait_time:.1f}s: {e}"
                )
                await self._sleep(wait_time)
                continue

            self.breaker.record_success()
            return body

        raise TransientError(
            f"{path} failed after {self.max_retries} attempts: {last_error}",
            status_code=last_error.status_code if last_error else None,
            retry_after=last_error.retry_after if last_error else None,
        ) from last_error

    def _get_backoff_time(self, attempt: int, retry_after: float | None = None) -> float:
        """Retry-After when the server sent one, else exponential backoff (2s, 4s, ...)."""
        if retry_after is not None:
            return retry_after
        return self.backoff_base * (2 ** attempt)

    async def _fetch_once(self, path: str, params: dict[str, Any] | None) -> bytes:
        """Perform a single GET and classify the outcome."""
        url = self.base_url + path
        try:
            async with self.client.stream("GET", url, params=params, headers=self.default_headers()) as response:
                body = await self._read_capped(response)
        except httpx.TransportError as e:
            raise TransientError(f"request to {path} failed: {e!r}") from e

        status = response.status_code
        if 200 <= status < 300:
            return body

        detail = body[:200].decode("utf-8", errors="replace")
        if status == 429:
            raise TransientError(
                f"HTTP 429: {detail}",
                status_code=status,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        if status >= 500:
            raise TransientError(f"HTTP {status}: {detail}", status_code=status)
        raise FatalError(f"HTTP {status}: {detail}", status_code=status)

    async def _read_capped(self, response: httpx.Response) -> bytes:
        """Read the response body, refusing anything over max_response_bytes."""
        limit = self.max_response_bytes

        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > limit:
            raise FatalError(f"response of {declared} bytes exceeds limit of {limit}")

        buf = bytearray()
        async for chunk in response.aiter_bytes():
            buf.extend(chunk)
            if len(buf) > limit:
                raise FatalError(f"response exceeds limit of {limit} bytes")
        return bytes(buf)
