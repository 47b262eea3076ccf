"""
Shared async HTTP plumbing for provider clients.

Every provider client owns (or borrows) an aiohttp session, applies a bounded
timeout to each call, retries 429/5xx with exponential backoff, and trips a
circuit breaker after repeated failures. Failures surface as ProviderError;
the gateway and resolver decide how to recover.
"""

import asyncio
import logging
import re
import time
from typing import Any, Dict, Optional

import aiohttp

from ..exceptions import ProviderError

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


def _redact(s: str) -> str:
    # Keep API keys out of logs
    return re.sub(r"(api[-_]?key=)[^&\s]+", r"\1REDACTED", s, flags=re.IGNORECASE)


class ProviderClient:
    """Base class for one external HTTP provider."""

    name = "provider"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        rate_limit_delay: float = 0.0,
    ):
        """
        Initialize the provider client.

        Args:
            base_url: Provider API root (no trailing slash)
            api_key: API key, if the provider needs one
            session: Optional aiohttp session (for connection pooling)
            timeout_seconds: Total timeout per HTTP call
            max_retries: Retries for 429/5xx responses and transport errors
            rate_limit_delay: Minimum seconds between calls
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.rate_limit_delay = rate_limit_delay
        self.last_request_time = 0.0
        self._rate_lock = asyncio.Lock()

        # Circuit breaker
        self._circuit_breaker_failures = 0
        self._circuit_breaker_threshold = 5
        self._circuit_breaker_reset_time: Optional[float] = None

        # Async session management
        self._session = session
        self._own_session = False

    def is_configured(self) -> bool:
        """True when the provider can be called (keyed providers override)."""
        return True

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._own_session = True
        return self._session

    async def _close_session(self):
        """Close session if we own it."""
        if self._own_session and self._session:
            await self._session.close()
            self._session = None
            self._own_session = False

    async def close(self):
        await self._close_session()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self._close_session()

    # ------------------------------------------------------------------
    # Circuit breaker
    # ------------------------------------------------------------------

    def _check_circuit_breaker(self) -> bool:
        """Check if circuit breaker should prevent requests."""
        if self._circuit_breaker_reset_time and time.time() > self._circuit_breaker_reset_time:
            self._circuit_breaker_failures = 0
            self._circuit_breaker_reset_time = None

        return self._circuit_breaker_failures < self._circuit_breaker_threshold

    def _record_failure(self):
        """Record a failure for circuit breaker."""
        self._circuit_breaker_failures += 1
        if self._circuit_breaker_failures >= self._circuit_breaker_threshold:
            # Open circuit for 60 seconds
            self._circuit_breaker_reset_time = time.time() + 60

    def _record_success(self):
        """Record a success, easing the circuit breaker."""
        if self._circuit_breaker_failures > 0:
            self._circuit_breaker_failures = max(0, self._circuit_breaker_failures - 1)

    async def _rate_limit_async(self):
        """Async rate limiting."""
        if self.rate_limit_delay <= 0:
            return
        async with self._rate_lock:
            time_since_last = time.time() - self.last_request_time
            if time_since_last < self.rate_limit_delay:
                await asyncio.sleep(self.rate_limit_delay - time_since_last)
            self.last_request_time = time.time()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Any:
        """
        GET base_url + path and return the decoded JSON body.

        Args:
            path: Endpoint path beginning with '/'
            params: Query parameters
            allow_not_found: Return None for a 404 instead of raising

        Returns:
            Decoded JSON (dict or list), or None for an allowed 404

        Raises:
            ProviderError: transport failure, timeout, non-2xx, open circuit, bad JSON
        """
        if not self._check_circuit_breaker():
            raise ProviderError(self.name, "circuit breaker open")

        url = f"{self.base_url}{path}"
        last_error: Optional[ProviderError] = None

        for attempt in range(self.max_retries + 1):
            if attempt:
                await asyncio.sleep(0.5 * 2 ** (attempt - 1))  # 0.5s, 1s, 2s
            await self._rate_limit_async()
            try:
                session = await self._get_session()
                async with session.get(
                    url,
                    params=params,
                    headers=self._headers(),
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as response:
                    if response.status == 404 and allow_not_found:
                        self._record_success()
                        return None
                    if response.status >= 400:
                        last_error = ProviderError(
                            self.name, f"HTTP {response.status} for {path}", status=response.status
                        )
                        if response.status in RETRYABLE_STATUSES:
                            continue
                        break
                    try:
                        payload = await response.json(content_type=None)
                    except ValueError as e:
                        last_error = ProviderError(self.name, f"invalid JSON from {path}: {e}")
                        break
                    self._record_success()
                    return payload
            except asyncio.TimeoutError:
                last_error = ProviderError(self.name, f"timed out after {self.timeout_seconds}s on {path}")
            except aiohttp.ClientError as e:
                last_error = ProviderError(self.name, f"request failed: {_redact(str(e))}")

        self._record_failure()
        logger.debug(f"[{self.name}] {last_error}")
        raise last_error
