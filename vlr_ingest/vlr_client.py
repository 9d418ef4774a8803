"""
vlr_client.py — HTTP fetch layer for vlrggapi (JSON) and vlr.gg (HTML).

Nothing here raises on network or API trouble: both getters log and return
None once the retry policy gives up, and callers turn that into a zero-record
ledger entry.

Retried (transient):      HTTP 429, httpx.RequestError (timeouts, resets, DNS)
Not retried (permanent):  any other non-2xx status, a body that isn't JSON

Environment variables (all optional):
    VLR_API_URL            — JSON mirror base URL (default: vlrggapi.vercel.app)
    VLR_WEB_URL            — vlr.gg base URL for match pages
    HTTP_TIMEOUT_SECONDS   — per-request timeout (default: 15)
    FETCH_MAX_ATTEMPTS     — attempts per request (default: 3)
    FETCH_BACKOFF_SECONDS  — linear backoff step (default: 1.5 → 1.5 s, 3 s, ...)
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import httpx

from vlr_ingest.config import (
    API_USER_AGENT,
    BROWSER_USER_AGENT,
    DEFAULT_VLR_API_URL,
    DEFAULT_VLR_WEB_URL,
)

logger = logging.getLogger(__name__)

VLR_API_URL: str = os.getenv("VLR_API_URL", DEFAULT_VLR_API_URL).rstrip("/")
VLR_WEB_URL: str = os.getenv("VLR_WEB_URL", DEFAULT_VLR_WEB_URL).rstrip("/")
HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
FETCH_MAX_ATTEMPTS: int = int(os.getenv("FETCH_MAX_ATTEMPTS", "3"))
FETCH_BACKOFF_SECONDS: float = float(os.getenv("FETCH_BACKOFF_SECONDS", "1.5"))


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------

def linear_backoff(step: float) -> Callable[[int], float]:
    """Delay grows with the attempt number: step, 2*step, 3*step, ..."""
    return lambda attempt: step * attempt


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default=linear_backoff(1.5))

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        return max(0.0, self.backoff(attempt))


DEFAULT_RETRY = RetryPolicy(
    max_attempts=FETCH_MAX_ATTEMPTS,
    backoff=linear_backoff(FETCH_BACKOFF_SECONDS),
)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class VlrClient:
    """Thin async wrapper; one httpx.AsyncClient per request, like the rest of the code base."""

    def __init__(
        self,
        api_url: str = VLR_API_URL,
        web_url: str = VLR_WEB_URL,
        *,
        retry: Optional[RetryPolicy] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.web_url = web_url.rstrip("/")
        self.retry = retry or DEFAULT_RETRY
        self._timeout = timeout
        self._transport = transport
        self._sleep = sleep

    def match_url(self, vlr_id: str, slug: Optional[str] = None) -> str:
        if slug:
            return f"{self.web_url}/{vlr_id}/{slug.strip('/')}"
        return f"{self.web_url}/{vlr_id}"

    async def _request(
        self,
        url: str,
        params: Optional[dict],
        headers: dict,
    ) -> Optional[httpx.Response]:
        """GET with retries. Returns a 2xx response or None."""
        attempts = max(self.retry.max_attempts, 1)
        for attempt in range(1, attempts + 1):
            try:
                async with httpx.AsyncClient(
                    transport=self._transport,
                    timeout=self._timeout,
                    headers=headers,
                    follow_redirects=True,
                ) as client:
                    r = await client.get(url, params=params)
            except httpx.RequestError as e:
                logger.warning(
                    "[vlr_client] network error %s (attempt %d/%d): %s",
                    url, attempt, attempts, e,
                )
                if attempt < attempts:
                    await self._sleep(self.retry.delay(attempt))
                continue

            if r.status_code == 429:
                logger.warning(
                    "[vlr_client] %s rate-limited (attempt %d/%d)", url, attempt, attempts,
                )
                if attempt < attempts:
                    await self._sleep(self.retry.delay(attempt))
                continue

            if r.status_code >= 400:
                logger.error("[vlr_client] %s returned HTTP %s: %s", url, r.status_code, r.text[:200])
                return None

            return r

        logger.error("[vlr_client] giving up on %s after %d attempts", url, attempts)
        return None

    async def get_json(self, path: str, params: Optional[dict] = None) -> Optional[Any]:
        """GET {api_url}{path} and decode JSON; None on any failure."""
        url = f"{self.api_url}{path}"
        r = await self._request(
            url, params, {"User-Agent": API_USER_AGENT, "Accept": "application/json"},
        )
        if r is None:
            return None
        try:
            return r.json()
        except ValueError as e:
            logger.error("[vlr_client] %s returned invalid JSON: %s", url, e)
            return None

    async def get_html(self, url: str) -> Optional[str]:
        """GET a vlr.gg page as text; None on any failure."""
        r = await self._request(
            url, None, {"User-Agent": BROWSER_USER_AGENT, "Accept": "text/html"},
        )
        return r.text if r is not None else None
