"""HTTP fetch client — one attempt per call, hard per-request deadline."""

import asyncio
import logging
from typing import Protocol

import httpx

from site2md.config import settings
from site2md.exceptions import FetchError

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    """Anything that can fetch a page. Injected into crawler and batch.

    ``fetch_bytes`` is only called for PDF downloads.
    """

    async def fetch_text(self, url: str, timeout_ms: int) -> str: ...

    async def fetch_bytes(self, url: str, timeout_ms: int) -> bytes: ...


class FetchClient:
    """Thin wrapper around a reusable httpx.AsyncClient.

    Retry policy belongs to the caller; each call makes exactly one
    attempt and either returns the body or raises FetchError.
    """

    def __init__(
        self,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._user_agent = user_agent or settings.USER_AGENT
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                headers={
                    "User-Agent": self._user_agent,
                    "Accept": "text/html,application/xhtml+xml,*/*;q=0.8",
                },
                transport=self._transport,
            )
        return self._client

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, url: str, timeout_ms: int) -> httpx.Response:
        client = self._get_client()
        timeout_seconds = timeout_ms / 1000
        try:
            # wait_for covers connect + headers + body, so a slow body cannot
            # slip past the deadline and the caller sees exactly one outcome
            response = await asyncio.wait_for(
                client.get(url, timeout=timeout_seconds), timeout=timeout_seconds
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise FetchError(url, f"Request timeout after {timeout_ms}ms", kind="timeout") from e
        except httpx.InvalidURL as e:
            raise FetchError(url, f"Invalid URL: {e}", kind="network") from e
        except httpx.HTTPError as e:
            raise FetchError(url, str(e) or e.__class__.__name__, kind="network") from e

        if not 200 <= response.status_code < 300:
            raise FetchError(
                url,
                f"HTTP {response.status_code}: {response.reason_phrase}",
                kind="http",
                status=response.status_code,
            )
        return response

    async def fetch_text(self, url: str, timeout_ms: int | None = None) -> str:
        """Fetch a URL and return its decoded body."""
        response = await self._get(url, timeout_ms or settings.FETCH_TIMEOUT_MS)
        logger.debug(f"Fetched {url} ({response.status_code}, {len(response.content)} bytes)")
        return response.text

    async def fetch_bytes(self, url: str, timeout_ms: int | None = None) -> bytes:
        """Fetch a URL and return the raw body (PDF downloads)."""
        response = await self._get(url, timeout_ms or settings.FETCH_TIMEOUT_MS)
        return response.content


def describe_error(error: BaseException) -> str:
    """Human-readable message for a failed fetch or conversion."""
    if isinstance(error, FetchError):
        if error.is_timeout:
            return "Request timed out"
        if error.kind == "http":
            status = error.status or 0
            if status == 404:
                return "Page not found (404)"
            if status == 403:
                return "Access forbidden (403)"
            if status == 429:
                return "Too many requests (429)"
            if status >= 500:
                return f"Server error ({status})"
            return f"HTTP error ({status})"
        return f"Network problem: {error.message}"
    return str(error) or error.__class__.__name__
