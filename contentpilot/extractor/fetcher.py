"""Bounded HTML page fetching."""

import asyncio
from typing import Dict, NamedTuple, Optional

import httpx

from contentpilot.core.errors import FetchError, HttpError
from contentpilot.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; ContentPilot/0.1; +https://contentpilot.local/bot)"


class FetchedPage(NamedTuple):
    """Raw page returned by the fetcher."""
    url: str
    status_code: int
    content: bytes
    charset: Optional[str] = None
    content_type: Optional[str] = None


class PageFetcher:
    """HTTP fetcher with a wall-clock timeout and a response-size cap."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_bytes: int = DEFAULT_MAX_BYTES,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers=self._default_headers(user_agent),
            follow_redirects=True,
            transport=transport,
            limits=httpx.Limits(
                max_keepalive_connections=10,
                max_connections=20,
                keepalive_expiry=30.0
            )
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _default_headers(user_agent: str) -> Dict[str, str]:
        return {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def fetch(self, url: str) -> FetchedPage:
        """
        Fetch a page, bounded in time and size.

        Args:
            url: Absolute http(s) URL

        Returns:
            FetchedPage with the raw body bytes

        Raises:
            HttpError: on a non-2xx response
            FetchError: on timeout (kind ``timeout``), oversized body
                (kind ``too_large``) or transport failure (kind ``network``)
        """
        try:
            return await asyncio.wait_for(self._fetch_internal(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out fetching {url} after {self.timeout}s")
            raise FetchError(f"Timed out after {self.timeout}s", kind="timeout")
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout fetching {url}: {type(e).__name__}")
            raise FetchError(f"Timeout: {type(e).__name__}", kind="timeout") from e
        except httpx.RequestError as e:
            logger.warning(f"Request error fetching {url}: {e}")
            raise FetchError(f"Request error: {e}", kind="network") from e

    async def _fetch_internal(self, url: str) -> FetchedPage:
        logger.info(f"Fetching page: {url}")

        async with self.client.stream("GET", url) as response:
            if not 200 <= response.status_code < 300:
                logger.error(f"HTTP error {response.status_code} for {url}")
                raise HttpError(f"HTTP {response.status_code}", status_code=response.status_code)

            declared = response.headers.get("Content-Length")
            if declared and declared.isdigit() and int(declared) > self.max_bytes:
                raise FetchError(
                    f"Response declares {declared} bytes, cap is {self.max_bytes}",
                    kind="too_large"
                )

            chunks = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > self.max_bytes:
                    logger.warning(f"Response from {url} exceeded {self.max_bytes} bytes")
                    raise FetchError(
                        f"Response exceeded {self.max_bytes} bytes",
                        kind="too_large"
                    )
                chunks.append(chunk)

            content_type = response.headers.get("Content-Type")
            return FetchedPage(
                url=str(response.url),
                status_code=response.status_code,
                content=b"".join(chunks),
                charset=response.charset_encoding,
                content_type=content_type,
            )
