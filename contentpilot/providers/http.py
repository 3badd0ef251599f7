"""
Shared HTTP plumbing for remote AI backends.

Subclasses only describe their endpoint, headers, payload and how to read the
generated text back out; retries and error normalization live here.
"""

import json
import time
from abc import abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from contentpilot.core.errors import ProviderError
from contentpilot.core.logging import get_logger
from .base import ProviderAdapter
from .models import MetaOutput, RewriteOutput, TargetAudience, WritingStyle
from .prompts import (
    SYSTEM_PROMPT,
    build_meta_prompt,
    build_rewrite_prompt,
    build_titles_prompt,
    parse_json_list,
    parse_json_object,
    parse_keywords,
    parse_rewrite_response,
)

logger = get_logger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.transient


class HttpProviderAdapter(ProviderAdapter):
    """Base class for backends reached over HTTPS with a JSON API."""

    base_url: str = ""
    default_model: str = ""

    def __init__(
        self,
        api_key: str = "",
        model: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 3,
        retry_wait: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: Optional[str] = None,
    ):
        self.api_key = api_key
        self.model = model or self.default_model
        self.max_retries = max(1, max_retries)
        self.retry_wait = retry_wait
        self.call_count = 0
        self.client = httpx.AsyncClient(
            base_url=base_url or self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    # Backend-specific hooks

    @abstractmethod
    def _request_path(self) -> str:
        """Path of the generation endpoint, relative to ``base_url``."""

    @abstractmethod
    def _build_payload(self, prompt: str, system: str, temperature: float, max_tokens: int) -> Dict[str, Any]:
        """JSON body for one generation request."""

    @abstractmethod
    def _read_text(self, data: Any, prompt: str) -> str:
        """Extract generated text from a decoded response body."""

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _query_params(self) -> Dict[str, str]:
        return {}

    # Transport

    async def complete(
        self,
        prompt: str,
        system: str = SYSTEM_PROMPT,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> str:
        """
        Send one prompt and return the generated text.

        Raises:
            ProviderError: normalized backend failure
        """
        if not self.api_key:
            raise ProviderError(self.provider_id, "not_configured", "API key is not set")

        payload = self._build_payload(prompt, system, temperature, max_tokens)
        data = await self._post_with_retry(payload)
        try:
            text = self._read_text(data, prompt)
        except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
            raise ProviderError(self.provider_id, "malformed_response", f"Unexpected response shape: {e}") from e
        if not text or not text.strip():
            raise ProviderError(self.provider_id, "malformed_response", "Empty generation")
        return text

    async def _post_with_retry(self, payload: Dict[str, Any]) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_wait, min=self.retry_wait, max=8.0),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._post(payload)

    async def _post(self, payload: Dict[str, Any]) -> Any:
        self.call_count += 1
        start_time = time.time()
        try:
            response = await self.client.post(
                self._request_path(),
                json=payload,
                headers=self._auth_headers(),
                params=self._query_params(),
            )
        except httpx.TimeoutException as e:
            raise self._error("timeout", f"{type(e).__name__}", transient=False) from e
        except httpx.RequestError as e:
            raise self._error("network", str(e), transient=True) from e

        elapsed = time.time() - start_time
        logger.debug(f"{self.provider_id} responded {response.status_code} in {elapsed:.2f}s")

        if response.status_code in (401, 403):
            raise self._error("auth", f"HTTP {response.status_code}")
        if response.status_code == 429:
            raise self._error("rate_limited", "HTTP 429", transient=True)
        if response.status_code >= 400:
            raise self._error(
                "http_error",
                f"HTTP {response.status_code}: {response.text[:200]}",
                transient=response.status_code in RETRYABLE_STATUS,
            )

        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise self._error("malformed_response", "Response is not JSON") from e

    def _error(self, reason: str, message: str, transient: bool = False) -> ProviderError:
        error = ProviderError(self.provider_id, reason, message, transient=transient)
        logger.warning(f"Provider {self.provider_id} failed: {reason} ({message})")
        return error

    # Uniform capability

    async def rewrite(
        self,
        content: str,
        style: WritingStyle,
        audience: TargetAudience,
        target_word_count: int,
    ) -> RewriteOutput:
        prompt = build_rewrite_prompt(content, style, audience, target_word_count)
        text = await self.complete(prompt, max_tokens=max(1024, target_word_count * 3))
        try:
            title, body, meta, keywords = parse_rewrite_response(text)
        except ValueError as e:
            raise ProviderError(self.provider_id, "malformed_response", str(e)) from e
        return self.complete_output(title, body, meta or "", keywords)

    async def generate_titles(self, topic: str, count: int = 10) -> List[str]:
        text = await self.complete(build_titles_prompt(topic, count), temperature=0.9, max_tokens=2048)
        try:
            titles = parse_json_list(text)
        except ValueError as e:
            raise ProviderError(self.provider_id, "malformed_response", str(e)) from e
        return titles[:count]

    async def generate_meta(self, content: str) -> MetaOutput:
        text = await self.complete(build_meta_prompt(content), temperature=0.5, max_tokens=1024)
        try:
            data = parse_json_object(text)
            return MetaOutput(
                meta_title=str(data.get("metaTitle") or data.get("meta_title") or ""),
                meta_description=str(data.get("metaDescription") or data.get("meta_description") or ""),
                keywords=parse_keywords(data.get("keywords")),
            )
        except ValueError as e:
            raise ProviderError(self.provider_id, "malformed_response", str(e)) from e

    async def health_check(self) -> Dict[str, Any]:
        return {
            "provider": self.provider_id,
            "status": "configured" if self.api_key else "not_configured",
            "model": self.model,
            "calls_made": self.call_count,
        }

    async def aclose(self) -> None:
        await self.client.aclose()
