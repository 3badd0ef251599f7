"""Tests for provider adapters and the provider registry."""

import json

import httpx
import pytest

from contentpilot.core.errors import ProviderError
from contentpilot.core.settings import Settings
from contentpilot.providers import (
    CohereProvider,
    GeminiProvider,
    GroqProvider,
    HuggingFaceProvider,
    LocalTemplateProvider,
    ProviderRegistry,
    TargetAudience,
    WritingStyle,
)
from contentpilot.providers.prompts import parse_keywords, parse_rewrite_response

TAGGED_RESPONSE = (
    "[TITLE]Wind power sets a new record[/TITLE]\n"
    "[CONTENT]<p>Wind farms produced more electricity than ever before.</p>[/CONTENT]\n"
    "[META]Wind farms hit record output.[/META]\n"
    "[KEYWORDS]wind, energy, record[/KEYWORDS]"
)


def recording_transport(responses, requests):
    """
    Replay queued responses in order, recording each request.

    Each queued item is ``(status_code, kwargs)``; the last one repeats.
    """
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        status_code, kwargs = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(status_code, **kwargs)
    return httpx.MockTransport(handler)


def groq_body(text):
    return {"choices": [{"message": {"content": text}}]}


class TestHttpProviders:
    """Tests for the shared HTTP adapter behaviour."""

    @pytest.mark.asyncio
    async def test_groq_rewrite_parses_tagged_sections(self):
        requests = []
        transport = recording_transport([(200, {"json": groq_body(TAGGED_RESPONSE)})], requests)
        provider = GroqProvider(api_key="secret", transport=transport, retry_wait=0)

        output = await provider.rewrite("source text", WritingStyle.FORMAL, TargetAudience.GENERAL, 300)
        await provider.aclose()

        assert output.title == "Wind power sets a new record"
        assert output.content.startswith("<p>Wind farms")
        assert output.meta_description == "Wind farms hit record output."
        assert output.keywords == ["wind", "energy", "record"]

        request = requests[0]
        assert request.url.path == "/openai/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer secret"
        payload = json.loads(request.content)
        assert payload["model"] == "llama-3.3-70b-versatile"
        assert payload["messages"][1]["role"] == "user"

    @pytest.mark.asyncio
    async def test_gemini_key_in_query_string(self):
        requests = []
        body = {"candidates": [{"content": {"parts": [{"text": TAGGED_RESPONSE}]}}]}
        provider = GeminiProvider(
            api_key="g-key",
            transport=recording_transport([(200, {"json": body})], requests),
            retry_wait=0,
        )

        output = await provider.rewrite("text", WritingStyle.INFORMAL, TargetAudience.YOUTH, 200)
        await provider.aclose()

        assert output.title == "Wind power sets a new record"
        assert requests[0].url.params["key"] == "g-key"
        assert requests[0].url.path.endswith("/models/gemini-1.5-flash:generateContent")
        assert "Authorization" not in requests[0].headers

    @pytest.mark.asyncio
    async def test_missing_api_key_is_not_configured(self):
        requests = []
        provider = CohereProvider(api_key="", transport=recording_transport([(200, {})], requests))

        with pytest.raises(ProviderError) as exc_info:
            await provider.rewrite("text", WritingStyle.FORMAL, TargetAudience.GENERAL, 200)
        await provider.aclose()

        assert exc_info.value.reason == "not_configured"
        assert exc_info.value.provider_id == "cohere"
        assert requests == []

    @pytest.mark.asyncio
    async def test_auth_failure_is_not_retried(self):
        requests = []
        provider = GroqProvider(
            api_key="bad",
            transport=recording_transport([(401, {"json": {"error": "unauthorized"}})], requests),
            retry_wait=0,
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_titles("wind", 3)
        await provider.aclose()

        assert exc_info.value.reason == "auth"
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_retried_then_succeeds(self):
        requests = []
        transport = recording_transport(
            [(429, {}), (200, {"json": groq_body('["Title A", "Title B"]')})],
            requests,
        )
        provider = GroqProvider(api_key="k", transport=transport, retry_wait=0)

        titles = await provider.generate_titles("wind", 2)
        await provider.aclose()

        assert titles == ["Title A", "Title B"]
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_retries(self):
        requests = []
        provider = GroqProvider(
            api_key="k",
            transport=recording_transport([(429, {})], requests),
            max_retries=3,
            retry_wait=0,
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_titles("wind", 2)
        await provider.aclose()

        assert exc_info.value.reason == "rate_limited"
        assert len(requests) == 3

    @pytest.mark.asyncio
    async def test_server_error_is_http_error(self):
        requests = []
        provider = CohereProvider(
            api_key="k",
            transport=recording_transport([(500, {"text": "boom"})], requests),
            max_retries=2,
            retry_wait=0,
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_meta("content")
        await provider.aclose()

        assert exc_info.value.reason == "http_error"
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self):
        provider = GroqProvider(
            api_key="k",
            transport=recording_transport([(200, {"text": "<html>oops</html>"})], []),
            retry_wait=0,
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.rewrite("text", WritingStyle.FORMAL, TargetAudience.GENERAL, 100)
        await provider.aclose()

        assert exc_info.value.reason == "malformed_response"

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_malformed(self):
        provider = CohereProvider(
            api_key="k",
            transport=recording_transport([(200, {"json": {"unexpected": True}})], []),
            retry_wait=0,
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.rewrite("text", WritingStyle.FORMAL, TargetAudience.GENERAL, 100)
        await provider.aclose()

        assert exc_info.value.reason == "malformed_response"

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = HuggingFaceProvider(api_key="k", transport=httpx.MockTransport(handler), max_retries=1)
        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_titles("wind")
        await provider.aclose()

        assert exc_info.value.reason == "network"

    @pytest.mark.asyncio
    async def test_cohere_generate_meta(self):
        meta_json = '{"metaTitle": "Wind record", "metaDescription": "Record output.", "keywords": ["wind", "grid"]}'
        provider = CohereProvider(
            api_key="k",
            transport=recording_transport([(200, {"json": {"generations": [{"text": meta_json}]}})], []),
        )

        meta = await provider.generate_meta("Wind farms produced record output.")
        await provider.aclose()

        assert meta.meta_title == "Wind record"
        assert meta.meta_description == "Record output."
        assert meta.keywords == ["wind", "grid"]

    @pytest.mark.asyncio
    async def test_generate_meta_splits_keyword_string(self):
        meta_json = '{"metaTitle": "Wind record", "metaDescription": "Record output.", "keywords": "wind, energy, "}'
        provider = GroqProvider(
            api_key="k",
            transport=recording_transport([(200, {"json": groq_body(meta_json)})], []),
        )

        meta = await provider.generate_meta("Wind farms produced record output.")
        await provider.aclose()

        assert meta.keywords == ["wind", "energy"]

    @pytest.mark.asyncio
    async def test_transient_flag_on_normalized_errors(self):
        rate_limited = GroqProvider(
            api_key="k",
            transport=recording_transport([(429, {})], []),
            max_retries=1,
            retry_wait=0,
        )
        unauthorized = GroqProvider(
            api_key="k",
            transport=recording_transport([(403, {})], []),
            retry_wait=0,
        )

        with pytest.raises(ProviderError) as retryable:
            await rate_limited.generate_titles("wind")
        with pytest.raises(ProviderError) as permanent:
            await unauthorized.generate_titles("wind")
        await rate_limited.aclose()
        await unauthorized.aclose()

        assert retryable.value.transient is True
        assert permanent.value.transient is False
        assert ProviderError("groq", "timeout").transient is False

    @pytest.mark.asyncio
    async def test_huggingface_list_response(self):
        body = [{"generated_text": '["First title", "Second title"]'}]
        provider = HuggingFaceProvider(
            api_key="k",
            transport=recording_transport([(200, {"json": body})], []),
        )

        titles = await provider.generate_titles("wind", 5)
        await provider.aclose()

        assert titles == ["First title", "Second title"]


class TestParseRewriteResponse:
    """Tests for model output parsing."""

    def test_untagged_response_uses_first_line_as_title(self):
        title, content, meta, keywords = parse_rewrite_response("# My Title\nFirst paragraph.\nSecond paragraph.")
        assert title == "My Title"
        assert content == "First paragraph.\nSecond paragraph."
        assert meta is None
        assert keywords == []

    def test_empty_response_rejected(self):
        with pytest.raises(ValueError):
            parse_rewrite_response("   ")

    def test_keywords_from_string_or_list(self):
        assert parse_keywords("wind, energy ,") == ["wind", "energy"]
        assert parse_keywords([" wind", "", "grid"]) == ["wind", "grid"]
        assert parse_keywords(None) == []
        assert parse_keywords(42) == []


class TestLocalTemplateProvider:
    """Tests for the offline template backend."""

    @pytest.mark.asyncio
    async def test_rewrite_fills_metadata(self):
        provider = LocalTemplateProvider()
        output = await provider.rewrite("offshore wind", WritingStyle.JOURNALISTIC, TargetAudience.GENERAL, 400)

        assert output.title == "offshore wind: A Complete Guide"
        assert "<h2>Background</h2>" in output.content
        assert output.meta_description
        assert "offshore" in output.keywords

    @pytest.mark.asyncio
    async def test_titles_and_meta(self):
        provider = LocalTemplateProvider()

        titles = await provider.generate_titles("Solar", 3)
        meta = await provider.generate_meta("<p>Solar panels are getting cheaper every year across markets.</p>")

        assert len(titles) == 3
        assert all("Solar" in t for t in titles)
        assert meta.meta_description.startswith("Solar panels")
        assert len(meta.meta_title) <= 60
        assert (await provider.health_check())["status"] == "healthy"


class TestProviderRegistry:
    """Tests for id-based provider selection."""

    def test_unknown_provider(self):
        registry = ProviderRegistry()
        with pytest.raises(ProviderError) as exc_info:
            registry.get("nope")
        assert exc_info.value.reason == "unknown_provider"

    def test_get_returns_shared_instance(self):
        registry = ProviderRegistry()
        registry.register("local", LocalTemplateProvider)

        assert registry.get("local") is registry.get("local")
        assert registry.create("local") is not registry.get("local")
        assert registry.unknown(["local", "x"]) == ["x"]

    @pytest.mark.asyncio
    async def test_default_registry(self):
        registry = ProviderRegistry.default(Settings(groq_api_key="k"))

        assert registry.list_providers() == ["gemini", "groq", "cohere", "huggingface", "local"]
        assert registry.get("groq").api_key == "k"
        health = await registry.health()
        assert health["gemini"]["status"] == "not_configured"
        assert health["groq"]["status"] == "configured"
        await registry.aclose()
