"""Shared fixtures for the ContentPilot test suite."""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

import pytest

from contentpilot.core.errors import ProviderError
from contentpilot.providers.base import ProviderAdapter
from contentpilot.providers.models import MetaOutput, RewriteOutput
from contentpilot.providers.registry import ProviderRegistry

ARTICLE_BODY = (
    "<p>Offshore wind capacity grew sharply last year as new turbines came online "
    "along the northern coast. Operators reported record output during the winter.</p>\n\n"
    "<h2>Grid impact</h2>\n\n"
    "<p>Grid operators said the additional supply reduced reliance on gas plants during "
    "peak hours. Analysts expect the trend to continue through the decade.</p>\n\n"
    "<p>Several new projects are scheduled to start construction next spring, pending "
    "final permits from regional authorities and local councils.</p>"
)


class FakeProvider(ProviderAdapter):
    """Scriptable in-process provider."""

    def __init__(
        self,
        provider_id: str,
        delay: float = 0.0,
        fail_reason: Optional[str] = None,
        title: str = "Generated title",
        content: str = ARTICLE_BODY,
        exception: Optional[Exception] = None,
    ):
        self._provider_id = provider_id
        self.delay = delay
        self.fail_reason = fail_reason
        self.title = title
        self.content = content
        self.exception = exception
        self.calls: List[str] = []
        self.meta_calls = 0

    @property
    def provider_id(self) -> str:
        return self._provider_id

    async def rewrite(self, content, style, audience, target_word_count):
        self.calls.append(content)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exception is not None:
            raise self.exception
        if self.fail_reason:
            raise ProviderError(self.provider_id, self.fail_reason, f"simulated {self.fail_reason}")
        return RewriteOutput(title=self.title, content=self.content)

    async def generate_titles(self, topic, count=10):
        return [f"{topic} {i}" for i in range(count)]

    async def generate_meta(self, content):
        self.meta_calls += 1
        if self.fail_reason:
            raise ProviderError(self.provider_id, self.fail_reason, "simulated")
        return MetaOutput(meta_title="Meta title", meta_description="Meta description", keywords=["wind"])


def build_registry(*providers: FakeProvider) -> ProviderRegistry:
    registry = ProviderRegistry()
    for provider in providers:
        registry.register(provider.provider_id, lambda p=provider: p)
    return registry


@pytest.fixture
def fake_provider():
    """Factory for scriptable providers."""
    return FakeProvider


@pytest.fixture
def registry_of():
    """Build a registry from FakeProvider instances."""
    return build_registry


@pytest.fixture
def day1():
    """Fixed morning timestamp used as 'now' in scheduler tests."""
    return datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
