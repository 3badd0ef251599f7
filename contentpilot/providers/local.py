"""
Template-based backend.

Generates deterministic article content without external API calls. Useful
for development, testing, and when every remote backend is unavailable.
"""

import asyncio
import time
from typing import Any, Dict, List

from contentpilot.core.logging import get_logger
from contentpilot.core.utils import clean_text, strip_tags, truncate_at_word
from .base import ProviderAdapter
from .models import MetaOutput, RewriteOutput, TargetAudience, WritingStyle

logger = get_logger(__name__)

TITLE_TEMPLATES = [
    "{topic}: A Complete Guide",
    "Everything You Need to Know About {topic}",
    "{topic} Explained",
    "Understanding {topic} in Practice",
    "Why {topic} Matters Today",
    "{topic}: Key Facts and Trends",
    "A Practical Introduction to {topic}",
    "The Essentials of {topic}",
    "{topic}: What Changed and What's Next",
    "How {topic} Works",
]

SECTION_HEADINGS = ["Background", "Key points", "What it means", "Looking ahead"]

STYLE_OPENERS = {
    WritingStyle.FORMAL: "This article examines",
    WritingStyle.INFORMAL: "Let's take a look at",
    WritingStyle.ACADEMIC: "The following analysis considers",
    WritingStyle.JOURNALISTIC: "Here is the story behind",
}


class LocalTemplateProvider(ProviderAdapter):
    """Offline backend that restructures the source into a templated article."""

    def __init__(self, delay_seconds: float = 0.0):
        self.delay_seconds = delay_seconds
        self.call_count = 0
        self.total_processing_time = 0.0

    @property
    def provider_id(self) -> str:
        return "local"

    async def health_check(self) -> Dict[str, Any]:
        """Always healthy for the template backend."""
        return {
            "status": "healthy",
            "provider": self.provider_id,
            "calls_made": self.call_count,
            "avg_response_time": self.total_processing_time / max(self.call_count, 1),
        }

    async def rewrite(
        self,
        content: str,
        style: WritingStyle,
        audience: TargetAudience,
        target_word_count: int,
    ) -> RewriteOutput:
        start_time = time.time()
        self.call_count += 1
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        source = strip_tags(content)
        topic = truncate_at_word(source, 60, suffix="") or "Untitled"
        title = TITLE_TEMPLATES[0].format(topic=topic)

        words = source.split()
        per_section = max(1, target_word_count // len(SECTION_HEADINGS))
        opener = STYLE_OPENERS.get(WritingStyle(style), STYLE_OPENERS[WritingStyle.FORMAL])

        parts = [f"<p>{opener} {clean_text(topic)}.</p>"]
        for index, heading in enumerate(SECTION_HEADINGS):
            chunk = words[index * per_section:(index + 1) * per_section]
            if not chunk:
                chunk = topic.split()
            parts.append(f"<h2>{heading}</h2>")
            parts.append(f"<p>{' '.join(chunk)}</p>")

        body = "\n".join(parts)
        self.total_processing_time += time.time() - start_time
        logger.debug(f"Local template rewrite produced {len(body.split())} tokens for '{topic}'")
        return self.complete_output(title, body)

    async def generate_titles(self, topic: str, count: int = 10) -> List[str]:
        topic = clean_text(topic) or "Untitled"
        return [template.format(topic=topic) for template in TITLE_TEMPLATES[:count]]

    async def generate_meta(self, content: str) -> MetaOutput:
        return self.derive_meta(content)
