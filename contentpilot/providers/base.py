"""
Provider adapter interface.

Every AI backend implements the same three operations. Authentication,
endpoints and payload shapes stay inside the adapter; failures surface only as
``ProviderError``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from contentpilot.core.seo import extract_keywords, meta_description_from, meta_title_from
from .models import MetaOutput, RewriteOutput, TargetAudience, WritingStyle


class ProviderAdapter(ABC):
    """Abstract base class for AI backends."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Registry identifier of this backend."""

    @abstractmethod
    async def rewrite(
        self,
        content: str,
        style: WritingStyle,
        audience: TargetAudience,
        target_word_count: int,
    ) -> RewriteOutput:
        """
        Rewrite source content.

        Args:
            content: Source text (may be a bare topic string)
            style: Requested writing style
            audience: Requested audience
            target_word_count: Approximate length of the output

        Returns:
            RewriteOutput with title, content, meta description and keywords

        Raises:
            ProviderError: on any backend failure
        """

    @abstractmethod
    async def generate_titles(self, topic: str, count: int = 10) -> List[str]:
        """Suggest up to ``count`` titles for a topic."""

    @abstractmethod
    async def generate_meta(self, content: str) -> MetaOutput:
        """Derive meta title, meta description and keywords for content."""

    async def health_check(self) -> Dict[str, Any]:
        """Report whether the backend is usable."""
        return {"provider": self.provider_id, "status": "unknown"}

    async def aclose(self) -> None:
        """Release network resources."""

    @staticmethod
    def complete_output(title: str, content: str, meta_description: str = "", keywords: List[str] = None) -> RewriteOutput:
        """Fill in metadata a backend did not return."""
        return RewriteOutput(
            title=title,
            content=content,
            meta_description=meta_description or meta_description_from(content),
            keywords=list(keywords) if keywords else extract_keywords(content),
        )

    @staticmethod
    def derive_meta(content: str, title: str = "") -> MetaOutput:
        """Local metadata derivation, used by the template backend and as fallback."""
        return MetaOutput(
            meta_title=meta_title_from(title or meta_description_from(content)),
            meta_description=meta_description_from(content),
            keywords=extract_keywords(content, max_keywords=15),
        )
