"""
Pydantic models for the multi-provider rewriter.

Jobs describe what to rewrite and with which backends; results are immutable
per-provider outcomes whose position matches the requested provider order.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contentpilot.providers.models import TargetAudience, WritingStyle


class RewriteConfig(BaseModel):
    """Per-run rewrite options shared by every provider task."""

    model_config = ConfigDict(frozen=True)

    style: WritingStyle = Field(default=WritingStyle.JOURNALISTIC, description="Writing style")
    audience: TargetAudience = Field(default=TargetAudience.GENERAL, description="Target audience")
    target_word_count: int = Field(default=800, gt=0, description="Approximate output length")
    timeout_seconds: float = Field(default=60.0, gt=0, description="Per-provider timeout")


class RewriteJob(BaseModel):
    """A unit of rewrite work: source material plus the backends to fan out to."""

    source_title: str = Field(default="", description="Title of the source document, if any")
    source_content: str = Field(..., description="Source text or bare topic")
    style: WritingStyle = Field(default=WritingStyle.JOURNALISTIC)
    audience: TargetAudience = Field(default=TargetAudience.GENERAL)
    target_word_count: int = Field(default=800, gt=0)
    provider_ids: List[str] = Field(default_factory=list, description="Ordered backend ids")

    @field_validator('provider_ids')
    @classmethod
    def validate_provider_ids(cls, v):
        """Drop blank ids while preserving order."""
        return [pid.strip() for pid in v if pid and pid.strip()]

    def to_config(self, timeout_seconds: float = 60.0) -> RewriteConfig:
        return RewriteConfig(
            style=self.style,
            audience=self.audience,
            target_word_count=self.target_word_count,
            timeout_seconds=timeout_seconds,
        )


class RewriteResult(BaseModel):
    """Outcome of one provider's rewrite attempt."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    success: bool
    title: Optional[str] = None
    content: Optional[str] = None
    meta_description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    elapsed_ms: int = 0
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    word_count: int = 0
    quality_score: float = 0.0
