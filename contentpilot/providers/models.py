"""Value types shared by every provider adapter."""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class WritingStyle(str, Enum):
    """Tone requested from the rewrite."""
    FORMAL = "formal"
    INFORMAL = "informal"
    ACADEMIC = "academic"
    JOURNALISTIC = "journalistic"


class TargetAudience(str, Enum):
    """Readership the rewrite is aimed at."""
    GENERAL = "general"
    EXPERT = "expert"
    CHILDREN = "children"
    YOUTH = "youth"


class RewriteOutput(BaseModel):
    """Output of ``ProviderAdapter.rewrite``."""

    model_config = ConfigDict(frozen=True)

    title: str
    content: str
    meta_description: str = ""
    keywords: List[str] = Field(default_factory=list)


class MetaOutput(BaseModel):
    """Output of ``ProviderAdapter.generate_meta``."""

    model_config = ConfigDict(frozen=True)

    meta_title: str
    meta_description: str
    keywords: List[str] = Field(default_factory=list)
