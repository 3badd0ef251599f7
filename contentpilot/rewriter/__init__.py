"""Concurrent multi-provider rewriting."""

from .models import RewriteConfig, RewriteJob, RewriteResult
from .orchestrator import MultiModelOrchestrator
from .scoring import quality_score

__all__ = [
    "RewriteConfig",
    "RewriteJob",
    "RewriteResult",
    "MultiModelOrchestrator",
    "quality_score",
]
