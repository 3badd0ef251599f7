"""AI provider adapters and the registry that selects them by id."""

from .base import ProviderAdapter
from .http import HttpProviderAdapter
from .models import MetaOutput, RewriteOutput, TargetAudience, WritingStyle
from .registry import ProviderRegistry
from .gemini import GeminiProvider
from .groq import GroqProvider
from .cohere import CohereProvider
from .huggingface import HuggingFaceProvider
from .local import LocalTemplateProvider

__all__ = [
    "ProviderAdapter",
    "HttpProviderAdapter",
    "MetaOutput",
    "RewriteOutput",
    "TargetAudience",
    "WritingStyle",
    "ProviderRegistry",
    "GeminiProvider",
    "GroqProvider",
    "CohereProvider",
    "HuggingFaceProvider",
    "LocalTemplateProvider",
]
