"""
Utility functions for ContentPilot.

Text normalization, word counting, slug generation and URL heuristics shared
by the extractor, the rewriter and the scheduler.
"""

import re
import unicodedata
from typing import List


URL_LIKE_PATTERN = re.compile(
    r'^(https?://)?([a-z0-9-]+\.)+[a-z]{2,}(:\d+)?(/\S*)?$',
    re.IGNORECASE
)


def slugify(text: str, max_length: int = 80) -> str:
    """
    Convert text to URL-safe slug.

    Args:
        text: Text to convert
        max_length: Maximum slug length

    Returns:
        URL-safe slug
    """
    if not text:
        return ""

    normalized = unicodedata.normalize('NFKD', text)
    ascii_only = normalized.encode('ascii', 'ignore').decode('ascii')

    slug = re.sub(r'[^a-z0-9]+', '-', ascii_only.lower())
    slug = re.sub(r'-+', '-', slug.strip('-'))

    if len(slug) > max_length:
        # Break at word boundary when one is reasonably close to the end
        truncated = slug[:max_length]
        last_hyphen = truncated.rfind('-')
        if last_hyphen > max_length * 0.7:
            slug = truncated[:last_hyphen]
        else:
            slug = truncated

    return slug or "article"


def clean_text(text: str) -> str:
    """
    Clean text content by removing extra whitespace and normalizing.

    Args:
        text: Text to clean

    Returns:
        Cleaned text
    """
    if not text:
        return ""

    text = unicodedata.normalize('NFKC', text)
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def strip_tags(content: str) -> str:
    """Remove HTML tags and collapse whitespace."""
    if not content:
        return ""
    return clean_text(re.sub(r'<[^>]+>', ' ', content))


def count_words(text: str) -> int:
    """Count whitespace-delimited tokens."""
    if not text:
        return 0
    return len(text.split())


def truncate_at_word(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate text to ``max_length`` characters, cutting at the last space.

    The suffix counts towards the limit.
    """
    if not text or len(text) <= max_length:
        return text or ""

    target = max_length - len(suffix)
    truncated = text[:target]
    last_space = truncated.rfind(' ')
    if last_space > target * 0.5:
        truncated = truncated[:last_space]
    return truncated.rstrip(' ,;:') + suffix


def looks_like_url(value: str) -> bool:
    """
    Heuristic check whether a topic string is a URL rather than a keyword.

    Anything with an explicit scheme counts; otherwise a bare host such as
    ``example.com/path`` without spaces does.
    """
    if not value:
        return False
    candidate = value.strip()
    if re.match(r'^[a-z][a-z0-9+.-]*://', candidate, re.IGNORECASE):
        return True
    if ' ' in candidate:
        return False
    return bool(URL_LIKE_PATTERN.match(candidate))


def split_csv(value: str) -> List[str]:
    """Split a comma-separated string into trimmed, non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]
