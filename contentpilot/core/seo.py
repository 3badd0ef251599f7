"""
Local SEO helpers.

Used when a backend returns content without metadata, and by the template
provider which never calls out to a model.
"""

import re
from collections import Counter
from typing import List

from .utils import clean_text, strip_tags, truncate_at_word

META_TITLE_MAX = 60
META_DESCRIPTION_MAX = 160

ENGLISH_STOPWORDS = {
    'the', 'and', 'for', 'that', 'with', 'this', 'from', 'are', 'was', 'were',
    'have', 'has', 'had', 'not', 'but', 'you', 'your', 'they', 'their', 'there',
    'what', 'when', 'which', 'will', 'would', 'about', 'into', 'than', 'then',
    'them', 'these', 'those', 'been', 'being', 'also', 'more', 'most', 'such',
    'some', 'only', 'other', 'over', 'very', 'can', 'could', 'should', 'its',
}


def extract_keywords(content: str, max_keywords: int = 10, min_length: int = 4) -> List[str]:
    """
    Most frequent content words, ties broken by first appearance.

    Args:
        content: Plain text or HTML
        max_keywords: Number of keywords to return
        min_length: Minimum word length to consider
    """
    text = strip_tags(content).lower()
    words = [
        word for word in re.findall(r"[^\W\d_]+", text)
        if len(word) >= min_length and word not in ENGLISH_STOPWORDS
    ]
    counts = Counter(words)
    first_seen = {}
    for index, word in enumerate(words):
        first_seen.setdefault(word, index)
    ranked = sorted(counts, key=lambda w: (-counts[w], first_seen[w]))
    return ranked[:max_keywords]


def meta_description_from(content: str, max_length: int = META_DESCRIPTION_MAX) -> str:
    """First paragraph (or leading text) trimmed to ``max_length`` at a word boundary."""
    match = re.search(r'<p[^>]*>(.*?)</p>', content or "", re.IGNORECASE | re.DOTALL)
    source = strip_tags(match.group(1)) if match else strip_tags(content)
    return truncate_at_word(source, max_length)


def meta_title_from(title: str, max_length: int = META_TITLE_MAX) -> str:
    return truncate_at_word(clean_text(title), max_length)
