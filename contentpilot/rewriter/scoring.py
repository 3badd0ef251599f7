"""Deterministic quality heuristic used to rank successful rewrites."""

import re

from contentpilot.core.utils import count_words, strip_tags

BASE_SCORE = 70


def quality_score(content: str, target_word_count: int) -> float:
    """
    Score rewritten content between 0 and 100.

    Rewards hitting the target length, having subheadings, having several
    substantial paragraphs, and an average sentence length of 10-25 words.
    """
    if not content or not content.strip():
        return 0.0

    score = BASE_SCORE
    text = strip_tags(content)
    words = count_words(text)

    ratio = words / max(target_word_count, 1)
    if 0.8 <= ratio <= 1.2:
        score += 10
    elif 0.6 <= ratio <= 1.4:
        score += 5

    if '##' in content or '<h2' in content or '<h3' in content:
        score += 5

    blocks = [b for b in re.split(r'\n\s*\n+', content) if len(b.strip()) > 50]
    html_paragraphs = [p for p in re.findall(r'<p[^>]*>(.*?)</p>', content, re.DOTALL) if len(p.strip()) > 50]
    if max(len(blocks), len(html_paragraphs)) >= 3:
        score += 5

    sentences = [s for s in re.split(r'[.!?؟]', text) if s.strip()]
    if sentences:
        avg_sentence = sum(len(s.split()) for s in sentences) / len(sentences)
        if 10 <= avg_sentence <= 25:
            score += 5

    return float(min(100, score))
