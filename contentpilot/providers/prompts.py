"""Prompt templates and response parsing shared by the HTTP backends."""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from .models import TargetAudience, WritingStyle

STYLE_PROMPTS = {
    WritingStyle.FORMAL: "Use formal, professional language with precise terminology.",
    WritingStyle.INFORMAL: "Use simple, friendly language that feels close to the reader.",
    WritingStyle.ACADEMIC: "Use an academic register with specialised terminology and references.",
    WritingStyle.JOURNALISTIC: "Use an engaging journalistic style with strong subheadings.",
}

AUDIENCE_PROMPTS = {
    TargetAudience.GENERAL: "Write for a general audience in clear, accessible language.",
    TargetAudience.EXPERT: "Write for specialists, including deep technical detail.",
    TargetAudience.CHILDREN: "Write for children using very simple words and short sentences.",
    TargetAudience.YOUTH: "Write for young readers in a modern, lively tone.",
}

SYSTEM_PROMPT = (
    "You are a professional content writer. Produce complete, well structured "
    "articles in clean HTML using <p>, <h2>, <h3>, <ul>, <ol>, <li>, <strong> and <em> only."
)


def build_rewrite_prompt(
    content: str,
    style: WritingStyle,
    audience: TargetAudience,
    target_word_count: int,
    title: Optional[str] = None,
) -> str:
    """Prompt asking for a rewrite in the tagged [TITLE]/[CONTENT] format."""
    source_title = f"\n## Original title:\n{title}\n" if title else ""
    return f"""Rewrite the following article.

## Instructions:
- {STYLE_PROMPTS[WritingStyle(style)]}
- {AUDIENCE_PROMPTS[TargetAudience(audience)]}
- Target length: about {target_word_count} words
- Keep the meaning and the main ideas
- Add suitable subheadings and organised paragraphs
- Avoid repetition and filler
{source_title}
## Original content:
{content}

## Output format:
[TITLE]
New title here
[/TITLE]

[CONTENT]
Rewritten content here
[/CONTENT]

[META]
Meta description, at most 160 characters
[/META]

[KEYWORDS]
comma, separated, keywords
[/KEYWORDS]"""


def build_titles_prompt(topic: str, count: int) -> str:
    return f"""Suggest {count} engaging, SEO-optimised titles for an article about: "{topic}"

Requirements:
- unique and varied titles
- between 40 and 60 characters each

Return only a JSON list:
["Title 1", "Title 2", ...]"""


def build_meta_prompt(content: str) -> str:
    return f"""Analyse the following content and extract:

Content:
{content[:2000]}

Required:
1. A meta title (at most 60 characters)
2. A meta description (at most 160 characters)
3. 10 to 15 keywords

Return JSON only:
{{
  "metaTitle": "...",
  "metaDescription": "...",
  "keywords": ["...", "..."]
}}"""


def parse_keywords(value: Any) -> List[str]:
    """Normalize keywords given as a comma-separated string or a list."""
    if not value:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value if item is not None]
    else:
        return []
    return [item.strip() for item in items if item.strip()]


def _tagged_section(text: str, tag: str) -> Optional[str]:
    match = re.search(rf'\[{tag}\]([\s\S]*?)\[/{tag}\]', text)
    return match.group(1).strip() if match else None


def parse_rewrite_response(text: str) -> Tuple[str, str, Optional[str], List[str]]:
    """
    Split a model response into (title, content, meta_description, keywords).

    Falls back to "first line is the title" when the tags are missing.

    Raises:
        ValueError: if the response is empty
    """
    if not text or not text.strip():
        raise ValueError("empty response")

    title = _tagged_section(text, "TITLE")
    content = _tagged_section(text, "CONTENT")
    meta = _tagged_section(text, "META")
    keywords = parse_keywords(_tagged_section(text, "KEYWORDS"))

    if title and content:
        return title, content, meta, keywords

    lines = [line for line in text.split("\n") if line.strip()]
    fallback_title = re.sub(r'^#+\s*', '', lines[0]).strip() if lines else ""
    fallback_content = "\n".join(lines[1:]).strip() or text.strip()
    return fallback_title, fallback_content, meta, keywords


def parse_json_list(text: str) -> List[str]:
    """Pull the first JSON array of strings out of a response."""
    match = re.search(r'\[[\s\S]*\]', text or "")
    if not match:
        raise ValueError("no JSON list in response")
    data = json.loads(match.group(0))
    if not isinstance(data, list):
        raise ValueError("JSON value is not a list")
    return [str(item).strip() for item in data if str(item).strip()]


def parse_json_object(text: str) -> Dict[str, Any]:
    """Pull the first JSON object out of a response."""
    match = re.search(r'\{[\s\S]*\}', text or "")
    if not match:
        raise ValueError("no JSON object in response")
    data = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("JSON value is not an object")
    return data
