"""
HTML parsing and main-content selection.

Everything here is pure: bytes/str in, values out. The block scorer is a plain
callable so the heuristic can be tuned or replaced without touching the fetch
or pipeline code.
"""

import re
from typing import Callable, List, NamedTuple, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag, UnicodeDammit

from contentpilot.core.utils import clean_text

# Elements dropped before block scoring
BOILERPLATE_TAGS = [
    "script", "style", "noscript", "iframe", "nav", "footer",
    "header", "aside", "form", "svg", "button",
]

BOILERPLATE_SELECTORS = [
    ".ad", ".ads", ".advertisement", ".social-share", ".share",
    ".comments", ".related-posts", ".sidebar", ".cookie-banner",
    '[role="navigation"]', '[role="banner"]', '[role="complementary"]',
]

CANDIDATE_TAGS = ["article", "main", "section", "div", "td", "body"]

# Containers whose semantics already say "main content"
PREFERRED_TAGS = {"article", "main"}

MIN_BLOCK_CHARS = 25
TAG_WEIGHT = 20
MAX_IMAGES = 10

BlockScorer = Callable[[Tag], float]


class ParsedPage(NamedTuple):
    """Values pulled out of one HTML document."""
    title: str
    body_text: str
    description: Optional[str] = None
    language: Optional[str] = None
    site_name: Optional[str] = None
    published_at: Optional[str] = None
    images: List[str] = []


def decode_html(content: bytes, charset_hint: Optional[str] = None) -> str:
    """
    Decode raw bytes, trusting the HTTP charset first and sniffing otherwise.
    """
    if not content:
        return ""
    hints = [charset_hint] if charset_hint else []
    dammit = UnicodeDammit(content, known_definite_encodings=hints, is_html=True)
    if dammit.unicode_markup is not None:
        return dammit.unicode_markup
    return content.decode("utf-8", errors="replace")


def density_score(block: Tag) -> float:
    """
    Score a candidate block by text density.

    Text length is discounted by the block's tag count, so markup-heavy blocks
    (menus, link lists, widgets) lose to long runs of prose. Link text counts
    against the block.
    """
    text = block.get_text(" ", strip=True)
    text_len = len(text)
    if text_len < MIN_BLOCK_CHARS:
        return 0.0

    tag_count = len(block.find_all(True)) + 1
    density = text_len / (text_len + tag_count * TAG_WEIGHT)

    link_len = sum(len(a.get_text(" ", strip=True)) for a in block.find_all("a"))
    link_penalty = 1.0 - min(link_len / text_len, 1.0)

    score = text_len * density * link_penalty
    if block.name in PREFERRED_TAGS or block.get("role") == "main":
        score *= 1.25
    return score


def select_main_block(soup: BeautifulSoup, scorer: BlockScorer = density_score) -> Optional[Tag]:
    """Return the highest-scoring candidate block; earliest wins ties."""
    best: Optional[Tag] = None
    best_score = 0.0
    for block in soup.find_all(CANDIDATE_TAGS):
        score = scorer(block)
        if score > best_score:
            best = block
            best_score = score
    return best


def extract_title(soup: BeautifulSoup) -> str:
    """Prefer <title>, then og:title, then the first <h1>."""
    if soup.title and soup.title.get_text(strip=True):
        return clean_text(soup.title.get_text())

    og_title = _meta_content(soup, prop="og:title")
    if og_title:
        return og_title

    h1 = soup.find("h1")
    if h1 and h1.get_text(strip=True):
        return clean_text(h1.get_text(" "))
    return ""


def strip_boilerplate(soup: BeautifulSoup) -> None:
    """Remove boilerplate elements in place."""
    for element in soup(BOILERPLATE_TAGS):
        element.decompose()
    for selector in BOILERPLATE_SELECTORS:
        for element in soup.select(selector):
            element.decompose()


def parse_document(html: str, url: str, scorer: BlockScorer = density_score) -> ParsedPage:
    """
    Parse an HTML document into title, cleaned main text and metadata.

    Args:
        html: Decoded HTML
        url: Page URL, used to resolve relative image links
        scorer: Block scoring function

    Returns:
        ParsedPage
    """
    soup = BeautifulSoup(html or "", "html.parser")

    title = extract_title(soup)
    description = _meta_content(soup, name="description") or _meta_content(soup, prop="og:description")
    site_name = _meta_content(soup, prop="og:site_name") or urlparse(url).hostname
    language = _extract_language(soup)
    published_at = _extract_published_at(soup)

    strip_boilerplate(soup)
    images = _extract_images(soup, url)

    block = select_main_block(soup, scorer)
    if block is not None:
        body_text = clean_text(block.get_text(" "))
    else:
        body_text = clean_text(soup.get_text(" "))

    return ParsedPage(
        title=title,
        body_text=body_text,
        description=description,
        language=language,
        site_name=site_name,
        published_at=published_at,
        images=images,
    )


def _meta_content(soup: BeautifulSoup, name: Optional[str] = None, prop: Optional[str] = None) -> Optional[str]:
    attrs = {"name": name} if name else {"property": prop}
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        value = clean_text(tag["content"])
        return value or None
    return None


def _extract_language(soup: BeautifulSoup) -> Optional[str]:
    html_tag = soup.find("html")
    if html_tag and html_tag.get("lang"):
        return html_tag["lang"].strip()
    tag = soup.find("meta", attrs={"http-equiv": re.compile("^content-language$", re.I)})
    if tag and tag.get("content"):
        return tag["content"].strip()
    return None


def _extract_published_at(soup: BeautifulSoup) -> Optional[str]:
    value = _meta_content(soup, prop="article:published_time")
    if value:
        return value
    for name in ("date", "DC.date.issued"):
        value = _meta_content(soup, name=name)
        if value:
            return value
    time_tag = soup.find("time", attrs={"datetime": True})
    if time_tag:
        return time_tag["datetime"].strip() or None
    return None


def _extract_images(soup: BeautifulSoup, base_url: str) -> List[str]:
    images: List[str] = []
    seen = set()

    og_image = _meta_content(soup, prop="og:image")
    candidates = [og_image] if og_image else []
    for img in soup.find_all("img"):
        candidates.append(img.get("src") or img.get("data-src"))

    for src in candidates:
        if not src:
            continue
        full_url = urljoin(base_url, src.strip())
        if full_url in seen or not _is_content_image(full_url):
            continue
        seen.add(full_url)
        images.append(full_url)
        if len(images) >= MAX_IMAGES:
            break
    return images


def _is_content_image(url: str) -> bool:
    lowered = url.lower()
    if not lowered.startswith(("http://", "https://")):
        return False
    if any(marker in lowered for marker in ("icon", "logo", "avatar", "1x1", "pixel")):
        return False
    return True

