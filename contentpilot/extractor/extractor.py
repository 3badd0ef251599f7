"""URL to SourceDocument extraction."""

from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from contentpilot.core.errors import ContentPilotError, InvalidURLError
from contentpilot.core.logging import get_logger
from contentpilot.core.settings import get_settings
from contentpilot.core.time import get_current_utc_time
from contentpilot.core.utils import count_words
from .fetcher import PageFetcher
from .models import ExtractionResult, SourceDocument
from .parser import BlockScorer, decode_html, density_score, parse_document

logger = get_logger(__name__)


def normalize_input_url(value: Optional[str]) -> str:
    """
    Turn user input into an absolute http(s) URL.

    A missing scheme gets ``https://``. The host must be ``localhost``, an IP
    literal, or contain a dot.

    Raises:
        InvalidURLError: for empty or unparsable input
    """
    candidate = (value or "").strip()
    if not candidate:
        raise InvalidURLError("URL is empty")
    if any(ch.isspace() for ch in candidate):
        raise InvalidURLError(f"URL contains whitespace: {candidate!r}")

    if "://" not in candidate:
        candidate = "https://" + candidate

    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
        port = parts.port
    except ValueError as e:
        raise InvalidURLError(f"Unparsable URL: {value!r}") from e

    if parts.scheme.lower() not in ("http", "https"):
        raise InvalidURLError(f"Unsupported scheme: {parts.scheme!r}")
    if not hostname:
        raise InvalidURLError(f"URL has no host: {value!r}")
    if hostname != "localhost" and "." not in hostname and ":" not in hostname:
        raise InvalidURLError(f"Host is not a domain: {hostname!r}")
    if port is not None and not 0 < port < 65536:
        raise InvalidURLError(f"Invalid port: {port}")

    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, ""))


class ContentExtractor:
    """
    Fetches a URL and reduces it to a ``SourceDocument``.

    Expected failures (invalid input, HTTP errors, timeouts, oversized bodies)
    come back as ``ExtractionResult(success=False)``; nothing is raised for them.
    """

    def __init__(
        self,
        fetcher: Optional[PageFetcher] = None,
        scorer: BlockScorer = density_score,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if fetcher is None:
            settings = get_settings()
            fetcher = PageFetcher(
                timeout=settings.extractor_timeout_seconds,
                max_bytes=settings.extractor_max_bytes,
                user_agent=settings.extractor_user_agent,
                transport=transport,
            )
        self.fetcher = fetcher
        self.scorer = scorer

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.fetcher.aclose()

    async def extract_from_url(self, url_input: Optional[str]) -> ExtractionResult:
        """
        Extract the main content of a page.

        Args:
            url_input: URL, with or without scheme

        Returns:
            ExtractionResult wrapping a SourceDocument or the failure kind
        """
        try:
            url = normalize_input_url(url_input)
        except InvalidURLError as e:
            logger.info(f"Rejected URL input {url_input!r}: {e.message}")
            return ExtractionResult.from_error(e)

        try:
            page = await self.fetcher.fetch(url)
        except ContentPilotError as e:
            logger.warning(
                f"Extraction fetch failed for {url}: {e.message}",
                extra={"url": url, "error_kind": e.kind}
            )
            return ExtractionResult.from_error(e)

        html = decode_html(page.content, page.charset)
        parsed = parse_document(html, page.url, self.scorer)

        document = SourceDocument(
            url=page.url,
            title=parsed.title,
            body_text=parsed.body_text,
            word_count=count_words(parsed.body_text),
            extracted_at=get_current_utc_time(),
            description=parsed.description,
            language=parsed.language,
            site_name=parsed.site_name,
            published_at=parsed.published_at,
            images=list(parsed.images),
        )

        logger.info(
            f"Extracted {document.word_count} words from {document.url}",
            extra={"url": document.url, "word_count": document.word_count}
        )
        return ExtractionResult.ok(document)
