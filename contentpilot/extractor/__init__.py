"""Content extraction package.

- fetcher: bounded HTTP page fetching (fetcher.py)
- parser: encoding detection, boilerplate removal and density scoring (parser.py)
- extractor: URL normalization and the ContentExtractor entry point (extractor.py)
"""

from .models import SourceDocument, ExtractionResult
from .fetcher import PageFetcher, FetchedPage
from .parser import density_score, parse_document
from .extractor import ContentExtractor, normalize_input_url

__all__ = [
    "SourceDocument",
    "ExtractionResult",
    "PageFetcher",
    "FetchedPage",
    "density_score",
    "parse_document",
    "ContentExtractor",
    "normalize_input_url",
]
