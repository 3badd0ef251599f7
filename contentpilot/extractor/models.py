"""Pydantic models produced by the content extractor."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from contentpilot.core.errors import ContentPilotError, FetchError, HttpError, InvalidURLError


class SourceDocument(BaseModel):
    """Normalized page content. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Final URL after normalization")
    title: str = Field("", description="Page title")
    body_text: str = Field("", description="Cleaned dominant text block")
    word_count: int = Field(0, ge=0, description="Whitespace-delimited token count of body_text")
    extracted_at: datetime = Field(..., description="Extraction time (UTC)")

    # Metadata harvested from <meta> tags
    description: Optional[str] = None
    language: Optional[str] = None
    site_name: Optional[str] = None
    published_at: Optional[str] = None
    images: List[str] = Field(default_factory=list)


class ExtractionResult(BaseModel):
    """Structured success/failure outcome of ``extract_from_url``."""

    model_config = ConfigDict(frozen=True)

    success: bool
    document: Optional[SourceDocument] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    retryable: bool = False

    @classmethod
    def ok(cls, document: SourceDocument) -> "ExtractionResult":
        return cls(success=True, document=document)

    @classmethod
    def from_error(cls, exc: ContentPilotError) -> "ExtractionResult":
        return cls(
            success=False,
            error_kind=exc.kind,
            error=exc.message or exc.kind,
            status_code=getattr(exc, "status_code", None),
            retryable=exc.retryable,
        )

    def raise_for_error(self) -> SourceDocument:
        """Return the document, or raise the typed error this result describes."""
        if self.success and self.document is not None:
            return self.document
        message = self.error or self.error_kind or "extraction failed"
        if self.error_kind == InvalidURLError.kind:
            raise InvalidURLError(message)
        if self.status_code:
            raise HttpError(message, status_code=self.status_code)
        raise FetchError(message, kind=self.error_kind)
