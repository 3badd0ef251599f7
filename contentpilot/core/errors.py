"""Error taxonomy shared by the extraction, rewrite and publishing stages.

Every error carries a ``kind`` (stable machine-readable string that ends up in
results and log entries) and a ``retryable`` flag the scheduler uses to decide
between the retry/backoff path and an immediate ``failed`` entry.
"""

from typing import Optional


class ContentPilotError(Exception):
    """Base class for all expected pipeline failures."""

    kind: str = "error"
    retryable: bool = False

    def __init__(self, message: str = "", *, kind: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class InvalidURLError(ContentPilotError):
    """Input could not be normalized into a fetchable http(s) URL."""

    kind = "InvalidURL"
    retryable = False


class FetchError(ContentPilotError):
    """Network-level failure while fetching a source document."""

    kind = "network"
    retryable = True


class HttpError(FetchError):
    """Source responded with a non-2xx status."""

    kind = "http_error"

    def __init__(self, message: str = "", *, status_code: int = 0, kind: Optional[str] = None):
        super().__init__(message, kind=kind)
        self.status_code = status_code


class ProviderError(ContentPilotError):
    """Normalized failure from a single AI backend."""

    kind = "provider_error"
    retryable = True

    def __init__(self, provider_id: str, reason: str, message: str = "", *, transient: bool = False):
        super().__init__(message or reason, kind=reason)
        self.provider_id = provider_id
        self.reason = reason
        # Worth retrying within the same adapter call (429, 5xx, network)
        self.transient = transient

    def __str__(self) -> str:
        return f"{self.provider_id}: {self.message}"


class RewriteError(ContentPilotError):
    """No provider produced a usable rewrite for a job."""

    kind = "rewrite_failed"
    retryable = True


class SchedulerConfigError(ContentPilotError):
    """Auto-publish settings are unusable; scheduling halts until corrected."""

    kind = "config_error"
    retryable = False


class PersistenceError(ContentPilotError):
    """Saving an article or log entry failed."""

    kind = "persistence_error"
    retryable = True
