"""
Collaborator contracts used by the scheduler, with in-memory implementations.

The SQLAlchemy-backed implementations live in ``contentpilot.core.repositories``.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from contentpilot.core.time import get_current_utc_time
from .log import PublishLogEntry, PublishStatus
from .settings import AutoPublishSettings


class Article(BaseModel):
    """Article handed to ``ArticleStore.save``."""

    model_config = ConfigDict(frozen=True)

    title: str
    slug: str
    content: str
    meta_title: str = ""
    meta_description: str = ""
    keywords: List[str] = Field(default_factory=list)
    category_id: Optional[str] = None
    topic: str = ""
    source_url: Optional[str] = None
    provider_id: str = ""
    word_count: int = 0
    quality_score: float = 0.0
    created_at: datetime = Field(default_factory=get_current_utc_time)


class SchedulerMarker(BaseModel):
    """Persisted scheduler bookkeeping."""

    last_fired_slot: Optional[str] = None
    cursor: int = 0
    failed_topics: List[str] = Field(default_factory=list)
    requeued_topics: List[str] = Field(default_factory=list)


class ArticleStore(Protocol):
    async def save(self, article: Article) -> str: ...


class PublishLogStore(Protocol):
    async def append(self, entry: PublishLogEntry) -> None: ...

    async def query(
        self,
        limit: Optional[int] = None,
        status: Optional[PublishStatus] = None,
        topic: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[PublishLogEntry]: ...


class AutoPublishSettingsStore(Protocol):
    async def get(self) -> AutoPublishSettings: ...

    async def update(self, partial: Dict[str, Any]) -> AutoPublishSettings: ...


class SchedulerStateStore(Protocol):
    async def load(self) -> SchedulerMarker: ...

    async def save(self, marker: SchedulerMarker) -> None: ...


class InMemoryArticleStore:
    def __init__(self):
        self.articles: Dict[str, Article] = {}

    async def save(self, article: Article) -> str:
        article_id = uuid.uuid4().hex
        self.articles[article_id] = article
        return article_id


class InMemoryPublishLogStore:
    def __init__(self):
        self.entries: List[PublishLogEntry] = []

    async def append(self, entry: PublishLogEntry) -> None:
        self.entries.append(entry)

    async def query(
        self,
        limit: Optional[int] = None,
        status: Optional[PublishStatus] = None,
        topic: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[PublishLogEntry]:
        matched = [
            entry for entry in reversed(self.entries)
            if (status is None or entry.status == status)
            and (topic is None or entry.topic == topic)
            and (start is None or entry.timestamp >= start)
            and (end is None or entry.timestamp <= end)
        ]
        # Newest first; among equal timestamps the later append comes first
        matched.sort(key=lambda entry: entry.timestamp, reverse=True)
        return matched if limit is None else matched[:limit]


class InMemorySettingsStore:
    def __init__(self, settings: Optional[AutoPublishSettings] = None):
        self.settings = settings or AutoPublishSettings()

    async def get(self) -> AutoPublishSettings:
        return self.settings

    async def update(self, partial: Dict[str, Any]) -> AutoPublishSettings:
        self.settings = self.settings.merged(partial)
        return self.settings


class InMemorySchedulerStateStore:
    def __init__(self, marker: Optional[SchedulerMarker] = None):
        self.marker = marker or SchedulerMarker()

    async def load(self) -> SchedulerMarker:
        return self.marker.model_copy(deep=True)

    async def save(self, marker: SchedulerMarker) -> None:
        self.marker = marker.model_copy(deep=True)
