"""Append-only publish log."""

import uuid
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contentpilot.core.logging import get_logger
from contentpilot.core.time import localize, normalize_timezone, parse_timestamp

logger = get_logger(__name__)


class PublishStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    RETRY = "retry"


class PublishLogEntry(BaseModel):
    """One scheduler outcome. Never updated or deleted once appended."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime
    status: PublishStatus
    topic: str
    article_id: Optional[str] = None
    error_message: Optional[str] = None
    attempt_number: int = Field(default=1, ge=1)

    @field_validator('timestamp', mode='before')
    @classmethod
    def validate_timestamp(cls, v):
        """Store timestamps as aware UTC."""
        return parse_timestamp(v)


class PublishLog:
    """
    Read/append facade over a ``PublishLogStore``.

    There are no update or delete operations; retention is handled outside
    the core.
    """

    def __init__(self, store):
        self.store = store

    @staticmethod
    def new_entry(
        status: Union[PublishStatus, str],
        topic: str,
        timestamp: datetime,
        attempt_number: int = 1,
        article_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> PublishLogEntry:
        return PublishLogEntry(
            timestamp=timestamp,
            status=PublishStatus(status),
            topic=topic,
            article_id=article_id,
            error_message=error_message,
            attempt_number=attempt_number,
        )

    async def append(self, entry: PublishLogEntry) -> PublishLogEntry:
        await self.store.append(entry)
        logger.info(
            f"Publish log: {entry.status.value} for '{entry.topic}' (attempt {entry.attempt_number})",
            extra={"topic": entry.topic, "status": entry.status.value, "article_id": entry.article_id},
        )
        return entry

    async def query(self, limit: int = 30, status: Optional[Union[PublishStatus, str]] = None) -> List[PublishLogEntry]:
        """
        Most recent entries first.

        Args:
            limit: Maximum number of entries
            status: Only entries with this status
        """
        return await self.store.query(
            limit=max(0, limit),
            status=PublishStatus(status) if status else None,
        )

    async def has_success(self, topic: str, day: date, tz_name: Optional[str] = None) -> bool:
        """True if ``topic`` was published successfully on local calendar ``day``."""
        start = normalize_timezone(localize(day, time.min, tz_name))
        end = normalize_timezone(localize(day + timedelta(days=1), time.min, tz_name)) - timedelta(microseconds=1)
        entries = await self.store.query(
            limit=1,
            status=PublishStatus.SUCCESS,
            topic=topic,
            start=start,
            end=end,
        )
        return bool(entries)
