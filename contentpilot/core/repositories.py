"""Repository layer for database operations.

SQLAlchemy-backed implementations of the publisher store contracts: articles,
the append-only publish log, the singleton auto-publish settings row and the
scheduler marker. Database failures surface as ``PersistenceError``.
"""

import os
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import yaml
from sqlalchemy import and_, desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from contentpilot.core.errors import PersistenceError
from contentpilot.core.logging import get_logger
from contentpilot.core.models import (
    ArticleRecord,
    AutoPublishSettingsRecord,
    PublishLogRecord,
    SchedulerStateRecord,
)
from contentpilot.core.time import normalize_timezone
from contentpilot.publisher.log import PublishLogEntry, PublishStatus
from contentpilot.publisher.settings import AutoPublishSettings
from contentpilot.publisher.stores import Article, SchedulerMarker

logger = get_logger(__name__)

SINGLETON_ID = 1
SETTINGS_FIELDS = tuple(AutoPublishSettings.model_fields.keys())


def load_settings_seed(path: Optional[str]) -> Dict[str, Any]:
    """
    Read first-run auto-publish settings from a YAML file.

    Args:
        path: Path to the YAML file; missing files yield an empty dict

    Returns:
        Mapping of settings fields found under ``auto_publish`` (or at top level)
    """
    if not path or not os.path.exists(path):
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    section = data.get('auto_publish', data)
    return {k: v for k, v in section.items() if k in SETTINGS_FIELDS}


def _settings_from_record(record: AutoPublishSettingsRecord) -> AutoPublishSettings:
    return AutoPublishSettings.model_validate({
        field: getattr(record, field) for field in SETTINGS_FIELDS
    })


def _entry_from_record(record: PublishLogRecord) -> PublishLogEntry:
    return PublishLogEntry(
        id=record.id,
        timestamp=record.timestamp,
        status=PublishStatus(record.status),
        topic=record.topic,
        article_id=record.article_id,
        error_message=record.error_message,
        attempt_number=record.attempt_number,
    )


class SqlArticleStore:
    """ArticleStore backed by the ``articles`` table."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def save(self, article: Article) -> str:
        article_id = uuid.uuid4().hex
        record = ArticleRecord(
            id=article_id,
            title=article.title,
            slug=article.slug,
            content=article.content,
            meta_title=article.meta_title,
            meta_description=article.meta_description,
            keywords=list(article.keywords),
            category_id=article.category_id,
            topic=article.topic,
            source_url=article.source_url,
            provider_id=article.provider_id,
            word_count=article.word_count,
            quality_score=article.quality_score,
            created_at=normalize_timezone(article.created_at),
        )
        try:
            async with self.session_factory() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save article '{article.title}': {e}")
            raise PersistenceError(f"Saving article failed: {e}") from e

        logger.info(f"Saved article {article_id}: {article.title}")
        return article_id

    async def get(self, article_id: str) -> Optional[ArticleRecord]:
        async with self.session_factory() as session:
            return await session.get(ArticleRecord, article_id)


class SqlPublishLogStore:
    """PublishLogStore backed by the ``publish_log`` table. Insert and select only."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def append(self, entry: PublishLogEntry) -> None:
        record = PublishLogRecord(
            id=entry.id,
            timestamp=normalize_timezone(entry.timestamp),
            status=entry.status.value,
            topic=entry.topic,
            article_id=entry.article_id,
            error_message=entry.error_message,
            attempt_number=entry.attempt_number,
        )
        try:
            async with self.session_factory() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Appending publish log entry failed: {e}") from e

    async def query(
        self,
        limit: Optional[int] = None,
        status: Optional[PublishStatus] = None,
        topic: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[PublishLogEntry]:
        conditions = []
        if status is not None:
            conditions.append(PublishLogRecord.status == PublishStatus(status).value)
        if topic is not None:
            conditions.append(PublishLogRecord.topic == topic)
        if start is not None:
            conditions.append(PublishLogRecord.timestamp >= normalize_timezone(start))
        if end is not None:
            conditions.append(PublishLogRecord.timestamp <= normalize_timezone(end))

        stmt = select(PublishLogRecord).order_by(desc(PublishLogRecord.timestamp), desc(PublishLogRecord.seq))
        if conditions:
            stmt = stmt.where(and_(*conditions))
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                records = result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Querying publish log failed: {e}") from e

        return [_entry_from_record(record) for record in records]


class SqlSettingsStore:
    """AutoPublishSettingsStore backed by a single ``auto_publish_settings`` row."""

    def __init__(self, session_factory: async_sessionmaker, seed_file: Optional[str] = None):
        self.session_factory = session_factory
        self.seed_file = seed_file

    async def _get_or_create(self, session: AsyncSession) -> AutoPublishSettingsRecord:
        record = await session.get(AutoPublishSettingsRecord, SINGLETON_ID)
        if record is None:
            seeded = AutoPublishSettings.model_validate(load_settings_seed(self.seed_file))
            record = AutoPublishSettingsRecord(id=SINGLETON_ID, **seeded.model_dump(mode='json'))
            session.add(record)
            await session.commit()
            await session.refresh(record)
            logger.info("Created auto-publish settings row", extra={"seed_file": self.seed_file})
        return record

    async def get(self) -> AutoPublishSettings:
        try:
            async with self.session_factory() as session:
                record = await self._get_or_create(session)
                return _settings_from_record(record)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Loading auto-publish settings failed: {e}") from e

    async def update(self, partial: Dict[str, Any]) -> AutoPublishSettings:
        """
        Apply a partial update.

        Raises:
            pydantic.ValidationError: if the merged settings are invalid
        """
        try:
            async with self.session_factory() as session:
                record = await self._get_or_create(session)
                updated = _settings_from_record(record).merged(partial)
                for field, value in updated.model_dump(mode='json').items():
                    setattr(record, field, value)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Updating auto-publish settings failed: {e}") from e

        logger.info("Updated auto-publish settings", extra={"fields": sorted(partial.keys())})
        return updated


class SqlSchedulerStateStore:
    """SchedulerStateStore backed by a single ``scheduler_state`` row."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def load(self) -> SchedulerMarker:
        try:
            async with self.session_factory() as session:
                record = await session.get(SchedulerStateRecord, SINGLETON_ID)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Loading scheduler state failed: {e}") from e

        if record is None:
            return SchedulerMarker()
        return SchedulerMarker(
            last_fired_slot=record.last_fired_slot,
            cursor=record.cursor,
            failed_topics=list(record.failed_topics or []),
            requeued_topics=list(record.requeued_topics or []),
        )

    async def save(self, marker: SchedulerMarker) -> None:
        try:
            async with self.session_factory() as session:
                record = await session.get(SchedulerStateRecord, SINGLETON_ID)
                if record is None:
                    record = SchedulerStateRecord(id=SINGLETON_ID)
                    session.add(record)
                record.last_fired_slot = marker.last_fired_slot
                record.cursor = marker.cursor
                record.failed_topics = list(marker.failed_topics)
                record.requeued_topics = list(marker.requeued_topics)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Saving scheduler state failed: {e}") from e
