"""Database models for ContentPilot."""
from sqlalchemy import (
    Boolean, DateTime, Float, Index, Integer, JSON, String, Text
)
from sqlalchemy.orm import mapped_column
from sqlalchemy.sql import func

from .db import Base


class ArticleRecord(Base):
    """Published articles."""
    __tablename__ = "articles"

    id = mapped_column(String(32), primary_key=True)
    title = mapped_column(String(500), nullable=False)
    slug = mapped_column(String(200), nullable=False, index=True)
    content = mapped_column(Text, nullable=False)
    meta_title = mapped_column(String(200), nullable=True)
    meta_description = mapped_column(String(400), nullable=True)
    keywords = mapped_column(JSON, nullable=True)  # list[str]
    category_id = mapped_column(String(64), nullable=True, index=True)
    topic = mapped_column(String(1000), nullable=True)
    source_url = mapped_column(String(1500), nullable=True)
    provider_id = mapped_column(String(64), nullable=True)
    word_count = mapped_column(Integer, default=0, nullable=False)
    quality_score = mapped_column(Float, default=0.0, nullable=False)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class PublishLogRecord(Base):
    """Append-only scheduler outcomes."""
    __tablename__ = "publish_log"

    # Insertion order, breaks ties between equal timestamps
    seq = mapped_column(Integer, primary_key=True, autoincrement=True)
    id = mapped_column(String(32), nullable=False, unique=True)
    timestamp = mapped_column(DateTime(timezone=True), nullable=False, index=True)  # UTC
    status = mapped_column(String(16), nullable=False, index=True)  # success|failed|retry
    topic = mapped_column(String(1000), nullable=False)
    article_id = mapped_column(String(32), nullable=True)
    error_message = mapped_column(Text, nullable=True)
    attempt_number = mapped_column(Integer, default=1, nullable=False)

    __table_args__ = (Index("ix_publish_log_topic_status", "topic", "status"),)


class AutoPublishSettingsRecord(Base):
    """Singleton auto-publish configuration (row id 1)."""
    __tablename__ = "auto_publish_settings"

    id = mapped_column(Integer, primary_key=True)
    is_enabled = mapped_column(Boolean, default=False, nullable=False)
    publish_time = mapped_column(String(5), default="09:00", nullable=False)  # HH:MM
    frequency = mapped_column(String(16), default="daily", nullable=False)  # daily|weekly|custom
    topics = mapped_column(JSON, nullable=False, default=list)
    default_category_id = mapped_column(String(64), nullable=True)
    ai_provider = mapped_column(String(200), default="local", nullable=False)
    content_length = mapped_column(Integer, default=800, nullable=False)
    weekday = mapped_column(Integer, default=0, nullable=False)
    interval_hours = mapped_column(Integer, default=24, nullable=False)
    timezone = mapped_column(String(64), nullable=True)
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class SchedulerStateRecord(Base):
    """Persisted scheduler marker (row id 1)."""
    __tablename__ = "scheduler_state"

    id = mapped_column(Integer, primary_key=True)
    last_fired_slot = mapped_column(String(32), nullable=True)
    cursor = mapped_column(Integer, default=0, nullable=False)
    failed_topics = mapped_column(JSON, nullable=False, default=list)
    requeued_topics = mapped_column(JSON, nullable=False, default=list)
