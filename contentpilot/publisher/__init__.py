"""Scheduled auto-publishing, the publish log and analytics over it."""

from .settings import AutoPublishSettings, Frequency
from .schedule import current_slot, next_fire_time
from .log import PublishLog, PublishLogEntry, PublishStatus
from .stores import (
    Article,
    SchedulerMarker,
    InMemoryArticleStore,
    InMemoryPublishLogStore,
    InMemorySettingsStore,
    InMemorySchedulerStateStore,
)
from .analytics import AnalyticsAggregator, AnalyticsSummary, DateRange, StatusTotals
from .scheduler import AutoPublishScheduler, SchedulerState

__all__ = [
    "AutoPublishSettings",
    "Frequency",
    "current_slot",
    "next_fire_time",
    "PublishLog",
    "PublishLogEntry",
    "PublishStatus",
    "Article",
    "SchedulerMarker",
    "InMemoryArticleStore",
    "InMemoryPublishLogStore",
    "InMemorySettingsStore",
    "InMemorySchedulerStateStore",
    "AnalyticsAggregator",
    "AnalyticsSummary",
    "DateRange",
    "StatusTotals",
    "AutoPublishScheduler",
    "SchedulerState",
]
