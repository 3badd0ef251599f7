"""
Publish analytics.

Summaries are computed on demand from the publish log and never persisted.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from contentpilot.core.logging import get_logger
from contentpilot.core.time import parse_range_bound
from .log import PublishStatus

logger = get_logger(__name__)


class DateRange(BaseModel):
    """
    Inclusive timestamp range; either bound may be open.

    Bounds accept datetimes, dates or ISO-8601 strings. A date-only ``end``
    covers that whole day.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator('start', mode='before')
    @classmethod
    def parse_start(cls, v):
        return parse_range_bound(v)

    @field_validator('end', mode='before')
    @classmethod
    def parse_end(cls, v):
        return parse_range_bound(v, end=True)


class StatusTotals(BaseModel):
    success: int = 0
    failed: int = 0
    retry: int = 0


class AnalyticsSummary(BaseModel):
    range: DateRange = Field(default_factory=DateRange)
    totals: StatusTotals = Field(default_factory=StatusTotals)
    success_rate: float = 0.0
    total: int = 0
    last_success_at: Optional[datetime] = None
    last_failed_at: Optional[datetime] = None
    by_topic: Dict[str, StatusTotals] = Field(default_factory=dict)


def success_rate(success: int, failed: int) -> float:
    """Successes over finished runs; retries are in flight and excluded."""
    finished = success + failed
    if finished == 0:
        return 0.0
    return success / finished


class AnalyticsAggregator:
    """Aggregates publish log entries over a date range."""

    def __init__(self, store):
        self.store = store

    async def get_summary(self, date_range: Optional[DateRange] = None) -> AnalyticsSummary:
        """
        Count entries per status within ``date_range`` (inclusive, unbounded by default).

        Args:
            date_range: Optional inclusive range

        Returns:
            AnalyticsSummary; an empty match yields zero counts and a 0.0 rate
        """
        date_range = date_range or DateRange()
        entries = await self.store.query(start=date_range.start, end=date_range.end)

        totals = StatusTotals()
        by_topic: Dict[str, StatusTotals] = {}
        last_success_at = None
        last_failed_at = None

        for entry in entries:
            status = PublishStatus(entry.status).value
            setattr(totals, status, getattr(totals, status) + 1)
            topic_totals = by_topic.setdefault(entry.topic, StatusTotals())
            setattr(topic_totals, status, getattr(topic_totals, status) + 1)

            if entry.status == PublishStatus.SUCCESS and (last_success_at is None or entry.timestamp > last_success_at):
                last_success_at = entry.timestamp
            elif entry.status == PublishStatus.FAILED and (last_failed_at is None or entry.timestamp > last_failed_at):
                last_failed_at = entry.timestamp

        summary = AnalyticsSummary(
            range=date_range,
            totals=totals,
            success_rate=success_rate(totals.success, totals.failed),
            total=len(entries),
            last_success_at=last_success_at,
            last_failed_at=last_failed_at,
            by_topic=by_topic,
        )
        logger.debug(f"Analytics summary over {len(entries)} entries, success rate {summary.success_rate:.2f}")
        return summary
