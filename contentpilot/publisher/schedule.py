"""
Fire-time arithmetic for the auto-publish scheduler.

Pure functions: given settings and an aware ``now`` they compute which period
slot is due and when the next one fires. A slot key identifies one firing
period (a day, an ISO week, or a custom interval) so the scheduler can persist
"already fired" without comparing timestamps.
"""

from datetime import datetime, timedelta
from typing import Optional

from contentpilot.core.time import get_timezone, localize, normalize_timezone
from .settings import AutoPublishSettings, Frequency


def _local_now(now: datetime, tz_name: Optional[str]) -> datetime:
    return normalize_timezone(now, get_timezone(tz_name))


def _daily_anchor(settings: AutoPublishSettings, now: datetime, tz_name: Optional[str]) -> datetime:
    return localize(_local_now(now, tz_name).date(), settings.publish_at, tz_name)


def _weekly_fire(settings: AutoPublishSettings, now: datetime, tz_name: Optional[str]) -> datetime:
    local_date = _local_now(now, tz_name).date()
    week_start = local_date - timedelta(days=local_date.weekday())
    return localize(week_start + timedelta(days=settings.weekday), settings.publish_at, tz_name)


def _custom_slot_start(settings: AutoPublishSettings, now: datetime, tz_name: Optional[str]) -> datetime:
    """Start of the interval containing ``now``; intervals restart at each daily anchor."""
    anchor = _daily_anchor(settings, now, tz_name)
    if now < anchor:
        previous_day = _local_now(now, tz_name).date() - timedelta(days=1)
        anchor = localize(previous_day, settings.publish_at, tz_name)
    interval = timedelta(hours=settings.interval_hours)
    steps = int((now - anchor) / interval)
    return anchor + steps * interval


def current_slot(settings: AutoPublishSettings, now: datetime, tz_name: Optional[str] = None) -> Optional[str]:
    """
    Key of the period whose fire time ``now`` has crossed, or None.

    Args:
        settings: Auto-publish settings snapshot
        now: Aware current time
        tz_name: Timezone used for wall-clock ``publish_time``

    Returns:
        ``YYYY-MM-DD`` for daily, ``YYYY-Www`` for weekly, an ISO timestamp
        for custom; None before today's (or this week's) fire time.
    """
    tz_name = settings.timezone or tz_name
    frequency = Frequency(settings.frequency)

    if frequency == Frequency.DAILY:
        anchor = _daily_anchor(settings, now, tz_name)
        if now < anchor:
            return None
        return anchor.date().isoformat()

    if frequency == Frequency.WEEKLY:
        fire = _weekly_fire(settings, now, tz_name)
        if now < fire:
            return None
        year, week, _ = fire.date().isocalendar()
        return f"{year}-W{week:02d}"

    slot_start = _custom_slot_start(settings, now, tz_name)
    return normalize_timezone(slot_start).strftime("%Y-%m-%dT%H:%M")


def next_fire_time(settings: AutoPublishSettings, now: datetime, tz_name: Optional[str] = None) -> datetime:
    """First fire time strictly after ``now``, in UTC."""
    tz_name = settings.timezone or tz_name
    frequency = Frequency(settings.frequency)

    if frequency == Frequency.DAILY:
        fire = _daily_anchor(settings, now, tz_name)
        if fire <= now:
            tomorrow = _local_now(now, tz_name).date() + timedelta(days=1)
            fire = localize(tomorrow, settings.publish_at, tz_name)
        return normalize_timezone(fire)

    if frequency == Frequency.WEEKLY:
        fire = _weekly_fire(settings, now, tz_name)
        if fire <= now:
            fire = localize(fire.date() + timedelta(days=7), settings.publish_at, tz_name)
        return normalize_timezone(fire)

    candidate = _custom_slot_start(settings, now, tz_name) + timedelta(hours=settings.interval_hours)
    next_anchor = localize(
        _local_now(now, tz_name).date() + timedelta(days=1), settings.publish_at, tz_name
    )
    today_anchor = _daily_anchor(settings, now, tz_name)
    if today_anchor > now:
        next_anchor = today_anchor
    return normalize_timezone(min(candidate, next_anchor))
