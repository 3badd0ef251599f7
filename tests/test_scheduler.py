"""Tests for the auto-publish scheduler state machine."""

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from contentpilot.core.errors import PersistenceError
from contentpilot.extractor import ContentExtractor
from contentpilot.publisher import (
    AutoPublishScheduler,
    AutoPublishSettings,
    InMemoryArticleStore,
    InMemoryPublishLogStore,
    InMemorySchedulerStateStore,
    InMemorySettingsStore,
    PublishLog,
    PublishStatus,
    SchedulerState,
)
from contentpilot.rewriter import MultiModelOrchestrator


class FailingArticleStore(InMemoryArticleStore):
    async def save(self, article):
        raise PersistenceError("database unavailable")


class LaggingSettingsStore(InMemorySettingsStore):
    """Settings store whose reads take a scripted amount of time, one delay per call."""

    def __init__(self, settings, delays):
        super().__init__(settings)
        self.delays = list(delays)

    async def get(self):
        delay = self.delays.pop(0) if self.delays else 0
        if delay:
            await asyncio.sleep(delay)
        return await super().get()


@pytest.fixture
def make_scheduler(registry_of):
    """Build a scheduler over in-memory stores."""
    def factory(settings, providers, article_store=None, extractor=None, **kwargs):
        log_store = InMemoryPublishLogStore()
        scheduler = AutoPublishScheduler(
            settings_store=InMemorySettingsStore(settings),
            log=PublishLog(log_store),
            article_store=article_store or InMemoryArticleStore(),
            state_store=InMemorySchedulerStateStore(),
            orchestrator=MultiModelOrchestrator(registry_of(*providers)),
            extractor=extractor,
            max_attempts=kwargs.pop("max_attempts", 3),
            base_delay_seconds=kwargs.pop("base_delay_seconds", 60),
            poll_interval=kwargs.pop("poll_interval", 30),
            provider_timeout=kwargs.pop("provider_timeout", 5),
            tz_name="UTC",
            **kwargs,
        )
        scheduler.log_store = log_store
        return scheduler
    return factory


def enabled(**overrides):
    values = dict(is_enabled=True, publish_time="09:00", topics=["A", "B"], ai_provider="p")
    values.update(overrides)
    return AutoPublishSettings(**values)


@pytest.mark.asyncio
async def test_daily_round_robin_across_days(make_scheduler, fake_provider, day1):
    """Day 1 publishes A, day 2 advances to B."""
    scheduler = make_scheduler(enabled(), [fake_provider("p")])

    assert await scheduler.tick(day1) == SchedulerState.IDLE
    entries = scheduler.log_store.entries
    assert [(e.status, e.topic) for e in entries] == [(PublishStatus.SUCCESS, "A")]
    assert entries[0].article_id in scheduler.article_store.articles

    await scheduler.tick(day1 + timedelta(days=1))
    assert [(e.status, e.topic) for e in scheduler.log_store.entries][-1] == (PublishStatus.SUCCESS, "B")

    marker = await scheduler.state_store.load()
    assert marker.cursor == 0
    assert marker.last_fired_slot == "2025-03-11"


@pytest.mark.asyncio
async def test_slot_fires_once(make_scheduler, fake_provider, day1):
    provider = fake_provider("p")
    scheduler = make_scheduler(enabled(), [provider])

    await scheduler.tick(day1 - timedelta(minutes=1))
    assert provider.calls == []

    await scheduler.tick(day1)
    await scheduler.tick(day1 + timedelta(hours=1))
    await scheduler.tick(day1 + timedelta(hours=5))

    assert len(provider.calls) == 1
    assert len(scheduler.log_store.entries) == 1


@pytest.mark.asyncio
async def test_disabled_never_fires(make_scheduler, fake_provider, day1):
    provider = fake_provider("p")
    scheduler = make_scheduler(enabled(is_enabled=False), [provider])

    await scheduler.tick(day1)

    assert provider.calls == []


@pytest.mark.asyncio
async def test_retries_then_failed_then_skipped(make_scheduler, fake_provider, day1):
    """Three failures: retry(1), retry(2), failed(3); the topic is parked afterwards."""
    provider = fake_provider("p", fail_reason="http_error")
    scheduler = make_scheduler(enabled(topics=["C"]), [provider])

    assert await scheduler.tick(day1) == SchedulerState.COOLDOWN
    # backoff: 60 * 2**1 seconds
    assert await scheduler.tick(day1 + timedelta(seconds=119)) == SchedulerState.COOLDOWN
    assert await scheduler.tick(day1 + timedelta(seconds=120)) == SchedulerState.COOLDOWN
    # backoff: 60 * 2**2 seconds after the second attempt
    assert await scheduler.tick(day1 + timedelta(seconds=120 + 239)) == SchedulerState.COOLDOWN
    assert await scheduler.tick(day1 + timedelta(seconds=120 + 240)) == SchedulerState.IDLE

    entries = scheduler.log_store.entries
    assert [(e.status, e.attempt_number) for e in entries] == [
        (PublishStatus.RETRY, 1),
        (PublishStatus.RETRY, 2),
        (PublishStatus.FAILED, 3),
    ]
    assert "rewrite_failed" in entries[-1].error_message
    assert len(provider.calls) == 3

    for day in (1, 2, 3):
        await scheduler.tick(day1 + timedelta(days=day))

    assert len(scheduler.log_store.entries) == 3
    assert len(provider.calls) == 3
    marker = await scheduler.state_store.load()
    assert marker.failed_topics == ["C"]


@pytest.mark.asyncio
async def test_failed_topic_advances_to_next(make_scheduler, fake_provider, day1):
    scheduler = make_scheduler(enabled(topics=["C", "D"]), [fake_provider("p", fail_reason="timeout")], max_attempts=1)

    await scheduler.tick(day1)
    marker = await scheduler.state_store.load()

    assert scheduler.log_store.entries[0].status == PublishStatus.FAILED
    assert marker.cursor == 1
    assert marker.failed_topics == ["C"]


@pytest.mark.asyncio
async def test_persistence_error_is_retried(make_scheduler, fake_provider, day1):
    scheduler = make_scheduler(enabled(), [fake_provider("p")], article_store=FailingArticleStore())

    assert await scheduler.tick(day1) == SchedulerState.COOLDOWN
    entry = scheduler.log_store.entries[0]
    assert entry.status == PublishStatus.RETRY
    assert entry.error_message.startswith("persistence_error")


@pytest.mark.asyncio
async def test_invalid_url_topic_fails_without_retry(make_scheduler, fake_provider, day1):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, text="<html></html>")

    provider = fake_provider("p")
    extractor = ContentExtractor(transport=httpx.MockTransport(handler))
    scheduler = make_scheduler(enabled(topics=["ftp://example.com/feed"]), [provider], extractor=extractor)

    assert await scheduler.tick(day1) == SchedulerState.IDLE

    entries = scheduler.log_store.entries
    assert [(e.status, e.attempt_number) for e in entries] == [(PublishStatus.FAILED, 1)]
    assert entries[0].error_message.startswith("InvalidURL")
    assert calls == []
    assert provider.calls == []
    await extractor.aclose()


@pytest.mark.asyncio
async def test_url_topic_is_extracted(make_scheduler, fake_provider, day1):
    html = (
        "<html><head><title>Storage breakthrough</title></head><body><article>"
        "<p>Researchers announced a new battery chemistry that stores wind power for days.</p>"
        "</article></body></html>"
    )

    def handler(request):
        return httpx.Response(200, text=html, headers={"Content-Type": "text/html; charset=utf-8"})

    provider = fake_provider("p")
    extractor = ContentExtractor(transport=httpx.MockTransport(handler))
    scheduler = make_scheduler(enabled(topics=["example.com/story"]), [provider], extractor=extractor)

    await scheduler.tick(day1)

    assert provider.calls[0].startswith("Storage breakthrough\n\nResearchers announced")
    article = next(iter(scheduler.article_store.articles.values()))
    assert article.source_url == "https://example.com/story"
    assert article.meta_title == "Meta title"
    assert article.topic == "example.com/story"
    await extractor.aclose()


@pytest.mark.asyncio
async def test_trigger_dropped_while_running(make_scheduler, fake_provider, day1):
    """Single-flight: a trigger during a run is dropped, not queued."""
    provider = fake_provider("p", delay=0.3)
    scheduler = make_scheduler(enabled(), [provider])

    run = asyncio.create_task(scheduler.tick(day1))
    await asyncio.sleep(0.05)
    assert scheduler.state == SchedulerState.RUNNING

    assert await scheduler.trigger(day1) is False
    assert await scheduler.tick(day1) == SchedulerState.RUNNING

    await run
    assert len(provider.calls) == 1
    assert len(scheduler.log_store.entries) == 1


@pytest.mark.asyncio
async def test_trigger_dropped_during_cooldown(make_scheduler, fake_provider, day1):
    scheduler = make_scheduler(enabled(), [fake_provider("p", fail_reason="network")])

    await scheduler.tick(day1)

    assert scheduler.state == SchedulerState.COOLDOWN
    assert await scheduler.trigger(day1) is False


@pytest.mark.asyncio
async def test_manual_trigger_skips_topics_published_today(make_scheduler, fake_provider, day1):
    scheduler = make_scheduler(enabled(is_enabled=False), [fake_provider("p")])

    assert await scheduler.trigger(day1) is True
    assert await scheduler.trigger(day1 + timedelta(minutes=5)) is True
    assert await scheduler.trigger(day1 + timedelta(minutes=10)) is True

    topics = [e.topic for e in scheduler.log_store.entries]
    assert topics == ["A", "B"]


@pytest.mark.asyncio
async def test_empty_topics_halt_and_resume(make_scheduler, fake_provider, day1):
    scheduler = make_scheduler(enabled(topics=[]), [fake_provider("p")])

    assert await scheduler.tick(day1) == SchedulerState.HALTED
    assert "no topics" in scheduler.last_error
    assert await scheduler.trigger(day1) is False

    await scheduler.settings_store.update({"topics": ["A"]})
    assert await scheduler.tick(day1) == SchedulerState.IDLE

    assert scheduler.last_error is None
    assert [e.topic for e in scheduler.log_store.entries] == ["A"]


@pytest.mark.asyncio
async def test_unknown_provider_halts(make_scheduler, fake_provider, day1):
    scheduler = make_scheduler(enabled(ai_provider="p,nope"), [fake_provider("p")])

    assert await scheduler.tick(day1) == SchedulerState.HALTED
    assert "nope" in scheduler.last_error
    assert scheduler.log_store.entries == []


@pytest.mark.asyncio
async def test_reset_topic_front_requeues_with_fresh_attempts(make_scheduler, fake_provider, day1):
    provider = fake_provider("p", fail_reason="http_error")
    scheduler = make_scheduler(enabled(topics=["C", "D"]), [provider], max_attempts=1)

    await scheduler.tick(day1)
    assert (await scheduler.state_store.load()).failed_topics == ["C"]

    provider.fail_reason = None
    marker = await scheduler.reset_topic("C", "front")
    assert marker.failed_topics == []
    assert marker.requeued_topics == ["C"]

    await scheduler.tick(day1 + timedelta(days=1))

    last = scheduler.log_store.entries[-1]
    assert (last.topic, last.status, last.attempt_number) == ("C", PublishStatus.SUCCESS, 1)
    marker = await scheduler.state_store.load()
    assert marker.requeued_topics == []
    assert marker.cursor == 1


@pytest.mark.asyncio
async def test_reset_topic_back_rejoins_rotation(make_scheduler, fake_provider, day1):
    scheduler = make_scheduler(enabled(topics=["C"]), [fake_provider("p")], reset_position="back")
    await scheduler.state_store.save((await scheduler.state_store.load()).model_copy(update={"failed_topics": ["C"]}))

    marker = await scheduler.reset_topic("C")

    assert marker.failed_topics == []
    assert marker.requeued_topics == []
    with pytest.raises(ValueError):
        await scheduler.reset_topic("C", "middle")


@pytest.mark.asyncio
async def test_status_snapshot(make_scheduler, fake_provider, day1):
    scheduler = make_scheduler(enabled(), [fake_provider("p", fail_reason="network")])

    await scheduler.tick(day1)
    status = await scheduler.status()

    assert status["state"] == "cooldown"
    assert status["pending_retry"]["topic"] == "A"
    assert status["pending_retry"]["attempt"] == 2
    assert status["marker"]["last_fired_slot"] == "2025-03-10"
    assert status["loop_running"] is False


@pytest.mark.asyncio
async def test_background_loop_start_stop(make_scheduler, fake_provider, day1):
    scheduler = make_scheduler(enabled(), [fake_provider("p")], poll_interval=0.01, clock=lambda: day1)

    await scheduler.start()
    assert scheduler.running
    assert scheduler.next_fire_at == datetime(2025, 3, 11, 9, 0, tzinfo=timezone.utc)

    for _ in range(50):
        if scheduler.log_store.entries:
            break
        await asyncio.sleep(0.02)
    await scheduler.stop()

    assert not scheduler.running
    assert [e.topic for e in scheduler.log_store.entries] == ["A"]


@pytest.mark.asyncio
@pytest.mark.parametrize("delays", [(0.05, 0), (0, 0.05)])
async def test_concurrent_triggers_while_halted_run_once(make_scheduler, fake_provider, day1, delays):
    """Two callers leaving HALTED at once: only one resumes and runs."""
    provider = fake_provider("p", delay=0.05)
    scheduler = make_scheduler(enabled(topics=["A"]), [provider])
    scheduler.state = SchedulerState.HALTED
    scheduler.settings_store = LaggingSettingsStore(enabled(topics=["A"]), delays)

    results = await asyncio.gather(scheduler.trigger(day1), scheduler.trigger(day1))

    assert sorted(results) == [False, True]
    assert len(provider.calls) == 1
    assert [(e.status, e.topic) for e in scheduler.log_store.entries] == [(PublishStatus.SUCCESS, "A")]
    assert scheduler.state == SchedulerState.IDLE


@pytest.mark.asyncio
async def test_tick_during_resume_backs_off(make_scheduler, fake_provider, day1):
    provider = fake_provider("p")
    scheduler = make_scheduler(enabled(topics=["A"]), [provider])
    scheduler.state = SchedulerState.HALTED
    scheduler.settings_store = LaggingSettingsStore(enabled(topics=["A"]), [0.05])

    resume = asyncio.create_task(scheduler.trigger(day1))
    await asyncio.sleep(0.01)

    assert scheduler.state == SchedulerState.RESUMING
    assert await scheduler.tick(day1) == SchedulerState.RESUMING
    assert await scheduler.trigger(day1) is False

    assert await resume is True
    assert len(provider.calls) == 1
