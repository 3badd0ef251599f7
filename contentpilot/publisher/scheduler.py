"""
Auto-publish scheduler.

A single-flight state machine that fires once per period slot, picks the next
topic round-robin, rewrites it through the multi-provider orchestrator and
publishes the best result. Transient failures are retried with exponential
backoff; exhausted topics are parked until reset externally.

    IDLE -> DUE -> RUNNING -> IDLE
                          \\-> COOLDOWN -> DUE -> RUNNING ...
    any -> HALTED (configuration error) -> RESUMING -> IDLE once settings validate
"""

import asyncio
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple

from contentpilot.core.errors import (
    ContentPilotError,
    ProviderError,
    RewriteError,
    SchedulerConfigError,
)
from contentpilot.core.logging import get_logger
from contentpilot.core.settings import get_settings
from contentpilot.core.time import get_current_utc_time, local_day, to_iso
from contentpilot.core.utils import looks_like_url, slugify
from contentpilot.providers.base import ProviderAdapter
from contentpilot.providers.models import MetaOutput
from contentpilot.rewriter.models import RewriteConfig, RewriteResult
from contentpilot.rewriter.orchestrator import MultiModelOrchestrator
from .log import PublishLog, PublishStatus
from .schedule import current_slot, next_fire_time
from .settings import AutoPublishSettings
from .stores import Article, SchedulerMarker

logger = get_logger(__name__)

RESET_POSITIONS = ("front", "back")


class SchedulerState(str, Enum):
    IDLE = "idle"
    DUE = "due"
    RUNNING = "running"
    COOLDOWN = "cooldown"
    HALTED = "halted"
    RESUMING = "resuming"


# States in which a trigger is dropped
BUSY_STATES = (
    SchedulerState.DUE,
    SchedulerState.RUNNING,
    SchedulerState.COOLDOWN,
    SchedulerState.RESUMING,
)


class PendingRun(NamedTuple):
    """The topic currently being worked on and where its retry chain stands."""
    topic: str
    topic_index: int
    from_requeue: bool
    attempt: int
    settings: AutoPublishSettings
    retry_at: datetime


class AutoPublishScheduler:
    """Single-flight auto-publish state machine."""

    def __init__(
        self,
        settings_store,
        log: PublishLog,
        article_store,
        state_store,
        orchestrator: MultiModelOrchestrator,
        extractor=None,
        max_attempts: Optional[int] = None,
        base_delay_seconds: Optional[float] = None,
        poll_interval: Optional[float] = None,
        provider_timeout: Optional[float] = None,
        tz_name: Optional[str] = None,
        reset_position: str = "back",
        clock: Callable[[], datetime] = get_current_utc_time,
    ):
        app_settings = get_settings()
        if reset_position not in RESET_POSITIONS:
            raise ValueError(f"reset_position must be one of {RESET_POSITIONS}")

        self.settings_store = settings_store
        self.log = log
        self.article_store = article_store
        self.state_store = state_store
        self.orchestrator = orchestrator
        self.extractor = extractor
        self.max_attempts = max_attempts or app_settings.scheduler_max_attempts
        self.base_delay_seconds = (
            app_settings.scheduler_base_delay_seconds if base_delay_seconds is None else base_delay_seconds
        )
        self.poll_interval = poll_interval or app_settings.scheduler_poll_seconds
        self.provider_timeout = provider_timeout or app_settings.provider_timeout_seconds
        self.tz_name = tz_name or app_settings.tz
        self.reset_position = reset_position
        self.clock = clock

        self.state = SchedulerState.IDLE
        self.next_fire_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.current_topic: Optional[str] = None
        self._pending: Optional[PendingRun] = None
        self._task: Optional[asyncio.Task] = None

    # Lifecycle

    async def start(self) -> None:
        """Load settings, compute the next fire time and launch the background loop."""
        if self._task is not None and not self._task.done():
            return

        settings = await self.settings_store.get()
        if settings.is_enabled:
            try:
                self._validate(settings)
            except SchedulerConfigError as e:
                self._halt(e)
        self.next_fire_at = next_fire_time(settings, self.clock(), self.tz_name)

        self._task = asyncio.create_task(self._loop(), name="auto-publish-scheduler")
        logger.info(
            f"Scheduler started, next fire at {to_iso(self.next_fire_at)}",
            extra={"state": self.state.value, "poll_interval": self.poll_interval},
        )

    async def stop(self) -> None:
        """Cancel the background loop. An attempt already running is allowed to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _loop(self) -> None:
        while True:
            try:
                # Shielded so cancelling the loop never interrupts a run mid-attempt
                await asyncio.shield(self.tick())
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}", exc_info=True)
            await asyncio.sleep(self.poll_interval)

    # Transitions

    async def tick(self, now: Optional[datetime] = None) -> SchedulerState:
        """
        Evaluate one state transition at ``now``.

        Returns:
            The state after the tick
        """
        now = now or self.clock()

        if self.state in (SchedulerState.RUNNING, SchedulerState.DUE, SchedulerState.RESUMING):
            return self.state

        if self.state == SchedulerState.HALTED:
            if not await self._try_resume():
                return self.state

        if self.state == SchedulerState.COOLDOWN:
            pending = self._pending
            if now < pending.retry_at:
                return self.state
            self._set_state(SchedulerState.DUE)
            await self._attempt(pending, now)
            return self.state

        settings = await self.settings_store.get()
        if not settings.is_enabled:
            return self.state
        try:
            self._validate(settings)
        except SchedulerConfigError as e:
            if self.state == SchedulerState.IDLE:
                self._halt(e)
            return self.state

        self.next_fire_at = next_fire_time(settings, now, self.tz_name)
        slot = current_slot(settings, now, self.tz_name)
        if slot is None:
            return self.state

        marker = await self.state_store.load()
        if marker.last_fired_slot == slot:
            return self.state

        # Another caller may have claimed the run while we were awaiting
        if self.state != SchedulerState.IDLE:
            return self.state
        self._set_state(SchedulerState.DUE)
        logger.info(f"Slot {slot} is due", extra={"slot": slot})
        await self._start_run(settings, now, slot)
        return self.state

    async def trigger(self, now: Optional[datetime] = None) -> bool:
        """
        Run immediately, outside the regular schedule.

        Returns:
            False if the trigger was dropped (a run is in progress or the
            configuration is invalid), True if a run was executed
        """
        now = now or self.clock()

        if self.state in BUSY_STATES:
            logger.warning(f"Trigger dropped, scheduler is {self.state.value}")
            return False
        if self.state == SchedulerState.HALTED and not await self._try_resume():
            return False

        settings = await self.settings_store.get()
        try:
            self._validate(settings)
        except SchedulerConfigError as e:
            if self.state == SchedulerState.IDLE:
                self._halt(e)
            return False

        if self.state != SchedulerState.IDLE:
            logger.warning(f"Trigger dropped, scheduler is {self.state.value}")
            return False
        self._set_state(SchedulerState.DUE)
        await self._start_run(settings, now, slot=None)
        return True

    async def reset_topic(self, topic: str, position: Optional[str] = None) -> SchedulerMarker:
        """
        Clear a topic's failed status so it is served again.

        Args:
            topic: Topic to reset
            position: ``front`` serves it on the next run, ``back`` lets it
                come up in normal rotation. Defaults to the scheduler setting.
        """
        position = position or self.reset_position
        if position not in RESET_POSITIONS:
            raise ValueError(f"position must be one of {RESET_POSITIONS}")

        marker = await self.state_store.load()
        marker.failed_topics = [t for t in marker.failed_topics if t != topic]
        marker.requeued_topics = [t for t in marker.requeued_topics if t != topic]
        if position == "front":
            marker.requeued_topics.insert(0, topic)
        await self.state_store.save(marker)
        logger.info(f"Topic '{topic}' reset to the {position} of the queue", extra={"topic": topic})
        return marker

    async def status(self) -> Dict[str, Any]:
        """Snapshot for the HTTP service."""
        marker = await self.state_store.load()
        pending = self._pending
        return {
            "state": self.state.value,
            "loop_running": self.running,
            "next_fire_at": to_iso(self.next_fire_at) if self.next_fire_at else None,
            "current_topic": self.current_topic,
            "pending_retry": {
                "topic": pending.topic,
                "attempt": pending.attempt,
                "retry_at": to_iso(pending.retry_at),
            } if pending else None,
            "last_error": self.last_error,
            "max_attempts": self.max_attempts,
            "marker": marker.model_dump(),
        }

    # Internals

    def _set_state(self, state: SchedulerState) -> None:
        if state != self.state:
            logger.debug(f"Scheduler {self.state.value} -> {state.value}")
        self.state = state

    def _halt(self, error: SchedulerConfigError) -> None:
        self.last_error = str(error)
        self._pending = None
        self.current_topic = None
        self._set_state(SchedulerState.HALTED)
        logger.error(f"Scheduler halted: {error}")

    async def _try_resume(self) -> bool:
        """
        Leave HALTED if the settings validate again.

        The caller claims RESUMING before awaiting the settings read, so a
        concurrent tick or trigger sees a busy scheduler and backs off.
        """
        if self.state != SchedulerState.HALTED:
            return False
        self._set_state(SchedulerState.RESUMING)
        try:
            settings = await self.settings_store.get()
        except Exception:
            self._set_state(SchedulerState.HALTED)
            raise

        if settings.is_enabled:
            try:
                self._validate(settings)
            except SchedulerConfigError as e:
                self.last_error = str(e)
                self._set_state(SchedulerState.HALTED)
                return False

        if self.state != SchedulerState.RESUMING:
            return False
        self.last_error = None
        self._set_state(SchedulerState.IDLE)
        logger.info("Scheduler configuration valid again, resuming")
        return True

    def _validate(self, settings: AutoPublishSettings) -> None:
        if not settings.topics:
            raise SchedulerConfigError("Auto-publish is enabled but no topics are configured")
        provider_ids = settings.provider_ids
        if not provider_ids:
            raise SchedulerConfigError("No AI provider configured")
        unknown = self.orchestrator.registry.unknown(provider_ids)
        if unknown:
            raise SchedulerConfigError(f"Unknown provider id(s): {', '.join(unknown)}")

    def _tz(self, settings: AutoPublishSettings) -> str:
        return settings.timezone or self.tz_name

    async def _start_run(self, settings: AutoPublishSettings, now: datetime, slot: Optional[str]) -> None:
        try:
            marker = await self.state_store.load()
            if slot is not None:
                marker.last_fired_slot = slot
                await self.state_store.save(marker)

            picked = await self._pick_topic(settings, marker, now)
        except Exception:
            self._set_state(SchedulerState.IDLE)
            raise

        if picked is None:
            logger.info("No eligible topic for this run")
            self._set_state(SchedulerState.IDLE)
            return

        topic, index, from_requeue = picked
        await self._attempt(PendingRun(topic, index, from_requeue, 1, settings, now), now)

    async def _pick_topic(
        self,
        settings: AutoPublishSettings,
        marker: SchedulerMarker,
        now: datetime,
    ) -> Optional[Tuple[str, int, bool]]:
        """Re-queued topics first, then round-robin from the cursor."""
        tz_name = self._tz(settings)
        today = local_day(now, tz_name)
        topics = settings.topics

        for topic in marker.requeued_topics:
            if topic not in topics:
                continue
            if await self.log.has_success(topic, today, tz_name):
                continue
            return topic, topics.index(topic), True

        for offset in range(len(topics)):
            index = (marker.cursor + offset) % len(topics)
            topic = topics[index]
            if topic in marker.failed_topics:
                continue
            if await self.log.has_success(topic, today, tz_name):
                continue
            return topic, index, False
        return None

    async def _attempt(self, pending: PendingRun, now: datetime) -> None:
        self._set_state(SchedulerState.RUNNING)
        self.current_topic = pending.topic
        self._pending = None
        logger.info(
            f"Publishing '{pending.topic}' (attempt {pending.attempt}/{self.max_attempts})",
            extra={"topic": pending.topic, "attempt": pending.attempt},
        )
        try:
            try:
                article_id = await self._publish(pending.topic, pending.settings)
            except ContentPilotError as e:
                await self._handle_failure(pending, e, now)
                return
            except Exception as e:
                logger.error(f"Unexpected error publishing '{pending.topic}': {e}", exc_info=True)
                await self._handle_failure(pending, ContentPilotError(str(e), kind="unexpected"), now)
                return

            await self.log.append(PublishLog.new_entry(
                PublishStatus.SUCCESS,
                pending.topic,
                now,
                attempt_number=pending.attempt,
                article_id=article_id,
            ))
            await self._finish_topic(pending, failed=False)
            self.last_error = None
            self._set_state(SchedulerState.IDLE)
        finally:
            self.current_topic = None
            if self.state in (SchedulerState.RUNNING, SchedulerState.DUE):
                self._set_state(SchedulerState.IDLE)

    async def _handle_failure(self, pending: PendingRun, error: ContentPilotError, now: datetime) -> None:
        if isinstance(error, SchedulerConfigError):
            self._halt(error)
            return

        message = f"{error.kind}: {error}"
        self.last_error = message

        if error.retryable and pending.attempt < self.max_attempts:
            await self.log.append(PublishLog.new_entry(
                PublishStatus.RETRY,
                pending.topic,
                now,
                attempt_number=pending.attempt,
                error_message=message,
            ))
            delay = self.base_delay_seconds * 2 ** pending.attempt
            self._pending = pending._replace(
                attempt=pending.attempt + 1,
                retry_at=now + timedelta(seconds=delay),
            )
            self._set_state(SchedulerState.COOLDOWN)
            logger.warning(f"Attempt {pending.attempt} for '{pending.topic}' failed, retrying in {delay:.0f}s: {message}")
            return

        await self.log.append(PublishLog.new_entry(
            PublishStatus.FAILED,
            pending.topic,
            now,
            attempt_number=pending.attempt,
            error_message=message,
        ))
        await self._finish_topic(pending, failed=True)
        self._set_state(SchedulerState.IDLE)
        logger.error(f"Giving up on '{pending.topic}' after attempt {pending.attempt}: {message}")

    async def _finish_topic(self, pending: PendingRun, failed: bool) -> None:
        marker = await self.state_store.load()
        if pending.from_requeue:
            if pending.topic in marker.requeued_topics:
                marker.requeued_topics.remove(pending.topic)
        else:
            marker.cursor = (pending.topic_index + 1) % len(pending.settings.topics)
        if failed and pending.topic not in marker.failed_topics:
            marker.failed_topics.append(pending.topic)
        await self.state_store.save(marker)

    async def _publish(self, topic: str, settings: AutoPublishSettings) -> str:
        """Extract (for URL topics), rewrite, derive metadata and save. Returns the article id."""
        source_url = None
        title, content = "", topic
        if looks_like_url(topic):
            if self.extractor is None:
                raise SchedulerConfigError("URL topic configured but no extractor is available")
            result = await self.extractor.extract_from_url(topic)
            document = result.raise_for_error()
            title, content, source_url = document.title, document.body_text, document.url

        config = RewriteConfig(
            target_word_count=settings.content_length,
            timeout_seconds=self.provider_timeout,
        )
        results = await self.orchestrator.rewrite_with_models(title, content, settings.provider_ids, config)
        best = self.orchestrator.pick_best(results)
        if best is None:
            reasons = ", ".join(f"{r.provider_id}={r.error_kind}" for r in results)
            raise RewriteError(f"All providers failed ({reasons})")

        meta = await self._generate_meta(best)
        article_title = best.title or title or topic
        article = Article(
            title=article_title,
            slug=slugify(article_title),
            content=best.content,
            meta_title=meta.meta_title,
            meta_description=meta.meta_description or best.meta_description or "",
            keywords=meta.keywords or best.keywords,
            category_id=settings.default_category_id,
            topic=topic,
            source_url=source_url,
            provider_id=best.provider_id,
            word_count=best.word_count,
            quality_score=best.quality_score,
        )
        return await self.article_store.save(article)

    async def _generate_meta(self, best: RewriteResult) -> MetaOutput:
        """Ask the winning provider for metadata, deriving it locally if that fails."""
        try:
            adapter = self.orchestrator.registry.get(best.provider_id)
            meta = await asyncio.wait_for(adapter.generate_meta(best.content), timeout=self.provider_timeout)
        except (ProviderError, asyncio.TimeoutError) as e:
            logger.warning(f"Meta generation via {best.provider_id} failed, deriving locally: {e}")
            return ProviderAdapter.derive_meta(best.content, best.title or "")
        if not meta.meta_title:
            return ProviderAdapter.derive_meta(best.content, best.title or "")
        return meta
