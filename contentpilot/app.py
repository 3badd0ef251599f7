"""ContentPilot service FastAPI application."""

import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from contentpilot import __version__
from contentpilot.core.db import create_all, get_session_factory
from contentpilot.core.errors import InvalidURLError
from contentpilot.core.logging import get_logger, setup_logging
from contentpilot.core.repositories import (
    SqlArticleStore,
    SqlPublishLogStore,
    SqlSchedulerStateStore,
    SqlSettingsStore,
)
from contentpilot.core.settings import Settings, get_settings
from contentpilot.extractor import ContentExtractor
from contentpilot.providers import ProviderRegistry, TargetAudience, WritingStyle
from contentpilot.publisher import (
    AnalyticsAggregator,
    AnalyticsSummary,
    AutoPublishScheduler,
    DateRange,
    PublishLog,
    PublishLogEntry,
    PublishStatus,
)
from contentpilot.rewriter import MultiModelOrchestrator, RewriteConfig, RewriteResult

logger = get_logger(__name__)

SERVICE_NAME = "contentpilot"


@dataclass
class Container:
    """Wired collaborators shared by the endpoints and the scheduler."""
    registry: ProviderRegistry
    orchestrator: MultiModelOrchestrator
    extractor: ContentExtractor
    settings_store: Any
    log: PublishLog
    analytics: AnalyticsAggregator
    scheduler: AutoPublishScheduler
    autostart: bool = True

    async def aclose(self) -> None:
        await self.scheduler.stop()
        await self.registry.aclose()
        await self.extractor.aclose()


def build_container(settings: Optional[Settings] = None) -> Container:
    """Wire the SQL-backed stores, providers, extractor and scheduler from settings."""
    settings = settings or get_settings()
    session_factory = get_session_factory()

    registry = ProviderRegistry.default(settings)
    orchestrator = MultiModelOrchestrator(registry)
    extractor = ContentExtractor()
    settings_store = SqlSettingsStore(session_factory, seed_file=settings.auto_publish_seed_file)
    log_store = SqlPublishLogStore(session_factory)
    log = PublishLog(log_store)

    scheduler = AutoPublishScheduler(
        settings_store=settings_store,
        log=log,
        article_store=SqlArticleStore(session_factory),
        state_store=SqlSchedulerStateStore(session_factory),
        orchestrator=orchestrator,
        extractor=extractor,
        tz_name=settings.tz,
    )
    return Container(
        registry=registry,
        orchestrator=orchestrator,
        extractor=extractor,
        settings_store=settings_store,
        log=log,
        analytics=AnalyticsAggregator(log_store),
        scheduler=scheduler,
        autostart=settings.scheduler_autostart,
    )


class ExtractRequest(BaseModel):
    url: str


class RewriteRequest(BaseModel):
    """Request model for an ad-hoc multi-provider rewrite."""
    title: str = ""
    content: str = Field(..., min_length=1)
    provider_ids: List[str] = Field(default_factory=lambda: ["local"])
    style: WritingStyle = WritingStyle.JOURNALISTIC
    audience: TargetAudience = TargetAudience.GENERAL
    target_word_count: int = Field(default=800, gt=0)
    timeout_seconds: float = Field(default=60.0, gt=0)


class RewriteResponse(BaseModel):
    results: List[RewriteResult]
    best_provider: Optional[str] = None


def manual_run_enabled() -> bool:
    if os.getenv("ALLOW_MANUAL_RUN", "").lower() == "true":
        return True
    return get_settings().allow_manual_run


def check_manual_run_enabled():
    """Check if manual runs are enabled via environment flag."""
    if not manual_run_enabled():
        raise HTTPException(
            status_code=403,
            detail="Manual publish runs are disabled. Set ALLOW_MANUAL_RUN=true to enable."
        )
    return True


def get_container(request: Request) -> Container:
    return request.app.state.container


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Create the service application.

    Args:
        container: Pre-wired collaborators. When omitted the database schema is
            created and SQL-backed collaborators are built on startup.
    """
    setup_logging(SERVICE_NAME)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        wired = container
        if wired is None:
            await create_all()
            wired = build_container()
        app.state.container = wired

        logger.info(
            "Starting contentpilot service",
            extra={
                "service": SERVICE_NAME,
                "version": __version__,
                "manual_run_enabled": manual_run_enabled(),
            }
        )
        if wired.autostart:
            await wired.scheduler.start()
        try:
            yield
        finally:
            await wired.aclose()
            logger.info("Stopped contentpilot service")

    app = FastAPI(title="ContentPilot", version=__version__, lifespan=lifespan)

    @app.get("/healthz")
    async def health_check():
        """Health check endpoint."""
        return {"ok": True, "service": SERVICE_NAME}

    @app.get("/")
    async def root():
        """Root endpoint with service information."""
        enabled = manual_run_enabled()
        return {
            "service": SERVICE_NAME,
            "version": __version__,
            "manual_run_enabled": enabled,
            "endpoints": {
                "health": "/healthz",
                "extract": "/extract (POST)",
                "rewrite": "/rewrite (POST)",
                "logs": "/logs",
                "analytics": "/analytics/summary",
                "settings": "/settings (GET, PUT)",
                "scheduler": "/scheduler",
                "run": "/run (POST)" if enabled else "/run (disabled)",
            }
        }

    @app.post("/extract")
    async def extract(body: ExtractRequest, c: Container = Depends(get_container)):
        """Extract the main content of a URL."""
        result = await c.extractor.extract_from_url(body.url)
        if result.success:
            return result
        status_code = 400 if result.error_kind == InvalidURLError.kind else 502
        return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))

    @app.post("/rewrite", response_model=RewriteResponse)
    async def rewrite(body: RewriteRequest, c: Container = Depends(get_container)):
        """Rewrite content with several providers in parallel."""
        unknown = c.registry.unknown(body.provider_ids)
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown provider id(s): {', '.join(unknown)}")

        config = RewriteConfig(
            style=body.style,
            audience=body.audience,
            target_word_count=body.target_word_count,
            timeout_seconds=body.timeout_seconds,
        )
        results = await c.orchestrator.rewrite_with_models(body.title, body.content, body.provider_ids, config)
        best = c.orchestrator.pick_best(results)
        return RewriteResponse(results=results, best_provider=best.provider_id if best else None)

    @app.get("/logs", response_model=List[PublishLogEntry])
    async def get_logs(
        limit: int = Query(30, ge=1, le=500),
        status: Optional[PublishStatus] = None,
        c: Container = Depends(get_container),
    ):
        """Most recent publish log entries, newest first."""
        return await c.log.query(limit=limit, status=status)

    @app.get("/analytics/summary", response_model=AnalyticsSummary)
    async def analytics_summary(
        start: Optional[str] = None,
        end: Optional[str] = None,
        c: Container = Depends(get_container),
    ):
        """Per-status counts and success rate over an inclusive date range."""
        try:
            date_range = DateRange(start=start, end=end)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=f"Invalid date range: {e.errors()[0]['msg']}")
        return await c.analytics.get_summary(date_range)

    @app.get("/settings")
    async def get_auto_publish_settings(c: Container = Depends(get_container)):
        settings = await c.settings_store.get()
        return settings.model_dump(mode="json")

    @app.put("/settings")
    async def update_auto_publish_settings(partial: Dict[str, Any], c: Container = Depends(get_container)):
        """Apply a partial settings update."""
        try:
            settings = await c.settings_store.update(partial)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
        return settings.model_dump(mode="json")

    @app.get("/scheduler")
    async def scheduler_status(c: Container = Depends(get_container)):
        return await c.scheduler.status()

    @app.post("/run")
    async def run_now(c: Container = Depends(get_container), _: bool = Depends(check_manual_run_enabled)):
        """
        Trigger one auto-publish run immediately.

        Protected by ALLOW_MANUAL_RUN. Returns 409 when a run is already in
        progress or the configuration is invalid.
        """
        logger.info("Manual publish run requested", extra={"endpoint": "/run"})
        executed = await c.scheduler.trigger()
        status = await c.scheduler.status()
        if not executed:
            return JSONResponse(status_code=409, content={"executed": False, "scheduler": status})
        return {"executed": True, "scheduler": status}

    @app.post("/topics/{topic}/reset")
    async def reset_topic(
        topic: str,
        position: Optional[str] = Query(None, pattern="^(front|back)$"),
        c: Container = Depends(get_container),
    ):
        """Clear a failed topic so the scheduler serves it again."""
        marker = await c.scheduler.reset_topic(topic, position)
        return {"topic": topic, "marker": marker.model_dump()}

    @app.get("/providers")
    async def providers(c: Container = Depends(get_container)):
        """Health of every registered provider."""
        return await c.registry.health()

    return app


def main():
    settings = get_settings()
    logger.info("Starting contentpilot service via uvicorn")
    uvicorn.run(
        "contentpilot.app:create_app",
        factory=True,
        host=settings.service_host,
        port=settings.service_port or 8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
