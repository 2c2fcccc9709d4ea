"""
SURGE WATCH — FastAPI Application
Single-shot monitor trigger plus /healthz and /metrics. The trigger and
the background scheduler share one DetectionEngine, so both entry points
see the same baselines and the same single-flight guard.
"""
import secrets
import uuid
from typing import Dict, Any, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from surge_watch.config.settings import AppSettings, get_settings
from surge_watch.utils.logger import get_logger, setup_logging
from surge_watch.utils.helpers import utc_timestamp
from surge_watch.data.adapters.base import BaseSnapshotProvider
from surge_watch.data.adapters.binance_adapter import BinanceFuturesAdapter
from surge_watch.data.cache.baseline_store import BaselineStore
from surge_watch.data.models import PollStatus
from surge_watch.engines.detection_engine import DetectionEngine
from surge_watch.engines.scheduler import PollScheduler
from surge_watch.telegram.notifier import TelegramNotifier

logger = get_logger("api")


def _is_authorized(token: Optional[str], expected: str) -> bool:
    if not expected or not token:
        return False
    return secrets.compare_digest(token.encode(), expected.encode())


def create_app(
    settings: Optional[AppSettings] = None,
    provider: Optional[BaseSnapshotProvider] = None,
    notifier: Optional[TelegramNotifier] = None,
    engine: Optional[DetectionEngine] = None,
    store: Optional[BaselineStore] = None,
    run_scheduler: Optional[bool] = None,
) -> FastAPI:
    """Wire provider, notifier, engine and scheduler into one application."""
    settings = settings or get_settings()
    if provider is None:
        provider = BinanceFuturesAdapter(settings.data)
    if notifier is None:
        notifier = TelegramNotifier(settings.telegram, settings.proxy)
    if engine is None:
        engine = DetectionEngine(provider, notifier.send_alert, store=store, settings=settings.monitor)
    scheduler = PollScheduler(engine, settings.monitor)
    if run_scheduler is None:
        run_scheduler = settings.run_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan — startup and shutdown."""
        setup_logging()
        app.state.started_at = utc_timestamp()
        logger.info("surge_watch_starting", version=settings.version,
                    instance=app.state.instance_id, scheduler=run_scheduler)

        await provider.connect()
        try:
            await notifier.initialize()
            if run_scheduler:
                # no degraded mode without a baseline: a failure here aborts startup
                await engine.initialize_baseline()
                scheduler.start()
        except Exception as e:
            logger.error("surge_watch_startup_failed", error=str(e), error_type=type(e).__name__)
            await provider.disconnect()
            await notifier.shutdown()
            raise

        logger.info("surge_watch_ready")
        yield

        logger.info("surge_watch_shutting_down")
        await scheduler.stop()
        await provider.disconnect()
        await notifier.shutdown()

    app = FastAPI(
        title=settings.app_name,
        description="Volume and price surge monitor for Binance futures",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.notifier = notifier
    app.state.scheduler = scheduler
    app.state.instance_id = str(uuid.uuid4())[:8]
    app.state.started_at = None

    # ─── Health & Metrics ───────────────────────────────────────────

    @app.get("/healthz", tags=["System"])
    async def health_check():
        """Fast health check endpoint for load balancers and monitoring."""
        return JSONResponse(
            status_code=200,
            content={
                "status": "healthy",
                "instance": app.state.instance_id,
                "uptime_since": app.state.started_at,
                "timestamp": utc_timestamp(),
            },
        )

    @app.get("/metrics", tags=["System"])
    async def metrics(request: Request):
        state = request.app.state
        return {
            "app": {
                "name": settings.app_name,
                "version": settings.version,
                "instance_id": state.instance_id,
                "started_at": state.started_at,
            },
            "engine": state.engine.stats,
            "scheduler": {
                "running": state.scheduler.is_running,
                "next_run_at": state.scheduler.next_run_at.isoformat()
                if state.scheduler.next_run_at else None,
            },
            "telegram": state.notifier.stats,
            "timestamp": utc_timestamp(),
        }

    # ─── Monitor Trigger ────────────────────────────────────────────

    @app.api_route("/api/v1/monitor", methods=["GET", "POST"], tags=["Monitor"])
    async def trigger_monitor(request: Request, x_auth_token: Optional[str] = Header(default=None)):
        """Run one detection cycle on demand. Requires the X-Auth-Token header."""
        if not _is_authorized(x_auth_token, settings.auth_token):
            logger.warning("monitor_unauthorized", client=request.client.host if request.client else None)
            return JSONResponse(status_code=401, content={"error": "Unauthorized"})

        try:
            result = await request.app.state.engine.poll()
        except Exception as e:
            logger.error("monitor_error", error=str(e), error_type=type(e).__name__)
            return JSONResponse(status_code=500, content={"error": str(e)})

        if result.status == PollStatus.FAILED:
            return JSONResponse(status_code=500, content={"error": result.error})

        body: Dict[str, Any] = {
            "status": "success" if result.status == PollStatus.COMPLETED else result.status.value,
            "result": result.to_dict(),
            "timestamp": utc_timestamp(),
        }
        return JSONResponse(status_code=200, content=body)

    return app


app = create_app()
