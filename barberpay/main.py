from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from barberpay import db
from barberpay.config import AppInfo, Settings, get_settings
from barberpay.core.logging import get_logger, setup_logging
from barberpay.core.runtime_state import set_scheduler_active
import barberpay.models  # noqa: F401  registers the tables
from barberpay.routers import get_api_router
from barberpay.services.cron import release_stale_transfer_claims_once
from barberpay.services.scheduler_lock import (
    refresh_scheduler_lock,
    release_scheduler_lock,
    try_acquire_scheduler_lock,
)
from barberpay.utils.errors import error_response

logger = get_logger(__name__)
scheduler: AsyncIOScheduler | None = None
ALLOWED_CREATE_ENV = {"dev", "local", "test"}


def _configure_middlewares(fastapi_app: FastAPI) -> None:
    runtime_settings = get_settings()
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime_settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-API-Key"],
    )

    if runtime_settings.PROMETHEUS_ENABLED:
        from starlette_exporter import PrometheusMiddleware, handle_metrics

        fastapi_app.add_middleware(PrometheusMiddleware, app_name="barberpay")
        fastapi_app.add_route("/metrics", handle_metrics)

    if runtime_settings.SENTRY_DSN:
        import sentry_sdk

        sentry_sdk.init(dsn=runtime_settings.SENTRY_DSN, traces_sample_rate=0.2)


def _assert_webhook_secret(settings: Settings) -> None:
    """Refuse to start outside dev when webhooks would be accepted unsigned."""

    env_lower = settings.app_env.lower()
    if settings.STRIPE_WEBHOOK_SECRET:
        return
    if env_lower != "dev":
        logger.error(
            "Stripe webhook secret is missing; configure STRIPE_WEBHOOK_SECRET before startup.",
            extra={"env": settings.app_env},
        )
        raise RuntimeError("Missing STRIPE_WEBHOOK_SECRET in non-dev environment.")
    logger.warning(
        "Stripe webhook secret is not configured; unsigned webhooks accepted in dev only.",
        extra={"env": settings.app_env},
    )


def _start_scheduler(settings: Settings) -> bool:
    global scheduler
    if not try_acquire_scheduler_lock():
        logger.warning(
            "Scheduler disabled because lock is already held by another instance.",
            extra={"env": settings.app_env},
        )
        return False
    scheduler = AsyncIOScheduler()
    scheduler.start()
    scheduler.add_job(
        release_stale_transfer_claims_once,
        "interval",
        seconds=max(60, settings.TRANSFER_CLAIM_TTL_SECONDS // 3),
        id="release-stale-transfer-claims",
        replace_existing=True,
    )
    scheduler.add_job(
        refresh_scheduler_lock,
        "interval",
        seconds=60,
        id="scheduler-lock-heartbeat",
        replace_existing=True,
    )
    set_scheduler_active(True)
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    logger.info("Application startup", extra={"env": settings.app_env})
    _assert_webhook_secret(settings)
    if not settings.stripe_configured:
        logger.warning("STRIPE_SECRET_KEY not set; payment endpoints will answer 503")

    db.get_engine()
    if settings.ALLOW_DB_CREATE_ALL and settings.app_env.lower() in ALLOWED_CREATE_ENV:
        logger.warning(
            "Running Base.metadata.create_all() because APP_ENV=%s and ALLOW_DB_CREATE_ALL=True",
            settings.app_env,
        )
        db.create_all()
    else:
        logger.info("Skipping create_all(); use Alembic migrations. APP_ENV=%s", settings.app_env)

    # Only one replica should run the sweep; the DB lock enforces it.
    set_scheduler_active(False)
    lock_acquired = _start_scheduler(settings) if settings.SCHEDULER_ENABLED else False
    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)
        if lock_acquired:
            release_scheduler_lock()
        set_scheduler_active(False)
        db.close_engine()
        logger.info("Application shutdown", extra={"env": settings.app_env})


app_info = AppInfo()

app = FastAPI(title=app_info.name, version=app_info.version, lifespan=lifespan)

_configure_middlewares(app)
app.include_router(get_api_router())


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", exc_info=exc)
    payload = error_response("INTERNAL_SERVER_ERROR", "An unexpected error occurred.")
    return JSONResponse(status_code=500, content=payload)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        content: dict[str, Any] = detail
    else:
        content = error_response("HTTP_ERROR", str(detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


__all__ = ["app"]
