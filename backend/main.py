"""Eveokee Webhooks: FastAPI application for provider webhooks and callbacks."""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.middleware.rate_limit import limiter
from api.routes import api_router, webhook_router
from infrastructure.config import get_settings
from infrastructure.database import close_db, init_db
from infrastructure.logging_config import setup_logging
from services.task_queue import task_queue

settings = get_settings()
logger = logging.getLogger(__name__)

# Largest accepted delivery; Suno and RevenueCat payloads are a few KB
MAX_BODY_BYTES = 5 * 1024 * 1024
WORKFLOW_CLEANUP_INTERVAL = 1800
WORKFLOW_RETENTION_SECONDS = 3600
SHUTDOWN_DRAIN_TIMEOUT = 30.0


def _init_sentry() -> None:
    if not settings.sentry_dsn:
        return
    if not settings.sentry_dsn.startswith("https://"):
        logger.warning("SENTRY_DSN appears malformed; Sentry disabled")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=settings.app_version,
        integrations=[
            FastApiIntegration(transaction_style="url"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        # Payloads carry emails and call transcripts
        send_default_pii=False,
    )


# Before the app exists so import-time failures are reported too
_init_sentry()


async def _prune_finished_workflows() -> None:
    while True:
        await asyncio.sleep(WORKFLOW_CLEANUP_INTERVAL)
        removed = task_queue.cleanup_old(max_age_seconds=WORKFLOW_RETENTION_SECONDS)
        if removed:
            logger.info("Pruned %d finished workflow runs", removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(
        json_output=settings.is_production and not settings.debug,
        level="DEBUG" if settings.debug else "INFO",
    )
    logger.info("Starting %s v%s (%s)", settings.app_name, settings.app_version, settings.environment)

    settings.validate_production_secrets()
    if settings.is_development:
        await init_db()

    pruner = asyncio.create_task(_prune_finished_workflows(), name="workflow-pruner")

    yield

    pruner.cancel()
    try:
        await pruner
    except asyncio.CancelledError:
        pass

    # Diary and lyric workflows write results after the webhook returned
    try:
        await asyncio.wait_for(task_queue.drain(), timeout=SHUTDOWN_DRAIN_TIMEOUT)
    except TimeoutError:
        logger.warning("Shutting down with workflows still running: %s", task_queue.stats())

    await close_db()
    logger.info("Application stopped")


app = FastAPI(
    title=settings.app_name,
    description="Webhook ingestion for identity, billing, voice, generation and blog providers",
    version=settings.app_version,
    docs_url="/docs" if settings.is_development else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(StarletteHTTPException)
async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    # Same {"error": ...} body the handlers return
    if exc.status_code == 405:
        return JSONResponse(status_code=405, content={"error": "Method Not Allowed"})
    return await http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Provider payloads can end up in exception text; production logs stay terse
    if settings.is_production:
        logger.error("Unhandled %s on %s", type(exc).__name__, request.url.path)
    else:
        logger.error("Unhandled exception on %s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def _request_id(request: Request) -> str:
    # Only a well-formed UUID from the caller is trusted, to keep logs clean
    incoming = request.headers.get("X-Request-ID")
    if incoming:
        try:
            return str(uuid.UUID(incoming))
        except ValueError:
            pass
    return str(uuid.uuid4())


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Body-size guard, request id, access log and security headers."""
    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > MAX_BODY_BYTES:
        return JSONResponse(status_code=413, content={"error": "Request body too large"})

    request_id = _request_id(request)
    request.state.request_id = request_id
    start = time.perf_counter()

    response = await call_next(request)

    duration_ms = round((time.perf_counter() - start) * 1000, 1)
    path = request.url.path
    if not path.startswith("/api/v1/health"):
        logger.info(
            "%s %s %s %.1fms",
            request.method,
            path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


# Providers are configured with fixed URLs, so their routes sit at the root
app.include_router(webhook_router)
app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        workers=1 if settings.is_development else settings.workers,
    )
