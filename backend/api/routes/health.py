"""Health probes.

``/health`` reports which providers can be accepted (a provider whose
secret is missing fails closed, so its deliveries are all rejected) and the
state of the background workflow queue.
"""

import asyncio
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.config import get_settings
from infrastructure.database import get_db
from services.task_queue import task_queue

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


def provider_readiness() -> dict[str, bool]:
    """Whether each inbound provider has what it needs to authenticate and respond."""
    return {
        "clerk": bool(settings.clerk_webhook_signing_secret),
        "revenuecat": bool(settings.revenuecat_webhook_secret),
        "vapi": bool(settings.vapi_webhook_secret and settings.site_url),
        "blog": bool(settings.blog_webhook_hmac_secret),
        "slack_review": bool(settings.slack_webhook_url and settings.site_url),
        "music_generation": bool(settings.suno_api_key and settings.suno_music_callback_url),
        "diary_generation": bool(settings.anthropic_api_key),
    }


@router.get("/health")
async def health_check():
    """Service status, provider readiness and workflow counters."""
    providers = provider_readiness()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "providers": providers,
        "providers_ready": all(providers.values()),
        "workflows": task_queue.stats(),
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    """Database round trip; idempotency for every provider depends on it."""
    try:
        await asyncio.wait_for(db.execute(text("SELECT 1")), timeout=5.0)
        database = "connected"
    except TimeoutError:
        logger.error("Health check DB timeout")
        database = "timeout"
    except Exception as e:
        logger.error("Health check DB error: %s", type(e).__name__)
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "database": database,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health/live")
async def liveness_check():
    return {"alive": True}
