"""
Per-client rate limits for inbound provider traffic, using slowapi.

Providers retry failed deliveries and legitimately burst (a RevenueCat
backfill, a batch of Suno callbacks), so provider endpoints get a generous
limit.  The blog API and the human-facing review links get tighter ones.
Counters live in Redis when ``REDIS_URL`` is set, in process memory
otherwise.

Each route in ``api.routes.WEBHOOK_ROUTES`` names one of the classes below.
"""

import ipaddress
import logging

from starlette.requests import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

RATE_LIMITS = {
    "webhook": "300/minute",
    "blog_api": "30/minute",
    "draft_review": "20/minute",
    "default": "100/minute",
}


def _public_ip(value: str | None) -> str | None:
    """Return *value* if it is a public IP address, else None.

    Private and loopback addresses in forwarding headers are ignored since
    anyone can send them to land in the proxy's bucket.
    """
    if not value:
        return None
    try:
        address = ipaddress.ip_address(value.strip())
    except ValueError:
        return None
    if address.is_private or address.is_loopback or address.is_link_local:
        return None
    return str(address)


def client_ip(request: Request) -> str:
    """Rate-limit key: the caller's address as seen through the reverse proxy."""
    forwarded = request.headers.get("x-forwarded-for", "")
    return (
        _public_ip(forwarded.split(",")[0])
        or _public_ip(request.headers.get("x-real-ip"))
        or get_remote_address(request)
    )


def get_rate_limit(endpoint: str) -> str:
    """Limit string for a route class; unknown classes get the default."""
    return RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])


if not settings.redis_url and settings.is_production:
    logger.critical("REDIS_URL is not set; rate limits are per-process only")

limiter = Limiter(
    key_func=client_ip,
    storage_uri=settings.redis_url or "memory://",
    default_limits=[RATE_LIMITS["default"]],
)
