"""API Routes.

Provider endpoints are declared once in ``WEBHOOK_ROUTES`` and mounted at
the application root, because providers are configured with fixed URLs.
Health probes live under the versioned ``api_router``.
"""

from dataclasses import dataclass
from typing import Callable

from fastapi import APIRouter

from api.middleware.rate_limit import get_rate_limit, limiter

from .blog_api import blog_api
from .blog_review import approve_draft, dismiss_draft, slack_interactive
from .clerk import clerk_webhook
from .generation_callbacks import kie_video_callback, suno_music_callback
from .health import router as health_router
from .revenuecat import revenuecat_webhook
from .vapi import vapi_assistant_request, vapi_webhook


@dataclass(frozen=True)
class WebhookRoute:
    method: str
    path: str
    handler: Callable
    rate_limit: str
    name: str


WEBHOOK_ROUTES: tuple[WebhookRoute, ...] = (
    WebhookRoute("POST", "/webhooks/clerk", clerk_webhook, "webhook", "clerk_webhook"),
    WebhookRoute("POST", "/webhooks/revenuecat", revenuecat_webhook, "webhook", "revenuecat_webhook"),
    WebhookRoute("POST", "/webhooks/vapi", vapi_webhook, "webhook", "vapi_webhook"),
    WebhookRoute(
        "POST", "/webhooks/vapi/assistant-request", vapi_assistant_request, "webhook", "vapi_assistant_request",
    ),
    WebhookRoute("POST", "/callback/suno-music-generation", suno_music_callback, "webhook", "suno_music_callback"),
    WebhookRoute("POST", "/callback/kie-video-generation", kie_video_callback, "webhook", "kie_video_callback"),
    WebhookRoute("POST", "/api/blog", blog_api, "blog_api", "blog_api"),
    WebhookRoute("GET", "/api/blog/draft/approve", approve_draft, "draft_review", "approve_draft"),
    WebhookRoute("GET", "/api/blog/draft/dismiss", dismiss_draft, "draft_review", "dismiss_draft"),
    WebhookRoute("POST", "/api/blog/slack/interactive", slack_interactive, "draft_review", "slack_interactive"),
)


def build_webhook_router(routes: tuple[WebhookRoute, ...] = WEBHOOK_ROUTES) -> APIRouter:
    router = APIRouter(tags=["Webhooks"])
    for route in routes:
        router.add_api_route(
            route.path,
            limiter.limit(get_rate_limit(route.rate_limit))(route.handler),
            methods=[route.method],
            name=route.name,
            include_in_schema=False,
        )
    return router


webhook_router = build_webhook_router()

# Versioned API router
api_router = APIRouter()
api_router.include_router(health_router, tags=["Health"])
