"""
RevenueCat billing webhook.

Each event overwrites the user's subscription snapshot and is appended to
the subscription audit log.  ``app_user_id`` is our internal user id.
"""

from fastapi import Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.revenuecat import parse_revenuecat_webhook, sanitize_raw_event
from api.utils import (
    error_response,
    is_valid_record_id,
    parse_json_body,
    redact_headers,
    success_response,
    validate_http_method,
    verify_bearer_token,
)
from infrastructure.config.settings import settings
from infrastructure.database import get_db
from infrastructure.webhook_logging import create_webhook_logger, log_webhook_event
from services.billing import BillingService, UserNotFoundError


async def revenuecat_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Apply a RevenueCat subscription event."""
    method_error = validate_http_method(request)
    if method_error:
        return method_error

    logger = create_webhook_logger("revenuecatWebhook")
    elapsed = logger.start_timer()

    auth_error = verify_bearer_token(request, settings.revenuecat_webhook_secret)
    if auth_error:
        logger.warning(
            "RevenueCat authentication failed",
            status_code=auth_error.status_code,
            headers=redact_headers(request.headers),
        )
        return auth_error

    body = parse_json_body(await request.body())
    if body.error:
        return body.error

    parsed = parse_revenuecat_webhook(body.data)
    if not parsed.success:
        logger.warning("Invalid RevenueCat payload", error=parsed.error)
        return error_response(parsed.error, status.HTTP_400_BAD_REQUEST)
    event = parsed.data.event

    if not is_valid_record_id(event.app_user_id):
        logger.warning("Invalid app_user_id", app_user_id=event.app_user_id)
        return error_response("Invalid user ID format", status.HTTP_400_BAD_REQUEST)

    user_logger = logger.child(user_id=event.app_user_id, event_type=event.type.value)
    log_webhook_event(user_logger, event.type.value, "received", product_id=event.product_id)

    raw_event = sanitize_raw_event(body.data.get("event"))
    try:
        subscription = await BillingService(db).apply_billing_event(event.app_user_id, event, raw_event)
        await db.commit()
    except UserNotFoundError as e:
        await db.rollback()
        user_logger.error("User not found for billing event", error=str(e))
        log_webhook_event(user_logger, event.type.value, "failed", duration_ms=elapsed())
        return error_response("Failed to process webhook", status.HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception as e:
        await db.rollback()
        user_logger.error("Failed to update subscription", error=str(e), exc_info=True)
        log_webhook_event(user_logger, event.type.value, "failed", duration_ms=elapsed())
        return error_response("Failed to process webhook", status.HTTP_500_INTERNAL_SERVER_ERROR)

    log_webhook_event(
        user_logger, event.type.value, "processed",
        subscription_status=subscription.status,
        tier=subscription.subscription_tier,
        duration_ms=elapsed(),
    )
    return success_response({"status": "ok"})
