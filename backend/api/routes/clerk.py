"""
Clerk identity webhook.

Only ``user.created`` is acted on: it provisions the user together with a
free-tier subscription.  Delivery is verified by the svix SDK, which also
enforces the replay window.
"""

from fastapi import Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.clerk import USER_CREATED, parse_clerk_event, parse_clerk_user
from api.utils import error_response, redact_headers, success_response, validate_http_method
from core.security import SignatureVerificationError, verify_svix_webhook
from infrastructure.config.settings import settings
from infrastructure.database import get_db
from infrastructure.webhook_logging import create_webhook_logger, log_webhook_event
from services.users import UserService


async def clerk_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Provision users created in Clerk."""
    method_error = validate_http_method(request)
    if method_error:
        return method_error

    logger = create_webhook_logger("clerkWebhook")
    elapsed = logger.start_timer()

    secret = settings.clerk_webhook_signing_secret
    if not secret:
        logger.error("CLERK_WEBHOOK_SIGNING_SECRET is not configured")
        return error_response("Server configuration error", status.HTTP_500_INTERNAL_SERVER_ERROR)

    body = await request.body()
    try:
        payload = verify_svix_webhook(body, request.headers, secret)
    except SignatureVerificationError as e:
        logger.warning("Clerk signature verification failed", error=str(e), headers=redact_headers(request.headers))
        return error_response("Invalid webhook signature", status.HTTP_401_UNAUTHORIZED)

    parsed_event = parse_clerk_event(payload)
    if not parsed_event.success:
        logger.warning("Invalid Clerk payload", error=parsed_event.error)
        return error_response(parsed_event.error, status.HTTP_400_BAD_REQUEST)
    event = parsed_event.data

    log_webhook_event(logger, event.type, "received")
    if event.type != USER_CREATED:
        log_webhook_event(logger, event.type, "ignored", duration_ms=elapsed())
        return success_response({"status": "ignored"})

    parsed_user = parse_clerk_user(event.data)
    if not parsed_user.success:
        logger.warning("Invalid Clerk user data", error=parsed_user.error)
        return error_response(parsed_user.error, status.HTTP_400_BAD_REQUEST)
    user_data = parsed_user.data

    user_logger = logger.child(clerk_id=user_data.id)
    try:
        result = await UserService(db).provision_user(
            clerk_id=user_data.id,
            email=user_data.primary_email,
            name=user_data.display_name,
        )
        await db.commit()
    except Exception as e:
        await db.rollback()
        user_logger.error("Failed to create user", error=str(e), exc_info=True)
        log_webhook_event(user_logger, event.type, "failed", duration_ms=elapsed())
        return error_response("Failed to create user", status.HTTP_500_INTERNAL_SERVER_ERROR)

    if not result.created:
        user_logger.info("User already exists, skipping creation", user_id=result.user.id)
    log_webhook_event(
        user_logger, event.type, "processed",
        user_id=result.user.id, created=result.created, duration_ms=elapsed(),
    )
    return success_response({"status": "ok"})
