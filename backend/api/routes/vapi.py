"""
VAPI voice webhooks.

``/webhooks/vapi`` receives server messages; only ``end-of-call-report`` is
processed.  It completes the call job, records the session and schedules the
diary workflow once per session.

``/webhooks/vapi/assistant-request`` answers inbound calls with an assistant
definition personalized for the caller.
"""

from datetime import UTC, datetime

from fastapi import Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.voice.vapi_assistant import build_assistant, webhook_url_for
from api.schemas.vapi import END_OF_CALL_REPORT, extract_end_of_call_report, parse_vapi_event
from api.utils import (
    error_response,
    parse_json_body,
    redact_headers,
    success_response,
    validate_http_method,
    verify_bearer_token,
)
from infrastructure.config.settings import settings
from infrastructure.database import get_db
from infrastructure.webhook_logging import create_webhook_logger, log_webhook_event
from services.calls import CallService
from services.users import UserService
from services.workflows import workflow_orchestrator


async def vapi_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Handle VAPI server messages."""
    method_error = validate_http_method(request)
    if method_error:
        return method_error

    logger = create_webhook_logger("vapiWebhook")
    elapsed = logger.start_timer()

    auth_error = verify_bearer_token(request, settings.vapi_webhook_secret)
    if auth_error:
        logger.warning(
            "VAPI authentication failed",
            status_code=auth_error.status_code,
            headers=redact_headers(request.headers),
        )
        return auth_error

    body = parse_json_body(await request.body())
    if body.error:
        return body.error

    parsed = parse_vapi_event(body.data)
    if not parsed.success:
        logger.warning("Invalid VAPI payload", error=parsed.error)
        return error_response(parsed.error, status.HTTP_400_BAD_REQUEST)
    event = parsed.data

    if not event.call_id:
        logger.warning("VAPI message without call ID", message_type=event.message.type)
        return error_response("Missing call ID", status.HTTP_400_BAD_REQUEST)

    call_logger = logger.child(vapi_call_id=event.call_id, message_type=event.message.type)
    if event.message.type != END_OF_CALL_REPORT:
        log_webhook_event(call_logger, event.message.type, "ignored", duration_ms=elapsed())
        return success_response({"status": "ignored"})

    log_webhook_event(call_logger, END_OF_CALL_REPORT, "received")

    try:
        report = extract_end_of_call_report(event)
        completion = await CallService(db).complete_call(report)
        await db.commit()
    except Exception as e:
        await db.rollback()
        call_logger.error("Failed to record call completion", error=str(e), exc_info=True)
        log_webhook_event(call_logger, END_OF_CALL_REPORT, "failed", duration_ms=elapsed())
        return error_response("Failed to process webhook", status.HTTP_500_INTERNAL_SERVER_ERROR)

    if completion is None:
        call_logger.info("No call job tracks this call")
        log_webhook_event(call_logger, END_OF_CALL_REPORT, "ignored", reason="Job not found", duration_ms=elapsed())
        return success_response({"status": "ignored", "reason": "Job not found"})

    session_logger = call_logger.child(session_id=completion.session.id, job_id=completion.job.id)
    if completion.schedule_diary:
        await workflow_orchestrator.schedule_diary(completion.session.id, report.vapi_call_id)
        session_logger.info("Scheduled diary generation")
    elif completion.session.diary_id:
        session_logger.info("Diary already exists, skipping", diary_id=completion.session.diary_id)
    else:
        session_logger.info("No transcript or messages, diary not scheduled")

    log_webhook_event(session_logger, END_OF_CALL_REPORT, "processed", duration_ms=elapsed())
    return success_response({"status": "ok"})


async def vapi_assistant_request(request: Request, db: AsyncSession = Depends(get_db)):
    """Return the assistant for an inbound call, looked up by the caller's number."""
    method_error = validate_http_method(request)
    if method_error:
        return method_error

    logger = create_webhook_logger("vapiAssistantRequest")
    elapsed = logger.start_timer()

    auth_error = verify_bearer_token(request, settings.vapi_webhook_secret)
    if auth_error:
        logger.warning(
            "VAPI authentication failed",
            status_code=auth_error.status_code,
            headers=redact_headers(request.headers),
        )
        return auth_error

    body = parse_json_body(await request.body())
    if body.error:
        return body.error

    parsed = parse_vapi_event(body.data)
    if not parsed.success:
        logger.warning("Invalid assistant request payload", error=parsed.error)
        return error_response(parsed.error, status.HTTP_400_BAD_REQUEST)
    event = parsed.data

    phone = event.customer_number
    if not phone:
        logger.warning("Assistant request without customer number")
        return error_response("Missing customer phone number", status.HTTP_400_BAD_REQUEST)

    call_settings = await CallService(db).find_call_settings_by_phone(phone)
    if call_settings is None:
        logger.warning("No call settings for caller", phone=phone)
        return error_response("No call settings found for this phone number", status.HTTP_404_NOT_FOUND)

    user = await UserService(db).get_by_id(call_settings.user_id)
    if user is None:
        logger.error("Call settings point at a missing user", user_id=call_settings.user_id)
        return error_response("User not found", status.HTTP_500_INTERNAL_SERVER_ERROR)

    if not settings.site_url:
        logger.error("SITE_URL is not configured")
        return error_response("Server configuration error", status.HTTP_500_INTERNAL_SERVER_ERROR)

    credential_ids = [settings.vapi_credential_id] if settings.vapi_credential_id else None
    now = datetime.now(UTC)
    try:
        assistant = build_assistant(
            user.name, call_settings.timezone, now, webhook_url_for(settings.site_url), credential_ids,
        )
    except ValueError as e:
        logger.warning("Falling back to UTC for assistant prompt", error=str(e))
        assistant = build_assistant(
            user.name, "UTC", now, webhook_url_for(settings.site_url), credential_ids,
        )

    log_webhook_event(logger, "assistant-request", "processed", user_id=user.id, duration_ms=elapsed())
    return success_response({"messageResponse": {"assistant": assistant}})
