"""
RankPill content automation API.

Requests are authenticated with an HMAC-SHA256 signature of the raw body.
Two payload shapes are accepted:

- a RankPill article (``title`` + ``content_html``), staged as a draft and
  announced in Slack for review;
- an ``operation`` envelope: createDraft, updateDraft, publish, archive or
  setRedirects, with the remaining fields as parameters.
"""

from fastapi import Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.notifications.slack_adapter import slack_notifier
from api.schemas.blog import (
    BLOG_OPERATIONS,
    is_rankpill_article,
    parse_blog_operation,
    parse_rankpill_article,
)
from api.utils import error_response, parse_json_body, redact_headers, success_response, validate_http_method
from core.blog import BLOG_DRAFT_APPROVE_PATH, BLOG_DRAFT_DISMISS_PATH, preview_url, review_url
from core.security import extract_rankpill_signature, verify_hmac_signature
from infrastructure.config.settings import settings
from infrastructure.database import get_db
from infrastructure.webhook_logging import WebhookLogger, create_webhook_logger, log_webhook_event
from services.blog import BlogError, BlogService


async def blog_api(request: Request, db: AsyncSession = Depends(get_db)):
    """Authenticated entry point for RankPill."""
    method_error = validate_http_method(request)
    if method_error:
        return method_error

    logger = create_webhook_logger("blogApi")
    elapsed = logger.start_timer()

    secret = settings.blog_webhook_hmac_secret
    if not secret:
        logger.error("BLOG_WEBHOOK_HMAC_SECRET is not configured")
        return error_response("Server configuration error", status.HTTP_500_INTERNAL_SERVER_ERROR)

    signature = extract_rankpill_signature(request.headers)
    if not signature:
        logger.warning("Blog API request without signature", headers=redact_headers(request.headers))
        return error_response(
            "Missing x-rankpill-signature or authorization header", status.HTTP_401_UNAUTHORIZED
        )

    raw_body = await request.body()
    if not verify_hmac_signature(raw_body, signature, secret):
        logger.warning("Blog API signature mismatch", headers=redact_headers(request.headers))
        return error_response("Authentication failed: signature invalid", status.HTTP_401_UNAUTHORIZED)

    body = parse_json_body(raw_body, "Invalid JSON body")
    if body.error:
        return body.error
    payload = body.data

    if is_rankpill_article(payload):
        return await _create_rankpill_draft(db, payload, logger, elapsed)

    operation = payload.get("operation") if isinstance(payload, dict) else None
    if operation not in BLOG_OPERATIONS:
        logger.warning("Unknown blog operation", operation=operation)
        return error_response(
            f"Unknown operation: {operation or 'missing'}. "
            "Expected operation field or RankPill article format.",
            status.HTTP_400_BAD_REQUEST,
        )

    op_logger = logger.child(operation=operation)
    params = {k: v for k, v in payload.items() if k != "operation"}
    parsed = parse_blog_operation(operation, params)
    if not parsed.success:
        op_logger.warning("Invalid operation parameters", error=parsed.error)
        return error_response(parsed.error, status.HTTP_400_BAD_REQUEST)

    try:
        result = await BlogService(db).run_operation(operation, parsed.data)
        await db.commit()
    except BlogError as e:
        await db.rollback()
        op_logger.error("Blog API operation failed", error=str(e), params=sorted(params))
        log_webhook_event(op_logger, "blogApi", "failed", error=str(e), duration_ms=elapsed())
        return error_response(str(e), status.HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception as e:
        await db.rollback()
        op_logger.error("Blog API operation failed", error=str(e), exc_info=True)
        log_webhook_event(op_logger, "blogApi", "failed", duration_ms=elapsed())
        return error_response("Operation failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

    log_webhook_event(op_logger, "blogApi", "processed", duration_ms=elapsed())
    return success_response({"success": True, "result": result})


async def _create_rankpill_draft(db: AsyncSession, payload: dict, logger: WebhookLogger, elapsed):
    parsed = parse_rankpill_article(payload)
    if not parsed.success:
        logger.warning("Invalid RankPill article", error=parsed.error)
        return error_response(parsed.error, status.HTTP_400_BAD_REQUEST)
    article = parsed.data

    try:
        post = await BlogService(db).create_rankpill_draft(article)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("Failed to create RankPill draft", error=str(e), title=article.title, exc_info=True)
        log_webhook_event(logger, "blogApi", "failed", operation="rankpillDraft", duration_ms=elapsed())
        return error_response("Failed to create draft", status.HTTP_500_INTERNAL_SERVER_ERROR)

    token = post.draft_preview_token
    draft_preview_url = preview_url(settings.share_base_url, token)
    backend_base_url = settings.site_url or settings.share_base_url

    # Notification runs after the commit and never fails the request
    result = await slack_notifier.send_draft_review(
        post_id=post.id,
        title=post.title,
        preview_token=token,
        preview_url=draft_preview_url,
        approve_url=review_url(backend_base_url, BLOG_DRAFT_APPROVE_PATH, post.id, token),
        dismiss_url=review_url(backend_base_url, BLOG_DRAFT_DISMISS_PATH, post.id, token),
    )
    if not result.success:
        logger.warning("Failed to send Slack notification", error=result.error)

    log_webhook_event(
        logger, "blogApi", "processed", operation="rankpillDraft", post_id=post.id, duration_ms=elapsed(),
    )
    return success_response({
        "success": True,
        "result": {
            "postId": post.id,
            "status": "draft",
            "previewToken": token,
            "previewUrl": draft_preview_url,
        },
    })
