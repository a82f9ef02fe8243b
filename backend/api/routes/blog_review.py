"""
Blog draft review endpoints.

The Slack review message offers approve and dismiss buttons.  They work two
ways: as plain links to the GET endpoints (rendering a small HTML page) and
as interactive actions posted to ``/api/blog/slack/interactive`` (answered
with a replacement Block Kit message).  Both paths go through
``BlogService.review_draft``, so clicking twice is harmless.
"""

import html

from fastapi import Depends, Request, status
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.notifications.slack_adapter import (
    already_processed_message,
    approved_message,
    dismissed_message,
    failure_message,
)
from api.schemas.blog import (
    SLACK_APPROVE_ACTION,
    SLACK_DISMISS_ACTION,
    parse_button_value,
    parse_slack_interaction,
)
from api.utils import error_response, success_response, validate_http_method
from core.blog import published_url
from infrastructure.config.settings import settings
from infrastructure.database import get_db
from infrastructure.webhook_logging import WebhookLogger, create_webhook_logger, log_webhook_event
from services.blog import BlogService, ReviewAction, ReviewOutcome, ReviewResult

_SLACK_ACTIONS = {
    SLACK_APPROVE_ACTION: ReviewAction.APPROVE,
    SLACK_DISMISS_ACTION: ReviewAction.DISMISS,
}

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <title>{title}</title>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
</head>
<body>
  <div style="font-family: sans-serif; max-width: 600px; margin: 50px auto; padding: 20px;">
    <h1>{heading}</h1>
    {body}
  </div>
</body>
</html>"""


def _page(title: str, heading: str, body: str) -> HTMLResponse:
    return HTMLResponse(_PAGE_TEMPLATE.format(title=title, heading=heading, body=body))


def _review_page(result: ReviewResult) -> HTMLResponse:
    safe_title = html.escape(result.post.title if result.post else "")

    if result.outcome == ReviewOutcome.APPROVED:
        safe_url = html.escape(published_url(settings.share_base_url, result.slug))
        return _page(
            "Draft Approved",
            "✅ Draft Approved",
            f'<p>The blog post "<strong>{safe_title}</strong>" has been published.</p>\n'
            f'    <p><a href="{safe_url}">View Published Post</a></p>',
        )
    if result.outcome == ReviewOutcome.DISMISSED:
        return _page(
            "Draft Dismissed",
            "❌ Draft Dismissed",
            f'<p>The blog post "<strong>{safe_title}</strong>" has been deleted.</p>',
        )
    return _page(
        "Draft Already Processed",
        "ℹ️ Draft Already Processed",
        f'<p>The blog post "<strong>{safe_title}</strong>" was already '
        f"{html.escape(result.processed_state)}. No changes were made.</p>",
    )


async def _review(db: AsyncSession, post_id: str, token: str, action: ReviewAction, logger: WebhookLogger) -> ReviewResult:
    result = await BlogService(db).review_draft(post_id, token, action)
    if result.outcome in (ReviewOutcome.APPROVED, ReviewOutcome.DISMISSED):
        await db.commit()
        log_webhook_event(logger, "blogDraftReview", "processed", action=result.outcome.value, post_id=post_id)
    elif result.outcome == ReviewOutcome.ALREADY_PROCESSED:
        log_webhook_event(logger, "blogDraftReview", "ignored", reason="already processed", post_id=post_id)
    else:
        await db.rollback()
        logger.warning("Draft review rejected", outcome=result.outcome.value, error=result.error)
    return result


async def _handle_review_link(request: Request, db: AsyncSession, action: ReviewAction, handler: str):
    method_error = validate_http_method(request, "GET")
    if method_error:
        return method_error

    logger = create_webhook_logger(handler)
    post_id = request.query_params.get("postId")
    token = request.query_params.get("token")
    if not post_id or not token:
        logger.warning("Missing required parameters", has_post_id=bool(post_id), has_token=bool(token))
        return error_response("Missing postId or token parameter", status.HTTP_400_BAD_REQUEST)

    try:
        result = await _review(db, post_id, token, action, logger.child(post_id=post_id))
    except Exception as e:
        await db.rollback()
        logger.error(f"Failed to {action.value} draft", error=str(e), exc_info=True)
        log_webhook_event(logger, "blogDraftReview", "failed", action=action.value)
        return error_response(f"Failed to {action.value} draft", status.HTTP_500_INTERNAL_SERVER_ERROR)

    if result.outcome == ReviewOutcome.NOT_FOUND:
        return error_response(result.error, status.HTTP_404_NOT_FOUND)
    if result.outcome in (ReviewOutcome.MISMATCH, ReviewOutcome.FAILED):
        return error_response(result.error or f"Failed to {action.value} draft", status.HTTP_400_BAD_REQUEST)
    return _review_page(result)


async def approve_draft(request: Request, db: AsyncSession = Depends(get_db)):
    """GET /api/blog/draft/approve?postId=...&token=..."""
    return await _handle_review_link(request, db, ReviewAction.APPROVE, "approveDraftHandler")


async def dismiss_draft(request: Request, db: AsyncSession = Depends(get_db)):
    """GET /api/blog/draft/dismiss?postId=...&token=..."""
    return await _handle_review_link(request, db, ReviewAction.DISMISS, "dismissDraftHandler")


def _slack_response(result: ReviewResult, action: ReviewAction) -> dict:
    if result.outcome == ReviewOutcome.APPROVED:
        return approved_message(result.post.title, published_url(settings.share_base_url, result.slug))
    if result.outcome == ReviewOutcome.DISMISSED:
        return dismissed_message(result.post.title)
    if result.outcome == ReviewOutcome.ALREADY_PROCESSED:
        return already_processed_message(result.post.title, result.processed_state)
    return failure_message(action.value, result.error or "Unknown error")


async def slack_interactive(request: Request, db: AsyncSession = Depends(get_db)):
    """Slack interactive callback for the review buttons (form field ``payload``)."""
    method_error = validate_http_method(request)
    if method_error:
        return method_error

    logger = create_webhook_logger("slackInteractiveHandler")
    form = await request.form()
    raw_payload = form.get("payload")
    parsed = parse_slack_interaction(raw_payload if isinstance(raw_payload, str) else None)
    if not parsed.success:
        logger.warning("Invalid Slack payload", error=parsed.error)
        return error_response(parsed.error, status.HTTP_400_BAD_REQUEST)
    interaction = parsed.data

    if interaction.type != "block_actions":
        logger.info("Ignoring non-button interaction", interaction_type=interaction.type)
        return success_response({"message": "Interaction type not supported"})

    slack_action = interaction.actions[0] if interaction.actions else None
    if slack_action is None or slack_action.type != "button":
        logger.warning("Invalid action in payload")
        return error_response("Invalid action", status.HTTP_400_BAD_REQUEST)

    button = parse_button_value(slack_action.value)
    if button is None:
        logger.warning("Invalid button value format")
        return error_response("Invalid button value", status.HTTP_400_BAD_REQUEST)
    post_id, token = button

    action = _SLACK_ACTIONS.get(slack_action.action_id)
    if action is None:
        logger.warning("Unknown action", action_id=slack_action.action_id)
        return error_response("Unknown action", status.HTTP_400_BAD_REQUEST)

    action_logger = logger.child(post_id=post_id, action=action.value)
    try:
        result = await _review(db, post_id, token, action, action_logger)
    except Exception as e:
        await db.rollback()
        action_logger.error(f"Failed to {action.value} draft", error=str(e), exc_info=True)
        log_webhook_event(action_logger, "blogDraftReview", "failed")
        return error_response(f"Failed to {action.value} draft", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return success_response(_slack_response(result, action))
