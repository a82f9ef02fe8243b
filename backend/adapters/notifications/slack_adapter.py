"""
Slack incoming-webhook notifications and Block Kit message builders.

Notifications are best-effort: ``send_message`` never raises, it returns a
``SlackResult`` that callers log.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

APPROVE_ACTION_ID = "approve_draft"
DISMISS_ACTION_ID = "dismiss_draft"


@dataclass
class SlackResult:
    success: bool
    error: Optional[str] = None


def escape_mrkdwn(value: str) -> str:
    """Escape the three characters Slack treats as control sequences in mrkdwn."""
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _header(text: str) -> dict[str, Any]:
    return {"type": "header", "text": {"type": "plain_text", "text": text, "emoji": True}}


def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def draft_review_blocks(
    post_id: str,
    title: str,
    preview_token: str,
    preview_url: str,
    approve_url: str,
    dismiss_url: str,
) -> list[dict[str, Any]]:
    """Blocks for a new-draft notification.

    Buttons carry both a link (GET review endpoints) and an action value
    ``postId:token`` for the interactive endpoint.
    """
    button_value = f"{post_id}:{preview_token}"
    return [
        _header("📝 New Blog Draft Ready for Review"),
        _section(f"*{escape_mrkdwn(title)}*\n\nA new blog post draft from RankPill is ready for your review."),
        _section(f"<{preview_url}|👀 Preview Draft>"),
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "action_id": APPROVE_ACTION_ID,
                    "text": {"type": "plain_text", "text": "✅ Approve & Publish", "emoji": True},
                    "style": "primary",
                    "value": button_value,
                    "url": approve_url,
                },
                {
                    "type": "button",
                    "action_id": DISMISS_ACTION_ID,
                    "text": {"type": "plain_text", "text": "❌ Dismiss", "emoji": True},
                    "style": "danger",
                    "value": button_value,
                    "url": dismiss_url,
                },
            ],
        },
    ]


def approved_message(title: str, published_url: str) -> dict[str, Any]:
    return {
        "response_type": "in_channel",
        "replace_original": True,
        "blocks": [
            _header("✅ Blog Draft Approved & Published"),
            _section(f"*{escape_mrkdwn(title)}*\n\nThe blog post has been published and is now live."),
            _section(f"<{escape_mrkdwn(published_url)}|👀 View Published Post>"),
        ],
    }


def dismissed_message(title: str) -> dict[str, Any]:
    return {
        "response_type": "in_channel",
        "replace_original": True,
        "blocks": [
            _header("❌ Blog Draft Dismissed"),
            _section(f"*{escape_mrkdwn(title)}*\n\nThe blog draft has been dismissed and deleted."),
        ],
    }


def already_processed_message(title: str, state: str) -> dict[str, Any]:
    return {
        "response_type": "in_channel",
        "replace_original": True,
        "blocks": [
            _header("ℹ️ Draft Already Processed"),
            _section(f"*{escape_mrkdwn(title)}*\n\nThis draft was already {state}. No changes were made."),
        ],
    }


def failure_message(action: str, error: str) -> dict[str, Any]:
    return {
        "response_type": "ephemeral",
        "text": f"❌ Failed to {action} draft: {error}",
    }


class SlackNotifier:
    """Posts messages to a Slack incoming webhook."""

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 10.0):
        self.webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self.timeout = timeout

    async def send_message(self, text: str, blocks: Optional[list[dict[str, Any]]] = None) -> SlackResult:
        if not self.webhook_url:
            logger.error("SLACK_WEBHOOK_URL environment variable not set")
            return SlackResult(success=False, error="SLACK_WEBHOOK_URL not configured")

        payload: dict[str, Any] = {"text": text}
        if blocks:
            payload["blocks"] = blocks

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Failed to send Slack message: {e}")
            return SlackResult(success=False, error=str(e))

        if response.status_code != 200:
            logger.error("Slack webhook error: %s", response.text)
            return SlackResult(success=False, error=f"Slack API error: {response.status_code} {response.text}")
        return SlackResult(success=True)

    async def send_draft_review(
        self,
        post_id: str,
        title: str,
        preview_token: str,
        preview_url: str,
        approve_url: str,
        dismiss_url: str,
    ) -> SlackResult:
        blocks = draft_review_blocks(post_id, title, preview_token, preview_url, approve_url, dismiss_url)
        return await self.send_message(f"New blog draft ready for review: {title}", blocks)


slack_notifier = SlackNotifier()
