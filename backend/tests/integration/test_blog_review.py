"""
Integration tests for draft approval links and Slack interactive buttons.
"""

import json

import pytest

from api.schemas.blog import CreateDraftParams
from services.blog import BlogService

APPROVE_URL = "/api/blog/draft/approve"
DISMISS_URL = "/api/blog/draft/dismiss"
SLACK_URL = "/api/blog/slack/interactive"


@pytest.fixture
async def draft(db_session):
    post = await BlogService(db_session).create_draft(
        CreateDraftParams(
            title="Songs From <Your> Day",
            bodyMarkdown="Body",
            author="Editor",
            draftPreviewToken="token-abc",
        )
    )
    await db_session.commit()
    return post


def _slack_payload(action_id: str, value: str, **overrides) -> dict:
    payload = {
        "type": "block_actions",
        "user": {"id": "U1", "username": "editor"},
        "response_url": "https://hooks.slack.com/actions/1",
        "actions": [{"type": "button", "action_id": action_id, "value": value}],
    }
    payload.update(overrides)
    return {"payload": json.dumps(payload)}


# ---------------------------------------------------------------------------
# GET links
# ---------------------------------------------------------------------------

async def test_approve_link_publishes_draft(async_client, db_session, draft):
    response = await async_client.get(APPROVE_URL, params={"postId": draft.id, "token": "token-abc"})

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "Draft Approved" in response.text
    assert "Songs From &lt;Your&gt; Day" in response.text
    assert "https://eveokee.test/blog/songs-from-your-day" in response.text

    await db_session.refresh(draft)
    assert draft.status == "published"
    assert draft.slug == "songs-from-your-day"


async def test_second_click_reports_already_processed(async_client, draft):
    await async_client.get(APPROVE_URL, params={"postId": draft.id, "token": "token-abc"})
    response = await async_client.get(DISMISS_URL, params={"postId": draft.id, "token": "token-abc"})

    assert response.status_code == 200
    assert "Draft Already Processed" in response.text
    assert "already published" in response.text


async def test_dismiss_link_archives_draft(async_client, db_session, draft):
    response = await async_client.get(DISMISS_URL, params={"postId": draft.id, "token": "token-abc"})

    assert response.status_code == 200
    assert "Draft Dismissed" in response.text
    await db_session.refresh(draft)
    assert draft.status == "archived"
    assert draft.deleted_at is not None


async def test_missing_parameters(async_client, draft):
    response = await async_client.get(APPROVE_URL, params={"postId": draft.id})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing postId or token parameter"}


async def test_invalid_token(async_client, draft):
    response = await async_client.get(APPROVE_URL, params={"postId": draft.id, "token": "wrong"})

    assert response.status_code == 404
    assert response.json() == {"error": "Draft not found or invalid token"}


async def test_post_id_mismatch(async_client, draft):
    response = await async_client.get(APPROVE_URL, params={"postId": "other", "token": "token-abc"})

    assert response.status_code == 400
    assert response.json() == {"error": "Post ID mismatch"}


async def test_post_to_review_link_is_not_allowed(async_client, draft):
    response = await async_client.post(APPROVE_URL, params={"postId": draft.id, "token": "token-abc"})

    assert response.status_code == 405
    assert response.json() == {"error": "Method Not Allowed"}


# ---------------------------------------------------------------------------
# Slack interactive
# ---------------------------------------------------------------------------

async def test_slack_approve_replaces_message(async_client, db_session, draft):
    response = await async_client.post(SLACK_URL, data=_slack_payload("approve_draft", f"{draft.id}:token-abc"))

    assert response.status_code == 200
    body = response.json()
    assert body["replace_original"] is True
    assert body["blocks"][0]["text"]["text"] == "✅ Blog Draft Approved & Published"
    assert "Songs From &lt;Your&gt; Day" in body["blocks"][1]["text"]["text"]

    await db_session.refresh(draft)
    assert draft.status == "published"


async def test_slack_dismiss_then_repeat(async_client, draft):
    first = await async_client.post(SLACK_URL, data=_slack_payload("dismiss_draft", f"{draft.id}:token-abc"))
    second = await async_client.post(SLACK_URL, data=_slack_payload("dismiss_draft", f"{draft.id}:token-abc"))

    assert first.json()["blocks"][0]["text"]["text"] == "❌ Blog Draft Dismissed"
    assert second.json()["blocks"][0]["text"]["text"] == "ℹ️ Draft Already Processed"
    assert "already dismissed" in second.json()["blocks"][1]["text"]["text"]


async def test_slack_invalid_token_is_ephemeral_failure(async_client, draft):
    response = await async_client.post(SLACK_URL, data=_slack_payload("approve_draft", f"{draft.id}:nope"))

    assert response.status_code == 200
    assert response.json() == {
        "response_type": "ephemeral",
        "text": "❌ Failed to approve draft: Draft not found or invalid token",
    }


async def test_slack_non_button_interaction(async_client):
    payload = {"payload": json.dumps({"type": "view_submission"})}

    response = await async_client.post(SLACK_URL, data=payload)

    assert response.status_code == 200
    assert response.json() == {"message": "Interaction type not supported"}


async def test_slack_missing_actions(async_client):
    payload = {"payload": json.dumps({"type": "block_actions", "actions": []})}

    response = await async_client.post(SLACK_URL, data=payload)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid action"}


async def test_slack_bad_button_value(async_client, draft):
    response = await async_client.post(SLACK_URL, data=_slack_payload("approve_draft", "no-separator"))

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid button value"}


async def test_slack_unknown_action(async_client, draft):
    response = await async_client.post(SLACK_URL, data=_slack_payload("delete_draft", f"{draft.id}:token-abc"))

    assert response.status_code == 400
    assert response.json() == {"error": "Unknown action"}


async def test_slack_missing_payload(async_client):
    response = await async_client.post(SLACK_URL, data={"other": "x"})
    assert response.status_code == 400
