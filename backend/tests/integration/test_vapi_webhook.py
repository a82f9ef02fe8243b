"""
Integration tests for VAPI server messages and inbound assistant requests.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from infrastructure.database.models import CallJob, CallSession
from services.workflows import workflow_orchestrator

VAPI_URL = "/webhooks/vapi"
ASSISTANT_URL = "/webhooks/vapi/assistant-request"


@pytest.fixture
def scheduled_diaries(monkeypatch):
    mock = AsyncMock(return_value="diary:call-123")
    monkeypatch.setattr(workflow_orchestrator, "schedule_diary", mock)
    return mock


def _end_of_call(call_id: str = "call-123", **artifact) -> dict:
    return {
        "message": {
            "type": "end-of-call-report",
            "call": {"id": call_id, "endedAt": "2026-05-01T10:00:00Z"},
            "durationSeconds": 95.5,
            "endedReason": "customer-ended-call",
            "artifact": artifact or {
                "transcript": "User: I finished my thesis today",
                "messages": [{"role": "user", "message": "I finished my thesis today"}],
                "recordingUrl": "https://recordings/call-123.wav",
            },
        }
    }


# ---------------------------------------------------------------------------
# /webhooks/vapi
# ---------------------------------------------------------------------------

async def test_end_of_call_completes_job_and_schedules_diary(
    async_client, db_session, vapi_headers, started_call, scheduled_diaries,
):
    response = await async_client.post(VAPI_URL, json=_end_of_call(), headers=vapi_headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

    await db_session.refresh(started_call)
    assert started_call.status == "completed"

    session = (await db_session.execute(select(CallSession))).scalar_one()
    assert session.vapi_call_id == "call-123"
    assert session.duration_sec == 95.5
    assert session.meta["recording"] == {"url": "https://recordings/call-123.wav"}
    scheduled_diaries.assert_awaited_once_with(session.id, "call-123")


async def test_redelivered_report_is_recorded_once(
    async_client, db_session, vapi_headers, started_call, scheduled_diaries,
):
    for _ in range(2):
        response = await async_client.post(VAPI_URL, json=_end_of_call(), headers=vapi_headers)
        assert response.status_code == 200

    sessions = await db_session.scalar(select(func.count()).select_from(CallSession))
    assert sessions == 1


async def test_out_of_range_ended_at_still_completes_job(
    async_client, db_session, vapi_headers, started_call, scheduled_diaries,
):
    payload = _end_of_call()
    payload["message"]["call"]["endedAt"] = 1e20

    response = await async_client.post(VAPI_URL, json=payload, headers=vapi_headers)

    assert response.status_code == 200
    await db_session.refresh(started_call)
    assert started_call.status == "completed"
    scheduled_diaries.assert_awaited_once()


async def test_report_without_conversation_does_not_schedule(
    async_client, vapi_headers, started_call, scheduled_diaries,
):
    response = await async_client.post(
        VAPI_URL, json=_end_of_call(transcript="   ", messages=[]), headers=vapi_headers,
    )

    assert response.status_code == 200
    scheduled_diaries.assert_not_awaited()


async def test_unknown_call_is_ignored(async_client, vapi_headers, scheduled_diaries):
    response = await async_client.post(VAPI_URL, json=_end_of_call("call-unknown"), headers=vapi_headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ignored", "reason": "Job not found"}
    scheduled_diaries.assert_not_awaited()


async def test_other_message_types_are_ignored(async_client, db_session, vapi_headers, started_call):
    payload = {"message": {"type": "status-update", "call": {"id": "call-123"}, "status": "in-progress"}}

    response = await async_client.post(VAPI_URL, json=payload, headers=vapi_headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}
    await db_session.refresh(started_call)
    assert started_call.status == "started"


async def test_missing_call_id(async_client, vapi_headers):
    payload = {"message": {"type": "end-of-call-report", "call": {}}}

    response = await async_client.post(VAPI_URL, json=payload, headers=vapi_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Missing call ID"}


async def test_missing_message_is_bad_request(async_client, vapi_headers):
    response = await async_client.post(VAPI_URL, json={"call": {"id": "x"}}, headers=vapi_headers)
    assert response.status_code == 400


async def test_requires_bearer_token(async_client, webhook_settings):
    response = await async_client.post(VAPI_URL, json=_end_of_call())
    assert response.status_code == 401


async def test_terminal_job_keeps_status(async_client, db_session, vapi_headers, started_call, scheduled_diaries):
    started_call.status = "canceled"
    await db_session.commit()

    response = await async_client.post(VAPI_URL, json=_end_of_call(), headers=vapi_headers)

    assert response.status_code == 200
    job = await db_session.get(CallJob, started_call.id)
    await db_session.refresh(job)
    assert job.status == "canceled"


# ---------------------------------------------------------------------------
# /webhooks/vapi/assistant-request
# ---------------------------------------------------------------------------

def _assistant_request(number: str | None = "+15551234567") -> dict:
    message = {"type": "assistant-request", "call": {"id": "call-in-1"}}
    if number is not None:
        message["customer"] = {"number": number}
    return {"message": message}


async def test_assistant_request_returns_personalized_assistant(async_client, vapi_headers, call_settings):
    response = await async_client.post(ASSISTANT_URL, json=_assistant_request(), headers=vapi_headers)

    assert response.status_code == 200
    assistant = response.json()["messageResponse"]["assistant"]
    assert assistant["server"] == {"url": "https://api.eveokee.test/webhooks/vapi"}
    assert assistant["serverMessages"] == ["end-of-call-report"]
    assert "Test User" in assistant["model"]["messages"][0]["content"]
    assert "credentialIds" not in assistant


async def test_assistant_request_includes_credentials(
    async_client, vapi_headers, call_settings, monkeypatch, webhook_settings,
):
    monkeypatch.setattr(webhook_settings, "vapi_credential_id", "cred-1")

    response = await async_client.post(ASSISTANT_URL, json=_assistant_request(), headers=vapi_headers)
    assert response.json()["messageResponse"]["assistant"]["credentialIds"] == ["cred-1"]


async def test_assistant_request_with_top_level_customer(async_client, vapi_headers, call_settings):
    payload = {"message": {"type": "assistant-request"}, "customer": {"number": "+15551234567"}}

    response = await async_client.post(ASSISTANT_URL, json=payload, headers=vapi_headers)
    assert response.status_code == 200


async def test_assistant_request_invalid_timezone_falls_back(async_client, db_session, vapi_headers, call_settings):
    call_settings.timezone = "Mars/Olympus"
    await db_session.commit()

    response = await async_client.post(ASSISTANT_URL, json=_assistant_request(), headers=vapi_headers)
    assert response.status_code == 200


async def test_assistant_request_missing_number(async_client, vapi_headers):
    response = await async_client.post(ASSISTANT_URL, json=_assistant_request(None), headers=vapi_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Missing customer phone number"}


async def test_assistant_request_unknown_number(async_client, vapi_headers, call_settings):
    response = await async_client.post(
        ASSISTANT_URL, json=_assistant_request("+15550000000"), headers=vapi_headers,
    )

    assert response.status_code == 404
    assert response.json() == {"error": "No call settings found for this phone number"}


async def test_assistant_request_without_site_url(
    async_client, vapi_headers, call_settings, monkeypatch, webhook_settings,
):
    monkeypatch.setattr(webhook_settings, "site_url", None)

    response = await async_client.post(ASSISTANT_URL, json=_assistant_request(), headers=vapi_headers)
    assert response.status_code == 500
