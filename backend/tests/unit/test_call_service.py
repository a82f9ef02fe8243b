"""
Unit tests for call job transitions and call session bookkeeping.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from api.schemas.vapi import EndOfCallReport
from infrastructure.database.models import CallJob, CallSession
from services.calls import CallService, InvalidTransitionError

ENDED_AT = datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)


def _report(**overrides) -> EndOfCallReport:
    data = dict(
        vapi_call_id="call-123",
        ended_at=ENDED_AT,
        duration_seconds=120.0,
        disposition="completed",
        transcript="User: I went for a walk",
        messages=[{"role": "user", "message": "I went for a walk"}],
        recording={"url": "https://rec/1.wav"},
        ended_reason="customer-ended-call",
    )
    data.update(overrides)
    return EndOfCallReport(**data)


async def test_complete_call_marks_job_and_creates_session(db_session, started_call):
    completion = await CallService(db_session).complete_call(_report())
    await db_session.commit()

    assert completion.job.status == "completed"
    assert completion.job_was_terminal is False
    assert completion.schedule_diary is True

    session = completion.session
    assert session.vapi_call_id == "call-123"
    assert session.user_id == started_call.user_id
    assert session.duration_sec == 120.0
    assert session.meta["transcript"] == "User: I went for a walk"
    assert session.meta["endedReason"] == "customer-ended-call"
    assert session.started_at.replace(tzinfo=timezone.utc) == datetime(2026, 5, 1, 9, 58, tzinfo=timezone.utc)


async def test_unknown_call_returns_none(db_session):
    assert await CallService(db_session).complete_call(_report(vapi_call_id="nope")) is None


async def test_redelivered_report_keeps_one_session(db_session, started_call):
    calls = CallService(db_session)
    first = await calls.complete_call(_report())
    await db_session.commit()
    second = await calls.complete_call(_report(duration_seconds=125.0))
    await db_session.commit()

    assert second.session.id == first.session.id
    assert second.job_was_terminal is True
    assert second.session.duration_sec == 125.0
    count = await db_session.scalar(select(func.count()).select_from(CallSession))
    assert count == 1


async def test_report_after_diary_does_not_reschedule(db_session, started_call):
    calls = CallService(db_session)
    first = await calls.complete_call(_report())
    await calls.attach_diary(first.session, "diary-1")
    await db_session.commit()

    second = await calls.complete_call(_report())
    assert second.schedule_diary is False
    assert second.session.diary_id == "diary-1"


async def test_terminal_job_is_not_moved(db_session, started_call):
    started_call.status = "failed"
    await db_session.commit()

    completion = await CallService(db_session).complete_call(_report())

    assert completion.job.status == "failed"
    assert completion.job_was_terminal is True
    assert completion.session is not None


async def test_call_without_conversation_does_not_schedule_diary(db_session, started_call):
    completion = await CallService(db_session).complete_call(_report(transcript=None, messages=[]))
    assert completion.schedule_diary is False


async def test_transitions(db_session, started_call):
    calls = CallService(db_session)
    job = CallJob(user_id=started_call.user_id, status="queued")
    db_session.add(job)
    await db_session.flush()

    await calls.transition_job(job, "scheduled")
    await calls.transition_job(job, "started")
    await calls.transition_job(job, "started")
    assert job.status == "started"

    await calls.transition_job(job, "canceled")
    with pytest.raises(InvalidTransitionError):
        await calls.transition_job(job, "started")


async def test_diary_error_is_cleared_by_attach(db_session, started_call):
    calls = CallService(db_session)
    completion = await calls.complete_call(_report())
    await calls.record_diary_error(completion.session, "No transcript available")
    assert completion.session.meta["diaryError"] == "No transcript available"

    await calls.attach_diary(completion.session, "diary-2")
    assert "diaryError" not in completion.session.meta
    assert completion.session.diary_id == "diary-2"


async def test_find_call_settings_by_phone(db_session, call_settings):
    calls = CallService(db_session)
    assert (await calls.find_call_settings_by_phone("+15551234567")).id == call_settings.id
    assert await calls.find_call_settings_by_phone("+15550000000") is None

    call_settings.active = False
    await db_session.commit()
    assert await calls.find_call_settings_by_phone("+15551234567") is None
