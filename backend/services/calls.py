"""
Call job lifecycle and call session bookkeeping.

A CallJob moves queued -> scheduled -> started -> completed | failed | canceled.
Terminal states are final: a late or repeated end-of-call report still
records the session, but never moves the job again.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.vapi import EndOfCallReport
from infrastructure.database.models import CallJob, CallJobStatus, CallSession, CallSettings
from infrastructure.database.models.base import utc_now

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    CallJobStatus.QUEUED.value: frozenset({
        CallJobStatus.SCHEDULED.value,
        CallJobStatus.STARTED.value,
        CallJobStatus.COMPLETED.value,
        CallJobStatus.FAILED.value,
        CallJobStatus.CANCELED.value,
    }),
    CallJobStatus.SCHEDULED.value: frozenset({
        CallJobStatus.STARTED.value,
        CallJobStatus.COMPLETED.value,
        CallJobStatus.FAILED.value,
        CallJobStatus.CANCELED.value,
    }),
    CallJobStatus.STARTED.value: frozenset({
        CallJobStatus.COMPLETED.value,
        CallJobStatus.FAILED.value,
        CallJobStatus.CANCELED.value,
    }),
}


class InvalidTransitionError(Exception):
    """Raised when a call job is asked to move to a state it cannot reach."""


@dataclass
class CallCompletion:
    job: CallJob
    session: CallSession
    schedule_diary: bool
    job_was_terminal: bool = False


class CallService:
    """Applies VAPI call outcomes to jobs and sessions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_job_by_vapi_id(self, vapi_call_id: str) -> Optional[CallJob]:
        result = await self.db.execute(
            select(CallJob)
            .where(CallJob.vapi_call_id == vapi_call_id)
            .order_by(CallJob.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_session_by_vapi_id(self, vapi_call_id: str) -> Optional[CallSession]:
        result = await self.db.execute(
            select(CallSession).where(CallSession.vapi_call_id == vapi_call_id)
        )
        return result.scalar_one_or_none()

    async def get_session(self, session_id: str) -> Optional[CallSession]:
        result = await self.db.execute(select(CallSession).where(CallSession.id == session_id))
        return result.scalar_one_or_none()

    async def find_call_settings_by_phone(self, phone_e164: str) -> Optional[CallSettings]:
        result = await self.db.execute(
            select(CallSettings)
            .where(CallSettings.phone_e164 == phone_e164, CallSettings.active.is_(True))
            .order_by(CallSettings.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def transition_job(
        self,
        job: CallJob,
        status: str,
        error_message: Optional[str] = None,
    ) -> CallJob:
        if job.status == status:
            return job
        allowed = _ALLOWED_TRANSITIONS.get(job.status, frozenset())
        if status not in allowed:
            raise InvalidTransitionError(f"Cannot move call job {job.id} from {job.status} to {status}")

        job.status = status
        if error_message is not None:
            job.error_message = error_message
        await self.db.flush()
        return job

    async def _upsert_session(self, job: CallJob, report: EndOfCallReport) -> CallSession:
        metadata: dict[str, Any] = {
            "transcript": report.transcript,
            "messages": report.messages,
            "recording": report.recording,
            "endedReason": report.ended_reason,
        }

        session = await self.get_session_by_vapi_id(report.vapi_call_id)
        if session is None:
            started_at = report.ended_at
            if report.duration_seconds:
                started_at = report.ended_at - timedelta(seconds=report.duration_seconds)
            session = CallSession(
                user_id=job.user_id,
                call_job_id=job.id,
                vapi_call_id=report.vapi_call_id,
                started_at=started_at,
                ended_at=report.ended_at,
                duration_sec=report.duration_seconds,
                disposition=report.disposition,
                meta=metadata,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(session)
                    await self.db.flush()
                return session
            except IntegrityError:
                # Re-delivered report raced us to the insert
                session = await self.get_session_by_vapi_id(report.vapi_call_id)
                if session is None:
                    raise

        # Merge so workflow results (diaryId, diaryError) survive re-delivery
        session.meta = {**(session.meta or {}), **metadata}
        session.ended_at = report.ended_at
        session.duration_sec = report.duration_seconds
        session.disposition = report.disposition
        await self.db.flush()
        return session

    async def complete_call(self, report: EndOfCallReport) -> Optional[CallCompletion]:
        """Record an end-of-call report; None when no job tracks this call."""
        job = await self.get_job_by_vapi_id(report.vapi_call_id)
        if job is None:
            return None

        was_terminal = job.is_terminal
        if was_terminal:
            logger.info("Call job %s already %s, recording session only", job.id, job.status)
        else:
            await self.transition_job(job, CallJobStatus.COMPLETED.value)

        session = await self._upsert_session(job, report)
        schedule = report.has_conversation and not session.diary_id
        return CallCompletion(job=job, session=session, schedule_diary=schedule, job_was_terminal=was_terminal)

    async def attach_diary(self, session: CallSession, diary_id: str) -> None:
        meta = dict(session.meta or {})
        meta["diaryId"] = diary_id
        meta.pop("diaryError", None)
        session.meta = meta
        await self.db.flush()

    async def record_diary_error(self, session: CallSession, message: str) -> None:
        session.meta = {**(session.meta or {}), "diaryError": message}
        await self.db.flush()
