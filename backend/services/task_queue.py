"""
In-process queue for workflows that outlive the webhook request.

Diary generation (after a VAPI call ends) and lyric alignment (after a Suno
track is ready) are too slow to run before the provider gets its 200, so
handlers enqueue them here and respond immediately.

The task id is the idempotency key for a workflow, e.g. ``diary:<call id>``
or ``lyrics:<suno task id>:<track index>``.  A redelivered webhook that
enqueues an id which is still running is ignored; once the run has finished
the same id may run again, and the workflow itself decides whether there is
anything left to do.

Usage::

    from services.task_queue import task_queue

    await task_queue.enqueue(f"diary:{vapi_call_id}", orchestrator.run_diary_workflow(session_id))
    info = task_queue.get_status(f"diary:{vapi_call_id}")
"""

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

STATUSES = ("pending", "running", "completed", "failed")


@dataclass
class WorkflowRun:
    task_id: str
    status: str = "pending"
    result: Any = None
    error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def kind(self) -> str:
        return self.task_id.split(":", 1)[0]

    @property
    def finished(self) -> bool:
        return self.status in ("completed", "failed")

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "kind": self.kind,
            "status": self.status,
            "result": self.result,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class TaskQueue:
    """Tracks workflow runs keyed by their idempotency id."""

    def __init__(self) -> None:
        self._tasks: dict[str, WorkflowRun] = {}

    async def enqueue(self, task_id: str, coro: Coroutine) -> str:
        """Start *coro* as a background run unless *task_id* is already in flight."""
        current = self._tasks.get(task_id)
        if current is not None and not current.finished:
            logger.warning("Workflow %s is already %s, ignoring duplicate", task_id, current.status)
            coro.close()
            return task_id

        run = WorkflowRun(task_id, status="running")
        run.task = asyncio.create_task(self._run(run, coro), name=f"workflow-{task_id}")
        self._tasks[task_id] = run
        logger.debug("Workflow %s started", task_id)
        return task_id

    def get_status(self, task_id: str) -> dict[str, Any] | None:
        run = self._tasks.get(task_id)
        return run.to_dict() if run else None

    async def wait(self, task_id: str) -> dict[str, Any] | None:
        """Block until *task_id* finishes; failures are recorded, never raised."""
        run = self._tasks.get(task_id)
        if run is None:
            return None
        if run.task is not None:
            await asyncio.shield(run.task)
        return run.to_dict()

    async def drain(self) -> None:
        """Wait for every in-flight run, including runs they start themselves."""
        while in_flight := [
            run.task for run in self._tasks.values() if run.task is not None and not run.task.done()
        ]:
            await asyncio.gather(*in_flight)

    def cleanup_old(self, max_age_seconds: int = 3600) -> int:
        """Forget finished runs older than *max_age_seconds*; returns how many were dropped."""
        now = datetime.now(UTC)
        expired = [
            task_id
            for task_id, run in self._tasks.items()
            if run.finished
            and run.completed_at is not None
            and (now - run.completed_at).total_seconds() > max_age_seconds
        ]
        for task_id in expired:
            del self._tasks[task_id]
        return len(expired)

    def stats(self) -> dict[str, int]:
        counts = dict.fromkeys(STATUSES, 0)
        for run in self._tasks.values():
            counts[run.status] += 1
        return counts

    async def _run(self, run: WorkflowRun, coro: Coroutine) -> None:
        try:
            run.result = await coro
            run.status = "completed"
        except Exception as exc:
            run.error = str(exc)
            run.status = "failed"
            logger.error("%s workflow %s failed: %s", run.kind, run.task_id, exc, exc_info=True)
        finally:
            run.completed_at = datetime.now(UTC)


task_queue = TaskQueue()
