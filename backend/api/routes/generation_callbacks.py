"""
Generation provider callbacks.

Suno calls back when songs for a task are ready; Kie calls back when a music
video finishes or fails.  Both providers retry, so both handlers are safe to
run more than once for the same task.
"""

from fastapi import Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.storage.media_storage import MediaStorageError, download_video, media_storage
from api.schemas.generation import parse_kie_callback, parse_suno_callback
from api.utils import error_response, parse_json_body, success_response, validate_http_method
from infrastructure.database import get_db
from infrastructure.database.models import GenerationStatus
from infrastructure.webhook_logging import create_webhook_logger, log_webhook_event
from services.music import MusicService
from services.videos import VideoService
from services.workflows import workflow_orchestrator


async def suno_music_callback(request: Request, db: AsyncSession = Depends(get_db)):
    """Store finished Suno tracks on their pending music rows."""
    method_error = validate_http_method(request)
    if method_error:
        return method_error

    logger = create_webhook_logger("sunoMusicGeneration")
    elapsed = logger.start_timer()

    body = parse_json_body(await request.body())
    if body.error:
        return body.error

    parsed = parse_suno_callback(body.data)
    if not parsed.success:
        logger.warning("Invalid Suno callback", error=parsed.error)
        return error_response(parsed.error, status.HTTP_400_BAD_REQUEST)
    callback = parsed.data

    if not callback.has_data:
        log_webhook_event(logger, "suno-callback", "ignored", reason="No data")
        return success_response({"status": "ignored"})
    if not callback.task_id:
        logger.warning("Suno callback without taskId")
        return error_response("Missing taskId", status.HTTP_400_BAD_REQUEST)

    task_logger = logger.child(task_id=callback.task_id, callback_type=callback.callback_type)
    if callback.code not in (None, 200):
        task_logger.warning("Suno callback reported a non-success code", code=callback.code)
    if not callback.is_complete:
        log_webhook_event(task_logger, "suno-callback", "ignored", duration_ms=elapsed())
        return success_response({"status": "ignored"})

    try:
        completion = await MusicService(db).complete_suno_task(callback.task_id, callback.tracks)
        await db.commit()
    except Exception as e:
        await db.rollback()
        task_logger.error("Failed to complete music generation", error=str(e), exc_info=True)
        log_webhook_event(task_logger, "suno-callback", "failed", duration_ms=elapsed())
        return error_response("Failed to process callback", status.HTTP_500_INTERNAL_SERVER_ERROR)

    if not completion.found:
        log_webhook_event(task_logger, "suno-callback", "ignored", reason="Music not found", duration_ms=elapsed())
        return success_response({"status": "ignored", "reason": "Music not found"})
    if completion.already_processed:
        task_logger.info("Music already processed, skipping")

    for music in completion.ready:
        if music.audio_id:
            await workflow_orchestrator.schedule_lyrics(
                callback.task_id, music.music_index, music.id, music.audio_id,
            )

    log_webhook_event(
        task_logger, "suno-callback", "processed",
        ready=len(completion.ready), failed=len(completion.failed), duration_ms=elapsed(),
    )
    return success_response({"status": "ok"})


async def kie_video_callback(request: Request, db: AsyncSession = Depends(get_db)):
    """Download a finished Kie video or record its failure."""
    method_error = validate_http_method(request)
    if method_error:
        return method_error

    logger = create_webhook_logger("kieVideoGeneration")
    elapsed = logger.start_timer()

    body = parse_json_body(await request.body())
    if body.error:
        return body.error

    parsed = parse_kie_callback(body.data)
    if not parsed.success:
        logger.warning("Invalid Kie callback", error=parsed.error)
        return error_response(parsed.error, status.HTTP_400_BAD_REQUEST)
    callback = parsed.data

    task_logger = logger.child(kie_task_id=callback.task_id, callback_type=callback.callback_type)
    videos = VideoService(db)

    if callback.is_failure:
        try:
            failure = await videos.fail_video(callback.task_id, callback.error_message or "Video generation failed")
            await db.commit()
        except Exception as e:
            await db.rollback()
            task_logger.error("Failed to record video failure", error=str(e), exc_info=True)
            return error_response("Failed to process callback", status.HTTP_500_INTERNAL_SERVER_ERROR)
        log_webhook_event(
            task_logger, "kie-callback", "processed",
            outcome="failure_handled", refunded=failure.refunded, duration_ms=elapsed(),
        )
        return success_response({"status": "failure_handled"})

    if not callback.is_complete:
        log_webhook_event(task_logger, "kie-callback", "ignored", duration_ms=elapsed())
        return success_response({"status": "ignored"})

    video = await videos.get_by_task_id(callback.task_id)
    if video is None:
        log_webhook_event(task_logger, "kie-callback", "ignored", reason="Video not found", duration_ms=elapsed())
        return success_response({"status": "ignored", "reason": "Video not found"})
    if video.status == GenerationStatus.READY.value:
        log_webhook_event(task_logger, "kie-callback", "ignored", reason="Already processed", duration_ms=elapsed())
        return success_response({"status": "already_processed"})

    try:
        data = await download_video(callback.video_url)
        video_path = await media_storage.save_video(data, f"{video.id}.mp4")
    except MediaStorageError as e:
        task_logger.error("Failed to store video", error=str(e))
        await videos.fail_video(callback.task_id, f"Failed to store video: {e}")
        await db.commit()
        log_webhook_event(task_logger, "kie-callback", "failed", duration_ms=elapsed())
        return error_response("Failed to store video", status.HTTP_500_INTERNAL_SERVER_ERROR)

    try:
        await videos.complete_video(
            callback.task_id,
            video_path,
            duration=callback.video_data.get("duration"),
            metadata=callback.to_metadata(),
        )
        await db.commit()
    except Exception as e:
        await db.rollback()
        task_logger.error("Failed to complete video", error=str(e), exc_info=True)
        log_webhook_event(task_logger, "kie-callback", "failed", duration_ms=elapsed())
        return error_response("Failed to process callback", status.HTTP_500_INTERNAL_SERVER_ERROR)

    log_webhook_event(task_logger, "kie-callback", "processed", video_path=video_path, duration_ms=elapsed())
    return success_response({"status": "ok"})
