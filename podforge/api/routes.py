import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, Response

from podforge.models.submission import title_hint
from podforge.models.voice import VoiceFilter
from podforge.schemas.episode import EpisodeListResponse, EpisodeResponse, EpisodeUpdateRequest, Pagination
from podforge.schemas.submission import (
    SubmissionRequest,
    SubmissionResponse,
    SubmissionStatusResponse,
    VoiceResponse,
)
from podforge.services.episode_service import DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)

router = APIRouter()

RSS_MEDIA_TYPE = "application/rss+xml; charset=utf-8"


@router.get("/health")
async def health(request: Request) -> dict:
    state = request.app.state
    snapshot = state.health_monitor.snapshot()
    return {
        "status": "ok",
        "voices": state.voice_catalog.health(),
        "feed_cache": state.feed_cache.stats(),
        **snapshot,
    }


@router.post("/submissions", response_model=SubmissionResponse, status_code=202)
async def submit(
    payload: SubmissionRequest,
    request: Request,
    background_tasks: BackgroundTasks,
) -> SubmissionResponse:
    submission_service = request.app.state.submission_service
    submission = await submission_service.submit(payload)
    background_tasks.add_task(submission_service.process, submission)
    return SubmissionResponse(id=submission.id, status=submission.status.value, message="Queued")


@router.get("/submissions/{submission_id}", response_model=SubmissionStatusResponse)
async def submission_status(submission_id: str, request: Request) -> SubmissionStatusResponse:
    found = await request.app.state.submission_service.get(submission_id)
    if found is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    submission, job = found
    return SubmissionStatusResponse(
        id=submission.id,
        content_url=submission.content_url,
        content_type=submission.content_type.value,
        status=submission.status.value,
        title=title_hint(submission),
        error_message=submission.error_message,
        progress=job.progress if job else 0,
        current_step=job.current_step if job else None,
        retry_count=job.retry_count if job else 0,
        created_at=submission.created_at,
        updated_at=submission.updated_at,
        processed_at=submission.processed_at,
    )


@router.get("/feeds/{feed_id}/rss.xml")
async def feed(feed_id: str, request: Request) -> Response:
    entry = await request.app.state.feed_cache.get(feed_id)
    if request.headers.get("if-none-match") == entry.etag:
        return Response(status_code=304, headers={"ETag": entry.etag})
    return Response(
        content=entry.document,
        media_type=RSS_MEDIA_TYPE,
        headers={
            "ETag": entry.etag,
            "Cache-Control": "public, max-age=300",
            "Last-Modified": entry.generated_at.strftime("%a, %d %b %Y %H:%M:%S GMT"),
        },
    )


@router.post("/feeds/{feed_id}/refresh")
async def refresh_feed(feed_id: str, request: Request) -> dict:
    entry = await request.app.state.feed_cache.refresh(feed_id)
    logger.info("[feed] refreshed on request | feed_id=%s", feed_id)
    return {
        "feed_id": feed_id,
        "episode_count": entry.episode_count,
        "generated_at": entry.generated_at.isoformat(),
        "etag": entry.etag,
    }


@router.get("/voices", response_model=list[VoiceResponse])
async def voices(
    request: Request,
    provider: str | None = None,
    locale: str | None = None,
    gender: str | None = None,
) -> list[VoiceResponse]:
    voice_filter = VoiceFilter(provider=provider, locale=locale, gender=gender)
    listed = await request.app.state.voice_catalog.list_voices(voice_filter)
    return [
        VoiceResponse(
            id=v.id,
            name=v.display_name or v.name,
            provider=v.provider,
            locale=v.locale,
            gender=v.gender,
            style_tags=list(v.style_tags),
            available=v.is_available,
        )
        for v in listed
    ]



def _episode_response(episode) -> EpisodeResponse:
    return EpisodeResponse(
        id=episode.id,
        feed_id=episode.feed_id,
        submission_id=episode.submission_id,
        title=episode.title,
        description=episode.description,
        source_url=episode.source_url,
        content_type=episode.content_type.value,
        audio_url=episode.audio_url,
        duration_seconds=episode.duration_seconds,
        summary=episode.summary,
        pub_date=episode.pub_date,
        updated_at=episode.updated_at,
    )


@router.get("/feeds/{feed_id}/episodes", response_model=EpisodeListResponse)
async def list_episodes(
    feed_id: str, request: Request, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0
) -> EpisodeListResponse:
    episodes, total = await request.app.state.episode_service.list_episodes(feed_id, limit, offset)
    return EpisodeListResponse(
        feed_id=feed_id,
        episodes=[_episode_response(e) for e in episodes],
        pagination=Pagination(limit=limit, offset=offset, total=total, has_more=offset + len(episodes) < total),
    )


@router.patch("/episodes/{episode_id}", response_model=EpisodeResponse)
async def update_episode(episode_id: str, payload: EpisodeUpdateRequest, request: Request) -> EpisodeResponse:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    episode = await request.app.state.episode_service.update(episode_id, changes)
    if episode is None:
        raise HTTPException(status_code=404, detail="Episode not found")
    return _episode_response(episode)


@router.delete("/episodes/{episode_id}", status_code=204)
async def delete_episode(episode_id: str, request: Request) -> Response:
    if not await request.app.state.episode_service.delete(episode_id):
        raise HTTPException(status_code=404, detail="Episode not found")
    return Response(status_code=204)
