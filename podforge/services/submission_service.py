import asyncio
import logging

from podforge.errors import PodforgeError
from podforge.models.job import ProcessingJob
from podforge.models.submission import ContentSubmission, create_submission, with_metadata
from podforge.repositories.base import AbstractSubmissionRepository
from podforge.schemas.submission import SubmissionRequest
from podforge.services.pipeline_service import PipelineService

logger = logging.getLogger(__name__)


class SubmissionService:
    def __init__(
        self,
        repository: AbstractSubmissionRepository,
        pipeline: PipelineService,
        default_feed_id: str = "default",
    ) -> None:
        self._repository = repository
        self._pipeline = pipeline
        self._default_feed_id = default_feed_id
        self._cancel_events: dict[str, asyncio.Event] = {}

    async def submit(self, request: SubmissionRequest) -> ContentSubmission:
        """Validate and persist a new pending submission. Raises ValidationError on bad input."""
        submission = create_submission(
            request.content_url,
            request.content_type,
            user_note=request.user_note,
            feed_id=request.feed_id or self._default_feed_id,
        )
        extra = {k: v for k, v in (("voice_id", request.voice_id), ("locale", request.locale)) if v}
        if extra:
            submission = with_metadata(submission, extra)
        await asyncio.to_thread(self._repository.save_submission, submission)
        logger.info(
            "[submit] accepted | id=%s | type=%s | url=%s",
            submission.id,
            submission.content_type.value,
            submission.content_url,
        )
        return submission

    async def process(self, submission: ContentSubmission) -> None:
        """Background task: run the pipeline. Failures are already recorded on the job and submission."""
        cancel_event = self._cancel_events.setdefault(submission.id, asyncio.Event())
        try:
            await self._pipeline.run(submission, cancel_event)
        except PodforgeError as exc:
            logger.warning("[submit] processing failed | id=%s | error=%s", submission.id, exc)
        except Exception:
            logger.exception("[submit] processing crashed | id=%s", submission.id)
        finally:
            self._cancel_events.pop(submission.id, None)

    async def get(self, submission_id: str) -> tuple[ContentSubmission, ProcessingJob | None] | None:
        submission = await asyncio.to_thread(self._repository.get_submission, submission_id)
        if submission is None:
            return None
        job = await asyncio.to_thread(self._repository.get_latest_job, submission_id)
        return submission, job

    def cancel(self, submission_id: str) -> bool:
        event = self._cancel_events.get(submission_id)
        if event is None:
            return False
        event.set()
        return True

    def cancel_all(self) -> int:
        for event in self._cancel_events.values():
            event.set()
        return len(self._cancel_events)
