"""
Runs one submission through extract -> script -> voice/TTS -> store -> persist
-> feed invalidation, tracking progress on a ProcessingJob.

Stages run strictly in order. A cancel event is honoured between stages only;
a stage that has started is allowed to finish. Retryable failures re-run the
whole attempt until the job's retry budget is spent.
"""
import asyncio
import logging
import re
import uuid
from dataclasses import dataclass

from podforge.errors import (
    EmptyInput,
    MaxRetriesExceeded,
    PipelineCancelled,
    PodforgeError,
    ScriptRejected,
)
from podforge.models import job as jobs
from podforge.models.content import ExtractedContent
from podforge.models.episode import ChapterMarker, Episode
from podforge.models.job import ProcessingJob
from podforge.models.submission import (
    ContentSubmission,
    SubmissionStatus,
    title_hint,
    transition,
    with_extracted_content,
    with_metadata,
)
from podforge.repositories.base import AbstractEpisodeRepository, AbstractSubmissionRepository
from podforge.services import text_metrics
from podforge.services.extraction_service import ExtractionService
from podforge.services.feed_cache import FeedCache
from podforge.services.script_policy import ScriptPolicyService
from podforge.services.script_writer import ScriptWriter
from podforge.services.storage_service import ObjectStorage, audio_key
from podforge.services.tts_providers import TTSConfig
from podforge.services.tts_service import TTSResult, TTSService
from podforge.services.voice_service import VoiceCatalog

logger = logging.getLogger(__name__)

PROGRESS_EXTRACTED = 20
PROGRESS_SCRIPTED = 40
PROGRESS_SYNTHESIZED = 70
PROGRESS_STORED = 85
PROGRESS_PERSISTED = 95

LANGUAGE_LOCALES = {"en": "en-US", "es": "es-ES", "fr": "fr-FR"}

_PARAGRAPH_BREAK = re.compile(r"\n\n+")
_CHAPTER_TITLE_CHARS = 60


@dataclass(frozen=True)
class PipelineOutcome:
    submission: ContentSubmission
    job: ProcessingJob
    episode: Episode
    tts: TTSResult


@dataclass
class _AttemptState:
    """Latest persisted submission and job, updated as each stage saves them."""

    submission: ContentSubmission
    job: ProcessingJob


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, PodforgeError):
        return exc.retryable
    return isinstance(exc, OSError)


def chapters_from_script(script: str, speed: float = 1.0) -> tuple[ChapterMarker, ...]:
    """One marker per paragraph, timed by the speaking rate of the text before it."""
    chapters = []
    elapsed_words = 0
    for paragraph in _PARAGRAPH_BREAK.split(script):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        first_line = paragraph.splitlines()[0]
        title = first_line if len(first_line) <= _CHAPTER_TITLE_CHARS else first_line[: _CHAPTER_TITLE_CHARS - 3] + "..."
        start = 0 if not chapters else text_metrics.speaking_duration_seconds(elapsed_words, speed)
        chapters.append(ChapterMarker(start_time=start, title=title))
        elapsed_words += text_metrics.word_count(paragraph)
    return tuple(chapters)


def _describe(submission: ContentSubmission, content: ExtractedContent) -> str:
    if submission.user_note:
        return submission.user_note
    text = " ".join(content.content.split())
    return text[:280] + ("..." if len(text) > 280 else "")


class PipelineService:
    def __init__(
        self,
        extraction: ExtractionService,
        script_writer: ScriptWriter,
        script_policy: ScriptPolicyService,
        voices: VoiceCatalog,
        tts: TTSService,
        storage: ObjectStorage,
        submission_repository: AbstractSubmissionRepository,
        episode_repository: AbstractEpisodeRepository,
        feed_cache: FeedCache,
        default_feed_id: str = "default",
        default_voice_id: str | None = None,
        max_retries: int = jobs.DEFAULT_MAX_RETRIES,
        script_max_attempts: int = 2,
    ) -> None:
        self._extraction = extraction
        self._writer = script_writer
        self._policy = script_policy
        self._voices = voices
        self._tts = tts
        self._storage = storage
        self._submissions = submission_repository
        self._episodes = episode_repository
        self._feed_cache = feed_cache
        self._default_feed_id = default_feed_id
        self._default_voice_id = default_voice_id
        self._max_retries = max_retries
        self._script_max_attempts = max(1, script_max_attempts)

    async def _save_job(self, job: ProcessingJob) -> None:
        await asyncio.to_thread(self._submissions.save_job, job)

    async def _save_submission(self, submission: ContentSubmission) -> None:
        await asyncio.to_thread(self._submissions.save_submission, submission)

    async def _progress(self, state: _AttemptState, pct: int, step: str) -> None:
        job = jobs.update_progress(state.job, pct, step)
        await self._save_job(job)
        state.job = job

    @staticmethod
    def _check_cancelled(cancel_event: asyncio.Event | None, stage: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelled(f"Processing cancelled before {stage}")

    async def run(
        self, submission: ContentSubmission, cancel_event: asyncio.Event | None = None
    ) -> PipelineOutcome:
        job = jobs.create_job(submission.id, self._max_retries)
        await self._save_job(job)
        submission = transition(submission, SubmissionStatus.PROCESSING)
        await self._save_submission(submission)

        while True:
            job = jobs.start(job)
            await self._save_job(job)
            logger.info("[pipeline] attempt started | %s", jobs.summary(job))
            state = _AttemptState(submission=submission, job=job)
            try:
                episode, tts_result = await self._attempt(state, cancel_event)
            except Exception as exc:
                submission, job = state.submission, state.job
                message = str(exc) or type(exc).__name__
                job = jobs.fail(job, message)
                await self._save_job(job)

                if not is_retryable(exc):
                    logger.error("[pipeline] failed | %s | retryable=False", jobs.summary(job))
                    submission = transition(submission, SubmissionStatus.FAILED, message)
                    await self._save_submission(submission)
                    raise

                if not jobs.can_retry(job):
                    logger.error("[pipeline] retries exhausted | %s", jobs.summary(job))
                    submission = transition(submission, SubmissionStatus.FAILED, message)
                    await self._save_submission(submission)
                    raise MaxRetriesExceeded(job.retry_count, job.max_retries, message) from exc

                job = jobs.retry(job)
                await self._save_job(job)
                logger.warning(
                    "[pipeline] retrying | %s | remaining=%d | error=%s",
                    jobs.summary(job),
                    jobs.remaining_retries(job),
                    message,
                )
                continue

            submission = state.submission
            job = jobs.complete(state.job)
            await self._save_job(job)
            submission = transition(submission, SubmissionStatus.COMPLETED)
            await self._save_submission(submission)
            logger.info(
                "[pipeline] completed | %s | episode_id=%s | seconds=%s",
                jobs.summary(job),
                episode.id,
                jobs.processing_duration_seconds(job),
            )
            return PipelineOutcome(submission=submission, job=job, episode=episode, tts=tts_result)

    async def _attempt(
        self, state: _AttemptState, cancel_event: asyncio.Event | None
    ) -> tuple[Episode, TTSResult]:
        submission = state.submission
        self._check_cancelled(cancel_event, "extraction")
        content = await self._extraction.extract(submission)
        if not content.content.strip():
            raise EmptyInput(f"No content could be extracted from {submission.content_url}")
        submission = with_metadata(
            with_extracted_content(submission, content.content), content.as_submission_metadata()
        )
        await self._save_submission(submission)
        state.submission = submission
        await self._progress(state, PROGRESS_EXTRACTED, "extract")

        self._check_cancelled(cancel_event, "script writing")
        script = await self._write_script(content)
        await self._progress(state, PROGRESS_SCRIPTED, "script")

        self._check_cancelled(cancel_event, "speech synthesis")
        locale = submission.metadata.get("locale") or LANGUAGE_LOCALES.get(content.language, "en-US")
        preferred = submission.metadata.get("voice_id") or self._default_voice_id
        selection = await self._voices.select_with_fallback(preferred, locale)
        if selection.was_fallback:
            logger.info("[pipeline] voice fallback | voice=%s | reason=%s", selection.voice_id, selection.reason)
        config = TTSConfig(provider=selection.provider, voice_id=selection.voice_id, locale=locale)
        tts_result = await self._tts.generate(script, config)
        await self._progress(state, PROGRESS_SYNTHESIZED, "tts")

        self._check_cancelled(cancel_event, "audio storage")
        feed_id = submission.feed_id or self._default_feed_id
        episode_id = str(uuid.uuid4())
        audio_url = await self._storage.put(audio_key(feed_id, episode_id), tts_result.audio_bytes, "audio/mpeg")
        await self._progress(state, PROGRESS_STORED, "store")

        self._check_cancelled(cancel_event, "episode persistence")
        episode = Episode(
            id=episode_id,
            feed_id=feed_id,
            submission_id=submission.id,
            title=content.title or title_hint(submission),
            description=_describe(submission, content),
            source_url=submission.content_url,
            content_type=submission.content_type,
            audio_url=audio_url,
            audio_size_bytes=tts_result.file_size_bytes,
            duration_seconds=tts_result.duration_seconds,
            chapters=chapters_from_script(script, config.speed),
            transcript=script,
            summary=submission.user_note,
        )
        await asyncio.to_thread(self._episodes.save, episode)
        await self._progress(state, PROGRESS_PERSISTED, "persist")

        await self._feed_cache.on_episode_changed(episode, "create")
        return episode, tts_result

    async def _write_script(self, content: ExtractedContent) -> str:
        feedback = None
        violations: list[str] = []
        for attempt in range(1, self._script_max_attempts + 1):
            script = await self._writer.write(content, feedback)
            validation = self._policy.validate(script)
            for warning in validation.warnings:
                logger.info("[pipeline] script warning | attempt=%d | %s", attempt, warning)
            if validation.valid:
                return script
            violations = validation.violations
            feedback = violations
            logger.warning(
                "[pipeline] script rejected | attempt=%d/%d | violations=%s",
                attempt,
                self._script_max_attempts,
                violations,
            )
        raise ScriptRejected(violations)
