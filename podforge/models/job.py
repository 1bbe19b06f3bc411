"""
Processing job state machine.

A job is one retryable attempt at working a submission to completion:

    queued -> running -> completed
                      -> failed -> queued  (retry, while retry_count < max_retries)

Every operation is a pure function that returns a new ProcessingJob and
re-validates it; nothing mutates a job in place.
"""
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from podforge.errors import InvalidStateTransition, MaxRetriesExceeded, ValidationError
from podforge.models.submission import utcnow

DEFAULT_MAX_RETRIES = 3


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProcessingJob:
    submission_id: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    current_step: str | None = None
    error_message: str | None = None
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    started_at: datetime | None = None
    completed_at: datetime | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "status", JobStatus(self.status))
        except ValueError:
            allowed = ", ".join(s.value for s in JobStatus)
            raise ValidationError(f"Invalid status: {self.status}. Must be one of: {allowed}") from None
        _validate(self)


def _validate(job: ProcessingJob) -> None:
    if not job.submission_id or not job.submission_id.strip():
        raise ValidationError("Submission ID is required")
    if not 0 <= job.progress <= 100:
        raise ValidationError("Progress must be between 0 and 100")
    if job.retry_count < 0:
        raise ValidationError("Retry count cannot be negative")
    if job.max_retries < 0:
        raise ValidationError("Max retries cannot be negative")
    if job.retry_count > job.max_retries:
        raise ValidationError("Retry count cannot exceed max retries")
    if job.status is JobStatus.RUNNING and job.started_at is None:
        raise ValidationError('Started timestamp is required when status is "running"')
    if job.status in (JobStatus.COMPLETED, JobStatus.FAILED) and job.completed_at is None:
        raise ValidationError('Completed timestamp is required when status is "completed" or "failed"')
    if job.status is JobStatus.FAILED and not (job.error_message and job.error_message.strip()):
        raise ValidationError('Error message is required when status is "failed"')
    if job.started_at and job.completed_at and job.started_at > job.completed_at:
        raise ValidationError("Started timestamp cannot be after completed timestamp")


def create_job(submission_id: str, max_retries: int = DEFAULT_MAX_RETRIES) -> ProcessingJob:
    return ProcessingJob(submission_id=submission_id, max_retries=max_retries)


def _require(job: ProcessingJob, status: JobStatus, operation: str) -> None:
    if job.status is not status:
        raise InvalidStateTransition(operation, job.status.value)


def start(job: ProcessingJob) -> ProcessingJob:
    _require(job, JobStatus.QUEUED, "start")
    now = utcnow()
    return replace(job, status=JobStatus.RUNNING, started_at=now, updated_at=now)


def update_progress(job: ProcessingJob, progress: int, step: str | None = None) -> ProcessingJob:
    _require(job, JobStatus.RUNNING, "update progress for")
    if not 0 <= progress <= 100:
        raise ValidationError("Progress must be between 0 and 100")
    return replace(
        job,
        progress=progress,
        current_step=step or job.current_step,
        updated_at=utcnow(),
    )


def complete(job: ProcessingJob) -> ProcessingJob:
    _require(job, JobStatus.RUNNING, "complete")
    now = utcnow()
    return replace(job, status=JobStatus.COMPLETED, progress=100, completed_at=now, updated_at=now)


def fail(job: ProcessingJob, message: str) -> ProcessingJob:
    _require(job, JobStatus.RUNNING, "fail")
    if not message or not message.strip():
        raise ValidationError("Error message is required to fail a job")
    now = utcnow()
    return replace(job, status=JobStatus.FAILED, error_message=message, completed_at=now, updated_at=now)


def retry(job: ProcessingJob) -> ProcessingJob:
    _require(job, JobStatus.FAILED, "retry")
    if job.retry_count >= job.max_retries:
        raise MaxRetriesExceeded(job.retry_count, job.max_retries, job.error_message)
    return replace(
        job,
        status=JobStatus.QUEUED,
        progress=0,
        current_step=None,
        error_message=None,
        retry_count=job.retry_count + 1,
        started_at=None,
        completed_at=None,
        updated_at=utcnow(),
    )


def can_retry(job: ProcessingJob) -> bool:
    return job.status is JobStatus.FAILED and job.retry_count < job.max_retries


def is_terminal(job: ProcessingJob) -> bool:
    return job.status in (JobStatus.COMPLETED, JobStatus.FAILED)


def remaining_retries(job: ProcessingJob) -> int:
    return max(0, job.max_retries - job.retry_count)


def processing_duration_seconds(job: ProcessingJob) -> int | None:
    if job.started_at is None:
        return None
    end = job.completed_at or utcnow()
    return int((end - job.started_at).total_seconds())


def summary(job: ProcessingJob) -> str:
    """One-line description for log messages."""
    return (
        f"job={job.id} | submission={job.submission_id} | status={job.status.value} "
        f"| progress={job.progress} | step={job.current_step or '-'} "
        f"| retries={job.retry_count}/{job.max_retries}"
    )
