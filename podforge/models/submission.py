import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import urlparse

from podforge.errors import InvalidTransition, ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentType(str, Enum):
    URL = "url"
    YOUTUBE = "youtube"
    PDF = "pdf"
    DOCUMENT = "document"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({SubmissionStatus.COMPLETED, SubmissionStatus.FAILED})

ALLOWED_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.PENDING: frozenset({SubmissionStatus.PROCESSING, SubmissionStatus.FAILED}),
    SubmissionStatus.PROCESSING: frozenset({SubmissionStatus.COMPLETED, SubmissionStatus.FAILED}),
    SubmissionStatus.COMPLETED: frozenset(),
    SubmissionStatus.FAILED: frozenset(),
}

_YOUTUBE_URL = re.compile(
    r"^(https?://)?(www\.|m\.)?(youtube\.com/(watch\?v=|embed/|shorts/|v/)|youtu\.be/)[\w-]+"
)


@dataclass(frozen=True)
class ContentSubmission:
    content_url: str
    content_type: ContentType
    user_note: str | None = None
    status: SubmissionStatus = SubmissionStatus.PENDING
    error_message: str | None = None
    extracted_content: str | None = None
    metadata: dict = field(default_factory=dict)
    feed_id: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    processed_at: datetime | None = None

    def __post_init__(self) -> None:
        # Coerce plain strings (e.g. rows read back from the database) into enums.
        try:
            object.__setattr__(self, "content_type", ContentType(self.content_type))
        except ValueError:
            allowed = ", ".join(t.value for t in ContentType)
            raise ValidationError(
                f"Invalid content type: {self.content_type}. Must be one of: {allowed}"
            ) from None
        try:
            object.__setattr__(self, "status", SubmissionStatus(self.status))
        except ValueError:
            raise ValidationError(f"Invalid status: {self.status}") from None
        _validate(self)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def _validate(submission: ContentSubmission) -> None:
    url = (submission.content_url or "").strip()
    if not url:
        raise ValidationError("Content URL is required")

    if submission.content_type in (ContentType.URL, ContentType.YOUTUBE):
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"Invalid URL format: {url}")
    if submission.content_type is ContentType.YOUTUBE and not _YOUTUBE_URL.match(url):
        raise ValidationError(f"Invalid YouTube URL format: {url}")

    has_error = bool(submission.error_message and submission.error_message.strip())
    if submission.status is SubmissionStatus.FAILED and not has_error:
        raise ValidationError('Error message is required when status is "failed"')
    if submission.status is not SubmissionStatus.FAILED and submission.error_message is not None:
        raise ValidationError('Error message is only allowed when status is "failed"')

    if submission.is_terminal and submission.processed_at is None:
        raise ValidationError('Processed timestamp is required when status is "completed" or "failed"')
    if not submission.is_terminal and submission.processed_at is not None:
        raise ValidationError("Processed timestamp is only allowed for terminal statuses")


def create_submission(
    content_url: str,
    content_type: ContentType | str,
    user_note: str | None = None,
    feed_id: str | None = None,
) -> ContentSubmission:
    """Build a new pending submission. Raises ValidationError on bad input."""
    return ContentSubmission(
        content_url=(content_url or "").strip(),
        content_type=content_type,
        user_note=user_note,
        feed_id=feed_id,
    )


def transition(
    submission: ContentSubmission,
    new_status: SubmissionStatus | str,
    error_message: str | None = None,
) -> ContentSubmission:
    """
    Move a submission to `new_status`, returning a new value.
    Raises InvalidTransition for moves outside ALLOWED_TRANSITIONS and
    ValidationError when the resulting record would break an invariant.
    """
    try:
        target = SubmissionStatus(new_status)
    except ValueError:
        raise ValidationError(f"Invalid status: {new_status}") from None

    if target not in ALLOWED_TRANSITIONS[submission.status]:
        raise InvalidTransition(submission.status.value, target.value)

    now = utcnow()
    return replace(
        submission,
        status=target,
        error_message=error_message if target is SubmissionStatus.FAILED else None,
        updated_at=now,
        processed_at=now if target in TERMINAL_STATUSES else None,
    )


def with_extracted_content(submission: ContentSubmission, text: str) -> ContentSubmission:
    return replace(submission, extracted_content=text, updated_at=utcnow())


def with_metadata(submission: ContentSubmission, metadata: dict) -> ContentSubmission:
    return replace(submission, metadata={**submission.metadata, **metadata}, updated_at=utcnow())


def title_hint(submission: ContentSubmission) -> str:
    title = submission.metadata.get("title")
    if title:
        return title
    return submission.content_url or "Untitled Content"
