import re
from datetime import datetime

from pydantic import BaseModel, field_validator

from podforge.models.submission import ContentType

LOCALE_PATTERN = re.compile(r"^[a-z]{2}-[A-Z]{2}$")


class SubmissionRequest(BaseModel):
    content_url: str
    content_type: ContentType = ContentType.URL
    user_note: str | None = None
    feed_id: str | None = None
    voice_id: str | None = None
    locale: str | None = None

    @field_validator("content_url")
    @classmethod
    def url_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("content_url must not be empty")
        return v.strip()

    @field_validator("user_note")
    @classmethod
    def note_length(cls, v: str | None) -> str | None:
        if v is not None and len(v) > 1000:
            raise ValueError("user_note must be at most 1000 characters")
        return v

    @field_validator("locale")
    @classmethod
    def locale_format(cls, v: str | None) -> str | None:
        if v is not None and not LOCALE_PATTERN.match(v):
            raise ValueError("locale must look like en-US")
        return v

    @field_validator("voice_id")
    @classmethod
    def voice_id_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("voice_id must not be empty")
        return v.strip() if v is not None else v


class SubmissionResponse(BaseModel):
    id: str
    status: str
    message: str


class SubmissionStatusResponse(BaseModel):
    id: str
    content_url: str
    content_type: str
    status: str
    title: str | None = None
    error_message: str | None = None
    progress: int = 0
    current_step: str | None = None
    retry_count: int = 0
    created_at: datetime
    updated_at: datetime
    processed_at: datetime | None = None


class VoiceResponse(BaseModel):
    id: str
    name: str
    provider: str
    locale: str
    gender: str | None = None
    style_tags: list[str] = []
    available: bool = True
