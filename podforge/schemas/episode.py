from datetime import datetime

from pydantic import BaseModel, field_validator


class EpisodeResponse(BaseModel):
    id: str
    feed_id: str
    submission_id: str | None = None
    title: str
    description: str
    source_url: str
    content_type: str
    audio_url: str
    duration_seconds: int
    summary: str | None = None
    pub_date: datetime
    updated_at: datetime


class Pagination(BaseModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class EpisodeListResponse(BaseModel):
    feed_id: str
    episodes: list[EpisodeResponse]
    pagination: Pagination


class EpisodeUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    summary: str | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("title must not be empty")
        return v.strip() if v is not None else v
