import uuid
from dataclasses import dataclass, field
from datetime import datetime

from podforge.models.submission import ContentType, utcnow

# Bytes per second of a 128 kbps MP3, used when the real file size is unknown.
_BYTES_PER_SECOND = 16 * 1024


@dataclass(frozen=True)
class ChapterMarker:
    start_time: int
    title: str


@dataclass(frozen=True)
class Episode:
    title: str
    description: str
    source_url: str
    content_type: ContentType
    audio_url: str
    duration_seconds: int
    feed_id: str = "default"
    submission_id: str | None = None
    audio_size_bytes: int | None = None
    mime_type: str = "audio/mpeg"
    chapters: tuple[ChapterMarker, ...] = ()
    transcript: str | None = None
    summary: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    pub_date: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def guid(self) -> str:
        return f"episode_{self.id}"

    @property
    def enclosure_length(self) -> int:
        if self.audio_size_bytes:
            return self.audio_size_bytes
        return int(self.duration_seconds * _BYTES_PER_SECOND)
