from dataclasses import dataclass, field
from enum import Enum


class VoiceAvailability(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class VoiceProfile:
    id: str
    name: str
    provider: str
    locale: str
    language: str
    display_name: str | None = None
    gender: str | None = None
    style_tags: tuple[str, ...] = ()
    availability: VoiceAvailability = VoiceAvailability.AVAILABLE
    quality: str = "premium"
    description: str | None = None

    @property
    def is_available(self) -> bool:
        return self.availability is VoiceAvailability.AVAILABLE


@dataclass(frozen=True)
class VoiceSelection:
    voice_id: str
    provider: str
    was_fallback: bool
    fallback_level: int
    reason: str
    requested_voice_id: str | None = None


@dataclass(frozen=True)
class VoiceFilter:
    provider: str | None = None
    locale: str | None = None
    language: str | None = None
    gender: str | None = None
    style_tags: tuple[str, ...] = field(default_factory=tuple)
    quality: str | None = None
    availability: VoiceAvailability | None = None

    def matches(self, voice: VoiceProfile) -> bool:
        if self.provider and voice.provider != self.provider:
            return False
        if self.locale and voice.locale != self.locale:
            return False
        if self.language and voice.language != self.language:
            return False
        if self.gender and voice.gender != self.gender:
            return False
        if self.style_tags and not set(self.style_tags) & set(voice.style_tags):
            return False
        if self.quality and voice.quality != self.quality:
            return False
        if self.availability and voice.availability is not self.availability:
            return False
        return True
