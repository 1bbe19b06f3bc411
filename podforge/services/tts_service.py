import logging
import re
import time
from dataclasses import dataclass

from podforge.errors import AllProvidersFailed, EmptyInput, ValidationError
from podforge.services import text_metrics
from podforge.services.tts_providers import TTSConfig, TTSProvider

logger = logging.getLogger(__name__)

_LOCALE = re.compile(r"^[a-z]{2}-[A-Z]{2}$")


@dataclass(frozen=True)
class TTSResult:
    audio_bytes: bytes
    duration_seconds: int
    provider_used: str
    voice_used: str
    quality_score: int
    file_size_bytes: int
    processing_time_ms: int


def validate_config(config: TTSConfig) -> None:
    if not config.voice_id:
        raise ValidationError("Voice id is required")
    if not 0.5 <= config.speed <= 2.0:
        raise ValidationError(f"Speed must be between 0.5 and 2.0, got {config.speed}")
    if not 0.5 <= config.pitch <= 2.0:
        raise ValidationError(f"Pitch must be between 0.5 and 2.0, got {config.pitch}")
    if not 0.1 <= config.volume <= 2.0:
        raise ValidationError(f"Volume must be between 0.1 and 2.0, got {config.volume}")
    if not _LOCALE.match(config.locale):
        raise ValidationError(f"Locale must look like en-US, got {config.locale!r}")


def estimate_quality(text: str, provider: TTSProvider) -> int:
    words = text_metrics.word_count(text)
    return text_metrics.clamp_score(text_metrics.structure_score(text, words) + provider.quality_bonus)


class TTSService:
    """
    Synthesizes speech with one primary provider and a single fallback attempt
    on the alternate provider. No retries beyond that; job-level retry owns it.
    """

    def __init__(self, providers: list[TTSProvider]) -> None:
        if len(providers) < 2:
            raise ValueError("TTSService needs a primary and an alternate provider")
        self._providers = {p.name: p for p in providers}

    @property
    def provider_names(self) -> list[str]:
        return list(self._providers)

    def _pair(self, name: str) -> tuple[TTSProvider, TTSProvider]:
        if name not in self._providers:
            raise ValidationError(f"Unsupported TTS provider: {name}")
        primary = self._providers[name]
        alternate = next(p for p in self._providers.values() if p.name != name)
        return primary, alternate

    async def generate(self, text: str, config: TTSConfig) -> TTSResult:
        if not text or not text.strip():
            raise EmptyInput("Text input cannot be empty")
        validate_config(config)
        primary, alternate = self._pair(config.provider)

        started = time.monotonic()
        try:
            audio = await primary.synthesize(text, config)
            provider, used = primary, config
        except Exception as primary_exc:
            logger.warning(
                "[tts] primary failed | provider=%s | error=%s | falling back to %s",
                primary.name,
                primary_exc,
                alternate.name,
            )
            fallback_config = alternate.adapt_config(config)
            try:
                audio = await alternate.synthesize(text, fallback_config)
            except Exception as secondary_exc:
                logger.error(
                    "[tts] all providers failed | primary=%s | secondary=%s", primary_exc, secondary_exc
                )
                raise AllProvidersFailed(primary_exc, secondary_exc) from secondary_exc
            provider, used = alternate, fallback_config

        words = text_metrics.word_count(text)
        result = TTSResult(
            audio_bytes=audio,
            duration_seconds=text_metrics.speaking_duration_seconds(words, used.speed),
            provider_used=provider.name,
            voice_used=used.voice_id,
            quality_score=estimate_quality(text, provider),
            file_size_bytes=len(audio),
            processing_time_ms=int((time.monotonic() - started) * 1000),
        )
        logger.info(
            "[tts] generated | provider=%s | voice=%s | duration=%ds | bytes=%d",
            result.provider_used,
            result.voice_used,
            result.duration_seconds,
            result.file_size_bytes,
        )
        return result

    async def health(self) -> dict[str, bool]:
        return {name: await provider.health_check() for name, provider in self._providers.items()}
