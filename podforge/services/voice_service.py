"""
Voice catalog with TTL caching and deterministic fallback selection.

The catalog is a single dict swapped in whole on refresh, so readers never
observe a half-built mapping. A failed refresh leaves the previous mapping
in place.
"""
import asyncio
import logging
import time
from typing import Callable

from podforge.errors import NoVoiceAvailable
from podforge.models.voice import VoiceFilter, VoiceProfile, VoiceSelection
from podforge.services.tts_providers import TTSProvider, provider_for_voice

logger = logging.getLogger(__name__)

ADAM = "pNInz6obpgDQGcFmaJgB"
RACHEL = "21m00Tcm4TlvDq8ikWAM"
ANTONI = "ErXwobaYiN019PkySvjV"
BELLA = "EXAVITQu4vr4xnSDxMaL"
JOSH = "TxGEqnHWrfWFTfGW9XjX"

FALLBACK_CHAINS: dict[str, tuple[str, ...]] = {
    "en": (ADAM, RACHEL, ANTONI, BELLA, JOSH, "en-US-AriaNeural"),
    "en-US": (ADAM, RACHEL, ANTONI, BELLA, JOSH, "en-US-AriaNeural", "en-US-GuyNeural"),
    "en-GB": ("en-GB-SoniaNeural", "en-GB-RyanNeural", ADAM, RACHEL),
    "es": ("es-ES-ElviraNeural", "es-ES-AlvaroNeural", ADAM),
    "fr": ("fr-FR-DeniseNeural", "fr-FR-HenriNeural", ADAM),
    "default": (ADAM, RACHEL, "en-US-AriaNeural"),
}


def chain_for_locale(chains: dict[str, tuple[str, ...]], locale: str) -> tuple[str, ...]:
    """Exact locale, then language prefix, then `default`."""
    if locale in chains:
        return chains[locale]
    language = locale.split("-")[0]
    if language in chains:
        return chains[language]
    return chains.get("default", ())


class VoiceCatalog:
    def __init__(
        self,
        providers: list[TTSProvider],
        ttl_seconds: float = 3600,
        fallback_chains: dict[str, tuple[str, ...]] = FALLBACK_CHAINS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._providers = providers
        self._ttl = ttl_seconds
        self._chains = fallback_chains
        self._clock = clock
        self._voices: dict[str, VoiceProfile] = {}
        self._loaded_at: float | None = None
        self._last_error: str | None = None
        self._refresh_lock = asyncio.Lock()
        self._background_refresh: asyncio.Task | None = None
        self._timer: asyncio.Task | None = None

    @property
    def is_loaded(self) -> bool:
        return self._loaded_at is not None

    def _is_expired(self) -> bool:
        return self._loaded_at is None or self._clock() - self._loaded_at >= self._ttl

    async def refresh(self) -> bool:
        """Reload every provider's voices. Returns False and keeps the old mapping on any failure."""
        async with self._refresh_lock:
            fresh: dict[str, VoiceProfile] = {}
            try:
                for provider in self._providers:
                    for voice in await provider.list_voices():
                        fresh[voice.id] = voice
            except Exception as exc:
                self._last_error = str(exc)
                logger.warning(
                    "[voices] refresh failed | error=%s | keeping=%d voices", exc, len(self._voices)
                )
                return False
            self._voices = fresh
            self._loaded_at = self._clock()
            self._last_error = None
            logger.info("[voices] refreshed | count=%d", len(fresh))
            return True

    async def _ensure_fresh(self) -> None:
        if not self.is_loaded:
            await self.refresh()
            return
        if self._is_expired() and (self._background_refresh is None or self._background_refresh.done()):
            logger.debug("[voices] cache expired | serving stale | refreshing in background")
            self._background_refresh = asyncio.create_task(self.refresh())

    async def get_voice(self, voice_id: str) -> VoiceProfile | None:
        await self._ensure_fresh()
        return self._voices.get(voice_id)

    async def list_voices(self, voice_filter: VoiceFilter | None = None) -> list[VoiceProfile]:
        await self._ensure_fresh()
        voices = list(self._voices.values())
        if voice_filter is not None:
            voices = [v for v in voices if voice_filter.matches(v)]
        return sorted(voices, key=lambda v: (v.provider, v.locale, v.name))

    async def select_with_fallback(
        self, preferred_voice_id: str | None = None, locale: str = "en-US"
    ) -> VoiceSelection:
        await self._ensure_fresh()
        voices = self._voices

        if preferred_voice_id:
            preferred = voices.get(preferred_voice_id)
            if preferred is not None and preferred.is_available:
                return VoiceSelection(
                    voice_id=preferred.id,
                    provider=preferred.provider,
                    was_fallback=False,
                    fallback_level=0,
                    reason="Preferred voice is available",
                    requested_voice_id=preferred_voice_id,
                )

        chain = chain_for_locale(self._chains, locale)
        if not chain:
            raise NoVoiceAvailable(f"No fallback chain configured for locale {locale}")

        candidates = [voice_id for voice_id in chain if voice_id != preferred_voice_id]
        for level, voice_id in enumerate(candidates, start=1):
            voice = voices.get(voice_id)
            if voice is not None and voice.is_available:
                return VoiceSelection(
                    voice_id=voice.id,
                    provider=voice.provider,
                    was_fallback=preferred_voice_id is not None,
                    fallback_level=level,
                    reason=self._fallback_reason(preferred_voice_id, locale, level),
                    requested_voice_id=preferred_voice_id,
                )

        last = chain[-1]
        # Numbered like the walked candidates; one past them when the preferred id was the last entry.
        level = candidates.index(last) + 1 if last in candidates else len(candidates) + 1
        logger.warning("[voices] no available voice in chain | locale=%s | using last resort=%s", locale, last)
        last_voice = voices.get(last)
        return VoiceSelection(
            voice_id=last,
            provider=last_voice.provider if last_voice else provider_for_voice(last),
            was_fallback=True,
            fallback_level=level,
            reason=f"No voice in the {locale} chain is available; using last resort",
            requested_voice_id=preferred_voice_id,
        )

    @staticmethod
    def _fallback_reason(preferred: str | None, locale: str, level: int) -> str:
        if preferred:
            return f"Preferred voice {preferred} unavailable; fallback level {level} for {locale}"
        return f"Default voice for {locale}"

    def health(self) -> dict:
        return {
            "loaded": self.is_loaded,
            "voice_count": len(self._voices),
            "expired": self._is_expired(),
            "last_error": self._last_error,
        }

    async def _refresh_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.refresh()

    def start_refresh_timer(self, interval: float) -> None:
        if self._timer is None or self._timer.done():
            self._timer = asyncio.create_task(self._refresh_loop(interval))

    async def stop(self) -> None:
        for task in (self._timer, self._background_refresh):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._timer = None
        self._background_refresh = None
