import logging
from dataclasses import dataclass, replace
from typing import Protocol
from xml.sax.saxutils import escape, quoteattr

import httpx

from podforge.errors import TTSProviderError
from podforge.models.voice import VoiceProfile

logger = logging.getLogger(__name__)

ELEVENLABS = "elevenlabs"
AZURE = "azure"

DEFAULT_ELEVENLABS_VOICE = "pNInz6obpgDQGcFmaJgB"
DEFAULT_AZURE_VOICE = "en-US-AriaNeural"

_ELEVENLABS_ACCENT_LOCALES = {"american": "en-US", "british": "en-GB", "australian": "en-AU", "irish": "en-IE"}


def provider_for_voice(voice_id: str) -> str:
    """Azure neural voice names carry a `Neural` suffix; everything else is an ElevenLabs id."""
    return AZURE if "Neural" in voice_id else ELEVENLABS


@dataclass(frozen=True)
class TTSConfig:
    provider: str
    voice_id: str
    locale: str = "en-US"
    speed: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0


class TTSProvider(Protocol):
    name: str
    quality_bonus: int

    async def synthesize(self, text: str, config: TTSConfig) -> bytes: ...

    async def list_voices(self) -> list[VoiceProfile]: ...

    async def health_check(self) -> bool: ...

    def adapt_config(self, config: TTSConfig) -> TTSConfig: ...


class ElevenLabsProvider:
    name = ELEVENLABS
    quality_bonus = 20

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model_id: str = "eleven_multilingual_v2",
        default_voice: str = DEFAULT_ELEVENLABS_VOICE,
        timeout: float = 120.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model_id = model_id
        self._default_voice = default_voice
        self._timeout = timeout

    def _headers(self) -> dict:
        return {"xi-api-key": self._api_key}

    def adapt_config(self, config: TTSConfig) -> TTSConfig:
        voice_id = config.voice_id
        if provider_for_voice(voice_id) != ELEVENLABS:
            voice_id = self._default_voice
        # ElevenLabs only accepts speed in [0.7, 1.2] and has no pitch or volume control.
        speed = min(1.2, max(0.7, config.speed))
        return replace(config, provider=ELEVENLABS, voice_id=voice_id, speed=speed, pitch=1.0, volume=1.0)

    async def synthesize(self, text: str, config: TTSConfig) -> bytes:
        if not self._api_key:
            raise TTSProviderError(self.name, "not configured")
        body = {
            "text": text,
            "model_id": self._model_id,
            "voice_settings": {"stability": 0.5, "similarity_boost": 0.75, "speed": config.speed},
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}/v1/text-to-speech/{config.voice_id}",
                    headers={**self._headers(), "Accept": "audio/mpeg"},
                    json=body,
                )
        except httpx.HTTPError as exc:
            raise TTSProviderError(self.name, f"request failed: {exc}") from exc
        if response.status_code != 200:
            raise TTSProviderError(self.name, f"status {response.status_code}: {response.text[:200]}")
        if not response.content:
            raise TTSProviderError(self.name, "empty audio response")
        return response.content

    async def list_voices(self) -> list[VoiceProfile]:
        if not self._api_key:
            raise TTSProviderError(self.name, "not configured")
        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.get(f"{self._base_url}/v1/voices", headers=self._headers())
        except httpx.HTTPError as exc:
            raise TTSProviderError(self.name, f"voice listing failed: {exc}") from exc
        if response.status_code != 200:
            raise TTSProviderError(self.name, f"voice listing returned {response.status_code}")

        voices = []
        for item in response.json().get("voices", []):
            labels = item.get("labels") or {}
            locale = _ELEVENLABS_ACCENT_LOCALES.get((labels.get("accent") or "").lower(), "en-US")
            voices.append(
                VoiceProfile(
                    id=item["voice_id"],
                    name=item.get("name") or item["voice_id"],
                    display_name=item.get("name"),
                    provider=self.name,
                    locale=locale,
                    language=locale.split("-")[0],
                    gender=labels.get("gender"),
                    style_tags=tuple(v for v in (labels.get("description"), labels.get("use_case")) if v),
                    quality="ultra" if item.get("category") == "professional" else "premium",
                    description=item.get("description"),
                )
            )
        return voices

    async def health_check(self) -> bool:
        if not self._api_key:
            return False
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{self._base_url}/v1/voices", headers=self._headers())
            return response.status_code == 200
        except httpx.HTTPError:
            return False


class AzureSpeechProvider:
    name = AZURE
    quality_bonus = 15

    OUTPUT_FORMAT = "audio-16khz-32kbitrate-mono-mp3"

    def __init__(
        self,
        api_key: str,
        region: str = "eastus",
        default_voice: str = DEFAULT_AZURE_VOICE,
        timeout: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._region = region
        self._default_voice = default_voice
        self._timeout = timeout

    @property
    def _base_url(self) -> str:
        return f"https://{self._region}.tts.speech.microsoft.com/cognitiveservices"

    def adapt_config(self, config: TTSConfig) -> TTSConfig:
        voice_id = config.voice_id
        if provider_for_voice(voice_id) != AZURE:
            voice_id = self._default_voice
        return replace(config, provider=AZURE, voice_id=voice_id)

    def build_ssml(self, text: str, config: TTSConfig) -> str:
        rate = f"{round((config.speed - 1) * 100):+d}%"
        pitch = f"{round((config.pitch - 1) * 100):+d}%"
        volume = f"{round((config.volume - 1) * 100):+d}%"
        return (
            f"<speak version='1.0' xml:lang={quoteattr(config.locale)}>"
            f"<voice name={quoteattr(config.voice_id)}>"
            f"<prosody rate='{rate}' pitch='{pitch}' volume='{volume}'>{escape(text)}</prosody>"
            "</voice></speak>"
        )

    async def synthesize(self, text: str, config: TTSConfig) -> bytes:
        if not self._api_key:
            raise TTSProviderError(self.name, "not configured")
        headers = {
            "Ocp-Apim-Subscription-Key": self._api_key,
            "Content-Type": "application/ssml+xml",
            "X-Microsoft-OutputFormat": self.OUTPUT_FORMAT,
            "User-Agent": "podforge",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}/v1",
                    headers=headers,
                    content=self.build_ssml(text, config).encode("utf-8"),
                )
        except httpx.HTTPError as exc:
            raise TTSProviderError(self.name, f"request failed: {exc}") from exc
        if response.status_code != 200:
            raise TTSProviderError(self.name, f"status {response.status_code}: {response.text[:200]}")
        if not response.content:
            raise TTSProviderError(self.name, "empty audio response")
        return response.content

    async def list_voices(self) -> list[VoiceProfile]:
        if not self._api_key:
            raise TTSProviderError(self.name, "not configured")
        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.get(
                    f"{self._base_url}/voices/list",
                    headers={"Ocp-Apim-Subscription-Key": self._api_key},
                )
        except httpx.HTTPError as exc:
            raise TTSProviderError(self.name, f"voice listing failed: {exc}") from exc
        if response.status_code != 200:
            raise TTSProviderError(self.name, f"voice listing returned {response.status_code}")

        return [
            VoiceProfile(
                id=item["ShortName"],
                name=item.get("LocalName") or item.get("DisplayName") or item["ShortName"],
                display_name=item.get("DisplayName"),
                provider=self.name,
                locale=item.get("Locale", "en-US"),
                language=item.get("Locale", "en-US").split("-")[0],
                gender=(item.get("Gender") or "").lower() or None,
                style_tags=tuple(item.get("StyleList") or ()),
                quality="premium" if item.get("VoiceType") == "Neural" else "standard",
            )
            for item in response.json()
        ]

    async def health_check(self) -> bool:
        if not self._api_key:
            return False
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(
                    f"{self._base_url}/voices/list",
                    headers={"Ocp-Apim-Subscription-Key": self._api_key},
                )
            return response.status_code == 200
        except httpx.HTTPError:
            return False
