import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from podforge.errors import NoVoiceAvailable, TTSProviderError
from podforge.models.voice import VoiceAvailability, VoiceFilter, VoiceProfile
from podforge.services.voice_service import VoiceCatalog, chain_for_locale


def _voice(voice_id, provider="elevenlabs", locale="en-US", available=True, gender=None):
    return VoiceProfile(
        id=voice_id,
        name=voice_id,
        provider=provider,
        locale=locale,
        language=locale.split("-")[0],
        gender=gender,
        availability=VoiceAvailability.AVAILABLE if available else VoiceAvailability.UNAVAILABLE,
    )


def _provider(voices=None, error=None, name="elevenlabs"):
    provider = MagicMock()
    provider.name = name
    if error is not None:
        provider.list_voices = AsyncMock(side_effect=error)
    else:
        provider.list_voices = AsyncMock(return_value=voices or [])
    return provider


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


CHAINS = {"en-US": ("A", "B", "C"), "default": ("A",)}


@pytest.mark.asyncio
async def test_preferred_available_is_level_zero():
    catalog = VoiceCatalog([_provider([_voice("A"), _voice("B")])], fallback_chains=CHAINS)
    selection = await catalog.select_with_fallback("A", "en-US")
    assert selection.voice_id == "A"
    assert selection.fallback_level == 0
    assert selection.was_fallback is False


@pytest.mark.asyncio
async def test_unavailable_preferred_falls_back_deterministically():
    voices = [_voice("A", available=False), _voice("B"), _voice("C")]
    catalog = VoiceCatalog([_provider(voices)], fallback_chains=CHAINS)

    first = await catalog.select_with_fallback("A", "en-US")
    second = await catalog.select_with_fallback("A", "en-US")

    assert first.voice_id == "B"
    assert first.fallback_level == 1
    assert first.was_fallback is True
    assert first.requested_voice_id == "A"
    assert first == second


@pytest.mark.asyncio
async def test_unknown_preferred_walks_chain():
    catalog = VoiceCatalog([_provider([_voice("A", available=False), _voice("C")])], fallback_chains=CHAINS)
    selection = await catalog.select_with_fallback("Z", "en-US")
    assert selection.voice_id == "C"
    assert selection.fallback_level == 3


@pytest.mark.asyncio
async def test_no_preferred_uses_chain_without_fallback_flag():
    catalog = VoiceCatalog([_provider([_voice("B")])], fallback_chains=CHAINS)
    selection = await catalog.select_with_fallback(None, "en-US")
    assert selection.voice_id == "B"
    assert selection.was_fallback is False


@pytest.mark.asyncio
async def test_nothing_available_returns_last_resort():
    catalog = VoiceCatalog([_provider([_voice("A", available=False)])], fallback_chains=CHAINS)
    selection = await catalog.select_with_fallback("A", "en-US")
    assert selection.voice_id == "C"
    assert selection.was_fallback is True
    assert "last resort" in selection.reason
    # "A" is excluded from the numbering, so B is level 1 and C is level 2.
    assert selection.fallback_level == 2


@pytest.mark.asyncio
async def test_last_resort_level_follows_chain_without_preferred():
    catalog = VoiceCatalog([_provider([])], fallback_chains=CHAINS)
    selection = await catalog.select_with_fallback("Z", "en-US")
    assert selection.voice_id == "C"
    assert selection.fallback_level == 3


@pytest.mark.asyncio
async def test_empty_chain_raises():
    catalog = VoiceCatalog([_provider([])], fallback_chains={"default": ()})
    with pytest.raises(NoVoiceAvailable):
        await catalog.select_with_fallback(None, "en-US")


def test_chain_lookup_order():
    chains = {"en-GB": ("gb",), "en": ("en",), "default": ("d",)}
    assert chain_for_locale(chains, "en-GB") == ("gb",)
    assert chain_for_locale(chains, "en-AU") == ("en",)
    assert chain_for_locale(chains, "de-DE") == ("d",)


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_mapping():
    good = _provider([_voice("A")])
    catalog = VoiceCatalog([good], fallback_chains=CHAINS)
    assert await catalog.refresh() is True

    good.list_voices = AsyncMock(side_effect=TTSProviderError("elevenlabs", "503"))
    assert await catalog.refresh() is False
    assert await catalog.get_voice("A") is not None
    assert catalog.health()["last_error"] == "elevenlabs: 503"


@pytest.mark.asyncio
async def test_partial_provider_failure_keeps_previous_mapping():
    catalog = VoiceCatalog(
        [_provider([_voice("A")]), _provider(error=TTSProviderError("azure", "down"), name="azure")],
        fallback_chains=CHAINS,
    )
    assert await catalog.refresh() is False
    assert catalog.is_loaded is False


@pytest.mark.asyncio
async def test_expired_cache_served_stale_while_refreshing():
    clock = FakeClock()
    provider = _provider([_voice("A")])
    catalog = VoiceCatalog([provider], ttl_seconds=10, fallback_chains=CHAINS, clock=clock)

    assert await catalog.get_voice("A") is not None
    assert provider.list_voices.await_count == 1

    provider.list_voices = AsyncMock(return_value=[_voice("B")])
    clock.now = 11
    assert await catalog.get_voice("A") is not None  # stale read
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert await catalog.get_voice("B") is not None
    await catalog.stop()


@pytest.mark.asyncio
async def test_list_voices_filters():
    voices = [_voice("A", gender="male"), _voice("B", provider="azure", gender="female")]
    catalog = VoiceCatalog([_provider(voices)], fallback_chains=CHAINS)
    listed = await catalog.list_voices(VoiceFilter(provider="azure"))
    assert [v.id for v in listed] == ["B"]
    assert len(await catalog.list_voices()) == 2


@pytest.mark.asyncio
async def test_last_resort_when_preferred_is_last_in_chain():
    catalog = VoiceCatalog([_provider([_voice("C", available=False)])], fallback_chains=CHAINS)
    selection = await catalog.select_with_fallback("C", "en-US")
    assert selection.voice_id == "C"
    assert selection.fallback_level == 3
