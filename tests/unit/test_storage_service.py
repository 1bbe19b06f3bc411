from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from podforge.services.storage_service import (
    HttpCdnPurger,
    LocalObjectStorage,
    NullCdnPurger,
    StorageError,
    audio_key,
)


@pytest.fixture
def storage(tmp_path):
    return LocalObjectStorage(str(tmp_path / "audio"), "https://media.test/audio/")


@pytest.mark.asyncio
async def test_put_writes_file_and_returns_public_url(storage, tmp_path):
    key = audio_key("default", "ep-1")
    url = await storage.put(key, b"mp3", "audio/mpeg")
    assert url == "https://media.test/audio/episodes/default/ep-1.mp3"
    assert (tmp_path / "audio" / "episodes" / "default" / "ep-1.mp3").read_bytes() == b"mp3"


@pytest.mark.asyncio
async def test_list_and_delete(storage):
    await storage.put("episodes/a/1.mp3", b"1", "audio/mpeg")
    await storage.put("episodes/b/2.mp3", b"2", "audio/mpeg")
    assert await storage.list("episodes/a") == ["episodes/a/1.mp3"]
    assert await storage.delete("episodes/a/1.mp3") is True
    assert await storage.delete("episodes/a/1.mp3") is False
    assert await storage.list() == ["episodes/b/2.mp3"]


@pytest.mark.asyncio
async def test_key_cannot_escape_root(storage):
    with pytest.raises(StorageError):
        await storage.put("../outside.mp3", b"x", "audio/mpeg")


@pytest.mark.asyncio
async def test_null_purger_succeeds():
    result = await NullCdnPurger().purge(["/feeds/default/rss.xml"])
    assert result.success


@pytest.mark.asyncio
async def test_http_purger_posts_paths():
    response = MagicMock(status_code=202)
    with patch("podforge.services.storage_service.httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.post = AsyncMock(return_value=response)
        mock_client_cls.return_value.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client_cls.return_value.__aexit__ = AsyncMock(return_value=False)

        result = await HttpCdnPurger("https://cdn.test/purge", "k").purge(["/feeds/x/rss.xml"])

    assert result.success
    assert result.estimated_completion is not None
    assert mock_client.post.call_args.kwargs["json"] == {"contentPaths": ["/feeds/x/rss.xml"]}


@pytest.mark.asyncio
async def test_http_purger_reports_failure_without_raising():
    with patch("podforge.services.storage_service.httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.post = AsyncMock(side_effect=httpx.ConnectTimeout("timeout"))
        mock_client_cls.return_value.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client_cls.return_value.__aexit__ = AsyncMock(return_value=False)

        result = await HttpCdnPurger("https://cdn.test/purge", "k").purge(["/feeds/x/rss.xml"])

    assert not result.success
    assert "timeout" in result.message
