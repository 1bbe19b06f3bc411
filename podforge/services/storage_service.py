import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

import httpx

from podforge.errors import PodforgeError
from podforge.models.submission import utcnow

logger = logging.getLogger(__name__)


class StorageError(PodforgeError):
    retryable = True


class ObjectStorage(ABC):
    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store `data` under `key` and return its public URL."""

    @abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abstractmethod
    async def list(self, prefix: str = "") -> list[str]: ...


class LocalObjectStorage(ObjectStorage):
    """Filesystem-backed storage served from a static public base URL."""

    def __init__(self, root: str, public_base_url: str) -> None:
        self._root = Path(root)
        self._public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root.resolve() not in path.parents:
            raise StorageError(f"Key escapes storage root: {key}")
        return path

    def public_url(self, key: str) -> str:
        return f"{self._public_base_url}/{key}"

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".part")
        tmp.write_bytes(data)
        tmp.replace(path)

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as exc:
            raise StorageError(f"Failed to store {key}: {exc}") from exc
        logger.info("[storage] stored | key=%s | bytes=%d | type=%s", key, len(data), content_type)
        return self.public_url(key)

    async def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        await asyncio.to_thread(path.unlink)
        logger.info("[storage] deleted | key=%s", key)
        return True

    async def list(self, prefix: str = "") -> list[str]:
        def _scan() -> list[str]:
            if not self._root.exists():
                return []
            keys = (p.relative_to(self._root).as_posix() for p in self._root.rglob("*") if p.is_file())
            return sorted(k for k in keys if k.startswith(prefix) and not k.endswith(".part"))

        return await asyncio.to_thread(_scan)


@dataclass(frozen=True)
class PurgeResult:
    success: bool
    estimated_completion: datetime | None = None
    message: str | None = None


class CdnPurger(ABC):
    @abstractmethod
    async def purge(self, paths: list[str]) -> PurgeResult: ...


class NullCdnPurger(CdnPurger):
    async def purge(self, paths: list[str]) -> PurgeResult:
        logger.debug("[cdn] purge skipped, no CDN configured | paths=%s", paths)
        return PurgeResult(success=True, estimated_completion=utcnow(), message="no CDN configured")


class HttpCdnPurger(CdnPurger):
    """Posts content paths to a CDN purge endpoint. Failures are reported, never raised."""

    def __init__(self, purge_url: str, api_key: str, timeout: float = 15.0) -> None:
        self._purge_url = purge_url
        self._api_key = api_key
        self._timeout = timeout

    async def purge(self, paths: list[str]) -> PurgeResult:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._purge_url,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={"contentPaths": paths},
                )
        except httpx.HTTPError as exc:
            logger.warning("[cdn] purge failed | paths=%s | error=%s", paths, exc)
            return PurgeResult(success=False, message=str(exc))
        if response.status_code >= 400:
            logger.warning("[cdn] purge rejected | paths=%s | status=%d", paths, response.status_code)
            return PurgeResult(success=False, message=f"status {response.status_code}")
        logger.info("[cdn] purge requested | paths=%s", paths)
        # Edge purges typically propagate within a few minutes.
        return PurgeResult(success=True, estimated_completion=utcnow() + timedelta(minutes=2))


def audio_key(feed_id: str, episode_id: str) -> str:
    return f"episodes/{feed_id}/{episode_id}.mp3"
