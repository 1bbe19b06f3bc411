"""
Per-feed cache of rendered RSS documents.

Each feed has a version counter bumped on every invalidation. A build records
the version it started from and is only stored if no invalidation happened
while it ran; otherwise it is discarded and redone against fresh data.
"""
import asyncio
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from podforge.errors import ValidationError
from podforge.models.episode import Episode
from podforge.models.submission import utcnow
from podforge.repositories.base import AbstractEpisodeRepository
from podforge.services.feed_service import FeedMetadata, FeedOptions, FeedService
from podforge.services.storage_service import CdnPurger

logger = logging.getLogger(__name__)

CHANGE_TYPES = ("create", "update", "delete")

_MAX_BUILD_ATTEMPTS = 3


@dataclass(frozen=True)
class FeedCacheEntry:
    feed_id: str
    document: bytes
    generated_at: datetime
    fingerprint: str
    etag: str
    episode_count: int
    version: int


def feed_path(feed_id: str) -> str:
    return f"/feeds/{feed_id}/rss.xml"


def fingerprint(episodes: list[Episode]) -> str:
    digest = hashlib.sha256()
    for episode in sorted(episodes, key=lambda e: e.id):
        digest.update(f"{episode.id}:{episode.updated_at.isoformat()}\n".encode())
    return digest.hexdigest()[:16]


class FeedCache:
    def __init__(
        self,
        feed_service: FeedService,
        episode_repository: AbstractEpisodeRepository,
        metadata: FeedMetadata,
        options: FeedOptions | None = None,
        ttl_seconds: float = 3600,
        cdn: CdnPurger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._feed_service = feed_service
        self._repository = episode_repository
        self._metadata = metadata
        self._options = options or FeedOptions()
        self._ttl = ttl_seconds
        self._cdn = cdn
        self._clock = clock
        self._entries: dict[str, FeedCacheEntry] = {}
        self._versions: dict[str, int] = {}
        self._invalidated_at: dict[str, datetime] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    def _lock(self, feed_id: str) -> asyncio.Lock:
        return self._locks.setdefault(feed_id, asyncio.Lock())

    def _is_fresh(self, entry: FeedCacheEntry) -> bool:
        if entry.version != self._versions.get(entry.feed_id, 0):
            return False
        return (self._clock() - entry.generated_at).total_seconds() < self._ttl

    async def get(self, feed_id: str) -> FeedCacheEntry:
        entry = self._entries.get(feed_id)
        if entry is not None and self._is_fresh(entry):
            self._hits += 1
            return entry
        self._misses += 1
        return await self._rebuild(feed_id)

    async def _rebuild(self, feed_id: str) -> FeedCacheEntry:
        async with self._lock(feed_id):
            entry = self._entries.get(feed_id)
            if entry is not None and self._is_fresh(entry):
                return entry

            for attempt in range(1, _MAX_BUILD_ATTEMPTS + 1):
                version = self._versions.get(feed_id, 0)
                entry = await self._build(feed_id, version)
                if self._versions.get(feed_id, 0) == version:
                    self._entries[feed_id] = entry
                    return entry
                logger.info("[feed_cache] build overtaken by invalidation | feed_id=%s | attempt=%d", feed_id, attempt)

            # Invalidations kept arriving; serve the last build without caching it.
            return entry

    async def _build(self, feed_id: str, version: int) -> FeedCacheEntry:
        episodes = await asyncio.to_thread(self._repository.get_episodes, self._options.max_episodes, feed_id)
        generated_at = self._clock()
        document = self._feed_service.build_feed(
            episodes, self._metadata, self._options, built_at=generated_at
        ).encode("utf-8")
        entry = FeedCacheEntry(
            feed_id=feed_id,
            document=document,
            generated_at=generated_at,
            fingerprint=fingerprint(episodes),
            etag=f'"{hashlib.sha256(document).hexdigest()[:32]}"',
            episode_count=len(episodes),
            version=version,
        )
        logger.info(
            "[feed_cache] built | feed_id=%s | episodes=%d | version=%d", feed_id, entry.episode_count, version
        )
        return entry

    async def invalidate(self, feed_id: str, reason: str) -> None:
        self._versions[feed_id] = self._versions.get(feed_id, 0) + 1
        self._invalidated_at[feed_id] = self._clock()
        self._entries.pop(feed_id, None)
        self._invalidations += 1
        logger.info("[feed_cache] invalidated | feed_id=%s | reason=%s", feed_id, reason)
        if self._cdn is not None:
            result = await self._cdn.purge([feed_path(feed_id)])
            if not result.success:
                logger.warning("[feed_cache] cdn purge failed | feed_id=%s | message=%s", feed_id, result.message)

    async def on_episode_changed(self, episode: Episode, change_type: str) -> None:
        if change_type not in CHANGE_TYPES:
            raise ValidationError(f"Unknown change type: {change_type}")
        await self.invalidate(episode.feed_id, f"episode {change_type}: {episode.id}")

    async def refresh(self, feed_id: str) -> FeedCacheEntry:
        await self.invalidate(feed_id, "manual refresh")
        return await self._rebuild(feed_id)

    def last_invalidated(self, feed_id: str) -> datetime | None:
        return self._invalidated_at.get(feed_id)

    def stats(self) -> dict:
        return {
            "hits": self._hits,
            "misses": self._misses,
            "invalidations": self._invalidations,
            "cached_feeds": sorted(self._entries),
        }
