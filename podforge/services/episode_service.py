import asyncio
import logging
import re
from dataclasses import replace

from podforge.errors import ValidationError
from podforge.models.episode import Episode
from podforge.models.submission import utcnow
from podforge.repositories.base import AbstractEpisodeRepository
from podforge.services.feed_cache import FeedCache

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
EDITABLE_FIELDS = ("title", "description", "summary")

_FEED_ID = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_feed_id(feed_id: str) -> str:
    if not feed_id or not _FEED_ID.match(feed_id):
        raise ValidationError(
            "Invalid feed id: must contain only alphanumeric characters, hyphens and underscores"
        )
    return feed_id


class EpisodeService:
    """Reads and edits published episodes. Every write invalidates the episode's feed."""

    def __init__(self, repository: AbstractEpisodeRepository, feed_cache: FeedCache) -> None:
        self._repository = repository
        self._feed_cache = feed_cache

    async def list_episodes(
        self, feed_id: str, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0
    ) -> tuple[list[Episode], int]:
        """One page of a feed's episodes, newest first, plus the feed's total count."""
        validate_feed_id(feed_id)
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValidationError("offset must be 0 or greater")
        episodes = await asyncio.to_thread(self._repository.get_episodes, limit, feed_id, offset)
        total = await asyncio.to_thread(self._repository.count_episodes, feed_id)
        return episodes, total

    async def get(self, episode_id: str) -> Episode | None:
        return await asyncio.to_thread(self._repository.get_episode, episode_id)

    async def update(self, episode_id: str, changes: dict) -> Episode | None:
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValidationError("Episode title must not be empty")

        episode = await self.get(episode_id)
        if episode is None:
            return None
        updated = replace(episode, **changes, updated_at=utcnow())
        await asyncio.to_thread(self._repository.save, updated)
        await self._feed_cache.on_episode_changed(updated, "update")
        logger.info("[episodes] updated | id=%s | fields=%s", episode_id, ",".join(sorted(changes)))
        return updated

    async def delete(self, episode_id: str) -> bool:
        episode = await self.get(episode_id)
        if episode is None:
            return False
        deleted = await asyncio.to_thread(self._repository.delete_episode, episode_id)
        if deleted:
            await self._feed_cache.on_episode_changed(episode, "delete")
        return deleted
