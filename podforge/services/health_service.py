import asyncio
import logging
from typing import Awaitable, Callable

from podforge.models.submission import utcnow

logger = logging.getLogger(__name__)

HealthCheck = Callable[[], Awaitable[bool]]


class HealthMonitor:
    """Runs collaborator health checks on a fixed interval and keeps the latest snapshot."""

    def __init__(self, checks: dict[str, HealthCheck]) -> None:
        self._checks = checks
        self._last: dict[str, bool] = {}
        self._checked_at = None
        self._task: asyncio.Task | None = None

    async def run_once(self) -> dict[str, bool]:
        results = {}
        for name, check in self._checks.items():
            try:
                results[name] = bool(await check())
            except Exception:
                logger.exception("[health] check crashed | component=%s", name)
                results[name] = False
        self._last = results
        self._checked_at = utcnow()
        unhealthy = [name for name, ok in results.items() if not ok]
        if unhealthy:
            logger.warning("[health] degraded | unhealthy=%s", ",".join(unhealthy))
        else:
            logger.info("[health] all components healthy | count=%d", len(results))
        return results

    def snapshot(self) -> dict:
        return {
            "components": dict(self._last),
            "checked_at": self._checked_at.isoformat() if self._checked_at else None,
        }

    async def _loop(self, interval: float) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(interval)

    def start(self, interval: float) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(interval))

    async def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
