import logging

import httpx

from podforge.errors import ExtractionFailed

logger = logging.getLogger(__name__)


class FirecrawlService:
    """Client for the content-extraction service (Firecrawl scrape API)."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 60.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}

    async def extract(self, url: str) -> dict:
        """
        Scrape `url` and return {title, content, author, published_date, description}.
        Raises ExtractionFailed with the upstream message on any failure.
        """
        if not self._api_key:
            raise ExtractionFailed("Content extraction service is not configured", url=url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}/v1/scrape",
                    headers=self._headers(),
                    json={"url": url, "formats": ["markdown"], "onlyMainContent": True},
                )
        except httpx.HTTPError as exc:
            logger.warning("[firecrawl] request failed | url=%s | error=%s", url, exc)
            raise ExtractionFailed(f"Content extraction request failed: {exc}", url=url) from exc

        if response.status_code != 200:
            raise ExtractionFailed(
                f"Content extraction returned {response.status_code}: {response.text[:200]}", url=url
            )
        payload = response.json()
        if not payload.get("success", False):
            raise ExtractionFailed(
                f"Content extraction failed: {payload.get('error', 'unknown error')}", url=url
            )

        data = payload.get("data") or {}
        meta = data.get("metadata") or {}
        result = {
            "title": meta.get("title") or meta.get("ogTitle"),
            "content": data.get("markdown") or "",
            "author": meta.get("author"),
            "published_date": meta.get("publishedTime") or meta.get("article:published_time"),
            "description": meta.get("description") or meta.get("ogDescription"),
        }
        logger.info("[firecrawl] scraped | url=%s | chars=%d", url, len(result["content"]))
        return result

    async def health_check(self) -> bool:
        if not self._api_key:
            return False
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(self._base_url, headers=self._headers())
            return response.status_code < 500
        except httpx.HTTPError:
            logger.debug("[firecrawl] health check failed")
            return False
