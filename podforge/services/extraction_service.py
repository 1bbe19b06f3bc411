import asyncio
import logging
from pathlib import PurePosixPath
from urllib.parse import urlparse

from podforge.errors import ExtractionFailed
from podforge.models.content import ExtractedContent
from podforge.models.submission import ContentSubmission, ContentType
from podforge.services import text_metrics
from podforge.services.firecrawl_service import FirecrawlService
from podforge.services.youtube_service import YouTubeService, parse_video_id

logger = logging.getLogger(__name__)

NO_VIDEO_TEXT = "No transcript or description is available for this video."


def title_from_url(url: str) -> str:
    """File stem of the URL path, else the host, else the raw URL."""
    parsed = urlparse(url)
    stem = PurePosixPath(parsed.path).stem
    if stem:
        return stem.replace("-", " ").replace("_", " ")
    return parsed.netloc or url


def file_type_from_url(url: str) -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix.lstrip(".").lower()
    return suffix or "unknown"


def build_extracted(
    url: str,
    raw: dict,
    *,
    method: str,
    content: str | None = None,
    title: str | None = None,
    metadata: dict | None = None,
) -> ExtractedContent:
    text = raw.get("content", "") if content is None else content
    words = text_metrics.word_count(text)
    return ExtractedContent(
        title=title or raw.get("title") or title_from_url(url),
        content=text,
        author=raw.get("author"),
        published_date=raw.get("published_date"),
        word_count=words,
        reading_time=text_metrics.reading_time(words),
        language=text_metrics.detect_language(text),
        extraction_method=method,
        extraction_quality=text_metrics.extraction_quality(text, words),
        metadata={"original_url": url, **(metadata or {})},
    )


class ExtractionService:
    """Turns a submission into ExtractedContent, one handler per content type."""

    def __init__(self, firecrawl: FirecrawlService, youtube: YouTubeService | None = None) -> None:
        self._firecrawl = firecrawl
        self._youtube = youtube or YouTubeService()
        self._handlers = {
            ContentType.URL: self._extract_url,
            ContentType.YOUTUBE: self._extract_youtube,
            ContentType.PDF: self._extract_pdf,
            ContentType.DOCUMENT: self._extract_document,
        }
        missing = set(ContentType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No extraction handler for: {sorted(t.value for t in missing)}")

    async def extract(self, submission: ContentSubmission) -> ExtractedContent:
        handler = self._handlers[submission.content_type]
        logger.info(
            "[extract] start | submission_id=%s | type=%s", submission.id, submission.content_type.value
        )
        try:
            result = await handler(submission.content_url)
        except ExtractionFailed:
            raise
        except Exception as exc:
            raise ExtractionFailed(str(exc), url=submission.content_url) from exc
        logger.info(
            "[extract] done | submission_id=%s | method=%s | words=%d | quality=%d",
            submission.id,
            result.extraction_method,
            result.word_count,
            result.extraction_quality,
        )
        return result

    async def _extract_url(self, url: str) -> ExtractedContent:
        raw = await self._firecrawl.extract(url)
        return build_extracted(url, raw, method="firecrawl")

    async def _extract_pdf(self, url: str) -> ExtractedContent:
        raw = await self._firecrawl.extract(url)
        return build_extracted(url, raw, method="firecrawl_pdf", metadata={"file_type": "pdf"})

    async def _extract_document(self, url: str) -> ExtractedContent:
        raw = await self._firecrawl.extract(url)
        return build_extracted(
            url, raw, method="firecrawl_document", metadata={"file_type": file_type_from_url(url)}
        )

    async def _extract_youtube(self, url: str) -> ExtractedContent:
        video_id = parse_video_id(url)
        if not video_id:
            raise ExtractionFailed(f"Could not parse a video id from {url}", url=url)

        page = await self._firecrawl.extract(url)
        transcript = await asyncio.to_thread(self._youtube.try_fetch_transcript, video_id)

        if transcript:
            content, method = transcript, "youtube_transcript"
        else:
            content = (page.get("description") or "").strip() or NO_VIDEO_TEXT
            method = "youtube_description"

        return build_extracted(
            url,
            page,
            method=method,
            content=content,
            title=page.get("title") or f"YouTube Video {video_id}",
            metadata={
                "youtube_video_id": video_id,
                "has_transcript": transcript is not None,
                "thumbnail_url": f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg",
            },
        )
