import logging
import re

from youtube_transcript_api import YouTubeTranscriptApi

logger = logging.getLogger(__name__)

# Error class names vary across youtube-transcript-api versions; match by name.
_NO_TRANSCRIPT_ERRORS = ("NoTranscriptFound", "TranscriptsDisabled", "NoTranscriptAvailable")

_VIDEO_ID_PATTERNS = (
    re.compile(r"youtube\.com/watch\?(?:.*&)?v=([\w-]{6,})"),
    re.compile(r"youtube\.com/(?:embed|shorts|v)/([\w-]{6,})"),
    re.compile(r"youtu\.be/([\w-]{6,})"),
)


def _is_no_transcript_error(exc: Exception) -> bool:
    return type(exc).__name__ in _NO_TRANSCRIPT_ERRORS


def parse_video_id(url: str) -> str | None:
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


class YouTubeService:
    def fetch_transcript(self, video_id: str) -> str:
        """
        Fetch transcript text for a YouTube video.
        Tries English first, then falls back to any available language.
        Returns joined plain text. Raises if no transcript can be fetched.
        """
        api = YouTubeTranscriptApi()
        try:
            transcript = api.fetch(video_id, languages=["en"])
            return " ".join(seg.text for seg in transcript)
        except Exception as first_exc:
            if not _is_no_transcript_error(first_exc):
                raise
            logger.debug("[youtube] no English transcript | video_id=%s | trying any language", video_id)

        available = list(api.list(video_id))
        if not available:
            raise LookupError(f"No transcripts available for video_id={video_id}")
        transcript = available[0].fetch()
        return " ".join(seg.text for seg in transcript)

    def try_fetch_transcript(self, video_id: str) -> str | None:
        """Like fetch_transcript, but returns None when the video has no usable transcript."""
        try:
            text = self.fetch_transcript(video_id)
        except Exception as exc:
            if _is_no_transcript_error(exc) or isinstance(exc, LookupError):
                logger.info("[youtube] no transcript available | video_id=%s | reason=%s", video_id, exc)
            else:
                logger.warning("[youtube] transcript fetch failed | video_id=%s | error=%s", video_id, exc)
            return None
        if not text.strip():
            return None
        logger.info("[youtube] transcript fetched | video_id=%s | words=%d", video_id, len(text.split()))
        return text
