import logging
from dataclasses import dataclass
from datetime import datetime
from email.utils import format_datetime

from podforge.errors import ValidationError
from podforge.models.episode import Episode
from podforge.models.submission import utcnow

logger = logging.getLogger(__name__)

ITUNES_NS = "http://www.itunes.com/dtds/podcast-1.0.dtd"
CONTENT_NS = "http://purl.org/rss/1.0/modules/content/"
GENERATOR = "podforge 1.0"

_XML_ESCAPES = (("&", "&amp;"), ("<", "&lt;"), (">", "&gt;"), ('"', "&quot;"), ("'", "&#39;"))


@dataclass(frozen=True)
class FeedMetadata:
    title: str
    description: str
    link: str
    language: str = "en-us"
    author: str = "podforge"
    email: str = ""
    category: str = "Technology"
    explicit: bool = False
    artwork_url: str | None = None


@dataclass(frozen=True)
class FeedOptions:
    max_episodes: int = 100
    sort_order: str = "newest"
    include_chapters: bool = True
    include_transcript: bool = True

    def __post_init__(self) -> None:
        if self.sort_order not in ("newest", "oldest"):
            raise ValidationError(f"sort_order must be 'newest' or 'oldest', got {self.sort_order!r}")
        if self.max_episodes < 0:
            raise ValidationError("max_episodes must be non-negative")


def escape_xml(text: str | None) -> str:
    text = text or ""
    for char, entity in _XML_ESCAPES:
        text = text.replace(char, entity)
    return text


def format_duration(seconds: int) -> str:
    """H:MM:SS when an hour or longer, otherwise M:SS."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def sort_episodes(episodes: list[Episode], sort_order: str = "newest") -> list[Episode]:
    return sorted(episodes, key=lambda e: e.pub_date, reverse=sort_order == "newest")


class FeedService:
    """Renders an RSS 2.0 podcast document with iTunes and content extensions."""

    def build_feed(
        self,
        episodes: list[Episode],
        metadata: FeedMetadata,
        options: FeedOptions | None = None,
        built_at: datetime | None = None,
    ) -> str:
        options = options or FeedOptions()
        built_at = built_at or utcnow()
        selected = sort_episodes(episodes, options.sort_order)[: options.max_episodes]

        last_build = format_datetime(built_at)
        pub_date = format_datetime(selected[0].pub_date) if selected else last_build
        m = metadata

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<rss version="2.0" xmlns:itunes="{ITUNES_NS}" xmlns:content="{CONTENT_NS}">',
            "  <channel>",
            f"    <title>{escape_xml(m.title)}</title>",
            f"    <description>{escape_xml(m.description)}</description>",
            f"    <link>{escape_xml(m.link)}</link>",
            f"    <language>{escape_xml(m.language)}</language>",
            f"    <copyright>Copyright {built_at.year} {escape_xml(m.author)}</copyright>",
            f"    <lastBuildDate>{last_build}</lastBuildDate>",
            f"    <pubDate>{pub_date}</pubDate>",
            f"    <generator>{GENERATOR}</generator>",
        ]
        if m.email:
            lines.append(f"    <managingEditor>{escape_xml(m.email)} ({escape_xml(m.author)})</managingEditor>")
        lines += [
            f"    <itunes:author>{escape_xml(m.author)}</itunes:author>",
            f"    <itunes:summary>{escape_xml(m.description)}</itunes:summary>",
            "    <itunes:owner>",
            f"      <itunes:name>{escape_xml(m.author)}</itunes:name>",
            f"      <itunes:email>{escape_xml(m.email)}</itunes:email>",
            "    </itunes:owner>",
            f"    <itunes:explicit>{'yes' if m.explicit else 'no'}</itunes:explicit>",
            f'    <itunes:category text="{escape_xml(m.category)}"/>',
            "    <itunes:type>episodic</itunes:type>",
        ]
        if m.artwork_url:
            lines.append(f'    <itunes:image href="{escape_xml(m.artwork_url)}"/>')
        for episode in selected:
            lines.extend(self._item(episode, options))
        lines += ["  </channel>", "</rss>"]

        logger.info("[feed] built | episodes=%d | of=%d", len(selected), len(episodes))
        return "\n".join(lines) + "\n"

    def _item(self, episode: Episode, options: FeedOptions) -> list[str]:
        lines = [
            "    <item>",
            f"      <title>{escape_xml(episode.title)}</title>",
            f"      <description>{escape_xml(episode.description)}</description>",
            f"      <link>{escape_xml(episode.source_url)}</link>",
            f'      <guid isPermaLink="false">{escape_xml(episode.guid)}</guid>',
            f"      <pubDate>{format_datetime(episode.pub_date)}</pubDate>",
            f'      <enclosure url="{escape_xml(episode.audio_url)}" '
            f'length="{episode.enclosure_length}" type="{escape_xml(episode.mime_type)}"/>',
            f"      <itunes:title>{escape_xml(episode.title)}</itunes:title>",
            f"      <itunes:summary>{escape_xml(episode.description)}</itunes:summary>",
            f"      <itunes:duration>{format_duration(episode.duration_seconds)}</itunes:duration>",
            "      <itunes:episodeType>full</itunes:episodeType>",
        ]
        if options.include_chapters and episode.chapters:
            lines.append("      <itunes:chapters>")
            for chapter in episode.chapters:
                lines.append(
                    f'        <itunes:chapter start="{format_duration(chapter.start_time)}" '
                    f'title="{escape_xml(chapter.title)}"/>'
                )
            lines.append("      </itunes:chapters>")
        if options.include_transcript and episode.transcript:
            lines.append(f"      <content:encoded>{escape_xml(episode.transcript)}</content:encoded>")
        if episode.summary:
            lines.append(f"      <itunes:subtitle>{escape_xml(episode.summary)}</itunes:subtitle>")
        lines.append("    </item>")
        return lines


def feed_stats(episodes: list[Episode]) -> dict:
    total = sum(e.duration_seconds for e in episodes)
    dates = [e.pub_date for e in episodes]
    return {
        "episode_count": len(episodes),
        "total_duration_seconds": total,
        "average_duration_seconds": round(total / len(episodes)) if episodes else 0,
        "newest": max(dates).isoformat() if dates else None,
        "oldest": min(dates).isoformat() if dates else None,
    }
