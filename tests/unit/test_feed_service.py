from datetime import datetime, timedelta, timezone

import pytest

from podforge.errors import ValidationError
from podforge.models.episode import ChapterMarker, Episode
from podforge.models.submission import ContentType
from podforge.services.feed_service import (
    FeedMetadata,
    FeedOptions,
    FeedService,
    escape_xml,
    feed_stats,
    format_duration,
)

BASE = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
METADATA = FeedMetadata(title="My Show", description="Daily", link="https://show.test", email="me@show.test")


def _episode(episode_id, days=0, **kwargs):
    defaults = dict(
        id=episode_id,
        title=f"Episode {episode_id}",
        description="desc",
        source_url=f"https://example.com/{episode_id}",
        content_type=ContentType.URL,
        audio_url=f"https://cdn.test/{episode_id}.mp3",
        duration_seconds=125,
        pub_date=BASE + timedelta(days=days),
    )
    defaults.update(kwargs)
    return Episode(**defaults)


def _item_order(xml):
    return [line.split(">")[1].split("<")[0] for line in xml.splitlines() if "<guid" in line]


def test_newest_first_order():
    episodes = [_episode("C", 0), _episode("A", 2), _episode("B", 1)]
    xml = FeedService().build_feed(episodes, METADATA, FeedOptions(sort_order="newest"))
    assert _item_order(xml) == ["episode_A", "episode_B", "episode_C"]


def test_oldest_first_and_truncation():
    episodes = [_episode("C", 0), _episode("A", 2), _episode("B", 1)]
    xml = FeedService().build_feed(episodes, METADATA, FeedOptions(sort_order="oldest", max_episodes=2))
    assert _item_order(xml) == ["episode_C", "episode_B"]


def test_channel_and_item_elements():
    built_at = datetime(2024, 6, 1, 8, 30, tzinfo=timezone.utc)
    xml = FeedService().build_feed([_episode("A", audio_size_bytes=4096)], METADATA, built_at=built_at)

    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert 'xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"' in xml
    assert 'xmlns:content="http://purl.org/rss/1.0/modules/content/"' in xml
    assert "<title>My Show</title>" in xml
    assert "<lastBuildDate>Sat, 01 Jun 2024 08:30:00 +0000</lastBuildDate>" in xml
    assert '<guid isPermaLink="false">episode_A</guid>' in xml
    assert "<pubDate>Wed, 01 May 2024 12:00:00 +0000</pubDate>" in xml
    assert '<enclosure url="https://cdn.test/A.mp3" length="4096" type="audio/mpeg"/>' in xml
    assert "<itunes:duration>2:05</itunes:duration>" in xml
    assert "<itunes:explicit>no</itunes:explicit>" in xml


def test_enclosure_length_estimated_without_size():
    xml = FeedService().build_feed([_episode("A", duration_seconds=10)], METADATA)
    assert 'length="163840"' in xml


def test_optional_elements():
    episode = _episode(
        "A",
        chapters=(ChapterMarker(0, "Intro"), ChapterMarker(95, "Main")),
        transcript="Full text",
        summary="Short",
    )
    xml = FeedService().build_feed([episode], METADATA)
    assert '<itunes:chapter start="0:00" title="Intro"/>' in xml
    assert '<itunes:chapter start="1:35" title="Main"/>' in xml
    assert "<content:encoded>Full text</content:encoded>" in xml
    assert "<itunes:subtitle>Short</itunes:subtitle>" in xml

    bare = FeedService().build_feed(
        [episode], METADATA, FeedOptions(include_chapters=False, include_transcript=False)
    )
    assert "itunes:chapters" not in bare
    assert "content:encoded" not in bare


def test_user_text_is_escaped():
    episode = _episode("A", title='Tom & "Jerry" <3 \'em', description="a > b")
    xml = FeedService().build_feed([episode], METADATA)
    assert "<title>Tom &amp; &quot;Jerry&quot; &lt;3 &#39;em</title>" in xml
    assert "<description>a &gt; b</description>" in xml
    assert "<![CDATA[" not in xml


def test_empty_feed_is_valid_channel():
    xml = FeedService().build_feed([], METADATA)
    assert "<item>" not in xml
    assert "<channel>" in xml


@pytest.mark.parametrize("seconds,text", [(0, "0:00"), (59, "0:59"), (125, "2:05"), (3600, "1:00:00"), (3725, "1:02:05")])
def test_format_duration(seconds, text):
    assert format_duration(seconds) == text


def test_escape_xml_all_five():
    assert escape_xml("&<>\"'") == "&amp;&lt;&gt;&quot;&#39;"
    assert escape_xml(None) == ""


def test_invalid_sort_order():
    with pytest.raises(ValidationError):
        FeedOptions(sort_order="random")


def test_feed_stats():
    stats = feed_stats([_episode("A", 0, duration_seconds=100), _episode("B", 1, duration_seconds=200)])
    assert stats["episode_count"] == 2
    assert stats["total_duration_seconds"] == 300
    assert stats["average_duration_seconds"] == 150
    assert feed_stats([])["newest"] is None
