"""Integration tests for the SQLite repositories."""
import sqlite3
import tempfile
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from podforge.db.connection import check_database, get_connection, run_migrations
from podforge.errors import InvalidTransition, ValidationError
from podforge.models import job as jobs
from podforge.models.episode import ChapterMarker, Episode
from podforge.models.submission import ContentType, SubmissionStatus, create_submission, transition, with_metadata
from podforge.repositories.episode_repository import EpisodeRepository
from podforge.repositories.submission_repository import SubmissionRepository

BASE = datetime(2024, 5, 1, tzinfo=timezone.utc)


@pytest.fixture
def db_path():
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    run_migrations(path)
    return path


def _episode(episode_id, days=0, feed_id="default", submission_id=None):
    return Episode(
        id=episode_id,
        feed_id=feed_id,
        submission_id=submission_id,
        title=f"Episode {episode_id}",
        description="desc",
        source_url="https://example.com",
        content_type=ContentType.URL,
        audio_url=f"https://cdn.test/{episode_id}.mp3",
        duration_seconds=90,
        chapters=(ChapterMarker(0, "Intro"), ChapterMarker(30, "Main")),
        pub_date=BASE + timedelta(days=days),
        updated_at=BASE + timedelta(days=days),
    )


def test_migrations_are_applied_once(db_path):
    assert run_migrations(db_path) == []
    assert check_database(db_path)


def test_submission_round_trip_and_update(db_path):
    repo = SubmissionRepository(db_path)
    submission = with_metadata(create_submission("https://example.com/a", "url", user_note="n"), {"voice_id": "v1"})
    repo.save_submission(submission)

    loaded = repo.get_submission(submission.id)
    assert loaded.content_url == "https://example.com/a"
    assert loaded.metadata == {"voice_id": "v1"}
    assert loaded.status is SubmissionStatus.PENDING

    failed = transition(transition(submission, "processing"), "failed", "site down")
    repo.save_submission(failed)
    loaded = repo.get_submission(submission.id)
    assert loaded.status is SubmissionStatus.FAILED
    assert loaded.error_message == "site down"
    assert loaded.processed_at is not None


def test_unknown_submission_is_none(db_path):
    assert SubmissionRepository(db_path).get_submission("missing") is None


def test_latest_job_wins(db_path):
    repo = SubmissionRepository(db_path)
    submission = create_submission("https://example.com/a", "url")
    repo.save_submission(submission)

    first = jobs.create_job(submission.id)
    repo.save_job(first)
    running = jobs.update_progress(jobs.start(first), 40, "script")
    repo.save_job(running)

    latest = repo.get_latest_job(submission.id)
    assert latest.id == first.id
    assert latest.progress == 40
    assert latest.current_step == "script"
    assert repo.get_latest_job("missing") is None


def test_episodes_newest_first_and_filtered_by_feed(db_path):
    repo = EpisodeRepository(db_path)
    repo.save(_episode("old", 0))
    repo.save(_episode("new", 2))
    repo.save(_episode("other", 1, feed_id="tech"))

    assert [e.id for e in repo.get_episodes(10)] == ["new", "other", "old"]
    assert [e.id for e in repo.get_episodes(10, feed_id="default")] == ["new", "old"]
    assert [e.id for e in repo.get_episodes(1)] == ["new"]

    loaded = repo.get_episode("old")
    assert loaded.chapters == (ChapterMarker(0, "Intro"), ChapterMarker(30, "Main"))
    assert loaded.pub_date == BASE


def test_episode_pagination_and_count(db_path):
    repo = EpisodeRepository(db_path)
    for day in range(5):
        repo.save(_episode(f"e{day}", day))
    repo.save(_episode("other", 9, feed_id="tech"))

    assert [e.id for e in repo.get_episodes(2, feed_id="default", offset=0)] == ["e4", "e3"]
    assert [e.id for e in repo.get_episodes(2, feed_id="default", offset=2)] == ["e2", "e1"]
    assert [e.id for e in repo.get_episodes(2, feed_id="default", offset=4)] == ["e0"]
    assert repo.count_episodes("default") == 5
    assert repo.count_episodes() == 6


def test_update_status_goes_through_transition(db_path):
    submissions = SubmissionRepository(db_path)
    submission = create_submission("https://example.com/a", "url")
    submissions.save_submission(submission)
    episodes = EpisodeRepository(db_path)

    processing = episodes.update_status(submission.id, "processing")
    assert processing.status is SubmissionStatus.PROCESSING

    failed = episodes.update_status(submission.id, "failed", "audio lost")
    loaded = submissions.get_submission(submission.id)
    assert loaded == failed
    assert loaded.error_message == "audio lost"
    assert loaded.processed_at is not None

    with pytest.raises(InvalidTransition):
        episodes.update_status(submission.id, "processing")
    assert episodes.update_status("missing", "processing") is None


def test_update_status_to_failed_requires_message(db_path):
    submissions = SubmissionRepository(db_path)
    submission = transition(create_submission("https://example.com/a", "url"), "processing")
    submissions.save_submission(submission)

    with pytest.raises(ValidationError):
        EpisodeRepository(db_path).update_status(submission.id, "failed")
    with pytest.raises(ValidationError):
        EpisodeRepository(db_path).update_status(submission.id, "archived")
    assert submissions.get_submission(submission.id).status is SubmissionStatus.PROCESSING


def test_delete_episode(db_path):
    submissions = SubmissionRepository(db_path)
    submission = create_submission("https://example.com/a", "url")
    submissions.save_submission(submission)
    episodes = EpisodeRepository(db_path)
    episodes.save(_episode("e1", submission_id=submission.id))

    assert episodes.delete_episode("e1") is True
    assert episodes.delete_episode("e1") is False
    assert episodes.get_episode("e1") is None
    conn = sqlite3.connect(db_path)
    remaining = conn.execute("SELECT COUNT(*) FROM submissions WHERE id = ?", (submission.id,)).fetchone()[0]
    conn.close()
    assert remaining == 1


def test_repositories_close_their_connections(db_path):
    opened = []

    def tracking_connection(path):
        conn = MagicMock(wraps=get_connection(path))
        opened.append(conn)
        return conn

    with patch("podforge.repositories.episode_repository.get_connection", side_effect=tracking_connection), patch(
        "podforge.repositories.submission_repository.get_connection", side_effect=tracking_connection
    ):
        episodes = EpisodeRepository(db_path)
        episodes.save(_episode("e1"))
        episodes.get_episodes(10)
        episodes.count_episodes()
        episodes.delete_episode("e1")
        SubmissionRepository(db_path).get_submission("missing")

    assert len(opened) == 5
    assert all(conn.close.called for conn in opened)
