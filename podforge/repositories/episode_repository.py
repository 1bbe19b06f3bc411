import json
import logging
import sqlite3
from contextlib import closing
from datetime import datetime

from podforge.db.connection import get_connection
from podforge.models.episode import ChapterMarker, Episode
from podforge.models.submission import ContentSubmission, ContentType, SubmissionStatus, transition
from podforge.repositories.base import AbstractEpisodeRepository
from podforge.repositories.submission_repository import SubmissionRepository

logger = logging.getLogger(__name__)


class EpisodeRepository(AbstractEpisodeRepository):
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._submissions = SubmissionRepository(db_path)

    def save(self, episode: Episode) -> None:
        chapters = json.dumps([{"start_time": c.start_time, "title": c.title} for c in episode.chapters])
        with closing(get_connection(self._db_path)) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO episodes
                    (id, feed_id, submission_id, title, description, source_url, content_type,
                     audio_url, audio_size_bytes, duration_seconds, mime_type, chapters,
                     transcript, summary, pub_date, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    episode.id,
                    episode.feed_id,
                    episode.submission_id,
                    episode.title,
                    episode.description,
                    episode.source_url,
                    ContentType(episode.content_type).value,
                    episode.audio_url,
                    episode.audio_size_bytes,
                    episode.duration_seconds,
                    episode.mime_type,
                    chapters,
                    episode.transcript,
                    episode.summary,
                    episode.pub_date.isoformat(),
                    episode.updated_at.isoformat(),
                ),
            )
            conn.commit()
        logger.info("[repo] episode saved | id=%s | feed_id=%s", episode.id, episode.feed_id)

    def get_episodes(self, limit: int, feed_id: str | None = None, offset: int = 0) -> list[Episode]:
        query = "SELECT * FROM episodes"
        params: list = []
        if feed_id is not None:
            query += " WHERE feed_id = ?"
            params.append(feed_id)
        query += " ORDER BY pub_date DESC, id LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        with closing(get_connection(self._db_path)) as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_episode(row) for row in rows]

    def count_episodes(self, feed_id: str | None = None) -> int:
        query = "SELECT COUNT(*) FROM episodes"
        params: tuple = ()
        if feed_id is not None:
            query += " WHERE feed_id = ?"
            params = (feed_id,)
        with closing(get_connection(self._db_path)) as conn:
            return conn.execute(query, params).fetchone()[0]

    def get_episode(self, episode_id: str) -> Episode | None:
        with closing(get_connection(self._db_path)) as conn:
            row = conn.execute("SELECT * FROM episodes WHERE id = ?", (episode_id,)).fetchone()
        return _row_to_episode(row) if row else None

    def update_status(
        self, submission_id: str, status: SubmissionStatus | str, error_message: str | None = None
    ) -> ContentSubmission | None:
        """
        Move the submission an episode came from to `status` through the
        submission state machine. Returns None for an unknown id; raises
        InvalidTransition or ValidationError like `transition` does.
        """
        submission = self._submissions.get_submission(submission_id)
        if submission is None:
            return None
        updated = transition(submission, status, error_message)
        self._submissions.save_submission(updated)
        return updated

    def delete_episode(self, episode_id: str) -> bool:
        with closing(get_connection(self._db_path)) as conn:
            cursor = conn.execute("DELETE FROM episodes WHERE id = ?", (episode_id,))
            conn.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("[repo] episode deleted | id=%s", episode_id)
        return deleted


def _row_to_episode(row: sqlite3.Row) -> Episode:
    return Episode(
        id=row["id"],
        feed_id=row["feed_id"],
        submission_id=row["submission_id"],
        title=row["title"],
        description=row["description"],
        source_url=row["source_url"],
        content_type=ContentType(row["content_type"]),
        audio_url=row["audio_url"],
        audio_size_bytes=row["audio_size_bytes"],
        duration_seconds=row["duration_seconds"],
        mime_type=row["mime_type"],
        chapters=tuple(ChapterMarker(**c) for c in json.loads(row["chapters"] or "[]")),
        transcript=row["transcript"],
        summary=row["summary"],
        pub_date=datetime.fromisoformat(row["pub_date"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )
