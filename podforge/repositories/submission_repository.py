import json
import logging
import sqlite3
from contextlib import closing
from datetime import datetime

from podforge.db.connection import get_connection
from podforge.models.job import ProcessingJob
from podforge.models.submission import ContentSubmission
from podforge.repositories.base import AbstractSubmissionRepository

logger = logging.getLogger(__name__)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SubmissionRepository(AbstractSubmissionRepository):
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def save_submission(self, submission: ContentSubmission) -> None:
        with closing(get_connection(self._db_path)) as conn:
            conn.execute(
                """
                INSERT INTO submissions
                    (id, content_url, content_type, user_note, status, error_message,
                     extracted_content, metadata, feed_id, created_at, updated_at, processed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    status            = excluded.status,
                    error_message     = excluded.error_message,
                    extracted_content = excluded.extracted_content,
                    metadata          = excluded.metadata,
                    updated_at        = excluded.updated_at,
                    processed_at      = excluded.processed_at
                """,
                (
                    submission.id,
                    submission.content_url,
                    submission.content_type.value,
                    submission.user_note,
                    submission.status.value,
                    submission.error_message,
                    submission.extracted_content,
                    json.dumps(submission.metadata),
                    submission.feed_id,
                    _ts(submission.created_at),
                    _ts(submission.updated_at),
                    _ts(submission.processed_at),
                ),
            )
            conn.commit()
        logger.debug("[repo] submission saved | id=%s | status=%s", submission.id, submission.status.value)

    def get_submission(self, submission_id: str) -> ContentSubmission | None:
        with closing(get_connection(self._db_path)) as conn:
            row = conn.execute("SELECT * FROM submissions WHERE id = ?", (submission_id,)).fetchone()
        return _row_to_submission(row) if row else None

    def save_job(self, job: ProcessingJob) -> None:
        with closing(get_connection(self._db_path)) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO processing_jobs
                    (id, submission_id, status, progress, current_step, error_message,
                     retry_count, max_retries, started_at, completed_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.id,
                    job.submission_id,
                    job.status.value,
                    job.progress,
                    job.current_step,
                    job.error_message,
                    job.retry_count,
                    job.max_retries,
                    _ts(job.started_at),
                    _ts(job.completed_at),
                    _ts(job.created_at),
                    _ts(job.updated_at),
                ),
            )
            conn.commit()

    def get_latest_job(self, submission_id: str) -> ProcessingJob | None:
        with closing(get_connection(self._db_path)) as conn:
            row = conn.execute(
                """
                SELECT * FROM processing_jobs
                WHERE submission_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT 1
                """,
                (submission_id,),
            ).fetchone()
        return _row_to_job(row) if row else None


def _row_to_submission(row: sqlite3.Row) -> ContentSubmission:
    return ContentSubmission(
        id=row["id"],
        content_url=row["content_url"],
        content_type=row["content_type"],
        user_note=row["user_note"],
        status=row["status"],
        error_message=row["error_message"],
        extracted_content=row["extracted_content"],
        metadata=json.loads(row["metadata"] or "{}"),
        feed_id=row["feed_id"],
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
        processed_at=_parse_ts(row["processed_at"]),
    )


def _row_to_job(row: sqlite3.Row) -> ProcessingJob:
    return ProcessingJob(
        id=row["id"],
        submission_id=row["submission_id"],
        status=row["status"],
        progress=row["progress"],
        current_step=row["current_step"],
        error_message=row["error_message"],
        retry_count=row["retry_count"],
        max_retries=row["max_retries"],
        started_at=_parse_ts(row["started_at"]),
        completed_at=_parse_ts(row["completed_at"]),
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )
