from abc import ABC, abstractmethod

from podforge.models.episode import Episode
from podforge.models.job import ProcessingJob
from podforge.models.submission import ContentSubmission


class AbstractSubmissionRepository(ABC):
    @abstractmethod
    def save_submission(self, submission: ContentSubmission) -> None:
        """Insert or replace a submission keyed by id."""

    @abstractmethod
    def get_submission(self, submission_id: str) -> ContentSubmission | None:
        """Return the submission, or None if unknown."""

    @abstractmethod
    def save_job(self, job: ProcessingJob) -> None:
        """Insert or replace a processing job keyed by id."""

    @abstractmethod
    def get_latest_job(self, submission_id: str) -> ProcessingJob | None:
        """Return the most recently created job for a submission."""


class AbstractEpisodeRepository(ABC):
    @abstractmethod
    def save(self, episode: Episode) -> None:
        """Insert or replace an episode keyed by id."""

    @abstractmethod
    def get_episodes(self, limit: int, feed_id: str | None = None, offset: int = 0) -> list[Episode]:
        """Newest episodes first, optionally restricted to one feed."""

    @abstractmethod
    def count_episodes(self, feed_id: str | None = None) -> int: ...

    @abstractmethod
    def get_episode(self, episode_id: str) -> Episode | None: ...

    @abstractmethod
    def update_status(
        self, submission_id: str, status: str, error_message: str | None = None
    ) -> ContentSubmission | None:
        """Transition the submission an episode came from. None when the submission is unknown."""

    @abstractmethod
    def delete_episode(self, episode_id: str) -> bool:
        """Delete an episode. Returns True if a row was removed."""
