from dataclasses import dataclass, field


@dataclass(frozen=True)
class ExtractedContent:
    title: str
    content: str
    word_count: int
    reading_time: int
    language: str
    extraction_method: str
    extraction_quality: int
    author: str | None = None
    published_date: str | None = None
    metadata: dict = field(default_factory=dict)

    def as_submission_metadata(self) -> dict:
        """Subset merged into ContentSubmission.metadata after extraction."""
        return {
            "title": self.title,
            "author": self.author,
            "published_date": self.published_date,
            "word_count": self.word_count,
            "reading_time": self.reading_time,
            "language": self.language,
            "extraction_method": self.extraction_method,
            "extraction_quality": self.extraction_quality,
        }
