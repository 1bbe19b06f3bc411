from dataclasses import replace

import pytest

from podforge.errors import InvalidTransition, ValidationError
from podforge.models.submission import (
    ContentType,
    SubmissionStatus,
    create_submission,
    title_hint,
    transition,
    with_extracted_content,
    with_metadata,
)


def _pending(url="https://example.com/article", content_type="url"):
    return create_submission(url, content_type)


def test_create_submission_defaults():
    s = _pending()
    assert s.status is SubmissionStatus.PENDING
    assert s.content_type is ContentType.URL
    assert s.error_message is None
    assert s.processed_at is None
    assert len(s.id) == 36


def test_create_submission_strips_url():
    s = create_submission("  https://example.com/a  ", "url")
    assert s.content_url == "https://example.com/a"


@pytest.mark.parametrize("url", ["", "   "])
def test_empty_url_rejected(url):
    with pytest.raises(ValidationError, match="required"):
        create_submission(url, "url")


def test_unknown_content_type_rejected():
    with pytest.raises(ValidationError, match="Invalid content type"):
        create_submission("https://example.com", "podcast")


@pytest.mark.parametrize("url", ["ftp://example.com/file", "example.com/page", "https://"])
def test_non_http_url_rejected(url):
    with pytest.raises(ValidationError):
        create_submission(url, "url")


@pytest.mark.parametrize(
    "url",
    [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ",
        "https://www.youtube.com/embed/dQw4w9WgXcQ",
        "https://youtube.com/shorts/dQw4w9WgXcQ",
    ],
)
def test_youtube_forms_accepted(url):
    assert create_submission(url, "youtube").content_type is ContentType.YOUTUBE


def test_youtube_rejects_other_hosts():
    with pytest.raises(ValidationError, match="YouTube"):
        create_submission("https://vimeo.com/12345", "youtube")


def test_pdf_does_not_require_http_scheme():
    s = create_submission("s3://bucket/paper.pdf", "pdf")
    assert s.content_type is ContentType.PDF


def test_pending_to_processing_to_completed():
    s = transition(_pending(), SubmissionStatus.PROCESSING)
    assert s.status is SubmissionStatus.PROCESSING
    assert s.processed_at is None

    done = transition(s, "completed")
    assert done.status is SubmissionStatus.COMPLETED
    assert done.processed_at is not None
    assert done.error_message is None


def test_failed_requires_message():
    with pytest.raises(ValidationError, match="Error message is required"):
        transition(_pending(), SubmissionStatus.FAILED)


def test_failed_records_message_and_timestamp():
    failed = transition(_pending(), SubmissionStatus.FAILED, "boom")
    assert failed.error_message == "boom"
    assert failed.processed_at is not None


def test_error_message_dropped_for_non_failed_target():
    s = transition(_pending(), SubmissionStatus.PROCESSING, "ignored")
    assert s.error_message is None


@pytest.mark.parametrize(
    "start,target",
    [
        (SubmissionStatus.PENDING, SubmissionStatus.COMPLETED),
        (SubmissionStatus.PENDING, SubmissionStatus.PENDING),
        (SubmissionStatus.PROCESSING, SubmissionStatus.PENDING),
    ],
)
def test_disallowed_transitions(start, target):
    s = _pending()
    if start is SubmissionStatus.PROCESSING:
        s = transition(s, start)
    with pytest.raises(InvalidTransition):
        transition(s, target)


@pytest.mark.parametrize("terminal", [SubmissionStatus.COMPLETED, SubmissionStatus.FAILED])
def test_terminal_states_have_no_exits(terminal):
    s = transition(_pending(), SubmissionStatus.PROCESSING)
    s = transition(s, terminal, "err" if terminal is SubmissionStatus.FAILED else None)
    for target in SubmissionStatus:
        with pytest.raises(InvalidTransition):
            transition(s, target, "x")


def test_invariants_hold_after_every_transition():
    s = _pending()
    path = [(SubmissionStatus.PROCESSING, None), (SubmissionStatus.FAILED, "extraction failed")]
    for target, message in path:
        s = transition(s, target, message)
        assert (s.error_message is not None) == (s.status is SubmissionStatus.FAILED)
        assert (s.processed_at is not None) == s.is_terminal


def test_direct_construction_checks_invariants():
    s = _pending()
    with pytest.raises(ValidationError, match="only allowed"):
        replace(s, error_message="not failed")
    with pytest.raises(ValidationError, match="Processed timestamp is required"):
        replace(s, status="completed")


def test_with_metadata_merges():
    s = with_metadata(_pending(), {"title": "One"})
    s = with_metadata(s, {"author": "Ann"})
    assert s.metadata == {"title": "One", "author": "Ann"}


def test_with_extracted_content_and_title_hint():
    s = with_extracted_content(_pending(), "body text")
    assert s.extracted_content == "body text"
    assert title_hint(s) == "https://example.com/article"
    assert title_hint(with_metadata(s, {"title": "Real Title"})) == "Real Title"
