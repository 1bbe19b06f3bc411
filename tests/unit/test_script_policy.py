import pytest

from podforge.services.script_policy import (
    DEFAULT_TONE,
    ScriptPolicyService,
    estimate_sections,
)


def _script(words, paragraphs=8, intro=True, outro=True):
    body_words = words - (3 if intro else 0) - (3 if outro else 0)
    per = body_words // paragraphs
    chunks = [" ".join(["point"] * per) for _ in range(paragraphs)]
    chunks[-1] = " ".join(["point"] * (body_words - per * (paragraphs - 1)))
    if intro:
        chunks.insert(0, "Welcome back everyone")
    if outro:
        chunks.append("Until next time")
    return "\n\n".join(chunks)


@pytest.fixture
def policy():
    return ScriptPolicyService()


def test_window_is_1800_to_3000(policy):
    assert policy.policy.length.min_words == 1800
    assert policy.policy.length.max_words == 3000


def test_1799_words_is_a_violation(policy):
    result = policy.validate(_script(1799))
    assert result.word_count == 1799
    assert not result.valid
    assert result.violations == ["Script too short: 1799 words (target: 1800-3000)"]


def test_1800_words_is_valid(policy):
    result = policy.validate(_script(1800))
    assert result.word_count == 1800
    assert result.valid
    assert result.violations == []
    assert result.warnings == []


def test_3000_valid_3001_too_long(policy):
    assert policy.validate(_script(3000)).valid
    result = policy.validate(_script(3001))
    assert result.violations == ["Script too long: 3001 words (target: 1800-3000)"]


def test_missing_structure_only_warns(policy):
    result = policy.validate(_script(2000, paragraphs=1, intro=False, outro=False))
    assert result.valid
    assert "Script may be missing intro/hook section" in result.warnings
    assert "Script may be missing outro section" in result.warnings
    assert any("too few key points" in w for w in result.warnings)


def test_estimate_sections():
    assert estimate_sections("a\n\nb\n\nc\n\nd\n\ne\n\nf") == 3
    assert estimate_sections("one paragraph") == 0
    assert estimate_sections("a\n\n\n\n  \n\nb") == 1


def test_build_prompt_mentions_policy(policy):
    prompt = policy.build_prompt("Some article text")
    assert "Some article text" in prompt
    assert "1800-3000 words" in prompt
    assert "3-7 sections" in prompt
    assert DEFAULT_TONE.prompt_guidance in prompt


def test_available_tones(policy):
    names = [t.name for t in policy.available_tones()]
    assert names[0] == "Energetic, Conversational, and Warm"
    assert len(names) == 4
    assert policy.get_tone("casual and entertaining").name == "Casual and Entertaining"
    assert policy.get_tone("nonexistent") is None


def test_estimate_minutes(policy):
    assert policy.estimate_minutes(1800) == 12.0
    assert policy.estimate_minutes(2000) == 13.3
