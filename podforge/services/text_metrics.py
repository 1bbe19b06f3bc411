"""
Deterministic text heuristics shared by extraction and synthesis.

The quality scores here are bounded proxies used for logging and ranking,
never for control flow.
"""
import math
import re

READING_WORDS_PER_MINUTE = 200
SPEAKING_WORDS_PER_MINUTE = 150

_CAPITALISED_WORD = re.compile(r"[A-Z][a-z]+")

_STOP_WORDS = {
    "en": {"the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"},
    "es": {"el", "la", "de", "que", "y", "a", "en", "un", "es", "se", "no", "te", "lo", "le"},
    "fr": {"le", "de", "et", "à", "un", "il", "être", "en", "avoir", "que", "pour", "dans"},
}


def word_count(text: str | None) -> int:
    if not text:
        return 0
    return len(text.split())


def reading_time(words: int) -> int:
    """Minutes to read `words` at 200 wpm, rounded up."""
    return math.ceil(words / READING_WORDS_PER_MINUTE)


def structure_score(text: str, words: int) -> int:
    """Base 50 plus length and punctuation bonuses, unclamped."""
    score = 50
    if words > 100:
        score += 20
    if words > 500:
        score += 10
    if words > 1000:
        score += 10
    if "\n\n" in text:
        score += 5
    if "." in text:
        score += 5
    if "?" in text:
        score += 5
    if "!" in text:
        score += 5
    if _CAPITALISED_WORD.search(text):
        score += 5
    return score


def clamp_score(score: int) -> int:
    return min(100, max(0, score))


def extraction_quality(text: str | None, words: int | None = None) -> int:
    if not text or not text.strip():
        return 0
    if words is None:
        words = word_count(text)
    return clamp_score(structure_score(text, words))


def detect_language(text: str | None) -> str:
    """Stop-word vote over the first 100 tokens. Ties fall back to English."""
    if not text or not text.strip():
        return "unknown"
    sample = text.lower().split()[:100]
    counts = {lang: sum(1 for w in sample if w in words) for lang, words in _STOP_WORDS.items()}
    best = max(counts, key=counts.get)
    others = [count for lang, count in counts.items() if lang != best]
    if counts[best] > max(others):
        return best
    return "en"


def speaking_duration_seconds(words: int, speed: float = 1.0) -> int:
    minutes = words / (SPEAKING_WORDS_PER_MINUTE * speed)
    return max(1, round(minutes * 60))
