"""
Podcast script policy: structure, tone and length targets for generated
scripts, plus a validator that separates hard violations (length) from
soft warnings (structure heuristics).
"""
import logging
import re
from dataclasses import dataclass, field

from podforge.services import text_metrics

logger = logging.getLogger(__name__)

INTRO_INDICATORS = ("welcome", "hello", "today we", "this episode", "in this")
OUTRO_INDICATORS = ("thanks for listening", "thank you for", "until next time", "see you", "that's all")

_PARAGRAPH_BREAK = re.compile(r"\n\n+")


@dataclass(frozen=True)
class ScriptSection:
    description: str
    target_duration: str | None = None


@dataclass(frozen=True)
class ScriptStructure:
    intro: ScriptSection
    hook: ScriptSection
    key_points: ScriptSection
    transitions: ScriptSection
    recap: ScriptSection
    outro: ScriptSection
    min_key_points: int = 3
    max_key_points: int = 7


@dataclass(frozen=True)
class ScriptTone:
    name: str
    description: str
    characteristics: tuple[str, ...]
    prompt_guidance: str


@dataclass(frozen=True)
class ScriptLength:
    min_minutes: int = 12
    max_minutes: int = 20
    words_per_minute: int = text_metrics.SPEAKING_WORDS_PER_MINUTE

    @property
    def min_words(self) -> int:
        return self.min_minutes * self.words_per_minute

    @property
    def max_words(self) -> int:
        return self.max_minutes * self.words_per_minute


@dataclass(frozen=True)
class ScriptPolicy:
    structure: ScriptStructure
    tone: ScriptTone
    length: ScriptLength = field(default_factory=ScriptLength)
    version: str = "1.0.0"


@dataclass(frozen=True)
class ScriptValidation:
    valid: bool
    violations: list[str]
    warnings: list[str]
    word_count: int


DEFAULT_STRUCTURE = ScriptStructure(
    intro=ScriptSection("Opening that establishes the episode topic and sets expectations", "30-60 seconds"),
    hook=ScriptSection("Compelling opening that captures attention and creates interest", "15-30 seconds"),
    key_points=ScriptSection("Main content sections covering key topics, insights, or story beats"),
    transitions=ScriptSection("Smooth connections between sections that keep the flow and context"),
    recap=ScriptSection("Brief summary of the main points covered in the episode", "30-45 seconds"),
    outro=ScriptSection("Closing that wraps up, thanks listeners, and gives next steps", "30-45 seconds"),
)

DEFAULT_TONE = ScriptTone(
    name="Energetic, Conversational, and Warm",
    description="Default podcast tone that engages listeners with enthusiasm and approachability",
    characteristics=(
        "Energetic and enthusiastic",
        "Conversational and natural",
        "Warm and friendly",
        "Approachable and relatable",
        "Engaging and dynamic",
    ),
    prompt_guidance=(
        "Write in an energetic, conversational, and warm tone. "
        "Imagine you're talking with a friend who's genuinely interested in the topic. "
        "Use natural language, contractions, and rhetorical questions. "
        "Avoid overly formal or academic language; this should feel like a friendly chat, not a lecture."
    ),
)

TONE_PRESETS = (
    DEFAULT_TONE,
    ScriptTone(
        name="Professional and Informative",
        description="Clear, authoritative tone suitable for educational or business content",
        characteristics=("Professional and credible", "Clear and articulate", "Informative and educational"),
        prompt_guidance=(
            "Write in a professional, informative tone that establishes authority while staying "
            "accessible. Use clear explanations and give context for complex topics."
        ),
    ),
    ScriptTone(
        name="Casual and Entertaining",
        description="Lighthearted, fun tone for entertainment-focused content",
        characteristics=("Casual and relaxed", "Entertaining and fun", "Humorous and playful"),
        prompt_guidance=(
            "Write in a casual, entertaining tone. Feel free to use humor and playful language. "
            "Keep it fun and engaging."
        ),
    ),
    ScriptTone(
        name="Thoughtful and Reflective",
        description="Contemplative tone for deeper, more introspective content",
        characteristics=("Thoughtful and contemplative", "Reflective and insightful", "Nuanced and balanced"),
        prompt_guidance=(
            "Write in a thoughtful, reflective tone. Explore ideas deeply, consider multiple "
            "perspectives, and invite listeners to think critically."
        ),
    ),
)

DEFAULT_POLICY = ScriptPolicy(structure=DEFAULT_STRUCTURE, tone=DEFAULT_TONE)


def estimate_sections(script: str) -> int:
    """Roughly one key point per two non-empty paragraphs."""
    paragraphs = [p for p in _PARAGRAPH_BREAK.split(script) if p.strip()]
    return len(paragraphs) // 2


class ScriptPolicyService:
    def __init__(self, policy: ScriptPolicy = DEFAULT_POLICY) -> None:
        self.policy = policy

    def validate(self, script: str) -> ScriptValidation:
        words = text_metrics.word_count(script)
        length = self.policy.length
        structure = self.policy.structure
        violations: list[str] = []
        warnings: list[str] = []

        target = f"(target: {length.min_words}-{length.max_words})"
        if words < length.min_words:
            violations.append(f"Script too short: {words} words {target}")
        elif words > length.max_words:
            violations.append(f"Script too long: {words} words {target}")

        lowered = script.lower()
        if not any(phrase in lowered for phrase in INTRO_INDICATORS):
            warnings.append("Script may be missing intro/hook section")
        if not any(phrase in lowered for phrase in OUTRO_INDICATORS):
            warnings.append("Script may be missing outro section")
        sections = estimate_sections(script)
        if sections < structure.min_key_points:
            warnings.append(
                f"Script may have too few key points: ~{sections} "
                f"(target: {structure.min_key_points}-{structure.max_key_points})"
            )

        logger.debug(
            "[script_policy] validated | words=%d | violations=%d | warnings=%d",
            words,
            len(violations),
            len(warnings),
        )
        return ScriptValidation(
            valid=not violations, violations=violations, warnings=warnings, word_count=words
        )

    def build_prompt(self, content: str, tone: ScriptTone | None = None) -> str:
        structure = self.policy.structure
        tone = tone or self.policy.tone
        length = self.policy.length
        return (
            "Generate a podcast episode script based on the following content.\n\n"
            f"CONTENT:\n{content}\n\n"
            "SCRIPT REQUIREMENTS:\n\n"
            "Structure:\n"
            f"1. Intro/Hook ({structure.intro.target_duration}):\n"
            f"   - {structure.intro.description}\n"
            f"   - {structure.hook.description}\n"
            f"2. Key Points ({structure.min_key_points}-{structure.max_key_points} sections):\n"
            f"   - {structure.key_points.description}\n"
            f"   - {structure.transitions.description}\n"
            f"3. Recap ({structure.recap.target_duration}):\n"
            f"   - {structure.recap.description}\n"
            f"4. Outro ({structure.outro.target_duration}):\n"
            f"   - {structure.outro.description}\n\n"
            f"Tone:\n{tone.prompt_guidance}\n"
            f"Style: {', '.join(tone.characteristics)}\n\n"
            "Length:\n"
            f"Target: {length.min_minutes}-{length.max_minutes} minutes\n"
            f"Word count: {length.min_words}-{length.max_words} words\n"
            f"Speaking rate: ~{length.words_per_minute} words per minute\n\n"
            "OUTPUT FORMAT:\n"
            "Plain spoken text only, suitable for audio narration. "
            "Separate sections with blank lines."
        )

    def available_tones(self) -> tuple[ScriptTone, ...]:
        return TONE_PRESETS

    def get_tone(self, name: str) -> ScriptTone | None:
        return next((tone for tone in TONE_PRESETS if tone.name.lower() == name.lower()), None)

    def estimate_minutes(self, words: int) -> float:
        return round(words / self.policy.length.words_per_minute, 1)
