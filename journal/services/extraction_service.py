"""Rule-based extraction of per-turn conversation signals.

Maps a raw user utterance (plus the last question asked, if any) to an
ExtractionResult: touched theme, tone, answered-previous flag and a
message-length bucket. Pure and deterministic, no I/O.

Matching is literal substring matching on the lower-cased message, with no
stemming: "focus" and "focused" are separate keywords. When two themes (or
tones) tie on match count, the one declared first wins.
"""

from typing import Dict, List, Optional, Tuple

from journal.core.config import ExtractionConfig, conversation_config
from journal.domain.models.extraction import ExtractionResult, MessageLength


# Keys follow JOURNAL_THEMES order, which is also the tie-break order
THEME_KEYWORDS: Dict[str, List[str]] = {
    "focus": [
        "focus",
        "focused",
        "concentrate",
        "concentration",
        "distracted",
        "distraction",
        "scattered",
        "attention",
    ],
    "energy": ["tired", "exhausted", "energetic", "energy", "drained", "fatigue", "lazy", "motivated"],
    "motivation": ["motivated", "motivation", "unmotivated", "drive", "purpose", "why", "goal"],
    "self-control": [
        "control",
        "self-control",
        "discipline",
        "willpower",
        "temptation",
        "resist",
        "impulse",
    ],
    "routine": ["routine", "habit", "schedule", "morning", "wake up", "bedtime", "daily"],
    "gym": ["gym", "workout", "exercise", "fitness", "sauna", "train", "training"],
    "work": ["work", "project", "portfolio", "coding", "job", "task", "deadline"],
    "projects": ["project", "portfolio", "website", "building", "creating", "developing"],
    "emotions": ["feel", "feeling", "emotion", "emotional", "mood", "upset", "happy", "sad"],
    "guilt": ["guilt", "guilty", "regret", "ashamed", "disappointed"],
    "progress": ["progress", "improve", "better", "growth", "advance", "moving forward"],
    "distractions": ["distraction", "distracted", "youtube", "video", "waste", "procrastinate"],
}

# Declared order is the tie-break order
TONE_KEYWORDS: Dict[str, List[str]] = {
    "frustrated": ["frustrated", "frustrating", "pissed", "annoyed", "irritated", "angry"],
    "calm": ["calm", "peaceful", "relaxed", "chill", "zen"],
    "energetic": ["energetic", "excited", "pumped", "motivated", "ready"],
    "tired": ["tired", "exhausted", "drained", "worn out", "beat"],
    "guilty": ["guilty", "ashamed", "disappointed", "regret"],
    "positive": ["good", "great", "awesome", "amazing", "happy", "proud"],
    "negative": ["bad", "terrible", "awful", "horrible", "sad", "down"],
}

REASONING_WORDS: Tuple[str, ...] = (
    "because",
    "since",
    "when",
    "what",
    "how",
    "why",
    "feels",
    "feel",
    "think",
    "thought",
)


def classify_length(word_count: int, config: Optional[ExtractionConfig] = None) -> MessageLength:
    """Bucket a word count into short / medium / long."""
    config = config or conversation_config.extraction
    if word_count < config.short_max_words:
        return MessageLength.SHORT
    if word_count < config.medium_max_words:
        return MessageLength.MEDIUM
    return MessageLength.LONG


def best_match(text: str, keyword_lists: Dict[str, List[str]]) -> Optional[str]:
    """Label whose keywords appear most often in text.

    A label must strictly beat the running maximum to replace it, so ties
    keep the earlier-declared label. Returns None when nothing matches.
    """
    best_label: Optional[str] = None
    max_matches = 0
    for label, keywords in keyword_lists.items():
        matches = sum(1 for keyword in keywords if keyword in text)
        if matches > max_matches:
            max_matches = matches
            best_label = label
    return best_label


def extract_from_message(
    message: str,
    last_question: Optional[str] = None,
    config: Optional[ExtractionConfig] = None,
) -> ExtractionResult:
    """Classify one user message.

    Args:
        message: Raw user utterance (may be empty)
        last_question: Question the assistant asked last, if any
        config: Length thresholds (defaults to conversation_config.extraction)

    Returns:
        ExtractionResult for this turn
    """
    config = config or conversation_config.extraction
    lower_message = message.lower()
    word_count = len(message.split())

    message_length = classify_length(word_count, config)
    touched_theme = best_match(lower_message, THEME_KEYWORDS)

    answered_previous = False
    if last_question:
        has_reasoning_word = any(word in lower_message for word in REASONING_WORDS)
        answered_previous = word_count > config.answered_min_words and (
            has_reasoning_word
            or message_length in (MessageLength.MEDIUM, MessageLength.LONG)
        )

    tone = best_match(lower_message, TONE_KEYWORDS)

    return ExtractionResult(
        touched_theme=touched_theme,
        answered_previous=answered_previous,
        tone=tone,
        message_length=message_length,
    )
