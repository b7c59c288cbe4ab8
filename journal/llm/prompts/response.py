"""
Prompts for conversational reply generation.

Replies follow "react once, then ask once":
1. One human reaction sentence that reflects meaning, not events
2. One open question that builds from the reaction
3. Stop

Stored memories may inform the reaction. An explicit mention is allowed
only when the response service says so, and then as one short clause.
"""

from typing import List, Optional

from journal.domain.models.extraction import NextAIMove

MAX_MESSAGE_CHARS = 300

SYSTEM_PROMPT = (
    'You are a supportive journaling conversation partner. Follow "React once, '
    'then ask once": every question is preceded by ONE human reaction that '
    "reflects meaning, not events. Use memory sparingly. When you do mention a "
    "memory: ONE CLAUSE MAX ({max_words} words), subtle, embedded naturally. "
    "Never recap what the user said."
)

CASUAL_RULES = """- Keep it brief and natural, match the user's casual tone
- No deep questions for casual messages
- Acknowledge and respond warmly"""

FULL_RULES = """- EVERY question must be preceded by ONE reflective reaction sentence
- The reaction reflects MEANING, not a summary of events
- Memory mention = ONE CLAUSE MAX ({max_words} words), subtle
- Never recap what the user already said
- Never surface system summaries"""

# Appended to the user prompt when a generated reply fails validation
MISSING_REACTION_CORRECTION = (
    "You must include ONE human reaction sentence BEFORE the question. "
    "React to what the user MEANS. Never start with a question."
)
LONG_MEMORY_CORRECTION = (
    "Your memory mention was too long. Keep it to ONE CLAUSE, MAX {max_words} WORDS, "
    'e.g. "Like when X," then continue.'
)
NO_MEMORY_CORRECTION = (
    "Do NOT mention any memories explicitly. Let them shape your question subtly."
)


def get_response_system_prompt(max_memory_words: int = 8) -> str:
    """System prompt for reply generation."""
    return SYSTEM_PROMPT.format(max_words=max_memory_words)


def _format_move_hint(next_move: Optional[NextAIMove]) -> str:
    if next_move is None:
        return ""
    lines = [f"Planned move: {next_move.action.value}"]
    if next_move.reflection:
        lines.append(f"Reflection idea: {next_move.reflection}")
    if next_move.question:
        lines.append(f"Question idea: {next_move.question}")
    if next_move.themes_to_suggest:
        lines.append(f"Themes to offer: {', '.join(next_move.themes_to_suggest)}")
    return "\n".join(lines)


def get_response_user_prompt(
    message: str,
    context: List[str],
    memory_to_mention: Optional[str] = None,
    is_casual: bool = False,
    next_move: Optional[NextAIMove] = None,
    max_memory_words: int = 8,
    correction: Optional[str] = None,
) -> str:
    """
    Build the user prompt for one reply.

    Args:
        message: Latest user message (truncated)
        context: Memory snippets available for this session
        memory_to_mention: Snippet the reply may reference explicitly, or None
        is_casual: Short casual message, reply briefly
        next_move: Decision for this turn, used as a hint
        max_memory_words: Word cap for an explicit memory clause
        correction: Extra instruction after a failed validation pass

    Returns:
        Prompt string
    """
    context_section = "\n".join(f"- {item}" for item in context) or "- (none)"

    if memory_to_mention:
        memory_section = (
            f"Memory you MAY mention (one clause, max {max_memory_words} words, "
            f"e.g. \"Like when ...,\"):\n{memory_to_mention}"
        )
    else:
        memory_section = "Memory to mention: NONE. Do not mention memories explicitly."

    rules = CASUAL_RULES if is_casual else FULL_RULES.format(max_words=max_memory_words)

    sections = [
        f"User's current message:\n{message[:MAX_MESSAGE_CHARS]}",
        f"Available memories (context only):\n{context_section}",
        memory_section,
    ]
    move_hint = _format_move_hint(next_move)
    if move_hint:
        sections.append(move_hint)
    sections.append(f"Rules:\n{rules}")
    if correction:
        sections.append(f"IMPORTANT: {correction}")
    sections.append(
        "Your response (brief and natural):"
        if is_casual
        else "Your response (react once, then ask once):"
    )
    return "\n\n".join(sections)
