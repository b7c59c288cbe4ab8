"""
Voice-agent instructions for each session phase.

The realtime voice agent only speaks what the backend sends it; these
instructions tell it how to behave in the current phase:
    - OPENING: fresh session, one invitation then silence
    - LISTENING: initial share in progress, no interruptions
    - MOOD CONFIRMATION: ask how the user feels (unless already captured)
    - FOLLOWING ALONG: reflecting / questioning phases
    - CLOSED: one closing line
"""

from typing import Dict, List, Optional

from journal.domain.models.conversation_state import ConversationState, SessionPhase

BASE_INSTRUCTIONS = """You are a reflective journaling assistant with voice capabilities.
You help users think clearly by asking grounded questions.
You do not overwhelm.

RESPONSE HANDLING:
- If a message starts with [SPEAK_THIS] and ends with [/SPEAK_THIS], speak only the text between the markers, exactly as written.
- For all other user messages stay silent; replies come from the backend in [SPEAK_THIS] format.
- Keep spoken replies to 1-2 sentences.
- Ask at most ONE grounded question."""

OPENING_LINE = "How was your day? Tell me everything."
CLOSING_LINE = "Thanks for sharing. I'm here when you want to continue."


def format_previous_conversation(messages: List[Dict[str, str]]) -> str:
    """Render earlier turns as ``User: ...`` / ``You: ...`` lines."""
    lines = [
        f"{'User' if message['role'] == 'user' else 'You'}: {message['content']}"
        for message in messages
    ]
    return "\n".join(lines)


def _phase_instructions(state: Optional[ConversationState], resumed: bool) -> str:
    phase = state.session_phase if state else SessionPhase.LISTENING
    fresh_start = state is None or (
        state.user_initial_sharing is None
        and phase == SessionPhase.LISTENING
        and not resumed
    )

    if fresh_start:
        return f"""OPENING:
Say exactly: "{OPENING_LINE}"
Then stay silent. Let the user talk."""

    if phase == SessionPhase.LISTENING:
        return """LISTENING:
User is speaking. Stay silent. No questions. No interruptions."""

    if phase == SessionPhase.MOOD_CONFIRMATION:
        if state is not None and state.mood:
            return f'MOOD ALREADY CAPTURED: "{state.mood}". Continue following along.'
        return """MOOD CONFIRMATION:
Ask: "How are you feeling right now?"
Wait for the response."""

    if phase in (SessionPhase.REFLECTING, SessionPhase.QUESTIONING):
        return """FOLLOWING ALONG:
- Be brief and conversational
- Ask ONE simple question if needed
- Let the user continue speaking
- Reference past conversations naturally when relevant"""

    return f"""CLOSED:
End: "{CLOSING_LINE}\""""


def build_agent_instructions(
    state: Optional[ConversationState],
    previous_conversation: Optional[List[Dict[str, str]]] = None,
) -> str:
    """
    Build the voice agent's instructions for the state's current phase.

    Args:
        state: Current conversation state (None before initialization)
        previous_conversation: Earlier turns when resuming a session

    Returns:
        Instruction text
    """
    sections = [BASE_INSTRUCTIONS]

    if previous_conversation:
        sections.append(
            "PREVIOUS CONVERSATION (continue from here, do not start over):\n"
            + format_previous_conversation(previous_conversation)
        )

    sections.append(_phase_instructions(state, resumed=bool(previous_conversation)))
    return "\n\n".join(sections)
