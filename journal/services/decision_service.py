"""Next-move decision: which action the assistant takes this turn.

The decision is an ordered list of rules. Each rule pairs a predicate with a
builder; the first rule whose predicate holds produces the NextAIMove and
later rules are not evaluated.

Rule order (first match wins):
    1. long_message        -> reflect
    2. short_message       -> offer_choice
    3. stuck_after_question -> reframe   (unreachable: short_message catches
                                          every short message first)
    4. nothing_unexplored  -> close
    5. default             -> ask_gentle on an unexplored touched theme,
                              otherwise reflect on the first unexplored theme

Rule 3 is kept in place on purpose so the ordering defect stays visible.
Do not reorder without a product decision; callers depend on the current
offer_choice behaviour for short replies.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Tuple

import structlog

from journal.domain.models.conversation_state import ConversationState
from journal.domain.models.extraction import (
    AIAction,
    ExtractionResult,
    MessageLength,
    NextAIMove,
)

log = structlog.get_logger(__name__)

MAX_SUGGESTED_THEMES = 2


@dataclass(frozen=True)
class StateSummary:
    """The slice of ConversationState the decision reads."""

    explored_themes: Tuple[str, ...] = ()
    unexplored_themes: Tuple[str, ...] = ()
    asked_questions: Tuple[str, ...] = ()
    conversation_mode: str = "listener"

    @classmethod
    def from_state(cls, state: ConversationState) -> "StateSummary":
        return cls(
            explored_themes=tuple(state.explored_themes),
            unexplored_themes=tuple(state.unexplored_themes),
            asked_questions=tuple(state.asked_questions),
            conversation_mode=state.conversation_mode.value,
        )


Predicate = Callable[[ExtractionResult, StateSummary], bool]
Builder = Callable[[ExtractionResult, StateSummary], NextAIMove]


@dataclass(frozen=True)
class DecisionRule:
    """A named predicate -> move pair."""

    name: str
    applies: Predicate
    build: Builder
    reachable: bool = field(default=True, compare=False)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _reflect_on_long_message(extraction: ExtractionResult, summary: StateSummary) -> NextAIMove:
    theme = extraction.touched_theme
    reflection = "I hear you."
    if theme:
        reflection = f"I hear you. The {theme} theme is coming through."

    question = None
    if theme and theme not in summary.explored_themes:
        question = f"What part of {theme} feels most important right now?"

    return NextAIMove(action=AIAction.REFLECT, reflection=reflection, question=question)


def _offer_choice(extraction: ExtractionResult, summary: StateSummary) -> NextAIMove:
    themes = list(summary.unexplored_themes[:MAX_SUGGESTED_THEMES])
    question = None
    if len(themes) == MAX_SUGGESTED_THEMES:
        question = f"Would you like to explore {themes[0]} or {themes[1]}?"
    return NextAIMove(
        action=AIAction.OFFER_CHOICE, themes_to_suggest=themes, question=question
    )


def _reframe(extraction: ExtractionResult, summary: StateSummary) -> NextAIMove:
    return NextAIMove(
        action=AIAction.REFRAME,
        reflection="That's okay. Sometimes it's hard to put words to things.",
    )


def _close(extraction: ExtractionResult, summary: StateSummary) -> NextAIMove:
    return NextAIMove(
        action=AIAction.CLOSE,
        reflection="You've covered a lot today.",
        question="Is there anything else you want to share before we wrap up?",
    )


def _default_move(extraction: ExtractionResult, summary: StateSummary) -> NextAIMove:
    theme = extraction.touched_theme
    if theme and theme not in summary.explored_themes:
        return NextAIMove(action=AIAction.ASK_GENTLE, question=f"Tell me more about {theme}.")

    # nothing_unexplored runs first, so there is always a next theme here
    next_theme = summary.unexplored_themes[0] if summary.unexplored_themes else None
    question = f"What's coming up around {next_theme}?" if next_theme else None
    return NextAIMove(action=AIAction.REFLECT, reflection="I'm listening.", question=question)


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------


DECISION_RULES: Tuple[DecisionRule, ...] = (
    DecisionRule(
        name="long_message",
        applies=lambda e, s: e.message_length == MessageLength.LONG,
        build=_reflect_on_long_message,
    ),
    DecisionRule(
        name="short_message",
        applies=lambda e, s: e.message_length == MessageLength.SHORT,
        build=_offer_choice,
    ),
    DecisionRule(
        name="stuck_after_question",
        applies=lambda e, s: (
            e.message_length == MessageLength.SHORT
            and not e.answered_previous
            and len(s.asked_questions) > 0
        ),
        build=_reframe,
        reachable=False,
    ),
    DecisionRule(
        name="nothing_unexplored",
        applies=lambda e, s: len(s.unexplored_themes) == 0,
        build=_close,
    ),
    DecisionRule(
        name="default",
        applies=lambda e, s: True,
        build=_default_move,
    ),
)


def match_rule(
    extraction: ExtractionResult,
    summary: StateSummary,
    rules: Tuple[DecisionRule, ...] = DECISION_RULES,
) -> DecisionRule:
    """First rule whose predicate holds."""
    for rule in rules:
        if rule.applies(extraction, summary):
            return rule
    # The table ends with an always-true rule
    raise LookupError("no decision rule matched")


def decide_next_move(
    extraction: ExtractionResult,
    summary: StateSummary | ConversationState,
    rules: Tuple[DecisionRule, ...] = DECISION_RULES,
) -> NextAIMove:
    """Decide the assistant's next move for this turn.

    Args:
        extraction: This turn's extraction
        summary: StateSummary, or a full ConversationState to summarize
        rules: Ordered rule table (defaults to DECISION_RULES)

    Returns:
        NextAIMove; action is always set
    """
    if isinstance(summary, ConversationState):
        summary = StateSummary.from_state(summary)

    rule = match_rule(extraction, summary, rules)
    move = rule.build(extraction, summary)

    log.debug(
        "next_move_decided",
        rule=rule.name,
        action=move.action.value,
        message_length=extraction.message_length.value,
        touched_theme=extraction.touched_theme,
    )
    return move


def unreachable_rules(rules: Tuple[DecisionRule, ...] = DECISION_RULES) -> List[str]:
    """Names of rules flagged as shadowed by an earlier rule."""
    return [rule.name for rule in rules if not rule.reachable]
