"""
Journey states and the validated transition table.

The table is the single source of truth for which state changes are legal.
Within one run the graph is acyclic; the only loop is the
COMPLETION/CALENDAR_SETUP -> LANDING edge that starts a new run.
"""

from enum import Enum
from typing import Dict, FrozenSet


class JourneyState(str, Enum):
    """Flow states of one reflection run."""

    LANDING = "landing"
    READINESS_CHECK = "readiness_check"
    TOPIC_SELECTION = "topic_selection"
    EMOTION_SELECTION = "emotion_selection"
    STARTING_TEXT = "starting_text"
    THERAPEUTIC_JOURNEY = "therapeutic_journey"
    ACT_DEFUSION = "act_defusion"
    COMPLETION = "completion"
    CALENDAR_SETUP = "calendar_setup"


VALID_TRANSITIONS: Dict[JourneyState, FrozenSet[JourneyState]] = {
    JourneyState.LANDING: frozenset({JourneyState.READINESS_CHECK}),
    JourneyState.READINESS_CHECK: frozenset(
        {JourneyState.TOPIC_SELECTION, JourneyState.ACT_DEFUSION}
    ),
    JourneyState.TOPIC_SELECTION: frozenset({JourneyState.EMOTION_SELECTION}),
    JourneyState.EMOTION_SELECTION: frozenset({JourneyState.STARTING_TEXT}),
    JourneyState.STARTING_TEXT: frozenset(
        {JourneyState.THERAPEUTIC_JOURNEY, JourneyState.ACT_DEFUSION}
    ),
    JourneyState.THERAPEUTIC_JOURNEY: frozenset(
        {JourneyState.ACT_DEFUSION, JourneyState.COMPLETION}
    ),
    JourneyState.ACT_DEFUSION: frozenset({JourneyState.COMPLETION}),
    JourneyState.COMPLETION: frozenset(
        {JourneyState.CALENDAR_SETUP, JourneyState.LANDING}
    ),
    JourneyState.CALENDAR_SETUP: frozenset({JourneyState.LANDING}),
}

# Edges the state machine takes on its own when a routing rule fires.
# They are also valid explicit targets; the recorded route reason then
# comes from the session (intensity, angle count) or is "requested".
AUTOMATIC_TRANSITIONS: FrozenSet[tuple] = frozenset(
    {
        (JourneyState.READINESS_CHECK, JourneyState.ACT_DEFUSION),
        (JourneyState.STARTING_TEXT, JourneyState.ACT_DEFUSION),
    }
)


def is_valid_transition(source: JourneyState, target: JourneyState) -> bool:
    """Return True if `target` is an allowed successor of `source`."""
    return target in VALID_TRANSITIONS.get(source, frozenset())


def allowed_targets(source: JourneyState) -> FrozenSet[JourneyState]:
    """Allowed successors of `source` (empty for unknown states)."""
    return VALID_TRANSITIONS.get(source, frozenset())
