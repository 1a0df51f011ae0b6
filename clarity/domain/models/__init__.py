"""Domain models package."""

from .journey_state import JourneyState, VALID_TRANSITIONS, is_valid_transition
from .session import Session, Step, StepType, Technique, PromptView, SessionInsights
from .content import (
    ACTExercise,
    ContentEntry,
    ContentIndex,
    DataExtractionQuestion,
    HierarchicalThoughts,
    MiningPrompts,
)
from .classification import Classified, LabelScore, Unavailable, ClassificationOutcome

__all__ = [
    "JourneyState",
    "VALID_TRANSITIONS",
    "is_valid_transition",
    "Session",
    "Step",
    "StepType",
    "Technique",
    "PromptView",
    "SessionInsights",
    "ACTExercise",
    "ContentEntry",
    "ContentIndex",
    "DataExtractionQuestion",
    "HierarchicalThoughts",
    "MiningPrompts",
    "Classified",
    "LabelScore",
    "Unavailable",
    "ClassificationOutcome",
]
