"""Session domain models for a single reflection run.

Core Models:
    - Session: The single mutable root for one run
    - Step: One unit of the journey sequence
    - Technique / StepType: Therapeutic method of the journey and its steps

Session Lifecycle:
    1. Created on entry to READINESS_CHECK
    2. intensity, topic, emotion recorded once each, then immutable
    3. technique + selected_subtopic resolved once by the technique selector
    4. journey_sequence built (5-7 steps), append-only afterwards
    5. Destroyed on restart or when the run returns to LANDING

Nothing here is persisted across a session boundary.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from clarity.domain.models.journey_state import JourneyState


class Technique(str, Enum):
    """Therapeutic method selected for a journey."""

    CBT = "cbt"
    SOCRATIC = "socratic"
    ACT = "act"


class StepType(str, Enum):
    """Type of a single journey step."""

    CBT = "cbt"
    SOCRATIC = "socratic"
    ACT = "act"


class Step(BaseModel):
    """One prompt inside the journey sequence. Owned by Session only."""

    index: int = Field(ge=0)
    type: StepType
    prompt: str
    completed: bool = False


class Session(BaseModel):
    """Mutable root for one user run.

    Fields set once (intensity, topic, emotion, technique,
    selected_subtopic) are guarded by the journey state machine, which is
    the only writer. alternative_angle_count only ever increases.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    current_state: JourneyState = JourneyState.READINESS_CHECK
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    intensity: Optional[int] = Field(default=None, ge=0, le=10)
    topic: Optional[str] = None
    emotion: Optional[str] = None
    user_text: Optional[str] = None

    selected_subtopic: Optional[str] = None
    technique: Optional[Technique] = None
    route_reason: Optional[str] = None

    journey_sequence: List[Step] = Field(default_factory=list)
    current_step_index: int = 0
    alternative_angle_count: int = 0
    defusion_triggered: bool = False

    # Unused prompts per step type, served by "try another angle"
    alternative_pool: Dict[StepType, List[str]] = Field(default_factory=dict)
    selected_thoughts: List[str] = Field(default_factory=list)

    @property
    def active_step(self) -> Optional[Step]:
        """Step at current_step_index, or None once the sequence is exhausted."""
        if 0 <= self.current_step_index < len(self.journey_sequence):
            return self.journey_sequence[self.current_step_index]
        return None

    @property
    def completed_steps(self) -> List[Step]:
        return [s for s in self.journey_sequence if s.completed]


class PromptView(BaseModel):
    """What the presentation layer shows for the active step."""

    prompt: str
    type: StepType
    step: int = Field(description="1-indexed position in the sequence")
    total_steps: int
    technique: Optional[Technique] = None
    subtopic: Optional[str] = None
    is_alternative: bool = False


class SessionInsights(BaseModel):
    """Plain-data summary handed to the external export layer."""

    topic: Optional[str]
    emotion: Optional[str]
    intensity: Optional[int]
    technique: Optional[Technique]
    subtopic: Optional[str]
    completed_steps: List[Step]
    selected_thoughts: List[str]
    alternative_angle_count: int
    defusion_triggered: bool
    summary: str
