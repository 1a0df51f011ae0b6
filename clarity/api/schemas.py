"""
API request/response schemas.

Pydantic models for API validation and serialization.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from clarity.domain.models.journey_state import JourneyState
from clarity.domain.models.session import PromptView, Step, Technique


# ============ JOURNEY SCHEMAS ============


class JourneyResponse(BaseModel):
    """Current state of one journey."""

    id: str
    state: JourneyState
    allowed_targets: List[JourneyState]
    created_at: Optional[datetime] = None
    intensity: Optional[int] = None
    topic: Optional[str] = None
    emotion: Optional[str] = None
    technique: Optional[Technique] = None
    subtopic: Optional[str] = None
    route_reason: Optional[str] = None
    current_step: int = 0
    total_steps: int = 0
    alternative_angle_count: int = 0
    defusion_triggered: bool = False
    selected_thoughts: List[str] = Field(default_factory=list)
    prompt: Optional[PromptView] = None


class JourneyListResponse(BaseModel):
    """Live journeys."""

    journeys: List[JourneyResponse]
    total: int


class TransitionRequest(BaseModel):
    """Request an explicit state change."""

    target: str = Field(..., description="Target journey state, e.g. 'completion'")


class ReadinessRequest(BaseModel):
    """Self-reported distress on the 0-10 scale."""

    intensity: int = Field(..., description="Distress intensity 0-10")


class TopicRequest(BaseModel):
    topic: str = Field(..., min_length=1)


class EmotionRequest(BaseModel):
    emotion: str = Field(..., min_length=1)


class StartingTextRequest(BaseModel):
    """Optional free text describing the problem."""

    text: Optional[str] = Field(default=None, max_length=5000)


class ThoughtRequest(BaseModel):
    thought: str = Field(..., min_length=1, max_length=1000)


class PromptResponse(BaseModel):
    """Prompt returned by advance / another-angle."""

    state: JourneyState
    prompt: Optional[PromptView] = None
    finished: bool = False


class ThoughtsResponse(BaseModel):
    selected_thoughts: List[str]


class InsightsResponse(BaseModel):
    """Completion summary for the export layer."""

    id: str
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


# ============ CONTENT SCHEMAS ============


class CategoriesResponse(BaseModel):
    categories: List[str]


class SubcategoriesResponse(BaseModel):
    category: str
    subcategories: List[str]


class EmotionsResponse(BaseModel):
    topic: str
    emotions: List[str]


class MiningPromptsResponse(BaseModel):
    category: str
    prompt_type: str
    subcategory: Optional[str] = None
    prompts: List[Any]


class ReplacementThoughtsResponse(BaseModel):
    category: str
    subcategory: Optional[str] = None
    level: Optional[int] = None
    thoughts: List[str]


class SearchResponse(BaseModel):
    query: str
    results: List[Dict[str, Any]]
    total: int
