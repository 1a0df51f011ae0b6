"""
Journey API routes.

Endpoints for creating journeys and driving them through the state
machine. Every mutation goes through JourneyStateMachine; the routes only
translate HTTP to method calls.
"""

from fastapi import APIRouter, status
from fastapi.responses import Response
import structlog

from clarity.api.dependencies import SessionStoreDep
from clarity.api.schemas import (
    EmotionRequest,
    InsightsResponse,
    JourneyListResponse,
    JourneyResponse,
    PromptResponse,
    ReadinessRequest,
    StartingTextRequest,
    ThoughtRequest,
    ThoughtsResponse,
    TopicRequest,
    TransitionRequest,
)
from clarity.domain.models.journey_state import allowed_targets
from clarity.services.journey_service import JourneyStateMachine

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/journeys", tags=["journeys"])


def to_response(machine: JourneyStateMachine) -> JourneyResponse:
    """Serialize a journey's current state."""
    state = machine.current_state
    session = machine.session
    response = JourneyResponse(
        id=machine.id,
        state=state,
        allowed_targets=sorted(allowed_targets(state), key=lambda s: s.value),
        prompt=machine.current_prompt(),
    )
    if session is None:
        return response

    return response.model_copy(
        update={
            "created_at": session.created_at,
            "intensity": session.intensity,
            "topic": session.topic,
            "emotion": session.emotion,
            "technique": session.technique,
            "subtopic": session.selected_subtopic,
            "route_reason": session.route_reason,
            "current_step": min(session.current_step_index + 1, len(session.journey_sequence)),
            "total_steps": len(session.journey_sequence),
            "alternative_angle_count": session.alternative_angle_count,
            "defusion_triggered": session.defusion_triggered,
            "selected_thoughts": list(session.selected_thoughts),
        }
    )


# ============ JOURNEY CRUD ============


@router.post("", response_model=JourneyResponse, status_code=status.HTTP_201_CREATED)
async def create_journey(store: SessionStoreDep):
    """Create a journey and move it from LANDING to READINESS_CHECK."""
    machine = store.create()
    await machine.start()
    return to_response(machine)


@router.get("", response_model=JourneyListResponse)
async def list_journeys(store: SessionStoreDep):
    journeys = [to_response(m) for m in store.list()]
    return JourneyListResponse(journeys=journeys, total=len(journeys))


@router.get("/{journey_id}", response_model=JourneyResponse)
async def get_journey(journey_id: str, store: SessionStoreDep):
    return to_response(store.get(journey_id))


@router.delete("/{journey_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_journey(journey_id: str, store: SessionStoreDep):
    store.delete(journey_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============ STATE CHANGES ============


@router.post("/{journey_id}/transition", response_model=JourneyResponse)
async def transition(journey_id: str, request: TransitionRequest, store: SessionStoreDep):
    """Request an explicit transition. Illegal targets return 409."""
    machine = store.get(journey_id)
    await machine.transition(request.target)
    return to_response(machine)


@router.post("/{journey_id}/readiness", response_model=JourneyResponse)
async def submit_readiness(journey_id: str, request: ReadinessRequest, store: SessionStoreDep):
    machine = store.get(journey_id)
    await machine.submit_readiness(request.intensity)
    return to_response(machine)


@router.post("/{journey_id}/topic", response_model=JourneyResponse)
async def select_topic(journey_id: str, request: TopicRequest, store: SessionStoreDep):
    machine = store.get(journey_id)
    await machine.select_topic(request.topic)
    return to_response(machine)


@router.post("/{journey_id}/emotion", response_model=JourneyResponse)
async def select_emotion(journey_id: str, request: EmotionRequest, store: SessionStoreDep):
    machine = store.get(journey_id)
    await machine.select_emotion(request.emotion)
    return to_response(machine)


@router.post("/{journey_id}/starting-text", response_model=JourneyResponse)
async def submit_starting_text(
    journey_id: str, request: StartingTextRequest, store: SessionStoreDep
):
    """Submit optional free text; routes the journey and builds its steps."""
    machine = store.get(journey_id)
    await machine.submit_starting_text(request.text)
    return to_response(machine)


@router.post("/{journey_id}/advance", response_model=PromptResponse)
async def advance(journey_id: str, store: SessionStoreDep):
    machine = store.get(journey_id)
    prompt = await machine.advance()
    return PromptResponse(state=machine.current_state, prompt=prompt, finished=prompt is None)


@router.post("/{journey_id}/another-angle", response_model=PromptResponse)
async def try_another_angle(journey_id: str, store: SessionStoreDep):
    """Rephrase the current step; the second request switches to ACT defusion."""
    machine = store.get(journey_id)
    prompt = await machine.try_another_angle()
    return PromptResponse(state=machine.current_state, prompt=prompt, finished=prompt is None)


@router.post("/{journey_id}/thoughts", response_model=ThoughtsResponse)
async def select_thought(journey_id: str, request: ThoughtRequest, store: SessionStoreDep):
    machine = store.get(journey_id)
    thoughts = await machine.select_thought(request.thought)
    return ThoughtsResponse(selected_thoughts=thoughts)


@router.post("/{journey_id}/complete", response_model=JourneyResponse)
async def complete(journey_id: str, store: SessionStoreDep):
    machine = store.get(journey_id)
    await machine.complete()
    return to_response(machine)


@router.post("/{journey_id}/restart", response_model=JourneyResponse)
async def restart(journey_id: str, store: SessionStoreDep):
    """Discard the run and return to LANDING."""
    machine = store.get(journey_id)
    await machine.restart()
    return to_response(machine)


@router.get("/{journey_id}/insights", response_model=InsightsResponse)
async def get_insights(journey_id: str, store: SessionStoreDep):
    machine = store.get(journey_id)
    insights = machine.insights()
    return InsightsResponse(id=machine.id, **insights.model_dump())
