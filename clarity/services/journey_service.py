"""Journey state machine.

Owns the current state of one user run, the Session it creates, and all
writes to that Session. Collaborators (content repository, technique
selector, journey builder) are injected; nothing is looked up globally.

Transitions:
    transition(target) succeeds iff target is in VALID_TRANSITIONS for the
    current state, otherwise raises InvalidTransition and leaves the state
    untouched. Content needed by the target state is resolved before any
    field changes, and calls on one machine are serialized with a lock, so
    no caller ever observes a half-applied transition.

Automatic edges:
    READINESS_CHECK -> ACT_DEFUSION   when intensity >= threshold
    STARTING_TEXT   -> ACT_DEFUSION   when the resolved route is ACT
    THERAPEUTIC_JOURNEY -> ACT_DEFUSION on the second "try another angle"
"""

import asyncio
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

import structlog

from clarity.content.repository import ContentRepository
from clarity.core.config import RoutingConfig
from clarity.core.exceptions import InvalidAction, InvalidTransition, ValidationError
from clarity.domain.models.journey_state import (
    JourneyState,
    allowed_targets,
    is_valid_transition,
)
from clarity.domain.models.session import (
    PromptView,
    Session,
    SessionInsights,
    StepType,
    Technique,
)
from clarity.services.journey_builder import BuiltJourney, JourneyBuilder
from clarity.services.technique_selector import (
    ACT_SUBTOPIC,
    Route,
    RouteReason,
    TechniqueSelector,
)

log = structlog.get_logger(__name__)

JOURNEY_STATES = (JourneyState.THERAPEUTIC_JOURNEY, JourneyState.ACT_DEFUSION)
THOUGHT_SELECTION_STATES = JOURNEY_STATES + (JourneyState.COMPLETION,)


class JourneyStateMachine:
    """
    State machine for one reflection run.

    Each instance is an independent root; any number may share the same
    ContentRepository, selector and builder.
    """

    def __init__(
        self,
        content: ContentRepository,
        selector: TechniqueSelector,
        builder: JourneyBuilder,
        config: RoutingConfig,
        journey_id: Optional[str] = None,
    ):
        self.id = journey_id or str(uuid4())
        self.content = content
        self.selector = selector
        self.builder = builder
        self.config = config

        self._session: Optional[Session] = None
        self._lock = asyncio.Lock()
        self._log = log.bind(journey_id=self.id)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def current_state(self) -> JourneyState:
        if self._session is None:
            return JourneyState.LANDING
        return self._session.current_state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def _require_session(self) -> Session:
        if self._session is None:
            raise InvalidAction("No active session; start a run first")
        return self._session

    def _require_state(self, *states: JourneyState) -> Session:
        session = self._require_session()
        if session.current_state not in states:
            expected = ", ".join(s.value for s in states)
            raise InvalidAction(
                f"Action not allowed in state {session.current_state.value} "
                f"(expected {expected})"
            )
        return session

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def transition(self, target: Union[JourneyState, str]) -> JourneyState:
        """Request a state change. Returns the state actually entered.

        Entering THERAPEUTIC_JOURNEY resolves the route first; if the route
        is ACT the machine takes STARTING_TEXT -> ACT_DEFUSION instead.

        Raises:
            InvalidTransition: target not allowed from the current state
        """
        async with self._lock:
            return await self._transition(self._coerce(target))

    def _coerce(self, target: Union[JourneyState, str]) -> JourneyState:
        if isinstance(target, JourneyState):
            return target
        normalized = str(target).strip().lower()
        try:
            return JourneyState(normalized)
        except ValueError:
            raise InvalidTransition(self.current_state.value, str(target))

    async def _transition(self, target: JourneyState) -> JourneyState:
        source = self.current_state
        if not is_valid_transition(source, target):
            self._log.warning(
                "invalid_transition",
                source=source.value,
                target=target.value,
                allowed=sorted(s.value for s in allowed_targets(source)),
            )
            raise InvalidTransition(source.value, target.value)

        if target == JourneyState.READINESS_CHECK:
            self._session = Session(id=self.id)
        elif target == JourneyState.LANDING:
            self._session = None
        elif target == JourneyState.THERAPEUTIC_JOURNEY:
            route, built = await self._prepare_journey()
            if route.technique == Technique.ACT:
                return await self._enter_defusion(route)
            self._commit_journey(route, built)
        elif target == JourneyState.ACT_DEFUSION:
            return await self._enter_defusion(None)

        if self._session is not None:
            self._session.current_state = target
        self._log.info("journey_transition", source=source.value, target=target.value)
        return target

    async def _prepare_journey(self):
        """Resolve (or reuse) the route and build its sequence. No writes."""
        session = self._require_session()
        if session.technique is not None:
            route = Route(
                technique=session.technique,
                subtopic_key=session.selected_subtopic or "",
                reason=RouteReason(session.route_reason),
            )
        else:
            route = await self.selector.select(session)

        if route.technique == Technique.ACT or session.journey_sequence:
            return route, None
        built = await self.builder.build(session.topic, route)
        return route, built

    def _commit_journey(self, route: Route, built: Optional[BuiltJourney]) -> None:
        session = self._require_session()
        if session.technique is None:
            session.technique = route.technique
            session.selected_subtopic = route.subtopic_key
            session.route_reason = route.reason.value
        if built is not None and not session.journey_sequence:
            session.journey_sequence.extend(built.steps)
            session.alternative_pool = built.alternative_pool
            session.current_step_index = 0

    async def _enter_defusion(self, route: Optional[Route]) -> JourneyState:
        """Append the ACT exercise and move to ACT_DEFUSION.

        Valid from READINESS_CHECK, STARTING_TEXT and THERAPEUTIC_JOURNEY;
        the caller has already validated or implied the edge.
        """
        built = await self._prepare_defusion()
        return self._commit_defusion(built, route)

    async def _prepare_defusion(self) -> BuiltJourney:
        """Validate the edge and build the ACT steps. No writes."""
        session = self._require_session()
        source = session.current_state
        if not is_valid_transition(source, JourneyState.ACT_DEFUSION):
            raise InvalidTransition(source.value, JourneyState.ACT_DEFUSION.value)

        return await self.builder.build_act(
            session.topic, start_index=len(session.journey_sequence)
        )

    def _commit_defusion(self, built: BuiltJourney, route: Optional[Route]) -> JourneyState:
        session = self._require_session()
        source = session.current_state
        if session.technique is None:
            reason = route.reason if route else self._defusion_reason(session)
            session.technique = Technique.ACT
            session.selected_subtopic = ACT_SUBTOPIC
            session.route_reason = reason.value
        session.current_step_index = len(session.journey_sequence)
        session.journey_sequence.extend(built.steps)
        session.alternative_pool.setdefault(StepType.ACT, [])
        session.defusion_triggered = True
        session.current_state = JourneyState.ACT_DEFUSION

        self._log.info(
            "journey_transition",
            source=source.value,
            target=JourneyState.ACT_DEFUSION.value,
            automatic=route is not None,
            alternative_angle_count=session.alternative_angle_count,
            intensity=session.intensity,
        )
        return JourneyState.ACT_DEFUSION

    def _defusion_reason(self, session: Session) -> RouteReason:
        """Reason recorded when ACT_DEFUSION is requested explicitly."""
        if session.alternative_angle_count >= self.config.max_alternative_angles:
            return RouteReason.ALTERNATIVE_ANGLES
        if (
            session.intensity is not None
            and session.intensity >= self.config.high_intensity_threshold
        ):
            return RouteReason.HIGH_INTENSITY
        return RouteReason.REQUESTED

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def start(self) -> JourneyState:
        """LANDING -> READINESS_CHECK (creates the Session)."""
        return await self.transition(JourneyState.READINESS_CHECK)

    async def submit_readiness(self, intensity: int) -> JourneyState:
        """Record intensity once and route to topic selection or ACT."""
        async with self._lock:
            session = self._require_state(JourneyState.READINESS_CHECK)
            if isinstance(intensity, bool) or not isinstance(intensity, int):
                raise ValidationError(f"Intensity must be an integer, got {intensity!r}")
            if not 0 <= intensity <= 10:
                raise ValidationError(f"Intensity must be between 0 and 10, got {intensity}")
            if session.intensity is not None:
                raise ValidationError("Intensity has already been recorded for this run")

            if intensity >= self.config.high_intensity_threshold:
                built = await self._prepare_defusion()
                session.intensity = intensity
                self._log.info("intensity_recorded", intensity=intensity)
                route = Route(Technique.ACT, ACT_SUBTOPIC, RouteReason.HIGH_INTENSITY)
                return self._commit_defusion(built, route)

            session.intensity = intensity
            self._log.info("intensity_recorded", intensity=intensity)
            return await self._transition(JourneyState.TOPIC_SELECTION)

    async def select_topic(self, topic: str) -> JourneyState:
        """Record the topic (must be a known category) and move on."""
        async with self._lock:
            session = self._require_state(JourneyState.TOPIC_SELECTION)
            categories = await self.content.get_categories()
            if topic not in categories:
                raise ValidationError(
                    f"Unknown topic {topic!r}; expected one of {categories}"
                )
            if session.topic is not None:
                raise ValidationError("Topic has already been selected for this run")

            session.topic = topic
            return await self._transition(JourneyState.EMOTION_SELECTION)

    async def select_emotion(self, emotion: str) -> JourneyState:
        """Record an emotion from the topic's palette and move on."""
        async with self._lock:
            session = self._require_state(JourneyState.EMOTION_SELECTION)
            palette = await self.content.get_emotion_palette(session.topic)
            if emotion not in palette:
                raise ValidationError(
                    f"Emotion {emotion!r} is not in the {session.topic} palette"
                )

            session.emotion = emotion
            return await self._transition(JourneyState.STARTING_TEXT)

    async def submit_starting_text(self, text: Optional[str] = None) -> JourneyState:
        """Record optional free text, resolve the route and start the journey."""
        async with self._lock:
            session = self._require_state(JourneyState.STARTING_TEXT)
            previous = session.user_text
            if text is not None and text.strip():
                session.user_text = text.strip()
            try:
                return await self._transition(JourneyState.THERAPEUTIC_JOURNEY)
            except BaseException:
                # Routing reads user_text; undo it if the transition did not happen.
                session.user_text = previous
                raise

    def current_prompt(self) -> Optional[PromptView]:
        """Prompt of the active step, or None outside a journey."""
        session = self._session
        if session is None or session.current_state not in JOURNEY_STATES:
            return None
        return self._view(session)

    def _view(self, session: Session, prompt: Optional[str] = None) -> Optional[PromptView]:
        step = session.active_step
        if step is None:
            return None
        return PromptView(
            prompt=prompt if prompt is not None else step.prompt,
            type=step.type,
            step=step.index + 1,
            total_steps=len(session.journey_sequence),
            technique=session.technique,
            subtopic=session.selected_subtopic,
            is_alternative=prompt is not None,
        )

    async def advance(self) -> Optional[PromptView]:
        """Complete the active step and return the next prompt (None at the end)."""
        async with self._lock:
            session = self._require_state(*JOURNEY_STATES)
            step = session.active_step
            if step is None:
                return None

            step.completed = True
            session.current_step_index += 1
            self._log.info(
                "step_completed",
                step=step.index + 1,
                total_steps=len(session.journey_sequence),
                step_type=step.type.value,
            )
            return self._view(session)

    async def try_another_angle(self) -> Optional[PromptView]:
        """Serve a different prompt for the active step's type.

        The step index never moves back. Reaching max_alternative_angles
        forces the one-way transition to ACT_DEFUSION and returns the
        first defusion prompt.
        """
        async with self._lock:
            session = self._require_state(JourneyState.THERAPEUTIC_JOURNEY)
            step = session.active_step
            if step is None:
                raise InvalidAction("No active step to rephrase")

            count = session.alternative_angle_count + 1
            built = None
            if count >= self.config.max_alternative_angles:
                built = await self._prepare_defusion()

            session.alternative_angle_count = count
            self._log.info(
                "alternative_angle_requested",
                count=count,
                step=step.index + 1,
            )

            if built is not None:
                self._commit_defusion(
                    built,
                    Route(Technique.ACT, ACT_SUBTOPIC, RouteReason.ALTERNATIVE_ANGLES),
                )
                return self._view(session)

            pool = session.alternative_pool.get(step.type, [])
            alternative = pool.pop(0) if pool else step.prompt
            return self._view(session, prompt=alternative)

    async def select_thought(self, thought: str) -> List[str]:
        """Add a replacement thought to the run's selections."""
        async with self._lock:
            session = self._require_state(*THOUGHT_SELECTION_STATES)
            if not thought or not thought.strip():
                raise ValidationError("Selected thought must not be empty")
            if thought not in session.selected_thoughts:
                session.selected_thoughts.append(thought)
            return list(session.selected_thoughts)

    async def complete(self) -> JourneyState:
        """Move to COMPLETION."""
        return await self.transition(JourneyState.COMPLETION)

    async def restart(self) -> JourneyState:
        """Discard the run from any state and return to LANDING."""
        async with self._lock:
            had_session = self._session is not None
            self._session = None
            self._log.info("journey_restarted", had_session=had_session)
            return JourneyState.LANDING

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def insights(self) -> SessionInsights:
        """Plain-data summary of the run for the export layer."""
        session = self._require_session()
        return SessionInsights(
            topic=session.topic,
            emotion=session.emotion,
            intensity=session.intensity,
            technique=session.technique,
            subtopic=session.selected_subtopic,
            completed_steps=[s.model_copy() for s in session.completed_steps],
            selected_thoughts=list(session.selected_thoughts),
            alternative_angle_count=session.alternative_angle_count,
            defusion_triggered=session.defusion_triggered,
            summary=completion_summary(session, self.config),
        )

    def status(self) -> Dict[str, Any]:
        session = self._session
        return {
            "journey_id": self.id,
            "state": self.current_state.value,
            "allowed_targets": sorted(s.value for s in allowed_targets(self.current_state)),
            "topic": session.topic if session else None,
            "emotion": session.emotion if session else None,
            "intensity": session.intensity if session else None,
            "technique": session.technique.value if session and session.technique else None,
            "subtopic": session.selected_subtopic if session else None,
            "current_step": (session.current_step_index + 1) if session else 0,
            "total_steps": len(session.journey_sequence) if session else 0,
            "alternative_angle_count": session.alternative_angle_count if session else 0,
        }


def completion_summary(session: Session, config: RoutingConfig) -> str:
    """One-sentence recap shown on the completion screen."""
    topic = session.topic.lower() if session.topic else "this area of your life"
    feeling = f"feeling {session.emotion}" if session.emotion else "your feelings"
    intensity = session.intensity or 0

    if session.technique == Technique.ACT or session.defusion_triggered:
        if intensity >= config.high_intensity_threshold:
            return (
                f"You felt overwhelmed about {topic}, and you've worked through "
                f"those thoughts using mindful defusion."
            )
        return (
            f"You stepped back from your thoughts about {topic} and made room "
            f"for them using mindful defusion."
        )
    if intensity >= 4:
        return (
            f"You began {feeling} about {topic} and worked through those "
            f"feelings to find a clearer perspective."
        )
    return f"You've worked through your reflections on {topic} and strengthened resilience."
