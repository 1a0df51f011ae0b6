"""Technique selector.

Decides which therapeutic technique and which content subtopic a journey
uses. The decision itself is the pure function select_route(); the
TechniqueSelector service gathers its inputs (classification outcome,
keyword triggers) and calls it.

Decision order (first match wins):
    0. alternative_angle_count >= max_alternative_angles -> ACT
    1. intensity >= high_intensity_threshold             -> ACT
    2. classifier top label confidence >= threshold and
       the label maps to a subtopic                      -> that subtopic
    3. a subtopic's keyword trigger occurs in user_text   -> first such
       subtopic in content-index declaration order
    4. otherwise                                          -> generic fallback

For rules 2-4 the technique is CBT for emotions in the configured high or
medium tier and Socratic for everything else.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import structlog

from clarity.classifier.adapter import ClassifierAdapter
from clarity.content.repository import ContentRepository
from clarity.core.config import EmotionTiers, RoutingConfig
from clarity.domain.models.classification import (
    ClassificationOutcome,
    Classified,
    Unavailable,
)
from clarity.domain.models.session import Session, Technique

log = structlog.get_logger(__name__)

GENERIC_SUBTOPIC = "generic_fallback"
ACT_SUBTOPIC = "act_defusion"

KeywordTriggers = Sequence[Tuple[str, Sequence[str]]]


class RouteReason(str, Enum):
    """Which rule produced a route."""

    ALTERNATIVE_ANGLES = "alternative_angles"
    HIGH_INTENSITY = "high_intensity"
    CLASSIFIER = "classifier"
    KEYWORD = "keyword"
    GENERIC_FALLBACK = "generic_fallback"
    REQUESTED = "requested"  # explicit ACT_DEFUSION transition


@dataclass(frozen=True)
class Route:
    """Resolved technique and content key for a journey."""

    technique: Technique
    subtopic_key: str
    reason: RouteReason
    label: Optional[str] = None
    confidence: Optional[float] = None
    keyword: Optional[str] = None

    @property
    def is_generic(self) -> bool:
        return self.subtopic_key == GENERIC_SUBTOPIC


def technique_for_emotion(emotion: Optional[str], tiers: EmotionTiers) -> Technique:
    """CBT for high/medium-tier emotions, Socratic otherwise."""
    normalized = (emotion or "").strip().lower()
    if normalized in tiers.high or normalized in tiers.medium:
        return Technique.CBT
    return Technique.SOCRATIC


def match_keywords(
    user_text: Optional[str], keyword_triggers: KeywordTriggers
) -> Optional[Tuple[str, str]]:
    """First (subtopic, keyword) whose keyword occurs in user_text as a word.

    Matching is case-insensitive; multi-word triggers match as phrases.
    Subtopics are tried in the order given, so ties go to the earliest
    declaration.
    """
    if not user_text or not user_text.strip():
        return None

    text = user_text.lower()
    for subtopic, keywords in keyword_triggers:
        for keyword in keywords:
            needle = keyword.strip().lower()
            if needle and re.search(rf"(?<!\w){re.escape(needle)}(?!\w)", text):
                return subtopic, keyword
    return None


def select_route(
    session: Session,
    classification: ClassificationOutcome,
    keyword_triggers: KeywordTriggers,
    config: RoutingConfig,
) -> Route:
    """Pure routing decision for `session`. See module docstring for order."""
    if session.alternative_angle_count >= config.max_alternative_angles:
        return Route(Technique.ACT, ACT_SUBTOPIC, RouteReason.ALTERNATIVE_ANGLES)

    if (
        session.intensity is not None
        and session.intensity >= config.high_intensity_threshold
    ):
        return Route(Technique.ACT, ACT_SUBTOPIC, RouteReason.HIGH_INTENSITY)

    technique = technique_for_emotion(session.emotion, config.emotion_tiers)

    if isinstance(classification, Classified) and classification.meets(
        config.confidence_threshold
    ):
        top = classification.top
        subtopic = config.label_subtopics.get(top.label)
        if subtopic:
            return Route(
                technique,
                subtopic,
                RouteReason.CLASSIFIER,
                label=top.label,
                confidence=top.confidence,
            )

    matched = match_keywords(session.user_text, keyword_triggers)
    if matched:
        subtopic, keyword = matched
        return Route(technique, subtopic, RouteReason.KEYWORD, keyword=keyword)

    return Route(technique, GENERIC_SUBTOPIC, RouteReason.GENERIC_FALLBACK)


class TechniqueSelector:
    """
    Gathers routing inputs and delegates to select_route().

    The classifier is consulted only when it could change the answer:
    never for forced-ACT sessions and never without user text.
    """

    def __init__(
        self,
        content: ContentRepository,
        classifier: ClassifierAdapter,
        config: RoutingConfig,
    ):
        self.content = content
        self.classifier = classifier
        self.config = config

    def forced_act(self, session: Session) -> bool:
        """True if rule 0 or rule 1 already decides the route."""
        return (
            session.alternative_angle_count >= self.config.max_alternative_angles
            or (
                session.intensity is not None
                and session.intensity >= self.config.high_intensity_threshold
            )
        )

    async def select(self, session: Session) -> Route:
        """Resolve the route for `session` without mutating it."""
        if self.forced_act(session):
            classification: ClassificationOutcome = Unavailable(reason="skipped")
            keyword_triggers: List[Tuple[str, List[str]]] = []
        else:
            classification = await self.classifier.classify(
                session.user_text, self.config.candidate_labels
            )
            keyword_triggers = (
                await self.content.get_keyword_triggers(session.topic)
                if session.topic
                else []
            )

        route = select_route(session, classification, keyword_triggers, self.config)

        log.info(
            "route_selected",
            technique=route.technique.value,
            subtopic=route.subtopic_key,
            reason=route.reason.value,
            label=route.label,
            confidence=route.confidence,
            classifier_outcome=type(classification).__name__,
        )
        return route
