"""Tests for technique selection."""

import pytest

from clarity.core.config import EmotionTiers, RoutingConfig
from clarity.domain.models.classification import Classified, LabelScore, Unavailable
from clarity.domain.models.session import Session, Technique
from clarity.services.technique_selector import (
    ACT_SUBTOPIC,
    GENERIC_SUBTOPIC,
    RouteReason,
    match_keywords,
    select_route,
    technique_for_emotion,
)

CONFIG = RoutingConfig()
NO_CLASSIFIER = Unavailable(reason="no_backend")


def _session(**fields) -> Session:
    base = {"intensity": 4, "topic": "Self-Image", "emotion": "inadequate"}
    base.update(fields)
    return Session(**base)


def _classified(label: str, confidence: float) -> Classified:
    return Classified(results=[LabelScore(label, confidence)])


class TestSelectRoute:
    """The pure decision function."""

    def test_high_intensity_forces_act(self):
        session = _session(intensity=8, topic="Money", emotion="anxious")

        route = select_route(session, _classified("financial scarcity mindset", 0.9), [], CONFIG)

        assert route.technique == Technique.ACT
        assert route.subtopic_key == ACT_SUBTOPIC
        assert route.reason == RouteReason.HIGH_INTENSITY

    def test_intensity_threshold_is_inclusive(self):
        assert select_route(_session(intensity=7), NO_CLASSIFIER, [], CONFIG).technique == Technique.ACT
        assert select_route(_session(intensity=6), NO_CLASSIFIER, [], CONFIG).technique != Technique.ACT

    def test_alternative_angles_force_act_first(self):
        session = _session(intensity=2, alternative_angle_count=2)

        route = select_route(session, NO_CLASSIFIER, [], CONFIG)

        assert route.technique == Technique.ACT
        assert route.reason == RouteReason.ALTERNATIVE_ANGLES

    def test_confident_classification_selects_subtopic(self):
        session = _session(user_text="I feel like a fraud at work")

        route = select_route(session, _classified("imposter syndrome", 0.82), [], CONFIG)

        assert route.subtopic_key == "Imposter Syndrome"
        assert route.reason == RouteReason.CLASSIFIER
        assert route.technique == Technique.CBT

    def test_confidence_exactly_at_threshold_is_used(self):
        route = select_route(_session(), _classified("imposter syndrome", 0.45), [], CONFIG)

        assert route.reason == RouteReason.CLASSIFIER

    def test_confidence_below_threshold_falls_through(self):
        triggers = [("Imposter Syndrome", ["fraud"])]
        session = _session(user_text="I am a fraud")

        route = select_route(session, _classified("self-criticism", 0.44), triggers, CONFIG)

        assert route.reason == RouteReason.KEYWORD
        assert route.subtopic_key == "Imposter Syndrome"

    def test_unmapped_label_falls_through(self):
        config = RoutingConfig(label_subtopics={})

        route = select_route(_session(), _classified("imposter syndrome", 0.9), [], config)

        assert route.reason == RouteReason.GENERIC_FALLBACK

    def test_keyword_match_when_classifier_unavailable(self):
        triggers = [("Loneliness", ["alone", "lonely"]), ("Rejection", ["rejected"])]
        session = _session(topic="Romance", emotion="lonely", user_text="I always end up alone")

        route = select_route(session, NO_CLASSIFIER, triggers, CONFIG)

        assert route.subtopic_key == "Loneliness"
        assert route.keyword == "alone"

    def test_generic_fallback(self):
        route = select_route(_session(user_text="nothing specific"), NO_CLASSIFIER, [], CONFIG)

        assert route.subtopic_key == GENERIC_SUBTOPIC
        assert route.is_generic


class TestKeywordMatching:
    def test_case_insensitive_whole_word(self):
        assert match_keywords("So ALONE lately", [("Loneliness", ["alone"])]) == ("Loneliness", "alone")

    def test_substring_of_word_does_not_match(self):
        assert match_keywords("I keep to myself, standalone", [("Loneliness", ["alone"])]) is None

    def test_phrase_trigger(self):
        triggers = [("Scarcity Mindset", ["never enough"])]
        assert match_keywords("There is never enough money", triggers) == ("Scarcity Mindset", "never enough")

    def test_first_declared_subtopic_wins(self):
        triggers = [("Loneliness", ["alone"]), ("Abandonment", ["left me"])]
        assert match_keywords("she left me alone", triggers)[0] == "Loneliness"

    @pytest.mark.parametrize("text", [None, "", "  "])
    def test_empty_text(self, text):
        assert match_keywords(text, [("Loneliness", ["alone"])]) is None


@pytest.mark.parametrize(
    "emotion,expected",
    [
        ("overwhelmed", Technique.CBT),
        ("anxious", Technique.CBT),
        ("Lonely", Technique.CBT),
        ("jealous", Technique.SOCRATIC),
        (None, Technique.SOCRATIC),
    ],
)
def test_technique_for_emotion(emotion, expected):
    assert technique_for_emotion(emotion, EmotionTiers()) == expected


class TestTechniqueSelector:
    """Service wiring: classifier and content lookups."""

    async def test_romance_alone_routes_to_loneliness(self, selector):
        session = _session(topic="Romance", emotion="lonely", user_text="I'm always alone on weekends")

        route = await selector.select(session)

        assert route.subtopic_key == "Loneliness"
        assert route.reason == RouteReason.KEYWORD

    async def test_classifier_result_used(self, selector, classifier_backend):
        classifier_backend.scores = [LabelScore("imposter syndrome", 0.82)]
        session = _session(user_text="Everyone will find out I don't know what I'm doing")

        route = await selector.select(session)

        assert route.subtopic_key == "Imposter Syndrome"
        assert classifier_backend.calls == ["Everyone will find out I don't know what I'm doing"]

    async def test_forced_act_skips_classifier(self, selector, classifier_backend):
        session = _session(intensity=9, user_text="everything is falling apart")

        route = await selector.select(session)

        assert route.technique == Technique.ACT
        assert classifier_backend.calls == []

    async def test_selection_does_not_mutate_session(self, selector):
        session = _session(user_text="alone")
        before = session.model_dump()

        await selector.select(session)

        assert session.model_dump() == before
