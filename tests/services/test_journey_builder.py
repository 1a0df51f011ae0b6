"""Tests for journey sequence construction."""

import copy

from clarity.content.fallback import FALLBACK_ACT_EXERCISE
from clarity.domain.models.session import StepType, Technique
from clarity.services.journey_builder import GENERIC_PROMPTS, JourneyBuilder
from clarity.services.technique_selector import GENERIC_SUBTOPIC, Route, RouteReason


def _route(technique, subtopic, reason=RouteReason.CLASSIFIER):
    return Route(technique, subtopic, reason)


async def test_cbt_journey_leads_with_cbt_and_is_capped(builder):
    built = await builder.build("Money", _route(Technique.CBT, "Scarcity Mindset"))

    types = [s.type for s in built.steps]
    assert len(built.steps) == 7
    assert types[:4] == [StepType.CBT, StepType.SOCRATIC, StepType.CBT, StepType.SOCRATIC]
    assert [s.index for s in built.steps] == list(range(7))
    assert not any(s.completed for s in built.steps)


async def test_socratic_journey_leads_with_socratic(builder):
    built = await builder.build("Romance", _route(Technique.SOCRATIC, "Loneliness"))

    assert built.steps[0].type == StepType.SOCRATIC
    assert 5 <= len(built.steps) <= 7


async def test_short_content_padded_with_generic_prompts(builder):
    built = await builder.build("Money", _route(Technique.SOCRATIC, "Career"))

    assert len(built.steps) == 5
    assert [s.type for s in built.steps] == [
        StepType.SOCRATIC,
        StepType.CBT,
        StepType.SOCRATIC,
        StepType.CBT,
        StepType.SOCRATIC,
    ]
    generic = set(GENERIC_PROMPTS[StepType.CBT] + GENERIC_PROMPTS[StepType.SOCRATIC])
    assert sum(1 for s in built.steps if s.prompt in generic) == 3


async def test_data_extraction_questions_rendered(builder):
    built = await builder.build("Self-Image", _route(Technique.SOCRATIC, "Imposter Syndrome"))

    assert any(" or " in s.prompt and s.prompt.endswith("?") for s in built.steps)
    assert all(isinstance(s.prompt, str) for s in built.steps)


async def test_missing_subtopic_uses_topic_wide_content(builder, repository):
    built = await builder.build("Money", _route(Technique.CBT, "Numbness"))
    topic_wide = await repository.get_mining_prompts("Money", "neutralize")

    assert len(built.steps) == 7
    assert built.steps[0].prompt == topic_wide[0]


async def test_generic_route_uses_topic_wide_content(builder):
    built = await builder.build(
        "Romance", _route(Technique.SOCRATIC, GENERIC_SUBTOPIC, RouteReason.GENERIC_FALLBACK)
    )

    assert 5 <= len(built.steps) <= 7


async def test_alternative_pool_excludes_used_prompts(builder):
    built = await builder.build("Money", _route(Technique.CBT, "Scarcity Mindset"))

    used = {s.prompt for s in built.steps}
    for step_type in (StepType.CBT, StepType.SOCRATIC):
        assert built.alternative_pool[step_type]
        assert not used & set(built.alternative_pool[step_type])


async def test_prompts_not_repeated_within_journey(builder):
    built = await builder.build("Self-Image", _route(Technique.CBT, "Imposter Syndrome"))

    prompts = [s.prompt for s in built.steps]
    assert len(prompts) == len(set(prompts))


async def test_act_journey_uses_topic_exercise(builder):
    built = await builder.build("Money", _route(Technique.ACT, "act_defusion", RouteReason.HIGH_INTENSITY))

    assert len(built.steps) == 6
    assert all(s.type == StepType.ACT for s in built.steps)
    assert built.steps[0].prompt == "Close your eyes and picture a wide open sky."
    assert built.alternative_pool == {StepType.ACT: []}


async def test_act_steps_continue_existing_indexes(builder):
    built = await builder.build_act("Money", start_index=3)

    assert built.steps[0].index == 3


async def test_short_act_exercise_padded(make_repository, sample_index_data, routing_config):
    data = copy.deepcopy(sample_index_data)
    data["actDefusionExercises"] = {
        "generic": {"title": "Short", "instructions": "x", "steps": ["Breathe.", "Notice."]}
    }
    repository, _ = make_repository(data=data)
    builder = JourneyBuilder(repository, routing_config)

    built = await builder.build_act("Romance")

    assert len(built.steps) == 5
    assert built.steps[2].prompt == FALLBACK_ACT_EXERCISE.steps[0]


async def test_fallback_content_still_builds_full_journey(make_repository, routing_config):
    repository, _ = make_repository(fail_times=100, max_retries=0)
    builder = JourneyBuilder(repository, routing_config)

    built = await builder.build("Money", _route(Technique.CBT, GENERIC_SUBTOPIC, RouteReason.GENERIC_FALLBACK))

    assert 5 <= len(built.steps) <= 7
