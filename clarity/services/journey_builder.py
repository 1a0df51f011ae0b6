"""Journey sequence construction.

Turns a resolved Route into an ordered list of Steps plus the pool of
unused prompts that "try another angle" draws from.

Analytic journeys (CBT / Socratic):
    - CBT steps come from 'neutralize' mining prompts
    - Socratic steps come from 'commonGround' and 'dataExtraction' prompts
    - The technique's own type leads and the two types alternate
    - Length is clamped to [min_journey_steps, max_journey_steps]; short
      content is padded with generic prompts of the same types

ACT journeys use the steps of the topic's ACT defusion exercise.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from clarity.content.fallback import FALLBACK_ACT_EXERCISE, FALLBACK_MINING_PROMPTS
from clarity.content.repository import ContentRepository, MiningPrompt
from clarity.core.config import RoutingConfig
from clarity.domain.models.content import DataExtractionQuestion
from clarity.domain.models.session import Step, StepType, Technique
from clarity.services.technique_selector import GENERIC_SUBTOPIC, Route

log = structlog.get_logger(__name__)

GENERIC_PROMPTS: Dict[StepType, List[str]] = {
    StepType.CBT: list(FALLBACK_MINING_PROMPTS["neutralize"]),
    StepType.SOCRATIC: list(FALLBACK_MINING_PROMPTS["commonGround"])
    + list(FALLBACK_MINING_PROMPTS["dataExtraction"]),
}


@dataclass
class BuiltJourney:
    """Steps for the session plus unused prompts per step type."""

    steps: List[Step]
    alternative_pool: Dict[StepType, List[str]] = field(default_factory=dict)


def _render(prompt: MiningPrompt) -> str:
    if isinstance(prompt, DataExtractionQuestion):
        return prompt.as_prompt()
    return prompt


def _unique(prompts: List[str]) -> List[str]:
    return list(dict.fromkeys(p for p in prompts if p and p.strip()))


class JourneyBuilder:
    """Builds journey sequences from content repository lookups."""

    def __init__(self, content: ContentRepository, config: RoutingConfig):
        self.content = content
        self.config = config

    async def build(self, topic: Optional[str], route: Route, start_index: int = 0) -> BuiltJourney:
        """Build the sequence for `route`; step indexes start at start_index."""
        if route.technique == Technique.ACT:
            return await self.build_act(topic, start_index)

        prompts = await self._authored_prompts(topic, route)
        lead_type = StepType.CBT if route.technique == Technique.CBT else StepType.SOCRATIC
        follow_type = StepType.SOCRATIC if lead_type == StepType.CBT else StepType.CBT

        ordered = self._interleave(prompts[lead_type], lead_type, prompts[follow_type], follow_type)
        ordered = ordered[: self.config.max_journey_steps]

        if len(ordered) < self.config.min_journey_steps:
            ordered = self._pad(ordered, lead_type, follow_type)
            log.info(
                "journey_padded_with_generic_prompts",
                topic=topic,
                subtopic=route.subtopic_key,
                authored=sum(len(v) for v in prompts.values()),
                final_length=len(ordered),
            )

        steps = [
            Step(index=start_index + i, type=step_type, prompt=text)
            for i, (step_type, text) in enumerate(ordered)
        ]

        used = {text for _, text in ordered}
        pool = {
            step_type: [
                p
                for p in _unique(prompts[step_type] + GENERIC_PROMPTS[step_type])
                if p not in used
            ]
            for step_type in (StepType.CBT, StepType.SOCRATIC)
        }

        log.info(
            "journey_built",
            topic=topic,
            technique=route.technique.value,
            subtopic=route.subtopic_key,
            steps=len(steps),
        )
        return BuiltJourney(steps=steps, alternative_pool=pool)

    async def build_act(self, topic: Optional[str], start_index: int = 0) -> BuiltJourney:
        """Sequence from the ACT defusion exercise for `topic`."""
        exercise = await self.content.get_act_exercise(topic)

        texts = _unique(list(exercise.steps))[: self.config.max_journey_steps]
        for extra in FALLBACK_ACT_EXERCISE.steps:
            if len(texts) >= self.config.min_journey_steps:
                break
            if extra not in texts:
                texts.append(extra)

        steps = [
            Step(index=start_index + i, type=StepType.ACT, prompt=text)
            for i, text in enumerate(texts)
        ]
        log.info("act_journey_built", topic=topic, exercise=exercise.title, steps=len(steps))
        return BuiltJourney(steps=steps, alternative_pool={StepType.ACT: []})

    async def _authored_prompts(self, topic: Optional[str], route: Route) -> Dict[StepType, List[str]]:
        if not topic:
            return {StepType.CBT: [], StepType.SOCRATIC: []}

        subtopic = None if route.subtopic_key == GENERIC_SUBTOPIC else route.subtopic_key
        prompts = await self._prompts_for(topic, subtopic)

        if subtopic and not (prompts[StepType.CBT] or prompts[StepType.SOCRATIC]):
            log.info("subtopic_content_missing", topic=topic, subtopic=subtopic)
            prompts = await self._prompts_for(topic, None)
        return prompts

    async def _prompts_for(self, topic: str, subtopic: Optional[str]) -> Dict[StepType, List[str]]:
        neutralize = await self.content.get_mining_prompts(topic, "neutralize", subtopic)
        common_ground = await self.content.get_mining_prompts(topic, "commonGround", subtopic)
        data_extraction = await self.content.get_mining_prompts(topic, "dataExtraction", subtopic)

        return {
            StepType.CBT: _unique([_render(p) for p in neutralize]),
            StepType.SOCRATIC: _unique(
                [_render(p) for p in common_ground] + [_render(p) for p in data_extraction]
            ),
        }

    @staticmethod
    def _interleave(
        lead: List[str], lead_type: StepType, follow: List[str], follow_type: StepType
    ) -> List[tuple]:
        ordered = []
        seen = set()
        for i in range(max(len(lead), len(follow))):
            for prompts, step_type in ((lead, lead_type), (follow, follow_type)):
                if i < len(prompts) and prompts[i] not in seen:
                    seen.add(prompts[i])
                    ordered.append((step_type, prompts[i]))
        return ordered

    def _pad(self, ordered: List[tuple], lead_type: StepType, follow_type: StepType) -> List[tuple]:
        padded = list(ordered)
        used = {text for _, text in padded}
        queues = {
            step_type: [p for p in GENERIC_PROMPTS[step_type] if p not in used]
            for step_type in (lead_type, follow_type)
        }

        # Continue the alternation from wherever the authored part stopped
        next_type = lead_type
        if padded and padded[-1][0] == lead_type:
            next_type = follow_type

        while len(padded) < self.config.min_journey_steps and any(queues.values()):
            queue = queues[next_type]
            if queue:
                padded.append((next_type, queue.pop(0)))
            next_type = follow_type if next_type == lead_type else lead_type
        return padded
