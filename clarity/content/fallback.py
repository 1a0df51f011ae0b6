"""Built-in fallback content.

Used when the content index cannot be loaded, and to pad journeys whose
authored content is too short. Everything here is topic-agnostic so the
worst case is a generic reflection journey, never a broken one.
"""

from typing import Dict, List

from clarity.domain.models.content import (
    ACTExercise,
    ContentEntry,
    ContentIndex,
    ContentMetadata,
    MiningPrompts,
)

FALLBACK_VERSION = "fallback"

FALLBACK_CATEGORIES: List[str] = ["Money", "Relationships", "Self-Image"]

FALLBACK_SUBCATEGORIES: Dict[str, List[str]] = {
    "Money": ["Financial Security", "Abundance", "Career"],
    "Relationships": ["Self-Love", "Communication", "Boundaries"],
    "Self-Image": ["Self-Worth", "Confidence", "Growth"],
}

FALLBACK_MINING_PROMPTS: Dict[str, List[str]] = {
    "neutralize": [
        "What if this thought is just information, not truth?",
        "Can I observe this thought without becoming it?",
        "What would I tell a friend having this thought?",
        "Is this thought helping or hurting me right now?",
        "What if I could hold this thought more lightly?",
    ],
    "commonGround": [
        "What is this thought trying to protect me from?",
        "When did I first learn to think this way?",
        "What positive intention might be behind this thought?",
        "How has this thought served me in the past?",
        "What does this thought want me to know?",
    ],
    "dataExtraction": [
        "Is this thought about the past or the future?",
        "Does this thought make me feel expanded or contracted?",
        "Is this thought based on facts or assumptions?",
        "Does this thought move me toward or away from my goals?",
        "Is this thought coming from fear or love?",
    ],
}

FALLBACK_REPLACEMENT_THOUGHTS: List[str] = [
    "I am learning and growing every day.",
    "I can handle whatever comes my way.",
    "This feeling is temporary and will pass.",
    "I choose thoughts that serve my wellbeing.",
    "I am worthy of love and respect.",
]

FALLBACK_EMOTIONS: Dict[str, List[str]] = {
    "Money": ["anxious", "resentful", "overwhelmed", "insecure", "ashamed", "fearful"],
    "Romance": ["lonely", "rejected", "unworthy", "desperate", "heartbroken", "jealous"],
    "Relationships": ["lonely", "rejected", "resentful", "misunderstood", "hurt", "anxious"],
    "Self-Image": [
        "inadequate",
        "worthless",
        "embarrassed",
        "disappointed",
        "self-critical",
        "defeated",
    ],
}

DEFAULT_EMOTIONS: List[str] = ["anxious", "overwhelmed", "frustrated"]

FALLBACK_ACT_EXERCISE = ACTExercise(
    title="Thoughts as Leaves on a Stream",
    instructions=(
        "A gentle exercise for creating space between you and any difficult thoughts."
    ),
    steps=[
        "Imagine yourself sitting beside a gently flowing stream on a peaceful day.",
        "Notice leaves floating down the stream, some moving quickly, others slowly.",
        "As thoughts arise in your mind, place each one on a leaf and watch it float downstream.",
        "You might see leaves labeled with worries, judgments, fears, or painful memories.",
        "Don't try to stop the leaves or push them away. Simply observe them floating by.",
        "If you find yourself getting caught up in a thought, gently return to your place by the stream.",
        "You are not the leaves or the thoughts they carry. You are the observer by the water.",
    ],
    closing=(
        "Thoughts come and go like leaves on a stream. "
        "You are the constant, aware presence watching from the shore."
    ),
)


def fallback_emotions(topic: str) -> List[str]:
    return list(FALLBACK_EMOTIONS.get(topic, DEFAULT_EMOTIONS))


def build_fallback_index() -> ContentIndex:
    """Minimal index installed when loading is abandoned."""
    entries = [
        ContentEntry(
            category=category,
            subcategories=FALLBACK_SUBCATEGORIES[category],
            mining_prompts=MiningPrompts(
                neutralize=FALLBACK_MINING_PROMPTS["neutralize"],
                common_ground=FALLBACK_MINING_PROMPTS["commonGround"],
                data_extraction=FALLBACK_MINING_PROMPTS["dataExtraction"],
            ),
            replacement_thoughts=FALLBACK_REPLACEMENT_THOUGHTS,
        )
        for category in FALLBACK_CATEGORIES
    ]

    return ContentIndex(
        version=FALLBACK_VERSION,
        metadata=ContentMetadata(
            categories=list(FALLBACK_CATEGORIES),
            subcategories={k: list(v) for k, v in FALLBACK_SUBCATEGORIES.items()},
            emotions={k: fallback_emotions(k) for k in FALLBACK_CATEGORIES},
            total_entries=len(entries),
            total_chunks=0,
        ),
        entries=entries,
        act_defusion_exercises={"generic": FALLBACK_ACT_EXERCISE},
        fallback=True,
    )
