"""Content index domain models.

The content index is produced by an external build step and consumed
read-only here. Field aliases match the camelCase JSON document:

    {
      "version": "2.1.0",
      "metadata": {"categories": [...], "subcategories": {...}, "emotions": {...}},
      "entries": [ContentEntry, ...],
      "actDefusionExercises": {"generic": {...}, "Money": {...}}
    }

Replacement thoughts come in two shapes: a flat list (legacy content) or a
map from level 1-4 to lists (hierarchical content).
"""

import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

HIERARCHY_LEVELS = (1, 2, 3, 4)

_LEVEL_KEY = re.compile(r"^(?:level)?\s*([1-4])$", re.IGNORECASE)


class DataExtractionQuestion(BaseModel):
    """Either/or question used by the data-extraction mining card."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    question: str
    option_a: str = Field(alias="optionA")
    option_b: str = Field(alias="optionB")

    def as_prompt(self) -> str:
        """Render as a single opaque prompt string."""
        question = self.question.rstrip().rstrip("?")
        return f"{question}: {self.option_a} or {self.option_b}?"


class MiningPrompts(BaseModel):
    """Thought-mining prompts grouped by card type."""

    model_config = ConfigDict(populate_by_name=True)

    neutralize: List[str] = Field(default_factory=list)
    common_ground: List[str] = Field(default_factory=list, alias="commonGround")
    data_extraction: List[Union[str, DataExtractionQuestion]] = Field(
        default_factory=list, alias="dataExtraction"
    )

    def of_type(self, prompt_type: str) -> List[Union[str, DataExtractionQuestion]]:
        """Look up prompts by JSON name ('commonGround') or field name."""
        field_name = MINING_PROMPT_TYPES.get(prompt_type)
        if field_name is None and prompt_type in MINING_PROMPT_TYPES.values():
            field_name = prompt_type
        if field_name is None:
            return []
        return list(getattr(self, field_name))


# JSON name -> field name
MINING_PROMPT_TYPES: Dict[str, str] = {
    "neutralize": "neutralize",
    "commonGround": "common_ground",
    "dataExtraction": "data_extraction",
}


class ContentChunk(BaseModel):
    """Searchable text chunk attached to an entry."""

    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ContentEntry(BaseModel):
    """One authored unit of content. Immutable once loaded."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    category: str
    subcategories: List[str] = Field(default_factory=list)
    mining_prompts: MiningPrompts = Field(
        default_factory=MiningPrompts, alias="miningPrompts"
    )
    replacement_thoughts: Union[Dict[int, List[str]], List[str]] = Field(
        default_factory=list, alias="replacementThoughts"
    )
    keyword_triggers: Dict[str, List[str]] = Field(
        default_factory=dict, alias="keywordTriggers"
    )
    chunks: List[ContentChunk] = Field(default_factory=list)

    @field_validator("subcategories", mode="before")
    @classmethod
    def dedupe_subcategories(cls, v: Any) -> Any:
        """Keep declaration order, drop duplicates (a set in the data model)."""
        if isinstance(v, list):
            return list(dict.fromkeys(v))
        return v

    @field_validator("replacement_thoughts", mode="before")
    @classmethod
    def normalize_levels(cls, v: Any) -> Any:
        """Accept "1", "level1" or 1 as hierarchical level keys."""
        if not isinstance(v, dict):
            return v
        normalized: Dict[int, List[str]] = {}
        for key, thoughts in v.items():
            match = _LEVEL_KEY.match(str(key).strip())
            if not match:
                raise ValueError(f"Unknown replacement thought level: {key!r}")
            normalized[int(match.group(1))] = thoughts
        return normalized

    @property
    def is_hierarchical(self) -> bool:
        return isinstance(self.replacement_thoughts, dict)

    def matches(self, category: str, subcategory: Optional[str] = None) -> bool:
        if self.category != category:
            return False
        return subcategory is None or subcategory in self.subcategories


class ACTExercise(BaseModel):
    """ACT defusion exercise shown for high-distress or stalled journeys."""

    title: str
    instructions: str
    steps: List[str] = Field(default_factory=list)
    closing: str = ""


class ContentMetadata(BaseModel):
    """Index-level metadata."""

    model_config = ConfigDict(populate_by_name=True)

    categories: List[str] = Field(default_factory=list)
    subcategories: Dict[str, List[str]] = Field(default_factory=dict)
    emotions: Dict[str, List[str]] = Field(default_factory=dict)
    total_entries: Optional[int] = Field(default=None, alias="totalEntries")
    total_chunks: Optional[int] = Field(default=None, alias="totalChunks")


class ContentIndex(BaseModel):
    """Versioned content index. Loaded at most once per process."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: str = "unknown"
    timestamp: Optional[Union[int, float, str]] = None
    metadata: ContentMetadata = Field(default_factory=ContentMetadata)
    entries: List[ContentEntry] = Field(default_factory=list)
    act_defusion_exercises: Dict[str, ACTExercise] = Field(
        default_factory=dict, alias="actDefusionExercises"
    )
    fallback: bool = False


class HierarchicalThoughts(BaseModel):
    """Replacement thoughts split into four levels.

    Level 1 is the most neutral and believable, level 4 the most empowered.
    """

    level1: List[str] = Field(default_factory=list)
    level2: List[str] = Field(default_factory=list)
    level3: List[str] = Field(default_factory=list)
    level4: List[str] = Field(default_factory=list)

    def level(self, n: int) -> List[str]:
        return getattr(self, f"level{n}")


class SearchResult(BaseModel):
    """Chunk match returned by content search."""

    text: str
    category: str
    subcategories: List[str]
    metadata: Dict[str, Any] = Field(default_factory=dict)
    relevance: float


class ContentStats(BaseModel):
    """Summary of the loaded content index."""

    version: str
    timestamp: Optional[Union[int, float, str]] = None
    categories: int
    total_entries: int
    total_chunks: int
    subcategories_per_category: Dict[str, int]
    fallback: bool
