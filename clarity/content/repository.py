"""Content repository.

Loads the versioned content index once per process and serves cached,
deduplicated lookups by category, subcategory, level and prompt type.

Loading:
    load_index() is idempotent and single-flight: concurrent callers join
    the load already running. Failures go through the shared RetryPolicy;
    once its budget for "content.load_index" is exhausted, the built-in
    fallback index is installed and the repository stays in fallback mode
    for the rest of its lifetime.

Queries:
    Every query is cached by its exact argument tuple. Concurrent identical
    queries share one in-flight resolution. Cached values are shared
    objects; callers must treat them as read-only.
"""

import asyncio
import math
import re
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from clarity.content.fallback import (
    FALLBACK_ACT_EXERCISE,
    FALLBACK_CATEGORIES,
    FALLBACK_MINING_PROMPTS,
    FALLBACK_REPLACEMENT_THOUGHTS,
    FALLBACK_SUBCATEGORIES,
    build_fallback_index,
    fallback_emotions,
)
from clarity.content.single_flight import SingleFlight
from clarity.content.sources import ContentSource
from clarity.core.exceptions import ContentLoadFailure, ValidationError
from clarity.domain.models.content import (
    ACTExercise,
    ContentIndex,
    ContentStats,
    DataExtractionQuestion,
    HIERARCHY_LEVELS,
    HierarchicalThoughts,
    SearchResult,
)
from clarity.services.retry_policy import RetryPolicy

log = structlog.get_logger(__name__)

T = TypeVar("T")

LOAD_INDEX_KEY = "content.load_index"

MiningPrompt = Union[str, DataExtractionQuestion]


def distribute_levels(thoughts: List[str]) -> Dict[int, List[str]]:
    """Split a flat legacy list into four levels of ceil(n/4) thoughts.

    Assumes the authored order already runs from most neutral to most
    empowered; trailing levels may be shorter or empty.
    """
    per_level = math.ceil(len(thoughts) / len(HIERARCHY_LEVELS))
    return {
        level: thoughts[i * per_level : (i + 1) * per_level]
        for i, level in enumerate(HIERARCHY_LEVELS)
    }


class ContentRepository:
    """
    Process-wide, read-only content access with single-flight caching.

    Constructed once and handed to every journey; holds no session state.
    """

    def __init__(
        self,
        source: ContentSource,
        retry_policy: RetryPolicy,
        fetch_timeout: float = 10.0,
        retry_backoff_seconds: float = 0.0,
    ):
        """
        Args:
            source: Where the raw content index comes from
            retry_policy: Shared retry/fallback bookkeeping
            fetch_timeout: Seconds before a fetch counts as failed
            retry_backoff_seconds: Base delay between load attempts (doubles)
        """
        self._source = source
        self._policy = retry_policy
        self._fetch_timeout = fetch_timeout
        self._retry_backoff = retry_backoff_seconds

        self._index: Optional[ContentIndex] = None
        self._fallback_mode = False
        self._flights = SingleFlight()
        self._cache: Dict[Tuple[Any, ...], Any] = {}

    # ------------------------------------------------------------------
    # Index loading
    # ------------------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        return self._index is not None

    @property
    def fallback_mode(self) -> bool:
        return self._fallback_mode

    async def load_index(self) -> ContentIndex:
        """Load the content index, at most one load in flight at a time."""
        if self._index is not None:
            return self._index
        return await self._flights.do(("load_index",), self._perform_load)

    async def _perform_load(self) -> ContentIndex:
        if self._index is not None:
            return self._index

        while True:
            outcome = await self._policy.with_retry(
                LOAD_INDEX_KEY,
                self._fetch_index,
                None,
                source=self._source.describe(),
            )

            if outcome.success:
                self._index = outcome.value
                self._policy.clear_retry_attempts(LOAD_INDEX_KEY)
                log.info(
                    "content_index_loaded",
                    version=self._index.version,
                    categories=len(self._index.metadata.categories),
                    entries=len(self._index.entries),
                )
                return self._index

            if not outcome.retryable:
                return self._enter_fallback_mode(outcome.error)

            delay = self._retry_backoff * (2 ** (outcome.attempts - 1))
            if delay > 0:
                log.info(
                    "content_index_retry_scheduled",
                    delay_seconds=delay,
                    attempt=outcome.attempts,
                )
                await asyncio.sleep(delay)

    async def _fetch_index(self) -> ContentIndex:
        try:
            raw = await asyncio.wait_for(
                self._source.fetch(), timeout=self._fetch_timeout
            )
        except asyncio.TimeoutError as e:
            raise ContentLoadFailure(
                f"Content index fetch timed out after {self._fetch_timeout}s"
            ) from e

        try:
            return ContentIndex.model_validate(raw)
        except PydanticValidationError as e:
            raise ContentLoadFailure(
                f"Content index failed validation ({e.error_count()} errors)"
            ) from e

    def _enter_fallback_mode(self, error: Optional[BaseException]) -> ContentIndex:
        self._index = build_fallback_index()
        self._fallback_mode = True
        log.warning(
            "content_fallback_mode_enabled",
            source=self._source.describe(),
            error_type=type(error).__name__ if error else None,
            message=str(error) if error else None,
            cause=str(error.__cause__) if error and error.__cause__ else None,
        )
        return self._index

    # ------------------------------------------------------------------
    # Cached query plumbing
    # ------------------------------------------------------------------

    async def _cached(
        self,
        operation: str,
        args: Tuple[Any, ...],
        compute: Callable[[ContentIndex], T],
        fallback: Callable[[], T],
    ) -> T:
        key = (operation, *args)
        if key in self._cache:
            log.debug("content_cache_hit", operation=operation, args=args)
            return self._cache[key]

        return await self._flights.do(
            key, lambda: self._resolve(key, operation, compute, fallback)
        )

    async def _resolve(
        self,
        key: Tuple[Any, ...],
        operation: str,
        compute: Callable[[ContentIndex], T],
        fallback: Callable[[], T],
    ) -> T:
        index = await self.load_index()
        policy_key = f"content.{operation}"

        async def run() -> T:
            return compute(index)

        outcome = await self._policy.with_retry(
            policy_key, run, fallback(), args=key[1:]
        )
        if outcome.success:
            if self._policy.attempts(policy_key):
                self._policy.clear_retry_attempts(policy_key)
            self._cache[key] = outcome.value
        elif outcome.exhausted:
            # Budget consumed: the fallback becomes the cached answer.
            self._cache[key] = outcome.value
        return outcome.value

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_categories(self) -> List[str]:
        """All top-level categories, in index order."""

        def compute(index: ContentIndex) -> List[str]:
            if index.metadata.categories:
                return list(index.metadata.categories)
            return list(dict.fromkeys(e.category for e in index.entries))

        return await self._cached(
            "get_categories", (), compute, lambda: list(FALLBACK_CATEGORIES)
        )

    async def get_subcategories(self, category: str) -> List[str]:
        """Subcategories of `category` (metadata first, then entry order)."""

        def compute(index: ContentIndex) -> List[str]:
            declared = index.metadata.subcategories.get(category)
            if declared:
                return list(declared)
            subcategories: List[str] = []
            for entry in index.entries:
                if entry.category == category:
                    subcategories.extend(entry.subcategories)
            return list(dict.fromkeys(subcategories))

        return await self._cached(
            "get_subcategories",
            (category,),
            compute,
            lambda: list(FALLBACK_SUBCATEGORIES.get(category, [])),
        )

    async def get_emotion_palette(self, topic: str) -> List[str]:
        """Emotions a user may pick for `topic`."""

        def compute(index: ContentIndex) -> List[str]:
            palette = index.metadata.emotions.get(topic)
            return list(palette) if palette else fallback_emotions(topic)

        return await self._cached(
            "get_emotion_palette",
            (topic,),
            compute,
            lambda: fallback_emotions(topic),
        )

    async def get_mining_prompts(
        self,
        category: str,
        prompt_type: str,
        subcategory: Optional[str] = None,
    ) -> List[MiningPrompt]:
        """Mining prompts of one type ('neutralize', 'commonGround',
        'dataExtraction') across entries matching category/subcategory."""

        def compute(index: ContentIndex) -> List[MiningPrompt]:
            prompts: List[MiningPrompt] = []
            for entry in index.entries:
                if entry.matches(category, subcategory):
                    prompts.extend(entry.mining_prompts.of_type(prompt_type))
            return prompts

        return await self._cached(
            "get_mining_prompts",
            (category, prompt_type, subcategory),
            compute,
            lambda: list(FALLBACK_MINING_PROMPTS.get(prompt_type, [])),
        )

    async def get_replacement_thoughts(
        self,
        category: str,
        subcategory: Optional[str] = None,
        level: Optional[int] = None,
    ) -> List[str]:
        """Replacement thoughts, optionally restricted to one level (1-4)."""
        if level is not None and level not in HIERARCHY_LEVELS:
            raise ValidationError(f"Replacement thought level must be 1-4, got {level}")

        def compute(index: ContentIndex) -> List[str]:
            thoughts: List[str] = []
            for entry in index.entries:
                if not entry.matches(category, subcategory):
                    continue
                if level is None:
                    if entry.is_hierarchical:
                        for lvl in HIERARCHY_LEVELS:
                            thoughts.extend(entry.replacement_thoughts.get(lvl, []))
                    else:
                        thoughts.extend(entry.replacement_thoughts)
                else:
                    thoughts.extend(self._entry_levels(entry).get(level, []))
            return thoughts

        def fallback() -> List[str]:
            if level is None:
                return list(FALLBACK_REPLACEMENT_THOUGHTS)
            return distribute_levels(FALLBACK_REPLACEMENT_THOUGHTS)[level]

        return await self._cached(
            "get_replacement_thoughts",
            (category, subcategory, level),
            compute,
            fallback,
        )

    async def get_hierarchical_replacement_thoughts(
        self,
        category: str,
        subcategory: Optional[str] = None,
    ) -> HierarchicalThoughts:
        """Replacement thoughts grouped into level1..level4.

        Hierarchical entries pass through unchanged; each legacy flat list
        is redistributed evenly across the four levels.
        """

        def compute(index: ContentIndex) -> HierarchicalThoughts:
            levels: Dict[int, List[str]] = {lvl: [] for lvl in HIERARCHY_LEVELS}
            for entry in index.entries:
                if not entry.matches(category, subcategory):
                    continue
                for lvl, thoughts in self._entry_levels(entry).items():
                    levels[lvl].extend(thoughts)
            return HierarchicalThoughts(**{f"level{k}": v for k, v in levels.items()})

        def fallback() -> HierarchicalThoughts:
            levels = distribute_levels(FALLBACK_REPLACEMENT_THOUGHTS)
            return HierarchicalThoughts(**{f"level{k}": v for k, v in levels.items()})

        return await self._cached(
            "get_hierarchical_replacement_thoughts",
            (category, subcategory),
            compute,
            fallback,
        )

    @staticmethod
    def _entry_levels(entry) -> Dict[int, List[str]]:
        if entry.is_hierarchical:
            return {
                lvl: list(entry.replacement_thoughts.get(lvl, []))
                for lvl in HIERARCHY_LEVELS
            }
        return distribute_levels(list(entry.replacement_thoughts))

    async def get_keyword_triggers(self, category: str) -> List[Tuple[str, List[str]]]:
        """(subcategory, trigger words) pairs in content-index declaration order."""

        def compute(index: ContentIndex) -> List[Tuple[str, List[str]]]:
            merged: Dict[str, List[str]] = {}
            for entry in index.entries:
                if entry.category != category:
                    continue
                for subcategory, keywords in entry.keyword_triggers.items():
                    merged.setdefault(subcategory, []).extend(keywords)
            return list(merged.items())

        return await self._cached("get_keyword_triggers", (category,), compute, list)

    async def get_act_exercise(self, topic: Optional[str]) -> ACTExercise:
        """Topic-specific ACT defusion exercise, else generic, else built-in."""

        def compute(index: ContentIndex) -> ACTExercise:
            exercises = index.act_defusion_exercises
            if topic and topic in exercises:
                return exercises[topic]
            return exercises.get("generic", FALLBACK_ACT_EXERCISE)

        return await self._cached(
            "get_act_exercise", (topic,), compute, lambda: FALLBACK_ACT_EXERCISE
        )

    async def search_content(
        self, query: str, category: Optional[str] = None
    ) -> List[SearchResult]:
        """Case-insensitive substring search over entry chunks, best first."""
        index = await self.load_index()
        query_lower = query.lower().strip()
        if not query_lower:
            return []

        results: List[SearchResult] = []
        for entry in index.entries:
            if category and entry.category != category:
                continue
            for chunk in entry.chunks:
                if query_lower in chunk.text.lower():
                    results.append(
                        SearchResult(
                            text=chunk.text,
                            category=entry.category,
                            subcategories=list(entry.subcategories),
                            metadata=dict(chunk.metadata),
                            relevance=_relevance(chunk.text, query_lower),
                        )
                    )

        results.sort(key=lambda r: r.relevance, reverse=True)
        return results

    async def get_stats(self) -> ContentStats:
        """Version, counts and subcategories per category of the loaded index."""
        index = await self.load_index()
        metadata = index.metadata
        return ContentStats(
            version=index.version,
            timestamp=index.timestamp,
            categories=len(metadata.categories),
            total_entries=(
                metadata.total_entries
                if metadata.total_entries is not None
                else len(index.entries)
            ),
            total_chunks=(
                metadata.total_chunks
                if metadata.total_chunks is not None
                else sum(len(e.chunks) for e in index.entries)
            ),
            subcategories_per_category={
                cat: len(subs) for cat, subs in metadata.subcategories.items()
            },
            fallback=index.fallback or self._fallback_mode,
        )


def _relevance(text: str, query_lower: str) -> float:
    """Exact-match count plus a boost for shorter texts."""
    exact_matches = len(re.findall(re.escape(query_lower), text.lower()))
    length_boost = 100.0 / max(len(text), 1)
    return exact_matches + length_boost
