"""Tests for the content repository."""

import asyncio

import pytest

from clarity.content.fallback import (
    FALLBACK_ACT_EXERCISE,
    FALLBACK_CATEGORIES,
    FALLBACK_MINING_PROMPTS,
)
from clarity.content.repository import LOAD_INDEX_KEY, distribute_levels
from clarity.core.exceptions import ValidationError
from clarity.domain.models.content import DataExtractionQuestion


class TestLoadIndex:
    """Loading, idempotence and fallback mode."""

    async def test_load_is_idempotent(self, repository, content_source):
        first = await repository.load_index()
        second = await repository.load_index()

        assert first is second
        assert content_source.fetch_count == 1
        assert repository.is_loaded
        assert not repository.fallback_mode

    async def test_concurrent_loads_share_one_fetch(self, make_repository):
        gate = asyncio.Event()
        repository, source = make_repository(gate=gate)

        tasks = [asyncio.create_task(repository.load_index()) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*tasks)

        assert source.fetch_count == 1
        assert all(r is results[0] for r in results)

    async def test_transient_failures_are_retried(self, make_repository, retry_policy):
        repository, source = make_repository(fail_times=2, policy=retry_policy)

        index = await repository.load_index()

        assert index.version == "2.1.0"
        assert source.fetch_count == 3
        assert not repository.fallback_mode
        assert retry_policy.attempts(LOAD_INDEX_KEY) == 0

    async def test_persistent_failure_enters_fallback_mode(self, make_repository, retry_policy):
        repository, source = make_repository(fail_times=100, policy=retry_policy)

        index = await repository.load_index()

        assert repository.fallback_mode
        assert index.fallback
        assert source.fetch_count == retry_policy.max_retries + 1
        assert retry_policy.is_exhausted(LOAD_INDEX_KEY)
        assert await repository.get_categories() == FALLBACK_CATEGORIES

    async def test_fallback_mode_is_sticky(self, make_repository):
        repository, source = make_repository(fail_times=1, max_retries=0)

        await repository.load_index()
        assert repository.fallback_mode

        # The source would now succeed, but the repository never reloads.
        await repository.load_index()
        assert repository.fallback_mode
        assert source.fetch_count == 1

    async def test_fallback_categories_are_deterministic(self, make_repository):
        first, _ = make_repository(fail_times=100, max_retries=0)
        second, _ = make_repository(data={"entries": "not a list"}, max_retries=1)

        expected = ["Money", "Relationships", "Self-Image"]
        assert await first.get_categories() == expected
        assert await first.get_categories() == expected
        assert await second.get_categories() == expected
        assert first.fallback_mode and second.fallback_mode

    async def test_invalid_document_counts_as_failure(self, make_repository):
        repository, source = make_repository(data={"entries": "not a list"}, max_retries=1)

        await repository.load_index()

        assert repository.fallback_mode
        assert source.fetch_count == 2

    async def test_fetch_timeout_counts_as_failure(self, make_repository):
        gate = asyncio.Event()  # never set
        repository, _ = make_repository(gate=gate, max_retries=0, fetch_timeout=0.01)

        await repository.load_index()

        assert repository.fallback_mode


class TestQueries:
    """Category, prompt and thought lookups."""

    async def test_categories_and_subcategories(self, repository):
        assert await repository.get_categories() == ["Money", "Romance", "Self-Image"]
        assert await repository.get_subcategories("Money") == [
            "Scarcity Mindset",
            "Financial Security",
            "Career",
        ]
        assert await repository.get_subcategories("Unknown") == []

    async def test_emotion_palette(self, repository):
        palette = await repository.get_emotion_palette("Romance")

        assert palette[0] == "lonely"
        assert len(palette) == 6

    async def test_unknown_topic_palette_uses_defaults(self, repository):
        assert await repository.get_emotion_palette("Hobbies") == [
            "anxious",
            "overwhelmed",
            "frustrated",
        ]

    async def test_mining_prompts_by_subcategory(self, repository):
        prompts = await repository.get_mining_prompts("Money", "neutralize", "Scarcity Mindset")
        career = await repository.get_mining_prompts("Money", "neutralize", "Career")
        everything = await repository.get_mining_prompts("Money", "neutralize")

        assert len(prompts) == 3
        assert len(career) == 1
        assert len(everything) == 4

    async def test_data_extraction_prompts_are_questions(self, repository):
        prompts = await repository.get_mining_prompts("Self-Image", "dataExtraction", "Imposter Syndrome")

        assert len(prompts) == 2
        assert all(isinstance(p, DataExtractionQuestion) for p in prompts)

    async def test_queries_are_cached(self, repository, content_source):
        first = await repository.get_mining_prompts("Money", "neutralize")
        second = await repository.get_mining_prompts("Money", "neutralize")

        assert first is second
        assert content_source.fetch_count == 1

    async def test_concurrent_identical_queries_share_resolution(self, repository, content_source):
        results = await asyncio.gather(
            *[repository.get_subcategories("Romance") for _ in range(4)]
        )

        assert all(r is results[0] for r in results)
        assert content_source.fetch_count == 1

    async def test_replacement_thoughts_by_level(self, repository):
        level1 = await repository.get_replacement_thoughts("Money", level=1)

        # One hierarchical entry plus one flat entry of four thoughts
        assert level1 == [
            "Money is a tool, and I am learning how to use it.",
            "My salary is a number, not a verdict on me.",
        ]

    async def test_replacement_thoughts_invalid_level(self, repository):
        with pytest.raises(ValidationError):
            await repository.get_replacement_thoughts("Money", level=5)

    async def test_hierarchical_thoughts_from_flat_entry(self, repository):
        thoughts = await repository.get_hierarchical_replacement_thoughts("Romance", "Rejection")

        assert thoughts.level1 == ["One person's no is not everyone's no."]
        assert thoughts.level4 == ["I deserve someone who chooses me too."]

    async def test_keyword_triggers_keep_declaration_order(self, repository):
        triggers = await repository.get_keyword_triggers("Romance")

        assert [subtopic for subtopic, _ in triggers] == ["Loneliness", "Abandonment", "Rejection"]
        assert "alone" in dict(triggers)["Loneliness"]

    async def test_act_exercise_topic_then_generic(self, repository):
        money = await repository.get_act_exercise("Money")
        generic = await repository.get_act_exercise("Romance")

        assert money.title == "Financial Worry Cloud"
        assert generic.title == "Thoughts as Leaves on a Stream"

    async def test_fallback_mode_queries_return_generic_content(self, make_repository):
        repository, _ = make_repository(fail_times=100, max_retries=0)

        prompts = await repository.get_mining_prompts("Money", "neutralize")
        exercise = await repository.get_act_exercise("Money")

        assert prompts == FALLBACK_MINING_PROMPTS["neutralize"]
        assert exercise == FALLBACK_ACT_EXERCISE

    async def test_search_ranks_matches(self, repository):
        results = await repository.search_content("lonely")

        assert results
        assert all("lonely" in r.text.lower() for r in results)
        assert results == sorted(results, key=lambda r: r.relevance, reverse=True)

    async def test_search_filters_by_category(self, repository):
        assert await repository.search_content("money", category="Romance") == []

    async def test_stats(self, repository):
        stats = await repository.get_stats()

        assert stats.version == "2.1.0"
        assert stats.categories == 3
        assert stats.total_entries == 6
        assert stats.subcategories_per_category["Money"] == 3
        assert not stats.fallback


class TestQueryFailures:
    """Query-level retry bookkeeping."""

    async def test_failing_query_returns_fallback_until_exhausted(self, repository, retry_policy):
        calls = []

        def broken(index):
            calls.append(1)
            raise RuntimeError("boom")

        results = [
            await repository._cached("broken", ("x",), broken, lambda: "fallback")
            for _ in range(6)
        ]

        assert results == ["fallback"] * 6
        # three retryable failures, one that exhausts, then cached fallback
        assert len(calls) == retry_policy.max_retries + 1
        assert retry_policy.is_exhausted("content.broken")


def test_distribute_levels_splits_evenly():
    levels = distribute_levels(["a", "b", "c", "d", "e"])

    assert levels == {1: ["a", "b"], 2: ["c", "d"], 3: ["e"], 4: []}


def test_distribute_levels_empty():
    assert distribute_levels([]) == {1: [], 2: [], 3: [], 4: []}
