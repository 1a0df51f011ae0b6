"""
Shared test fixtures.

Content comes from the bundled content/content_index.json, served through
an in-memory source that counts fetches and can be told to fail or block.
"""

import asyncio
import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from clarity.classifier.adapter import ClassifierAdapter
from clarity.classifier.client import ClassifierBackend
from clarity.content.repository import ContentRepository
from clarity.content.sources import ContentSource
from clarity.core.config import RoutingConfig
from clarity.core.exceptions import ContentLoadFailure
from clarity.domain.models.classification import LabelScore
from clarity.services.journey_builder import JourneyBuilder
from clarity.services.journey_service import JourneyStateMachine
from clarity.services.retry_policy import RetryPolicy
from clarity.services.technique_selector import TechniqueSelector

CONTENT_INDEX_PATH = Path(__file__).resolve().parent.parent / "content" / "content_index.json"


class FakeContentSource(ContentSource):
    """In-memory content source with scripted failures."""

    def __init__(
        self,
        data: Dict[str, Any],
        fail_times: int = 0,
        gate: Optional[asyncio.Event] = None,
    ):
        self.data = data
        self.fail_times = fail_times
        self.gate = gate
        self.fetch_count = 0

    async def fetch(self) -> Dict[str, Any]:
        self.fetch_count += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fetch_count <= self.fail_times:
            raise ContentLoadFailure(f"scripted failure {self.fetch_count}")
        return copy.deepcopy(self.data)


class FakeClassifierBackend(ClassifierBackend):
    """Returns canned scores, or raises / hangs when told to."""

    def __init__(
        self,
        scores: Optional[List[LabelScore]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.scores = scores or []
        self.error = error
        self.delay = delay
        self.calls: List[str] = []

    async def score(self, text: str, candidate_labels: List[str]) -> List[LabelScore]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.scores)


@pytest.fixture
def sample_index_data() -> Dict[str, Any]:
    """Decoded bundled content index."""
    return json.loads(CONTENT_INDEX_PATH.read_text(encoding="utf-8"))


@pytest.fixture
def routing_config() -> RoutingConfig:
    return RoutingConfig(retry_backoff_seconds=0.0)


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3)


@pytest.fixture
def content_source(sample_index_data) -> FakeContentSource:
    return FakeContentSource(sample_index_data)


@pytest.fixture
def repository(content_source, retry_policy) -> ContentRepository:
    return ContentRepository(content_source, retry_policy, fetch_timeout=1.0)


@pytest.fixture
def classifier_backend() -> FakeClassifierBackend:
    return FakeClassifierBackend()


@pytest.fixture
def classifier(classifier_backend) -> ClassifierAdapter:
    return ClassifierAdapter(classifier_backend, timeout=0.5)


@pytest.fixture
def selector(repository, classifier, routing_config) -> TechniqueSelector:
    return TechniqueSelector(repository, classifier, routing_config)


@pytest.fixture
def builder(repository, routing_config) -> JourneyBuilder:
    return JourneyBuilder(repository, routing_config)


@pytest.fixture
def machine(repository, selector, builder, routing_config) -> JourneyStateMachine:
    return JourneyStateMachine(repository, selector, builder, routing_config)


@pytest.fixture
def make_repository(sample_index_data):
    """Factory for a repository over a scripted source; returns (repository, source)."""

    def _make(
        data: Optional[Dict[str, Any]] = None,
        fail_times: int = 0,
        gate: Optional[asyncio.Event] = None,
        max_retries: int = 3,
        fetch_timeout: float = 1.0,
        policy: Optional[RetryPolicy] = None,
    ):
        source = FakeContentSource(
            sample_index_data if data is None else data, fail_times=fail_times, gate=gate
        )
        policy = policy or RetryPolicy(max_retries=max_retries)
        return ContentRepository(source, policy, fetch_timeout=fetch_timeout), source

    return _make
