"""Dependency injection for API routes."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from clarity.classifier.adapter import ClassifierAdapter
from clarity.classifier.client import get_classifier_backend
from clarity.content.repository import ContentRepository
from clarity.content.sources import get_content_source
from clarity.core.config import routing_config, settings
from clarity.services.journey_builder import JourneyBuilder
from clarity.services.retry_policy import RetryPolicy
from clarity.services.session_store import SessionStore
from clarity.services.technique_selector import TechniqueSelector


@lru_cache(maxsize=1)
def get_retry_policy() -> RetryPolicy:
    """Process-wide retry/fallback bookkeeping shared by all content lookups."""
    return RetryPolicy(max_retries=routing_config.max_retries)


@lru_cache(maxsize=1)
def get_content_repository() -> ContentRepository:
    """Cached content repository.

    Created once per process so the content index is loaded once and every
    journey reads from the same query cache.
    """
    return ContentRepository(
        source=get_content_source(settings),
        retry_policy=get_retry_policy(),
        fetch_timeout=settings.content_fetch_timeout,
        retry_backoff_seconds=routing_config.retry_backoff_seconds,
    )


@lru_cache(maxsize=1)
def get_classifier_adapter() -> ClassifierAdapter:
    """Cached classifier adapter (no backend when classification is disabled)."""
    return ClassifierAdapter(
        get_classifier_backend(settings), timeout=settings.classifier_timeout
    )


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    """In-memory registry of live journeys, shared across requests."""
    content = get_content_repository()
    return SessionStore(
        content=content,
        selector=TechniqueSelector(content, get_classifier_adapter(), routing_config),
        builder=JourneyBuilder(content, routing_config),
        config=routing_config,
    )


# Type aliases for dependency injection
RetryPolicyDep = Annotated[RetryPolicy, Depends(get_retry_policy)]
ContentRepoDep = Annotated[ContentRepository, Depends(get_content_repository)]
SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
