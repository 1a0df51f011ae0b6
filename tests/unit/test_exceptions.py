"""Tests for exception hierarchy."""

import pytest


def test_exception_hierarchy():
    """All exceptions inherit from ClarityError."""
    from clarity.core.exceptions import (
        ClarityError,
        ClassificationUnavailable,
        ConfigurationError,
        ContentError,
        ContentLoadFailure,
        InvalidAction,
        InvalidTransition,
        JourneyError,
        RetryExhausted,
        SessionNotFoundError,
        ValidationError,
    )

    assert issubclass(ConfigurationError, ClarityError)
    assert issubclass(ValidationError, ClarityError)
    assert issubclass(JourneyError, ClarityError)
    assert issubclass(InvalidTransition, JourneyError)
    assert issubclass(InvalidAction, JourneyError)
    assert issubclass(SessionNotFoundError, JourneyError)
    assert issubclass(ContentLoadFailure, ContentError)
    assert issubclass(RetryExhausted, ContentError)
    assert issubclass(ClassificationUnavailable, ClarityError)


def test_invalid_transition_carries_states():
    from clarity.core.exceptions import InvalidTransition

    with pytest.raises(InvalidTransition) as exc_info:
        raise InvalidTransition("landing", "completion")

    assert exc_info.value.source == "landing"
    assert exc_info.value.target == "completion"
    assert exc_info.value.message == "Invalid transition: landing -> completion"


def test_retry_exhausted_message():
    from clarity.core.exceptions import RetryExhausted

    error = RetryExhausted("content.load_index", 3)

    assert error.key == "content.load_index"
    assert error.attempts == 3
    assert "content.load_index" in str(error)
