"""Tests for the in-memory journey registry."""

import pytest

from clarity.core.exceptions import SessionNotFoundError
from clarity.domain.models.journey_state import JourneyState
from clarity.services.session_store import SessionStore


@pytest.fixture
def store(repository, selector, builder, routing_config):
    return SessionStore(repository, selector, builder, routing_config)


def test_create_and_get(store):
    machine = store.create()

    assert store.get(machine.id) is machine
    assert machine.current_state == JourneyState.LANDING
    assert len(store) == 1


def test_create_with_explicit_id(store):
    assert store.create("journey-1").id == "journey-1"


def test_get_unknown_raises(store):
    with pytest.raises(SessionNotFoundError):
        store.get("missing")


def test_delete(store):
    machine = store.create()

    store.delete(machine.id)

    assert store.list() == []
    with pytest.raises(SessionNotFoundError):
        store.delete(machine.id)


async def test_journeys_are_independent(store):
    first = store.create()
    second = store.create()

    await first.start()
    await first.submit_readiness(9)
    await second.start()

    assert first.current_state == JourneyState.ACT_DEFUSION
    assert second.current_state == JourneyState.READINESS_CHECK
    assert first.session is not second.session
