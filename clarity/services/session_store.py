"""In-memory registry of live journeys.

Journeys live for the lifetime of the process only; nothing is written to
disk. Each entry is an independent JourneyStateMachine sharing the
process-wide content repository, selector and builder.
"""

from typing import Dict, List, Optional

import structlog

from clarity.content.repository import ContentRepository
from clarity.core.config import RoutingConfig
from clarity.core.exceptions import SessionNotFoundError
from clarity.services.journey_builder import JourneyBuilder
from clarity.services.journey_service import JourneyStateMachine
from clarity.services.technique_selector import TechniqueSelector

log = structlog.get_logger(__name__)


class SessionStore:
    """Creates, looks up and discards journey state machines by id."""

    def __init__(
        self,
        content: ContentRepository,
        selector: TechniqueSelector,
        builder: JourneyBuilder,
        config: RoutingConfig,
    ):
        self._content = content
        self._selector = selector
        self._builder = builder
        self._config = config
        self._journeys: Dict[str, JourneyStateMachine] = {}

    def create(self, journey_id: Optional[str] = None) -> JourneyStateMachine:
        machine = JourneyStateMachine(
            content=self._content,
            selector=self._selector,
            builder=self._builder,
            config=self._config,
            journey_id=journey_id,
        )
        self._journeys[machine.id] = machine
        log.info("journey_created", journey_id=machine.id, active=len(self._journeys))
        return machine

    def get(self, journey_id: str) -> JourneyStateMachine:
        """
        Raises:
            SessionNotFoundError: no live journey with this id
        """
        machine = self._journeys.get(journey_id)
        if machine is None:
            raise SessionNotFoundError(f"Journey {journey_id} not found")
        return machine

    def delete(self, journey_id: str) -> None:
        if self._journeys.pop(journey_id, None) is None:
            raise SessionNotFoundError(f"Journey {journey_id} not found")
        log.info("journey_deleted", journey_id=journey_id, active=len(self._journeys))

    def list(self) -> List[JourneyStateMachine]:
        return list(self._journeys.values())

    def __len__(self) -> int:
        return len(self._journeys)
