"""Port interface for the agent directory."""

from abc import ABC, abstractmethod

from app.domain.entities.agent import Agent
from app.domain.value_objects.enums import Availability
from app.domain.value_objects.query import Scope


class AgentRepository(ABC):
    @abstractmethod
    async def save(self, agent: Agent) -> Agent:
        ...

    @abstractmethod
    async def get_by_id(self, agent_id: str) -> Agent | None:
        ...

    @abstractmethod
    async def list_by_scope(
        self, scope: Scope, availability: Availability | None = None
    ) -> list[Agent]:
        """Agents visible in *scope*, ordered by id."""
        ...

    @abstractmethod
    async def reserve_slot(self, agent_id: str) -> bool:
        """Atomically take one chat slot.

        Must be a single conditional increment
        (``... SET current = current + 1 WHERE id = ? AND current < max``),
        never read-then-write. Returns False when the agent is full or gone.
        """
        ...

    @abstractmethod
    async def release_slot(self, agent_id: str) -> None:
        """Atomically give back one chat slot; never drops below zero."""
        ...
