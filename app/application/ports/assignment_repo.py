"""Port interface for the assignment decision log."""

from abc import ABC, abstractmethod

from app.domain.entities.assignment import AssignmentDecision


class AssignmentLogRepository(ABC):
    @abstractmethod
    async def save(self, decision: AssignmentDecision) -> AssignmentDecision:
        ...

    @abstractmethod
    async def list_for_conversation(self, conversation_id: str) -> list[AssignmentDecision]:
        """Decisions for one conversation, oldest first."""
        ...
