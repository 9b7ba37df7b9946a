"""Port interface for capability checks."""

from abc import ABC, abstractmethod

from app.domain.entities.conversation import Conversation
from app.domain.value_objects.actor import Actor


class Authorizer(ABC):
    @abstractmethod
    async def can_act(self, actor: Actor, action: str, conversation: Conversation) -> bool:
        """Whether *actor* may perform *action* (e.g. ``"close"``) on *conversation*."""
        ...

    @abstractmethod
    async def can_access_all_organizations(self, actor: Actor) -> bool:
        """Whether *actor* may operate without an organization scope."""
        ...
