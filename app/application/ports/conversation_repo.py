"""Port interface for the conversation store (system of record for state)."""

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.entities.conversation import Conversation
from app.domain.value_objects.enums import ConversationState, Priority
from app.domain.value_objects.query import (
    ConversationFilters,
    Page,
    PageRequest,
    Scope,
    SortSpec,
)


class ConversationRepository(ABC):
    @abstractmethod
    async def save(self, conversation: Conversation) -> Conversation:
        ...

    @abstractmethod
    async def get_by_id(self, conversation_id: str) -> Conversation | None:
        ...

    @abstractmethod
    async def get_many(self, conversation_ids: list[str]) -> list[Conversation]:
        """Return the conversations that exist; missing ids are skipped."""
        ...

    @abstractmethod
    async def compare_and_set(
        self,
        conversation: Conversation,
        expected_state: ConversationState,
        expected_agent_id: str | None,
    ) -> bool:
        """Persist the routing fields of *conversation* only if the stored row
        still has *expected_state* and *expected_agent_id*.

        Single-row conditional update; returns False if another request got
        there first.
        """
        ...

    @abstractmethod
    async def update_details(self, conversation: Conversation) -> None:
        """Persist priority and tags (non-routing fields), last writer wins."""
        ...

    @abstractmethod
    async def list_page(
        self,
        filters: ConversationFilters,
        sort: SortSpec,
        page: PageRequest,
        scope: Scope,
    ) -> Page[Conversation]:
        ...

    @abstractmethod
    async def count_by_state(self, scope: Scope) -> dict[ConversationState, int]:
        ...

    @abstractmethod
    async def count_open_by_priority(self, scope: Scope) -> dict[Priority, int]:
        """Counts over conversations that are not closed."""
        ...

    @abstractmethod
    async def distinct_tags(self, scope: Scope) -> list[str]:
        """Every tag used by a conversation in *scope*, sorted."""
        ...

    @abstractmethod
    async def list_resolved_before(self, cutoff: datetime) -> list[Conversation]:
        ...
