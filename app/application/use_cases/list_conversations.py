"""Conversation listing for the inbox dashboard (read-only)."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.application.ports.agent_repo import AgentRepository
from app.application.ports.assignment_repo import AssignmentLogRepository
from app.application.ports.conversation_repo import ConversationRepository
from app.application.use_cases.access import AccessGuard
from app.domain.entities.agent import Agent
from app.domain.entities.assignment import AssignmentDecision
from app.domain.entities.conversation import Conversation
from app.domain.value_objects.actor import Actor
from app.domain.value_objects.enums import ConversationState, Priority, SortField
from app.domain.value_objects.query import (
    ConversationFilters,
    Page,
    PageRequest,
    SortSpec,
)

logger = logging.getLogger(__name__)


class ListConversationsUseCase:
    def __init__(
        self,
        conversation_repo: ConversationRepository,
        guard: AccessGuard,
        max_page_size: int = 100,
    ):
        self._conversations = conversation_repo
        self._guard = guard
        self._max_page_size = max_page_size

    async def execute(
        self,
        actor: Actor,
        filters: ConversationFilters | None = None,
        sort: SortSpec | None = None,
        page: PageRequest | None = None,
    ) -> Page[Conversation]:
        scope = await self._guard.scope_for(actor)
        page = page or PageRequest()
        if page.page_size > self._max_page_size:
            logger.debug("Page size %d clamped to %d", page.page_size, self._max_page_size)
            page = PageRequest(page=page.page, page_size=self._max_page_size)

        return await self._conversations.list_page(
            filters or ConversationFilters(),
            sort or SortSpec(),
            page,
            scope,
        )


class GetConversationUseCase:
    def __init__(self, conversation_repo: ConversationRepository, guard: AccessGuard):
        self._conversations = conversation_repo
        self._guard = guard

    async def execute(self, conversation_id: str, actor: Actor) -> Conversation:
        return await self._guard.load(self._conversations, conversation_id, actor, "view")


class AssignmentHistoryUseCase:
    """Recorded routing decisions for one conversation, oldest first."""

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        assignment_log: AssignmentLogRepository,
        guard: AccessGuard,
    ):
        self._conversations = conversation_repo
        self._log = assignment_log
        self._guard = guard

    async def execute(self, conversation_id: str, actor: Actor) -> list[AssignmentDecision]:
        await self._guard.load(self._conversations, conversation_id, actor, "view")
        return await self._log.list_for_conversation(conversation_id)


@dataclass
class FilterOptions:
    """Values the dashboard can offer for each listing filter."""

    states: list[ConversationState]
    priorities: list[Priority]
    sort_fields: list[SortField]
    agents: list[Agent]
    tags: list[str]


class ConversationFilterOptionsUseCase:
    def __init__(
        self,
        conversation_repo: ConversationRepository,
        agent_repo: AgentRepository,
        guard: AccessGuard,
    ):
        self._conversations = conversation_repo
        self._agents = agent_repo
        self._guard = guard

    async def execute(self, actor: Actor) -> FilterOptions:
        """Agents and tags come from the actor's scope only."""
        scope = await self._guard.scope_for(actor)
        return FilterOptions(
            states=list(ConversationState),
            priorities=sorted(Priority, key=lambda p: p.rank),
            sort_fields=list(SortField),
            agents=await self._agents.list_by_scope(scope),
            tags=await self._conversations.distinct_tags(scope),
        )
