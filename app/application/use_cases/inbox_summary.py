"""InboxSummaryUseCase — counters behind the dashboard header."""

from __future__ import annotations

from dataclasses import dataclass, field

from app.application.ports.agent_repo import AgentRepository
from app.application.ports.conversation_repo import ConversationRepository
from app.application.use_cases.access import AccessGuard
from app.domain.value_objects.actor import Actor
from app.domain.value_objects.enums import Availability, ConversationState, Priority


@dataclass
class InboxSummary:
    by_state: dict[ConversationState, int] = field(default_factory=dict)
    open_by_priority: dict[Priority, int] = field(default_factory=dict)
    agents_online: int = 0
    total_capacity: int = 0
    active_chats: int = 0

    @property
    def unassigned_backlog(self) -> int:
        return self.by_state.get(ConversationState.UNASSIGNED, 0)

    @property
    def capacity_utilization(self) -> float:
        """Percent of online capacity in use."""
        if not self.total_capacity:
            return 0.0
        return round(self.active_chats / self.total_capacity * 100, 1)


class InboxSummaryUseCase:
    def __init__(
        self,
        conversation_repo: ConversationRepository,
        agent_repo: AgentRepository,
        guard: AccessGuard,
    ):
        self._conversations = conversation_repo
        self._agents = agent_repo
        self._guard = guard

    async def execute(self, actor: Actor) -> InboxSummary:
        scope = await self._guard.scope_for(actor)
        by_state = await self._conversations.count_by_state(scope)
        by_priority = await self._conversations.count_open_by_priority(scope)
        online = await self._agents.list_by_scope(scope, availability=Availability.ONLINE)

        return InboxSummary(
            by_state={s: by_state.get(s, 0) for s in ConversationState},
            open_by_priority={p: by_priority.get(p, 0) for p in Priority},
            agents_online=len(online),
            total_capacity=sum(a.max_concurrent_chats for a in online),
            active_chats=sum(a.current_active_chats for a in online),
        )
