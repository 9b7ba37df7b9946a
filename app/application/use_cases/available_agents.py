"""Agents that can take another chat right now, with their load."""

from __future__ import annotations

from dataclasses import dataclass

from app.application.ports.agent_repo import AgentRepository
from app.application.use_cases.access import AccessGuard
from app.domain.entities.agent import Agent
from app.domain.policies.scoring import is_eligible
from app.domain.value_objects.actor import Actor
from app.domain.value_objects.enums import Availability


@dataclass
class AvailableAgent:
    agent: Agent
    utilization_percent: float
    can_handle_more: bool


class ListAvailableAgentsUseCase:
    def __init__(self, agent_repo: AgentRepository, guard: AccessGuard):
        self._agents = agent_repo
        self._guard = guard

    async def execute(self, actor: Actor, skills: set[str] | None = None) -> list[AvailableAgent]:
        """Online agents under capacity, least loaded first.

        With *skills*, only agents sharing at least one of them are kept.
        """
        scope = await self._guard.scope_for(actor)
        agents = await self._agents.list_by_scope(scope, availability=Availability.ONLINE)

        wanted = {s.strip().lower() for s in skills or () if s.strip()}
        result = []
        for agent in agents:
            if not is_eligible(agent):
                continue
            if wanted and not (agent.skills & wanted):
                continue
            result.append(
                AvailableAgent(
                    agent=agent,
                    utilization_percent=round(agent.utilization * 100, 1),
                    can_handle_more=agent.has_spare_capacity(),
                )
            )
        result.sort(key=lambda a: (a.agent.utilization, a.agent.current_active_chats, a.agent.id))
        return result
