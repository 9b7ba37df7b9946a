"""Agent endpoints — who can take another chat."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.application.use_cases.available_agents import ListAvailableAgentsUseCase
from app.domain.value_objects.actor import Actor
from app.infrastructure.api.dependencies import get_actor, get_available_agents_uc
from app.infrastructure.api.serializers import serialize_agent

router = APIRouter(prefix="/agents", tags=["agents"])


@router.get("/available")
async def available_agents(
    skills: list[str] | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    uc: ListAvailableAgentsUseCase = Depends(get_available_agents_uc),
):
    """Online agents with spare capacity, least loaded first."""
    agents = await uc.execute(actor, skills=set(skills) if skills else None)
    return {
        "total": len(agents),
        "agents": [
            {
                **serialize_agent(a.agent),
                "capacity_utilization": a.utilization_percent,
                "can_handle_more": a.can_handle_more,
            }
            for a in agents
        ],
    }
