"""Analytics endpoints — inbox dashboard summary."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.application.use_cases.inbox_summary import InboxSummaryUseCase
from app.domain.value_objects.actor import Actor
from app.infrastructure.api.dependencies import get_actor, get_inbox_summary_uc

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/summary")
async def analytics_summary(
    actor: Actor = Depends(get_actor),
    uc: InboxSummaryUseCase = Depends(get_inbox_summary_uc),
):
    """Aggregate stats for the dashboard."""
    summary = await uc.execute(actor)
    return {
        "by_state": {s.value: n for s, n in summary.by_state.items()},
        "open_by_priority": {p.value: n for p, n in summary.open_by_priority.items()},
        "unassigned_backlog": summary.unassigned_backlog,
        "agents_online": summary.agents_online,
        "total_capacity": summary.total_capacity,
        "active_chats": summary.active_chats,
        "capacity_utilization": summary.capacity_utilization,
    }
