"""Domain objects → API response dicts."""

from __future__ import annotations

from datetime import datetime

from app.domain.entities.agent import Agent
from app.domain.entities.assignment import AssignmentDecision
from app.domain.entities.bulk_result import BulkOperationResult
from app.domain.entities.conversation import Conversation
from app.application.use_cases.list_conversations import FilterOptions
from app.domain.policies.lifecycle import allowed_actions


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_conversation(c: Conversation) -> dict:
    return {
        "id": c.id,
        "organization_id": c.organization_id,
        "state": c.state.value,
        "priority": c.priority.value,
        "agent_id": c.agent_id,
        "resolved_by_agent_id": c.resolved_by_agent_id,
        "required_skills": sorted(c.required_skills),
        "tags": sorted(c.tags),
        "customer_name": c.customer_name,
        "subject": c.subject,
        "escalation_reason": c.escalation_reason,
        "transferred_from_agent_id": c.transferred_from_agent_id,
        "transfer_notes": c.transfer_notes,
        "created_at": _iso(c.created_at),
        "last_activity_at": _iso(c.last_activity_at),
        "assigned_at": _iso(c.assigned_at),
        "resolved_at": _iso(c.resolved_at),
        "closed_at": _iso(c.closed_at),
        "available_actions": [a.value for a in allowed_actions(c.state)],
    }


def serialize_agent(a: Agent) -> dict:
    return {
        "id": a.id,
        "organization_id": a.organization_id,
        "name": a.name,
        "department": a.department,
        "skills": sorted(a.skills),
        "availability": a.availability.value,
        "rating": a.rating,
        "max_concurrent_chats": a.max_concurrent_chats,
        "current_active_chats": a.current_active_chats,
    }


def serialize_decision(d: AssignmentDecision) -> dict:
    return {
        "conversation_id": d.conversation_id,
        "chosen_agent_id": d.chosen_agent_id,
        "assigned": d.assigned,
        "reason": d.reason,
        "score": d.score,
        "fallback_used": d.fallback_used,
        "forced": d.forced,
        "error_kind": d.error_kind.value if d.error_kind else None,
        "timestamp": _iso(d.timestamp),
    }


def serialize_bulk_result(r: BulkOperationResult) -> dict:
    return {
        "attempted": r.attempted,
        "succeeded": r.succeeded,
        "failed": r.failed,
        "items": [
            {
                "conversation_id": i.conversation_id,
                "success": i.success,
                "error_kind": i.error_kind.value if i.error_kind else None,
                "message": i.message,
            }
            for i in r.items
        ],
    }


def serialize_filter_options(o: FilterOptions) -> dict:
    return {
        "status": [s.value for s in o.states],
        "priority": [p.value for p in o.priorities],
        "sort": [f.value for f in o.sort_fields],
        "assigned_agent": [
            {
                "value": a.id,
                "label": f"{a.name} ({a.department})" if a.department else a.name,
                "availability": a.availability.value,
            }
            for a in o.agents
        ],
        "tag": o.tags,
    }
