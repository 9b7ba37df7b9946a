"""Conversation endpoints — inbox listing, routing transitions, bulk actions."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters.persistence.database import get_session
from app.application.use_cases.assignment_router import AssignmentRouter
from app.application.use_cases.bulk_operation import BulkAction, BulkOperationCoordinator
from app.application.use_cases.list_conversations import (
    AssignmentHistoryUseCase,
    ConversationFilterOptionsUseCase,
    GetConversationUseCase,
    ListConversationsUseCase,
)
from app.config import settings
from app.domain.value_objects.actor import Actor
from app.domain.value_objects.enums import (
    BulkActionType,
    ConversationState,
    Priority,
    SortDirection,
    SortField,
)
from app.domain.value_objects.query import (
    ConversationFilters,
    DateRange,
    PageRequest,
    SortSpec,
)
from app.infrastructure.api.dependencies import (
    get_actor,
    get_bulk_coordinator,
    get_conversation_uc,
    get_filter_options_uc,
    get_history_uc,
    get_list_conversations_uc,
    get_router,
)
from app.infrastructure.api.serializers import (
    serialize_agent,
    serialize_bulk_result,
    serialize_conversation,
    serialize_decision,
    serialize_filter_options,
)

router = APIRouter(prefix="/conversations", tags=["conversations"])


class AssignRequest(BaseModel):
    model_config = {"str_strip_whitespace": True}

    agent_id: str = Field(min_length=1)
    force: bool = False
    reason: str | None = None


class TransferRequest(BaseModel):
    model_config = {"str_strip_whitespace": True}

    agent_id: str = Field(min_length=1)
    reason: str = Field(min_length=1)


class EscalateRequest(BaseModel):
    model_config = {"str_strip_whitespace": True}

    reason: str = Field(min_length=1)


class BulkRequest(BaseModel):
    conversation_ids: list[str] = Field(min_length=1, max_length=500)
    action: BulkActionType
    agent_id: str | None = None
    reason: str | None = None
    priority: Priority | None = None
    tag: str | None = None


@router.get("")
async def list_conversations(
    status: ConversationState | None = None,
    priority: Priority | None = None,
    assigned_agent_id: str | None = None,
    search: str | None = None,
    tag: str | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    sort: SortField = SortField.LAST_ACTIVITY,
    direction: SortDirection = SortDirection.DESC,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.default_page_size, ge=1),
    actor: Actor = Depends(get_actor),
    uc: ListConversationsUseCase = Depends(get_list_conversations_uc),
):
    """Filtered, sorted, paginated inbox listing."""
    try:
        date_range = (
            DateRange(start=created_from, end=created_to)
            if created_from or created_to
            else None
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    filters = ConversationFilters(
        status=status,
        priority=priority,
        assigned_agent_id=assigned_agent_id,
        search=search,
        date_range=date_range,
        tag=tag.strip().lower() if tag else None,
    )
    result = await uc.execute(
        actor,
        filters=filters,
        sort=SortSpec(field=sort, direction=direction),
        page=PageRequest(page=page, page_size=page_size),
    )
    return {
        "total": result.total,
        "page": result.page,
        "page_size": result.page_size,
        "pages": result.pages,
        "conversations": [serialize_conversation(c) for c in result.items],
    }


@router.post("/bulk")
async def apply_bulk(
    body: BulkRequest,
    actor: Actor = Depends(get_actor),
    coordinator: BulkOperationCoordinator = Depends(get_bulk_coordinator),
    session: AsyncSession = Depends(get_session),
):
    """Apply one action to many conversations; each succeeds or fails on its own."""
    try:
        action = BulkAction(
            type=body.action,
            agent_id=body.agent_id,
            reason=body.reason,
            priority=body.priority,
            tag=body.tag.strip().lower() if body.tag else None,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    result = await coordinator.execute(body.conversation_ids, action, actor)
    await session.commit()
    return serialize_bulk_result(result)


@router.get("/filters")
async def filter_options(
    actor: Actor = Depends(get_actor),
    uc: ConversationFilterOptionsUseCase = Depends(get_filter_options_uc),
):
    """Valid values for each listing filter, scoped to the caller's organization."""
    return serialize_filter_options(await uc.execute(actor))


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    actor: Actor = Depends(get_actor),
    uc: GetConversationUseCase = Depends(get_conversation_uc),
):
    conversation = await uc.execute(conversation_id, actor)
    return serialize_conversation(conversation)


@router.get("/{conversation_id}/candidates")
async def preview_candidates(
    conversation_id: str,
    actor: Actor = Depends(get_actor),
    routing: AssignmentRouter = Depends(get_router),
):
    """What automatic routing would do right now, without doing it."""
    decision, ranked = await routing.preview(conversation_id, actor)
    return {
        "decision": serialize_decision(decision),
        "candidates": [
            {
                **serialize_agent(c.agent),
                "score": round(c.score, 6),
                "skill_match_ratio": c.skill_match_ratio,
            }
            for c in ranked
        ],
    }


@router.get("/{conversation_id}/assignments")
async def assignment_history(
    conversation_id: str,
    actor: Actor = Depends(get_actor),
    uc: AssignmentHistoryUseCase = Depends(get_history_uc),
):
    decisions = await uc.execute(conversation_id, actor)
    return {"assignments": [serialize_decision(d) for d in decisions]}


@router.post("/{conversation_id}/auto-assign")
async def auto_assign(
    conversation_id: str,
    actor: Actor = Depends(get_actor),
    routing: AssignmentRouter = Depends(get_router),
    session: AsyncSession = Depends(get_session),
):
    """Route to the best eligible agent.

    An empty pool is not an error: the decision comes back unassigned with
    ``error_kind = NoEligibleAgent``.
    """
    decision = await routing.auto_assign(conversation_id, actor)
    await session.commit()
    return serialize_decision(decision)


@router.post("/{conversation_id}/assign")
async def assign(
    conversation_id: str,
    body: AssignRequest,
    actor: Actor = Depends(get_actor),
    routing: AssignmentRouter = Depends(get_router),
    session: AsyncSession = Depends(get_session),
):
    decision = await routing.assign(
        conversation_id, body.agent_id, actor, force=body.force, reason=body.reason
    )
    await session.commit()
    return serialize_decision(decision)


@router.post("/{conversation_id}/transfer")
async def transfer(
    conversation_id: str,
    body: TransferRequest,
    actor: Actor = Depends(get_actor),
    routing: AssignmentRouter = Depends(get_router),
    session: AsyncSession = Depends(get_session),
):
    decision = await routing.transfer(conversation_id, body.agent_id, actor, reason=body.reason)
    await session.commit()
    return serialize_decision(decision)


@router.post("/{conversation_id}/escalate")
async def escalate(
    conversation_id: str,
    body: EscalateRequest,
    actor: Actor = Depends(get_actor),
    routing: AssignmentRouter = Depends(get_router),
    session: AsyncSession = Depends(get_session),
):
    conversation = await routing.escalate(conversation_id, actor, reason=body.reason)
    await session.commit()
    return serialize_conversation(conversation)


@router.post("/{conversation_id}/resolve")
async def resolve(
    conversation_id: str,
    actor: Actor = Depends(get_actor),
    routing: AssignmentRouter = Depends(get_router),
    session: AsyncSession = Depends(get_session),
):
    conversation = await routing.resolve(conversation_id, actor)
    await session.commit()
    return serialize_conversation(conversation)


@router.post("/{conversation_id}/reopen")
async def reopen(
    conversation_id: str,
    actor: Actor = Depends(get_actor),
    routing: AssignmentRouter = Depends(get_router),
    session: AsyncSession = Depends(get_session),
):
    conversation = await routing.reopen(conversation_id, actor)
    await session.commit()
    return serialize_conversation(conversation)


@router.post("/{conversation_id}/close")
async def close(
    conversation_id: str,
    actor: Actor = Depends(get_actor),
    routing: AssignmentRouter = Depends(get_router),
    session: AsyncSession = Depends(get_session),
):
    conversation = await routing.close(conversation_id, actor)
    await session.commit()
    return serialize_conversation(conversation)
