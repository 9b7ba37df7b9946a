"""SQLAlchemy repository implementations."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters.persistence.models import (
    AgentModel,
    AssignmentDecisionModel,
    ConversationModel,
)
from app.application.ports.agent_repo import AgentRepository
from app.application.ports.assignment_repo import AssignmentLogRepository
from app.application.ports.conversation_repo import ConversationRepository
from app.application.ports.transaction import TransactionManager
from app.domain.entities.agent import Agent
from app.domain.entities.assignment import AssignmentDecision
from app.domain.entities.conversation import Conversation
from app.domain.value_objects.enums import (
    Availability,
    ConversationState,
    ErrorKind,
    Priority,
    SortField,
)
from app.domain.value_objects.query import (
    ConversationFilters,
    Page,
    PageRequest,
    Scope,
    SortSpec,
)

# ─── Mappers ─────────────────────────────────────────────────────────


def _agent_to_domain(m: AgentModel) -> Agent:
    return Agent(
        id=m.id,
        organization_id=m.organization_id,
        name=m.name,
        max_concurrent_chats=m.max_concurrent_chats,
        current_active_chats=m.current_active_chats,
        availability=Availability(m.availability),
        skills=set(m.skills) if m.skills else set(),
        rating=m.rating,
        department=m.department,
    )


def _conversation_to_domain(m: ConversationModel) -> Conversation:
    return Conversation(
        id=m.id,
        organization_id=m.organization_id,
        created_at=m.created_at,
        last_activity_at=m.last_activity_at,
        state=ConversationState(m.state),
        priority=Priority(m.priority),
        agent_id=m.agent_id,
        required_skills=set(m.required_skills) if m.required_skills else set(),
        tags=set(m.tags) if m.tags else set(),
        customer_name=m.customer_name,
        subject=m.subject,
        escalation_reason=m.escalation_reason,
        resolved_by_agent_id=m.resolved_by_agent_id,
        transferred_from_agent_id=m.transferred_from_agent_id,
        transfer_notes=m.transfer_notes,
        assigned_at=m.assigned_at,
        resolved_at=m.resolved_at,
        closed_at=m.closed_at,
    )


def _decision_to_domain(m: AssignmentDecisionModel) -> AssignmentDecision:
    return AssignmentDecision(
        conversation_id=m.conversation_id,
        chosen_agent_id=m.chosen_agent_id,
        reason=m.reason,
        score=m.score,
        timestamp=m.decided_at,
        fallback_used=m.fallback_used,
        forced=m.forced,
        error_kind=ErrorKind(m.error_kind) if m.error_kind else None,
    )


def _routing_values(c: Conversation) -> dict:
    """Columns owned by the router; written together by compare-and-set."""
    return {
        "state": c.state.value,
        "agent_id": c.agent_id,
        "resolved_by_agent_id": c.resolved_by_agent_id,
        "escalation_reason": c.escalation_reason,
        "transferred_from_agent_id": c.transferred_from_agent_id,
        "transfer_notes": c.transfer_notes,
        "assigned_at": c.assigned_at,
        "resolved_at": c.resolved_at,
        "closed_at": c.closed_at,
        "last_activity_at": c.last_activity_at,
    }


# Priority is stored as text; listings sort on its rank.
_PRIORITY_ORDER = case(
    {p.value: p.rank for p in Priority},
    value=ConversationModel.priority,
    else_=0,
)


# ─── Repositories ────────────────────────────────────────────────────


class SqlAgentRepository(AgentRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save(self, agent: Agent) -> Agent:
        m = AgentModel(
            id=agent.id,
            organization_id=agent.organization_id,
            name=agent.name,
            department=agent.department,
            skills=sorted(agent.skills),
            max_concurrent_chats=agent.max_concurrent_chats,
            current_active_chats=agent.current_active_chats,
            availability=agent.availability.value,
            rating=agent.rating,
        )
        self._s.add(m)
        await self._s.flush()
        return agent

    async def get_by_id(self, agent_id: str) -> Agent | None:
        # populate_existing: counters change through bulk UPDATEs, not the identity map.
        result = await self._s.execute(
            select(AgentModel)
            .where(AgentModel.id == agent_id)
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        return _agent_to_domain(m) if m else None

    async def list_by_scope(
        self, scope: Scope, availability: Availability | None = None
    ) -> list[Agent]:
        stmt = select(AgentModel).execution_options(populate_existing=True)
        if scope.organization_id is not None:
            stmt = stmt.where(AgentModel.organization_id == scope.organization_id)
        if availability is not None:
            stmt = stmt.where(AgentModel.availability == availability.value)
        result = await self._s.execute(stmt.order_by(AgentModel.id))
        return [_agent_to_domain(m) for m in result.scalars()]

    async def reserve_slot(self, agent_id: str) -> bool:
        result = await self._s.execute(
            update(AgentModel)
            .where(
                AgentModel.id == agent_id,
                AgentModel.current_active_chats < AgentModel.max_concurrent_chats,
            )
            .values(current_active_chats=AgentModel.current_active_chats + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_slot(self, agent_id: str) -> None:
        await self._s.execute(
            update(AgentModel)
            .where(AgentModel.id == agent_id, AgentModel.current_active_chats > 0)
            .values(current_active_chats=AgentModel.current_active_chats - 1)
            .execution_options(synchronize_session=False)
        )


class SqlConversationRepository(ConversationRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save(self, conversation: Conversation) -> Conversation:
        m = ConversationModel(
            id=conversation.id,
            organization_id=conversation.organization_id,
            priority=conversation.priority.value,
            required_skills=sorted(conversation.required_skills),
            tags=sorted(conversation.tags),
            customer_name=conversation.customer_name,
            subject=conversation.subject,
            created_at=conversation.created_at,
            **_routing_values(conversation),
        )
        self._s.add(m)
        await self._s.flush()
        return conversation

    async def get_by_id(self, conversation_id: str) -> Conversation | None:
        result = await self._s.execute(
            select(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        return _conversation_to_domain(m) if m else None

    async def get_many(self, conversation_ids: list[str]) -> list[Conversation]:
        if not conversation_ids:
            return []
        result = await self._s.execute(
            select(ConversationModel)
            .where(ConversationModel.id.in_(conversation_ids))
            .execution_options(populate_existing=True)
        )
        return [_conversation_to_domain(m) for m in result.scalars()]

    async def compare_and_set(
        self,
        conversation: Conversation,
        expected_state: ConversationState,
        expected_agent_id: str | None,
    ) -> bool:
        owner_matches = (
            ConversationModel.agent_id.is_(None)
            if expected_agent_id is None
            else ConversationModel.agent_id == expected_agent_id
        )
        result = await self._s.execute(
            update(ConversationModel)
            .where(
                ConversationModel.id == conversation.id,
                ConversationModel.state == expected_state.value,
                owner_matches,
            )
            .values(**_routing_values(conversation))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_details(self, conversation: Conversation) -> None:
        await self._s.execute(
            update(ConversationModel)
            .where(ConversationModel.id == conversation.id)
            .values(
                priority=conversation.priority.value,
                tags=sorted(conversation.tags),
            )
            .execution_options(synchronize_session=False)
        )

    async def list_page(
        self,
        filters: ConversationFilters,
        sort: SortSpec,
        page: PageRequest,
        scope: Scope,
    ) -> Page[Conversation]:
        where = _filter_clauses(filters, scope)

        total = await self._s.scalar(
            select(func.count()).select_from(ConversationModel).where(*where)
        )

        column = {
            SortField.CREATED_AT: ConversationModel.created_at,
            SortField.LAST_ACTIVITY: ConversationModel.last_activity_at,
            SortField.PRIORITY: _PRIORITY_ORDER,
        }[sort.field]
        stmt = (
            select(ConversationModel)
            .where(*where)
            .order_by(column.desc() if sort.descending else column.asc(), ConversationModel.id)
            .offset(page.offset)
            .limit(page.page_size)
            .execution_options(populate_existing=True)
        )
        result = await self._s.execute(stmt)
        return Page(
            items=[_conversation_to_domain(m) for m in result.scalars()],
            total=total or 0,
            page=page.page,
            page_size=page.page_size,
        )

    async def count_by_state(self, scope: Scope) -> dict[ConversationState, int]:
        stmt = select(ConversationModel.state, func.count()).group_by(ConversationModel.state)
        if scope.organization_id is not None:
            stmt = stmt.where(ConversationModel.organization_id == scope.organization_id)
        result = await self._s.execute(stmt)
        return {ConversationState(state): count for state, count in result.all()}

    async def count_open_by_priority(self, scope: Scope) -> dict[Priority, int]:
        stmt = (
            select(ConversationModel.priority, func.count())
            .where(ConversationModel.state != ConversationState.CLOSED.value)
            .group_by(ConversationModel.priority)
        )
        if scope.organization_id is not None:
            stmt = stmt.where(ConversationModel.organization_id == scope.organization_id)
        result = await self._s.execute(stmt)
        return {Priority(priority): count for priority, count in result.all()}

    async def distinct_tags(self, scope: Scope) -> list[str]:
        tags = select(func.unnest(ConversationModel.tags).label("tag"))
        if scope.organization_id is not None:
            tags = tags.where(ConversationModel.organization_id == scope.organization_id)
        used = tags.subquery()
        result = await self._s.execute(select(used.c.tag).distinct().order_by(used.c.tag))
        return list(result.scalars())

    async def list_resolved_before(self, cutoff: datetime) -> list[Conversation]:
        result = await self._s.execute(
            select(ConversationModel)
            .where(
                ConversationModel.state == ConversationState.RESOLVED.value,
                ConversationModel.resolved_at < cutoff,
            )
            .order_by(ConversationModel.resolved_at, ConversationModel.id)
            .execution_options(populate_existing=True)
        )
        return [_conversation_to_domain(m) for m in result.scalars()]


def _filter_clauses(filters: ConversationFilters, scope: Scope) -> list:
    clauses = []
    if scope.organization_id is not None:
        clauses.append(ConversationModel.organization_id == scope.organization_id)
    if filters.status is not None:
        clauses.append(ConversationModel.state == filters.status.value)
    if filters.priority is not None:
        clauses.append(ConversationModel.priority == filters.priority.value)
    if filters.assigned_agent_id is not None:
        clauses.append(ConversationModel.agent_id == filters.assigned_agent_id)
    if filters.tag is not None:
        clauses.append(ConversationModel.tags.any(filters.tag))
    if filters.date_range is not None:
        if filters.date_range.start is not None:
            clauses.append(ConversationModel.created_at >= filters.date_range.start)
        if filters.date_range.end is not None:
            clauses.append(ConversationModel.created_at <= filters.date_range.end)

    term = filters.search_term
    if term is not None:
        # autoescape: a literal % or _ in the term matches itself.
        clauses.append(
            or_(
                ConversationModel.id.icontains(term, autoescape=True),
                ConversationModel.customer_name.icontains(term, autoescape=True),
                ConversationModel.subject.icontains(term, autoescape=True),
            )
        )
    return [and_(*clauses)] if clauses else []


class SqlAssignmentLogRepository(AssignmentLogRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save(self, decision: AssignmentDecision) -> AssignmentDecision:
        m = AssignmentDecisionModel(
            conversation_id=decision.conversation_id,
            chosen_agent_id=decision.chosen_agent_id,
            reason=decision.reason,
            score=decision.score,
            fallback_used=decision.fallback_used,
            forced=decision.forced,
            error_kind=decision.error_kind.value if decision.error_kind else None,
            decided_at=decision.timestamp,
        )
        self._s.add(m)
        await self._s.flush()
        return decision

    async def list_for_conversation(self, conversation_id: str) -> list[AssignmentDecision]:
        result = await self._s.execute(
            select(AssignmentDecisionModel)
            .where(AssignmentDecisionModel.conversation_id == conversation_id)
            .order_by(AssignmentDecisionModel.decided_at, AssignmentDecisionModel.id)
        )
        return [_decision_to_domain(m) for m in result.scalars()]


class SqlTransactionManager(TransactionManager):
    """Savepoints nested in the request's session transaction."""

    def __init__(self, session: AsyncSession):
        self._s = session

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        async with self._s.begin_nested():
            yield
