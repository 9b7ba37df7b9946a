"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters.auth.permission_authorizer import PermissionAuthorizer
from app.adapters.persistence.database import get_session
from app.adapters.persistence.repositories import (
    SqlAgentRepository,
    SqlAssignmentLogRepository,
    SqlConversationRepository,
    SqlTransactionManager,
)
from app.application.ports.agent_repo import AgentRepository
from app.application.ports.assignment_repo import AssignmentLogRepository
from app.application.ports.conversation_repo import ConversationRepository
from app.application.ports.transaction import TransactionManager
from app.application.use_cases.access import AccessGuard
from app.application.use_cases.assignment_router import AssignmentRouter
from app.application.use_cases.available_agents import ListAvailableAgentsUseCase
from app.application.use_cases.bulk_operation import BulkOperationCoordinator
from app.application.use_cases.inbox_summary import InboxSummaryUseCase
from app.application.use_cases.list_conversations import (
    AssignmentHistoryUseCase,
    ConversationFilterOptionsUseCase,
    GetConversationUseCase,
    ListConversationsUseCase,
)
from app.config import settings
from app.domain.value_objects.actor import Actor

# Re-export session dependency
get_db_session = get_session

# Stateless, shared across requests
_guard = AccessGuard(PermissionAuthorizer())


def get_actor(
    x_user_id: str = Header(..., min_length=1),
    x_organization_id: str | None = Header(default=None),
    x_user_permissions: str = Header(default=""),
) -> Actor:
    """The acting user, as asserted by the upstream gateway."""
    permissions = frozenset(p.strip() for p in x_user_permissions.split(",") if p.strip())
    return Actor(
        user_id=x_user_id,
        organization_id=x_organization_id or None,
        permissions=permissions,
    )


def get_guard() -> AccessGuard:
    return _guard


def get_agent_repo(session: AsyncSession = Depends(get_session)) -> AgentRepository:
    return SqlAgentRepository(session)


def get_conversation_repo(session: AsyncSession = Depends(get_session)) -> ConversationRepository:
    return SqlConversationRepository(session)


def get_assignment_log(session: AsyncSession = Depends(get_session)) -> AssignmentLogRepository:
    return SqlAssignmentLogRepository(session)


def get_transactions(session: AsyncSession = Depends(get_session)) -> TransactionManager:
    return SqlTransactionManager(session)


def get_router(
    agents: AgentRepository = Depends(get_agent_repo),
    conversations: ConversationRepository = Depends(get_conversation_repo),
    assignment_log: AssignmentLogRepository = Depends(get_assignment_log),
    transactions: TransactionManager = Depends(get_transactions),
    guard: AccessGuard = Depends(get_guard),
) -> AssignmentRouter:
    return AssignmentRouter(
        agent_repo=agents,
        conversation_repo=conversations,
        assignment_log=assignment_log,
        guard=guard,
        transactions=transactions,
        weights=settings.scoring_weights,
        record_decisions=settings.record_assignment_decisions,
    )


def get_bulk_coordinator(
    router: AssignmentRouter = Depends(get_router),
    conversations: ConversationRepository = Depends(get_conversation_repo),
    transactions: TransactionManager = Depends(get_transactions),
    guard: AccessGuard = Depends(get_guard),
) -> BulkOperationCoordinator:
    return BulkOperationCoordinator(router, conversations, guard, transactions)


def get_list_conversations_uc(
    conversations: ConversationRepository = Depends(get_conversation_repo),
    guard: AccessGuard = Depends(get_guard),
) -> ListConversationsUseCase:
    return ListConversationsUseCase(conversations, guard, max_page_size=settings.max_page_size)


def get_conversation_uc(
    conversations: ConversationRepository = Depends(get_conversation_repo),
    guard: AccessGuard = Depends(get_guard),
) -> GetConversationUseCase:
    return GetConversationUseCase(conversations, guard)


def get_history_uc(
    conversations: ConversationRepository = Depends(get_conversation_repo),
    assignment_log: AssignmentLogRepository = Depends(get_assignment_log),
    guard: AccessGuard = Depends(get_guard),
) -> AssignmentHistoryUseCase:
    return AssignmentHistoryUseCase(conversations, assignment_log, guard)


def get_available_agents_uc(
    agents: AgentRepository = Depends(get_agent_repo),
    guard: AccessGuard = Depends(get_guard),
) -> ListAvailableAgentsUseCase:
    return ListAvailableAgentsUseCase(agents, guard)


def get_inbox_summary_uc(
    conversations: ConversationRepository = Depends(get_conversation_repo),
    agents: AgentRepository = Depends(get_agent_repo),
    guard: AccessGuard = Depends(get_guard),
) -> InboxSummaryUseCase:
    return InboxSummaryUseCase(conversations, agents, guard)


def get_filter_options_uc(
    conversations: ConversationRepository = Depends(get_conversation_repo),
    agents: AgentRepository = Depends(get_agent_repo),
    guard: AccessGuard = Depends(get_guard),
) -> ConversationFilterOptionsUseCase:
    return ConversationFilterOptionsUseCase(conversations, agents, guard)
