"""Pytest configuration, in-memory fakes of the ports, and shared fixtures."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from app.adapters.auth.permission_authorizer import PermissionAuthorizer
from app.application.ports.agent_repo import AgentRepository
from app.application.ports.assignment_repo import AssignmentLogRepository
from app.application.ports.conversation_repo import ConversationRepository
from app.application.ports.transaction import TransactionManager
from app.application.use_cases.access import AccessGuard
from app.application.use_cases.assignment_router import AssignmentRouter
from app.application.use_cases.bulk_operation import BulkOperationCoordinator
from app.domain.entities.agent import Agent
from app.domain.entities.conversation import Conversation
from app.domain.policies.conversation_filter import matches, sort_conversations
from app.domain.value_objects.actor import Actor
from app.domain.value_objects.enums import Availability, ConversationState, Priority
from app.domain.value_objects.query import Page

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


# ─── In-memory fakes ────────────────────────────────────────────────
# Every awaited call yields to the loop once, so tasks run with
# asyncio.gather actually interleave between reads and writes.


class FakeAgentRepo(AgentRepository):
    def __init__(self, agents: list[Agent] | None = None):
        self.agents: dict[str, Agent] = {a.id: a for a in agents or []}

    def add(self, *agents: Agent) -> None:
        for a in agents:
            self.agents[a.id] = a

    async def save(self, agent):
        await asyncio.sleep(0)
        self.agents[agent.id] = replace(agent)
        return agent

    async def get_by_id(self, agent_id):
        await asyncio.sleep(0)
        agent = self.agents.get(agent_id)
        return replace(agent, skills=set(agent.skills)) if agent else None

    async def list_by_scope(self, scope, availability=None):
        await asyncio.sleep(0)
        return [
            replace(a, skills=set(a.skills))
            for a in sorted(self.agents.values(), key=lambda a: a.id)
            if scope.allows(a.organization_id)
            and (availability is None or a.availability == availability)
        ]

    async def reserve_slot(self, agent_id):
        await asyncio.sleep(0)
        # Check-and-increment with no await in between: one atomic step.
        agent = self.agents.get(agent_id)
        if agent is None or agent.current_active_chats >= agent.max_concurrent_chats:
            return False
        agent.current_active_chats += 1
        return True

    async def release_slot(self, agent_id):
        await asyncio.sleep(0)
        agent = self.agents.get(agent_id)
        if agent is not None and agent.current_active_chats > 0:
            agent.current_active_chats -= 1


class FakeConversationRepo(ConversationRepository):
    def __init__(self, conversations: list[Conversation] | None = None):
        self.conversations: dict[str, Conversation] = {c.id: c for c in conversations or []}

    def add(self, *conversations: Conversation) -> None:
        for c in conversations:
            self.conversations[c.id] = c

    def _copy(self, c: Conversation) -> Conversation:
        return replace(c, tags=set(c.tags), required_skills=set(c.required_skills))

    async def save(self, conversation):
        await asyncio.sleep(0)
        self.conversations[conversation.id] = self._copy(conversation)
        return conversation

    async def get_by_id(self, conversation_id):
        await asyncio.sleep(0)
        c = self.conversations.get(conversation_id)
        return self._copy(c) if c else None

    async def get_many(self, conversation_ids):
        await asyncio.sleep(0)
        return [self._copy(self.conversations[i]) for i in conversation_ids if i in self.conversations]

    async def compare_and_set(self, conversation, expected_state, expected_agent_id):
        await asyncio.sleep(0)
        stored = self.conversations.get(conversation.id)
        if stored is None or stored.state != expected_state or stored.agent_id != expected_agent_id:
            return False
        # Routing fields only; priority and tags belong to update_details.
        self.conversations[conversation.id] = replace(
            self._copy(conversation), priority=stored.priority, tags=set(stored.tags)
        )
        return True

    async def update_details(self, conversation):
        await asyncio.sleep(0)
        stored = self.conversations[conversation.id]
        self.conversations[conversation.id] = replace(
            stored, priority=conversation.priority, tags=set(conversation.tags)
        )

    async def list_page(self, filters, sort, page, scope):
        await asyncio.sleep(0)
        hits = [c for c in self.conversations.values() if matches(c, filters, scope)]
        ordered = sort_conversations(hits, sort)
        return Page(
            items=[self._copy(c) for c in ordered[page.offset:page.offset + page.page_size]],
            total=len(hits),
            page=page.page,
            page_size=page.page_size,
        )

    async def count_by_state(self, scope):
        counts: dict[ConversationState, int] = {}
        for c in self.conversations.values():
            if scope.allows(c.organization_id):
                counts[c.state] = counts.get(c.state, 0) + 1
        return counts

    async def count_open_by_priority(self, scope):
        counts: dict[Priority, int] = {}
        for c in self.conversations.values():
            if scope.allows(c.organization_id) and c.state != ConversationState.CLOSED:
                counts[c.priority] = counts.get(c.priority, 0) + 1
        return counts

    async def distinct_tags(self, scope):
        await asyncio.sleep(0)
        return sorted(
            {t for c in self.conversations.values() if scope.allows(c.organization_id) for t in c.tags}
        )

    async def list_resolved_before(self, cutoff):
        return [
            self._copy(c)
            for c in sorted(self.conversations.values(), key=lambda c: c.id)
            if c.state == ConversationState.RESOLVED and c.resolved_at and c.resolved_at < cutoff
        ]


class FakeAssignmentLog(AssignmentLogRepository):
    def __init__(self):
        self.decisions = []

    async def save(self, decision):
        self.decisions.append(decision)
        return decision

    async def list_for_conversation(self, conversation_id):
        return [d for d in self.decisions if d.conversation_id == conversation_id]


class FakeTransactions(TransactionManager):
    def __init__(self):
        self.opened = 0
        self.rolled_back = 0

    @asynccontextmanager
    async def savepoint(self):
        self.opened += 1
        try:
            yield
        except Exception:
            self.rolled_back += 1
            raise


class DummySession:
    def __init__(self):
        self.commits = 0

    async def commit(self) -> None:
        self.commits += 1


# ─── Builders ───────────────────────────────────────────────────────


def make_agent(agent_id="a1", org="org-1", max_chats=3, current=0,
               availability=Availability.ONLINE, skills=(), rating=None) -> Agent:
    return Agent(
        id=agent_id,
        organization_id=org,
        name=agent_id.upper(),
        max_concurrent_chats=max_chats,
        current_active_chats=current,
        availability=availability,
        skills=set(skills),
        rating=rating,
    )


def make_conversation(conversation_id="c1", org="org-1", state=ConversationState.UNASSIGNED,
                      priority=Priority.NORMAL, agent_id=None, skills=(), age_minutes=0,
                      **extra) -> Conversation:
    created = NOW - timedelta(minutes=age_minutes)
    return Conversation(
        id=conversation_id,
        organization_id=org,
        created_at=created,
        last_activity_at=created,
        state=state,
        priority=priority,
        agent_id=agent_id,
        required_skills=set(skills),
        **extra,
    )


# ─── Fixtures ───────────────────────────────────────────────────────


@pytest.fixture
def agent_repo():
    return FakeAgentRepo()


@pytest.fixture
def conversation_repo():
    return FakeConversationRepo()


@pytest.fixture
def assignment_log():
    return FakeAssignmentLog()


@pytest.fixture
def transactions():
    return FakeTransactions()


@pytest.fixture
def guard():
    return AccessGuard(PermissionAuthorizer())


@pytest.fixture
def router(agent_repo, conversation_repo, assignment_log, guard, transactions):
    return AssignmentRouter(
        agent_repo=agent_repo,
        conversation_repo=conversation_repo,
        assignment_log=assignment_log,
        guard=guard,
        transactions=transactions,
        clock=lambda: NOW,
    )


@pytest.fixture
def coordinator(router, conversation_repo, guard, transactions):
    return BulkOperationCoordinator(router, conversation_repo, guard, transactions)


@pytest.fixture
def supervisor():
    return Actor(user_id="u-sup", organization_id="org-1", permissions=frozenset({"conversations.*"}))


@pytest.fixture
def viewer():
    return Actor(user_id="u-view", organization_id="org-1", permissions=frozenset({"conversations.view"}))


@pytest.fixture
def platform_admin():
    return Actor(user_id="u-root", organization_id=None, permissions=frozenset({"*"}))
