"""SQL emitted by the repositories, compiled for PostgreSQL without a database."""

import pytest
from sqlalchemy.dialects import postgresql

from conftest import make_conversation
from app.adapters.persistence.repositories import (
    SqlAgentRepository,
    SqlConversationRepository,
    _filter_clauses,
)
from app.domain.value_objects.enums import ConversationState, SortDirection, SortField
from app.domain.value_objects.query import ConversationFilters, PageRequest, Scope, SortSpec


class FakeResult:
    def __init__(self, rowcount):
        self.rowcount = rowcount

    def scalars(self):
        return iter(())


class RecordingSession:
    """Captures statements instead of running them."""

    def __init__(self, rowcount=1):
        self.rowcount = rowcount
        self.statements = []

    async def execute(self, stmt):
        self.statements.append(stmt)
        return FakeResult(self.rowcount)

    async def scalar(self, stmt):
        self.statements.append(stmt)
        return 0


def compiled(stmt, literal=False):
    kwargs = {"literal_binds": True} if literal else {}
    return stmt.compile(dialect=postgresql.dialect(), compile_kwargs=kwargs)


def where_part(stmt):
    return str(compiled(stmt)).split("WHERE", 1)[1]


# ─── Agent capacity counters ────────────────────────────────────────


@pytest.mark.asyncio
async def test_reserve_slot_is_one_conditional_increment():
    session = RecordingSession(rowcount=1)

    assert await SqlAgentRepository(session).reserve_slot("a1") is True

    [stmt] = session.statements
    sql = str(compiled(stmt, literal=True))
    assert sql.startswith("UPDATE agents SET")
    assert "(agents.current_active_chats + 1)" in sql
    assert "agents.id = 'a1'" in sql
    assert "agents.current_active_chats < agents.max_concurrent_chats" in sql


@pytest.mark.asyncio
async def test_reserve_slot_reports_full_agent():
    session = RecordingSession(rowcount=0)

    assert await SqlAgentRepository(session).reserve_slot("a1") is False


@pytest.mark.asyncio
async def test_release_slot_never_goes_below_zero():
    session = RecordingSession()

    await SqlAgentRepository(session).release_slot("a1")

    [stmt] = session.statements
    sql = str(compiled(stmt, literal=True))
    assert "current_active_chats=(agents.current_active_chats - 1)" in sql
    assert "agents.current_active_chats > 0" in sql


# ─── Conversation compare-and-set ───────────────────────────────────


@pytest.mark.asyncio
async def test_compare_and_set_expects_no_owner():
    session = RecordingSession(rowcount=1)
    repo = SqlConversationRepository(session)
    updated = make_conversation("c1", state=ConversationState.ASSIGNED, agent_id="B")

    assert await repo.compare_and_set(updated, ConversationState.UNASSIGNED, None) is True

    [stmt] = session.statements
    where = where_part(stmt)
    assert "conversations.id = " in where
    assert "conversations.state = " in where
    assert "conversations.agent_id IS NULL" in where
    assert "unassigned" in compiled(stmt).params.values()


@pytest.mark.asyncio
async def test_compare_and_set_expects_current_owner():
    session = RecordingSession(rowcount=0)
    repo = SqlConversationRepository(session)
    updated = make_conversation("c1", state=ConversationState.ASSIGNED, agent_id="B")

    assert await repo.compare_and_set(updated, ConversationState.ESCALATED, "A") is False

    [stmt] = session.statements
    where = where_part(stmt)
    assert "conversations.agent_id = " in where
    assert "IS NULL" not in where
    params = compiled(stmt).params
    assert "A" in params.values()
    assert "escalated" in params.values()


@pytest.mark.asyncio
async def test_compare_and_set_writes_routing_fields_only():
    session = RecordingSession()
    updated = make_conversation("c1", state=ConversationState.ASSIGNED, agent_id="B")

    await SqlConversationRepository(session).compare_and_set(updated, ConversationState.UNASSIGNED, None)

    set_part = str(compiled(session.statements[0])).split("WHERE", 1)[0]
    assert "agent_id=" in set_part
    assert "state=" in set_part
    assert "priority=" not in set_part
    assert "tags=" not in set_part


# ─── Listing ────────────────────────────────────────────────────────


def test_search_escapes_like_wildcards():
    [clause] = _filter_clauses(ConversationFilters(search="50%_Off"), Scope.unrestricted())

    c = compiled(clause)
    assert "ESCAPE '/'" in str(c)
    assert list(c.params.values()) == ["50/%/_off"] * 3


def test_filters_are_scoped_to_organization():
    [clause] = _filter_clauses(
        ConversationFilters(status=ConversationState.ASSIGNED, tag="vip"),
        Scope.for_organization("org-1"),
    )

    c = compiled(clause)
    sql = str(c)
    assert "conversations.organization_id = " in sql
    assert "conversations.state = " in sql
    assert "ANY (conversations.tags)" in sql
    assert {"org-1", "assigned", "vip"} <= set(c.params.values())


def test_unrestricted_scope_without_filters_has_no_where():
    assert _filter_clauses(ConversationFilters(), Scope.unrestricted()) == []


@pytest.mark.asyncio
async def test_priority_sort_uses_rank_then_id():
    session = RecordingSession()
    repo = SqlConversationRepository(session)

    page = await repo.list_page(
        ConversationFilters(),
        SortSpec(field=SortField.PRIORITY, direction=SortDirection.DESC),
        PageRequest(page=2, page_size=10),
        Scope.for_organization("org-1"),
    )

    assert page.total == 0
    count_stmt, select_stmt = session.statements
    assert "count(*)" in str(compiled(count_stmt))
    sql = str(compiled(select_stmt, literal=True))
    assert "CASE conversations.priority WHEN 'low' THEN 0" in sql
    assert "WHEN 'urgent' THEN 3" in sql
    assert "END DESC, conversations.id" in sql
    assert "LIMIT 10 OFFSET 10" in sql


@pytest.mark.asyncio
async def test_distinct_tags_unnests_scoped_arrays():
    session = RecordingSession()

    assert await SqlConversationRepository(session).distinct_tags(Scope.for_organization("org-1")) == []

    [stmt] = session.statements
    c = compiled(stmt)
    sql = str(c)
    assert "SELECT DISTINCT" in sql
    assert "unnest(conversations.tags)" in sql
    assert "org-1" in c.params.values()
