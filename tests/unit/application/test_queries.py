"""Read-side use cases: listing, detail, history, available agents, summary."""

import pytest

from conftest import make_agent, make_conversation
from app.application.use_cases.available_agents import ListAvailableAgentsUseCase
from app.application.use_cases.inbox_summary import InboxSummaryUseCase
from app.application.use_cases.list_conversations import (
    AssignmentHistoryUseCase,
    ConversationFilterOptionsUseCase,
    GetConversationUseCase,
    ListConversationsUseCase,
)
from app.domain.exceptions import ConversationNotFound, PermissionDenied
from app.domain.value_objects.actor import Actor
from app.domain.value_objects.enums import (
    Availability,
    ConversationState,
    Priority,
    SortField,
)
from app.domain.value_objects.query import ConversationFilters, PageRequest, SortSpec


@pytest.fixture
def listing(conversation_repo, guard):
    return ListConversationsUseCase(conversation_repo, guard, max_page_size=2)


@pytest.mark.asyncio
async def test_listing_is_scoped_to_organization(listing, conversation_repo, supervisor):
    conversation_repo.add(
        make_conversation("c1"),
        make_conversation("c2"),
        make_conversation("x1", org="org-2"),
    )

    page = await listing.execute(supervisor)

    assert page.total == 2
    assert {c.id for c in page.items} == {"c1", "c2"}


@pytest.mark.asyncio
async def test_page_size_is_clamped(listing, conversation_repo, supervisor):
    conversation_repo.add(*(make_conversation(f"c{i}", age_minutes=i) for i in range(5)))

    page = await listing.execute(supervisor, page=PageRequest(page=1, page_size=50))

    assert page.page_size == 2
    assert len(page.items) == 2
    assert page.total == 5
    assert page.pages == 3


@pytest.mark.asyncio
async def test_listing_filters_and_sorts(listing, conversation_repo, supervisor):
    conversation_repo.add(
        make_conversation("c1", priority=Priority.LOW, customer_name="Ana"),
        make_conversation("c2", priority=Priority.URGENT, customer_name="Anders"),
        make_conversation("c3", priority=Priority.HIGH, customer_name="Bob"),
    )

    page = await listing.execute(
        supervisor,
        filters=ConversationFilters(search="an"),
        sort=SortSpec(field=SortField.PRIORITY),
    )

    assert [c.id for c in page.items] == ["c2", "c1"]


@pytest.mark.asyncio
async def test_unscoped_actor_without_grant_is_denied(listing):
    nobody = Actor(user_id="u-x", organization_id=None, permissions=frozenset({"conversations.view"}))
    with pytest.raises(PermissionDenied):
        await listing.execute(nobody)


@pytest.mark.asyncio
async def test_platform_admin_sees_every_organization(listing, conversation_repo, platform_admin):
    conversation_repo.add(make_conversation("c1"), make_conversation("x1", org="org-2"))
    page = await listing.execute(platform_admin)
    assert page.total == 2


@pytest.mark.asyncio
async def test_get_conversation_hides_other_organizations(conversation_repo, guard, viewer):
    conversation_repo.add(make_conversation("c1"), make_conversation("x1", org="org-2"))
    uc = GetConversationUseCase(conversation_repo, guard)

    assert (await uc.execute("c1", viewer)).id == "c1"
    with pytest.raises(ConversationNotFound):
        await uc.execute("x1", viewer)
    with pytest.raises(ConversationNotFound):
        await uc.execute("missing", viewer)


@pytest.mark.asyncio
async def test_assignment_history(router, agent_repo, conversation_repo, assignment_log, guard, supervisor):
    agent_repo.add(make_agent("A"), make_agent("B"))
    conversation_repo.add(make_conversation("c1"))
    await router.assign("c1", "A", supervisor)
    await router.transfer("c1", "B", supervisor, reason="shift change")

    history = await AssignmentHistoryUseCase(conversation_repo, assignment_log, guard).execute(
        "c1", supervisor
    )

    assert [d.chosen_agent_id for d in history] == ["A", "B"]


@pytest.mark.asyncio
async def test_available_agents_least_loaded_first(agent_repo, guard, supervisor):
    agent_repo.add(
        make_agent("busy", max_chats=4, current=3, skills={"billing"}),
        make_agent("idle", max_chats=4, current=0, skills={"sales"}),
        make_agent("full", max_chats=2, current=2),
        make_agent("away", availability=Availability.AWAY),
        make_agent("other", org="org-2"),
    )
    uc = ListAvailableAgentsUseCase(agent_repo, guard)

    everyone = await uc.execute(supervisor)
    billing = await uc.execute(supervisor, skills={" Billing "})

    assert [a.agent.id for a in everyone] == ["idle", "busy"]
    assert everyone[1].utilization_percent == 75.0
    assert everyone[1].can_handle_more is True
    assert [a.agent.id for a in billing] == ["busy"]


@pytest.mark.asyncio
async def test_inbox_summary(agent_repo, conversation_repo, guard, supervisor):
    agent_repo.add(
        make_agent("A", max_chats=4, current=1),
        make_agent("B", max_chats=4, current=2),
        make_agent("C", availability=Availability.OFFLINE),
    )
    conversation_repo.add(
        make_conversation("c1", priority=Priority.URGENT),
        make_conversation("c2", state=ConversationState.ASSIGNED, agent_id="A"),
        make_conversation("c3", state=ConversationState.CLOSED, priority=Priority.URGENT),
    )

    summary = await InboxSummaryUseCase(conversation_repo, agent_repo, guard).execute(supervisor)

    assert summary.unassigned_backlog == 1
    assert summary.by_state[ConversationState.CLOSED] == 1
    assert summary.by_state[ConversationState.RESOLVED] == 0
    assert summary.open_by_priority[Priority.URGENT] == 1
    assert summary.agents_online == 2
    assert summary.total_capacity == 8
    assert summary.capacity_utilization == 37.5


@pytest.mark.asyncio
async def test_filter_options_are_scoped(agent_repo, conversation_repo, guard, viewer):
    agent_repo.add(make_agent("B"), make_agent("A", availability=Availability.OFFLINE), make_agent("X", org="org-2"))
    conversation_repo.add(
        make_conversation("c1", tags={"billing", "vip"}),
        make_conversation("c2", state=ConversationState.CLOSED, tags={"refund"}),
        make_conversation("x1", org="org-2", tags={"secret"}),
    )
    uc = ConversationFilterOptionsUseCase(conversation_repo, agent_repo, guard)

    options = await uc.execute(viewer)

    assert [a.id for a in options.agents] == ["A", "B"]
    assert options.tags == ["billing", "refund", "vip"]
    assert options.priorities == [Priority.LOW, Priority.NORMAL, Priority.HIGH, Priority.URGENT]
    assert ConversationState.ESCALATED in options.states
