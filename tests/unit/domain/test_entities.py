"""Tests for domain entities and result objects."""

from datetime import datetime, timezone

from app.domain.entities.agent import Agent
from app.domain.entities.assignment import AssignmentDecision
from app.domain.entities.bulk_result import BulkItemResult, BulkOperationResult
from app.domain.entities.conversation import Conversation
from app.domain.value_objects.enums import Availability, ConversationState, ErrorKind

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _agent(current=0, max_chats=4, availability=Availability.ONLINE) -> Agent:
    return Agent(
        id="a1", organization_id="org", name="A", max_concurrent_chats=max_chats,
        current_active_chats=current, availability=availability,
    )


def test_agent_utilization():
    assert _agent(current=1, max_chats=4).utilization == 0.25
    assert _agent(current=4, max_chats=4).utilization == 1.0


def test_agent_zero_capacity_counts_as_full():
    a = _agent(current=0, max_chats=0)
    assert a.utilization == 1.0
    assert a.has_spare_capacity() is False


def test_agent_spare_capacity_and_online():
    assert _agent(current=3, max_chats=4).has_spare_capacity() is True
    assert _agent(current=4, max_chats=4).has_spare_capacity() is False
    assert _agent(availability=Availability.AWAY).is_online() is False


def test_conversation_slot_holder_follows_resolution():
    c = Conversation(
        id="c1", organization_id="org", created_at=T0, last_activity_at=T0,
        state=ConversationState.RESOLVED, agent_id=None, resolved_by_agent_id="a1",
    )
    assert c.slot_holder_id == "a1"
    assert c.is_owned() is False
    assert c.is_terminal() is False


def test_conversation_owned_states():
    c = Conversation(
        id="c1", organization_id="org", created_at=T0, last_activity_at=T0,
        state=ConversationState.ESCALATED, agent_id="a1",
    )
    assert c.is_owned() is True
    assert c.slot_holder_id == "a1"


def test_decision_without_agent_is_not_assigned():
    d = AssignmentDecision(
        conversation_id="c1", chosen_agent_id=None, reason="none",
        error_kind=ErrorKind.NO_ELIGIBLE_AGENT,
    )
    assert d.assigned is False
    assert d.timestamp.tzinfo is not None


def test_bulk_result_counters_reconcile_with_items():
    result = BulkOperationResult()
    result.record(BulkItemResult("c1", True))
    result.record(BulkItemResult("c2", False, ErrorKind.NOT_FOUND))
    result.record(BulkItemResult("c3", True))

    assert result.attempted == 3
    assert result.succeeded == 2
    assert result.failed == 1
    assert result.attempted == result.succeeded + result.failed == len(result.items)
