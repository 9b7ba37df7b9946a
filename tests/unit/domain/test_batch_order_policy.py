"""Tests for bulk processing order."""

from datetime import datetime, timedelta, timezone

from app.domain.entities.conversation import Conversation
from app.domain.policies.batch_order import processing_order
from app.domain.value_objects.enums import Priority

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _conv(cid, priority, minutes=0) -> Conversation:
    created = T0 + timedelta(minutes=minutes)
    return Conversation(
        id=cid, organization_id="org", created_at=created, last_activity_at=created,
        priority=priority,
    )


def test_urgent_first_then_oldest():
    batch = [
        _conv("low-old", Priority.LOW, 0),
        _conv("urgent-new", Priority.URGENT, 30),
        _conv("high", Priority.HIGH, 5),
        _conv("urgent-old", Priority.URGENT, 10),
        _conv("normal", Priority.NORMAL, 1),
    ]
    ordered = [c.id for c in processing_order(batch)]
    assert ordered == ["urgent-old", "urgent-new", "high", "normal", "low-old"]


def test_order_independent_of_input_order():
    batch = [_conv("b", Priority.HIGH), _conv("a", Priority.HIGH), _conv("c", Priority.HIGH)]
    assert [c.id for c in processing_order(batch)] == ["a", "b", "c"]
    assert [c.id for c in processing_order(list(reversed(batch)))] == ["a", "b", "c"]
