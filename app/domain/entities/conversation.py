"""Conversation entity — a customer chat session routed between bot and agents."""

from dataclasses import dataclass, field
from datetime import datetime

from app.domain.value_objects.enums import ConversationState, Priority


@dataclass
class Conversation:
    id: str
    organization_id: str
    created_at: datetime
    last_activity_at: datetime
    state: ConversationState = ConversationState.UNASSIGNED
    priority: Priority = Priority.NORMAL
    agent_id: str | None = None
    required_skills: set[str] = field(default_factory=set)
    tags: set[str] = field(default_factory=set)
    customer_name: str | None = None
    subject: str | None = None
    escalation_reason: str | None = None
    resolved_by_agent_id: str | None = None
    transferred_from_agent_id: str | None = None
    transfer_notes: str | None = None
    assigned_at: datetime | None = None
    resolved_at: datetime | None = None
    closed_at: datetime | None = None

    @property
    def slot_holder_id(self) -> str | None:
        """Agent whose capacity slot this conversation currently occupies.

        A resolved conversation keeps its slot (resolution can be undone)
        even though ``agent_id`` is cleared.
        """
        return self.agent_id or self.resolved_by_agent_id

    def is_owned(self) -> bool:
        return self.state in (ConversationState.ASSIGNED, ConversationState.ESCALATED)

    def is_terminal(self) -> bool:
        return self.state == ConversationState.CLOSED
