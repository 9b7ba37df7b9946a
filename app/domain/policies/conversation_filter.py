"""In-process predicate/sort for conversation listings.

The SQL adapter expresses the same rules as a query; this version backs the
in-memory store.
"""

from __future__ import annotations

from app.domain.entities.conversation import Conversation
from app.domain.value_objects.enums import SortField
from app.domain.value_objects.query import ConversationFilters, Scope, SortSpec


def matches(conversation: Conversation, filters: ConversationFilters, scope: Scope) -> bool:
    if not scope.allows(conversation.organization_id):
        return False
    if filters.status is not None and conversation.state != filters.status:
        return False
    if filters.priority is not None and conversation.priority != filters.priority:
        return False
    if filters.assigned_agent_id is not None and conversation.agent_id != filters.assigned_agent_id:
        return False
    if filters.tag is not None and filters.tag not in conversation.tags:
        return False
    if filters.date_range is not None and not filters.date_range.contains(conversation.created_at):
        return False

    term = filters.search_term
    if term is not None:
        haystack = [conversation.id, conversation.customer_name or "", conversation.subject or ""]
        if not any(term in h.lower() for h in haystack):
            return False
    return True


def sort_conversations(conversations: list[Conversation], sort: SortSpec) -> list[Conversation]:
    """Stable sort on the chosen field with id as the final tiebreaker."""
    if sort.field == SortField.CREATED_AT:
        key = lambda c: c.created_at  # noqa: E731
    elif sort.field == SortField.PRIORITY:
        key = lambda c: c.priority.rank  # noqa: E731
    else:
        key = lambda c: c.last_activity_at  # noqa: E731

    by_id = sorted(conversations, key=lambda c: c.id)
    return sorted(by_id, key=key, reverse=sort.descending)
