"""BatchOrderPolicy — deterministic processing order for bulk operations."""

from __future__ import annotations

from app.domain.entities.conversation import Conversation


def processing_order(conversations: list[Conversation]) -> list[Conversation]:
    """Sort urgent → low, then oldest first, then by id.

    Scarce agent capacity goes to the most important work when a batch runs
    out of it half-way. The id key makes the order independent of how the
    store happened to return rows.
    """
    return sorted(
        conversations,
        key=lambda c: (-c.priority.rank, c.created_at, c.id),
    )
