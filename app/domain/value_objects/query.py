"""Query value objects for the dashboard listing — filters, sort, paging."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

from app.domain.value_objects.enums import (
    ConversationState,
    Priority,
    SortDirection,
    SortField,
)

T = TypeVar("T")


@dataclass(frozen=True)
class DateRange:
    """Inclusive bounds on ``created_at``; either side may be open."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        if self.start and self.end and self.start > self.end:
            raise ValueError("date range start must not be after end")

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


@dataclass(frozen=True)
class ConversationFilters:
    status: ConversationState | None = None
    priority: Priority | None = None
    assigned_agent_id: str | None = None
    search: str | None = None
    date_range: DateRange | None = None
    tag: str | None = None

    @property
    def search_term(self) -> str | None:
        if self.search is None:
            return None
        term = self.search.strip().lower()
        return term or None


@dataclass(frozen=True)
class SortSpec:
    field: SortField = SortField.LAST_ACTIVITY
    direction: SortDirection = SortDirection.DESC

    @property
    def descending(self) -> bool:
        return self.direction == SortDirection.DESC


@dataclass(frozen=True)
class PageRequest:
    """1-based page number."""

    page: int = 1
    page_size: int = 25

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


@dataclass(frozen=True)
class Scope:
    """Organization restriction for a caller.

    ``organization_id=None`` means every organization; only
    ``Scope.unrestricted()`` builds it so the wide form is always explicit.
    """

    organization_id: str | None
    unrestricted_grant: bool = field(default=False, repr=False)

    @classmethod
    def for_organization(cls, organization_id: str) -> Scope:
        return cls(organization_id=organization_id)

    @classmethod
    def unrestricted(cls) -> Scope:
        return cls(organization_id=None, unrestricted_grant=True)

    def __post_init__(self) -> None:
        if self.organization_id is None and not self.unrestricted_grant:
            raise ValueError("use Scope.unrestricted() for a cross-organization scope")

    def allows(self, organization_id: str) -> bool:
        return self.organization_id is None or self.organization_id == organization_id
