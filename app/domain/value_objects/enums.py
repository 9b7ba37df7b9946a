"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class ConversationState(str, Enum):
    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Higher rank = more urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 0,
    Priority.NORMAL: 1,
    Priority.HIGH: 2,
    Priority.URGENT: 3,
}


class Availability(str, Enum):
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"


class TransitionAction(str, Enum):
    ASSIGN = "assign"
    ESCALATE = "escalate"
    RESOLVE = "resolve"
    REOPEN = "reopen"
    CLOSE = "close"


class BulkActionType(str, Enum):
    ASSIGN = "assign"
    AUTO_ASSIGN = "auto_assign"
    CLOSE = "close"
    ESCALATE = "escalate"
    RESOLVE = "resolve"
    SET_PRIORITY = "set_priority"
    ADD_TAG = "add_tag"
    REMOVE_TAG = "remove_tag"


class ErrorKind(str, Enum):
    INVALID_STATE_TRANSITION = "InvalidStateTransition"
    NO_ELIGIBLE_AGENT = "NoEligibleAgent"
    NOT_FOUND = "NotFound"
    PERMISSION_DENIED = "PermissionDenied"
    CAPACITY_EXCEEDED = "CapacityExceeded"


class SortField(str, Enum):
    CREATED_AT = "created_at"
    LAST_ACTIVITY = "last_activity"
    PRIORITY = "priority"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"
