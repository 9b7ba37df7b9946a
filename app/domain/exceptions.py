"""Routing errors. Each carries an ``error_kind`` so callers can report it uniformly."""

from app.domain.value_objects.enums import ConversationState, ErrorKind, TransitionAction


class RoutingError(Exception):
    error_kind: ErrorKind


class InvalidStateTransition(RoutingError, ValueError):
    error_kind = ErrorKind.INVALID_STATE_TRANSITION

    def __init__(
        self,
        current: ConversationState,
        action: TransitionAction,
        conversation_id: str | None = None,
        detail: str | None = None,
    ) -> None:
        message = f"Cannot apply action '{action.value}' from state '{current.value}'."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)
        self.current = current
        self.action = action
        self.conversation_id = conversation_id


class NoEligibleAgent(RoutingError):
    error_kind = ErrorKind.NO_ELIGIBLE_AGENT

    def __init__(self, conversation_id: str, detail: str = "No eligible agent available") -> None:
        super().__init__(f"Conversation '{conversation_id}': {detail}")
        self.conversation_id = conversation_id


class ConversationNotFound(RoutingError, LookupError):
    error_kind = ErrorKind.NOT_FOUND

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation '{conversation_id}' not found")
        self.conversation_id = conversation_id


class AgentNotFound(RoutingError, LookupError):
    error_kind = ErrorKind.NOT_FOUND

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent '{agent_id}' not found")
        self.agent_id = agent_id


class PermissionDenied(RoutingError, PermissionError):
    error_kind = ErrorKind.PERMISSION_DENIED

    def __init__(self, user_id: str, action: str, conversation_id: str | None = None) -> None:
        target = f" on conversation '{conversation_id}'" if conversation_id else ""
        super().__init__(f"User '{user_id}' may not perform '{action}'{target}")
        self.user_id = user_id
        self.action = action
        self.conversation_id = conversation_id


class CapacityExceeded(RoutingError):
    error_kind = ErrorKind.CAPACITY_EXCEEDED

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent '{agent_id}' is already at full capacity")
        self.agent_id = agent_id
