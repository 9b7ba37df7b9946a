"""ConversationLifecycle — allowed state transitions of a conversation."""

from __future__ import annotations

from app.domain.exceptions import InvalidStateTransition
from app.domain.value_objects.enums import ConversationState, TransitionAction

_S = ConversationState
_A = TransitionAction

# (current, action) -> next state
_ALLOWED: dict[tuple[ConversationState, TransitionAction], ConversationState] = {
    (_S.UNASSIGNED, _A.ASSIGN): _S.ASSIGNED,
    (_S.ASSIGNED, _A.ASSIGN): _S.ASSIGNED,
    (_S.ESCALATED, _A.ASSIGN): _S.ASSIGNED,
    (_S.ASSIGNED, _A.ESCALATE): _S.ESCALATED,
    (_S.ASSIGNED, _A.RESOLVE): _S.RESOLVED,
    (_S.ESCALATED, _A.RESOLVE): _S.RESOLVED,
    (_S.RESOLVED, _A.REOPEN): _S.ASSIGNED,
    (_S.UNASSIGNED, _A.CLOSE): _S.CLOSED,
    (_S.ASSIGNED, _A.CLOSE): _S.CLOSED,
    (_S.ESCALATED, _A.CLOSE): _S.CLOSED,
    (_S.RESOLVED, _A.CLOSE): _S.CLOSED,
}

# Repeating these is a successful no-op, so UI retries and bulk retries are safe.
_IDEMPOTENT: set[tuple[ConversationState, TransitionAction]] = {
    (_S.CLOSED, _A.CLOSE),
    (_S.RESOLVED, _A.RESOLVE),
    (_S.ESCALATED, _A.ESCALATE),
}


def is_noop(current: ConversationState, action: TransitionAction) -> bool:
    return (current, action) in _IDEMPOTENT


def next_state(
    current: ConversationState,
    action: TransitionAction,
    conversation_id: str | None = None,
) -> ConversationState:
    """Pure function: return the state after applying *action*.

    Raises:
        InvalidStateTransition: if the action is not allowed from *current*.
    """
    if is_noop(current, action):
        return current
    target = _ALLOWED.get((current, action))
    if target is None:
        raise InvalidStateTransition(current, action, conversation_id)
    return target


def allowed_actions(current: ConversationState) -> list[TransitionAction]:
    """Actions a dashboard may offer for a conversation in *current*."""
    return [a for a in TransitionAction if (current, a) in _ALLOWED]
