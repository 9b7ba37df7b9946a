"""AssignmentDecision — the outcome of routing a conversation to an agent."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from app.domain.value_objects.enums import ErrorKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AssignmentDecision:
    conversation_id: str
    chosen_agent_id: str | None
    reason: str
    score: float = 0.0
    timestamp: datetime = field(default_factory=_utcnow)
    fallback_used: bool = False
    forced: bool = False
    error_kind: ErrorKind | None = None

    @property
    def assigned(self) -> bool:
        return self.chosen_agent_id is not None
