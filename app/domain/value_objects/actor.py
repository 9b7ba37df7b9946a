"""Actor — the user on whose behalf an operation runs."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Actor:
    user_id: str
    organization_id: str | None
    permissions: frozenset[str] = field(default_factory=frozenset)
