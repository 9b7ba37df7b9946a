"""Agent entity — a human support representative with finite chat capacity."""

from dataclasses import dataclass, field

from app.domain.value_objects.enums import Availability


@dataclass
class Agent:
    id: str
    organization_id: str
    name: str
    max_concurrent_chats: int
    current_active_chats: int = 0
    availability: Availability = Availability.OFFLINE
    skills: set[str] = field(default_factory=set)
    rating: float | None = None
    department: str | None = None

    def has_skill(self, skill: str) -> bool:
        return skill in self.skills

    def is_online(self) -> bool:
        return self.availability == Availability.ONLINE

    def has_spare_capacity(self) -> bool:
        return self.current_active_chats < self.max_concurrent_chats

    @property
    def utilization(self) -> float:
        """Share of capacity in use, 0.0 – 1.0."""
        if self.max_concurrent_chats <= 0:
            return 1.0
        return self.current_active_chats / self.max_concurrent_chats
