"""Bulk operation outcome — itemized results plus reconciled counters."""

from dataclasses import dataclass, field

from app.domain.value_objects.enums import ErrorKind


@dataclass(frozen=True)
class BulkItemResult:
    conversation_id: str
    success: bool
    error_kind: ErrorKind | None = None
    message: str | None = None


@dataclass
class BulkOperationResult:
    """Counters are derived from ``items`` so they can never drift from it."""

    items: list[BulkItemResult] = field(default_factory=list)

    def record(self, item: BulkItemResult) -> None:
        self.items.append(item)

    @property
    def attempted(self) -> int:
        return len(self.items)

    @property
    def succeeded(self) -> int:
        return sum(1 for i in self.items if i.success)

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if not i.success)
