"""ExpireResolvedUseCase — close conversations left resolved past the grace period."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.application.ports.conversation_repo import ConversationRepository
from app.application.ports.transaction import TransactionManager
from app.application.use_cases.assignment_router import AssignmentRouter
from app.domain.exceptions import RoutingError

logger = logging.getLogger(__name__)


@dataclass
class ExpiryReport:
    examined: int = 0
    closed: int = 0
    skipped: int = 0


class ExpireResolvedUseCase:
    """Runs outside any user request, so there is no actor and no scope:
    it closes through the router's loaded-conversation path directly.
    """

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        router: AssignmentRouter,
        transactions: TransactionManager,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._conversations = conversation_repo
        self._router = router
        self._tx = transactions
        self._now = clock

    async def execute(self, grace: timedelta) -> ExpiryReport:
        cutoff = self._now() - grace
        expired = await self._conversations.list_resolved_before(cutoff)
        report = ExpiryReport(examined=len(expired))

        for conversation in expired:
            try:
                async with self._tx.savepoint():
                    await self._router.apply_close(conversation)
            except RoutingError as exc:
                # Reopened or closed by someone else since the scan.
                logger.info("Skipping conversation %s: %s", conversation.id, exc)
                report.skipped += 1
                continue
            report.closed += 1

        logger.info(
            "Resolved sweep (cutoff %s): %d examined, %d closed, %d skipped",
            cutoff.isoformat(), report.examined, report.closed, report.skipped,
        )
        return report
