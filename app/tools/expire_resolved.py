"""Close conversations that stayed resolved longer than the grace period.

Usage:
    python -m app.tools.expire_resolved
    python -m app.tools.expire_resolved --grace-minutes 1440

Meant to be run from cron or a scheduler. Without --grace-minutes the
RESOLVED_GRACE_MINUTES setting is used; if that is unset the sweep is off.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import timedelta

from app.adapters.auth.permission_authorizer import PermissionAuthorizer
from app.adapters.persistence.database import async_session_factory, engine
from app.adapters.persistence.repositories import (
    SqlAgentRepository,
    SqlAssignmentLogRepository,
    SqlConversationRepository,
    SqlTransactionManager,
)
from app.application.use_cases.access import AccessGuard
from app.application.use_cases.assignment_router import AssignmentRouter
from app.application.use_cases.expire_resolved import ExpireResolvedUseCase, ExpiryReport
from app.config import settings

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)


async def run(grace: timedelta) -> ExpiryReport:
    async with async_session_factory() as session:
        conversations = SqlConversationRepository(session)
        transactions = SqlTransactionManager(session)
        router = AssignmentRouter(
            agent_repo=SqlAgentRepository(session),
            conversation_repo=conversations,
            assignment_log=SqlAssignmentLogRepository(session),
            guard=AccessGuard(PermissionAuthorizer()),
            transactions=transactions,
            weights=settings.scoring_weights,
        )
        use_case = ExpireResolvedUseCase(conversations, router, transactions)
        report = await use_case.execute(grace)
        await session.commit()
    await engine.dispose()
    return report


def main():
    parser = argparse.ArgumentParser(description="Close conversations resolved longer than the grace period")
    parser.add_argument(
        "--grace-minutes", type=int, default=settings.resolved_grace_minutes,
        help="Grace period in minutes (default: RESOLVED_GRACE_MINUTES)",
    )
    args = parser.parse_args()

    if args.grace_minutes is None:
        logger.info("RESOLVED_GRACE_MINUTES is not set, resolved sweep disabled")
        return
    if args.grace_minutes <= 0:
        logger.error("Grace period must be positive, got %d", args.grace_minutes)
        sys.exit(1)

    report = asyncio.run(run(timedelta(minutes=args.grace_minutes)))
    print(f"Examined: {report.examined}  Closed: {report.closed}  Skipped: {report.skipped}")


if __name__ == "__main__":
    main()
