"""BulkOperationCoordinator — one action applied independently to many conversations."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.application.ports.conversation_repo import ConversationRepository
from app.application.ports.transaction import TransactionManager
from app.application.use_cases.access import AccessGuard
from app.application.use_cases.assignment_router import AssignmentRouter
from app.domain.entities.bulk_result import BulkItemResult, BulkOperationResult
from app.domain.entities.conversation import Conversation
from app.domain.exceptions import NoEligibleAgent, RoutingError
from app.domain.policies.batch_order import processing_order
from app.domain.value_objects.actor import Actor
from app.domain.value_objects.enums import BulkActionType, ErrorKind, Priority
from app.domain.value_objects.query import Scope

logger = logging.getLogger(__name__)

# Capability checked per conversation for each bulk action.
_CAPABILITY = {
    BulkActionType.ASSIGN: "assign",
    BulkActionType.AUTO_ASSIGN: "assign",
    BulkActionType.CLOSE: "close",
    BulkActionType.ESCALATE: "escalate",
    BulkActionType.RESOLVE: "resolve",
    BulkActionType.SET_PRIORITY: "update",
    BulkActionType.ADD_TAG: "update",
    BulkActionType.REMOVE_TAG: "update",
}


@dataclass(frozen=True)
class BulkAction:
    """An action plus the single argument it needs, if any."""

    type: BulkActionType
    agent_id: str | None = None
    reason: str | None = None
    priority: Priority | None = None
    tag: str | None = None

    def __post_init__(self) -> None:
        if self.type == BulkActionType.ASSIGN and not self.agent_id:
            raise ValueError("assign requires agent_id")
        if self.type == BulkActionType.ESCALATE and not (self.reason and self.reason.strip()):
            raise ValueError("escalate requires a reason")
        if self.type == BulkActionType.SET_PRIORITY and self.priority is None:
            raise ValueError("set_priority requires priority")
        if self.type in (BulkActionType.ADD_TAG, BulkActionType.REMOVE_TAG):
            if not (self.tag and self.tag.strip()):
                raise ValueError(f"{self.type.value} requires a tag")

    @property
    def capability(self) -> str:
        return _CAPABILITY[self.type]

    @classmethod
    def assign(cls, agent_id: str) -> BulkAction:
        return cls(BulkActionType.ASSIGN, agent_id=agent_id)

    @classmethod
    def close(cls) -> BulkAction:
        return cls(BulkActionType.CLOSE)

    @classmethod
    def escalate(cls, reason: str) -> BulkAction:
        return cls(BulkActionType.ESCALATE, reason=reason)

    @classmethod
    def set_priority(cls, priority: Priority) -> BulkAction:
        return cls(BulkActionType.SET_PRIORITY, priority=priority)

    @classmethod
    def add_tag(cls, tag: str) -> BulkAction:
        return cls(BulkActionType.ADD_TAG, tag=tag)


class BulkOperationCoordinator:
    """Applies a :class:`BulkAction` conversation by conversation.

    Each item runs in its own savepoint, so one failure never undoes or
    blocks another. Routing errors become failed items; anything else
    (e.g. the database going away) aborts the whole call.
    """

    def __init__(
        self,
        router: AssignmentRouter,
        conversation_repo: ConversationRepository,
        guard: AccessGuard,
        transactions: TransactionManager,
    ):
        self._router = router
        self._conversations = conversation_repo
        self._guard = guard
        self._tx = transactions

    async def execute(
        self,
        conversation_ids: list[str],
        action: BulkAction,
        actor: Actor,
    ) -> BulkOperationResult:
        scope = await self._guard.scope_for(actor)
        result = BulkOperationResult()

        requested = list(dict.fromkeys(conversation_ids))
        found = await self._conversations.get_many(requested)
        visible = {c.id: c for c in found if scope.allows(c.organization_id)}

        for conversation in processing_order(visible.values()):
            result.record(await self._apply_one(conversation, action, actor, scope))

        for conversation_id in requested:
            if conversation_id not in visible:
                result.record(
                    BulkItemResult(
                        conversation_id=conversation_id,
                        success=False,
                        error_kind=ErrorKind.NOT_FOUND,
                        message=f"Conversation '{conversation_id}' not found",
                    )
                )

        logger.info(
            "Bulk %s by user %s: attempted=%d succeeded=%d failed=%d",
            action.type.value, actor.user_id,
            result.attempted, result.succeeded, result.failed,
        )
        return result

    async def _apply_one(
        self, conversation: Conversation, action: BulkAction, actor: Actor, scope: Scope
    ) -> BulkItemResult:
        try:
            await self._guard.check(actor, action.capability, conversation, scope)
            async with self._tx.savepoint():
                return await self._dispatch(conversation, action)
        except RoutingError as exc:
            return _skipped(conversation, action, exc)
        except Exception:
            logger.exception("Bulk %s aborted at conversation %s", action.type.value, conversation.id)
            raise

    async def _dispatch(self, conversation: Conversation, action: BulkAction) -> BulkItemResult:
        router = self._router
        kind = action.type

        if kind == BulkActionType.ASSIGN:
            await router.apply_assign(conversation, action.agent_id)
        elif kind == BulkActionType.AUTO_ASSIGN:
            decision = await router.apply_auto_assign(conversation)
            if not decision.assigned:
                # Returned, not raised: the savepoint keeps the logged decision.
                return _skipped(conversation, action, NoEligibleAgent(conversation.id, decision.reason))
            return BulkItemResult(conversation_id=conversation.id, success=True, message=decision.reason)
        elif kind == BulkActionType.CLOSE:
            await router.apply_close(conversation)
        elif kind == BulkActionType.ESCALATE:
            await router.apply_escalate(conversation, action.reason.strip())
        elif kind == BulkActionType.RESOLVE:
            await router.apply_resolve(conversation)
        elif kind == BulkActionType.SET_PRIORITY:
            await router.apply_priority(conversation, action.priority)
        elif kind == BulkActionType.ADD_TAG:
            await router.apply_tags(conversation, add={action.tag.strip()})
        elif kind == BulkActionType.REMOVE_TAG:
            await router.apply_tags(conversation, remove={action.tag.strip()})
        return BulkItemResult(conversation_id=conversation.id, success=True)


def _skipped(conversation: Conversation, action: BulkAction, exc: RoutingError) -> BulkItemResult:
    logger.info("Bulk %s skipped conversation %s: %s", action.type.value, conversation.id, exc)
    return BulkItemResult(
        conversation_id=conversation.id,
        success=False,
        error_kind=exc.error_kind,
        message=str(exc),
    )
