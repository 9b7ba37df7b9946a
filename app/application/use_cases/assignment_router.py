"""AssignmentRouter — agent selection and conversation state transitions.

This is the only place agent load counters change. Every transition follows
the same order so a half-applied change is never persisted:

1. reserve a slot on the new owner (atomic conditional increment),
2. compare-and-set the conversation row against the state we read,
3. release the old owner's slot (atomic guarded decrement).

A lost compare-and-set gives the reserved slot back and surfaces as
``InvalidStateTransition``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from app.application.ports.agent_repo import AgentRepository
from app.application.ports.assignment_repo import AssignmentLogRepository
from app.application.ports.conversation_repo import ConversationRepository
from app.application.ports.transaction import TransactionManager
from app.application.use_cases.access import AccessGuard
from app.domain.entities.assignment import AssignmentDecision
from app.domain.entities.conversation import Conversation
from app.domain.exceptions import (
    AgentNotFound,
    CapacityExceeded,
    InvalidStateTransition,
    NoEligibleAgent,
)
from app.domain.policies import lifecycle
from app.domain.policies.scoring import (
    DEFAULT_WEIGHTS,
    ScoringWeights,
    rank_candidates,
    select_agent,
)
from app.domain.value_objects.actor import Actor
from app.domain.value_objects.enums import (
    Availability,
    ConversationState,
    ErrorKind,
    Priority,
    TransitionAction,
)
from app.domain.value_objects.query import Scope

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssignmentRouter:
    """Routes conversations to agents and drives their lifecycle.

    Public methods taking an id are single-conversation operations: they
    check access, run in a savepoint and raise on failure. The ``apply_*``
    methods work on an already loaded and authorized conversation and are
    shared with the bulk coordinator.
    """

    def __init__(
        self,
        agent_repo: AgentRepository,
        conversation_repo: ConversationRepository,
        assignment_log: AssignmentLogRepository,
        guard: AccessGuard,
        transactions: TransactionManager,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        record_decisions: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._agents = agent_repo
        self._conversations = conversation_repo
        self._log = assignment_log
        self._guard = guard
        self._tx = transactions
        self._weights = weights
        self._record = record_decisions
        self._now = clock

    # ─── Single-conversation operations ──────────────────────────────

    async def preview(self, conversation_id: str, actor: Actor) -> tuple[AssignmentDecision, list]:
        """Dry-run automatic routing: the decision plus the ranked pool.

        Nothing is written.
        """
        conversation = await self._guard.load(self._conversations, conversation_id, actor, "view")
        candidates = await self._online_agents(conversation)
        decision = select_agent(conversation, candidates, self._weights, now=self._now())
        ranked = rank_candidates(conversation, candidates, self._weights)
        return decision, ranked

    async def auto_assign(self, conversation_id: str, actor: Actor) -> AssignmentDecision:
        conversation = await self._guard.load(
            self._conversations, conversation_id, actor, TransitionAction.ASSIGN.value
        )
        async with self._tx.savepoint():
            return await self.apply_auto_assign(conversation)

    async def assign(
        self,
        conversation_id: str,
        agent_id: str,
        actor: Actor,
        force: bool = False,
        reason: str | None = None,
    ) -> AssignmentDecision:
        conversation = await self._guard.load(
            self._conversations, conversation_id, actor, TransitionAction.ASSIGN.value
        )
        async with self._tx.savepoint():
            return await self.apply_assign(conversation, agent_id, force=force, reason=reason)

    async def transfer(
        self,
        conversation_id: str,
        agent_id: str,
        actor: Actor,
        reason: str,
    ) -> AssignmentDecision:
        conversation = await self._guard.load(
            self._conversations, conversation_id, actor, "transfer"
        )
        async with self._tx.savepoint():
            return await self.apply_transfer(conversation, agent_id, reason)

    async def escalate(self, conversation_id: str, actor: Actor, reason: str) -> Conversation:
        conversation = await self._guard.load(
            self._conversations, conversation_id, actor, TransitionAction.ESCALATE.value
        )
        async with self._tx.savepoint():
            return await self.apply_escalate(conversation, reason)

    async def resolve(self, conversation_id: str, actor: Actor) -> Conversation:
        conversation = await self._guard.load(
            self._conversations, conversation_id, actor, TransitionAction.RESOLVE.value
        )
        async with self._tx.savepoint():
            return await self.apply_resolve(conversation)

    async def reopen(self, conversation_id: str, actor: Actor) -> Conversation:
        conversation = await self._guard.load(
            self._conversations, conversation_id, actor, TransitionAction.REOPEN.value
        )
        async with self._tx.savepoint():
            return await self.apply_reopen(conversation)

    async def close(self, conversation_id: str, actor: Actor) -> Conversation:
        conversation = await self._guard.load(
            self._conversations, conversation_id, actor, TransitionAction.CLOSE.value
        )
        async with self._tx.savepoint():
            return await self.apply_close(conversation)

    # ─── Transitions on loaded conversations ─────────────────────────

    async def apply_auto_assign(self, conversation: Conversation) -> AssignmentDecision:
        """Score the online pool and assign the best agent.

        Only unassigned conversations are routed automatically; moving an
        owned conversation needs an explicit assign or transfer. If the
        chosen agent fills up between the read and the reservation, the next
        best one is tried.
        """
        if conversation.state != ConversationState.UNASSIGNED:
            raise InvalidStateTransition(
                conversation.state,
                TransitionAction.ASSIGN,
                conversation.id,
                detail="Automatic routing only handles unassigned conversations.",
            )

        candidates = await self._online_agents(conversation)
        while True:
            decision = select_agent(conversation, candidates, self._weights, now=self._now())
            if not decision.assigned:
                logger.warning(
                    "Conversation %s: no eligible agent (%d online candidates)",
                    conversation.id, len(candidates),
                )
                await self._record_decision(decision)
                return decision

            if decision.fallback_used:
                logger.warning("Conversation %s: %s", conversation.id, decision.reason)

            try:
                await self._move_ownership(conversation, decision.chosen_agent_id, force=False)
            except NoEligibleAgent:
                logger.info(
                    "Conversation %s: agent %s filled up before reservation, retrying",
                    conversation.id, decision.chosen_agent_id,
                )
                candidates = [a for a in candidates if a.id != decision.chosen_agent_id]
                continue

            await self._record_decision(decision)
            logger.info(
                "Conversation %s → agent %s (score %.3f, %s)",
                conversation.id, decision.chosen_agent_id, decision.score, decision.reason,
            )
            return decision

    async def apply_assign(
        self,
        conversation: Conversation,
        agent_id: str,
        force: bool = False,
        reason: str | None = None,
    ) -> AssignmentDecision:
        """Manual assignment, also covering transfer of an owned conversation."""
        lifecycle.next_state(conversation.state, TransitionAction.ASSIGN, conversation.id)

        if conversation.agent_id == agent_id:
            if conversation.state == ConversationState.ASSIGNED:
                return AssignmentDecision(
                    conversation_id=conversation.id,
                    chosen_agent_id=agent_id,
                    reason="Already assigned to this agent",
                    timestamp=self._now(),
                    forced=force,
                )
            # Escalated back to its own owner: the slot is already held.
            now = self._now()
            updated = replace(
                conversation,
                state=ConversationState.ASSIGNED,
                assigned_at=now,
                last_activity_at=now,
            )
            await self._commit_transition(conversation, updated, TransitionAction.ASSIGN)
        else:
            await self._move_ownership(conversation, agent_id, force=force)

        decision = AssignmentDecision(
            conversation_id=conversation.id,
            chosen_agent_id=agent_id,
            reason=reason or "Manual override",
            timestamp=self._now(),
            forced=force,
        )
        await self._record_decision(decision)
        logger.info(
            "Conversation %s manually assigned to agent %s%s",
            conversation.id, agent_id, " (forced)" if force else "",
        )
        return decision

    async def apply_transfer(
        self, conversation: Conversation, agent_id: str, reason: str
    ) -> AssignmentDecision:
        if not reason or not reason.strip():
            raise InvalidStateTransition(
                conversation.state,
                TransitionAction.ASSIGN,
                conversation.id,
                detail="A transfer requires a reason.",
            )
        if not conversation.is_owned():
            raise InvalidStateTransition(
                conversation.state,
                TransitionAction.ASSIGN,
                conversation.id,
                detail="Only assigned or escalated conversations can be transferred.",
            )
        if conversation.agent_id == agent_id:
            raise InvalidStateTransition(
                conversation.state,
                TransitionAction.ASSIGN,
                conversation.id,
                detail="Conversation is already owned by the target agent.",
            )

        await self._move_ownership(
            conversation, agent_id, force=False, transfer_notes=reason.strip()
        )
        decision = AssignmentDecision(
            conversation_id=conversation.id,
            chosen_agent_id=agent_id,
            reason=f"Transfer: {reason.strip()}",
            timestamp=self._now(),
        )
        await self._record_decision(decision)
        logger.info(
            "Conversation %s transferred from agent %s to agent %s",
            conversation.id, conversation.agent_id, agent_id,
        )
        return decision

    async def apply_escalate(self, conversation: Conversation, reason: str) -> Conversation:
        target = lifecycle.next_state(conversation.state, TransitionAction.ESCALATE, conversation.id)
        updated = replace(
            conversation,
            state=target,
            escalation_reason=reason,
            last_activity_at=self._now(),
        )
        await self._commit_transition(conversation, updated, TransitionAction.ESCALATE)
        logger.info("Conversation %s escalated: %s", conversation.id, reason)
        return updated

    async def apply_resolve(self, conversation: Conversation) -> Conversation:
        if lifecycle.is_noop(conversation.state, TransitionAction.RESOLVE):
            return conversation
        target = lifecycle.next_state(conversation.state, TransitionAction.RESOLVE, conversation.id)
        now = self._now()
        # The owner keeps its slot while resolved; only close gives it back.
        updated = replace(
            conversation,
            state=target,
            agent_id=None,
            resolved_by_agent_id=conversation.agent_id,
            resolved_at=now,
            last_activity_at=now,
        )
        await self._commit_transition(conversation, updated, TransitionAction.RESOLVE)
        logger.info("Conversation %s resolved", conversation.id)
        return updated

    async def apply_reopen(self, conversation: Conversation) -> Conversation:
        target = lifecycle.next_state(conversation.state, TransitionAction.REOPEN, conversation.id)
        if conversation.resolved_by_agent_id is None:
            raise InvalidStateTransition(
                conversation.state,
                TransitionAction.REOPEN,
                conversation.id,
                detail="No previous owner to hand the conversation back to.",
            )
        updated = replace(
            conversation,
            state=target,
            agent_id=conversation.resolved_by_agent_id,
            resolved_by_agent_id=None,
            resolved_at=None,
            last_activity_at=self._now(),
        )
        await self._commit_transition(conversation, updated, TransitionAction.REOPEN)
        logger.info("Conversation %s reopened for agent %s", conversation.id, updated.agent_id)
        return updated

    async def apply_close(self, conversation: Conversation) -> Conversation:
        """Close and release capacity. Closing twice is a no-op success and
        releases the slot only once.
        """
        if lifecycle.is_noop(conversation.state, TransitionAction.CLOSE):
            return conversation
        target = lifecycle.next_state(conversation.state, TransitionAction.CLOSE, conversation.id)

        holder = conversation.slot_holder_id
        now = self._now()
        updated = replace(
            conversation,
            state=target,
            agent_id=None,
            resolved_by_agent_id=None,
            closed_at=now,
            last_activity_at=now,
        )
        stored = await self._conversations.compare_and_set(
            updated, expected_state=conversation.state, expected_agent_id=conversation.agent_id
        )
        if not stored:
            current = await self._conversations.get_by_id(conversation.id)
            if current is not None and current.state == ConversationState.CLOSED:
                # Someone else closed it first and already released the slot.
                return current
            raise self._concurrent_change(conversation, current, TransitionAction.CLOSE)

        if holder is not None:
            await self._agents.release_slot(holder)
        logger.info("Conversation %s closed (released agent %s)", conversation.id, holder)
        return updated

    async def apply_priority(self, conversation: Conversation, priority: Priority) -> Conversation:
        updated = replace(conversation, priority=priority)
        await self._conversations.update_details(updated)
        return updated

    async def apply_tags(
        self,
        conversation: Conversation,
        add: set[str] | None = None,
        remove: set[str] | None = None,
    ) -> Conversation:
        tags = (set(conversation.tags) | (add or set())) - (remove or set())
        updated = replace(conversation, tags=tags)
        await self._conversations.update_details(updated)
        return updated

    # ─── Internals ───────────────────────────────────────────────────

    async def _online_agents(self, conversation: Conversation):
        return await self._agents.list_by_scope(
            Scope.for_organization(conversation.organization_id),
            availability=Availability.ONLINE,
        )

    async def _move_ownership(
        self,
        conversation: Conversation,
        agent_id: str,
        force: bool,
        transfer_notes: str | None = None,
    ) -> Conversation:
        """Reserve on the new agent, swap the owner, release the old one."""
        agent = await self._agents.get_by_id(agent_id)
        if agent is None or agent.organization_id != conversation.organization_id:
            raise AgentNotFound(agent_id)

        if force:
            logger.warning(
                "Forced assignment of conversation %s to agent %s (%s, %d/%d chats)",
                conversation.id, agent.id, agent.availability.value,
                agent.current_active_chats, agent.max_concurrent_chats,
            )
        elif not agent.is_online():
            raise NoEligibleAgent(conversation.id, f"Agent '{agent.id}' is {agent.availability.value}")

        if not await self._agents.reserve_slot(agent.id):
            if force:
                raise CapacityExceeded(agent.id)
            raise NoEligibleAgent(conversation.id, f"Agent '{agent.id}' has no free chat slot")

        previous_owner = conversation.agent_id
        now = self._now()
        updated = replace(
            conversation,
            state=ConversationState.ASSIGNED,
            agent_id=agent.id,
            assigned_at=now,
            last_activity_at=now,
        )
        if transfer_notes is not None:
            updated = replace(
                updated,
                transferred_from_agent_id=previous_owner,
                transfer_notes=transfer_notes,
            )

        stored = await self._conversations.compare_and_set(
            updated, expected_state=conversation.state, expected_agent_id=previous_owner
        )
        if not stored:
            await self._agents.release_slot(agent.id)
            current = await self._conversations.get_by_id(conversation.id)
            raise self._concurrent_change(conversation, current, TransitionAction.ASSIGN)

        if previous_owner is not None:
            await self._agents.release_slot(previous_owner)
        return updated

    async def _commit_transition(
        self, before: Conversation, after: Conversation, action: TransitionAction
    ) -> None:
        stored = await self._conversations.compare_and_set(
            after, expected_state=before.state, expected_agent_id=before.agent_id
        )
        if not stored:
            current = await self._conversations.get_by_id(before.id)
            raise self._concurrent_change(before, current, action)

    @staticmethod
    def _concurrent_change(
        before: Conversation, current: Conversation | None, action: TransitionAction
    ) -> InvalidStateTransition:
        state = current.state if current is not None else before.state
        return InvalidStateTransition(
            state, action, before.id, detail="Conversation was changed by another request."
        )

    async def _record_decision(self, decision: AssignmentDecision) -> None:
        if self._record:
            await self._log.save(decision)
