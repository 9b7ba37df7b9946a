"""ScoringPolicy — capacity-aware, skill-weighted agent selection.

score = W_SKILL * skill_match_ratio + W_LOAD * (1 - utilization) + W_RATING * rating / 5

All functions here are pure: they never mutate agents or conversations, so the
same inputs always yield the same decision.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from app.domain.entities.agent import Agent
from app.domain.entities.assignment import AssignmentDecision
from app.domain.entities.conversation import Conversation
from app.domain.value_objects.enums import ErrorKind

W_SKILL = 0.5
W_LOAD = 0.3
W_RATING = 0.2

MAX_RATING = 5.0


@dataclass(frozen=True)
class ScoringWeights:
    skill: float = W_SKILL
    load: float = W_LOAD
    rating: float = W_RATING


DEFAULT_WEIGHTS = ScoringWeights()


@dataclass(frozen=True)
class ScoredCandidate:
    agent: Agent
    score: float
    skill_match_ratio: float


def skill_match_ratio(required: Iterable[str], skills: Iterable[str]) -> float:
    """|required ∩ skills| / max(1, |required|); 0.0 when nothing is required."""
    required = set(required)
    if not required:
        return 0.0
    return len(required & set(skills)) / max(1, len(required))


def normalized_rating(rating: float | None) -> float:
    if rating is None:
        return 0.0
    return min(max(rating, 0.0), MAX_RATING) / MAX_RATING


def score(
    conversation: Conversation,
    agent: Agent,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    return (
        weights.skill * skill_match_ratio(conversation.required_skills, agent.skills)
        + weights.load * (1.0 - agent.utilization)
        + weights.rating * normalized_rating(agent.rating)
    )


def is_eligible(agent: Agent) -> bool:
    """Hard filter for automatic routing: online with a free slot."""
    return agent.is_online() and agent.has_spare_capacity()


def eligible_pool(
    conversation: Conversation,
    candidates: Iterable[Agent],
) -> tuple[list[Agent], bool]:
    """Apply the hard filter, then the soft skill requirement.

    Returns:
        (pool, fallback_used). ``fallback_used`` is True when the conversation
        requires skills but no eligible agent shares any of them, in which
        case the whole eligible pool is returned instead of nothing.
    """
    eligible = [a for a in candidates if is_eligible(a) and a.organization_id == conversation.organization_id]
    if not conversation.required_skills or not eligible:
        return eligible, False

    skilled = [a for a in eligible if a.skills & conversation.required_skills]
    if skilled:
        return skilled, False
    return eligible, True


def rank_candidates(
    conversation: Conversation,
    candidates: Iterable[Agent],
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> list[ScoredCandidate]:
    """Score every agent and order best-first.

    Tie-break: highest score, then lowest current load, then smallest id.
    """
    scored = [
        ScoredCandidate(
            agent=a,
            score=score(conversation, a, weights),
            skill_match_ratio=skill_match_ratio(conversation.required_skills, a.skills),
        )
        for a in candidates
    ]
    return sorted(
        scored,
        key=lambda c: (-c.score, c.agent.current_active_chats, c.agent.id),
    )


def select_agent(
    conversation: Conversation,
    candidates: Iterable[Agent],
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    now: datetime | None = None,
) -> AssignmentDecision:
    """Pick the best eligible agent for *conversation*.

    Never raises for an empty pool: the decision comes back with
    ``chosen_agent_id=None`` and ``error_kind=NoEligibleAgent`` so a
    dashboard can show the conversation as unassignable.
    """
    stamp = {"timestamp": now} if now is not None else {}
    pool, fallback_used = eligible_pool(conversation, candidates)

    if not pool:
        return AssignmentDecision(
            conversation_id=conversation.id,
            chosen_agent_id=None,
            reason="No online agent with spare capacity",
            score=0.0,
            error_kind=ErrorKind.NO_ELIGIBLE_AGENT,
            **stamp,
        )

    best = rank_candidates(conversation, pool, weights)[0]

    if fallback_used:
        wanted = ", ".join(sorted(conversation.required_skills))
        reason = f"Skill fallback: no online agent has [{wanted}], picked best of eligible pool"
    elif conversation.required_skills:
        reason = f"Best skill match ({best.skill_match_ratio:.0%} of required skills)"
    else:
        reason = "Best available agent (no skills required)"

    return AssignmentDecision(
        conversation_id=conversation.id,
        chosen_agent_id=best.agent.id,
        reason=reason,
        score=round(best.score, 6),
        fallback_used=fallback_used,
        **stamp,
    )
