"""Seed database from CSV files.

Usage:
    python -m app.tools.seed_db
    python -m app.tools.seed_db --data-dir data
    python -m app.tools.seed_db --drop  # drop existing data first
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters.csv_loader.loader import load_agents, load_conversations
from app.adapters.persistence.database import async_session_factory
from app.adapters.persistence.models import (
    AgentModel,
    AssignmentDecisionModel,
    ConversationModel,
)
from app.config import settings
from app.domain.value_objects.enums import Availability, Priority

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)

_AVAILABILITY = {a.value for a in Availability}
_PRIORITY = {p.value for p in Priority}


async def _drop_data(session: AsyncSession) -> None:
    """Delete all data in correct order (respecting FK constraints)."""
    for model in [AssignmentDecisionModel, ConversationModel, AgentModel]:
        await session.execute(delete(model))
    await session.commit()
    logger.info("Dropped all existing data")


async def seed(data_dir: Path, drop: bool = False) -> dict[str, int]:
    """Main seed function. Returns counts of seeded records.

    Agents start with no active chats and every conversation starts
    unassigned; routing happens through the API afterwards.
    """
    counts = {"agents": 0, "conversations": 0}

    agent_csv = _find_csv(data_dir, ["agents", "operators", "staff"])
    conversation_csv = _find_csv(data_dir, ["conversations", "chats", "sessions"])

    if not agent_csv:
        raise FileNotFoundError(
            f"No agents CSV found in {data_dir}. Expected something like agents.csv"
        )

    async with async_session_factory() as session:
        if drop:
            await _drop_data(session)

        # 1. Agents
        for ad in load_agents(agent_csv):
            if await session.get(AgentModel, ad["id"]):
                logger.debug("Agent '%s' already exists, skipping", ad["id"])
                continue
            if ad["availability"] not in _AVAILABILITY:
                logger.warning(
                    "Agent '%s': unknown availability '%s', using offline",
                    ad["id"], ad["availability"],
                )
                ad["availability"] = Availability.OFFLINE.value

            session.add(
                AgentModel(
                    id=ad["id"],
                    organization_id=ad["organization_id"],
                    name=ad["name"],
                    department=ad["department"],
                    skills=sorted(ad["skills"]),
                    max_concurrent_chats=ad["max_concurrent_chats"],
                    current_active_chats=0,
                    availability=ad["availability"],
                    rating=ad["rating"],
                )
            )
            counts["agents"] += 1
        await session.commit()

        # 2. Conversations (optional)
        if conversation_csv:
            for cd in load_conversations(conversation_csv):
                if await session.get(ConversationModel, cd["id"]):
                    logger.debug("Conversation '%s' already exists, skipping", cd["id"])
                    continue
                if cd["priority"] not in _PRIORITY:
                    logger.warning(
                        "Conversation '%s': unknown priority '%s', using normal",
                        cd["id"], cd["priority"],
                    )
                    cd["priority"] = Priority.NORMAL.value

                session.add(
                    ConversationModel(
                        id=cd["id"],
                        organization_id=cd["organization_id"],
                        state="unassigned",
                        priority=cd["priority"],
                        required_skills=sorted(cd["required_skills"]),
                        tags=sorted(cd["tags"]),
                        customer_name=cd["customer_name"],
                        subject=cd["subject"],
                        created_at=cd["created_at"],
                        last_activity_at=cd["last_activity_at"],
                    )
                )
                counts["conversations"] += 1
            await session.commit()
        else:
            logger.info("No conversations CSV found, skipping conversation import")

    logger.info(
        "Seed complete: %d agents, %d conversations",
        counts["agents"], counts["conversations"],
    )
    return counts


def _find_csv(data_dir: Path, name_hints: list[str]) -> Path | None:
    """Find a CSV file matching any of the name hints."""
    for f in sorted(data_dir.glob("*.csv")):
        fname_lower = f.stem.lower()
        for hint in name_hints:
            if hint in fname_lower:
                logger.info("Found CSV: %s (matched hint '%s')", f.name, hint)
                return f
    return None


async def _verify_data() -> None:
    """Print sanity checks after seeding."""
    async with async_session_factory() as session:
        agents = (await session.execute(select(AgentModel))).scalars().all()
        by_state = (
            await session.execute(
                select(ConversationModel.state, func.count()).group_by(ConversationModel.state)
            )
        ).all()

        print(f"\n{'='*50}")
        print("SEED VERIFICATION")
        print(f"{'='*50}")
        print(f"Agents: {len(agents)}")

        availability: dict[str, int] = {}
        for a in agents:
            availability[a.availability] = availability.get(a.availability, 0) + 1
        print(f"Availability distribution: {availability}")
        print(f"Total chat capacity: {sum(a.max_concurrent_chats for a in agents)}")

        with_skills = sum(1 for a in agents if a.skills)
        print(f"Agents with skills: {with_skills}/{len(agents)}")

        print(f"Conversations by state: {dict(by_state)}")
        print(f"{'='*50}\n")


def main():
    parser = argparse.ArgumentParser(description="Seed the inbox routing database from CSV files")
    parser.add_argument(
        "--data-dir", type=str, default=settings.csv_data_path,
        help=f"Directory containing CSV files (default: {settings.csv_data_path})",
    )
    parser.add_argument(
        "--drop", action="store_true",
        help="Drop existing data before seeding",
    )
    parser.add_argument(
        "--verify-only", action="store_true",
        help="Only run verification, don't seed",
    )
    args = parser.parse_args()

    data_dir = Path(args.data_dir)
    if not args.verify_only and not data_dir.exists():
        logger.error("Data directory not found: %s", data_dir)
        sys.exit(1)

    if args.verify_only:
        asyncio.run(_verify_data())
    else:
        async def run_all():
            await seed(data_dir, drop=args.drop)
            await _verify_data()
        asyncio.run(run_all())


if __name__ == "__main__":
    main()
