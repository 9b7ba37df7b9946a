"""Health check endpoint."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters.persistence.database import get_session
from app.adapters.persistence.models import AgentModel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(session: AsyncSession = Depends(get_session)):
    """Database connectivity, and whether migrations have been applied."""
    database, schema = "connected", "ready"
    try:
        await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Health check: database unreachable: %s", e)
        database, schema = f"error: {e}", "unknown"
    else:
        try:
            await session.execute(select(AgentModel.id).limit(1))
        except SQLAlchemyError as e:
            logger.warning("Health check: routing tables missing, run alembic upgrade: %s", e)
            schema = "missing"

    return {
        "status": "ok" if (database, schema) == ("connected", "ready") else "degraded",
        "database": database,
        "schema": schema,
        "service": "inbox-routing",
    }
