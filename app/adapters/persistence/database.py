"""Async engine, session factory and declarative base."""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


class Base(DeclarativeBase):
    pass


engine = create_async_engine(settings.database_url, echo=settings.debug, pool_pre_ping=True)
async_session_factory = async_sessionmaker(engine, autoflush=False, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    """One session per request; handlers commit what they change."""
    async with async_session_factory() as session:
        yield session
