"""SQLAlchemy ORM models — maps to PostgreSQL tables."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from app.adapters.persistence.database import Base


class AgentModel(Base):
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    skills: Mapped[list[str]] = mapped_column(ARRAY(String(50)), nullable=False, default=list)
    max_concurrent_chats: Mapped[int] = mapped_column(Integer, nullable=False)
    current_active_chats: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    availability: Mapped[str] = mapped_column(String(20), nullable=False, default="offline")
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (
        CheckConstraint("max_concurrent_chats > 0", name="ck_agents_max_positive"),
        CheckConstraint(
            "current_active_chats >= 0 AND current_active_chats <= max_concurrent_chats",
            name="ck_agents_load_within_capacity",
        ),
        Index("idx_agents_org_availability", "organization_id", "availability"),
    )


class ConversationModel(Base):
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False, default="unassigned")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="normal")
    agent_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("agents.id"), nullable=True
    )
    resolved_by_agent_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("agents.id"), nullable=True
    )
    required_skills: Mapped[list[str]] = mapped_column(
        ARRAY(String(50)), nullable=False, default=list
    )
    tags: Mapped[list[str]] = mapped_column(ARRAY(String(50)), nullable=False, default=list)
    customer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    escalation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    transferred_from_agent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    transfer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(agent_id IS NOT NULL) = (state IN ('assigned', 'escalated'))",
            name="ck_conversations_owner_matches_state",
        ),
        Index("idx_conversations_org_state", "organization_id", "state"),
        Index("idx_conversations_agent", "agent_id"),
        Index("idx_conversations_last_activity", "last_activity_at"),
    )


class AssignmentDecisionModel(Base):
    __tablename__ = "assignment_decisions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    chosen_agent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    fallback_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    forced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    error_kind: Mapped[str | None] = mapped_column(String(50), nullable=True)
    decided_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("idx_decisions_conversation", "conversation_id"),)
