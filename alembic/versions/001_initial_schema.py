"""Initial schema — agents, conversations, assignment decisions.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Agents
    op.create_table(
        "agents",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("skills", ARRAY(sa.String(50)), nullable=False, server_default="{}"),
        sa.Column("max_concurrent_chats", sa.Integer, nullable=False),
        sa.Column("current_active_chats", sa.Integer, nullable=False, server_default="0"),
        sa.Column("availability", sa.String(20), nullable=False, server_default="offline"),
        sa.Column("rating", sa.Float, nullable=True),
        sa.CheckConstraint("max_concurrent_chats > 0", name="ck_agents_max_positive"),
        sa.CheckConstraint(
            "current_active_chats >= 0 AND current_active_chats <= max_concurrent_chats",
            name="ck_agents_load_within_capacity",
        ),
    )
    op.create_index(
        "idx_agents_org_availability", "agents", ["organization_id", "availability"]
    )

    # Conversations
    op.create_table(
        "conversations",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False),
        sa.Column("state", sa.String(20), nullable=False, server_default="unassigned"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="normal"),
        sa.Column("agent_id", sa.String(64), sa.ForeignKey("agents.id"), nullable=True),
        sa.Column(
            "resolved_by_agent_id", sa.String(64), sa.ForeignKey("agents.id"), nullable=True
        ),
        sa.Column("required_skills", ARRAY(sa.String(50)), nullable=False, server_default="{}"),
        sa.Column("tags", ARRAY(sa.String(50)), nullable=False, server_default="{}"),
        sa.Column("customer_name", sa.String(200), nullable=True),
        sa.Column("subject", sa.String(500), nullable=True),
        sa.Column("escalation_reason", sa.Text, nullable=True),
        sa.Column("transferred_from_agent_id", sa.String(64), nullable=True),
        sa.Column("transfer_notes", sa.Text, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "last_activity_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "(agent_id IS NOT NULL) = (state IN ('assigned', 'escalated'))",
            name="ck_conversations_owner_matches_state",
        ),
    )
    op.create_index(
        "idx_conversations_org_state", "conversations", ["organization_id", "state"]
    )
    op.create_index("idx_conversations_agent", "conversations", ["agent_id"])
    op.create_index("idx_conversations_last_activity", "conversations", ["last_activity_at"])

    # Assignment decision log
    op.create_table(
        "assignment_decisions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "conversation_id",
            sa.String(64),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("chosen_agent_id", sa.String(64), nullable=True),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("score", sa.Float, nullable=False, server_default="0"),
        sa.Column("fallback_used", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("forced", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("error_kind", sa.String(50), nullable=True),
        sa.Column(
            "decided_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index(
        "idx_decisions_conversation", "assignment_decisions", ["conversation_id"]
    )


def downgrade() -> None:
    op.drop_table("assignment_decisions")
    op.drop_table("conversations")
    op.drop_table("agents")
