"""
001_initial_schema.py - Gating sessions, evidence log and collaborator config.

Replaces the per-access "add column if missing" probing with one
versioned schema. Seeds the default cost table.

Revision ID: 001_initial_schema
Revises:
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


DEFAULT_COSTS = [
    {"domain_pattern": "api.openai.com", "cost_per_request": 0.03, "label": "OpenAI"},
    {"domain_pattern": "api.replicate.com", "cost_per_request": 0.05, "label": "Replicate"},
    {"domain_pattern": "api.anthropic.com", "cost_per_request": 0.04, "label": "Anthropic"},
    {"domain_pattern": "*", "cost_per_request": 0.01, "label": "Default"},
]


def upgrade() -> None:
    op.create_table(
        "guard_sessions",
        sa.Column("session_id", sa.String(255), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="OPERATING"),
        sa.Column("blocked_reason", sa.Text(), nullable=True),
        sa.Column("blocked_at", sa.DateTime(), nullable=True),
        sa.Column("cooldown_minutes", sa.Integer(), nullable=True, server_default="5"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_guard_sessions_status", "guard_sessions", ["status"])

    op.create_table(
        "error_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_error_events_session_id", "error_events", ["session_id"])
    op.create_index("ix_error_events_timestamp", "error_events", ["timestamp"])

    op.create_table(
        "proxy_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(255), nullable=False),
        sa.Column("target", sa.Text(), nullable=False),
        sa.Column("method", sa.String(20), nullable=False),
        sa.Column("outcome", sa.String(20), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_proxy_logs_session_id", "proxy_logs", ["session_id"])
    op.create_index("ix_proxy_logs_timestamp", "proxy_logs", ["timestamp"])
    op.create_index(
        "ix_proxy_logs_session_outcome",
        "proxy_logs",
        ["session_id", "outcome"],
    )

    op.create_table(
        "action_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(255), nullable=False),
        sa.Column("step", sa.Integer(), nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("error_code", sa.String(50), nullable=True),
        sa.Column("remedy_attempted", sa.String(100), nullable=True),
        sa.Column("state_snapshot", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_action_logs_session_id", "action_logs", ["session_id"])

    cost_configs = op.create_table(
        "cost_configs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("domain_pattern", sa.String(255), nullable=False, unique=True),
        sa.Column("cost_per_request", sa.Float(), nullable=False),
        sa.Column("label", sa.String(100), nullable=True),
    )
    op.bulk_insert(cost_configs, DEFAULT_COSTS)

    op.create_table(
        "webhooks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="slack"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("webhooks")
    op.drop_table("cost_configs")
    op.drop_index("ix_action_logs_session_id")
    op.drop_table("action_logs")
    op.drop_index("ix_proxy_logs_session_outcome")
    op.drop_index("ix_proxy_logs_timestamp")
    op.drop_index("ix_proxy_logs_session_id")
    op.drop_table("proxy_logs")
    op.drop_index("ix_error_events_timestamp")
    op.drop_index("ix_error_events_session_id")
    op.drop_table("error_events")
    op.drop_index("ix_guard_sessions_status")
    op.drop_table("guard_sessions")
