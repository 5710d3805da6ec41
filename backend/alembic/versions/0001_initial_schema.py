"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for the DonorLink donation engine:
users, donation_requests, request_status_history, volunteer_suggestions,
notifications, activity_logs, reconciliation_tasks.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="donor"),
        sa.Column("blood_group", sa.String(3), nullable=True),
        sa.Column("district", sa.String(100), nullable=True),
        sa.Column("sub_district", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("is_available", sa.Boolean, nullable=False, server_default="1"),
        sa.Column("last_donation_date", sa.Date, nullable=True),
        sa.Column("total_donations", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_area", "users", ["blood_group", "district"])

    # --- donation_requests ---
    op.create_table(
        "donation_requests",
        sa.Column("request_id", sa.String(36), primary_key=True),
        sa.Column("requester_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("requester_name", sa.String(100), nullable=False),
        sa.Column("requester_email", sa.String(255), nullable=False),
        sa.Column("recipient_name", sa.String(100), nullable=False),
        sa.Column("recipient_district", sa.String(100), nullable=False),
        sa.Column("recipient_sub_district", sa.String(100), nullable=False),
        sa.Column("hospital_name", sa.String(200), nullable=False),
        sa.Column("hospital_address", sa.String(500), nullable=False),
        sa.Column("blood_group", sa.String(3), nullable=False),
        sa.Column("donation_date", sa.Date, nullable=False),
        sa.Column("donation_time", sa.String(5), nullable=False),
        sa.Column("request_message", sa.Text, nullable=False),
        sa.Column("urgency", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("units_required", sa.Integer, nullable=False, server_default="1"),
        sa.Column("contact_name", sa.String(100), nullable=True),
        sa.Column("contact_phone", sa.String(30), nullable=True),
        sa.Column("contact_relationship", sa.String(50), nullable=True),
        sa.Column("donor_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("donor_name", sa.String(100), nullable=True),
        sa.Column("donor_email", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="1"),
        sa.Column("donor_stats_applied", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- request_status_history ---
    op.create_table(
        "request_status_history",
        sa.Column("entry_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("request_id", sa.String(36), sa.ForeignKey("donation_requests.request_id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("changed_by", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.String(1000), nullable=True),
    )
    op.create_index("ix_request_status_history_request_id", "request_status_history", ["request_id"])

    # --- volunteer_suggestions ---
    op.create_table(
        "volunteer_suggestions",
        sa.Column("suggestion_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("request_id", sa.String(36), sa.ForeignKey("donation_requests.request_id"), nullable=False),
        sa.Column("volunteer_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("donor_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("suggested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.String(1000), nullable=True),
    )
    op.create_index("ix_volunteer_suggestions_request_id", "volunteer_suggestions", ["request_id"])

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("notification_id", sa.String(36), primary_key=True),
        sa.Column("recipient_id", sa.String(36), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.String(1000), nullable=False),
        sa.Column("category", sa.String(30), nullable=False, server_default="donation"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("action_ref", sa.String(255), nullable=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])

    # --- activity_logs ---
    op.create_table(
        "activity_logs",
        sa.Column("log_id", sa.String(36), primary_key=True),
        sa.Column("actor_id", sa.String(36), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("action_type", sa.String(20), nullable=False),
        sa.Column("category", sa.String(30), nullable=False, server_default="donation"),
        sa.Column("entity_type", sa.String(50), nullable=False, server_default="donation_request"),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("entity_name", sa.String(100), nullable=True),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("details", sa.String(1000), nullable=True),
        sa.Column("from_status", sa.String(20), nullable=True),
        sa.Column("to_status", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="success"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_actor_id", "activity_logs", ["actor_id"])
    op.create_index("ix_activity_logs_entity_id", "activity_logs", ["entity_id"])

    # --- reconciliation_tasks ---
    op.create_table(
        "reconciliation_tasks",
        sa.Column("task_id", sa.String(36), primary_key=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("error", sa.Text, nullable=True),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="1"),
        sa.Column("resolved", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("reconciliation_tasks")
    op.drop_table("activity_logs")
    op.drop_table("notifications")
    op.drop_table("volunteer_suggestions")
    op.drop_table("request_status_history")
    op.drop_table("donation_requests")
    op.drop_index("ix_users_area", table_name="users")
    op.drop_table("users")
