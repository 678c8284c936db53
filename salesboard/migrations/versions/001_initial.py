"""Initial Salesboard schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def _sheet_sync(table: str) -> list:
    return [
        sa.Column(
            "sheet_connection_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sheet_connection.id", ondelete="SET NULL"),
        ),
        sa.Column("sheet_row_number", sa.Integer),
        sa.Column("last_synced_at", sa.DateTime(timezone=True)),
        sa.Column("modified_locally", sa.Boolean, server_default="false", nullable=False),
        sa.UniqueConstraint("sheet_connection_id", "sheet_row_number", name=f"uq_{table}_sheet_row"),
    ]


def _person_refs() -> list[sa.Column]:
    return [
        sa.Column("setter_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profile.id", ondelete="SET NULL")),
        sa.Column("closer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profile.id", ondelete="SET NULL")),
    ]


def upgrade() -> None:
    # Sheet connection (one tab bound to one entity type)
    op.create_table(
        "sheet_connection",
        _uuid_pk(),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("sheet_url", sa.String(1000), nullable=False),
        sa.Column("spreadsheet_id", sa.String(200), nullable=False),
        sa.Column("gid", sa.String(50)),
        sa.Column("sheet_name", sa.String(200)),
        sa.Column("sheet_type", sa.String(20), nullable=False),
        sa.Column("mappings", postgresql.JSONB, server_default="[]"),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_sheet_connection_user_id", "sheet_connection", ["user_id"])
    op.create_index("ix_sheet_connection_is_active", "sheet_connection", ["is_active"])

    # Google credential, one per user
    op.create_table(
        "sheet_credential",
        _uuid_pk(),
        sa.Column("user_id", sa.String(100), nullable=False, unique=True),
        sa.Column("access_token", sa.Text, nullable=False),
        sa.Column("refresh_token", sa.Text, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scope", sa.String(500), server_default=""),
        *_timestamps(),
    )

    # Profiles (team members, setter/closer placeholders)
    op.create_table(
        "profile",
        _uuid_pk(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(200)),
        sa.Column("role", sa.String(20), server_default="setter"),
        sa.Column("active", sa.Boolean, server_default="true"),
        sa.Column("is_placeholder", sa.Boolean, server_default="false"),
        sa.Column("external_id", sa.String(100)),
        *_timestamps(),
        *_sheet_sync("profile"),
    )
    op.create_index("ix_profile_full_name_lower", "profile", [sa.text("lower(full_name)")])

    # Leads
    op.create_table(
        "lead",
        _uuid_pk(),
        sa.Column("name", sa.String(200)),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(50)),
        sa.Column("source", sa.String(50), server_default="other"),
        sa.Column("utm_source", sa.String(200)),
        sa.Column("status", sa.String(20), server_default="new"),
        sa.Column("notes", sa.Text),
        *_person_refs(),
        sa.Column("external_id", sa.String(100)),
        sa.Column("custom_fields", postgresql.JSONB, server_default="{}"),
        *_timestamps(),
        *_sheet_sync("lead"),
    )
    op.create_index("ix_lead_email", "lead", ["email"])

    # Appointments
    op.create_table(
        "appointment",
        _uuid_pk(),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("lead.id", ondelete="CASCADE"), nullable=False),
        *_person_refs(),
        sa.Column("scheduled_at", sa.DateTime(timezone=True)),
        sa.Column("booked_at", sa.DateTime(timezone=True)),
        sa.Column("status", sa.String(20), server_default="scheduled"),
        sa.Column("call_outcome", sa.String(20), server_default="pending"),
        sa.Column("revenue_amount", sa.Float),
        sa.Column("cash_collected", sa.Float),
        sa.Column("payment_platform", sa.String(100)),
        sa.Column("recording_url", sa.String(1000)),
        sa.Column("notes", sa.Text),
        sa.Column("post_set_form_filled", sa.Boolean, server_default="false"),
        sa.Column("closer_form_filled", sa.Boolean, server_default="false"),
        sa.Column("external_id", sa.String(100)),
        sa.Column("custom_fields", postgresql.JSONB, server_default="{}"),
        *_timestamps(),
        *_sheet_sync("appointment"),
    )
    op.create_index("ix_appointment_lead_id", "appointment", ["lead_id"])

    # Calls
    op.create_table(
        "call",
        _uuid_pk(),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("lead.id", ondelete="SET NULL")),
        *_person_refs(),
        sa.Column("call_time", sa.DateTime(timezone=True)),
        sa.Column("status", sa.String(20), server_default="connected"),
        sa.Column("duration_seconds", sa.Integer, server_default="0"),
        sa.Column("notes", sa.Text),
        sa.Column("recording_url", sa.String(1000)),
        sa.Column("post_set_form_filled", sa.Boolean, server_default="false"),
        sa.Column("closer_form_filled", sa.Boolean, server_default="false"),
        sa.Column("external_id", sa.String(100)),
        sa.Column("custom_fields", postgresql.JSONB, server_default="{}"),
        *_timestamps(),
        *_sheet_sync("call"),
    )

    # Deals (imported, or derived from closed appointments)
    op.create_table(
        "deal",
        _uuid_pk(),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("lead.id", ondelete="SET NULL")),
        sa.Column(
            "appointment_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("appointment.id", ondelete="SET NULL"), unique=True,
        ),
        *_person_refs(),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("revenue_amount", sa.Float, server_default="0"),
        sa.Column("cash_collected", sa.Float, server_default="0"),
        sa.Column("cash_after_fees", sa.Float),
        sa.Column("fees_amount", sa.Float, server_default="0"),
        sa.Column("currency", sa.String(10), server_default="USD"),
        sa.Column("payment_platform", sa.String(100)),
        sa.Column("closed_at", sa.DateTime(timezone=True)),
        sa.Column("recording_url", sa.String(1000)),
        sa.Column("external_id", sa.String(100)),
        sa.Column("custom_fields", postgresql.JSONB, server_default="{}"),
        *_timestamps(),
        *_sheet_sync("deal"),
    )

    # Sync audit log
    op.create_table(
        "sync_operation",
        _uuid_pk(),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column(
            "sheet_connection_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sheet_connection.id", ondelete="CASCADE"),
        ),
        sa.Column("operation_type", sa.String(30), server_default="pull"),
        sa.Column("records_affected", sa.Integer, server_default="0"),
        sa.Column("records_failed", sa.Integer, server_default="0"),
        sa.Column("errors", postgresql.JSONB),
        sa.Column("status", sa.String(20), server_default="running"),
        sa.Column("error_code", sa.String(50)),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_sync_operation_user_id", "sync_operation", ["user_id"])
    op.create_index("ix_sync_operation_connection", "sync_operation", ["sheet_connection_id"])


def downgrade() -> None:
    op.drop_table("sync_operation")
    op.drop_table("deal")
    op.drop_table("call")
    op.drop_table("appointment")
    op.drop_table("lead")
    op.drop_table("profile")
    op.drop_table("sheet_credential")
    op.drop_table("sheet_connection")
