"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for the Felicity event platform:
accounts, participant_follows, password_reset_requests, events,
merchandise_variants, registrations, discussion_messages,
message_reactions, teams, team_members.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

role = sa.Enum("participant", "organizer", "admin", name="role")
participant_type = sa.Enum("iiit", "non-iiit", name="participanttype")
reset_status = sa.Enum("pending", "approved", "rejected", name="resetstatus")
event_type = sa.Enum("normal", "merchandise", name="eventtype")
event_status = sa.Enum("draft", "published", "ongoing", "completed", "closed", name="eventstatus")
payment_status = sa.Enum("paid", "pending", "refunded", name="paymentstatus")
registration_status = sa.Enum("registered", "cancelled", "completed", name="registrationstatus")
message_type = sa.Enum("message", "announcement", name="messagetype")
team_status = sa.Enum("forming", "completed", name="teamstatus")
member_status = sa.Enum("invited", "joined", name="memberstatus")


def upgrade() -> None:
    # --- accounts (participants, organizers and admins share one table) ---
    op.create_table(
        "accounts",
        sa.Column("account_id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False, server_default=""),
        sa.Column("role", role, nullable=False),
        sa.Column("onboarding_completed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        # participant
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("participant_type", participant_type, nullable=True),
        sa.Column("college", sa.String(200), nullable=True),
        sa.Column("contact_number", sa.String(30), nullable=True),
        sa.Column("interests", sa.JSON, nullable=True),
        sa.Column("last_notification_check", sa.DateTime(timezone=True), nullable=True),
        # organizer
        sa.Column("organizer_name", sa.String(150), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("webhook_url", sa.String(500), nullable=True),
    )

    # --- participant_follows ---
    op.create_table(
        "participant_follows",
        sa.Column("participant_id", sa.String(36), sa.ForeignKey("accounts.account_id", ondelete="CASCADE"), primary_key=True),
        sa.Column("organizer_id", sa.String(36), sa.ForeignKey("accounts.account_id", ondelete="CASCADE"), primary_key=True),
    )

    # --- password_reset_requests ---
    op.create_table(
        "password_reset_requests",
        sa.Column("request_id", sa.String(36), primary_key=True),
        sa.Column("organizer_id", sa.String(36), sa.ForeignKey("accounts.account_id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", reset_status, nullable=False, server_default="pending"),
        sa.Column("reason", sa.Text, nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(36), sa.ForeignKey("accounts.account_id", ondelete="SET NULL"), nullable=True),
    )

    # --- events ---
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(36), primary_key=True),
        sa.Column("organizer_id", sa.String(36), sa.ForeignKey("accounts.account_id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("event_type", event_type, nullable=False, server_default="normal"),
        sa.Column("status", event_status, nullable=False, server_default="draft"),
        sa.Column("eligibility", sa.String(200), nullable=True),
        sa.Column("registration_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("registration_limit", sa.Integer, nullable=False, server_default="100"),
        sa.Column("registration_fee", sa.Integer, nullable=False, server_default="0"),
        sa.Column("purchase_limit", sa.Integer, nullable=True),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("custom_form", sa.JSON, nullable=False),
        sa.Column("registration_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("revenue", sa.Integer, nullable=False, server_default="0"),
        sa.Column("attendance_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])

    # --- merchandise_variants ---
    op.create_table(
        "merchandise_variants",
        sa.Column("variant_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_name", sa.String(150), nullable=False),
        sa.Column("size", sa.String(20), nullable=False, server_default=""),
        sa.Column("stock", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint("event_id", "product_name", "size", name="uq_variant_product_size"),
    )
    op.create_index("ix_merchandise_variants_event_id", "merchandise_variants", ["event_id"])

    # --- registrations ---
    op.create_table(
        "registrations",
        sa.Column("registration_id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False),
        sa.Column("participant_id", sa.String(36), sa.ForeignKey("accounts.account_id", ondelete="CASCADE"), nullable=False),
        sa.Column("ticket_id", sa.String(64), nullable=False, unique=True),
        sa.Column("form_data", sa.JSON, nullable=False),
        sa.Column("variant_id", sa.Integer, sa.ForeignKey("merchandise_variants.variant_id", ondelete="SET NULL"), nullable=True),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("amount_paid", sa.Integer, nullable=False, server_default="0"),
        sa.Column("payment_status", payment_status, nullable=False, server_default="paid"),
        sa.Column("status", registration_status, nullable=False, server_default="registered"),
        sa.Column("attended", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("attendance_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("event_id", "participant_id", name="uq_registration_event_participant"),
    )
    op.create_index("ix_registrations_event_id", "registrations", ["event_id"])
    op.create_index("ix_registrations_participant_id", "registrations", ["participant_id"])

    # --- discussion_messages ---
    op.create_table(
        "discussion_messages",
        sa.Column("message_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.String(36), sa.ForeignKey("accounts.account_id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("message_type", message_type, nullable=False, server_default="message"),
        sa.Column("parent_id", sa.Integer, sa.ForeignKey("discussion_messages.message_id", ondelete="CASCADE"), nullable=True),
        sa.Column("pinned", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_messages_event_created", "discussion_messages", ["event_id", "created_at"])

    # --- message_reactions ---
    op.create_table(
        "message_reactions",
        sa.Column("message_id", sa.Integer, sa.ForeignKey("discussion_messages.message_id", ondelete="CASCADE"), primary_key=True),
        sa.Column("emoji", sa.String(16), primary_key=True),
        sa.Column("account_id", sa.String(36), sa.ForeignKey("accounts.account_id", ondelete="CASCADE"), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # --- teams ---
    op.create_table(
        "teams",
        sa.Column("team_id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False),
        sa.Column("leader_id", sa.String(36), sa.ForeignKey("accounts.account_id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("invite_code", sa.String(12), nullable=False),
        sa.Column("target_size", sa.Integer, nullable=False),
        sa.Column("status", team_status, nullable=False, server_default="forming"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("event_id", "invite_code", name="uq_team_invite_code"),
    )
    op.create_index("ix_teams_event_id", "teams", ["event_id"])

    # --- team_members ---
    op.create_table(
        "team_members",
        sa.Column("team_id", sa.String(36), sa.ForeignKey("teams.team_id", ondelete="CASCADE"), primary_key=True),
        sa.Column("participant_id", sa.String(36), sa.ForeignKey("accounts.account_id", ondelete="CASCADE"), primary_key=True),
        sa.Column("status", member_status, nullable=False, server_default="invited"),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("team_members")
    op.drop_table("teams")
    op.drop_table("message_reactions")
    op.drop_table("discussion_messages")
    op.drop_table("registrations")
    op.drop_table("merchandise_variants")
    op.drop_table("events")
    op.drop_table("password_reset_requests")
    op.drop_table("participant_follows")
    op.drop_table("accounts")
    bind = op.get_bind()
    for enum_type in (member_status, team_status, message_type, registration_status, payment_status,
                      event_status, event_type, reset_status, participant_type, role):
        enum_type.drop(bind, checkfirst=True)
