"""Initial schema — profiles, event_slots, swap_requests.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-17

Partial unique indexes on swap_requests keep at most one PENDING request per
requester slot and per receiver slot, backing the engine's guarded updates.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_PENDING = sa.text("status = 'PENDING'")


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "event_slots",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("trade_status", sa.String(20), nullable=False, server_default="BUSY"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("end_time > start_time", name="event_slot_time_valid"),
        sa.CheckConstraint(
            "trade_status IN ('BUSY', 'TRADABLE', 'TRADE_PENDING')",
            name="event_slot_status_valid",
        ),
    )
    op.create_index("ix_event_slots_owner_id", "event_slots", ["owner_id"])
    op.create_index("ix_event_slots_status_start", "event_slots", ["trade_status", "start_time"])

    op.create_table(
        "swap_requests",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("requester_id", UUID(as_uuid=True), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("receiver_id", UUID(as_uuid=True), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column(
            "requester_slot_id", UUID(as_uuid=True),
            sa.ForeignKey("event_slots.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "receiver_slot_id", UUID(as_uuid=True),
            sa.ForeignKey("event_slots.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("requester_id <> receiver_id", name="swap_request_distinct_parties"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'ACCEPTED', 'REJECTED')",
            name="swap_request_status_valid",
        ),
    )
    op.create_index("ix_swap_requests_requester_id", "swap_requests", ["requester_id"])
    op.create_index("ix_swap_requests_receiver_id", "swap_requests", ["receiver_id"])
    op.create_index(
        "uq_swap_requests_pending_requester_slot", "swap_requests", ["requester_slot_id"],
        unique=True, postgresql_where=_PENDING, sqlite_where=_PENDING,
    )
    op.create_index(
        "uq_swap_requests_pending_receiver_slot", "swap_requests", ["receiver_slot_id"],
        unique=True, postgresql_where=_PENDING, sqlite_where=_PENDING,
    )


def downgrade() -> None:
    op.drop_table("swap_requests")
    op.drop_table("event_slots")
    op.drop_table("profiles")
