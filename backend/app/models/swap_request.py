"""SwapRequest ORM — a proposed exchange between two slots of two users.

Invariants:
    - requester_id != receiver_id (CHECK constraint)
    - status ∈ {PENDING, ACCEPTED, REJECTED}; resolved_at set once terminal
    - At most one PENDING request per requester slot and per receiver slot
      (partial unique indexes — storage-level defense behind the engine's guarded updates)
    - Holds slot references only; slot data is joined live for display

Design Decisions:
    - ON DELETE CASCADE on slot FKs: deleting a slot (never allowed while pending)
      removes the resolved requests that mention it
    - relationship() with lazy="selectin": ledger projections load both slots in one
      extra query instead of N lazy loads
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint, DateTime, ForeignKey, Index, String, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.core.domain_types import SwapStatus
from app.db.base import Base

_PENDING = text("status = 'PENDING'")


class SwapRequest(Base):
    """Swap request between a requester slot and a receiver slot."""
    __tablename__ = "swap_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    requester_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id"), nullable=False,
        index=True,
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id"), nullable=False,
        index=True,
    )
    requester_slot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("event_slots.id", ondelete="CASCADE"),
        nullable=False,
    )
    receiver_slot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("event_slots.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SwapStatus.PENDING.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    requester_slot: Mapped["EventSlot"] = relationship(
        "EventSlot", foreign_keys=[requester_slot_id], lazy="selectin",
    )
    receiver_slot: Mapped["EventSlot"] = relationship(
        "EventSlot", foreign_keys=[receiver_slot_id], lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "requester_id <> receiver_id", name="swap_request_distinct_parties",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'ACCEPTED', 'REJECTED')",
            name="swap_request_status_valid",
        ),
        Index(
            "uq_swap_requests_pending_requester_slot", "requester_slot_id",
            unique=True, postgresql_where=_PENDING, sqlite_where=_PENDING,
        ),
        Index(
            "uq_swap_requests_pending_receiver_slot", "receiver_slot_id",
            unique=True, postgresql_where=_PENDING, sqlite_where=_PENDING,
        ),
    )
