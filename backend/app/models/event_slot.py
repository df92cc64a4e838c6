"""EventSlot ORM — a user's bookable time interval and its tradability state.

Invariants:
    - end_time > start_time (CHECK constraint, also enforced in core.enforce_slots)
    - trade_status ∈ {BUSY, TRADABLE, TRADE_PENDING}; new slots start BUSY
    - owner_id changes only through an accepted swap

Design Decisions:
    - trade_status stored as the TradeStatus string value: readable in SQL, and guarded
      updates compare against it directly
    - Index on (trade_status, start_time): the marketplace query filters and sorts on both
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint, DateTime, ForeignKey, Index, String,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from app.core.domain_types import TradeStatus
from app.db.base import Base


class EventSlot(Base):
    """Schedule slot that may be offered for exchange."""
    __tablename__ = "event_slots"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id"), nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    trade_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TradeStatus.BUSY.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="event_slot_time_valid"),
        CheckConstraint(
            "trade_status IN ('BUSY', 'TRADABLE', 'TRADE_PENDING')",
            name="event_slot_status_valid",
        ),
        Index("ix_event_slots_status_start", "trade_status", "start_time"),
    )
